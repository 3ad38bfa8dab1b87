"""
This module implements the Response class, filled in by the response reader
and returned by :meth:`tinyhttp.HTTPClient.request`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, AnyStr

from tinyhttp.http.headers import Headers

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    # typing.Self requires Python 3.11
    from typing_extensions import Self


class Response:
    """An HTTP response.

    The reader builds it in steps: status and reason first, then the header
    block, then the content. A data callback receives it after the headers
    are complete and before ``content`` is set.
    """

    attributes: tuple[str, ...] = (
        "url",
        "status",
        "reason",
        "headers",
        "content",
        "protocol",
        "redirects",
    )
    """A tuple of :class:`str` objects containing the name of all public
    attributes of the class that are also keyword parameters of the
    ``__init__`` method.

    Currently used by :meth:`Response.replace`.
    """

    def __init__(
        self,
        url: str,
        status: int = 200,
        reason: str = "",
        headers: Mapping[AnyStr, Any] | Iterable[tuple[AnyStr, Any]] | None = None,
        content: bytes = b"",
        protocol: str | None = None,
        redirects: list[Response] | None = None,
    ):
        self.url: str = url
        self.status: int = int(status)
        self.reason: str = reason
        self.headers: Headers = Headers(headers or {})
        self._set_content(content)
        self.protocol: str | None = protocol
        self.redirects: list[Response] = [] if redirects is None else list(redirects)
        self._success: bool | None = None

    @property
    def success(self) -> bool:
        """``True`` for 2xx responses unless explicitly overridden"""
        if self._success is not None:
            return self._success
        return 200 <= self.status < 300

    @success.setter
    def success(self, value: bool) -> None:
        self._success = bool(value)

    @property
    def content(self) -> bytes:
        return self._content

    def _set_content(self, content: bytes | None) -> None:
        if content is None:
            self._content = b""
        elif not isinstance(content, bytes):
            raise TypeError(
                f"Response content must be bytes, got {type(content).__name__}"
            )
        else:
            self._content = content

    @property
    def text(self) -> str:
        """The content decoded as utf-8, undecodable bytes replaced"""
        return self._content.decode("utf-8", "replace")

    def __repr__(self) -> str:
        return f"<{self.status} {self.url}>"

    def copy(self) -> Self:
        """Return a copy of this Response"""
        return self.replace()

    def replace(self, *args: Any, **kwargs: Any) -> Self:
        """Create a new Response with the same attributes except for those given new values"""
        for x in self.attributes:
            kwargs.setdefault(x, getattr(self, x))
        return self.__class__(*args, **kwargs)
