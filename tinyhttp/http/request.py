"""
This module implements the Request class and the request body variants
handed to the request writer.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any, AnyStr, Union

from tinyhttp.http.headers import Headers
from tinyhttp.utils.python import to_bytes

if TYPE_CHECKING:
    # typing.Self requires Python 3.11
    from typing_extensions import Self


ProducerT = Union[Callable[[], Union[bytes, str, None]], Iterable[Union[bytes, str]]]
TrailerCallbackT = Callable[[], Union[Mapping[str, Any], None]]


class RequestBody:
    """Base class of the closed set of request body shapes"""

    length: int | None = None

    def __bool__(self) -> bool:
        return False


class EmptyBody(RequestBody):
    length = 0

    def __repr__(self) -> str:
        return "EmptyBody()"


class FixedBody(RequestBody):
    def __init__(self, data: bytes):
        self.data: bytes = data
        self.length = len(data)

    def __bool__(self) -> bool:
        return self.length > 0

    def __repr__(self) -> str:
        return f"FixedBody(<{self.length} bytes>)"


class StreamedBody(RequestBody):
    """A body pulled from a producer until it is exhausted.

    The producer is either an iterable of chunks or a callable returning the
    next chunk, ``None`` marking the end. Empty chunks are skipped.
    """

    def __init__(self, producer: ProducerT):
        self.producer: ProducerT = producer

    def __bool__(self) -> bool:
        return True

    def __iter__(self) -> Iterator[bytes]:
        if callable(self.producer):
            chunks: Iterable[bytes | str | None] = iter(self.producer, None)
        else:
            chunks = self.producer
        for chunk in chunks:
            if chunk:
                yield to_bytes(chunk)

    def __repr__(self) -> str:
        return f"StreamedBody({self.producer!r})"


def make_body(content: Any) -> RequestBody:
    if content is None:
        return EmptyBody()
    if isinstance(content, RequestBody):
        return content
    if isinstance(content, (bytes, str)):
        return FixedBody(to_bytes(content))
    if callable(content) or isinstance(content, Iterable):
        return StreamedBody(content)
    raise TypeError(
        "Request content must be bytes, str, an iterable of chunks or a "
        f"callable, got {type(content).__name__}"
    )


class Request:
    """Represents one HTTP request, as handed to the request writer."""

    attributes: tuple[str, ...] = (
        "url",
        "method",
        "headers",
        "body",
        "trailer_callback",
    )
    """A tuple of :class:`str` objects containing the name of all public
    attributes of the class that are also keyword parameters of the
    ``__init__`` method.

    Currently used by :meth:`Request.replace`.
    """

    def __init__(
        self,
        url: str,
        method: str = "GET",
        headers: Mapping[AnyStr, Any] | Iterable[tuple[AnyStr, Any]] | None = None,
        body: Any = None,
        trailer_callback: TrailerCallbackT | None = None,
    ) -> None:
        self.method: str = str(method).upper()
        self.url: str = url
        self.headers: Headers = Headers(headers or {})
        self.body: RequestBody = make_body(body)
        if not (callable(trailer_callback) or trailer_callback is None):
            raise TypeError(
                "trailer_callback must be a callable, "
                f"got {type(trailer_callback).__name__}"
            )
        self.trailer_callback: TrailerCallbackT | None = trailer_callback

    def __repr__(self) -> str:
        return f"<{self.method} {self.url}>"

    def copy(self) -> Self:
        return self.replace()

    def replace(self, *args: Any, **kwargs: Any) -> Self:
        """Create a new Request with the same attributes except for those given new values"""
        for x in self.attributes:
            kwargs.setdefault(x, getattr(self, x))
        return self.__class__(*args, **kwargs)
