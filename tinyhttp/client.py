"""
The HTTP client: construction from settings or keyword options, the
request entry point and the helpers built on top of it.
"""

from __future__ import annotations

import logging
import os
import pprint
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from OpenSSL import SSL

from tinyhttp.core.errors import response_from_exception
from tinyhttp.core.redirect import RedirectCoordinator
from tinyhttp.core.tls import ClientContextFactory, find_ca_file
from tinyhttp.exceptions import TLSError
from tinyhttp.http.form import FORM_CONTENT_TYPE, www_form_urlencode
from tinyhttp.http.headers import Headers
from tinyhttp.http.request import Request
from tinyhttp.settings import BaseSettings, Settings, default_settings, overridden_settings
from tinyhttp.utils.http import epoch_to_rfc1123, rfc1123_to_epoch
from tinyhttp.utils.proxy import env_proxy_url, parse_no_proxy, parse_proxy

if TYPE_CHECKING:
    from collections.abc import Mapping

    # typing.Self requires Python 3.11
    from typing_extensions import Self

    from tinyhttp.core.reader import DataCallbackT
    from tinyhttp.http.form import FormdataType
    from tinyhttp.http.request import TrailerCallbackT
    from tinyhttp.http.response import Response
    from tinyhttp.http.url import URL


logger = logging.getLogger(__name__)


def _target_mode(path: Path) -> int:
    """Permissions for a mirrored file: those of the file it replaces, else
    the ones a plain open() would give"""
    if path.exists():
        return path.stat().st_mode & 0o7777
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


class HTTPClient:
    """A synchronous HTTP/1.1 client.

    Every request opens a fresh connection which is closed once the response
    is read. Failures never raise out of :meth:`request`; they are reported
    as responses with status 599 whose content is the error message.

    Configuration comes from ``settings`` (a :class:`~tinyhttp.settings.Settings`
    object or a dict of setting names) and from keyword ``options``, which
    take precedence. The resulting settings are frozen.
    """

    def __init__(
        self,
        settings: BaseSettings | dict[str, Any] | None = None,
        **options: Any,
    ):
        self.settings: Settings = Settings(settings)
        self.settings.apply_options(options)
        agent = self.settings.get("USER_AGENT")
        if agent and agent.endswith(" "):
            self.settings.set(
                "USER_AGENT",
                agent + default_settings.USER_AGENT,
                self.settings.getpriority("USER_AGENT") or 0,
            )
        self.settings.validate()
        self.settings.freeze()

        d = dict(overridden_settings(self.settings))
        if d:
            logger.debug(
                "Overridden settings:\n%(settings)s", {"settings": pprint.pformat(d)}
            )

        self.default_headers: Headers = Headers(
            self.settings.getdict("DEFAULT_REQUEST_HEADERS")
        )
        if agent and "User-Agent" not in self.default_headers:
            self.default_headers["User-Agent"] = self.settings.get("USER_AGENT")

        self.context_factory: ClientContextFactory = (
            ClientContextFactory.from_settings(self.settings)
        )

        proxy_url = self.settings.get("HTTP_PROXY")
        if proxy_url is None:
            proxy_url = env_proxy_url()
        self.proxy: URL | None = parse_proxy(proxy_url) if proxy_url else None
        self.no_proxy: list[str] = parse_no_proxy(self.settings.get("NO_PROXY"))
        if self.proxy is not None:
            logger.debug(
                "Using proxy %(proxy)s (no_proxy: %(no_proxy)s)",
                {"proxy": self.proxy.geturl(), "no_proxy": self.no_proxy},
            )

        self._coordinator: RedirectCoordinator = RedirectCoordinator(self)

    @classmethod
    def from_settings(cls, settings: BaseSettings | dict[str, Any]) -> Self:
        return cls(settings)

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, Any] | None = None,
        content: Any = None,
        trailer_callback: TrailerCallbackT | None = None,
        data_callback: DataCallbackT | None = None,
    ) -> Response:
        """Perform ``method`` on ``url``, following redirects, and return the
        final response.

        ``content`` is the request body: ``bytes``, ``str``, an iterable of
        chunks or a callable returning the next chunk (``None`` at the end).
        When ``data_callback`` is given, the body of a 2xx response is passed
        to it as ``data_callback(data, response)`` block by block instead of
        being stored in ``response.content``.
        """
        try:
            if data_callback is not None and not callable(data_callback):
                raise TypeError(
                    "data_callback must be a callable, "
                    f"got {type(data_callback).__name__}"
                )
            request = Request(
                url,
                method=method,
                headers=headers,
                body=content,
                trailer_callback=trailer_callback,
            )
            return self._coordinator.run(request, data_callback)
        except Exception as e:
            logger.debug(
                "Error performing %(method)s %(url)s: %(error)s",
                {"method": method, "url": url, "error": e},
                exc_info=True,
            )
            return response_from_exception(str(url), e)

    def get(self, url: str, **kwargs: Any) -> Response:
        return self.request("GET", url, **kwargs)

    def head(self, url: str, **kwargs: Any) -> Response:
        return self.request("HEAD", url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> Response:
        return self.request("PUT", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> Response:
        return self.request("POST", url, **kwargs)

    def patch(self, url: str, **kwargs: Any) -> Response:
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> Response:
        return self.request("DELETE", url, **kwargs)

    def post_form(
        self,
        url: str,
        data: FormdataType,
        headers: Mapping[str, Any] | None = None,
    ) -> Response:
        """POST ``data`` encoded as ``application/x-www-form-urlencoded``"""
        body = www_form_urlencode(data)
        form_headers = Headers(headers or {}).merged(
            {"Content-Type": FORM_CONTENT_TYPE}
        )
        return self.request("POST", url, headers=form_headers, content=body)

    def mirror(
        self,
        url: str,
        path: str | os.PathLike[str],
        *,
        headers: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> Response:
        """Download ``url`` into ``path`` if it changed since the file was
        last modified.

        A 304 response leaves the file untouched and counts as a success.
        """
        if "data_callback" in kwargs:
            raise TypeError("data_callback is not allowed in mirror()")
        if kwargs:
            raise TypeError(
                f"Unexpected mirror() argument(s): {', '.join(sorted(kwargs))}"
            )
        path = Path(path)
        request_headers = Headers(headers or {})
        if "If-Modified-Since" not in request_headers and path.exists():
            request_headers["If-Modified-Since"] = epoch_to_rfc1123(
                path.stat().st_mtime
            )

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}-", suffix=".tmp", dir=path.parent
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                response = self.request(
                    "GET",
                    url,
                    headers=request_headers,
                    data_callback=lambda data, _: f.write(data),
                )
            if response.success:
                os.chmod(tmp_path, _target_mode(path))
                os.replace(tmp_path, path)
                mtime = rfc1123_to_epoch(response.headers.get("Last-Modified"))
                if mtime is not None:
                    os.utime(path, (mtime, mtime))
            elif response.status == 304:
                response.success = True
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
        return response

    @staticmethod
    def can_ssl(ca_file: str | None = None) -> tuple[bool, str]:
        """Return whether https requests with certificate verification can be
        made, and the reason when they cannot."""
        reasons = []
        if SSL.OPENSSL_VERSION_NUMBER < 0x10001000:
            reasons.append(
                "OpenSSL 1.0.1 or later is required for TLS 1.2, found "
                f"{SSL.SSLeay_version(SSL.SSLEAY_VERSION).decode()}"
            )
        found = find_ca_file({"ca_file": ca_file} if ca_file else None)
        if found is None:
            reasons.append(
                "No CA file found; set SSL_CERT_FILE or pass an existing ca_file"
            )
        else:
            try:
                ClientContextFactory(ca_file=found).get_context()
            except TLSError as e:
                reasons.append(str(e))
        return (not reasons, "\n".join(reasons))
