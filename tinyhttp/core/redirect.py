from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from w3lib.http import basic_auth_header

from tinyhttp.core.connection import Deadline, connect
from tinyhttp.core.reader import ResponseReader
from tinyhttp.core.writer import RequestWriter
from tinyhttp.exceptions import ProxyHTTPSUnsupported
from tinyhttp.http.url import URL
from tinyhttp.utils.proxy import proxy_bypassed

if TYPE_CHECKING:
    from tinyhttp.client import HTTPClient
    from tinyhttp.core.reader import DataCallbackT
    from tinyhttp.http.request import Request
    from tinyhttp.http.response import Response


logger = logging.getLogger(__name__)

REDIRECT_STATUSES = {301, 302, 303, 307}
SAFE_METHODS = {"GET", "HEAD"}


def _build_redirect_request(
    source_request: Request, *, url: str, **kwargs: Any
) -> Request:
    redirect_request = source_request.replace(url=url, **kwargs)
    has_cookie_header = "Cookie" in redirect_request.headers
    has_authorization_header = "Authorization" in redirect_request.headers
    if has_cookie_header or has_authorization_header:
        source = URL.parse(source_request.url)
        redirect = URL.parse(redirect_request.url)

        if has_cookie_header and (
            redirect.scheme not in {source.scheme, "https"}
            or source.host != redirect.host
        ):
            del redirect_request.headers["Cookie"]

        # https://fetch.spec.whatwg.org/#ref-for-cors-non-wildcard-request-header-name
        if has_authorization_header and (
            source.scheme != redirect.scheme
            or source.host != redirect.host
            or source.port != redirect.port
        ):
            del redirect_request.headers["Authorization"]

    return redirect_request


class RedirectState:
    """Progress of one ``request()`` call through its redirect chain"""

    def __init__(self, request: Request):
        self.hops: int = 0
        self.request: Request = request
        self.history: list[Response] = []

    @property
    def url(self) -> str:
        return self.request.url

    @property
    def method(self) -> str:
        return self.request.method

    def __repr__(self) -> str:
        return f"<RedirectState hops={self.hops} {self.request!r}>"


class RedirectCoordinator:
    """Performs the hops of one request, following redirects.

    301, 302 and 307 are followed for GET and HEAD requests only, keeping
    the method and the body. 303 is always followed with a bodiless GET.
    Every hop gets a new connection, and all hops share one deadline.
    """

    def __init__(self, client: HTTPClient):
        self.client: HTTPClient = client
        settings = client.settings
        self.max_redirect_times: int = settings.getint("REDIRECT_MAX_TIMES")
        self.timeout: float = settings.getfloat("DOWNLOAD_TIMEOUT")
        self.maxsize: int = settings.getint("DOWNLOAD_MAXSIZE")
        self.warnsize: int = settings.getint("DOWNLOAD_WARNSIZE")
        self.bind_address: Any = settings.get("DOWNLOAD_BINDADDRESS")
        self.max_header_lines: int = settings.getint("MAX_HEADER_LINES")
        self.max_line_size: int = settings.getint("MAX_LINE_SIZE")
        self.read_buffer_size: int = settings.getint("READ_BUFFER_SIZE")

    def run(
        self, request: Request, data_callback: DataCallbackT | None = None
    ) -> Response:
        deadline = Deadline(self.timeout)
        state = RedirectState(request)
        while True:
            response = self.fetch(state, deadline, data_callback)
            response.redirects = list(state.history)
            redirect_request = self.process_response(state, response)
            if redirect_request is None:
                return response
            state.history.append(response)
            state.hops += 1
            state.request = redirect_request

    def fetch(
        self,
        state: RedirectState,
        deadline: Deadline,
        data_callback: DataCallbackT | None = None,
    ) -> Response:
        """Perform a single hop: connect, write the request, read the response"""
        url = URL.parse(state.url)
        if url.username is not None and "Authorization" not in state.request.headers:
            headers = state.request.headers.copy()
            headers["Authorization"] = basic_auth_header(
                url.username, url.password or ""
            ).decode("latin-1")
            state.request = state.request.replace(headers=headers)
        request = state.request

        proxy = self.client.proxy
        if proxy is not None and proxy_bypassed(url.host, self.client.no_proxy):
            proxy = None
        if proxy is not None:
            if url.is_tls:
                raise ProxyHTTPSUnsupported(
                    f"Cannot request '{url.geturl()}' through the http proxy "
                    f"'{proxy.geturl()}': HTTPS over a proxy is not supported"
                )
            peer_host, peer_port, target = proxy.host, proxy.port, url.geturl()
        else:
            peer_host, peer_port, target = url.host, url.port, url.target

        with connect(
            peer_host,
            peer_port,
            deadline=deadline,
            tls=url.is_tls,
            server_hostname=url.host,
            context_factory=self.client.context_factory,
            bind_address=self.bind_address,
            proxied=proxy is not None,
            read_buffer_size=self.read_buffer_size,
            max_line_size=self.max_line_size,
        ) as connection:
            RequestWriter(connection).write(
                request,
                target=target,
                authority=url.authority,
                default_headers=self.client.default_headers,
            )
            reader = ResponseReader(connection, max_header_lines=self.max_header_lines)
            return reader.read(
                request,
                url=request.url,
                data_callback=data_callback,
                maxsize=self.maxsize,
                warnsize=self.warnsize,
            )

    def process_response(
        self, state: RedirectState, response: Response
    ) -> Request | None:
        """Return the request of the next hop, or ``None`` when ``response``
        is final."""
        if response.status not in REDIRECT_STATUSES:
            return None
        if response.status != 303 and state.method not in SAFE_METHODS:
            return None
        location = response.headers.get("Location")
        if not location:
            return None
        if state.hops >= self.max_redirect_times:
            logger.debug(
                "Discarding %(request)s: max redirections reached",
                {"request": state.request},
            )
            return None

        redirected_url = URL.parse(state.url).join(location)
        if urlsplit(redirected_url).scheme not in {"http", "https"}:
            logger.debug(
                "Not following redirect of %(request)s to %(redirected)s: "
                "unsupported scheme",
                {"request": state.request, "redirected": redirected_url},
            )
            return None

        if response.status == 303:
            redirected = _build_redirect_request(
                state.request,
                url=redirected_url,
                method="GET",
                body=None,
                trailer_callback=None,
            )
            for header in ("Content-Type", "Content-Length", "Transfer-Encoding"):
                redirected.headers.pop(header, None)
        else:
            redirected = _build_redirect_request(state.request, url=redirected_url)

        logger.debug(
            "Redirecting (%(reason)s) to %(redirected)s from %(request)s",
            {
                "reason": response.status,
                "redirected": redirected,
                "request": state.request,
            },
        )
        return redirected
