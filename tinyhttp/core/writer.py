"""Serialization of a request onto a connection"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from tinyhttp.core.chunked import encode_chunked, serialize_header_lines
from tinyhttp.exceptions import ConnectionWriteError, InvalidRequest
from tinyhttp.http.headers import Headers
from tinyhttp.http.request import EmptyBody, FixedBody, StreamedBody

if TYPE_CHECKING:
    from collections.abc import Mapping

    from tinyhttp.core.connection import Connection
    from tinyhttp.http.request import Request


logger = logging.getLogger(__name__)

# RFC 7230 token
_TOKEN_RE = re.compile(r"\A[!#$%&'*+\-.^_`|~0-9A-Za-z]+\Z")
# a CR or LF that does not start a line fold would start a new header
_INJECTION_RE = re.compile(r"\r(?!\n[ \t])|\n(?![ \t])")

_BODY_REQUIRED_METHODS = {"POST", "PUT", "PATCH"}
_BODY_TYPES = (EmptyBody, FixedBody, StreamedBody)


def build_headers(
    request: Request,
    *,
    authority: str,
    default_headers: Mapping[str, Any] | None = None,
) -> Headers:
    """Merge the header sources of one request attempt, in precedence order:
    client defaults, per-call headers, then the headers the client always
    controls (Host unless given, Connection, body framing)."""
    headers = Headers(default_headers or {}).merged(request.headers)
    if "host" not in headers:
        headers["Host"] = authority
    headers["Connection"] = "close"

    body = request.body
    if isinstance(body, FixedBody):
        headers.pop("Transfer-Encoding", None)
        headers["Content-Length"] = body.length
    elif isinstance(body, StreamedBody):
        if "content-length" in headers:
            headers.pop("Transfer-Encoding", None)
        else:
            headers["Transfer-Encoding"] = "chunked"
    else:
        headers.pop("Transfer-Encoding", None)
        if request.method in _BODY_REQUIRED_METHODS:
            headers["Content-Length"] = 0
        else:
            headers.pop("Content-Length", None)
    return headers


def validate_headers(headers: Headers) -> None:
    for name, value in headers.iterlines():
        if not _TOKEN_RE.match(name):
            raise InvalidRequest(f"Invalid HTTP header field name {name!r}")
        if _INJECTION_RE.search(value):
            raise InvalidRequest(f"Invalid HTTP header field value for {name!r}")


class RequestWriter:
    """Writes the request line, the header block and the body of a request.

    Fixed bodies go out as-is after a ``Content-Length`` header. Streamed
    bodies are chunked unless the caller declared their length.
    """

    def __init__(self, connection: Connection):
        self.connection: Connection = connection

    def write(
        self,
        request: Request,
        *,
        target: str,
        authority: str,
        default_headers: Mapping[str, Any] | None = None,
    ) -> Headers:
        if not _TOKEN_RE.match(request.method):
            raise InvalidRequest(f"Invalid HTTP method {request.method!r}")
        if not isinstance(request.body, _BODY_TYPES):
            raise TypeError(f"Unsupported request body: {request.body!r}")
        headers = build_headers(
            request, authority=authority, default_headers=default_headers
        )
        validate_headers(headers)
        try:
            head = [f"{request.method} {target} HTTP/1.1\r\n".encode("latin-1")]
            head.extend(serialize_header_lines(headers))
        except UnicodeEncodeError as e:
            raise InvalidRequest(f"Request head is not latin-1 encodable: {e}") from e
        head.append(b"\r\n")
        self.connection.sendall(b"".join(head))
        logger.debug(
            "Sent %(method)s %(target)s to %(peer)s",
            {"method": request.method, "target": target, "peer": self.connection.peer},
        )

        body = request.body
        if isinstance(body, FixedBody):
            if body.data:
                self.connection.sendall(body.data)
        elif isinstance(body, StreamedBody):
            if "transfer-encoding" in headers:
                self._write_chunked(body, request)
            else:
                self._write_streamed(body, int(headers["Content-Length"] or 0))
        return headers

    def _write_chunked(self, body: StreamedBody, request: Request) -> None:
        for frame in encode_chunked(body, request.trailer_callback):
            self.connection.sendall(frame)

    def _write_streamed(self, body: StreamedBody, expected: int) -> None:
        written = 0
        for chunk in body:
            written += len(chunk)
            if written > expected:
                break
            self.connection.sendall(chunk)
        if written != expected:
            raise ConnectionWriteError(
                f"Content-Length mismatch (got: {written} expected: {expected})"
            )
