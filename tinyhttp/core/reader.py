"""Parsing of a response from a connection"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Callable

from tinyhttp.core.chunked import ChunkedDecoder, read_header_lines
from tinyhttp.exceptions import (
    MalformedResponse,
    MalformedStatusLine,
    MaxSizeExceeded,
    TruncatedResponse,
)
from tinyhttp.http.headers import Headers
from tinyhttp.http.response import Response

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tinyhttp.core.connection import Connection
    from tinyhttp.http.request import Request


logger = logging.getLogger(__name__)

DataCallbackT = Callable[[bytes, Response], object]

_STATUS_LINE_RE = re.compile(
    rb"\AHTTP/(\d+)\.(\d+) +(\d{3})(?: +([^\r\n]*?))? *\r?\n\Z"
)

_NO_BODY_STATUSES = {204, 304}


class ResponseReader:
    """Reads one final response, skipping interim 1xx responses.

    The body is framed by ``Transfer-Encoding: chunked``, then by
    ``Content-Length``, and otherwise runs until the server closes the
    connection. Bodies of 2xx responses are handed to ``data_callback`` when
    one is given; any other body is buffered into the response content,
    subject to ``maxsize``.
    """

    def __init__(
        self,
        connection: Connection,
        *,
        max_header_lines: int = 64,
    ):
        self.connection: Connection = connection
        self.max_header_lines: int = max_header_lines

    def read(
        self,
        request: Request,
        *,
        url: str,
        data_callback: DataCallbackT | None = None,
        maxsize: int = 0,
        warnsize: int = 0,
    ) -> Response:
        while True:
            response = self._read_head(url)
            if not 100 <= response.status < 200:
                break
            logger.debug(
                "Skipping interim response %(status)s from %(url)s",
                {"status": response.status, "url": url},
            )

        if request.method == "HEAD" or response.status in _NO_BODY_STATUSES:
            return response

        sink = data_callback if data_callback is not None and response.success else None
        expected_size = self._expected_size(response.headers)
        if sink is None and maxsize and expected_size > maxsize:
            logger.warning(
                "Cancelling download of %(url)s: expected response "
                "size (%(size)s) larger than download max size (%(maxsize)s).",
                {"url": url, "size": expected_size, "maxsize": maxsize},
            )
            raise MaxSizeExceeded(maxsize, expected_size)
        warned = False
        if warnsize and expected_size > warnsize:
            warned = True
            logger.warning(
                "Expected response size (%(size)s) larger than "
                "download warn size (%(warnsize)s) in request %(request)s.",
                {"size": expected_size, "warnsize": warnsize, "request": request},
            )

        body = []
        received = 0
        for data in self._iter_body(response, expected_size):
            received += len(data)
            if sink is not None:
                sink(data, response)
            else:
                if maxsize and received > maxsize:
                    logger.warning(
                        "Received (%(bytes)s) bytes larger than download "
                        "max size (%(maxsize)s) in request %(request)s.",
                        {"bytes": received, "maxsize": maxsize, "request": request},
                    )
                    raise MaxSizeExceeded(maxsize, received)
                body.append(data)
            if warnsize and received > warnsize and not warned:
                warned = True
                logger.warning(
                    "Received more bytes than download "
                    "warn size (%(warnsize)s) in request %(request)s.",
                    {"warnsize": warnsize, "request": request},
                )
        if sink is None:
            response._set_content(b"".join(body))
        return response

    def _read_head(self, url: str) -> Response:
        line = self.connection.readline()
        m = _STATUS_LINE_RE.match(line)
        if m is None:
            raise MalformedStatusLine(f"Malformed Status-Line: {line[:80]!r}")
        major, minor, status, reason = m.groups()
        if major != b"1":
            raise MalformedStatusLine(
                f"Unsupported HTTP protocol: {line.rstrip()[:80]!r}"
            )
        headers = read_header_lines(
            self.connection, Headers(), self.max_header_lines
        )
        return Response(
            url,
            status=int(status),
            reason=(reason or b"").decode("latin-1"),
            headers=headers,
            protocol=f"HTTP/{major.decode()}.{minor.decode()}",
        )

    @staticmethod
    def _is_chunked(headers: Headers) -> bool:
        codings = ",".join(headers.getlist("Transfer-Encoding"))
        parts = [c.strip().lower() for c in codings.split(",") if c.strip()]
        return bool(parts) and parts[-1] == "chunked"

    def _expected_size(self, headers: Headers) -> int:
        """Declared body length, or -1 when the body is not length-delimited"""
        if self._is_chunked(headers):
            return -1
        values = headers.getlist("Content-Length")
        if not values:
            return -1
        lengths = {v.strip() for value in values for v in value.split(",")}
        if len(lengths) != 1:
            raise MalformedResponse(
                f"Conflicting Content-Length values: {', '.join(values)}"
            )
        length = lengths.pop()
        if not (length.isascii() and length.isdigit()):
            raise MalformedResponse(f"Invalid Content-Length value: {length!r}")
        return int(length)

    def _iter_body(self, response: Response, expected_size: int) -> Iterator[bytes]:
        if self._is_chunked(response.headers):
            decoder = ChunkedDecoder(self.connection, self.max_header_lines)
            yield from decoder.iter_chunks()
            for name, value in decoder.trailers.iterlines():
                response.headers.appendlist(name, value)
        elif expected_size >= 0:
            yield from self._iter_fixed(expected_size)
        else:
            yield from self._iter_until_close(response)

    def _iter_fixed(self, size: int) -> Iterator[bytes]:
        remaining = size
        while remaining > 0:
            data = self.connection.read_some(min(remaining, self.connection.read_buffer_size))
            if not data:
                raise TruncatedResponse(
                    "Unexpected end of stream: "
                    f"expected {size} bytes, got {size - remaining}"
                )
            remaining -= len(data)
            yield data

    def _iter_until_close(self, response: Response) -> Iterator[bytes]:
        while True:
            try:
                data = self.connection.read_some(self.connection.read_buffer_size)
            except ConnectionResetError:
                logger.debug(
                    "Connection reset while reading the body of %(response)s, "
                    "assuming end of body",
                    {"response": response},
                )
                return
            if not data:
                return
            yield data
