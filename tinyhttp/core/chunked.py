"""
Chunked transfer-encoding, as documented in:
https://en.wikipedia.org/wiki/Chunked_transfer_encoding
"""

from __future__ import annotations

import re
from io import BytesIO
from typing import TYPE_CHECKING, Any, Protocol

from tinyhttp.exceptions import (
    MalformedChunk,
    MalformedResponse,
    TruncatedChunk,
    TruncatedResponse,
)
from tinyhttp.http.headers import Headers

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Mapping


_CHUNK_SIZE_RE = re.compile(rb"\A[ \t]*([0-9A-Fa-f]+)[ \t]*(?:;[^\r\n]*)?\r?\n\Z")


class LineReader(Protocol):
    def readline(self) -> bytes: ...

    def read_some(self, size: int) -> bytes: ...


def serialize_header_lines(headers: Headers) -> Iterator[bytes]:
    for name, value in headers.iterlines():
        yield f"{canonical_name(name)}: {value}\r\n".encode("latin-1")


def canonical_name(name: str) -> str:
    """
    >>> canonical_name("content-type")
    'Content-Type'
    >>> canonical_name("x-forwarded-for")
    'X-Forwarded-For'
    """
    return "-".join(part[:1].upper() + part[1:] for part in name.split("-"))


def encode_chunked(
    chunks: Iterable[bytes],
    trailer_callback: Callable[[], Mapping[str, Any] | None] | None = None,
) -> Iterator[bytes]:
    """Frame ``chunks`` as a chunked body.

    Empty chunks are skipped. ``trailer_callback`` is called once the chunks
    are exhausted and its headers are sent after the last chunk.
    """
    for chunk in chunks:
        if not chunk:
            continue
        yield b"%x\r\n" % len(chunk) + chunk + b"\r\n"
    ending = [b"0\r\n"]
    if trailer_callback is not None:
        trailers = trailer_callback()
        if trailers:
            ending.extend(serialize_header_lines(Headers(trailers)))
    ending.append(b"\r\n")
    yield b"".join(ending)


def read_header_lines(
    reader: LineReader,
    headers: Headers,
    max_lines: int = 64,
) -> Headers:
    """Read ``name: value`` lines up to a blank line into ``headers``.

    Lines starting with whitespace continue the previous value.
    """
    last_name: str | None = None
    count = 0
    while True:
        line = reader.readline()
        if line in (b"\r\n", b"\n"):
            return headers
        count += 1
        if max_lines and count > max_lines:
            raise MalformedResponse(
                f"Header lines exceeds maximum number allowed of {max_lines}"
            )
        text = line.rstrip(b"\r\n").decode("latin-1")
        if text[:1] in (" ", "\t"):
            if last_name is None:
                raise MalformedResponse(f"Malformed header line: {text!r}")
            values = headers.getlist(last_name)
            values[-1] = f"{values[-1]} {text.strip()}".strip()
            continue
        name, sep, value = text.partition(":")
        name = name.strip()
        if not sep or not name:
            raise MalformedResponse(f"Malformed header line: {text!r}")
        headers.appendlist(name, value.strip())
        last_name = name


class ChunkedDecoder:
    """Reads a chunked body from a line-oriented reader.

    The trailer headers are available in :attr:`trailers` once
    :meth:`iter_chunks` is exhausted.
    """

    def __init__(self, reader: LineReader, max_header_lines: int = 64):
        self.reader: LineReader = reader
        self.max_header_lines: int = max_header_lines
        self.trailers: Headers = Headers()

    def _read_size(self) -> int:
        try:
            line = self.reader.readline()
        except TruncatedResponse as e:
            raise TruncatedChunk(f"Unexpected end of stream in chunk head: {e}") from e
        m = _CHUNK_SIZE_RE.match(line)
        if m is None:
            raise MalformedChunk(f"Malformed chunk head: {line[:80]!r}")
        return int(m.group(1), 16)

    def iter_chunks(self) -> Iterator[bytes]:
        """Yield the chunk data in blocks as the reader returns them"""
        while True:
            size = self._read_size()
            if size == 0:
                break
            remaining = size
            while remaining > 0:
                data = self.reader.read_some(remaining)
                if not data:
                    raise TruncatedChunk(
                        "Unexpected end of stream in chunk: "
                        f"expected {size} bytes, got {size - remaining}"
                    )
                remaining -= len(data)
                yield data
            try:
                crlf = self.reader.readline()
            except TruncatedResponse as e:
                raise TruncatedChunk(f"Unexpected end of stream in chunk: {e}") from e
            if crlf not in (b"\r\n", b"\n"):
                raise MalformedChunk("Malformed chunk: missing CRLF after chunk data")
        try:
            read_header_lines(self.reader, self.trailers, self.max_header_lines)
        except TruncatedResponse as e:
            raise TruncatedChunk(f"Unexpected end of stream in trailer: {e}") from e


class _BufferReader:
    def __init__(self, data: bytes):
        self._io = BytesIO(data)

    def readline(self) -> bytes:
        line = self._io.readline()
        if not line.endswith(b"\n"):
            raise TruncatedResponse("Unexpected end of stream while looking for line")
        return line

    def read_some(self, size: int) -> bytes:
        return self._io.read(size)


def decode_chunked(data: bytes) -> tuple[bytes, Headers]:
    """Decode a complete chunked body held in memory.

    >>> decode_chunked(b"1\\r\\na\\r\\n0\\r\\n\\r\\n")
    (b'a', Headers({}))
    """
    decoder = ChunkedDecoder(_BufferReader(data))
    body = b"".join(decoder.iter_chunks())
    return body, decoder.trailers
