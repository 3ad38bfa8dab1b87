import logging
from io import BytesIO

import pytest

from tinyhttp.core.reader import ResponseReader
from tinyhttp.exceptions import (
    MalformedChunk,
    MalformedResponse,
    MalformedStatusLine,
    MaxSizeExceeded,
    TruncatedChunk,
    TruncatedResponse,
)
from tinyhttp.http import Request


class BytesConnection:
    """Serves canned response bytes, optionally failing once exhausted"""

    read_buffer_size = 4

    def __init__(self, data, error=None):
        self._io = BytesIO(data)
        self.error = error

    def readline(self):
        line = self._io.readline()
        if not line.endswith(b"\n"):
            raise TruncatedResponse("Unexpected end of stream while looking for line")
        return line

    def read_some(self, size):
        data = self._io.read(min(size, self.read_buffer_size))
        if not data and self.error is not None:
            raise self.error
        return data


URL = "http://example.com/"


def read(data, method="GET", error=None, **kwargs):
    reader = ResponseReader(BytesConnection(data, error), max_header_lines=8)
    return reader.read(Request(URL, method=method), url=URL, **kwargs)


class TestStatusLine:
    def test_basic(self):
        r = read(b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\nhi")
        assert r.status == 200
        assert r.reason == "OK"
        assert r.protocol == "HTTP/1.1"
        assert r.content == b"hi"
        assert r.url == URL

    def test_reason_with_spaces(self):
        r = read(b"HTTP/1.0 404 Not Found Here\r\nContent-Length: 0\r\n\r\n")
        assert r.status == 404
        assert r.reason == "Not Found Here"
        assert r.protocol == "HTTP/1.0"

    def test_missing_reason(self):
        r = read(b"HTTP/1.1 204\r\n\r\n")
        assert r.status == 204
        assert r.reason == ""

    def test_bare_lf(self):
        r = read(b"HTTP/1.1 200 OK\nContent-Length: 1\n\nx")
        assert r.content == b"x"

    @pytest.mark.parametrize(
        "line",
        [
            b"HTTP/1.1 20 OK\r\n",
            b"HTTP/1.1 2000 OK\r\n",
            b"HTTP/1.1OK\r\n",
            b"ICY 200 OK\r\n",
            b"garbage\r\n",
            b"\r\n",
        ],
    )
    def test_malformed(self, line):
        with pytest.raises(MalformedStatusLine):
            read(line + b"\r\n")

    def test_unsupported_protocol(self):
        with pytest.raises(MalformedStatusLine, match="Unsupported HTTP protocol"):
            read(b"HTTP/2.0 200 OK\r\n\r\n")

    def test_empty_response(self):
        with pytest.raises(TruncatedResponse):
            read(b"")


class TestHeaders:
    def test_names_lowercased_and_repeated(self):
        r = read(
            b"HTTP/1.1 200 OK\r\nSet-Cookie: a=1\r\nSET-COOKIE: b=2\r\n"
            b"Content-Length: 0\r\n\r\n"
        )
        assert r.headers.getlist("set-cookie") == ["a=1", "b=2"]
        assert "set-cookie" in dict(r.headers)

    def test_folded(self):
        r = read(b"HTTP/1.1 200 OK\r\nX-Long: a\r\n b\r\nContent-Length: 0\r\n\r\n")
        assert r.headers["x-long"] == "a b"

    def test_too_many(self):
        data = b"HTTP/1.1 200 OK\r\n" + b"X: y\r\n" * 9 + b"\r\n"
        with pytest.raises(MalformedResponse):
            read(data)

    def test_interim_responses_are_skipped(self):
        r = read(
            b"HTTP/1.1 100 Continue\r\n\r\n"
            b"HTTP/1.1 102 Processing\r\nX-Interim: 1\r\n\r\n"
            b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\nok"
        )
        assert r.status == 200
        assert "x-interim" not in r.headers
        assert r.content == b"ok"


class TestBody:
    def test_head_has_no_body(self):
        r = read(b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\n", method="HEAD")
        assert r.content == b""
        assert r.headers["content-length"] == "10"

    @pytest.mark.parametrize("status", [204, 304])
    def test_no_body_statuses(self, status):
        r = read(b"HTTP/1.1 %d X\r\nContent-Length: 10\r\n\r\n" % status)
        assert r.status == status
        assert r.content == b""

    def test_content_length(self):
        r = read(b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\n0123456789extra")
        assert r.content == b"0123456789"

    def test_repeated_identical_content_length(self):
        r = read(
            b"HTTP/1.1 200 OK\r\nContent-Length: 3\r\nContent-Length: 3\r\n\r\nabc"
        )
        assert r.content == b"abc"

    def test_conflicting_content_length(self):
        with pytest.raises(MalformedResponse):
            read(b"HTTP/1.1 200 OK\r\nContent-Length: 3\r\nContent-Length: 4\r\n\r\nabcd")

    @pytest.mark.parametrize("value", [b"-1", b"abc", b"1.5", b"\xb2", b"1\xb9"])
    def test_invalid_content_length(self, value):
        with pytest.raises(MalformedResponse, match="Invalid Content-Length value"):
            read(b"HTTP/1.1 200 OK\r\nContent-Length: " + value + b"\r\n\r\n")

    def test_truncated_content_length(self):
        with pytest.raises(TruncatedResponse, match="expected 10 bytes, got 5"):
            read(b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\n01234")

    def test_chunked(self):
        r = read(
            b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"1\r\na\r\n3\r\nbcd\r\n0\r\n\r\n"
        )
        assert r.content == b"abcd"

    def test_chunked_wins_over_content_length(self):
        r = read(
            b"HTTP/1.1 200 OK\r\nContent-Length: 100\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"1\r\na\r\n0\r\n\r\n"
        )
        assert r.content == b"a"

    def test_chunked_trailers_are_merged(self):
        r = read(
            b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\nX-A: 1\r\n\r\n"
            b"1\r\na\r\n0\r\nX-A: 2\r\nX-Checksum: abc\r\n\r\n"
        )
        assert r.headers.getlist("x-a") == ["1", "2"]
        assert r.headers["x-checksum"] == "abc"

    def test_chunked_malformed(self):
        with pytest.raises(MalformedChunk):
            read(b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\nxyz\r\n")

    def test_chunked_truncated(self):
        with pytest.raises(TruncatedChunk):
            read(b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n5\r\nab")

    def test_read_until_close(self):
        r = read(b"HTTP/1.1 200 OK\r\n\r\nall of the rest")
        assert r.content == b"all of the rest"

    def test_connection_reset_ends_close_delimited_body(self):
        r = read(
            b"HTTP/1.1 200 OK\r\n\r\npartial",
            error=ConnectionResetError(104, "Connection reset by peer"),
        )
        assert r.status == 200
        assert r.content == b"partial"

    def test_connection_reset_during_content_length(self):
        with pytest.raises(ConnectionResetError):
            read(
                b"HTTP/1.1 200 OK\r\nContent-Length: 20\r\n\r\npartial",
                error=ConnectionResetError(104, "Connection reset by peer"),
            )


class TestDataCallback:
    def test_success_body_goes_to_callback(self):
        received = []

        def data_callback(data, response):
            assert response.status == 200
            assert response.headers["x-a"] == "1"
            received.append(data)

        r = read(
            b"HTTP/1.1 200 OK\r\nX-A: 1\r\nContent-Length: 10\r\n\r\n0123456789",
            data_callback=data_callback,
        )
        assert b"".join(received) == b"0123456789"
        assert r.content == b""

    def test_error_body_is_buffered(self):
        received = []
        r = read(
            b"HTTP/1.1 404 Not Found\r\nContent-Length: 4\r\n\r\nnope",
            data_callback=lambda data, response: received.append(data),
        )
        assert received == []
        assert r.content == b"nope"

    def test_maxsize_does_not_apply_to_callback(self):
        received = []
        read(
            b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\n0123456789",
            data_callback=lambda data, response: received.append(data),
            maxsize=5,
        )
        assert b"".join(received) == b"0123456789"


class TestSizeLimits:
    def test_declared_size_over_maxsize(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tinyhttp"):
            with pytest.raises(MaxSizeExceeded, match="maximum allowed of 5") as excinfo:
                read(b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\n0123456789", maxsize=5)
        assert excinfo.value.size == 10
        assert "Cancelling download" in caplog.text

    def test_received_size_over_maxsize(self):
        with pytest.raises(MaxSizeExceeded):
            read(b"HTTP/1.1 200 OK\r\n\r\n0123456789", maxsize=5)

    def test_chunked_over_maxsize(self):
        with pytest.raises(MaxSizeExceeded):
            read(
                b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n"
                b"4\r\naaaa\r\n4\r\nbbbb\r\n0\r\n\r\n",
                maxsize=6,
            )

    def test_large_chunk_over_maxsize(self):
        head = b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n"
        connection = BytesConnection(head + b"186a0\r\n" + b"x" * 100000)
        reader = ResponseReader(connection, max_header_lines=8)
        with pytest.raises(MaxSizeExceeded) as excinfo:
            reader.read(Request(URL), url=URL, maxsize=10)
        assert excinfo.value.size == 12
        assert connection._io.tell() < len(head) + 100

    def test_maxsize_exact(self):
        r = read(b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\n01234", maxsize=5)
        assert r.content == b"01234"

    def test_warnsize_declared(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tinyhttp"):
            r = read(b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\n0123456789", warnsize=5)
        assert r.content == b"0123456789"
        assert caplog.text.count("larger than download warn size") == 1

    def test_warnsize_received(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tinyhttp"):
            r = read(b"HTTP/1.1 200 OK\r\n\r\n0123456789", warnsize=5)
        assert r.content == b"0123456789"
        assert caplog.text.count("warn size") == 1
