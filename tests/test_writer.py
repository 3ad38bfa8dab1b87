import pytest

from tinyhttp.core.chunked import decode_chunked
from tinyhttp.core.writer import RequestWriter, build_headers
from tinyhttp.exceptions import ConnectionWriteError, InvalidRequest
from tinyhttp.http import Headers, Request
from tinyhttp.http.request import RequestBody


class RecordingConnection:
    peer = "example.com:80"

    def __init__(self):
        self.sent = []

    def sendall(self, data):
        self.sent.append(bytes(data))

    @property
    def data(self):
        return b"".join(self.sent)


def write(request, target="/", authority="example.com", default_headers=None):
    conn = RecordingConnection()
    RequestWriter(conn).write(
        request, target=target, authority=authority, default_headers=default_headers
    )
    head, _, body = conn.data.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    return lines[0], lines[1:], body


class TestBuildHeaders:
    def test_precedence(self):
        request = Request(
            "http://example.com/",
            headers={"user-agent": "custom", "Connection": "keep-alive"},
        )
        headers = build_headers(
            request,
            authority="example.com",
            default_headers={"User-Agent": "default", "Accept": "*/*"},
        )
        assert headers.getlist("User-Agent") == ["custom"]
        assert headers["Accept"] == "*/*"
        assert headers["Host"] == "example.com"
        assert headers.getlist("Connection") == ["close"]

    def test_caller_host_wins(self):
        request = Request("http://example.com/", headers={"Host": "other.org"})
        headers = build_headers(request, authority="example.com")
        assert headers.getlist("Host") == ["other.org"]

    def test_fixed_body_framing(self):
        request = Request(
            "http://example.com/",
            method="POST",
            body=b"abc",
            headers={"Transfer-Encoding": "chunked", "Content-Length": "99"},
        )
        headers = build_headers(request, authority="example.com")
        assert headers.getlist("Content-Length") == ["3"]
        assert "Transfer-Encoding" not in headers

    def test_streamed_body_framing(self):
        request = Request("http://example.com/", method="PUT", body=[b"a"])
        headers = build_headers(request, authority="example.com")
        assert headers["Transfer-Encoding"] == "chunked"
        assert "Content-Length" not in headers

    def test_streamed_body_with_length(self):
        request = Request(
            "http://example.com/",
            method="PUT",
            body=[b"a"],
            headers={"Content-Length": "1"},
        )
        headers = build_headers(request, authority="example.com")
        assert headers["Content-Length"] == "1"
        assert "Transfer-Encoding" not in headers

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH"])
    def test_empty_body_requiring_length(self, method):
        headers = build_headers(Request("http://example.com/", method=method), authority="example.com")
        assert headers["Content-Length"] == "0"

    @pytest.mark.parametrize("method", ["GET", "HEAD", "DELETE", "OPTIONS"])
    def test_empty_body_without_length(self, method):
        headers = build_headers(Request("http://example.com/", method=method), authority="example.com")
        assert "Content-Length" not in headers
        assert "Transfer-Encoding" not in headers


class TestRequestWriter:
    def test_get(self):
        request_line, header_lines, body = write(
            Request("http://example.com/path?q=1"),
            target="/path?q=1",
            default_headers={"User-Agent": "tinyhttp/test"},
        )
        assert request_line == "GET /path?q=1 HTTP/1.1"
        assert header_lines == [
            "User-Agent: tinyhttp/test",
            "Host: example.com",
            "Connection: close",
        ]
        assert body == b""

    def test_canonical_names_and_repeated_values(self):
        _, header_lines, _ = write(
            Request(
                "http://example.com/",
                headers=[("x-custom-header", "1"), ("X-CUSTOM-HEADER", "2")],
            )
        )
        assert header_lines[:2] == ["X-Custom-Header: 1", "X-Custom-Header: 2"]

    def test_fixed_body(self):
        request_line, header_lines, body = write(
            Request("http://example.com/", method="POST", body=b"hello")
        )
        assert request_line == "POST / HTTP/1.1"
        assert "Content-Length: 5" in header_lines
        assert body == b"hello"

    def test_empty_post(self):
        _, header_lines, body = write(Request("http://example.com/", method="POST"))
        assert "Content-Length: 0" in header_lines
        assert body == b""

    def test_chunked_body_with_trailers(self):
        chunks = iter([b"abc", b"", b"de", None])
        request = Request(
            "http://example.com/",
            method="PUT",
            body=lambda: next(chunks),
            trailer_callback=lambda: {"X-Sum": "5"},
        )
        _, header_lines, body = write(request)
        assert "Transfer-Encoding: chunked" in header_lines
        assert body == b"3\r\nabc\r\n2\r\nde\r\n0\r\nX-Sum: 5\r\n\r\n"
        decoded, trailers = decode_chunked(body)
        assert decoded == b"abcde"
        assert trailers["x-sum"] == "5"

    def test_streamed_body_with_length(self):
        request = Request(
            "http://example.com/",
            method="PUT",
            body=[b"abc", b"de"],
            headers={"Content-Length": "5"},
        )
        _, header_lines, body = write(request)
        assert "Content-Length: 5" in header_lines
        assert body == b"abcde"

    @pytest.mark.parametrize("chunks", [[b"abc"], [b"abc", b"def"]])
    def test_streamed_body_length_mismatch(self, chunks):
        request = Request(
            "http://example.com/",
            method="PUT",
            body=chunks,
            headers={"Content-Length": "5"},
        )
        with pytest.raises(ConnectionWriteError, match="Content-Length mismatch"):
            write(request)

    def test_absolute_target(self):
        request_line, header_lines, _ = write(
            Request("http://example.com:8080/a"),
            target="http://example.com:8080/a",
            authority="example.com:8080",
        )
        assert request_line == "GET http://example.com:8080/a HTTP/1.1"
        assert "Host: example.com:8080" in header_lines

    @pytest.mark.parametrize("method", ["GE T", "GET\r\n", "", "G(ET)"])
    def test_invalid_method(self, method):
        with pytest.raises(InvalidRequest):
            write(Request("http://example.com/", method=method))

    def test_invalid_header_name(self):
        with pytest.raises(InvalidRequest):
            write(Request("http://example.com/", headers={"Bad Name": "x"}))

    @pytest.mark.parametrize("value", ["a\r\nInjected: 1", "a\nb", "a\r"])
    def test_invalid_header_value(self, value):
        with pytest.raises(InvalidRequest):
            write(Request("http://example.com/", headers={"X-Test": value}))

    def test_folded_header_value_is_allowed(self):
        _, header_lines, _ = write(
            Request("http://example.com/", headers={"X-Test": "a\r\n b"})
        )
        assert "X-Test: a" in header_lines
        assert " b" in header_lines

    def test_non_latin1_header_value(self):
        with pytest.raises(InvalidRequest):
            write(Request("http://example.com/", headers={"X-Test": "€"}))

    def test_nothing_sent_on_invalid_request(self):
        conn = RecordingConnection()
        with pytest.raises(InvalidRequest):
            RequestWriter(conn).write(
                Request("http://example.com/", headers={"X-Test": "a\nb"}),
                target="/",
                authority="example.com",
            )
        assert conn.sent == []

    def test_unsupported_body(self):
        class OtherBody(RequestBody):
            pass

        conn = RecordingConnection()
        with pytest.raises(TypeError, match="Unsupported request body"):
            RequestWriter(conn).write(
                Request("http://example.com/", method="POST", body=OtherBody()),
                target="/",
                authority="example.com",
            )
        assert conn.sent == []


def test_default_headers_are_not_mutated():
    defaults = Headers({"Accept": "*/*"})
    write(Request("http://example.com/", headers={"Accept": "text/html"}), default_headers=defaults)
    assert defaults.getlist("Accept") == ["*/*"]
