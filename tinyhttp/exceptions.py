"""
tinyhttp exceptions

Every failure of a request attempt is an :class:`HTTPClientError`. They never
leave :meth:`tinyhttp.HTTPClient.request`; the client turns them into 599
responses whose content is the exception message.
"""

from __future__ import annotations

# Internal


class NotConfigured(Exception):
    """Indicates a missing or invalid configuration situation"""


class HTTPClientError(Exception):
    """Base class for all request attempt failures"""


# Request preparation


class MalformedURL(HTTPClientError):
    """The URL is not an absolute http or https URL"""


class InvalidRequest(HTTPClientError):
    """The request method or a header cannot be put on the wire"""


# Transport


class ConnectError(HTTPClientError):
    """DNS resolution, local bind or TCP connect failed"""


class ProxyHTTPSUnsupported(HTTPClientError):
    """An https URL was requested while a forward proxy is in effect"""


class TLSError(HTTPClientError):
    """The TLS handshake or the certificate verification failed"""


class Timeout(HTTPClientError):
    """The request deadline expired"""


class ConnectionWriteError(HTTPClientError):
    """The request could not be written to the connection"""


# Response parsing


class MalformedResponse(HTTPClientError):
    """The response does not follow the HTTP/1.1 message syntax"""


class MalformedStatusLine(MalformedResponse):
    """The status line could not be parsed"""


class MalformedChunk(MalformedResponse):
    """A chunk of a chunked response body could not be parsed"""


class TruncatedResponse(HTTPClientError):
    """The connection was closed before the response body was complete"""


class TruncatedChunk(MalformedChunk, TruncatedResponse):
    """The connection was closed in the middle of a chunked body"""


class MaxSizeExceeded(HTTPClientError):
    """The response body is larger than the configured maximum size"""

    def __init__(self, maxsize: int, size: int | None = None):
        self.maxsize = maxsize
        self.size = size
        super().__init__(
            f"Size of response body exceeds the maximum allowed of {maxsize}"
        )
