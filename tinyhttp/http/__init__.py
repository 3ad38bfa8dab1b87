"""
Module containing all HTTP related classes

Use this module (instead of the more specific ones) when importing Headers,
Request and Response outside this module.
"""

from tinyhttp.http.headers import Headers
from tinyhttp.http.request import (
    EmptyBody,
    FixedBody,
    Request,
    RequestBody,
    StreamedBody,
    make_body,
)
from tinyhttp.http.response import Response
from tinyhttp.http.url import URL, parse_url

__all__ = [
    "URL",
    "EmptyBody",
    "FixedBody",
    "Headers",
    "Request",
    "RequestBody",
    "Response",
    "StreamedBody",
    "make_body",
    "parse_url",
]
