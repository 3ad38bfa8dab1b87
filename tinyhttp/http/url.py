"""Absolute http/https URL parsing for the request line and Host header"""

from __future__ import annotations

import re
from typing import NamedTuple
from urllib.parse import unquote, urljoin, urlsplit

from w3lib.url import safe_url_string

from tinyhttp.exceptions import MalformedURL

DEFAULT_PORTS = {"http": 80, "https": 443}

_ABSOLUTE_URL_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


class URL(NamedTuple):
    """The parts of an absolute URL that matter on the wire.

    ``target`` is the path plus query used verbatim on the request line,
    ``authority`` is the value of the Host header.
    """

    scheme: str
    host: str
    port: int
    target: str
    username: str | None = None
    password: str | None = None

    @classmethod
    def parse(cls, url: str) -> URL:
        if not isinstance(url, str):
            raise MalformedURL(f"URL must be str, got {type(url).__name__}")
        url = url.strip()
        if not _ABSOLUTE_URL_RE.match(url):
            raise MalformedURL(f"Cannot parse URL: '{url}'")
        parsed = urlsplit(url)
        scheme = parsed.scheme.lower()
        if scheme not in DEFAULT_PORTS:
            raise MalformedURL(f"Unsupported URL scheme '{scheme}'")
        try:
            host = parsed.hostname
            port = parsed.port
        except ValueError as e:
            raise MalformedURL(f"Cannot parse URL: '{url}' ({e})") from e
        if not host:
            raise MalformedURL(f"No host in URL: '{url}'")
        if port is None:
            port = DEFAULT_PORTS[scheme]
        target = parsed.path or "/"
        if parsed.query:
            target += "?" + parsed.query
        username = password = None
        if parsed.username is not None:
            username = unquote(parsed.username)
            password = unquote(parsed.password or "")
        return cls(scheme, host.lower(), port, target, username, password)

    @property
    def is_tls(self) -> bool:
        return self.scheme == "https"

    @property
    def authority(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port == DEFAULT_PORTS[self.scheme]:
            return host
        return f"{host}:{self.port}"

    def geturl(self) -> str:
        """Reserialize without userinfo or fragment"""
        return f"{self.scheme}://{self.authority}{self.target}"

    def join(self, location: str) -> str:
        """Resolve a ``Location`` header value against this URL"""
        location = safe_url_string(location)
        if location.startswith("//"):
            location = self.scheme + "://" + location.lstrip("/")
        return urljoin(self.geturl(), location)


def parse_url(url: str) -> URL:
    return URL.parse(url)
