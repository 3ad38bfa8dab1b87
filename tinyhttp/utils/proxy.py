"""Forward proxy selection from settings and the environment"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING
from urllib.request import getproxies

from tinyhttp.exceptions import MalformedURL
from tinyhttp.http.url import URL

if TYPE_CHECKING:
    from collections.abc import Iterable


def env_proxy_url() -> str | None:
    """Return the http proxy configured in the environment, if any.

    Lower-case variables win over upper-case ones, and the upper-case
    ``HTTP_PROXY`` is ignored when ``REQUEST_METHOD`` is set, since a CGI
    request can set it through a ``Proxy:`` header.
    """
    proxies = getproxies()
    return proxies.get("http") or proxies.get("all") or None


def parse_proxy(proxy_url: str) -> URL:
    """Validate a proxy URL of the form ``http://host[:port][/]``"""
    proxy = URL.parse(proxy_url)
    if proxy.scheme != "http":
        raise MalformedURL(f"Proxy URL must use the http scheme: '{proxy_url}'")
    if proxy.username is not None:
        raise MalformedURL(f"Proxy authentication is not supported: '{proxy_url}'")
    if proxy.target != "/":
        raise MalformedURL(
            f"Proxy URL must be of the form http://host[:port]/: '{proxy_url}'"
        )
    return proxy


def parse_no_proxy(value: str | Iterable[str] | None) -> list[str]:
    """Normalize a ``no_proxy`` value, given as a comma separated string or a
    list of hosts, to a list of lower-cased host patterns.

    >>> parse_no_proxy("localhost, .example.com")
    ['localhost', '.example.com']
    """
    if value is None:
        value = os.environ.get("no_proxy") or os.environ.get("NO_PROXY") or ""
    if isinstance(value, str):
        value = value.split(",")
    return [host.strip().lower() for host in value if host and host.strip()]


def proxy_bypassed(host: str, no_proxy: list[str]) -> bool:
    """Return ``True`` when ``host`` must be reached directly.

    >>> proxy_bypassed("www.example.com", ["example.com"])
    True
    >>> proxy_bypassed("notexample.com", ["example.com"])
    False
    """
    host = host.lower()
    for pattern in no_proxy:
        if pattern == "*":
            return True
        domain = pattern.lstrip(".")
        if host == domain or host.endswith("." + domain):
            return True
    return False
