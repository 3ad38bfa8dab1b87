"""
tinyhttp - a small, synchronous HTTP/1.1 client
"""

import pkgutil

# the version must be known before default settings build the user agent
__version__ = (pkgutil.get_data(__package__, "VERSION") or b"").decode("ascii").strip()
version_info = tuple(int(v) if v.isdigit() else v for v in __version__.split("."))

# Declare top-level shortcuts
from tinyhttp.client import HTTPClient  # noqa: E402
from tinyhttp.http import Headers, Request, Response  # noqa: E402

__all__ = [
    "HTTPClient",
    "Headers",
    "Request",
    "Response",
    "__version__",
    "version_info",
]


del pkgutil
