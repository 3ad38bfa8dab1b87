"""This module contains the default values for all settings used by tinyhttp.

tinyhttp developers, if you add a setting here remember to:

* add it in alphabetical order, with the exception that enabling flags and
  other high-level settings for a group should come first in their group
* group similar settings without leaving blank lines
* add it to the option table of tinyhttp.settings when it is meant to be
  passed as a keyword option
"""

from importlib import import_module

__all__ = [
    "DEFAULT_REQUEST_HEADERS",
    "DOWNLOAD_BINDADDRESS",
    "DOWNLOAD_MAXSIZE",
    "DOWNLOAD_TIMEOUT",
    "DOWNLOAD_WARNSIZE",
    "HTTP_PROXY",
    "LOG_DATEFORMAT",
    "LOG_ENABLED",
    "LOG_ENCODING",
    "LOG_FILE",
    "LOG_FILE_APPEND",
    "LOG_FORMAT",
    "LOG_LEVEL",
    "LOG_SHORT_NAMES",
    "MAX_HEADER_LINES",
    "MAX_LINE_SIZE",
    "NO_PROXY",
    "READ_BUFFER_SIZE",
    "REDIRECT_MAX_TIMES",
    "TLS_OPTIONS",
    "TLS_VERIFY",
    "USER_AGENT",
]

DEFAULT_REQUEST_HEADERS = {}

DOWNLOAD_BINDADDRESS = None
DOWNLOAD_MAXSIZE = 0  # unlimited
DOWNLOAD_TIMEOUT = 60
DOWNLOAD_WARNSIZE = 0  # disabled

# None means "read the proxy environment variables"
HTTP_PROXY = None
NO_PROXY = None

LOG_ENABLED = True
LOG_DATEFORMAT = "%Y-%m-%d %H:%M:%S"
LOG_ENCODING = "utf-8"
LOG_FILE = None
LOG_FILE_APPEND = True
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
LOG_LEVEL = "DEBUG"
LOG_SHORT_NAMES = False

MAX_HEADER_LINES = 64
MAX_LINE_SIZE = 16384

READ_BUFFER_SIZE = 32768

REDIRECT_MAX_TIMES = 5

TLS_VERIFY = True
TLS_OPTIONS = {}

USER_AGENT = f"tinyhttp/{import_module('tinyhttp').__version__}"
