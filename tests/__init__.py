"""
tests: this package contains all tinyhttp unittests
"""

import os

# ignore system-wide proxies for tests
# which would send requests to a totally unsuspecting server
os.environ["http_proxy"] = ""
os.environ["https_proxy"] = ""
os.environ["all_proxy"] = ""
os.environ.pop("HTTP_PROXY", None)
os.environ.pop("ALL_PROXY", None)
os.environ.pop("no_proxy", None)
os.environ.pop("NO_PROXY", None)
