"""
Helpers for HTTP date values, used by :meth:`tinyhttp.HTTPClient.mirror`
"""

from __future__ import annotations

from email.utils import formatdate, mktime_tz, parsedate_tz

from tinyhttp.utils.python import to_unicode


def rfc1123_to_epoch(date_str: str | bytes | None) -> int | None:
    try:
        date_str = to_unicode(date_str, encoding="ascii")  # type: ignore[arg-type]
        return mktime_tz(parsedate_tz(date_str))  # type: ignore[arg-type]
    except Exception:
        return None


def epoch_to_rfc1123(timestamp: float) -> str:
    """
    >>> epoch_to_rfc1123(0)
    'Thu, 01 Jan 1970 00:00:00 GMT'
    """
    return formatdate(timestamp, usegmt=True)
