from __future__ import annotations

from tinyhttp.http.headers import Headers
from tinyhttp.http.response import Response

INTERNAL_ERROR_STATUS = 599
INTERNAL_ERROR_REASON = "Internal Exception"


def response_from_exception(url: str, exc: BaseException) -> Response:
    """Build the pseudo-response that stands for a failed request attempt.

    The content is the exception message, so callers can inspect what went
    wrong without catching anything.
    """
    return Response(
        url,
        status=INTERNAL_ERROR_STATUS,
        reason=INTERNAL_ERROR_REASON,
        headers=Headers(),
        content=str(exc).encode("utf-8", "replace"),
        protocol=None,
        redirects=[],
    )
