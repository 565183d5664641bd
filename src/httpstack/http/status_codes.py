"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes the pipeline itself produces, with reason phrases for the
status line a transport writes ("200 OK", "404 Not Found", ...).

Handlers are free to answer with any integer in [100, 599]; codes missing
from this enum simply get a generic phrase from reason_phrase().

=============================================================================
CATEGORIES
=============================================================================

    1xx  Informational      2xx  Success        3xx  Redirection
    4xx  Client error       5xx  Server error

499 is not in any RFC. It is the nginx convention for "client closed the
connection before the response was ready" and is what a cancelled deferred
token reports.

=============================================================================
"""

from enum import IntEnum


MIN_STATUS = 100
MAX_STATUS = 599


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204

    MOVED_PERMANENTLY = 301
    FOUND = 302

    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    CLIENT_CLOSED_REQUEST = 499

    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        """Check if this is a 2xx status code."""
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        """Check if this is a 4xx or 5xx status code."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.ACCEPTED: "Accepted",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.CLIENT_CLOSED_REQUEST: "Client Closed Request",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.BAD_GATEWAY: "Bad Gateway",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.GATEWAY_TIMEOUT: "Gateway Timeout",
}


# Generic phrases by class, for codes the enum does not name (e.g. 418).
_CLASS_PHRASES = {
    1: "Informational",
    2: "Success",
    3: "Redirection",
    4: "Client Error",
    5: "Server Error",
}


def is_valid_status(code: object) -> bool:
    """True for an int (not bool) within [100, 599]."""
    return (
        isinstance(code, int)
        and not isinstance(code, bool)
        and MIN_STATUS <= code <= MAX_STATUS
    )


def reason_phrase(code: int) -> str:
    """
    Reason phrase for any valid status code.

        reason_phrase(404)  → "Not Found"
        reason_phrase(418)  → "Client Error"
    """
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return _CLASS_PHRASES.get(code // 100, "Unknown")


def status_line(code: int) -> str:
    """Status line as WSGI expects it: "200 OK"."""
    return f"{code} {reason_phrase(code)}"
