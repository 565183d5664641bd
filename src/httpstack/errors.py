"""
=============================================================================
PIPELINE ERRORS
=============================================================================

Every exception raised by httpstack derives from HTTPStackError, so callers
can catch "anything the runtime complained about" with a single clause.

=============================================================================
ERROR TAXONOMY
=============================================================================

    ┌──────────────────────────┬──────────────┬────────────────────────────┐
    │ Exception                │ Raised when  │ What happens               │
    ├──────────────────────────┼──────────────┼────────────────────────────┤
    │ HandlerFault             │ per request  │ FaultBarrier turns it into │
    │                          │              │ an error Response          │
    │ ConfigurationError       │ build time   │ process must not serve     │
    │ DoubleResolutionError    │ any time     │ logged loudly, re-raised   │
    │ Cancelled / Timeout      │ per request  │ reason of a FAULTED token  │
    └──────────────────────────┴──────────────┴────────────────────────────┘

Per-request failures are recovered at the outermost layer of the stack so
one broken request never takes down its neighbours. Build-time and protocol
errors are defects in the program and are never swallowed.

=============================================================================
"""

from typing import Optional


class HTTPStackError(Exception):
    """Base class for all httpstack errors."""


class HandlerFault(HTTPStackError):
    """
    Raised by application code when a request cannot be answered.

    The optional status is a hint for the error Response synthesized at the
    pipeline boundary. Hints outside the 4xx/5xx range are ignored and the
    client sees a plain 500.

        raise HandlerFault("Artist not found", status=404)
    """

    def __init__(self, message: str = "Handler fault", status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class ConfigurationError(HTTPStackError):
    """The pipeline (or the server config) cannot be built as described."""


class DoubleResolutionError(HTTPStackError):
    """A deferred token was completed after it had already been completed."""


class Cancelled(HTTPStackError):
    """Terminal reason for a token cancelled by the transport."""

    def __init__(self, message: str = "Request cancelled"):
        super().__init__(message)


class Timeout(HTTPStackError):
    """Terminal reason for a token abandoned after a deadline expired."""

    def __init__(self, seconds: Optional[float] = None):
        if seconds is None:
            message = "Request timed out"
        else:
            message = f"Request timed out after {seconds:g}s"
        super().__init__(message)
        self.seconds = seconds
