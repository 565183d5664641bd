"""
=============================================================================
HTTP VOCABULARY
=============================================================================

The data every Handler speaks in:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ CONTEXT (context.py)                                                │
    │ ─────────────────────────────────────────────────────────────────── │
    │ Immutable mapping describing one request: method, path, query,     │
    │ headers, body stream, plus any extension slots middleware adds.    │
    │ Changes make a new Context: ctx.derive({PATH_INFO: "/5"})          │
    └─────────────────────────────────────────────────────────────────────┘
    ┌─────────────────────────────────────────────────────────────────────┐
    │ RESPONSE (response.py)                                              │
    │ ─────────────────────────────────────────────────────────────────── │
    │ (status, headers, body) where body is a single-pass chunk stream.  │
    │ Helpers: text(), ok(), json_response(), not_found(), ...           │
    └─────────────────────────────────────────────────────────────────────┘
    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST (request.py)                                                │
    │ ─────────────────────────────────────────────────────────────────── │
    │ Read-only convenience view over a Context: query params, headers,  │
    │ body, JSON.                                                        │
    └─────────────────────────────────────────────────────────────────────┘

Routers live in router.py. They are Handlers, so they are imported from
httpstack.http.router (or the top-level package) rather than here.

=============================================================================
"""

from .status_codes import HTTPStatus, is_valid_status, reason_phrase, status_line
from .context import (
    HEADERS,
    INPUT,
    ORIGINAL_PATH,
    PATH_INFO,
    QUERY_STRING,
    REQUEST_METHOD,
    SCRIPT_NAME,
    Context,
    make_context,
)
from .response import (
    Body,
    BodyConsumedError,
    Response,
    error_response,
    fault_response,
    internal_error,
    json_response,
    method_not_allowed,
    not_found,
    ok,
    text,
)
from .request import Request

__all__ = [
    # Status codes
    "HTTPStatus",
    "is_valid_status",
    "reason_phrase",
    "status_line",
    # Context
    "Context",
    "make_context",
    "REQUEST_METHOD",
    "PATH_INFO",
    "SCRIPT_NAME",
    "QUERY_STRING",
    "HEADERS",
    "INPUT",
    "ORIGINAL_PATH",
    # Response
    "Body",
    "BodyConsumedError",
    "Response",
    "text",
    "ok",
    "json_response",
    "not_found",
    "method_not_allowed",
    "error_response",
    "internal_error",
    "fault_response",
    # Request
    "Request",
]
