"""
=============================================================================
MIDDLEWARE
=============================================================================

A middleware is a Handler built around another Handler. Added with
Builder.use(), the first one added is the outermost:

    Builder().use(LoggingMiddleware).use(Ping).run(app)

    request  ──► LoggingMiddleware ──► Ping ──► app
    response ◄── LoggingMiddleware ◄── Ping ◄── app

Available:

    LoggingMiddleware   access log line per request, X-Request-ID
    Ping                answers GET /ping with "OK"
    Layout              wraps the page body in a shared layout
    ResponseHeaders     stamps fixed headers on every response
    TimeoutMiddleware   cancels deferred answers after a deadline

=============================================================================
"""

from .base import FunctionMiddleware, Middleware, function_middleware
from .headers import ResponseHeaders
from .layout import Layout
from .logging import LoggingMiddleware, RequestLog
from .ping import Ping
from .timeout import TimeoutMiddleware

__all__ = [
    "Middleware",
    "FunctionMiddleware",
    "function_middleware",
    "LoggingMiddleware",
    "RequestLog",
    "Ping",
    "Layout",
    "ResponseHeaders",
    "TimeoutMiddleware",
]
