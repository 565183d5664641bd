"""
=============================================================================
HTTPSTACK - Composable HTTP Request Pipelines
=============================================================================

Web applications built as a stack of small, interchangeable pieces:
applications, middleware, routers and proxies all share one contract.

    handler.process(context) → Immediate(response) | Deferred(token)

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTPSTACK ARCHITECTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Transport (WSGI)                                                  │
    │        │  Context                                   ▲ Response      │
    │        ▼                                            │               │
    │   ┌────────────────────── FaultBarrier ──────────────────────┐      │
    │   │  ┌──────────────── LoggingMiddleware ────────────────┐   │      │
    │   │  │  ┌─────────────────── Ping ───────────────────┐   │   │      │
    │   │  │  │            PathRouter                      │   │   │      │
    │   │  │  │   /artists ──► ArtistsHandler              │   │   │      │
    │   │  │  │   /venues  ──► Layout ──► VenuesHandler    │   │   │      │
    │   │  │  └────────────────────────────────────────────┘   │   │      │
    │   │  └───────────────────────────────────────────────────┘   │      │
    │   └──────────────────────────────────────────────────────────┘      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A handler that cannot answer right away returns Deferred(token) and
resolves the token later, from any thread. Middleware transforms deferred
answers through the same map_response() it uses for immediate ones.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httpstack/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m httpstack)
    ├── errors.py            # Exception hierarchy
    ├── config.py            # StackConfig dataclass
    ├── server.py            # StackServer (threaded wsgiref)
    ├── wsgi.py              # WSGIAdapter, environ → Context
    ├── testing.py           # In-process test Client
    ├── core/
    │   ├── handler.py       # Handler contract, Immediate/Deferred
    │   ├── deferred.py      # DeferredToken
    │   └── builder.py       # Builder, FaultBarrier
    ├── http/
    │   ├── context.py       # Context
    │   ├── response.py      # Response, Body, helpers
    │   ├── request.py       # Request view
    │   ├── router.py        # PathRouter, MethodRouter
    │   └── status_codes.py  # HTTPStatus
    ├── middleware/          # Logging, Ping, Layout, headers, timeout
    └── handlers/            # Demo applications, ProxyHandler

=============================================================================
QUICK START
=============================================================================

    from httpstack import Builder, Response, StackServer
    from httpstack.middleware import LoggingMiddleware, Ping

    def hello(context):
        return Response(200, {"Content-Type": "text/plain"}, ["Hello, World"])

    app = Builder().use(LoggingMiddleware).use(Ping).run(hello).build()
    StackServer(app).run()

=============================================================================
"""

__version__ = "1.0.0"

from .errors import (
    Cancelled,
    ConfigurationError,
    DoubleResolutionError,
    HandlerFault,
    HTTPStackError,
    Timeout,
)
from .http import Context, HTTPStatus, Request, Response, make_context
from .core import (
    Builder,
    Deferred,
    DeferredToken,
    FaultBarrier,
    Handler,
    Immediate,
    as_outcome,
    build_stack,
    defer,
    handler,
    to_handler,
)
from .http.router import MethodRouter, PathRouter
from .middleware import Middleware
from .config import StackConfig
from .wsgi import WSGIAdapter
from .server import StackServer

__all__ = [
    "__version__",
    # Errors
    "HTTPStackError",
    "HandlerFault",
    "ConfigurationError",
    "DoubleResolutionError",
    "Cancelled",
    "Timeout",
    # Data
    "Context",
    "make_context",
    "Request",
    "Response",
    "HTTPStatus",
    # Contract
    "Handler",
    "Immediate",
    "Deferred",
    "DeferredToken",
    "as_outcome",
    "defer",
    "handler",
    "to_handler",
    "Middleware",
    # Composition
    "Builder",
    "FaultBarrier",
    "build_stack",
    "PathRouter",
    "MethodRouter",
    # Serving
    "StackConfig",
    "WSGIAdapter",
    "StackServer",
]
