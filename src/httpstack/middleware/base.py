"""
=============================================================================
BASE MIDDLEWARE
=============================================================================

A middleware is a Handler that holds a reference to exactly one downstream
Handler, "the rest of the stack", and for each request either answers
directly or delegates.

=============================================================================
ONION ORDER
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │              REQUEST FLOW THROUGH WRAPPED HANDLERS                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Request ────────────────────────────────────────────────►         │
    │                                                                      │
    │   ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐     │
    │   │ Logging  │───►│   Ping   │───►│  Layout  │───►│ Terminal │     │
    │   │          │    │          │    │          │    │ Handler  │     │
    │   └────┬─────┘    └────┬─────┘    └────┬─────┘    └────┬─────┘     │
    │        ▼               ▼               ▼               ▼            │
    │   [before]        [before]        [before]         [process]       │
    │   start timer     /ping? answer                    produce         │
    │                   directly                         outcome         │
    │        ▲               ▲               ▲               │            │
    │   [after]                         [after]              │            │
    │   log line,                       wrap body            ▼            │
    │   X-Request-ID                    in page                           │
    │                                                                      │
    │   ◄──────────────────────────────────────────────── Response        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE DELEGATION CONTRACT
=============================================================================

A middleware that calls downstream must hand back whichever outcome it got,
Immediate or Deferred, unless it means to replace it. Post-processing goes
through map_response(), which works for both:

    class AddServerHeader(Middleware):
        def process(self, context):
            outcome = self.delegate(context)
            return self.map_response(outcome, self._stamp)

        def _stamp(self, response):
            return response.set_header("Server", "httpstack")

For a Deferred outcome map_response() returns a *new* Deferred whose token
is chained onto the original, so the transform runs when the answer
arrives, on whatever thread resolves it.

=============================================================================
"""

from abc import abstractmethod
from typing import Any, Callable, Optional
import logging

from ..core.handler import (
    Deferred,
    Handler,
    HandlerLike,
    Immediate,
    Outcome,
    as_outcome,
    to_handler,
)
from ..http.context import Context
from ..http.response import Response


logger = logging.getLogger(__name__)


ResponseTransform = Callable[[Response], Response]


class Middleware(Handler):
    """
    Abstract base class for middleware wrappers.

    The constructor takes the downstream Handler as its first argument,
    which is what lets the Stack Builder build stacks from middleware
    *classes*:

        Builder().use(Ping).use(Layout, "<main>{page}</main>").run(app)

    calls Ping(Layout(app, "<main>{page}</main>")).
    """

    def __init__(self, app: HandlerLike):
        self.app = to_handler(app)

    @abstractmethod
    def process(self, context: Context) -> Outcome:
        """Answer directly, or delegate to self.app."""

    def delegate(self, context: Context) -> Outcome:
        """Pass the request (or a derived Context) to the downstream Handler."""
        return as_outcome(self.app.process(context))

    @staticmethod
    def map_response(
        outcome: Outcome,
        transform: ResponseTransform,
        on_fault: Optional[Callable[[BaseException, Response], None]] = None,
    ) -> Outcome:
        """
        Apply transform to the Response of either outcome variant.

        Immediate → Immediate(transform(response))
        Deferred  → Deferred(token.map(transform, on_fault))

        on_fault only matters for deferred answers that end FAULTED
        (cancelled, timed out, failed); see DeferredToken.map().
        """
        if isinstance(outcome, Immediate):
            return Immediate(transform(outcome.response))
        if isinstance(outcome, Deferred):
            return Deferred(outcome.token.map(transform, on_fault))
        raise TypeError(f"Not an outcome: {outcome!r}")

    def __repr__(self) -> str:
        return f"{self.name}({self.app!r})"


# =============================================================================
# FUNCTION MIDDLEWARE
# =============================================================================
#
# For a quick one-off middleware without writing a class. The function gets
# the Context and the downstream Handler:
#
#     @function_middleware
#     def only_get(context, app):
#         if context.method != "GET":
#             return method_not_allowed(["GET"])
#         return app(context)
#
#     Builder().use(only_get).run(application)
#
# =============================================================================

class FunctionMiddleware(Middleware):
    """Middleware whose behaviour is a function of (context, app)."""

    def __init__(
        self,
        app: HandlerLike,
        func: Callable[[Context, Handler], Any],
        name: Optional[str] = None,
    ):
        super().__init__(app)
        self._func = func
        self._name = name or func.__name__

    def process(self, context: Context) -> Outcome:
        return as_outcome(self._func(context, self.app))

    @property
    def name(self) -> str:
        return self._name


def function_middleware(
    func: Callable[[Context, Handler], Any]
) -> Callable[[HandlerLike], FunctionMiddleware]:
    """
    Decorator turning a (context, app) function into a middleware factory.

    The result is what Builder.use() expects: a callable taking the
    downstream Handler and returning the wrapper.
    """
    def factory(app: HandlerLike) -> FunctionMiddleware:
        return FunctionMiddleware(app, func)

    factory.__name__ = func.__name__
    factory.__doc__ = func.__doc__
    return factory
