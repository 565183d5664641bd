"""
=============================================================================
THE HANDLER CONTRACT
=============================================================================

Every piece of the pipeline, whether application, middleware or router, is a
Handler. A Handler has exactly one capability:

    process(context) -> Immediate(response) | Deferred(token)

The result is a tagged value, not two call paths. A caller always gets one
outcome back and branches on its type:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         HANDLER OUTCOMES                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Immediate(response)                                                │
    │       The answer is ready. The transport writes it right away.      │
    │                                                                      │
    │   Deferred(token)                                                    │
    │       The handler has started work (a timer, a backend call...)     │
    │       and will resolve the token later, from any thread. The        │
    │       transport keeps the connection open and registers a           │
    │       completion action on the token.                                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WRITING HANDLERS
=============================================================================

Subclass Handler:

    class Hello(Handler):
        def process(self, context):
            return Immediate(ok("Hello, World"))

Or write a plain function and let to_handler() adapt it. Functions may
return a bare Response (or a bare DeferredToken); it is wrapped for them:

    def hello(context):
        return ok("Hello, World")

    app = to_handler(hello)

Rules every handler follows:
- Never mutate the Context. Derive a new one for downstream calls.
- Produce exactly one outcome per request.
- Raise HandlerFault (optionally with a status hint) when the request
  cannot be answered; the outermost layer turns it into an error response.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from ..http.context import Context
from ..http.response import Response
from .deferred import DeferredToken


@dataclass(frozen=True)
class Immediate:
    """The handler answered synchronously."""

    response: Response


@dataclass(frozen=True)
class Deferred:
    """The handler will answer later through the token."""

    token: DeferredToken


Outcome = Union[Immediate, Deferred]


def as_outcome(result: Any) -> Outcome:
    """
    Normalize what a handler returned into an Outcome.

        Immediate / Deferred   → unchanged
        Response               → Immediate(response)
        DeferredToken          → Deferred(token)
        anything else          → TypeError
    """
    if isinstance(result, (Immediate, Deferred)):
        return result
    if isinstance(result, Response):
        return Immediate(result)
    if isinstance(result, DeferredToken):
        return Deferred(result)
    raise TypeError(
        f"Handler returned {type(result).__name__}; expected Immediate, "
        f"Deferred, Response or DeferredToken"
    )


def defer() -> Deferred:
    """
    Start a deferred answer.

        outcome = defer()
        threading.Timer(5, outcome.token.resolve, args=(ok("Hello!"),)).start()
        return outcome
    """
    return Deferred(DeferredToken())


class Handler(ABC):
    """
    Base class for everything that can answer a request.

    Handlers are built once at startup and then shared by every request on
    every thread, so they must not keep per-request state on self.
    """

    @abstractmethod
    def process(self, context: Context) -> Outcome:
        """
        Answer one request.

        Args:
            context: Request facts. Read-only.

        Returns:
            Immediate(response) or Deferred(token)
        """

    def __call__(self, context: Context) -> Outcome:
        return self.process(context)

    @property
    def name(self) -> str:
        """Handler name for logging."""
        return self.__class__.__name__


class FunctionHandler(Handler):
    """
    Wraps a plain function as a Handler.

    The function receives the Context and may return anything as_outcome()
    accepts.
    """

    def __init__(self, func: Callable[[Context], Any], name: Optional[str] = None):
        self._func = func
        self._name = name or getattr(func, "__name__", type(func).__name__)

    def process(self, context: Context) -> Outcome:
        return as_outcome(self._func(context))

    @property
    def name(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"FunctionHandler({self._name})"


HandlerLike = Union[Handler, Callable[[Context], Any]]


def to_handler(app: HandlerLike) -> Handler:
    """
    Adapt app to the Handler interface.

    Handler instances are returned as-is; other callables are wrapped in a
    FunctionHandler.
    """
    if isinstance(app, Handler):
        return app
    if callable(app):
        return FunctionHandler(app)
    raise TypeError(f"{app!r} is not a Handler or a callable")


def handler(func: Callable[[Context], Any]) -> FunctionHandler:
    """
    Decorator turning a function into a Handler.

        @handler
        def hello(context):
            return ok("Hello, World")
    """
    return FunctionHandler(func)
