"""
=============================================================================
STACK BUILDER
=============================================================================

Assembles an ordered list of middleware factories plus one terminal Handler
into a single composed Handler.

    Builder()
        .use(LoggingMiddleware)          # M1, outermost
        .use(Ping)                       # M2
        .run(application)                # T

    build()  →  FaultBarrier( LoggingMiddleware( Ping( application ) ) )

The first middleware listed sees the request first and the response last.

=============================================================================
HOW WRAPPING WORKS
=============================================================================

    Given: [M1, M2, M3] and terminal T

    Step 1: current = T
    Step 2: current = M3(current)      # M3 calls T
    Step 3: current = M2(current)      # M2 calls M3
    Step 4: current = M1(current)      # M1 calls M2

    Final:  M1 → M2 → M3 → T

Each factory is called exactly once, at build time, with the Handler built
from everything after it. After build() the Builder can be thrown away;
only the returned Handler is needed to serve traffic.

=============================================================================
THE FAULT BARRIER
=============================================================================

build() always puts one extra layer on the outside: a FaultBarrier. It is
where per-request failures stop:

    HandlerFault          → error Response with the fault's status hint
    any other Exception   → 500, with the traceback logged
    DoubleResolutionError → re-raised. A handler that answers twice is
                            broken and must be noticed, not papered over.

=============================================================================
MOUNTING (map)
=============================================================================

    Builder()
        .use(LoggingMiddleware)
        .map("/artists", ArtistsHandler())
        .map("/venues", Builder().use(Layout, page).run(VenuesHandler()))

Mounted entries become a PathRouter that serves as the terminal Handler.
Nested Builders get their own middleware, applied only below their prefix.
If run() is also given, that Handler is mounted at "/".

=============================================================================
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..errors import ConfigurationError, DoubleResolutionError, HandlerFault
from ..http.context import Context
from ..http.response import fault_response, internal_error
from ..http.router import PathRouter
from .handler import Handler, HandlerLike, Immediate, Outcome, as_outcome, to_handler


logger = logging.getLogger(__name__)


MiddlewareFactory = Callable[..., HandlerLike]


class FaultBarrier(Handler):
    """
    Outermost layer of every built stack.

    Converts unhandled per-request failures into error Responses so a fault
    never escapes the pipeline as an exception.
    """

    def __init__(self, app: HandlerLike):
        self.app = to_handler(app)

    def process(self, context: Context) -> Outcome:
        try:
            return as_outcome(self.app.process(context))
        except DoubleResolutionError:
            logger.error("Protocol violation while processing %s %s", context.method, context.path)
            raise
        except HandlerFault as e:
            logger.warning(
                "Handler fault on %s %s: %s (status hint %s)",
                context.method, context.path, e.message, e.status,
            )
            return Immediate(fault_response(e))
        except Exception:
            logger.exception("Unhandled error processing %s %s", context.method, context.path)
            return Immediate(internal_error())

    def __repr__(self) -> str:
        return f"FaultBarrier({self.app!r})"


class Builder:
    """
    Fluent builder for a middleware stack.

    Every method returns self, so stacks read top to bottom:

        app = (Builder()
            .use(LoggingMiddleware, log_format="json")
            .use(Ping)
            .run(hello_world)
            .build())
    """

    def __init__(self, app: Optional[HandlerLike] = None):
        self._middleware: List[Tuple[MiddlewareFactory, Tuple[Any, ...], Dict[str, Any]]] = []
        self._terminal: Optional[HandlerLike] = app
        self._mounts: Dict[str, Union[HandlerLike, "Builder"]] = {}

    def use(self, factory: MiddlewareFactory, *args: Any, **kwargs: Any) -> "Builder":
        """
        Add a middleware layer.

        At build time the factory is called as factory(app, *args, **kwargs)
        where app is everything below this layer. A middleware class is a
        factory; so is any function with that signature.
        """
        if not callable(factory):
            raise ConfigurationError(f"Middleware factory {factory!r} is not callable")
        self._middleware.append((factory, args, kwargs))
        return self

    def run(self, app: HandlerLike) -> "Builder":
        """Set the terminal Handler at the bottom of the stack."""
        self._terminal = app
        return self

    def map(self, prefix: str, app: Union[HandlerLike, "Builder"]) -> "Builder":
        """Mount a Handler (or a nested Builder) under a path prefix."""
        if prefix in self._mounts:
            raise ConfigurationError(f"Prefix {prefix!r} is mounted twice")
        self._mounts[prefix] = app
        return self

    def to_app(self) -> Handler:
        """
        Compose the stack without the FaultBarrier.

        Nested Builders are composed this way so only the outermost stack
        carries a barrier.
        """
        current = self._build_terminal()

        # Wrap in reverse order so the first middleware is outermost.
        for factory, args, kwargs in reversed(self._middleware):
            current = to_handler(factory(current, *args, **kwargs))
            logger.debug("Wrapped stack with %s", getattr(factory, "__name__", factory))

        return current

    def build(self) -> Handler:
        """
        Compose the stack into one Handler.

        Raises:
            ConfigurationError: there is nothing at the bottom of the stack.
        """
        return FaultBarrier(self.to_app())

    def _build_terminal(self) -> Handler:
        if not self._mounts:
            if self._terminal is None:
                raise ConfigurationError("No terminal handler: call run() or map() before build()")
            return to_handler(self._terminal)

        routes: Dict[str, Handler] = {}
        for prefix, app in self._mounts.items():
            routes[prefix] = app.to_app() if isinstance(app, Builder) else to_handler(app)

        if self._terminal is not None:
            if "/" in routes:
                raise ConfigurationError("run() conflicts with a handler already mapped at '/'")
            routes["/"] = to_handler(self._terminal)

        return PathRouter(routes)

    def __len__(self) -> int:
        return len(self._middleware)


def build_stack(
    middleware: Sequence[MiddlewareFactory],
    terminal: Optional[HandlerLike],
) -> Handler:
    """
    Functional form of Builder.

        build_stack([LoggingMiddleware, Ping], application)
        # == FaultBarrier(LoggingMiddleware(Ping(application)))

    Use functools.partial for factories that need arguments.
    """
    if terminal is None:
        raise ConfigurationError("No terminal handler given")
    builder = Builder(terminal)
    for factory in middleware:
        builder.use(factory)
    return builder.build()
