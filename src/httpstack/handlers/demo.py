"""
=============================================================================
DEMO APPLICATIONS
=============================================================================

Small applications showing how independently written pieces compose into
one site. `python -m httpstack` serves build_demo_app():

    GET  /             → Hello, World
    GET  /ping         → OK                 (Ping middleware)
    POST /artists      → Artist created
    GET  /artists/5    → Artist number 5
    POST /venues       → Venue created       (wrapped in the HTML layout)
    GET  /venues/99    → Venue number 99     (wrapped in the HTML layout)
    GET  /async        → Hello!              (deferred, resolved by a timer)

ArtistsHandler and VenuesHandler never see their mount prefix: the router
rewrites the path, so each one answers "/" and "/<id>" as if it owned the
whole site.

=============================================================================
"""

import logging
import threading
from typing import Any, Callable, Optional

from ..config import StackConfig
from ..core.builder import Builder
from ..core.handler import Handler, Immediate, Outcome, defer
from ..errors import Cancelled
from ..http.context import Context
from ..http.request import Request
from ..http.response import Response, not_found
from ..http.status_codes import HTTPStatus
from ..middleware.layout import Layout
from ..middleware.logging import LoggingMiddleware
from ..middleware.ping import Ping
from ..middleware.timeout import TimeoutMiddleware


logger = logging.getLogger(__name__)


DEMO_LAYOUT = """<!doctype html>
<html>
  <head><title>httpstack demo</title></head>
  <body>
    <nav><a href="/artists">Artists</a> | <a href="/venues">Venues</a></nav>
    <main>{page}</main>
  </body>
</html>
"""


def hello_world(context: Context) -> Response:
    return Response(HTTPStatus.OK, {}, ["Hello, World"])


class ResourceHandler(Handler):
    """
    One resource, two actions:

        POST /      → "<Noun> created"
        GET  /<id>  → "<Noun> number <id>"

    Anything else is a 404.
    """

    noun = "Resource"

    def process(self, context: Context) -> Outcome:
        request = Request(context)
        segments = [s for s in request.path.split("/") if s]

        if request.is_post and not segments:
            return Immediate(self.create(request))
        if request.is_get and len(segments) == 1:
            return Immediate(self.show(request, segments[0]))
        return Immediate(not_found(f"No {self.noun.lower()} route for {request.method} {request.path}"))

    def create(self, request: Request) -> Response:
        return Response(HTTPStatus.OK, {}, [f"{self.noun} created"])

    def show(self, request: Request, resource_id: str) -> Response:
        return Response(HTTPStatus.OK, {}, [f"{self.noun} number {resource_id}"])


class ArtistsHandler(ResourceHandler):
    noun = "Artist"


class VenuesHandler(ResourceHandler):
    noun = "Venue"


Schedule = Callable[[float, Callable[[], None]], Any]


def timer_schedule(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """Run callback once on a daemon timer thread after `delay` seconds."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class DelayedHello(Handler):
    """
    Answers later: returns a Deferred outcome at once and resolves it from
    a timer thread `delay` seconds afterwards.

    If the token is cancelled first (client gone, timeout) the pending
    timer is cancelled too, when the schedule returned something that can
    be cancelled.

    Args:
        delay: Seconds before the answer
        message: Body of the answer
        schedule: (delay, callback) → handle; tests pass one that runs
            callbacks on demand
    """

    def __init__(self, delay: float = 5.0, message: str = "Hello!", schedule: Optional[Schedule] = None):
        self.delay = delay
        self.message = message
        self.schedule = schedule or timer_schedule

    def process(self, context: Context) -> Outcome:
        outcome = defer()
        token = outcome.token

        def answer() -> None:
            response = Response(HTTPStatus.OK, {"Content-Type": "text/html"}, [self.message])
            if not token.resolve(response):
                logger.debug(f"Delayed answer for {context.path} dropped, request was cancelled")

        handle = self.schedule(self.delay, answer)

        def stop(reason: BaseException) -> None:
            cancel = getattr(handle, "cancel", None)
            if cancel is not None:
                cancel()
            if not isinstance(reason, Cancelled):
                logger.info(f"Delayed answer for {context.path} abandoned: {reason}")

        token.on_cancel(stop)
        return outcome


def build_demo_app(config: Optional[StackConfig] = None) -> Handler:
    """
    Assemble the demo site.

        FaultBarrier
          └─ LoggingMiddleware
               └─ Ping
                    └─ PathRouter
                         ├─ /artists → ArtistsHandler
                         ├─ /venues  → Layout → VenuesHandler
                         ├─ /async   → TimeoutMiddleware → DelayedHello
                         └─ /        → hello_world
    """
    config = config or StackConfig()
    deadline = config.deferred_timeout or 30.0

    return (
        Builder()
        .use(LoggingMiddleware, log_format=config.log_format, skip_paths=[config.ping_path])
        .use(Ping, path=config.ping_path)
        .map("/artists", ArtistsHandler())
        .map("/venues", Builder().use(Layout, DEMO_LAYOUT).run(VenuesHandler()))
        .map("/async", Builder().use(TimeoutMiddleware, deadline).run(DelayedHello()))
        .run(hello_world)
        .build()
    )
