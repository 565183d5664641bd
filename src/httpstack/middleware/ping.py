"""
=============================================================================
PING MIDDLEWARE
=============================================================================

Makes every application answer ``GET /ping`` so load balancers and humans
can check it is up, without the application knowing anything about it.

This is the "answer directly" pattern: match on fixed request facts, and
either short-circuit with a canned Response or delegate unchanged.

    GET  /ping    →  200 text/plain "OK"          (app never called)
    POST /ping    →  app
    GET  /other   →  app

=============================================================================
"""

from ..core.handler import HandlerLike, Immediate, Outcome
from ..http.context import Context
from ..http.response import Response
from .base import Middleware


class Ping(Middleware):
    """
    Answer health checks before they reach the application.

    Args:
        app: Downstream Handler
        path: Path to answer on (exact match)
        method: Method to answer on (exact match)
    """

    def __init__(self, app: HandlerLike, path: str = "/ping", method: str = "GET"):
        super().__init__(app)
        self.path = path
        self.method = method.upper()

    def matches(self, context: Context) -> bool:
        return context.path == self.path and context.method == self.method

    def process(self, context: Context) -> Outcome:
        if self.matches(context):
            # A fresh Response every time: bodies are single-pass.
            return Immediate(Response(200, {"Content-Type": "text/plain"}, ["OK"]))
        return self.delegate(context)
