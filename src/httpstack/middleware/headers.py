"""Stamp fixed headers onto every response."""

from typing import Mapping

from ..core.handler import HandlerLike, Outcome
from ..http.context import Context
from ..http.response import Response
from .base import Middleware


class ResponseHeaders(Middleware):
    """
    Add headers to every Response coming back up the stack.

        Builder().use(ResponseHeaders, {"X-Frame-Options": "DENY"}).run(app)

    With overwrite=False, headers the application already set are left
    alone.
    """

    def __init__(self, app: HandlerLike, headers: Mapping[str, str], overwrite: bool = True):
        super().__init__(app)
        self.headers = dict(headers)
        self.overwrite = overwrite

    def process(self, context: Context) -> Outcome:
        return self.map_response(self.delegate(context), self.stamp)

    def stamp(self, response: Response) -> Response:
        for name, value in self.headers.items():
            if self.overwrite or name not in response.headers:
                response.set_header(name, value)
        return response
