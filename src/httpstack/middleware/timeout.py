"""
=============================================================================
TIMEOUT MIDDLEWARE
=============================================================================

Puts a deadline on deferred answers. The pipeline has no implicit timeout;
this middleware starts its own timer per deferred request:

    t=0     handler returns Deferred(token)        timer started
    t<5     token resolved                          timer cancelled, answer passes
    t=5     still pending                           token cancelled with Timeout
                                                    → client gets 504

The middleware does not own the token, so it ends it the way any outside
party must: by cancelling it, with a Timeout reason instead of Cancelled.
A handler that resolves after the deadline is silently ignored rather than
raising, since it lost a race it could not see.

Immediate answers pass straight through; there is nothing to wait for.

=============================================================================
"""

import logging
import threading
from typing import Callable, Optional

from ..core.handler import Deferred, HandlerLike, Outcome
from ..errors import ConfigurationError, Timeout
from ..http.context import Context
from ..http.response import Response
from .base import Middleware


logger = logging.getLogger(__name__)


class TimeoutMiddleware(Middleware):
    """
    Cancel deferred answers that take longer than `seconds`.

    Args:
        app: Downstream Handler
        seconds: Deadline, counted from when the handler returned
        timer_factory: threading.Timer-compatible constructor (tests pass a
            fake that fires on demand)
    """

    def __init__(
        self,
        app: HandlerLike,
        seconds: float,
        timer_factory: Optional[Callable[..., threading.Timer]] = None,
    ):
        super().__init__(app)
        if seconds <= 0:
            raise ConfigurationError(f"Timeout must be > 0, got {seconds}")
        self.seconds = seconds
        self.timer_factory = timer_factory or threading.Timer

    def process(self, context: Context) -> Outcome:
        outcome = self.delegate(context)
        if not isinstance(outcome, Deferred):
            return outcome

        def expire() -> None:
            if guarded.token.cancel(Timeout(self.seconds)):
                logger.warning(
                    f"Deferred response for {context.method} {context.path} "
                    f"timed out after {self.seconds:g}s"
                )

        # Created before chaining: the token may already be complete, in
        # which case stop() runs inside map_response().
        timer = self.timer_factory(self.seconds, expire)
        timer.daemon = True

        def stop(response: Response) -> Response:
            timer.cancel()
            return response

        def stop_on_fault(error: BaseException, response: Response) -> None:
            timer.cancel()

        guarded = self.map_response(outcome, stop, on_fault=stop_on_fault)
        timer.start()
        return guarded
