"""
=============================================================================
DEFERRED RESPONSE CHANNEL
=============================================================================

Lets a Handler return control to the pipeline before it has a Response, and
supply the Response later, from any thread, exactly once.

    Handler thread                 Timer / backend thread        Transport
    ──────────────                 ──────────────────────        ─────────
    token = DeferredToken()
    start_background_work(token)
    return Deferred(token)  ─────────────────────────────────►  token.on_complete(write)
                                   ...
                                   token.resolve(response) ──►  write(response)

The worker that ran the handler is free the moment it returns; nothing
blocks while the background work is in flight.

=============================================================================
STATE MACHINE
=============================================================================

                         resolve(response)
              ┌─────────────────────────────────────►  RESOLVED
              │
          PENDING
              │          fail(error) / cancel(reason)
              └─────────────────────────────────────►  FAULTED

- A token leaves PENDING exactly once.
- resolve()/fail() on a completed token raise DoubleResolutionError. The
  first outcome stands; the delivered Response never changes.
- cancel() is how the transport gives up (client went away, deadline
  passed). After a cancel, resolve()/fail() become no-ops that return False:
  the producer could not have known, so it is not punished for the race.
- Exactly one completion action may be registered. It fires once, with the
  final Response, or a synthesized error Response when FAULTED.

There is no built-in timeout. A component that wants one starts its own
timer and cancels the token with a Timeout reason
(see middleware.timeout.TimeoutMiddleware).

=============================================================================
INTERVIEW INSIGHT: PROMISE VS CALLBACK SLOT
=============================================================================

Q: "Why not just put a callback in the request environment?"
A: "A bare callback can be called twice, or never, and nothing notices.
   Making the channel an object with explicit states means the one-answer
   rule is enforced in one place, and violations surface as exceptions
   instead of garbled responses on the wire."

=============================================================================
"""

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

from ..errors import Cancelled, DoubleResolutionError, HTTPStackError, Timeout
from ..http.response import Response, fault_response


logger = logging.getLogger(__name__)


CompletionAction = Callable[[Response], None]


class TokenState(Enum):
    """Lifecycle of a DeferredToken."""

    PENDING = "pending"
    RESOLVED = "resolved"
    FAULTED = "faulted"


class DeferredToken:
    """
    One-shot, thread-safe handle for a response that will arrive later.

    =========================================================================
    USAGE
    =========================================================================

        # Producer (the handler)
        token = DeferredToken()
        threading.Timer(5, token.resolve, args=(ok("Hello!"),)).start()
        return Deferred(token)

        # Consumer (the transport)
        token.on_complete(write_response)
        ...
        token.cancel()          # client disconnected

    =========================================================================
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._state = TokenState.PENDING
        self._response: Optional[Response] = None
        self._error: Optional[BaseException] = None
        self._cancelled = False
        self._action: Optional[CompletionAction] = None
        self._fired = False
        self._cancel_hooks: List[Callable[[BaseException], None]] = []

    def __repr__(self) -> str:
        return f"<DeferredToken {self._state.value}>"

    # =========================================================================
    # INSPECTION
    # =========================================================================

    @property
    def state(self) -> TokenState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._state is TokenState.PENDING

    @property
    def done(self) -> bool:
        return self._state is not TokenState.PENDING

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def error(self) -> Optional[BaseException]:
        """Fault reason once FAULTED, else None."""
        return self._error

    @property
    def response(self) -> Optional[Response]:
        """The Response delivered to the completion action, once completed."""
        return self._response

    # =========================================================================
    # PRODUCER SIDE
    # =========================================================================

    def resolve(self, response: Response) -> bool:
        """
        Complete the token successfully.

        Returns:
            True if the response was accepted, False if the token had
            already been cancelled.

        Raises:
            DoubleResolutionError: the token was already resolved or failed.
        """
        if not isinstance(response, Response):
            raise TypeError(f"resolve() needs a Response, got {type(response).__name__}")
        if not self._settle(TokenState.RESOLVED, response, None, "resolve"):
            return False
        self._fire()
        return True

    def fail(self, error: BaseException) -> bool:
        """
        Complete the token with an error.

        The completion action receives an error Response derived from the
        exception (see http.response.fault_response).

        Returns / Raises: as resolve().
        """
        if not isinstance(error, BaseException):
            raise TypeError(f"fail() needs an exception, got {type(error).__name__}")
        if not self._settle(TokenState.FAULTED, fault_response(error), error, "fail"):
            return False
        self._fire()
        return True

    def on_cancel(self, hook: Callable[[BaseException], None]) -> None:
        """
        Register a hook run when the token is cancelled.

        Producers use this to stop background work nobody will read.
        Runs immediately if the token is already cancelled; never runs if
        the token completes normally.
        """
        with self._lock:
            if self._state is TokenState.PENDING:
                self._cancel_hooks.append(hook)
                return
            reason = self._error if self._cancelled else None
        if reason is not None:
            self._run_cancel_hook(hook, reason)

    # =========================================================================
    # CONSUMER SIDE
    # =========================================================================

    def on_complete(self, action: CompletionAction) -> None:
        """
        Register the completion action.

        Only one action may be registered per token. If the token has already
        completed, the action fires right away in the calling thread.

        Raises:
            HTTPStackError: an action is already registered.
        """
        with self._lock:
            if self._action is not None:
                raise HTTPStackError("A completion action is already registered on this token")
            self._action = action
            completed = self._state is not TokenState.PENDING
        if completed:
            self._fire()

    def cancel(self, reason: Optional[BaseException] = None) -> bool:
        """
        Abandon a pending token.

        Moves PENDING → FAULTED with the given reason (Cancelled by default),
        runs cancel hooks, then fires the completion action. Later resolve()
        and fail() calls have no effect.

        Returns:
            True if this call cancelled the token, False if it was already
            completed.
        """
        reason = reason if reason is not None else Cancelled()
        with self._lock:
            if self._state is not TokenState.PENDING:
                return False
            self._state = TokenState.FAULTED
            self._error = reason
            self._response = fault_response(reason)
            self._cancelled = True
            hooks, self._cancel_hooks = self._cancel_hooks, []
        self._done.set()
        logger.debug("Deferred token cancelled: %s", reason)

        for hook in hooks:
            self._run_cancel_hook(hook, reason)
        self._fire()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the token completes. Returns False on timeout."""
        return self._done.wait(timeout)

    def result(self, timeout: Optional[float] = None) -> Response:
        """
        Block until the token completes and return the delivered Response.

        Raises:
            Timeout: the token was still pending after `timeout` seconds.
        """
        if not self._done.wait(timeout):
            raise Timeout(timeout)
        return self._response

    # =========================================================================
    # CHAINING
    # =========================================================================

    def map(
        self,
        transform: Callable[[Response], Response],
        on_fault: Optional[Callable[[BaseException, Response], None]] = None,
    ) -> "DeferredToken":
        """
        Chain a response transform onto this token.

        Middleware uses this to post-process a deferred answer the same way
        it would post-process an immediate one. The returned token takes over
        this token's single completion slot:

            source ──resolve──► transform(response) ──► chained ──► transport
            source ◄──cancel─────────────────────────── chained ◄── transport

        Faults pass through unchanged; on_fault, if given, observes them
        (error and synthesized Response) before they do. A transform that
        raises faults the chained token.
        """
        chained = DeferredToken()

        def forward(response: Response) -> None:
            if self._state is not TokenState.RESOLVED:
                if on_fault is not None:
                    try:
                        on_fault(self._error, response)
                    except Exception:
                        logger.exception("Fault observer failed on deferred response")
                if chained.pending:
                    chained.fail(self._error)
                return
            if not chained.pending:
                return
            try:
                mapped = transform(response)
                if not isinstance(mapped, Response):
                    raise TypeError(f"Response transform returned {type(mapped).__name__}")
            except Exception as e:
                logger.exception("Response transform failed on deferred response")
                chained.fail(e)
                return
            chained.resolve(mapped)

        self.on_complete(forward)
        chained.on_cancel(self.cancel)
        return chained

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _settle(
        self,
        state: TokenState,
        response: Response,
        error: Optional[BaseException],
        operation: str,
    ) -> bool:
        with self._lock:
            if self._state is not TokenState.PENDING:
                if self._cancelled:
                    logger.debug("Ignoring %s() on cancelled token", operation)
                    return False
                current = self._state
            else:
                self._state = state
                self._response = response
                self._error = error
                self._cancel_hooks = []
                current = None

        if current is not None:
            logger.error("%s() called on a token that is already %s", operation, current.value)
            raise DoubleResolutionError(
                f"Cannot {operation}() a deferred token that is already {current.value}"
            )

        self._done.set()
        logger.debug("Deferred token %s", state.value)
        return True

    def _fire(self) -> None:
        with self._lock:
            if self._fired or self._action is None or self._state is TokenState.PENDING:
                return
            self._fired = True
            action, response = self._action, self._response
        try:
            action(response)
        except DoubleResolutionError:
            raise
        except Exception:
            logger.exception("Completion action failed")

    def _run_cancel_hook(self, hook: Callable[[BaseException], None], reason: BaseException) -> None:
        # A failing hook must not keep the completion action from firing.
        try:
            hook(reason)
        except DoubleResolutionError:
            raise
        except Exception:
            logger.exception("Cancel hook failed")
