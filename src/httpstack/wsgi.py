"""
=============================================================================
WSGI TRANSPORT
=============================================================================

Exposes a composed Handler as a WSGI application, so any WSGI server can
serve it. This is the transport boundary: the adapter builds the Context,
runs the Handler, and writes whichever outcome comes back.

    environ ──► Context ──► handler.process() ──┬── Immediate(response)
                                                 │        write it
                                                 │
                                                 └── Deferred(token)
                                                          register completion,
                                                          wait, write it

=============================================================================
DEFERRED ANSWERS UNDER WSGI
=============================================================================

WSGI is synchronous: a WSGI application must return the response from the
call that received the request. So for a Deferred outcome the adapter's
completion action stores the Response and the worker waits for it. The
handler still returns immediately and may resolve from any thread; only
the WSGI worker is held.

The adapter also owns the transport's side of cancellation:

    deadline passed     ──► token.cancel(Timeout)    client gets 504
    client hung up      ──► token.cancel(Cancelled)  producer's on_cancel runs

Hanging up is only noticed when the server puts the client socket into
the environ under CONNECTION (StackServer does). The adapter then wakes
every poll_interval seconds and peeks at the socket: readable with
nothing to read means the peer closed it.

=============================================================================
"""

import io
import logging
import select
import socket
import threading
import time
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .core.deferred import DeferredToken
from .core.handler import HandlerLike, Immediate, as_outcome, to_handler
from .errors import Cancelled, Timeout
from .http.context import HEADERS, INPUT, PATH_INFO, REQUEST_METHOD, SCRIPT_NAME, Context
from .http.response import Response
from .middleware.logging import CLIENT_ADDRESS


logger = logging.getLogger(__name__)


StartResponse = Callable[[str, List[Tuple[str, str]]], Any]

# Environ key a server may set to the client socket.
CONNECTION = "httpstack.connection"


def client_disconnected(connection: socket.socket) -> bool:
    """True if the peer has closed the connection."""
    try:
        readable, _, _ = select.select([connection], [], [], 0)
        if not readable:
            return False
        return connection.recv(1, socket.MSG_PEEK) == b""
    except (OSError, ValueError):
        return True


def headers_from_environ(environ: Dict[str, Any]) -> Dict[str, str]:
    """
    Recover request headers from a WSGI environ.

        HTTP_USER_AGENT → User-Agent
        CONTENT_TYPE    → Content-Type
    """
    headers = {}
    for key, value in environ.items():
        if key.startswith("HTTP_"):
            name = key[5:]
        elif key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            name = key
        else:
            continue
        if value == "":
            continue
        headers["-".join(part.capitalize() for part in name.split("_"))] = value
    return headers


def context_from_environ(environ: Dict[str, Any]) -> Context:
    """
    Build a Context from a WSGI environ.

    Every environ key is kept (CGI variables, wsgi.* entries); the
    httpstack.* slots are added on top. The body is read up front, exactly
    CONTENT_LENGTH bytes, because reading past it on a raw socket stream
    would block.
    """
    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    stream = environ.get("wsgi.input")
    body = stream.read(length) if stream is not None and length > 0 else b""

    data = dict(environ)
    data.setdefault(REQUEST_METHOD, "GET")
    data.setdefault(SCRIPT_NAME, "")
    data[PATH_INFO] = environ.get(PATH_INFO) or "/"
    data[HEADERS] = MappingProxyType(headers_from_environ(environ))
    data[INPUT] = io.BytesIO(body)
    if environ.get("REMOTE_ADDR"):
        data[CLIENT_ADDRESS] = (environ["REMOTE_ADDR"], environ.get("REMOTE_PORT", ""))
    return Context(data)


class WSGIAdapter:
    """
    WSGI application wrapping a Handler.

    Args:
        app: The composed Handler (normally Builder(...).build())
        deferred_timeout: Seconds to wait on a deferred answer before
            cancelling it. None waits forever.
        server_name: Value for the Server header, if not already set
        poll_interval: How often a waiting worker checks whether the
            client is still connected
    """

    def __init__(
        self,
        app: HandlerLike,
        deferred_timeout: Optional[float] = None,
        server_name: Optional[str] = None,
        poll_interval: float = 0.1,
    ):
        self.app = to_handler(app)
        self.deferred_timeout = deferred_timeout
        self.server_name = server_name
        self.poll_interval = poll_interval

    def __call__(self, environ: Dict[str, Any], start_response: StartResponse) -> Iterable[bytes]:
        context = context_from_environ(environ)
        outcome = as_outcome(self.app.process(context))

        if isinstance(outcome, Immediate):
            response = outcome.response
        else:
            response = self._wait_for(outcome.token, context, environ.get(CONNECTION))

        headers = dict(response.headers)
        if self.server_name:
            headers.setdefault("Server", self.server_name)
        start_response(response.status_line, list(headers.items()))
        return response.body

    def _wait_for(
        self,
        token: DeferredToken,
        context: Context,
        connection: Optional[socket.socket] = None,
    ) -> Response:
        delivered: List[Response] = []
        arrived = threading.Event()

        def complete(response: Response) -> None:
            delivered.append(response)
            arrived.set()

        token.on_complete(complete)

        deadline = None
        if self.deferred_timeout is not None:
            deadline = time.monotonic() + self.deferred_timeout

        while not arrived.is_set():
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                logger.warning(
                    f"No deferred response for {context.method} {context.path} "
                    f"after {self.deferred_timeout:g}s, cancelling"
                )
                token.cancel(Timeout(self.deferred_timeout))
                break

            if connection is not None:
                remaining = self.poll_interval if remaining is None else min(remaining, self.poll_interval)
            if arrived.wait(remaining):
                break

            if connection is not None and client_disconnected(connection):
                logger.info(f"Client went away during {context.method} {context.path}, cancelling")
                token.cancel(Cancelled("Client disconnected"))
                break

        # The completion action fires during cancel(), or already fired
        # if the handler won the race.
        arrived.wait()
        return delivered[0]
