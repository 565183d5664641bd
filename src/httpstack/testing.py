"""
=============================================================================
IN-PROCESS TEST CLIENT
=============================================================================

Drives any Handler without a socket and records what the client would
have received:

    client = Client(Ping(hello_world))
    exchange = client.get("/ping")
    assert exchange.status == 200
    assert exchange.text == "OK"

For deferred answers the exchange registers itself as the completion
action, just like a transport would, so tests can observe exactly how many
times a response was delivered:

    exchange = client.get("/async")
    assert not exchange.immediate
    assert exchange.pending
    fire_timers()
    assert exchange.wait(1.0).text == "Hello!"
    assert len(exchange.deliveries) == 1

=============================================================================
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .core.deferred import DeferredToken
from .core.handler import Deferred, HandlerLike, Outcome, as_outcome, to_handler
from .errors import Timeout
from .http.context import make_context
from .http.response import Response


@dataclass
class ClientResponse:
    """A delivered Response with its body read into memory."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    @classmethod
    def read(cls, response: Response) -> "ClientResponse":
        try:
            body = response.body.read()
        finally:
            response.body.close()
        return cls(int(response.status), dict(response.headers), body)


class Exchange:
    """
    One request and everything delivered for it.

    Attributes:
        outcome: What the handler returned
        deliveries: Responses delivered to the client, in order
    """

    def __init__(self, outcome: Outcome):
        self.outcome = outcome
        self.deliveries: List[ClientResponse] = []
        self._lock = threading.Lock()
        self._arrived = threading.Event()

        if isinstance(outcome, Deferred):
            outcome.token.on_complete(self._deliver)
        else:
            self._deliver(outcome.response)

    def _deliver(self, response: Response) -> None:
        delivered = ClientResponse.read(response)
        with self._lock:
            self.deliveries.append(delivered)
        self._arrived.set()

    @property
    def immediate(self) -> bool:
        return not isinstance(self.outcome, Deferred)

    @property
    def token(self) -> Optional[DeferredToken]:
        return self.outcome.token if isinstance(self.outcome, Deferred) else None

    @property
    def pending(self) -> bool:
        return not self._arrived.is_set()

    @property
    def response(self) -> ClientResponse:
        """The delivered response. Raises AssertionError while none has arrived."""
        with self._lock:
            if not self.deliveries:
                raise AssertionError("No response delivered yet")
            return self.deliveries[0]

    def wait(self, timeout: Optional[float] = 1.0) -> ClientResponse:
        """Block until a response is delivered; Timeout if none in time."""
        if not self._arrived.wait(timeout):
            raise Timeout(timeout)
        return self.response

    def cancel(self, reason: Optional[BaseException] = None) -> bool:
        """Act as a client that went away. No-op for immediate outcomes."""
        token = self.token
        if token is None:
            return False
        return token.cancel(reason)

    # Shortcuts onto the delivered response

    @property
    def status(self) -> int:
        return self.response.status

    @property
    def headers(self) -> Dict[str, str]:
        return self.response.headers

    @property
    def body(self) -> bytes:
        return self.response.body

    @property
    def text(self) -> str:
        return self.response.text

    def __repr__(self) -> str:
        kind = "immediate" if self.immediate else "deferred"
        state = "pending" if self.pending else f"{self.deliveries[0].status}"
        return f"<Exchange {kind} {state}>"


class Client:
    """
    Send requests straight into a Handler.

    Args:
        app: Any Handler or handler function (a built stack, a router, a
            single middleware)
        headers: Headers sent with every request
    """

    def __init__(self, app: HandlerLike, headers: Optional[Mapping[str, str]] = None):
        self.app = to_handler(app)
        self.headers = dict(headers or {})

    def request(
        self,
        method: str,
        path: str,
        headers: Optional[Mapping[str, str]] = None,
        body: bytes = b"",
        **extensions,
    ) -> Exchange:
        merged = dict(self.headers)
        merged.update(headers or {})
        if body and "Content-Length" not in merged:
            merged["Content-Length"] = str(len(body))
        context = make_context(method, path, headers=merged, body=body, **extensions)
        return Exchange(as_outcome(self.app.process(context)))

    def get(self, path: str, **kwargs) -> Exchange:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, body: bytes = b"", **kwargs) -> Exchange:
        return self.request("POST", path, body=body, **kwargs)

    def put(self, path: str, body: bytes = b"", **kwargs) -> Exchange:
        return self.request("PUT", path, body=body, **kwargs)

    def delete(self, path: str, **kwargs) -> Exchange:
        return self.request("DELETE", path, **kwargs)
