"""
=============================================================================
RESPONSE
=============================================================================

Every Handler answers with the same three-part value:

    Response(status=200, headers={"Content-Type": "text/plain"}, body=["OK"])
             ───┬──────  ─────────────────┬──────────────────── ─────┬─────
                │                         │                          │
         int in [100, 599]       str → str mapping          byte chunks, read
                                                           exactly once

=============================================================================
SINGLE-PASS BODIES
=============================================================================

The body is a lazy sequence of chunks. It may be a list, a generator, a file
reader... anything iterable. Because generators cannot be restarted, the body
is wrapped in a Body that refuses to be iterated twice:

    for chunk in response.body:     # fine, consumes it
        write(chunk)
    for chunk in response.body:     # BodyConsumedError
        ...

This turns "middleware read the body and the transport sent nothing" into a
loud error instead of a silently empty response.

Text chunks are encoded as UTF-8 on the way out, so handlers may write
``["Hello, World"]`` just like they would ``[b"Hello, World"]``.

=============================================================================
"""

import json
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, Optional, Union

from ..errors import Cancelled, HandlerFault, HTTPStackError, Timeout
from .status_codes import HTTPStatus, is_valid_status, reason_phrase


Chunk = Union[bytes, str]


class BodyConsumedError(HTTPStackError):
    """A response body was iterated a second time."""


class Body:
    """
    Single-pass iterable of byte chunks.

    Wraps any iterable of ``bytes``/``str`` chunks. ``close()`` is forwarded
    to the underlying iterable when it has one (generators, file objects),
    matching what WSGI servers expect.
    """

    def __init__(self, chunks: Union[Iterable[Chunk], Chunk, None] = None):
        if chunks is None:
            chunks = ()
        elif isinstance(chunks, (bytes, str)):
            chunks = (chunks,)
        self._chunks = chunks
        self._consumed = False
        self._lock = threading.Lock()

    def __iter__(self) -> Iterator[bytes]:
        with self._lock:
            if self._consumed:
                raise BodyConsumedError("Response body has already been consumed")
            self._consumed = True
        return self._encode(iter(self._chunks))

    @staticmethod
    def _encode(chunks: Iterator[Chunk]) -> Iterator[bytes]:
        for chunk in chunks:
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            elif not isinstance(chunk, (bytes, bytearray, memoryview)):
                raise TypeError(f"Body chunks must be bytes or str, got {type(chunk).__name__}")
            yield bytes(chunk)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def read(self) -> bytes:
        """Consume the whole body and return it as one bytes object."""
        return b"".join(self)

    def close(self) -> None:
        close = getattr(self._chunks, "close", None)
        if close is not None:
            close()


@dataclass
class Response:
    """
    The result of handling a request.

    Headers stay mutable so middleware can stamp values on the way back up
    (``response.set_header("X-Request-ID", rid)``); the body does not.
    """

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = field(default_factory=Body)

    def __post_init__(self) -> None:
        if not is_valid_status(self.status):
            raise ValueError(f"Invalid status code: {self.status!r}. Must be 100-599.")
        for name, value in self.headers.items():
            if not isinstance(name, str) or not isinstance(value, str):
                raise TypeError(f"Header names and values must be strings: {name!r}: {value!r}")
        if not isinstance(self.body, Body):
            self.body = Body(self.body)

    @property
    def status_line(self) -> str:
        """Status as WSGI writes it, e.g. "404 Not Found"."""
        return f"{int(self.status)} {reason_phrase(self.status)}"

    def set_header(self, name: str, value: str) -> "Response":
        """
        Set a response header.

        Returns self for method chaining:
            response.set_header("X-One", "1").set_header("X-Two", "2")
        """
        self.headers[name] = value
        return self

    def __iter__(self):
        # Allows ``status, headers, body = response``.
        return iter((self.status, self.headers, self.body))


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# Quick one-liners for the responses the pipeline itself produces.
#
#     return ok("Artist created")
#     return not_found("No application mounted at /foo")
#
# =============================================================================

TEXT_PLAIN = "text/plain; charset=utf-8"


def text(body: str, status: int = HTTPStatus.OK, content_type: str = TEXT_PLAIN) -> Response:
    """Response with a single text chunk."""
    return Response(status, {"Content-Type": content_type}, [body])


def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> Response:
    """
    Create a 200 OK response.

    - dict/list → JSON
    - str → text/plain
    - bytes → raw (set content_type yourself)
    """
    if isinstance(body, (dict, list)):
        return json_response(body)
    headers = {"Content-Type": content_type} if content_type else {}
    if isinstance(body, str) and not content_type:
        headers["Content-Type"] = TEXT_PLAIN
    return Response(HTTPStatus.OK, headers, [body] if body else [])


def json_response(data: Any, status: int = HTTPStatus.OK) -> Response:
    """Serialize data as a JSON response."""
    payload = json.dumps(data).encode("utf-8")
    return Response(status, {"Content-Type": "application/json; charset=utf-8"}, [payload])


def not_found(message: str = "Not Found") -> Response:
    """Create a 404 Not Found response."""
    return text(message, HTTPStatus.NOT_FOUND)


def method_not_allowed(allowed_methods: Iterable[str]) -> Response:
    """
    Create a 405 Method Not Allowed response.

    Includes the Allow header listing valid methods (RFC 7231 requirement).
    """
    allowed = sorted(allowed_methods)
    response = text("Method Not Allowed", HTTPStatus.METHOD_NOT_ALLOWED)
    return response.set_header("Allow", ", ".join(allowed))


def error_response(status: int = HTTPStatus.INTERNAL_SERVER_ERROR, message: Optional[str] = None) -> Response:
    """
    Generic error response.

    The body is the reason phrase unless a message is given. Keep messages
    free of internal details: this is what the client sees.
    """
    return text(message or reason_phrase(status), status)


def internal_error(message: str = "Internal Server Error") -> Response:
    """Create a 500 Internal Server Error response."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)


def fault_response(error: BaseException) -> Response:
    """
    Map an exception to the Response the client gets.

        HandlerFault(status=404)  → 404
        Timeout                   → 504 Gateway Timeout
        Cancelled                 → 499 Client Closed Request
        anything else             → 500 Internal Server Error
    """
    if isinstance(error, Timeout):
        return error_response(HTTPStatus.GATEWAY_TIMEOUT)
    if isinstance(error, Cancelled):
        return error_response(HTTPStatus.CLIENT_CLOSED_REQUEST)
    if isinstance(error, HandlerFault) and is_valid_status(error.status) and error.status >= 400:
        return error_response(error.status)
    return internal_error()
