"""
=============================================================================
LOGGING MIDDLEWARE
=============================================================================

Access logging with request IDs and timing.

=============================================================================
WHERE IT GOES
=============================================================================

First in the stack, so it sees every request, including those other
middleware answer on their own, and its timing covers the whole pipeline:

    Builder()
        .use(LoggingMiddleware)    # outermost
        .use(Ping)
        .run(application)

=============================================================================
DEFERRED ANSWERS
=============================================================================

For a Deferred outcome nothing is known yet when the handler returns. The
log line is written when the token completes, through map_response(), so
duration_ms is the real time to answer, not the time to return.

    12:00:00.000  GET /slow    handler returns Deferred     (nothing logged)
    12:00:05.002  token resolved → "GET /slow" 200 ... 5002.10ms

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from ..core.handler import Deferred, HandlerLike, Outcome
from ..http.context import ORIGINAL_PATH, QUERY_STRING, SCRIPT_NAME, Context
from ..http.request import Request
from ..http.response import Response
from .base import Middleware


# Namespaced so access logs can be routed separately:
#   logging.getLogger("httpstack.access").addHandler(file_handler)
logger = logging.getLogger("httpstack.access")

REQUEST_ID = "httpstack.request_id"
CLIENT_ADDRESS = "httpstack.client_address"


@dataclass
class RequestLog:
    """
    Structured log entry for one request.

    request_id:     8-char id, also sent back as X-Request-ID
    method, path:   request line (path as the client sent it)
    query:          raw query string
    client_ip:      from the transport, "-" if unknown
    user_agent:     "-" if absent
    status_code:    final status (after deferred resolution)
    deferred:       whether the answer came through a token
    duration_ms:    time until the Response existed
    timestamp:      when the request arrived
    """

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    deferred: bool
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["status_code"] = int(self.status_code)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        """Apache-style line."""
        suffix = " deferred" if self.deferred else ""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {int(self.status_code)} '
            f'{self.duration_ms:.2f}ms{suffix}'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    Args:
        app: Downstream Handler
        log_format: "text" (Apache-style) or "json"
        include_request_id: add X-Request-ID to responses
        log_level: level for access lines
        skip_paths: paths not to log (health checks are noisy)
    """

    def __init__(
        self,
        app: HandlerLike,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        super().__init__(app)
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def process(self, context: Context) -> Outcome:
        # UUIDv4 truncated to 8 chars: readable, collisions unlikely enough.
        request_id = str(uuid.uuid4())[:8]
        timestamp = time.strftime("%d/%b/%Y:%H:%M:%S %z")
        start_time = time.monotonic()
        request = Request(context)
        full_path = context.get(ORIGINAL_PATH, context.get(SCRIPT_NAME, "") + request.path)

        try:
            outcome = self.delegate(context.derive({REQUEST_ID: request_id}))
        except Exception as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {full_path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        deferred = isinstance(outcome, Deferred)

        def record(response: Response) -> None:
            if full_path in self.skip_paths:
                return
            self._emit(RequestLog(
                request_id=request_id,
                method=request.method,
                path=full_path,
                query=context.get(QUERY_STRING, ""),
                client_ip=self._client_ip(context),
                user_agent=request.user_agent or "-",
                status_code=response.status,
                deferred=deferred,
                duration_ms=(time.monotonic() - start_time) * 1000,
                timestamp=timestamp,
            ))

        def finish(response: Response) -> Response:
            record(response)
            if self.include_request_id:
                response.set_header("X-Request-ID", request_id)
            return response

        def fault(error: BaseException, response: Response) -> None:
            logger.warning(f"[{request_id}] Deferred response faulted: {type(error).__name__}: {error}")
            record(response)

        return self.map_response(outcome, finish, on_fault=fault)

    def _emit(self, entry: RequestLog) -> None:
        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

    @staticmethod
    def _client_ip(context: Context) -> str:
        address = context.get(CLIENT_ADDRESS)
        if not address:
            return "-"
        return address[0] if isinstance(address, tuple) else str(address)
