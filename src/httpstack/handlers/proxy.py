"""
=============================================================================
REVERSE PROXY HANDLER
=============================================================================

Turns any HTTP server into a Handler. The request is forwarded upstream
and the upstream answer comes back as an ordinary Response, so the proxy
can be mounted, wrapped in middleware, or laid out like any local
application:

    class Upstream(ProxyHandler):
        def rewrite_context(self, context):
            return context.derive({PATH_INFO: "/v2" + context.path})

    Builder().map("/api", Upstream("api.internal", 8000))

=============================================================================
WHAT GETS FORWARDED
=============================================================================

    method           unchanged
    path             SCRIPT_NAME + PATH_INFO (the path the client asked
                     for, before any mount rewrote it) + query string
    headers          all, minus hop-by-hop headers; Host set to upstream
    body             the whole request body

Hop-by-hop headers (Connection, Keep-Alive, Transfer-Encoding, ...) belong
to one TCP connection and are never forwarded in either direction.

Upstream failures (refused connection, timeout, broken response) become a
HandlerFault with status 502, which the FaultBarrier answers with
502 Bad Gateway.

=============================================================================
"""

import http.client
import logging
from types import MappingProxyType
from typing import Callable, Optional

from ..core.handler import Handler, Immediate, Outcome
from ..errors import HandlerFault
from ..http.context import HEADERS, QUERY_STRING, SCRIPT_NAME, Context
from ..http.request import Request
from ..http.response import Response
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
})

ConnectionFactory = Callable[..., http.client.HTTPConnection]


class ProxyHandler(Handler):
    """
    Forward requests to host:port and answer with the upstream response.

    Args:
        host: Upstream host name
        port: Upstream port
        timeout: Socket timeout for the upstream exchange, in seconds
        connection_factory: http.client.HTTPConnection-compatible constructor
            (HTTPSConnection for TLS upstreams, a fake in tests)
    """

    def __init__(
        self,
        host: str,
        port: int = 80,
        timeout: float = 30.0,
        connection_factory: Optional[ConnectionFactory] = None,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.connection_factory = connection_factory or http.client.HTTPConnection

    @property
    def host_header(self) -> str:
        return self.host if self.port == 80 else f"{self.host}:{self.port}"

    def rewrite_context(self, context: Context) -> Context:
        """
        Hook for subclasses: adjust the request before it is forwarded.

        The default only points the Host header at the upstream.
        """
        headers = dict(context.get(HEADERS, {}))
        for name in [n for n in headers if n.lower() == "host"]:
            del headers[name]
        headers["Host"] = self.host_header
        return context.derive({HEADERS: MappingProxyType(headers)})

    def upstream_target(self, context: Context) -> str:
        target = context.get(SCRIPT_NAME, "") + context.path
        query = context.get(QUERY_STRING, "")
        return f"{target}?{query}" if query else target

    def process(self, context: Context) -> Outcome:
        context = self.rewrite_context(context)
        request = Request(context)
        target = self.upstream_target(context)
        headers = {
            name: value
            for name, value in context.get(HEADERS, {}).items()
            if name.lower() not in HOP_BY_HOP_HEADERS
        }

        logger.debug(f"Proxying {request.method} {target} to {self.host}:{self.port}")
        connection = self.connection_factory(self.host, self.port, timeout=self.timeout)
        try:
            connection.request(request.method, target, body=request.body or None, headers=headers)
            upstream = connection.getresponse()
            body = upstream.read()
            status = upstream.status
            upstream_headers = upstream.getheaders()
        except (OSError, http.client.HTTPException) as e:
            logger.warning(f"Upstream {self.host}:{self.port} failed for {request.method} {target}: {e}")
            raise HandlerFault(
                f"Upstream {self.host}:{self.port} unavailable: {e}",
                status=HTTPStatus.BAD_GATEWAY,
            ) from e
        finally:
            connection.close()

        response_headers = {}
        for name, value in upstream_headers:
            if name.lower() in HOP_BY_HOP_HEADERS:
                continue
            if name in response_headers:
                # One value per name: repeats are comma-folded.
                response_headers[name] = f"{response_headers[name]}, {value}"
            else:
                response_headers[name] = value

        return Immediate(Response(status, response_headers, [body]))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.host}:{self.port}>"
