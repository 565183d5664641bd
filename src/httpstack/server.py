"""
=============================================================================
STACK SERVER
=============================================================================

Serves one composed Handler over HTTP/1.1 using the standard library's
WSGI reference server, one thread per connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         STACK SERVER                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    TCP connection                                                    │
    │         │                                                            │
    │         ▼                                                            │
    │    ThreadingWSGIServer ── one thread per connection                  │
    │         │                                                            │
    │         ▼                                                            │
    │    WSGIAdapter ── environ → Context, outcome → status/headers/body   │
    │         │                                                            │
    │         ▼                                                            │
    │    FaultBarrier → Logging → Ping → ... → PathRouter → handlers       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The pipeline itself knows nothing about sockets; any WSGI server can host
WSGIAdapter(app) instead of this class.

=============================================================================
INTERVIEW QUESTIONS
=============================================================================

Q: "Why a thread per connection?"
A: "Deferred answers hold the WSGI worker until they resolve. With a
   thread per connection a slow deferred request only holds its own
   thread, and the transport timeout bounds how long it can do so."

Q: "What happens during shutdown?"
A: "serve_forever() returns, the listening socket is closed, and the
   connection threads are daemons, so a request stuck waiting on a token
   does not keep the process alive."

=============================================================================
"""

import logging
from socketserver import ThreadingMixIn
from typing import Optional
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from .config import StackConfig
from .core.handler import HandlerLike
from .wsgi import CONNECTION, WSGIAdapter


logger = logging.getLogger(__name__)


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """wsgiref server handling each connection in its own daemon thread."""

    daemon_threads = True


class QuietRequestHandler(WSGIRequestHandler):
    """
    wsgiref request handler that routes its stderr chatter into logging.

    Access lines come from LoggingMiddleware, so the handler's own
    per-request line only goes to DEBUG.
    It also hands the client socket to WSGIAdapter under CONNECTION so a
    waiting worker can notice the client hanging up.
    """

    def get_environ(self):
        environ = super().get_environ()
        environ[CONNECTION] = self.connection
        return environ

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


class StackServer:
    """
    Run a composed Handler as a network server.

    Usage:
        app = Builder().use(LoggingMiddleware).run(hello_world).build()
        StackServer(app, StackConfig(port=9292)).run()
    """

    def __init__(self, app: HandlerLike, config: Optional[StackConfig] = None):
        self.config = config or StackConfig()
        self.config.validate()
        self.app = app
        self._server: Optional[WSGIServer] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def server_address(self):
        """(host, port) actually bound, once running."""
        return self._server.server_address if self._server else None

    def wsgi_app(self) -> WSGIAdapter:
        return WSGIAdapter(
            self.app,
            deferred_timeout=self.config.deferred_timeout,
            server_name=self.config.server_name,
        )

    def bind(self, host: Optional[str] = None, port: Optional[int] = None) -> WSGIServer:
        """Create the listening socket without serving yet."""
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        handler_class = type(
            "StackRequestHandler",
            (QuietRequestHandler,),
            {"server_version": self.config.server_name},
        )
        self._server = make_server(
            self.config.host,
            self.config.port,
            self.wsgi_app(),
            server_class=ThreadingWSGIServer,
            handler_class=handler_class,
        )
        return self._server

    def run(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """
        Start the server (blocking) until shutdown() or Ctrl+C.

        Args:
            host: Override config host.
            port: Override config port.
        """
        self._setup_logging()
        if self._server is None or host or port is not None:
            self.bind(host, port)

        self._running = True
        host, port = self.server_address[:2]
        logger.info(f"Starting {self.config.server_name} on http://{host}:{port}")
        try:
            self._server.serve_forever()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self) -> None:
        """Stop serve_forever() from another thread."""
        if self._server is not None and self._running:
            self._server.shutdown()

    def _setup_logging(self) -> None:
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("httpstack").setLevel(level)

    def _shutdown(self) -> None:
        logger.info("Shutting down server...")
        self._running = False
        if self._server is not None:
            self._server.server_close()
        logger.info("Server stopped")
