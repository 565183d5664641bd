"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Process-wide settings for serving a stack: where to listen, how to log,
and how long the transport waits on a deferred answer.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m httpstack --port 9292                           │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTPSTACK_PORT=9292 python -m httpstack                   │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Values are validated once at startup. A bad value stops the process before
it binds a socket, rather than failing on the first request.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class StackConfig:
    """
    Configuration for serving a composed Handler.

    Development:
        StackConfig(host="127.0.0.1", port=9292, log_level="DEBUG")

    Production:
        StackConfig(host="0.0.0.0", port=80, log_format="json",
                    deferred_timeout=30.0)
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces (containers, production)
    """

    port: int = 9292

    # ─────────────────────────────────────────────────────────────────────
    # PIPELINE
    # ─────────────────────────────────────────────────────────────────────

    deferred_timeout: Optional[float] = 30.0
    """
    Seconds the transport waits for a deferred answer before cancelling
    the token with a Timeout reason (client sees 504).
    None = wait forever. Only sensible when every handler has its own
    deadline.
    """

    ping_path: str = "/ping"
    """Path answered by the Ping middleware in the demo stack."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """'text' (Apache-style access lines) or 'json' (one object per line)."""

    server_name: str = "httpstack/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "StackConfig":
        """
        Create configuration from environment variables.

            HTTPSTACK_HOST               bind address (default: 127.0.0.1)
            HTTPSTACK_PORT               port (default: 9292)
            HTTPSTACK_LOG_LEVEL          DEBUG/INFO/... (default: INFO)
            HTTPSTACK_LOG_FORMAT         text/json (default: text)
            HTTPSTACK_DEFERRED_TIMEOUT   seconds, or "none" (default: 30)
        """
        try:
            port = int(os.getenv("HTTPSTACK_PORT", "9292"))
        except ValueError:
            raise ConfigurationError(f"HTTPSTACK_PORT is not an integer: {os.getenv('HTTPSTACK_PORT')!r}")

        raw_timeout = os.getenv("HTTPSTACK_DEFERRED_TIMEOUT", "30")
        if raw_timeout.strip().lower() in ("", "none"):
            deferred_timeout = None
        else:
            try:
                deferred_timeout = float(raw_timeout)
            except ValueError:
                raise ConfigurationError(f"HTTPSTACK_DEFERRED_TIMEOUT is not a number: {raw_timeout!r}")

        return cls(
            host=os.getenv("HTTPSTACK_HOST", "127.0.0.1"),
            port=port,
            log_level=os.getenv("HTTPSTACK_LOG_LEVEL", "INFO"),
            log_format=os.getenv("HTTPSTACK_LOG_FORMAT", "text"),
            deferred_timeout=deferred_timeout,
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: on the first invalid value.
        """
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}. Must be 1-65535.")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError(f"log_format must be one of {LOG_FORMATS}")

        if self.deferred_timeout is not None and self.deferred_timeout <= 0:
            raise ConfigurationError("deferred_timeout must be > 0 (or None)")

        if not self.ping_path.startswith("/"):
            raise ConfigurationError(f"ping_path must start with '/': {self.ping_path!r}")
