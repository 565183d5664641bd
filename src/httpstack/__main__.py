"""
=============================================================================
HTTPSTACK CLI ENTRY POINT
=============================================================================

Serves the demo site (see httpstack.handlers.demo).

=============================================================================
USAGE
=============================================================================

    # Run with defaults (localhost:9292)
    python -m httpstack

    # Custom port, JSON access logs
    python -m httpstack --port 3000 --log-format json

    # Listen on all interfaces (for containers)
    python -m httpstack --host 0.0.0.0

    # Give deferred answers 10 seconds
    python -m httpstack --deferred-timeout 10

Environment variables (HTTPSTACK_PORT, ...) are read first; command-line
arguments override them.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, StackConfig
from .errors import ConfigurationError
from .handlers.demo import build_demo_app
from .server import StackServer


def parse_timeout(value: str):
    if value.strip().lower() == "none":
        return None
    return float(value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpstack",
        description="Serve the httpstack demo application",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpstack                          # Run with defaults
  python -m httpstack --port 3000              # Custom port
  python -m httpstack --host 0.0.0.0           # Listen on all interfaces
  python -m httpstack --log-format json        # JSON access log lines
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: 9292)")

    # ─────────────────────────────────────────────────────────────────────
    # PIPELINE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--deferred-timeout",
        type=parse_timeout,
        default=argparse.SUPPRESS,
        help="Seconds to wait for deferred answers, or 'none' (default: 30)",
    )
    parser.add_argument("--ping-path", help="Path answered by the ping middleware (default: /ping)")

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--log-level", "-l", choices=LOG_LEVELS, help="Logging level (default: INFO)")
    parser.add_argument("--log-format", choices=LOG_FORMATS, help="Access log format (default: text)")

    parser.add_argument("--version", "-v", action="version", version=f"httpstack {__version__}")
    return parser


def load_config(argv=None) -> StackConfig:
    """Environment first, then command-line overrides."""
    args = build_parser().parse_args(argv)
    config = StackConfig.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "ping_path": args.ping_path,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)
    # None is a meaningful timeout, so only an explicit flag overrides it.
    if hasattr(args, "deferred_timeout"):
        config.deferred_timeout = args.deferred_timeout

    config.validate()
    return config


def main(argv=None) -> int:
    try:
        config = load_config(argv)
    except ConfigurationError as e:
        print(f"httpstack: {e}", file=sys.stderr)
        return 2

    server = StackServer(build_demo_app(config), config)
    server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
