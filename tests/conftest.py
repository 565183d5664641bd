"""
pytest configuration and fixtures.
"""

import logging
import threading
from typing import Callable, Generator, List

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpstack import Response, StackConfig, StackServer
from httpstack.http import Context, make_context


class ManualTimer:
    """threading.Timer stand-in that fires only when told to."""

    def __init__(self, interval: float, function: Callable[[], None]):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled:
            self.function()


class ManualClock:
    """Collects timers so a test can fire them on demand."""

    def __init__(self):
        self.timers: List[ManualTimer] = []

    def timer(self, interval: float, function: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(interval, function)
        self.timers.append(timer)
        return timer

    def schedule(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        """DelayedHello-style schedule: create and start."""
        timer = self.timer(delay, callback)
        timer.start()
        return timer

    def fire_all(self):
        for timer in list(self.timers):
            timer.fire()


@pytest.fixture
def clock() -> ManualClock:
    """Manually driven timers."""
    return ManualClock()


@pytest.fixture
def context() -> Context:
    """A plain GET / context."""
    return make_context("GET", "/")


def text_app(body: str, status: int = 200) -> Callable[[Context], Response]:
    """Handler function answering with a fixed text body."""
    def app(context: Context) -> Response:
        return Response(status, {"Content-Type": "text/plain"}, [body])
    app.__name__ = f"text_app_{body}"
    return app


class LiveServer:
    """StackServer running in a background thread on a free port."""

    def __init__(self, server: StackServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.server_address[1]

    def start(self):
        self.server.bind("127.0.0.1", 0)
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def live_server() -> Generator[Callable[..., LiveServer], None, None]:
    """Factory starting a StackServer for a given app; stopped at teardown."""
    started: List[LiveServer] = []
    # StackServer.run() configures logging; put the package level back afterwards.
    package_logger = logging.getLogger("httpstack")
    level = package_logger.level

    def start(app, **config) -> LiveServer:
        config.setdefault("log_level", "WARNING")
        live = LiveServer(StackServer(app, StackConfig(**config)))
        live.start()
        started.append(live)
        return live

    yield start

    for live in started:
        live.stop()
    package_logger.setLevel(level)
