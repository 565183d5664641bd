"""
End-to-end tests: composed stacks driven in-process and over a real socket.
"""

import http.client
import socket
import threading

import pytest

from httpstack import Builder, PathRouter, Response
from httpstack.core.deferred import TokenState
from httpstack.core.handler import defer
from httpstack.errors import Cancelled, DoubleResolutionError
from httpstack.handlers.demo import ArtistsHandler, DelayedHello, VenuesHandler, build_demo_app
from httpstack.http.router import MethodRouter
from httpstack.middleware import Middleware, Ping
from httpstack.testing import Client


def hello_world(context):
    return Response(200, {}, ["Hello, World"])


class OrderTag(Middleware):
    """Stamps its tag on the way down (context) and up (response header)."""

    def __init__(self, app, tag):
        super().__init__(app)
        self.tag = tag

    def process(self, context):
        path = context.get("test.path", []) + [self.tag]
        outcome = self.delegate(context.derive({"test.path": path}))
        return self.map_response(outcome, self.stamp)

    def stamp(self, response):
        seen = response.headers.get("X-Order")
        return response.set_header("X-Order", f"{seen},{self.tag}" if seen else self.tag)


class TestComposition:
    """Tests for onion ordering through a built stack."""

    def test_onion_order(self):
        """Test M1 sees the request first and the response last."""
        seen_by_terminal = []

        def terminal(context):
            seen_by_terminal.append(context["test.path"])
            return Response(200, {}, ["ok"])

        app = Builder().use(OrderTag, "M1").use(OrderTag, "M2").run(terminal).build()
        exchange = Client(app).get("/")

        assert seen_by_terminal == [["M1", "M2"]]
        assert exchange.headers["X-Order"] == "M2,M1"

    def test_onion_order_deferred(self):
        """Test deferred answers unwind through the same layers."""
        app = (
            Builder()
            .use(OrderTag, "M1")
            .use(OrderTag, "M2")
            .run(lambda context: DelayedHello(schedule=lambda d, cb: cb()).process(context))
            .build()
        )

        exchange = Client(app).get("/")

        assert not exchange.immediate
        assert exchange.headers["X-Order"] == "M2,M1"
        assert exchange.text == "Hello!"


class TestScenarioPing:
    """Short-circuiting middleware in front of an application."""

    @pytest.fixture
    def client(self):
        return Client(Builder().use(Ping).run(hello_world).build())

    def test_ping(self, client):
        """Test /ping never reaches the application."""
        exchange = client.get("/ping")

        assert exchange.status == 200
        assert exchange.headers == {"Content-Type": "text/plain"}
        assert exchange.text == "OK"

    @pytest.mark.parametrize("path", ["/", "/anything", "/ping/deeper"])
    def test_other_paths(self, client, path):
        """Test everything else reaches the application."""
        exchange = client.get(path)

        assert exchange.status == 200
        assert exchange.headers == {}
        assert exchange.text == "Hello, World"


class TestScenarioRouting:
    """Independent applications mounted under prefixes."""

    @pytest.fixture
    def client(self):
        return Client(PathRouter({"/artists": ArtistsHandler(), "/venues": VenuesHandler()}))

    def test_post_artists(self, client):
        """Test POST /artists is seen as POST / by ArtistsHandler."""
        exchange = client.post("/artists")

        assert exchange.status == 200
        assert exchange.headers == {}
        assert exchange.text == "Artist created"

    def test_get_venue(self, client):
        """Test GET /venues/99 is seen as GET /99 by VenuesHandler."""
        exchange = client.get("/venues/99")

        assert exchange.status == 200
        assert exchange.text == "Venue number 99"

    def test_unmounted(self, client):
        """Test an unknown prefix is 404."""
        assert client.get("/songs/1").status == 404

    def test_method_router(self):
        """Test manual delegation by method instead of by path."""
        client = Client(MethodRouter({"POST": ArtistsHandler(), "GET": VenuesHandler()}))

        assert client.post("/").text == "Artist created"
        assert client.get("/99").text == "Venue number 99"


class TestScenarioDeferred:
    """A handler answering from a timer."""

    def test_resolved_once_by_timer(self, clock):
        """Test one delivery, and a second fire is a protocol violation."""
        exchange = Client(DelayedHello(delay=5, schedule=clock.schedule)).get("/")

        assert not exchange.immediate
        assert exchange.deliveries == []

        (timer,) = clock.timers
        timer.fire()

        assert len(exchange.deliveries) == 1
        assert exchange.status == 200
        assert exchange.headers == {"Content-Type": "text/html"}
        assert exchange.text == "Hello!"

        with pytest.raises(DoubleResolutionError):
            timer.fire()

        assert len(exchange.deliveries) == 1
        assert exchange.text == "Hello!"
        assert exchange.token.state is TokenState.RESOLVED

    def test_cancel_before_timer(self, clock):
        """Test cancellation wins and the late timer has no effect."""
        exchange = Client(DelayedHello(schedule=lambda delay, callback: clock.timer(delay, callback))).get("/")
        exchange.cancel()

        # Fire the callback directly, as a timer that could not be stopped.
        clock.timers[0].function()

        assert len(exchange.deliveries) == 1
        assert exchange.status == 499


class TestLiveServer:
    """The demo stack served over HTTP by StackServer."""

    def request(self, live, method, path):
        conn = http.client.HTTPConnection("127.0.0.1", live.port, timeout=10)
        try:
            conn.request(method, path)
            response = conn.getresponse()
            return response.status, dict(response.getheaders()), response.read()
        finally:
            conn.close()

    def test_serves_demo_app(self, live_server):
        """Test routing, ping and layout over a socket."""
        live = live_server(build_demo_app())

        status, headers, body = self.request(live, "GET", "/")
        assert status == 200
        assert body == b"Hello, World"
        assert "X-Request-ID" in headers
        assert headers["Server"].startswith("httpstack")

        assert self.request(live, "GET", "/ping")[2] == b"OK"
        assert self.request(live, "POST", "/artists")[2] == b"Artist created"
        assert b"<main>Venue number 99</main>" in self.request(live, "GET", "/venues/99")[2]

    def test_deferred_over_socket(self, live_server):
        """Test a response resolved from another thread reaches the client."""
        def later(context):
            return DelayedHello(delay=0.05).process(context)

        live = live_server(Builder().run(later).build())
        status, headers, body = self.request(live, "GET", "/")

        assert status == 200
        assert body == b"Hello!"

    def test_transport_timeout(self, live_server):
        """Test an answer that never comes is a 504."""
        def never(context):
            return DelayedHello(delay=60).process(context)

        live = live_server(Builder().run(never).build(), deferred_timeout=0.1)
        status, _, body = self.request(live, "GET", "/")

        assert status == 504
        assert body == b"Gateway Timeout"

    def test_concurrent_requests(self, live_server):
        """Test slow deferred requests do not block each other."""
        live = live_server(Builder().run(lambda c: DelayedHello(delay=0.2).process(c)).build())
        results = []

        def fetch():
            results.append(self.request(live, "GET", "/")[0])

        threads = [threading.Thread(target=fetch) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert results == [200] * 5

    def test_client_hangup_cancels_producer(self, live_server):
        """Test closing the socket mid-wait runs the producer's cancel hook."""
        cancelled = threading.Event()
        reasons = []

        def forever(context):
            outcome = defer()

            def stop(reason):
                reasons.append(reason)
                cancelled.set()

            outcome.token.on_cancel(stop)
            return outcome

        live = live_server(Builder().run(forever).build(), deferred_timeout=None)

        conn = socket.create_connection(("127.0.0.1", live.port), timeout=5)
        conn.sendall(b"GET /forever HTTP/1.1\r\nHost: localhost\r\n\r\n")
        conn.close()

        assert cancelled.wait(timeout=5)
        assert isinstance(reasons[0], Cancelled)
