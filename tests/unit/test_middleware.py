"""
Unit tests for middleware.
"""

import json
import logging

import pytest

from httpstack.core.builder import Builder
from httpstack.core.deferred import TokenState
from httpstack.core.handler import Deferred, defer
from httpstack.errors import ConfigurationError, Timeout
from httpstack.http import Response, make_context
from httpstack.middleware import (
    FunctionMiddleware,
    Layout,
    LoggingMiddleware,
    Middleware,
    Ping,
    RequestLog,
    ResponseHeaders,
    TimeoutMiddleware,
    function_middleware,
)
from httpstack.middleware.logging import REQUEST_ID
from httpstack.testing import Client

from conftest import text_app


class TestMiddlewareBase:
    """Tests for the Middleware base class."""

    def test_delegate_and_map_response_immediate(self):
        """Test map_response on an immediate outcome."""

        class Shout(Middleware):
            def process(self, context):
                return self.map_response(
                    self.delegate(context),
                    lambda r: Response(r.status, r.headers, [r.body.read().upper()]),
                )

        outcome = Shout(text_app("hello")).process(make_context())
        assert outcome.response.body.read() == b"HELLO"

    def test_map_response_deferred(self):
        """Test map_response on a deferred outcome."""
        deferred = defer()

        class Tag(Middleware):
            def process(self, context):
                return self.map_response(self.delegate(context), lambda r: r.set_header("X-Tag", "1"))

        outcome = Tag(lambda context: deferred).process(make_context())
        assert isinstance(outcome, Deferred)
        assert outcome.token is not deferred.token

        deferred.token.resolve(Response(200, {}, ["late"]))
        assert outcome.token.response.headers["X-Tag"] == "1"

    def test_map_response_rejects_non_outcome(self):
        """Test map_response type check."""
        with pytest.raises(TypeError):
            Middleware.map_response(Response(), lambda r: r)

    def test_function_middleware(self):
        """Test function_middleware as a Builder factory."""

        @function_middleware
        def only_get(context, app):
            if context.method != "GET":
                return Response(405, {"Allow": "GET"}, [])
            return app(context)

        app = Builder().use(only_get).run(text_app("ok")).build()

        assert app.process(make_context("GET", "/")).response.status == 200
        assert app.process(make_context("POST", "/")).response.status == 405
        assert only_get.__name__ == "only_get"
        assert isinstance(only_get(text_app("ok")), FunctionMiddleware)


class TestPing:
    """Tests for the Ping middleware."""

    def test_answers_ping(self):
        """Test GET /ping is answered without reaching the app."""
        reached = []
        app = Ping(lambda context: reached.append(context) or Response(200, {}, ["app"]))

        exchange = Client(app).get("/ping")

        assert exchange.immediate
        assert exchange.status == 200
        assert exchange.text == "OK"
        assert reached == []

    def test_delegates_other_paths(self):
        """Test other requests fall through unchanged."""
        exchange = Client(Ping(text_app("Hello, World"))).get("/")
        assert exchange.text == "Hello, World"

    def test_only_exact_path_and_method(self):
        """Test /ping/x and POST /ping go to the app."""
        client = Client(Ping(text_app("app")))

        assert client.get("/ping/x").text == "app"
        assert client.post("/ping").text == "app"

    def test_fresh_body_every_time(self):
        """Test repeated pings each get a readable body."""
        client = Client(Ping(text_app("app")))
        assert [client.get("/ping").text for _ in range(3)] == ["OK", "OK", "OK"]

    def test_custom_path(self):
        """Test a configured ping path."""
        assert Client(Ping(text_app("app"), path="/health")).get("/health").text == "OK"


class TestLoggingMiddleware:
    """Tests for access logging."""

    def test_logs_text_line(self, caplog):
        """Test an Apache-style access line is emitted."""
        client = Client(LoggingMiddleware(text_app("ok")), headers={"User-Agent": "pytest"})

        with caplog.at_level(logging.INFO, logger="httpstack.access"):
            exchange = client.get("/artists?page=2")

        assert exchange.status == 200
        line = caplog.records[-1].getMessage()
        assert '"GET /artists" 200' in line
        assert "deferred" not in line

    def test_sets_request_id(self):
        """Test X-Request-ID is added and matches the context slot."""
        seen = []

        def app(context):
            seen.append(context[REQUEST_ID])
            return Response(200, {}, ["ok"])

        exchange = Client(LoggingMiddleware(app)).get("/")

        assert len(exchange.headers["X-Request-ID"]) == 8
        assert exchange.headers["X-Request-ID"] == seen[0]

    def test_request_id_optional(self):
        """Test include_request_id=False."""
        exchange = Client(LoggingMiddleware(text_app("ok"), include_request_id=False)).get("/")
        assert "X-Request-ID" not in exchange.headers

    def test_json_format(self, caplog):
        """Test JSON log lines."""
        client = Client(LoggingMiddleware(text_app("ok", status=201), log_format="json"))

        with caplog.at_level(logging.INFO, logger="httpstack.access"):
            client.post("/artists")

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["method"] == "POST"
        assert entry["path"] == "/artists"
        assert entry["status_code"] == 201
        assert entry["deferred"] is False

    def test_invalid_format(self):
        """Test unknown log formats are rejected."""
        with pytest.raises(ValueError):
            LoggingMiddleware(text_app("ok"), log_format="xml")

    def test_skip_paths(self, caplog):
        """Test skipped paths produce no log line."""
        client = Client(LoggingMiddleware(text_app("ok"), skip_paths=["/ping"]))

        with caplog.at_level(logging.INFO, logger="httpstack.access"):
            client.get("/ping")

        assert [r for r in caplog.records if r.name == "httpstack.access"] == []

    def test_logs_deferred_on_completion(self, caplog):
        """Test deferred answers are logged when they resolve."""
        deferred = defer()
        client = Client(LoggingMiddleware(lambda context: deferred))

        with caplog.at_level(logging.INFO, logger="httpstack.access"):
            exchange = client.get("/async")
            assert [r for r in caplog.records if r.name == "httpstack.access"] == []

            deferred.token.resolve(Response(200, {}, ["Hello!"]))

        assert exchange.status == 200
        assert "X-Request-ID" in exchange.headers
        line = [r for r in caplog.records if r.name == "httpstack.access"][-1].getMessage()
        assert line.endswith("deferred")

    def test_logs_cancelled_deferred(self, caplog):
        """Test a cancelled deferred answer is still logged, as 499."""
        deferred = defer()
        client = Client(LoggingMiddleware(lambda context: deferred))

        with caplog.at_level(logging.INFO, logger="httpstack.access"):
            exchange = client.get("/async")
            exchange.cancel()

        assert exchange.status == 499
        assert deferred.token.cancelled
        assert any('"GET /async" 499' in r.getMessage() for r in caplog.records)

    def test_reraises_handler_exceptions(self, caplog):
        """Test exceptions are logged and left for the FaultBarrier."""
        def broken(context):
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="httpstack.access"):
            with pytest.raises(RuntimeError):
                LoggingMiddleware(broken).process(make_context())

        assert "Request failed" in caplog.text

    def test_request_log_text(self):
        """Test RequestLog formatting."""
        entry = RequestLog(
            request_id="abcd1234",
            method="GET",
            path="/venues/99",
            query="",
            client_ip="127.0.0.1",
            user_agent="-",
            status_code=200,
            deferred=True,
            duration_ms=1.234,
            timestamp="19/Oct/2026:10:00:00 +0000",
        )

        assert entry.to_text() == (
            '127.0.0.1 - - [19/Oct/2026:10:00:00 +0000] "GET /venues/99" 200 1.23ms deferred'
        )
        assert entry.to_dict()["duration_ms"] == 1.23


class TestLayout:
    """Tests for the Layout middleware."""

    def test_wraps_body(self):
        """Test the page lands at the marker."""
        app = Layout(text_app("Venue number 99"), "<main>{page}</main>")
        exchange = Client(app).get("/99")

        assert exchange.text == "<main>Venue number 99</main>"
        assert exchange.headers["Content-Type"] == "text/html; charset=utf-8"

    def test_keeps_status_and_other_headers(self):
        """Test downstream status/headers survive."""
        def missing(context):
            return Response(404, {"Content-Type": "text/plain", "Content-Length": "9", "X-App": "v"}, ["Not here!"])

        exchange = Client(Layout(missing, "<p>{page}</p>")).get("/")

        assert exchange.status == 404
        assert exchange.headers["X-App"] == "v"
        assert "Content-Length" not in exchange.headers

    def test_other_braces_untouched(self):
        """Test CSS braces in the layout are left alone."""
        template = "<style>body { margin: 0 }</style>{page}"
        exchange = Client(Layout(text_app("hi"), template)).get("/")
        assert exchange.text == "<style>body { margin: 0 }</style>hi"

    def test_requires_marker(self):
        """Test a template without {page} is a configuration error."""
        with pytest.raises(ConfigurationError):
            Layout(text_app("hi"), "<html></html>")

    def test_from_file(self, tmp_path):
        """Test loading the layout from a file."""
        path = tmp_path / "layout.html"
        path.write_text("<body>{page}</body>", encoding="utf-8")

        app = Builder().use(Layout.from_file, path).run(text_app("Artist number 5")).build()
        assert Client(app).get("/5").text == "<body>Artist number 5</body>"

    def test_wraps_deferred_body(self):
        """Test layouts apply to deferred answers too."""
        deferred = defer()
        exchange = Client(Layout(lambda context: deferred, "[{page}]")).get("/")
        assert exchange.pending

        deferred.token.resolve(Response(200, {}, ["late"]))
        assert exchange.text == "[late]"


class TestResponseHeaders:
    """Tests for ResponseHeaders."""

    def test_stamps_headers(self):
        """Test headers are added."""
        app = ResponseHeaders(text_app("ok"), {"X-Frame-Options": "DENY"})
        assert Client(app).get("/").headers["X-Frame-Options"] == "DENY"

    def test_overwrite_false(self):
        """Test existing headers are kept when overwrite=False."""
        def app(context):
            return Response(200, {"Cache-Control": "max-age=60"}, ["ok"])

        keep = ResponseHeaders(app, {"Cache-Control": "no-store"}, overwrite=False)
        replace = ResponseHeaders(app, {"Cache-Control": "no-store"})

        assert Client(keep).get("/").headers["Cache-Control"] == "max-age=60"
        assert Client(replace).get("/").headers["Cache-Control"] == "no-store"


class TestTimeoutMiddleware:
    """Tests for deferred deadlines."""

    def test_immediate_passes_through(self, clock):
        """Test no timer for immediate answers."""
        app = TimeoutMiddleware(text_app("ok"), 5, timer_factory=clock.timer)

        assert Client(app).get("/").text == "ok"
        assert clock.timers == []

    def test_resolution_before_deadline(self, clock):
        """Test the timer is cancelled when the answer arrives."""
        deferred = defer()
        exchange = Client(TimeoutMiddleware(lambda c: deferred, 5, timer_factory=clock.timer)).get("/")
        (timer,) = clock.timers

        assert timer.started
        assert timer.daemon
        deferred.token.resolve(Response(200, {}, ["Hello!"]))

        assert timer.cancelled
        assert exchange.text == "Hello!"

    def test_deadline_cancels_token(self, clock, caplog):
        """Test expiry cancels the producer and answers 504."""
        deferred = defer()
        reasons = []
        deferred.token.on_cancel(reasons.append)
        exchange = Client(TimeoutMiddleware(lambda c: deferred, 5, timer_factory=clock.timer)).get("/slow")

        with caplog.at_level(logging.WARNING, logger="httpstack.middleware.timeout"):
            clock.fire_all()

        assert exchange.status == 504
        assert deferred.token.cancelled
        assert isinstance(reasons[0], Timeout)
        assert "timed out after 5s" in caplog.text

        # The handler finishing late changes nothing.
        assert deferred.token.resolve(Response(200, {}, ["too late"])) is False
        assert len(exchange.deliveries) == 1

    def test_already_resolved_token(self, clock):
        """Test a token resolved before the middleware sees it."""
        deferred = defer()
        deferred.token.resolve(Response(200, {}, ["quick"]))

        exchange = Client(TimeoutMiddleware(lambda c: deferred, 5, timer_factory=clock.timer)).get("/")

        assert exchange.text == "quick"
        assert clock.timers[0].cancelled

    def test_client_cancel_stops_timer(self, clock):
        """Test a disconnect cancels the pending deadline."""
        deferred = defer()
        exchange = Client(TimeoutMiddleware(lambda c: deferred, 5, timer_factory=clock.timer)).get("/")

        exchange.cancel()

        assert exchange.status == 499
        assert clock.timers[0].cancelled
        assert deferred.token.state is TokenState.FAULTED

    def test_seconds_must_be_positive(self):
        """Test invalid deadlines."""
        with pytest.raises(ConfigurationError):
            TimeoutMiddleware(text_app("ok"), 0)
