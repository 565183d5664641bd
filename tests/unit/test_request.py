"""
Unit tests for the Request view over a Context.
"""

import pytest

from httpstack.errors import HandlerFault
from httpstack.http import Request, make_context
from httpstack.http.context import ORIGINAL_PATH


@pytest.fixture
def json_post():
    body = b'{"name": "Nina Simone", "genre": "jazz"}'
    return make_context(
        "POST",
        "/artists?notify=1",
        headers={
            "Content-Type": "application/json; charset=utf-8",
            "Content-Length": str(len(body)),
            "User-Agent": "pytest",
        },
        body=body,
    )


class TestRequest:
    """Tests for Request accessors."""

    def test_request_line(self):
        """Test method and path."""
        request = Request(make_context("get", "/venues/99", script_name="/api"))

        assert request.method == "GET"
        assert request.path == "/venues/99"
        assert request.script_name == "/api"
        assert request.original_path == "/api/venues/99"
        assert request.is_get
        assert not request.is_post

    def test_original_path_from_router(self):
        """Test the recorded original path wins."""
        ctx = make_context("GET", "/5", script_name="/artists", **{ORIGINAL_PATH: "/artists/5"})
        assert Request(ctx).original_path == "/artists/5"

    def test_query_params(self):
        """Test query parameter parsing."""
        request = Request(make_context("GET", "/search?q=hello%20world&tag=a&tag=b&empty="))

        assert request.get_query("q") == "hello world"
        assert request.query_params["tag"] == ["a", "b"]
        assert request.get_query("empty") == ""
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_headers_case_insensitive(self, json_post):
        """Test header lookup ignores case."""
        request = Request(json_post)

        assert request.get_header("content-length") == "40"
        assert request.get_header("CONTENT-LENGTH") == "40"
        assert request.headers["user-agent"] == "pytest"
        assert request.user_agent == "pytest"
        assert request.get_header("X-Missing", "none") == "none"

    def test_content_type_without_parameters(self, json_post):
        """Test charset is stripped from content_type."""
        assert Request(json_post).content_type == "application/json"
        assert Request(make_context()).content_type is None

    def test_json_body(self, json_post):
        """Test JSON body parsing."""
        request = Request(json_post)

        assert request.is_post
        assert request.json == {"name": "Nina Simone", "genre": "jazz"}

    def test_body_can_be_read_again(self, json_post):
        """Test the input stream is rewound for other readers."""
        first = Request(json_post).body
        second = Request(json_post).body

        assert first == second
        assert len(first) == 40

    def test_invalid_json_is_400_fault(self):
        """Test malformed JSON raises a 400 HandlerFault."""
        request = Request(make_context("POST", "/", body=b"{not json"))

        with pytest.raises(HandlerFault) as exc_info:
            request.json
        assert exc_info.value.status == 400

    def test_empty_body(self):
        """Test defaults for a request without a body."""
        request = Request(make_context())

        assert request.body == b""
        assert request.json is None

    def test_does_not_modify_context(self, json_post):
        """Test parsing caches on the view, not the Context."""
        keys = set(json_post)
        request = Request(json_post)
        request.query_params
        request.headers
        request.body

        assert set(json_post) == keys
