"""
=============================================================================
REQUEST VIEW
=============================================================================

An optional, object-style view over a Context. The Context's string keys are
the canonical interface; Request only reads them and adds parsing:

    request = Request(context)
    request.method              # "GET"
    request.path                # PATH_INFO, after any router rewrite
    request.original_path       # full path as the client sent it
    request.get_query("page")   # first ?page= value
    request.get_header("Accept")
    request.json                # parsed body

Nothing here is required by the pipeline. Handlers that prefer the raw
mapping can ignore this module entirely.

=============================================================================
"""

import json
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qs

from ..errors import HandlerFault
from .context import (
    HEADERS,
    INPUT,
    ORIGINAL_PATH,
    PATH_INFO,
    QUERY_STRING,
    REQUEST_METHOD,
    SCRIPT_NAME,
    Context,
)


class Request:
    """
    Read-only convenience wrapper around a Context.

    Parsed values (query string, headers, body) are computed on first access
    and cached on the wrapper, never written back to the Context.
    """

    def __init__(self, context: Context):
        self.context = context
        self._query: Optional[Dict[str, list]] = None
        self._headers: Optional[Dict[str, str]] = None
        self._body: Optional[bytes] = None
        self._json: Any = None

    def __repr__(self) -> str:
        return f"Request({self.method} {self.script_name}{self.path})"

    # =========================================================================
    # REQUEST LINE
    # =========================================================================

    @property
    def method(self) -> str:
        return self.context.get(REQUEST_METHOD, "GET").upper()

    @property
    def path(self) -> str:
        """Path still to be routed (PATH_INFO)."""
        return self.context.get(PATH_INFO, "/") or "/"

    @property
    def script_name(self) -> str:
        """Mount point consumed by routers above this handler."""
        return self.context.get(SCRIPT_NAME, "")

    @property
    def original_path(self) -> str:
        """Full path before any rewrite."""
        return self.context.get(ORIGINAL_PATH, self.script_name + self.path)

    @property
    def is_get(self) -> bool:
        return self.method == "GET"

    @property
    def is_post(self) -> bool:
        return self.method == "POST"

    # =========================================================================
    # QUERY STRING
    # =========================================================================

    @property
    def query_params(self) -> Dict[str, list]:
        """
        Parsed query string as dict of lists.

            "?a=1&a=2&b=3" → {"a": ["1", "2"], "b": ["3"]}
        """
        if self._query is None:
            self._query = parse_qs(self.context.get(QUERY_STRING, ""), keep_blank_values=True)
        return self._query

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    # =========================================================================
    # HEADERS
    # =========================================================================

    @property
    def headers(self) -> Dict[str, str]:
        """
        Request headers with lowercase keys.

        HTTP header names are case-insensitive (RFC 7230), so they are
        normalized once here instead of calling .lower() at every lookup.
        """
        if self._headers is None:
            raw: Mapping[str, str] = self.context.get(HEADERS, {})
            self._headers = {name.lower(): value for name, value in raw.items()}
        return self._headers

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("application/json")."""
        value = self.get_header("content-type").split(";")[0].strip().lower()
        return value or None

    @property
    def user_agent(self) -> str:
        return self.get_header("user-agent")

    # =========================================================================
    # BODY
    # =========================================================================

    @property
    def body(self) -> bytes:
        """
        The whole request body.

        The input stream is rewound after reading when it is seekable,
        so handlers further down can read it again.
        """
        if self._body is None:
            stream = self.context.get(INPUT)
            if stream is None:
                self._body = b""
            else:
                self._body = stream.read()
                seekable = getattr(stream, "seekable", None)
                if seekable is not None and seekable():
                    stream.seek(0)
        return self._body

    @property
    def json(self) -> Any:
        """
        Parse the body as JSON.

        Raises:
            HandlerFault: (status 400) the body is not valid JSON.
        """
        if self._json is None and self.body:
            try:
                self._json = json.loads(self.body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise HandlerFault(f"Invalid JSON body: {e}", status=400)
        return self._json
