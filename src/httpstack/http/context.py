"""
=============================================================================
REQUEST CONTEXT
=============================================================================

The Context is the bag of request facts handed to every Handler. It is a
read-only mapping from case-sensitive string keys to values. The key names
follow WSGI's environ, so a transport can build a Context straight from an
environ dict.

=============================================================================
WELL-KNOWN KEYS
=============================================================================

    REQUEST_METHOD            "GET", "POST", ...
    PATH_INFO                 path still to be routed ("/5")
    SCRIPT_NAME               mount point consumed so far ("/artists")
    QUERY_STRING              raw query string, without "?"
    httpstack.headers         read-only mapping of request headers
    httpstack.input           binary file-like object with the request body
    httpstack.original_path   full path before any router rewrote it

Anything else is an extension slot. Transports and middleware use them to
carry out-of-band capabilities (a request id, the client address, ...).

=============================================================================
DERIVED CONTEXTS
=============================================================================

A Handler never mutates the Context it was given. To pass a different view
downstream it derives a new one:

    ┌────────────────────────────┐          ┌────────────────────────────┐
    │ PATH_INFO   = /artists/5   │  derive  │ PATH_INFO   = /5           │
    │ SCRIPT_NAME =              │ ───────► │ SCRIPT_NAME = /artists     │
    │ ...                        │          │ ...  (everything else kept)│
    └────────────────────────────┘          └────────────────────────────┘
          seen by the router                   seen by the artists app

The upstream Context is untouched, so changes made on the way down can never
leak back into layers above.

=============================================================================
"""

import io
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Union


REQUEST_METHOD = "REQUEST_METHOD"
PATH_INFO = "PATH_INFO"
SCRIPT_NAME = "SCRIPT_NAME"
QUERY_STRING = "QUERY_STRING"
HEADERS = "httpstack.headers"
INPUT = "httpstack.input"
ORIGINAL_PATH = "httpstack.original_path"


class Context(Mapping[str, Any]):
    """
    Immutable mapping of request facts.

    Supports everything a read-only dict does (``ctx["PATH_INFO"]``,
    ``ctx.get(...)``, ``in``, iteration). There is no ``__setitem__``; use
    derive() to get a modified copy.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping[str, Any]] = None, **values: Any):
        merged: Dict[str, Any] = dict(data or {})
        merged.update(values)
        for key in merged:
            if not isinstance(key, str):
                raise TypeError(f"Context keys must be strings, got {key!r}")
        self._data = MappingProxyType(merged)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return (
            f"Context({self.get(REQUEST_METHOD, '?')} "
            f"{self.get(SCRIPT_NAME, '')}{self.get(PATH_INFO, '')})"
        )

    def derive(self, changes: Optional[Mapping[str, Any]] = None, **values: Any) -> "Context":
        """
        Return a new Context with some keys replaced or added.

            downstream = context.derive(PATH_INFO="/5", SCRIPT_NAME="/artists")
            downstream = context.derive({"httpstack.original_path": "/a/5"})
        """
        merged = dict(self._data)
        if changes:
            merged.update(changes)
        merged.update(values)
        return Context(merged)

    # Shorthands for the keys every handler looks at.

    @property
    def method(self) -> str:
        return self.get(REQUEST_METHOD, "GET")

    @property
    def path(self) -> str:
        return self.get(PATH_INFO, "/")


def make_context(
    method: str = "GET",
    path: str = "/",
    headers: Optional[Mapping[str, str]] = None,
    body: Union[bytes, str] = b"",
    query_string: str = "",
    script_name: str = "",
    **extensions: Any,
) -> Context:
    """
    Build a Context from plain request facts.

    Used by the test client and by code that does not sit behind a WSGI
    server. A "?" in path is split off into QUERY_STRING.

        ctx = make_context("POST", "/artists", body=b'{"name": "Nina"}')
    """
    if "?" in path:
        path, _, query_string = path.partition("?")
    if isinstance(body, str):
        body = body.encode("utf-8")

    data: Dict[str, Any] = {
        REQUEST_METHOD: method.upper(),
        PATH_INFO: path or "/",
        SCRIPT_NAME: script_name,
        QUERY_STRING: query_string,
        HEADERS: MappingProxyType(dict(headers or {})),
        INPUT: io.BytesIO(body),
    }
    data.update(extensions)
    return Context(data)
