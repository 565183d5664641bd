"""
=============================================================================
PATH ROUTER
=============================================================================

Dispatches each request to the Handler mounted at the longest matching path
prefix, and rewrites the path so the downstream Handler never needs to know
where it was mounted.

=============================================================================
ROUTING FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Incoming Request                                                   │
    │   GET /venues/99                                                     │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  PATH ROUTER                                                 │   │
    │   │                                                              │   │
    │   │  Route table (longest prefix first):                         │   │
    │   │  ┌────────────────────────────────────────────────────────┐ │   │
    │   │  │ /venues/archive → ArchiveHandler                       │ │   │
    │   │  │ /artists        → ArtistsHandler                       │ │   │
    │   │  │ /venues         → VenuesHandler      ← MATCH!          │ │   │
    │   │  └────────────────────────────────────────────────────────┘ │   │
    │   │                                                              │   │
    │   │  PATH_INFO   /venues/99 → /99                                │   │
    │   │  SCRIPT_NAME ""         → /venues                            │   │
    │   │  httpstack.original_path = /venues/99                        │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   VenuesHandler sees GET /99                                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
MATCHING RULES
=============================================================================

1. SEGMENT BOUNDARIES: a prefix only matches whole path segments.

       /artists matches   /artists, /artists/, /artists/5
       /artists misses    /artistsxyz

2. LONGEST WINS: with /venues and /venues/archive both mounted,
   /venues/archive/3 goes to the second.

3. REWRITE: the matched prefix moves from PATH_INFO to SCRIPT_NAME. An
   empty remainder becomes "/":

       POST /artists  →  ArtistsHandler sees POST /

4. NO MATCH: 404. Mount something at "/" to catch everything instead.

Prefixes are normalized when the router is built: a trailing slash is
dropped ("/artists/" == "/artists") and "/" becomes the root prefix that
matches every path. Two prefixes that normalize to the same string are a
ConfigurationError, since there would be no way to tell them apart.

The table is fixed at construction. Dispatch only reads it, so one router
can serve any number of threads without locking.

=============================================================================
INTERVIEW QUESTIONS ABOUT MOUNTING
=============================================================================

Q: "Why rewrite the path instead of passing it through?"
A: "So applications are relocatable. The artists app routes on "/" and
   "/:id"; whether it lives at /artists or /api/v2/artists is decided by
   whoever mounts it. The consumed prefix is kept in SCRIPT_NAME and the
   untouched path in an extension slot, so nothing is lost."

Q: "Why not first-match like a regex router?"
A: "Mount points nest. Longest-prefix makes /venues/archive win over
   /venues regardless of registration order, so the table can be a plain
   mapping with no ordering rules to remember."

=============================================================================
"""

import logging
from typing import Dict, List, Mapping, Optional, Tuple

from ..core.handler import Handler, HandlerLike, Immediate, Outcome, to_handler
from ..errors import ConfigurationError
from .context import ORIGINAL_PATH, PATH_INFO, SCRIPT_NAME, Context
from .response import method_not_allowed, not_found


logger = logging.getLogger(__name__)


def normalize_prefix(prefix: str) -> str:
    """
    Canonical form of a mount prefix.

        "/artists/" → "/artists"
        "/"         → ""        (root: matches everything)

    Raises:
        ConfigurationError: prefix is not a string starting with "/".
    """
    if not isinstance(prefix, str) or not prefix.startswith("/"):
        raise ConfigurationError(f"Route prefix must start with '/': {prefix!r}")
    return prefix.rstrip("/")


def match_prefix(prefix: str, path: str) -> Optional[str]:
    """
    Match a normalized prefix against a path on a segment boundary.

    Returns:
        The remaining path ("/" if nothing remains), or None if the prefix
        does not match.
    """
    if path == prefix:
        return "/"
    if path.startswith(prefix + "/"):
        return path[len(prefix):]
    return None


class PathRouter(Handler):
    """
    Handler that owns a fixed prefix → Handler table.

    =========================================================================
    USAGE
    =========================================================================

        router = PathRouter({
            "/artists": ArtistsHandler(),
            "/venues": VenuesHandler(),
        })

        router.process(make_context("GET", "/venues/99"))
        # → VenuesHandler sees PATH_INFO "/99", SCRIPT_NAME "/venues"

    Routers are Handlers, so they nest: mount a router inside a router to
    build a tree.

    =========================================================================
    """

    def __init__(self, routes: Mapping[str, HandlerLike]):
        table: Dict[str, Handler] = {}
        for prefix, app in routes.items():
            key = normalize_prefix(prefix)
            if key in table:
                raise ConfigurationError(
                    f"Ambiguous route prefix {prefix!r}: normalizes to {key or '/'!r}, "
                    f"which is already mounted"
                )
            table[key] = to_handler(app)

        # Longest prefix first, so the first match is the best match.
        self._routes: Tuple[Tuple[str, Handler], ...] = tuple(
            sorted(table.items(), key=lambda item: len(item[0]), reverse=True)
        )

    @property
    def prefixes(self) -> List[str]:
        """Mounted prefixes, longest first ("/" for the root)."""
        return [prefix or "/" for prefix, _ in self._routes]

    def resolve(self, path: str) -> Optional[Tuple[str, Handler, str]]:
        """
        Find the Handler for a path.

        Returns:
            (matched prefix, handler, remaining path), or None.
        """
        for prefix, app in self._routes:
            remainder = match_prefix(prefix, path)
            if remainder is not None:
                return prefix, app, remainder
        return None

    def process(self, context: Context) -> Outcome:
        path = context.get(PATH_INFO, "/") or "/"
        found = self.resolve(path)

        if found is None:
            logger.debug("No mount point for %s", path)
            return Immediate(not_found(f"No application mounted at {path}"))

        prefix, app, remainder = found
        script_name = context.get(SCRIPT_NAME, "")
        downstream = context.derive({
            PATH_INFO: remainder,
            SCRIPT_NAME: script_name + prefix,
            # Only the outermost router records the path; nested routers
            # would otherwise overwrite it with an already-rewritten one.
            ORIGINAL_PATH: context.get(ORIGINAL_PATH, script_name + path),
        })
        return app.process(downstream)

    def __repr__(self) -> str:
        return f"PathRouter({', '.join(self.prefixes)})"


class MethodRouter(Handler):
    """
    Dispatches on the request method instead of the path.

        router = MethodRouter({"POST": ArtistsHandler(), "GET": VenuesHandler()})

    A method with no Handler gets 405 with an Allow header.
    """

    def __init__(self, routes: Mapping[str, HandlerLike]):
        table: Dict[str, Handler] = {}
        for method, app in routes.items():
            key = method.upper()
            if key in table:
                raise ConfigurationError(f"Method {key} is routed twice")
            table[key] = to_handler(app)
        if not table:
            raise ConfigurationError("MethodRouter needs at least one route")
        self._routes = table

    def process(self, context: Context) -> Outcome:
        app = self._routes.get(context.method.upper())
        if app is None:
            return Immediate(method_not_allowed(self._routes))
        return app.process(context)
