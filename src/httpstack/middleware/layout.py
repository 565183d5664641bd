"""
=============================================================================
LAYOUT MIDDLEWARE
=============================================================================

Shares one page layout between independently written applications. The
middleware asks the application below for its page, then places that body
into a layout at the ``{page}`` marker:

    <!doctype html>
    <html>
      <head><title>My app</title></head>
      <body>{page}</body>
    </html>

This is plain marker substitution, not a template language: the only thing
replaced is ``{page}``, so layouts may contain any other braces (CSS, JS).

Middleware can be applied to part of a site by mounting it below a prefix:

    Builder()
        .map("/artists", ArtistsHandler())
        .map("/venues", Builder().use(Layout, layout).run(VenuesHandler()))

=============================================================================
"""

from pathlib import Path
from typing import Union

from ..core.handler import HandlerLike, Outcome
from ..errors import ConfigurationError
from ..http.context import Context
from ..http.response import Response
from .base import Middleware


PAGE_MARKER = "{page}"


class Layout(Middleware):
    """
    Wrap the downstream body in a layout.

    Status and headers from downstream are kept; Content-Type becomes the
    layout's and any Content-Length is dropped since the body changed size.
    """

    def __init__(
        self,
        app: HandlerLike,
        template: str,
        content_type: str = "text/html; charset=utf-8",
    ):
        super().__init__(app)
        if PAGE_MARKER not in template:
            raise ConfigurationError(f"Layout template has no {PAGE_MARKER} marker")
        self.template = template
        self.content_type = content_type

    @classmethod
    def from_file(cls, app: HandlerLike, path: Union[str, Path], **kwargs) -> "Layout":
        """Build a Layout whose template is read from a file, once, at build time."""
        return cls(app, Path(path).read_text(encoding="utf-8"), **kwargs)

    def process(self, context: Context) -> Outcome:
        return self.map_response(self.delegate(context), self.render)

    def render(self, response: Response) -> Response:
        page = response.body.read().decode("utf-8", errors="replace")
        headers = {
            name: value
            for name, value in response.headers.items()
            if name.lower() not in ("content-type", "content-length")
        }
        headers["Content-Type"] = self.content_type
        return Response(response.status, headers, [self.template.replace(PAGE_MARKER, page)])
