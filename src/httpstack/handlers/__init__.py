"""
Ready-made applications.

- demo: the sample site served by `python -m httpstack`
- proxy: forward requests to another HTTP server
"""

from .demo import (
    ArtistsHandler,
    DelayedHello,
    ResourceHandler,
    VenuesHandler,
    build_demo_app,
    hello_world,
)
from .proxy import ProxyHandler

__all__ = [
    "hello_world",
    "ResourceHandler",
    "ArtistsHandler",
    "VenuesHandler",
    "DelayedHello",
    "build_demo_app",
    "ProxyHandler",
]
