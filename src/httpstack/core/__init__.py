"""
=============================================================================
PIPELINE CORE
=============================================================================

    deferred.py   DeferredToken, the one-shot channel for late answers
    handler.py    Handler contract: process(context) → Immediate | Deferred
    builder.py    Builder: use/map/run into one nested Handler

=============================================================================
"""

from .deferred import DeferredToken, TokenState
from .handler import (
    Deferred,
    FunctionHandler,
    Handler,
    HandlerLike,
    Immediate,
    Outcome,
    as_outcome,
    defer,
    handler,
    to_handler,
)
from .builder import Builder, FaultBarrier, build_stack

__all__ = [
    "DeferredToken",
    "TokenState",
    "Handler",
    "FunctionHandler",
    "HandlerLike",
    "Immediate",
    "Deferred",
    "Outcome",
    "as_outcome",
    "defer",
    "handler",
    "to_handler",
    "Builder",
    "FaultBarrier",
    "build_stack",
]
