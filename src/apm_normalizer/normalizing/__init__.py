"""Internal normalization subpackage, one module per extractor.

All functions within this package are free of network I/O. The only blocking
operation, reading source files for stack frame context, runs off the event
loop. The public API lives in the top-level `parsers.py` facade.

Modules:
    message: Log value normalization and structural rendering
    request_context: Request URL resolution, header copy, body bounds
    response_context: Live response snapshots
    source_context: Source line windows and read-through cache
    callsite: Call-site to StackFrame normalization and ordered fan-out
    error: Exception parsing with culprit and stack trace

Design Invariants:
    - Fresh record per invocation, no state shared between captures besides
      the optional source cache
    - Identical inputs produce identical records
    - Per-frame and per-body degradations never raise
"""
from __future__ import annotations

from . import callsite, error, message, request_context, response_context, source_context  # noqa: F401

__all__ = [
    "message",
    "request_context",
    "response_context",
    "source_context",
    "callsite",
    "error",
]
