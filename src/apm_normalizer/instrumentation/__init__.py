"""Span bracketing helpers used by the interception layer."""
from __future__ import annotations

from .span import OtelSpanHandle, SpanAccessor, SpanHandle, otel_span_accessor
from .websocket import instrument_websocket_send, uninstrument_websocket_send

__all__ = [
    "OtelSpanHandle",
    "SpanAccessor",
    "SpanHandle",
    "otel_span_accessor",
    "instrument_websocket_send",
    "uninstrument_websocket_send",
]
