"""Span handle contract and an OpenTelemetry-backed active-span accessor.

Instrumented calls are bracketed with a span handle obtained from a
`SpanAccessor`. The accessor returns None when no tracing context is active,
in which case the intercepted call runs untouched.

`otel_span_accessor` backs the contract with OpenTelemetry: a handle is only
handed out while a valid span is current, and `start` opens a child span of
that current span. Parent/child bookkeeping stays with OpenTelemetry.
"""
from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

from opentelemetry import trace
from opentelemetry.trace import SpanContext, format_trace_id

__all__ = ["SpanHandle", "SpanAccessor", "OtelSpanHandle", "otel_span_accessor"]

SPAN_CATEGORY_ATTRIBUTE = "span.category"


class SpanHandle(Protocol):
    def start(self, name: str, category: str) -> None:
        ...

    def end(self) -> None:
        ...


SpanAccessor = Callable[[], Optional[SpanHandle]]


class OtelSpanHandle:
    """A span handle opening one OpenTelemetry child span of `parent`."""

    def __init__(self, tracer: trace.Tracer, parent: SpanContext):
        self._tracer = tracer
        self._parent = parent
        self._span: Optional[Any] = None
        self._ended = False

    @property
    def trace_id(self) -> str:
        return format_trace_id(self._parent.trace_id)

    def start(self, name: str, category: str) -> None:
        if self._span is not None:
            return
        self._span = self._tracer.start_span(
            name, attributes={SPAN_CATEGORY_ATTRIBUTE: category}
        )

    def end(self) -> None:
        if self._span is None or self._ended:
            return
        self._ended = True
        self._span.end()


def otel_span_accessor(tracer: Optional[trace.Tracer] = None) -> SpanAccessor:
    """Build a `SpanAccessor` reading the current OpenTelemetry context."""

    def _accessor() -> Optional[SpanHandle]:
        parent = trace.get_current_span().get_span_context()
        if not parent.is_valid:
            return None
        return OtelSpanHandle(tracer or trace.get_tracer(__name__), parent)

    return _accessor
