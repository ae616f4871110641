"""Public facade for telemetry normalization.

This module provides the stable public API used by the instrumentation layer
to turn raw runtime artifacts into bounded, structured records. All logic is
delegated to the `apm_normalizer.normalizing` package.

Public Functions:
    parse_message: Log value -> LogRecord
    get_context_from_request: Live request -> RequestContext
    get_context_from_response: Live response -> ResponseContext
    parse_error: Exception -> ExceptionRecord (coroutine)
    parse_callsite: CallSite -> StackFrame (coroutine)
    capture_exception: Synchronous parse_error driven by Settings

Constants:
    MAX_HTTP_BODY_CHARS: Default request body bound
    REDACTED: Placeholder for bodies that must not be captured
"""
from __future__ import annotations

from .config import DEFAULT_MAX_HTTP_BODY_CHARS as MAX_HTTP_BODY_CHARS
from .normalizing.callsite import parse_callsite, parse_callsites
from .normalizing.error import capture_exception, capture_span_stacktrace, parse_error
from .normalizing.message import parse_message
from .normalizing.request_context import REDACTED, get_context_from_request
from .normalizing.response_context import get_context_from_response

__all__ = [
    "MAX_HTTP_BODY_CHARS",
    "REDACTED",
    "parse_message",
    "get_context_from_request",
    "get_context_from_response",
    "parse_error",
    "parse_callsite",
    "parse_callsites",
    "capture_exception",
    "capture_span_stacktrace",
]
