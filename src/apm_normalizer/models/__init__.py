"""Typed input descriptors and output records of the normalization pipeline."""
from __future__ import annotations

from .http import IncomingRequest, OutgoingResponse, RequestSocket
from .records import (
    ExceptionRecord,
    LogRecord,
    Record,
    RequestContext,
    ResponseContext,
    SocketInfo,
    SourceLinePolicy,
    StackFrame,
    UrlInfo,
)

__all__ = [
    "IncomingRequest",
    "OutgoingResponse",
    "RequestSocket",
    "ExceptionRecord",
    "LogRecord",
    "Record",
    "RequestContext",
    "ResponseContext",
    "SocketInfo",
    "SourceLinePolicy",
    "StackFrame",
    "UrlInfo",
]
