"""Pydantic models for the normalized telemetry records.

These models define the structured shapes handed to callers once a raw
runtime artifact (log value, HTTP request or response, exception, stack frame)
has been normalized. Optional fields are left unset rather than set to an
empty value when they do not apply, and `Record.to_dict` drops unset fields so
that absence survives serialization.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "Record",
    "LogRecord",
    "UrlInfo",
    "SocketInfo",
    "RequestContext",
    "ResponseContext",
    "StackFrame",
    "ExceptionRecord",
    "SourceLinePolicy",
]


class Record(BaseModel):
    """Base class for every normalized record."""

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)

    def to_json(self) -> str:
        return self.model_dump_json(exclude_unset=True)


class LogRecord(Record):
    """A normalized log value.

    `param_message` holds the unformatted template and is only set when the
    input carried one.
    """

    message: str
    param_message: Optional[str] = None


class UrlInfo(Record):
    """Decomposed request URL. `raw` is the request target as received."""

    hostname: str
    pathname: str
    search: str
    full: str
    protocol: str
    port: Optional[int] = None
    raw: str


class SocketInfo(Record):
    remote_address: Optional[str] = None
    encrypted: bool = False


class RequestContext(Record):
    """Size and privacy bounded snapshot of an incoming HTTP request."""

    http_version: Optional[str] = None
    method: Optional[str] = None
    url: UrlInfo
    socket: SocketInfo
    headers: Dict[str, str] = Field(default_factory=dict)
    # str (possibly sliced or "[REDACTED]") or the original structured value
    body: Optional[Any] = None


class ResponseContext(Record):
    """Snapshot of an outgoing HTTP response.

    `headers_sent` and `finished` are only set when captured for an error.
    """

    status_code: int
    headers: Dict[str, str] = Field(default_factory=dict)
    headers_sent: Optional[bool] = None
    finished: Optional[bool] = None


class StackFrame(Record):
    """One normalized call-site.

    The three context fields are either all set or all unset.
    """

    filename: str
    lineno: int
    function: str
    library_frame: bool
    abs_path: str
    pre_context: Optional[List[str]] = None
    context_line: Optional[str] = None
    post_context: Optional[List[str]] = None


class ExceptionRecord(Record):
    """Type, message, culprit and normalized stack of an exception."""

    type: str
    message: str
    culprit: Optional[str] = None
    stacktrace: List[StackFrame] = Field(default_factory=list)


class SourceLinePolicy(BaseModel):
    """Lines of source context per frame class (error/span) and origin (app/library)."""

    model_config = ConfigDict(frozen=True)

    error_app_frames: int = Field(default=5, ge=0)
    error_library_frames: int = Field(default=5, ge=0)
    span_app_frames: int = Field(default=0, ge=0)
    span_library_frames: int = Field(default=0, ge=0)

    def lines_for(self, is_error_frame: bool, library_frame: bool) -> int:
        if is_error_frame:
            return self.error_library_frames if library_frame else self.error_app_frames
        return self.span_library_frames if library_frame else self.span_app_frames
