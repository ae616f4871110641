"""Response context extraction from a live, externally-mutated response.

The response object is owned by the host server and keeps changing while the
request is in flight, so every call reads it afresh:

    before headers flush   -> headers {}, headers_sent False, finished False
    after first chunked write -> flushed headers incl. transfer-encoding
    after completion       -> final framing headers, finished True

`headers_sent` and `finished` are only reported when capturing for an error.
The returned header map is a copy; later mutation of the response never leaks
into an already-built record.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict

from ..errors import InvalidCaptureInput
from ..models.records import ResponseContext

__all__ = ["get_context_from_response"]


def get_context_from_response(response: Any, for_error: bool) -> ResponseContext:
    if response is None:
        raise InvalidCaptureInput("get_context_from_response() requires a response descriptor")
    headers_sent = bool(_read(response, "headers_sent", False))
    raw_headers = _read(response, "headers", None) if headers_sent else None
    fields: Dict[str, Any] = {
        "status_code": int(_read(response, "status_code", 200)),
        "headers": {str(k): str(v) for k, v in raw_headers.items()} if raw_headers else {},
    }
    if for_error:
        fields["headers_sent"] = headers_sent
        fields["finished"] = bool(_read(response, "finished", False))
    return ResponseContext(**fields)


def _read(obj: Any, name: str, default: Any) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)
