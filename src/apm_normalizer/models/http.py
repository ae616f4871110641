"""Live HTTP request/response descriptors read by the context extractors.

`IncomingRequest` is a typed carrier for the fields an interception layer
pulls off a framework request. The extractors accept any object (or mapping)
exposing the same names, so framework objects can be passed through directly
when they already match.

`OutgoingResponse` models the externally-owned, externally-mutated response
object: headers are staged with `set_header`, flushed on the first `write`
or on `end`, and the framing headers a HTTP/1.1 server would add are added at
flush time. The response context extractor reads it live and never caches.
"""
from __future__ import annotations

from email.utils import formatdate
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

__all__ = ["RequestSocket", "IncomingRequest", "OutgoingResponse"]


class RequestSocket(BaseModel):
    """Endpoint information of the connection a request arrived on."""

    remote_address: Optional[str] = None
    encrypted: bool = False


class IncomingRequest(BaseModel):
    """An in-flight HTTP request as seen by the instrumentation layer."""

    method: str = "GET"
    http_version: str = "1.1"
    # Request target exactly as received: origin-form path or absolute URI
    url: str = "/"
    headers: Dict[str, str] = Field(default_factory=dict)
    socket: RequestSocket = Field(default_factory=RequestSocket)
    body: Any = None


class OutgoingResponse:
    """A minimal HTTP/1.1 response whose header block is flushed lazily.

    `headers` exposes the header block that has actually been flushed (empty
    until then); `pending_headers` holds headers staged but not yet sent.
    """

    def __init__(self, status_code: int = 200, *, keep_alive: bool = False, send_date: bool = True):
        self.status_code = status_code
        self.keep_alive = keep_alive
        self.send_date = send_date
        self.pending_headers: Dict[str, str] = {}
        self._sent_headers: Dict[str, str] = {}
        self._headers_sent = False
        self._finished = False
        self._chunks: list[bytes] = []

    @property
    def headers(self) -> Dict[str, str]:
        return self._sent_headers

    @property
    def headers_sent(self) -> bool:
        return self._headers_sent

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    def set_header(self, name: str, value: Any) -> None:
        if self._headers_sent:
            raise RuntimeError("Cannot set headers after they are sent")
        self.pending_headers[name.lower()] = str(value)

    def write(self, chunk: str | bytes) -> None:
        if self._finished:
            raise RuntimeError("write after end")
        if not self._headers_sent:
            self._flush_headers(chunked=True, body_length=None)
        self._chunks.append(_to_bytes(chunk))

    def end(self, chunk: str | bytes | None = None) -> None:
        if self._finished:
            return
        data = _to_bytes(chunk) if chunk is not None else b""
        if not self._headers_sent:
            self._flush_headers(chunked=False, body_length=len(data))
        if data:
            self._chunks.append(data)
        self._finished = True

    def _flush_headers(self, *, chunked: bool, body_length: Optional[int]) -> None:
        headers = dict(self.pending_headers)
        headers.setdefault("connection", "keep-alive" if self.keep_alive else "close")
        if self.send_date:
            headers.setdefault("date", formatdate(usegmt=True))
        if "content-length" not in headers and "transfer-encoding" not in headers:
            if chunked:
                headers["transfer-encoding"] = "chunked"
            elif body_length is not None:
                headers["content-length"] = str(body_length)
        self._sent_headers = headers
        self._headers_sent = True


def _to_bytes(chunk: str | bytes) -> bytes:
    if isinstance(chunk, bytes):
        return chunk
    return chunk.encode("utf-8")
