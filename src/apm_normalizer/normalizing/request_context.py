"""Request context extraction with URL resolution and body size/privacy bounds.

Turns a live request descriptor into a `RequestContext`. The descriptor may be
an `IncomingRequest`, any object exposing the same attribute names, or a plain
mapping with those keys.

URL Resolution:
    Absolute URI ("https://host:8080/p?q"):
        hostname/port/path/query taken from the URI; raw = the URI
    Origin-relative target ("/p?q"):
        hostname/port from the Host header (split on the last colon);
        protocol is always "http:" even on encrypted sockets;
        full = protocol//hostname[:port]pathname+search; raw = the target
    A bare trailing "?" is kept: search == "?"

Body Handling (only when a non-empty body is present):
    capture_body False      -> "[REDACTED]"
    text / bytes            -> sliced to max_body_chars
    JSON-able structure     -> original value, or its compact JSON sliced to
                               max_body_chars when the JSON is too long
    other structures        -> compact JSON (str() for foreign values), sliced

Design Notes:
    - Headers are copied verbatim, values coerced to str
    - Malformed targets fall back to the origin-relative branch
    - Nothing is retained between calls
"""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit

from ..config import DEFAULT_MAX_HTTP_BODY_CHARS
from ..errors import InvalidCaptureInput
from ..models.records import RequestContext, SocketInfo, UrlInfo

logger = logging.getLogger(__name__)

__all__ = [
    "REDACTED",
    "get_context_from_request",
    "parse_request_url",
    "normalize_body",
]

REDACTED = "[REDACTED]"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")
_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443}


def get_context_from_request(
    request: Any,
    capture_body: bool = False,
    *,
    max_body_chars: Optional[int] = None,
) -> RequestContext:
    """Build a `RequestContext` from a live request descriptor.

    Args:
        request: The in-flight request (object or mapping).
        capture_body: When False any present body is replaced with "[REDACTED]".
        max_body_chars: Body size bound; defaults to DEFAULT_MAX_HTTP_BODY_CHARS.

    Returns:
        The request context. `body` is only set when the request carried one.

    Raises:
        InvalidCaptureInput: If no request descriptor was given.
    """
    if request is None:
        raise InvalidCaptureInput("get_context_from_request() requires a request descriptor")
    limit = max_body_chars if max_body_chars is not None else DEFAULT_MAX_HTTP_BODY_CHARS

    headers = _copy_headers(_read(request, "headers", None))
    target = _read(request, "url", "")
    if isinstance(target, (bytes, bytearray)):
        target = bytes(target).decode("latin-1")
    elif not isinstance(target, str):
        target = "" if target is None else str(target)

    sock = _read(request, "socket", None)
    http_version = _read(request, "http_version", None)
    method = _read(request, "method", None)
    fields: Dict[str, Any] = {
        "http_version": None if http_version is None else str(http_version),
        "method": None if method is None else str(method),
        "url": parse_request_url(target, _find_header(headers, "host")),
        "socket": SocketInfo(
            remote_address=_read(sock, "remote_address", None),
            encrypted=bool(_read(sock, "encrypted", False)),
        ),
        "headers": headers,
    }
    body = _read(request, "body", None)
    if _body_present(body):
        fields["body"] = normalize_body(body, capture_body, limit)
    return RequestContext(**fields)


def parse_request_url(target: str, host_header: Optional[str] = None) -> UrlInfo:
    """Resolve a request target (absolute URI or origin-relative) into `UrlInfo`."""
    if _SCHEME_RE.match(target):
        try:
            return _parse_absolute(target)
        except ValueError as e:
            logger.debug("Malformed absolute request target %r, resolving as relative: %s", target, e)
    return _parse_relative(target, host_header)


def _parse_absolute(target: str) -> UrlInfo:
    parts = urlsplit(target)
    scheme = parts.scheme.lower()
    hostname = parts.hostname or ""
    port = parts.port  # ValueError on a non-numeric port
    if port is not None and port == _DEFAULT_PORTS.get(scheme):
        port = None
    pathname = parts.path or "/"
    has_query = "?" in target.split("#", 1)[0]
    search = "?" + parts.query if has_query else ""
    protocol = f"{scheme}:"
    fields: Dict[str, Any] = {
        "hostname": hostname,
        "pathname": pathname,
        "search": search,
        "full": _full_url(protocol, hostname, port, pathname, search),
        "protocol": protocol,
        "raw": target,
    }
    if port is not None:
        fields["port"] = port
    return UrlInfo(**fields)


def _parse_relative(target: str, host_header: Optional[str]) -> UrlInfo:
    pathname, search = _split_path(target)
    hostname, port = _split_host(host_header or "")
    # Encrypted sockets are deliberately not upgraded to https: here.
    protocol = "http:"
    if port is not None and port == _DEFAULT_PORTS["http"]:
        port = None
    fields: Dict[str, Any] = {
        "hostname": hostname,
        "pathname": pathname,
        "search": search,
        "full": _full_url(protocol, hostname, port, pathname, search),
        "protocol": protocol,
        "raw": target,
    }
    if port is not None:
        fields["port"] = port
    return UrlInfo(**fields)


def _split_path(target: str) -> Tuple[str, str]:
    without_fragment = target.split("#", 1)[0]
    if "?" in without_fragment:
        pathname, query = without_fragment.split("?", 1)
        return pathname or "/", "?" + query
    return without_fragment or "/", ""


def _split_host(host: str) -> Tuple[str, Optional[int]]:
    host = host.strip()
    if not host:
        return "", None
    head, sep, tail = host.rpartition(":")
    if not sep or not (tail.isascii() and tail.isdigit()):
        return host.lower(), None
    if ":" in head and not (head.startswith("[") and head.endswith("]")):
        # bare IPv6 literal without a port
        return host.lower(), None
    return head.lower(), int(tail)


def _full_url(protocol: str, hostname: str, port: Optional[int], pathname: str, search: str) -> str:
    if ":" in hostname and not hostname.startswith("["):
        hostname = f"[{hostname}]"
    authority = f"{hostname}:{port}" if port is not None else hostname
    return f"{protocol}//{authority}{pathname}{search}"


def normalize_body(body: Any, capture_body: bool, max_body_chars: int) -> Any:
    """Apply the redaction and size policy to a present request body."""
    if not capture_body:
        return REDACTED
    if isinstance(body, (bytes, bytearray)):
        body = bytes(body).decode("utf-8", errors="replace")
    if isinstance(body, str):
        return body[:max_body_chars]
    try:
        serialized = json.dumps(body, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        logger.debug("Request body of type %s is not JSON-native (%s); keeping its serialized form", type(body).__name__, e)
        return _fallback_serialize(body)[:max_body_chars]
    if len(serialized) > max_body_chars:
        return serialized[:max_body_chars]
    return body


def _fallback_serialize(body: Any) -> str:
    # default= never applies to dict keys; circular structures raise ValueError
    try:
        return json.dumps(body, separators=(",", ":"), ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        pass
    try:
        return str(body)
    except Exception as e:  # oversized int digits, broken __str__
        logger.debug("str() of request body failed (%s); using bare repr", e)
        return object.__repr__(body)


def _body_present(body: Any) -> bool:
    if body is None:
        return False
    if isinstance(body, (str, bytes, bytearray)) and len(body) == 0:
        return False
    return True


def _copy_headers(raw: Any) -> Dict[str, str]:
    if not raw:
        return {}
    items = raw.items() if isinstance(raw, Mapping) or hasattr(raw, "items") else raw
    headers: Dict[str, str] = {}
    for key, value in items:
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value)
        headers[str(key)] = str(value)
    return headers


def _find_header(headers: Dict[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def _read(obj: Any, name: str, default: Any) -> Any:
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)
