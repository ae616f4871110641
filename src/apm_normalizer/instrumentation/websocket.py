"""WebSocket `send` instrumentation bracketing each send in a span.

`instrument_websocket_send` patches the `send` method of a WebSocket client
class so that every call made while a span is active runs between
`span.start("Send WebSocket Message", "websocket.send")` and `span.end()`.

Completion Rules:
    - Trailing callable argument: treated as the completion callback and
      replaced with one that ends the span, then calls the original callback
    - No callback, plain method: span ends when the call returns
    - No callback, coroutine method: span ends when the coroutine completes
    - The call raises: span ends before the exception propagates
    - No active span: the original method runs untouched

Version Gate:
    Library major versions outside >=1 <6 are left unpatched (logged at
    debug level). Patching is idempotent and reversible.
"""
from __future__ import annotations

import functools
import inspect
import logging
import re
from typing import Any, Callable, Tuple

from .span import SpanAccessor, SpanHandle

logger = logging.getLogger(__name__)

__all__ = [
    "WS_SPAN_NAME",
    "WS_SPAN_CATEGORY",
    "is_supported_version",
    "instrument_websocket_send",
    "uninstrument_websocket_send",
]

WS_SPAN_NAME = "Send WebSocket Message"
WS_SPAN_CATEGORY = "websocket.send"

_MIN_MAJOR = 1
_MAX_MAJOR_EXCLUSIVE = 6
_VERSION_RE = re.compile(r"^\s*v?(\d+)(?:\.\d+)*")
_ORIGINAL_ATTR = "__apm_original__"


def is_supported_version(version: str) -> bool:
    match = _VERSION_RE.match(version or "")
    if not match:
        return False
    return _MIN_MAJOR <= int(match.group(1)) < _MAX_MAJOR_EXCLUSIVE


def instrument_websocket_send(ws_class: type, span_accessor: SpanAccessor, version: str) -> type:
    """Wrap `ws_class.send` with span bracketing; returns `ws_class`."""
    if not is_supported_version(version):
        logger.debug("websocket version %s not supported - aborting...", version)
        return ws_class
    current = getattr(ws_class, "send", None)
    if current is None:
        logger.debug("%s has no send method - aborting...", ws_class.__name__)
        return ws_class
    if getattr(current, _ORIGINAL_ATTR, None) is not None:
        logger.debug("%s.send already instrumented", ws_class.__name__)
        return ws_class
    logger.debug("shimming %s.send function", ws_class.__name__)
    wrapped = _wrap_send(current, span_accessor, ws_class.__name__)
    setattr(wrapped, _ORIGINAL_ATTR, current)
    ws_class.send = wrapped
    return ws_class


def uninstrument_websocket_send(ws_class: type) -> type:
    current = ws_class.__dict__.get("send")
    original = getattr(current, _ORIGINAL_ATTR, None)
    if original is not None:
        ws_class.send = original
    return ws_class


class _SpanCompletion:
    """Ends a span exactly once, whichever completion path fires first."""

    def __init__(self, span: SpanHandle):
        self._span = span
        self._done = False

    def finish(self) -> None:
        if self._done:
            return
        self._done = True
        self._span.end()


def _completion_callback(callback: Callable[..., Any], completion: _SpanCompletion) -> Callable[..., Any]:
    @functools.wraps(callback)
    def done(*args: Any, **kwargs: Any) -> Any:
        completion.finish()
        return callback(*args, **kwargs)

    return done


def _prepare(args: Tuple[Any, ...], span: SpanHandle) -> Tuple[Tuple[Any, ...], _SpanCompletion, bool]:
    completion = _SpanCompletion(span)
    has_callback = bool(args) and callable(args[-1])
    if has_callback:
        args = args[:-1] + (_completion_callback(args[-1], completion),)
    return args, completion, has_callback


def _log_intercept(class_name: str, span: Any) -> None:
    logger.debug(
        "intercepted call to %s.send %s",
        class_name,
        {"id": getattr(span, "trace_id", None) if span is not None else None},
    )


def _wrap_send(original: Callable[..., Any], span_accessor: SpanAccessor, class_name: str) -> Callable[..., Any]:
    if inspect.iscoroutinefunction(original):

        @functools.wraps(original)
        async def wrapped_send_async(self: Any, *args: Any, **kwargs: Any) -> Any:
            span = span_accessor()
            _log_intercept(class_name, span)
            if span is None:
                return await original(self, *args, **kwargs)
            args, completion, has_callback = _prepare(args, span)
            span.start(WS_SPAN_NAME, WS_SPAN_CATEGORY)
            try:
                result = await original(self, *args, **kwargs)
            except BaseException:
                completion.finish()
                raise
            if not has_callback:
                completion.finish()
            return result

        return wrapped_send_async

    @functools.wraps(original)
    def wrapped_send(self: Any, *args: Any, **kwargs: Any) -> Any:
        span = span_accessor()
        _log_intercept(class_name, span)
        if span is None:
            return original(self, *args, **kwargs)
        args, completion, has_callback = _prepare(args, span)
        span.start(WS_SPAN_NAME, WS_SPAN_CATEGORY)
        try:
            result = original(self, *args, **kwargs)
        except BaseException:
            completion.finish()
            raise
        if not has_callback:
            completion.finish()
        return result

    return wrapped_send
