"""Log value normalization and single-line structural rendering.

Turns an arbitrary "log-like" value into a `LogRecord`:

    "Howdy"                                  -> message="Howdy"
    {"message": "foo%s", "params": ["bar"]}  -> message="foobar", param_message="foo%s"
    {"foo": re.compile("bar")}               -> message="{ foo: /bar/ }"
    None                                     -> message="null"

Formatting Rules (`format_params`):
    %s  display form        %d  number            %i  integer
    %f  float               %j  compact JSON      %o/%O  structural rendering
    %%  literal percent (only when parameters are supplied)
    A specifier left without a parameter stays verbatim; surplus parameters
    are appended space separated.

Rendering Rules (`render_value`):
    - Mappings as `{ key: value }`, identifier keys bare, others single-quoted
    - Sequences and sets as `[ a, b ]`
    - Nested strings single-quoted, newlines escaped (output is one line)
    - Compiled patterns as `/pattern/flags`
    - Plain objects as `ClassName { attr: value }`
    - Nesting deeper than 2 levels collapses to `[Object]` / `[Array]`

Design Notes:
    - Never raises: any rendering failure falls back to `object.__repr__`
    - Pure functions, no state retained between calls
"""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import Any, List, Sequence

from ..models.records import LogRecord

logger = logging.getLogger(__name__)

__all__ = ["parse_message", "format_params", "render_value"]

_FORMAT_RE = re.compile(r"%[sdifjoO%]")
_IDENT_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_MAX_DEPTH = 2
_PATTERN_FLAGS = (
    (re.ASCII, "a"),
    (re.IGNORECASE, "i"),
    (re.MULTILINE, "m"),
    (re.DOTALL, "s"),
    (re.VERBOSE, "x"),
)


def parse_message(msg: Any) -> LogRecord:
    """Normalize an arbitrary log value into a `LogRecord`.

    Args:
        msg: A string, a mapping carrying a `message` template and optional
            `params`, any other object, or None.

    Returns:
        A `LogRecord`. `param_message` is only set for template mappings.
    """
    if isinstance(msg, str):
        return LogRecord(message=msg)
    if msg is None:
        return LogRecord(message="null")
    try:
        if isinstance(msg, Mapping):
            template = msg.get("message")
            if isinstance(template, str) and template:
                params = _as_params(msg.get("params"))
                return LogRecord(
                    message=format_params(template, params),
                    param_message=template,
                )
            return LogRecord(message=render_value(msg))
        if isinstance(msg, (list, tuple, set, frozenset, re.Pattern)) or _is_plain_object(msg):
            return LogRecord(message=render_value(msg))
        return LogRecord(message=str(msg))
    except Exception as e:  # __str__ or __repr__ raised
        logger.debug("Falling back to bare repr for log value of type %s: %s", type(msg).__name__, e)
        return LogRecord(message=object.__repr__(msg))


def _as_params(params: Any) -> List[Any]:
    if params is None:
        return []
    if isinstance(params, (list, tuple)):
        return list(params)
    return [params]


def format_params(template: str, params: Sequence[Any]) -> str:
    """Substitute positional printf-style specifiers in `template`.

    With no parameters the template is returned untouched (including `%%`).
    """
    if not params:
        return template
    args = list(params)
    consumed = 0

    def _sub(match: re.Match[str]) -> str:
        nonlocal consumed
        spec = match.group(0)
        if spec == "%%":
            return "%"
        if consumed >= len(args):
            return spec
        value = args[consumed]
        consumed += 1
        return _convert(spec[1], value)

    out = _FORMAT_RE.sub(_sub, template)
    if consumed < len(args):
        out = " ".join([out] + [_display(a) for a in args[consumed:]])
    return out


def _convert(kind: str, value: Any) -> str:
    if kind == "s":
        return _display(value)
    if kind in ("d", "i", "f"):
        try:
            num = float(value)
        except (TypeError, ValueError):
            return "NaN"
        if kind == "f":
            return str(num)
        if kind == "i" or num.is_integer():
            try:
                return str(int(num))
            except (OverflowError, ValueError):  # inf / nan
                return str(num)
        return str(num)
    if kind == "j":
        try:
            return json.dumps(value, separators=(",", ":"), default=str)
        except (TypeError, ValueError):
            return "[Unserializable]"
    return render_value(value, nested=True)


def _display(value: Any) -> str:
    if isinstance(value, str):
        return value
    return render_value(value)


def render_value(value: Any, depth: int = 0, *, nested: bool = False) -> str:
    """Render `value` as a single human-readable line."""
    if isinstance(value, str):
        return _quote(value) if nested else value
    if isinstance(value, re.Pattern):
        return _render_pattern(value)
    if isinstance(value, Mapping):
        if not value:
            return "{}"
        if depth >= _MAX_DEPTH + 1:
            return "[Object]"
        return _render_items(value.items(), depth)
    if isinstance(value, (list, tuple, set, frozenset)):
        if not value:
            return "[]"
        if depth >= _MAX_DEPTH + 1:
            return "[Array]"
        return "[ " + ", ".join(render_value(v, depth + 1, nested=True) for v in value) + " ]"
    if _is_plain_object(value):
        attrs = vars(value)
        name = type(value).__name__
        if not attrs:
            return f"{name} {{}}"
        if depth >= _MAX_DEPTH + 1:
            return f"[{name}]"
        return f"{name} " + _render_items(attrs.items(), depth)
    return _single_line(str(value))


def _render_items(items: Any, depth: int) -> str:
    parts = [f"{_render_key(k)}: {render_value(v, depth + 1, nested=True)}" for k, v in items]
    return "{ " + ", ".join(parts) + " }"


def _render_key(key: Any) -> str:
    text = str(key)
    if _IDENT_RE.match(text):
        return text
    return _quote(text)


def _single_line(text: str) -> str:
    return text.replace("\r", "\\r").replace("\n", "\\n")


def _quote(text: str) -> str:
    escaped = (
        text.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f"'{escaped}'"


def _render_pattern(pattern: re.Pattern[Any]) -> str:
    source = pattern.pattern
    if isinstance(source, bytes):
        source = source.decode("utf-8", errors="replace")
    # re.UNICODE is implied for str patterns and never shown
    flags = "".join(letter for flag, letter in _PATTERN_FLAGS if pattern.flags & flag)
    return f"/{source}/{flags}"


def _is_plain_object(value: Any) -> bool:
    """True for instances of user classes relying on the default repr."""
    cls = type(value)
    return cls.__repr__ is object.__repr__ and hasattr(value, "__dict__") and not isinstance(value, type)
