"""Capture-time call-site descriptors from tracebacks and live stacks.

A `CallSite` is the raw frame descriptor handed to the call-site normalizer.
Everything that depends on the running interpreter (resolved paths, the
sanitized function name, the application/library origin tag) is computed
here, once per frame, so the normalizer only deals with plain data.

Origin Classification (`is_library_path`):
    - Runtime pseudo-files ("<frozen importlib._bootstrap>", "<string>") -> library
    - Any path segment named site-packages / dist-packages -> library
    - Files below the interpreter's standard library directories -> library
    - Everything else -> application

Frame Order:
    All capture helpers return frames innermost first (the raising or current
    frame at index 0), the reverse of `traceback.walk_tb` order.
"""
from __future__ import annotations

import logging
import os
import sys
import sysconfig
import traceback
from dataclasses import dataclass
from types import FrameType, TracebackType
from typing import Iterable, List, Optional, Tuple

from .errors import InvalidCaptureInput, StackRecoveryError

logger = logging.getLogger(__name__)

__all__ = [
    "CallSite",
    "callsite_from_frame",
    "callsites_from_traceback",
    "callsites_from_exception",
    "callsites_from_stack",
    "is_runtime_path",
    "is_library_path",
    "relative_filename",
    "sanitize_function_name",
]

_LIBRARY_DIR_NAMES = frozenset({"site-packages", "dist-packages"})


def _stdlib_dirs() -> Tuple[str, ...]:
    paths = sysconfig.get_paths()
    dirs = {os.path.realpath(paths[key]) for key in ("stdlib", "platstdlib") if paths.get(key)}
    return tuple(sorted(dirs))


_STDLIB_DIRS = _stdlib_dirs()


@dataclass(frozen=True)
class CallSite:
    """One raw stack entry with its origin already classified."""

    abs_path: str
    filename: str
    lineno: int
    function: str
    library_frame: bool

    @property
    def culprit(self) -> str:
        return f"{self.function} ({self.filename})"


def is_runtime_path(path: str) -> bool:
    """True for interpreter pseudo-filenames that have no file on disk."""
    return not path or (path.startswith("<") and path.endswith(">"))


def is_library_path(path: str) -> bool:
    if is_runtime_path(path) or not os.path.isabs(path):
        return True
    parts = path.replace("\\", "/").split("/")
    if _LIBRARY_DIR_NAMES.intersection(parts):
        return True
    real = os.path.realpath(path)
    return any(real == d or real.startswith(d + os.sep) for d in _STDLIB_DIRS)


def relative_filename(abs_path: str, project_root: Optional[str] = None) -> str:
    """Path of `abs_path` relative to `project_root` (CWD), else `abs_path` itself."""
    if is_runtime_path(abs_path):
        return abs_path
    root = os.path.abspath(project_root or os.getcwd())
    try:
        rel = os.path.relpath(abs_path, root)
    except ValueError:  # different drive
        return abs_path
    if rel == os.pardir or rel.startswith(os.pardir + os.sep):
        return abs_path
    return rel


def sanitize_function_name(code) -> str:
    """Qualified function name with `<locals>.` segments removed."""
    name = getattr(code, "co_qualname", None) or code.co_name
    return name.replace("<locals>.", "") or "<anonymous>"


def callsite_from_frame(
    frame: FrameType, lineno: Optional[int], project_root: Optional[str] = None
) -> CallSite:
    code = frame.f_code
    raw = code.co_filename
    abs_path = raw if is_runtime_path(raw) else os.path.abspath(raw)
    return CallSite(
        abs_path=abs_path,
        filename=relative_filename(abs_path, project_root),
        lineno=lineno if lineno is not None else code.co_firstlineno,
        function=sanitize_function_name(code),
        library_frame=is_library_path(abs_path),
    )


def _build(
    entries: Iterable[Tuple[FrameType, Optional[int]]], project_root: Optional[str]
) -> List[CallSite]:
    return [callsite_from_frame(frame, lineno, project_root) for frame, lineno in entries]


def callsites_from_traceback(
    tb: Optional[TracebackType], project_root: Optional[str] = None
) -> List[CallSite]:
    """Call sites of a traceback chain, innermost first."""
    if tb is None:
        return []
    sites = _build(traceback.walk_tb(tb), project_root)
    sites.reverse()
    return sites


def callsites_from_exception(exc: BaseException, project_root: Optional[str] = None) -> List[CallSite]:
    """Call sites recorded on `exc`, innermost first.

    An exception that was never raised, or whose traceback was cleared, yields
    an empty list.

    Raises:
        InvalidCaptureInput: If `exc` is not an exception instance.
        StackRecoveryError: If the traceback cannot be walked at all.
    """
    if not isinstance(exc, BaseException):
        raise InvalidCaptureInput(f"expected an exception instance, got {type(exc).__name__}")
    tb = getattr(exc, "__traceback__", None)
    if not isinstance(tb, TracebackType):
        logger.debug("No traceback recorded on %s; stack unavailable", type(exc).__name__)
        return []
    try:
        return callsites_from_traceback(tb, project_root)
    except Exception as e:
        raise StackRecoveryError(f"failed to walk traceback of {type(exc).__name__}") from e


def callsites_from_stack(
    frame: Optional[FrameType] = None,
    *,
    skip: int = 0,
    limit: Optional[int] = None,
    project_root: Optional[str] = None,
) -> List[CallSite]:
    """Call sites of the live stack starting at `frame` (default: the caller), innermost first."""
    if frame is None:
        frame = sys._getframe(1)
    for _ in range(skip):
        if frame.f_back is None:
            break
        frame = frame.f_back
    entries = list(traceback.walk_stack(frame))
    if limit is not None:
        entries = entries[:limit]
    return _build(entries, project_root)
