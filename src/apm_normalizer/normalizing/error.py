"""Exception parsing into `ExceptionRecord` with a normalized stack trace.

Pipeline:
    1. type = exception class name, message = str(exc) ("" when empty)
    2. call sites recovered from exc.__traceback__, innermost first
    3. culprit = "<function> (<filename>)" of the innermost call site
    4. stacktrace = one StackFrame per call site, normalized concurrently as
       error frames, reassembled in original order

A missing traceback (exception never raised, or cleared with
`with_traceback(None)`) is not an error: culprit stays unset and the stack
trace is empty. Only a caller contract violation (`InvalidCaptureInput`) or a
traceback that cannot be walked at all (`StackRecoveryError`) is raised.

The record never carries log, code, handled or attributes; callers add those.
"""
from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

from ..callsites import callsites_from_exception, callsites_from_stack
from ..config import Settings
from ..models.records import ExceptionRecord, SourceLinePolicy, StackFrame
from .callsite import parse_callsites
from .source_context import SourceCache

logger = logging.getLogger(__name__)

__all__ = ["parse_error", "capture_exception", "capture_span_stacktrace"]


async def parse_error(
    exc: BaseException,
    policy: SourceLinePolicy,
    *,
    project_root: Optional[str] = None,
    cache: Optional[SourceCache] = None,
) -> ExceptionRecord:
    """Build the `ExceptionRecord` of `exc`.

    Args:
        exc: The exception to describe.
        policy: Source line counters; error-frame quadrants apply.
        project_root: Base for relative filenames (defaults to the CWD).
        cache: Optional read-through cache of source file lines.

    Raises:
        InvalidCaptureInput: If `exc` is not an exception instance.
        StackRecoveryError: If the traceback cannot be walked.
    """
    callsites = callsites_from_exception(exc, project_root)
    fields: Dict[str, Any] = {
        "type": type(exc).__name__,
        "message": _message_of(exc),
    }
    if callsites:
        fields["culprit"] = callsites[0].culprit
    fields["stacktrace"] = await parse_callsites(callsites, True, policy, cache=cache)
    logger.debug(
        "Parsed %s with %d frame(s)", fields["type"], len(fields["stacktrace"])
    )
    return ExceptionRecord(**fields)


def _message_of(exc: BaseException) -> str:
    try:
        return str(exc)
    except Exception as e:  # broken __str__
        logger.debug("str() of %s failed: %s", type(exc).__name__, e)
        return ""


_shared_cache: Optional[SourceCache] = None


def _cache_for(settings: Settings) -> Optional[SourceCache]:
    global _shared_cache
    if not settings.SOURCE_CACHE_ENABLED:
        return None
    if _shared_cache is None:
        _shared_cache = SourceCache()
    return _shared_cache


def capture_exception(exc: BaseException, settings: Settings) -> ExceptionRecord:
    """Synchronous `parse_error` for callers without a running event loop."""
    return asyncio.run(
        parse_error(
            exc,
            settings.source_line_policy(),
            project_root=settings.PROJECT_ROOT,
            cache=_cache_for(settings),
        )
    )


async def capture_span_stacktrace(
    settings: Settings,
    *,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[StackFrame]:
    """Normalize the caller's live stack as span frames.

    `skip` drops that many additional innermost frames (e.g. instrumentation
    wrappers) before capture.
    """
    callsites = callsites_from_stack(
        sys._getframe(1), skip=skip, limit=limit, project_root=settings.PROJECT_ROOT
    )
    return await parse_callsites(
        callsites, False, settings.source_line_policy(), cache=_cache_for(settings)
    )
