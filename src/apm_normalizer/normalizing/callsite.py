"""Call-site normalization into `StackFrame` records with bounded source context.

For each frame the policy quadrant (error/span x app/library) selects how many
lines of context to attach:

    N == 0                     -> no pre_context / context_line / post_context
    N > 0, file on disk        -> up to N lines before and after, clamped at
                                  the file boundaries, plus the line itself
    runtime pseudo-file        -> never any context, whatever N is

The origin tag only decides N; it never decides whether the read happens.

Failure Semantics:
    Any failure to read or window the file (missing, unreadable, line outside
    the file) drops the three context fields for that single frame and is
    logged at debug level. Normalization itself never fails.

Fan-out:
    `parse_callsites` normalizes a whole stack concurrently; `asyncio.gather`
    hands results back in submission order, so frame order is preserved
    regardless of which read finishes first.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..callsites import CallSite, is_runtime_path
from ..models.records import SourceLinePolicy, StackFrame
from .source_context import SourceCache, context_window, load_source_lines

logger = logging.getLogger(__name__)

__all__ = ["parse_callsite", "parse_callsites"]


async def parse_callsite(
    callsite: CallSite,
    is_error_frame: bool,
    policy: SourceLinePolicy,
    *,
    cache: Optional[SourceCache] = None,
) -> StackFrame:
    """Normalize one call site.

    Args:
        callsite: Raw frame descriptor captured by the instrumentation layer.
        is_error_frame: True for frames of an error, False for span frames.
        policy: Source line counters per frame class and origin.
        cache: Optional read-through cache of source file lines.

    Returns:
        The normalized `StackFrame`.
    """
    fields: Dict[str, Any] = {
        "filename": callsite.filename,
        "lineno": callsite.lineno,
        "function": callsite.function,
        "library_frame": callsite.library_frame,
        "abs_path": callsite.abs_path,
    }
    lines = policy.lines_for(is_error_frame, callsite.library_frame)
    if lines > 0 and not is_runtime_path(callsite.abs_path):
        window = await _read_window(callsite, lines, cache)
        if window is not None:
            pre, line, post = window
            fields["pre_context"] = pre
            fields["context_line"] = line
            fields["post_context"] = post
    return StackFrame(**fields)


async def _read_window(callsite: CallSite, lines: int, cache: Optional[SourceCache]):
    try:
        source = await load_source_lines(callsite.abs_path, cache)
    except Exception as e:  # unreadable, removed after capture, not a regular file
        logger.debug("Omitting source context for %s: %s", callsite.abs_path, e)
        return None
    window = context_window(source, callsite.lineno, lines)
    if window is None:
        logger.debug(
            "Omitting source context for %s: line %d outside file of %d lines",
            callsite.abs_path,
            callsite.lineno,
            len(source),
        )
    return window


async def parse_callsites(
    callsites: Sequence[CallSite],
    is_error_frame: bool,
    policy: SourceLinePolicy,
    *,
    cache: Optional[SourceCache] = None,
) -> List[StackFrame]:
    """Normalize every call site concurrently, preserving their order."""
    if not callsites:
        return []
    frames = await asyncio.gather(
        *(parse_callsite(site, is_error_frame, policy, cache=cache) for site in callsites)
    )
    return list(frames)
