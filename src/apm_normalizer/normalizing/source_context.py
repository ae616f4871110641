"""Bounded source line windows and a read-through cache of source files.

Reading a source file is the only blocking operation in the pipeline. The
cache performs it in a worker thread (`asyncio.to_thread`) so a slow or
failing read never stalls other captures sharing the event loop.

Cache Semantics:
    - Keyed by absolute path, entries are immutable tuples of lines
    - Read-through: a miss reads the file, a hit never touches the disk
    - Concurrent misses for one path on one event loop share a single read;
      captures on other loops (other threads) read on their own
    - Failed reads are not cached; the exception reaches every waiter
    - No invalidation; lifetime is the lifetime of the cache object

Line Splitting:
    "\\r\\n", "\\r" and "\\n" all terminate a line, matching the interpreter's
    line numbering; terminators are removed.
"""
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

__all__ = ["SourceCache", "read_source_lines", "load_source_lines", "context_window"]


def read_source_lines(path: str) -> Tuple[str, ...]:
    """Blocking read of `path` split into lines without terminators."""
    with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
        text = f.read()
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return tuple(lines)


def context_window(
    lines: Sequence[str], lineno: int, n: int
) -> Optional[Tuple[List[str], str, List[str]]]:
    """Return (pre_context, context_line, post_context) around 1-based `lineno`.

    `pre_context` and `post_context` hold up to `n` lines each, clamped at the
    file boundaries. Returns None when `lineno` lies outside the file.
    """
    if lineno < 1 or lineno > len(lines):
        return None
    idx = lineno - 1
    pre = list(lines[max(0, idx - n):idx])
    post = list(lines[idx + 1:idx + 1 + n])
    return pre, lines[idx], post


class SourceCache:
    """Read-through cache of source file lines keyed by absolute path."""

    def __init__(self) -> None:
        self._lines: Dict[str, Tuple[str, ...]] = {}
        self._inflight: Dict[
            Tuple[asyncio.AbstractEventLoop, str], "asyncio.Future[Tuple[str, ...]]"
        ] = {}

    def __contains__(self, path: object) -> bool:
        return path in self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def clear(self) -> None:
        self._lines.clear()

    async def get(self, path: str) -> Tuple[str, ...]:
        cached = self._lines.get(path)
        if cached is not None:
            return cached
        # futures are bound to the loop that created them
        key = (asyncio.get_running_loop(), path)
        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(asyncio.to_thread(read_source_lines, path))
            self._inflight[key] = pending
            pending.add_done_callback(lambda _f: self._inflight.pop(key, None))
        lines = await asyncio.shield(pending)
        self._lines[path] = lines
        return lines


async def load_source_lines(path: str, cache: Optional[SourceCache] = None) -> Tuple[str, ...]:
    """Read `path` off the event loop, through `cache` when given."""
    if cache is not None:
        return await cache.get(path)
    return await asyncio.to_thread(read_source_lines, path)
