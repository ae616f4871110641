from __future__ import annotations

import asyncio
import threading
import time

import pytest

from apm_normalizer.normalizing import source_context
from apm_normalizer.normalizing.source_context import (
    SourceCache,
    context_window,
    load_source_lines,
    read_source_lines,
)

LINES = [f"line {n}" for n in range(1, 11)]


def test_context_window_middle():
    assert context_window(LINES, 5, 2) == (["line 3", "line 4"], "line 5", ["line 6", "line 7"])


def test_context_window_clamps_at_boundaries():
    assert context_window(LINES, 1, 3) == ([], "line 1", ["line 2", "line 3", "line 4"])
    assert context_window(LINES, 10, 3) == (["line 7", "line 8", "line 9"], "line 10", [])


def test_context_window_outside_file():
    assert context_window(LINES, 0, 3) is None
    assert context_window(LINES, 11, 3) is None


def test_read_source_lines_handles_all_line_endings(tmp_path):
    path = tmp_path / "mixed.txt"
    path.write_bytes(b"one\r\ntwo\rthree\n  four\n")
    assert read_source_lines(str(path)) == ("one", "two", "three", "  four")


@pytest.mark.asyncio
async def test_cache_reads_each_file_once(tmp_path, monkeypatch):
    path = tmp_path / "src.py"
    path.write_text("a\nb\n", encoding="utf-8")
    calls = []
    real_read = source_context.read_source_lines

    def counting_read(p):
        calls.append(p)
        return real_read(p)

    monkeypatch.setattr(source_context, "read_source_lines", counting_read)
    cache = SourceCache()
    first, second = await asyncio.gather(cache.get(str(path)), cache.get(str(path)))
    third = await cache.get(str(path))
    assert first == second == third == ("a", "b")
    assert calls == [str(path)]
    assert str(path) in cache
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_failed_reads_are_not_cached(tmp_path):
    cache = SourceCache()
    missing = str(tmp_path / "missing.py")
    with pytest.raises(FileNotFoundError):
        await cache.get(missing)
    assert missing not in cache


@pytest.mark.asyncio
async def test_load_without_cache(tmp_path):
    path = tmp_path / "plain.py"
    path.write_text("x = 1\n", encoding="utf-8")
    assert await load_source_lines(str(path)) == ("x = 1",)


def test_shared_cache_across_event_loops(tmp_path, monkeypatch):
    path = tmp_path / "shared.py"
    path.write_text("first\nsecond\n", encoding="utf-8")
    real_read = source_context.read_source_lines

    def slow_read(p):
        time.sleep(0.3)
        return real_read(p)

    monkeypatch.setattr(source_context, "read_source_lines", slow_read)
    cache = SourceCache()
    start = threading.Barrier(2)
    results = {}

    def worker(name):
        start.wait()
        try:
            results[name] = asyncio.run(cache.get(str(path)))
        except Exception as e:
            results[name] = e

    threads = [threading.Thread(target=worker, args=(name,)) for name in ("a", "b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)
    assert results == {"a": ("first", "second"), "b": ("first", "second")}
    assert str(path) in cache
