from __future__ import annotations

import json
import os
import threading
import time

import pytest

from apm_normalizer import callsites as callsites_module
from apm_normalizer.config import Settings
from apm_normalizer.errors import InvalidCaptureInput, StackRecoveryError
from apm_normalizer.models.records import SourceLinePolicy
from apm_normalizer.normalizing import error as error_module
from apm_normalizer.normalizing import source_context
from apm_normalizer.parsers import capture_exception, capture_span_stacktrace, parse_error

HERE = os.path.dirname(os.path.abspath(__file__))
THIS_FILE = os.path.basename(__file__)
FIVE_LINES = SourceLinePolicy(error_app_frames=5, error_library_frames=5)


def _raise_value_error():
    raise ValueError("Crap")


def _raise_bare():
    raise RuntimeError()


def _inner():
    raise KeyError("missing")


def _outer():
    _inner()


class Widget:
    def explode(self):
        raise TypeError("bad widget")


def _caught(fn):
    try:
        fn()
    except Exception as e:
        return e
    raise AssertionError("expected an exception")


def _source_line(lineno: int) -> str:
    with open(__file__, encoding="utf-8") as f:
        return f.read().split("\n")[lineno - 1]


def _assert_no_extra_keys(record):
    data = record.to_dict()
    for key in ("log", "code", "handled", "attributes"):
        assert key not in data


@pytest.mark.asyncio
async def test_parse_raised_error_with_message():
    exc = _caught(_raise_value_error)
    parsed = await parse_error(exc, FIVE_LINES, project_root=HERE)
    assert parsed.type == "ValueError"
    assert parsed.message == "Crap"
    assert parsed.culprit == f"_raise_value_error ({THIS_FILE})"
    assert len(parsed.stacktrace) > 0
    _assert_no_extra_keys(parsed)


@pytest.mark.asyncio
async def test_parse_error_without_message():
    exc = _caught(_raise_bare)
    parsed = await parse_error(exc, FIVE_LINES, project_root=HERE)
    assert parsed.type == "RuntimeError"
    assert parsed.message == ""


@pytest.mark.asyncio
async def test_parse_caught_real_error():
    try:
        o = {}
        o["..."]["Derp"]()
    except KeyError as e:
        parsed = await parse_error(e, FIVE_LINES, project_root=HERE)
    assert parsed.type == "KeyError"
    assert parsed.message == "'...'"
    assert parsed.culprit == f"test_parse_caught_real_error ({THIS_FILE})"
    frame = parsed.stacktrace[0]
    assert frame.context_line == _source_line(frame.lineno)
    assert "o[\"...\"][\"Derp\"]()" in frame.context_line


@pytest.mark.asyncio
async def test_frames_are_innermost_first():
    exc = _caught(_outer)
    parsed = await parse_error(exc, FIVE_LINES, project_root=HERE)
    functions = [frame.function for frame in parsed.stacktrace]
    assert functions[:2] == ["_inner", "_outer"]
    assert functions[-1] == "_caught"
    assert parsed.culprit == f"_inner ({THIS_FILE})"


@pytest.mark.asyncio
async def test_method_frames_use_qualified_names():
    exc = _caught(Widget().explode)
    parsed = await parse_error(exc, FIVE_LINES, project_root=HERE)
    assert parsed.stacktrace[0].function in ("Widget.explode", "explode")


@pytest.mark.asyncio
async def test_context_windows_follow_policy():
    exc = _caught(_outer)
    policy = SourceLinePolicy(error_app_frames=2, error_library_frames=0)
    parsed = await parse_error(exc, policy, project_root=HERE)
    for frame in parsed.stacktrace:
        assert frame.library_frame is False
        assert frame.abs_path == os.path.abspath(__file__)
        assert frame.filename == THIS_FILE
        assert frame.context_line == _source_line(frame.lineno)
        assert len(frame.pre_context) == min(2, frame.lineno - 1)
        assert len(frame.post_context) == 2


@pytest.mark.asyncio
async def test_never_raised_error_has_empty_stack():
    parsed = await parse_error(Exception(), FIVE_LINES)
    assert parsed.to_dict() == {"type": "Exception", "message": "", "stacktrace": []}


@pytest.mark.asyncio
async def test_cleared_traceback_degrades_gracefully():
    exc = _caught(_raise_value_error).with_traceback(None)
    parsed = await parse_error(exc, FIVE_LINES)
    assert "culprit" not in parsed.to_dict()
    assert parsed.message == "Crap"
    assert parsed.type == "ValueError"
    assert parsed.stacktrace == []
    _assert_no_extra_keys(parsed)


@pytest.mark.asyncio
async def test_exclude_source_context():
    exc = _caught(_outer)
    parsed = await parse_error(exc, SourceLinePolicy(error_app_frames=0, error_library_frames=0))
    assert len(parsed.stacktrace) > 0
    for frame in parsed.stacktrace:
        data = frame.to_dict()
        for key in ("filename", "lineno", "function", "library_frame", "abs_path"):
            assert key in data
        for key in ("pre_context", "context_line", "post_context"):
            assert key not in data


@pytest.mark.asyncio
async def test_exclude_source_context_for_library_frames_only():
    exc = _caught(lambda: json.loads("{"))
    parsed = await parse_error(exc, SourceLinePolicy(error_app_frames=3, error_library_frames=0))
    library = [f for f in parsed.stacktrace if f.library_frame]
    app = [f for f in parsed.stacktrace if not f.library_frame]
    assert library and app
    assert parsed.stacktrace[0].library_frame is True
    for frame in library:
        assert "context_line" not in frame.to_dict()
    for frame in app:
        assert isinstance(frame.context_line, str) and frame.context_line
        assert isinstance(frame.pre_context, list)
        assert isinstance(frame.post_context, list)


@pytest.mark.asyncio
async def test_parsing_twice_is_identical():
    exc = _caught(_outer)
    first = await parse_error(exc, FIVE_LINES, project_root=HERE)
    second = await parse_error(exc, FIVE_LINES, project_root=HERE)
    assert first.to_json() == second.to_json()


@pytest.mark.asyncio
async def test_non_exception_input_is_rejected():
    with pytest.raises(InvalidCaptureInput):
        await parse_error("not an exception", FIVE_LINES)
    with pytest.raises(TypeError):
        await parse_error(None, FIVE_LINES)


@pytest.mark.asyncio
async def test_walk_failure_surfaces_as_stack_recovery_error(monkeypatch):
    def broken(tb, project_root=None):
        raise RuntimeError("frame objects unavailable")

    monkeypatch.setattr(callsites_module, "callsites_from_traceback", broken)
    with pytest.raises(StackRecoveryError):
        await parse_error(_caught(_outer), FIVE_LINES)


def test_capture_exception_uses_settings():
    settings = Settings(
        _env_file=None,
        SOURCE_LINES_ERROR_APP_FRAMES=1,
        SOURCE_CACHE_ENABLED=False,
        PROJECT_ROOT=HERE,
    )
    parsed = capture_exception(_caught(_raise_value_error), settings)
    assert parsed.culprit == f"_raise_value_error ({THIS_FILE})"
    top = parsed.stacktrace[0]
    assert top.context_line == '    raise ValueError("Crap")'
    assert top.pre_context == ["def _raise_value_error():"]
    assert len(top.post_context) == 1


@pytest.mark.asyncio
async def test_capture_span_stacktrace_uses_span_counters():
    settings = Settings(
        _env_file=None,
        SOURCE_LINES_SPAN_APP_FRAMES=1,
        SOURCE_LINES_SPAN_LIBRARY_FRAMES=0,
        PROJECT_ROOT=HERE,
    )
    frames = await capture_span_stacktrace(settings)
    top = frames[0]
    assert top.function == "test_capture_span_stacktrace_uses_span_counters"
    assert top.library_frame is False
    assert "capture_span_stacktrace(settings)" in top.context_line
    for frame in frames:
        if frame.library_frame:
            assert "context_line" not in frame.to_dict()


def test_concurrent_captures_share_cache_across_threads(monkeypatch):
    real_read = source_context.read_source_lines

    def slow_read(path):
        time.sleep(0.3)
        return real_read(path)

    monkeypatch.setattr(source_context, "read_source_lines", slow_read)
    monkeypatch.setattr(error_module, "_shared_cache", None)
    settings = Settings(
        _env_file=None,
        SOURCE_LINES_ERROR_APP_FRAMES=1,
        SOURCE_CACHE_ENABLED=True,
        PROJECT_ROOT=HERE,
    )
    start = threading.Barrier(2)
    results = {}

    def worker(name):
        exc = _caught(_raise_value_error)
        start.wait()
        results[name] = capture_exception(exc, settings)

    threads = [threading.Thread(target=worker, args=(name,)) for name in ("a", "b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)
    for name in ("a", "b"):
        assert results[name].stacktrace[0].context_line == '    raise ValueError("Crap")'
