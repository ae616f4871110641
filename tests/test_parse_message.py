from __future__ import annotations

import re

from apm_normalizer.parsers import parse_message


def test_parse_string():
    assert parse_message("Howdy").to_dict() == {"message": "Howdy"}


def test_parse_template_object():
    record = parse_message({"message": "foo%s", "params": ["bar"]})
    assert record.to_dict() == {"message": "foobar", "param_message": "foo%s"}


def test_parse_invalid_object_renders_structure():
    record = parse_message({"foo": re.compile("bar")})
    assert record.to_dict() == {"message": "{ foo: /bar/ }"}


def test_parse_none():
    assert parse_message(None).to_dict() == {"message": "null"}


def test_missing_params_leaves_template_untouched():
    record = parse_message({"message": "100%% sure %s"})
    assert record.message == "100%% sure %s"
    assert record.param_message == "100%% sure %s"


def test_surplus_params_are_appended():
    assert parse_message({"message": "a %s", "params": ["b", "c"]}).message == "a b c"


def test_specifier_without_param_stays_verbatim():
    assert parse_message({"message": "%s and %s", "params": ["x"]}).message == "x and %s"


def test_numeric_and_json_specifiers():
    assert parse_message({"message": "%d items", "params": ["3"]}).message == "3 items"
    assert parse_message({"message": "%i", "params": [4.7]}).message == "4"
    assert parse_message({"message": "%d", "params": ["nope"]}).message == "NaN"
    assert parse_message({"message": "%j", "params": [{"a": 1}]}).message == '{"a":1}'
    assert parse_message({"message": "%s%%", "params": [5]}).message == "5%"


def test_scalar_params_value_is_wrapped():
    assert parse_message({"message": "hi %s", "params": "there"}).message == "hi there"


def test_object_without_message_has_no_param_message():
    record = parse_message({"msg": "nope"})
    assert record.to_dict() == {"message": "{ msg: 'nope' }"}


def test_nested_rendering_and_quoted_keys():
    record = parse_message({"a": [1, "x"], "b c": None})
    assert record.message == "{ a: [ 1, 'x' ], 'b c': None }"


def test_deep_nesting_collapses():
    record = parse_message({"a": {"b": {"c": {"d": 1}}}})
    assert record.message == "{ a: { b: { c: [Object] } } }"


def test_plain_object_rendering():
    class Point:
        def __init__(self):
            self.x = 1
            self.y = 2

    assert parse_message(Point()).message == "Point { x: 1, y: 2 }"


def test_pattern_flags_and_single_line_output():
    record = parse_message({"re": re.compile("bar", re.IGNORECASE), "text": "two\nlines"})
    assert record.message == "{ re: /bar/i, text: 'two\\nlines' }"
    assert "\n" not in record.message


def test_scalars_use_display_form():
    assert parse_message(42).message == "42"
    assert parse_message([]).message == "[]"
    assert parse_message({}).message == "{}"


def test_never_raises_on_broken_objects():
    class Broken:
        def __str__(self):
            raise RuntimeError("boom")

        def __repr__(self):
            raise RuntimeError("boom")

    record = parse_message(Broken())
    assert record.message.startswith("<")
    assert record.param_message is None


def test_nested_objects_with_multiline_text_stay_on_one_line():
    record = parse_message({"err": ValueError("a\nb\r\nc")})
    assert record.message == "{ err: a\\nb\\r\\nc }"
    assert "\n" not in record.message
    assert "\r" not in record.message
    assert "\n" not in parse_message([ValueError("x\ny")]).message
