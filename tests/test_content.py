from __future__ import annotations

from session_atlas.core.content import (
    FIRST_PROMPT_LENGTH,
    flatten_tool_result,
    format_mtime,
    pretty_arguments,
    short_name_from_path,
    stringify_output,
    truncate_text,
)


def test_truncate_text_keeps_short_text() -> None:
    assert truncate_text("hello", 10) == "hello"
    assert truncate_text("x" * 10, 10) == "x" * 10


def test_truncate_text_counts_characters_not_bytes() -> None:
    text = "é" * 150
    truncated = truncate_text(text, FIRST_PROMPT_LENGTH)
    assert truncated == "é" * 100 + "..."


def test_pretty_arguments_reparses_json_strings() -> None:
    assert pretty_arguments('{"cmd": ["ls"]}') == '{\n  "cmd": [\n    "ls"\n  ]\n}'
    assert pretty_arguments("not json") == "not json"
    assert pretty_arguments(None) == ""
    assert pretty_arguments({"a": 1}) == '{\n  "a": 1\n}'


def test_stringify_output() -> None:
    assert stringify_output("plain") == "plain"
    assert stringify_output(None) == ""
    assert stringify_output({"ok": True}) == '{\n  "ok": true\n}'


def test_flatten_tool_result_joins_text_items() -> None:
    content = [
        {"type": "text", "text": "first"},
        {"type": "image", "source": {}},
        {"type": "text", "text": "second"},
    ]
    assert flatten_tool_result(content) == "first\nsecond"
    assert flatten_tool_result("raw") == "raw"
    assert flatten_tool_result(None) == ""


def test_short_name_from_path() -> None:
    assert short_name_from_path("/home/dev/project") == "project"
    assert short_name_from_path("/home/dev/project/") == "project"
    assert short_name_from_path("C:\\Users\\dev\\repo") == "repo"
    assert short_name_from_path("solo") == "solo"
    assert short_name_from_path("") == ""


def test_format_mtime_is_utc_iso() -> None:
    assert format_mtime(0) == "1970-01-01T00:00:00+00:00"
    assert format_mtime(86400.9) == "1970-01-02T00:00:00+00:00"
