from __future__ import annotations

from pathlib import Path

from session_atlas.core.search import SearchEngine
from session_atlas.core.stats import codex_stats
from session_atlas.ingest.codex import CodexProvider, TokenInfo, extract_date_from_path
from session_atlas.storage.models import (
    FunctionCallBlock,
    FunctionCallOutputBlock,
    ReasoningBlock,
    TextBlock,
)

JAN_15 = 1768435200  # 2026-01-15T00:00:00Z
JAN_16 = JAN_15 + 86400


def _provider(codex_home) -> CodexProvider:
    return CodexProvider(codex_dir=codex_home.root)


class TestDecoding:
    def test_decodes_response_items(self, codex_home) -> None:
        records = [
            codex_home.meta("rollout-1", "/work/alpha"),
            codex_home.message("user", "Add tests"),
            codex_home.message("developer", "You are a coding agent"),
            codex_home.message("assistant", "Working on it"),
            codex_home.function_call("shell", '{"command":["ls"]}'),
            codex_home.function_call_output("file.txt"),
            codex_home.reasoning(
                [
                    {"type": "summary_text", "text": "Step 1"},
                    {"type": "summary_text", "text": "Step 2"},
                ]
            ),
            codex_home.token_count(10, 5),
            "{truncated",
        ]
        path = codex_home.session("2026-01-15", "rollout-1", records)

        messages = _provider(codex_home).materialize(path)

        assert [message.role for message in messages] == [
            "user",
            "assistant",
            "assistant",
            "tool",
            "assistant",
        ]
        assert messages[0].content == [TextBlock(text="Add tests")]
        assert messages[1].content == [TextBlock(text="Working on it")]

        (call,) = messages[2].content
        assert isinstance(call, FunctionCallBlock)
        assert call.name == "shell"
        assert call.call_id == "call-1"
        assert call.arguments == '{\n  "command": [\n    "ls"\n  ]\n}'

        (output,) = messages[3].content
        assert isinstance(output, FunctionCallOutputBlock)
        assert output.output == "file.txt"

        (reasoning,) = messages[4].content
        assert isinstance(reasoning, ReasoningBlock)
        assert reasoning.text == "Step 1\nStep 2"

    def test_oversized_payloads_are_truncated(self, codex_home) -> None:
        path = codex_home.session(
            "2026-01-15",
            "big",
            [
                codex_home.message("user", "x" * 20_001),
                codex_home.function_call("apply_patch", "a" * 10_050),
                codex_home.function_call_output("y" * 30_005),
            ],
        )

        user, call, output = _provider(codex_home).materialize(path)

        assert user.content[0].text == "x" * 20_000 + "..."
        assert call.content[0].arguments == "a" * 10_000 + "..."
        assert output.content[0].output == "y" * 30_000 + "..."

    def test_structured_output_is_pretty_printed(self, codex_home) -> None:
        path = codex_home.session(
            "2026-01-15",
            "structured",
            [codex_home.function_call_output({"exit_code": 0})],
        )
        (message,) = _provider(codex_home).materialize(path)
        assert message.content[0].output == '{\n  "exit_code": 0\n}'


class TestMetadata:
    def test_session_meta_within_first_lines(self, codex_home) -> None:
        path = codex_home.session(
            "2026-01-15",
            "meta",
            [codex_home.meta("rollout-9", "/work/alpha", branch="feature/x")],
        )
        meta = _provider(codex_home).extract_session_meta(path)
        assert meta is not None
        assert meta.id == "rollout-9"
        assert meta.cwd == "/work/alpha"
        assert meta.git_branch == "feature/x"
        assert meta.model_provider == "openai"
        assert meta.cli_version == "0.40.0"

    def test_session_meta_after_scan_window_is_ignored(self, codex_home) -> None:
        records = [codex_home.message("user", f"m{i}") for i in range(5)]
        records.append(codex_home.meta("late", "/work/late"))
        path = codex_home.session("2026-01-15", "late", records)
        assert _provider(codex_home).extract_session_meta(path) is None

    def test_count_messages_skips_non_conversation_roles(self, codex_home) -> None:
        path = codex_home.session(
            "2026-01-15",
            "count",
            [
                codex_home.meta("c", "/work/alpha"),
                codex_home.message("developer", "instructions"),
                codex_home.message("user", "hi"),
                codex_home.message("assistant", "hello"),
                codex_home.function_call("shell", "{}"),
            ],
        )
        assert _provider(codex_home).count_messages(path) == 2

    def test_first_prompt(self, codex_home) -> None:
        path = codex_home.session(
            "2026-01-15",
            "prompt",
            [codex_home.message("assistant", "ready"), codex_home.message("user", "p" * 120)],
        )
        assert _provider(codex_home).extract_first_prompt(path) == "p" * 100 + "..."

    def test_last_token_snapshot_wins(self, codex_home) -> None:
        path = codex_home.session(
            "2026-01-15",
            "tokens",
            [
                codex_home.token_count(10, 5),
                codex_home.message("user", "more"),
                codex_home.token_count(30, 12, total=45),
            ],
        )
        provider = _provider(codex_home)
        assert provider.extract_token_info(path) == TokenInfo(30, 12, 45)

        no_total = codex_home.session("2026-01-15", "no-total", [codex_home.token_count(7, 3)])
        assert provider.extract_token_info(no_total) == TokenInfo(7, 3, 10)

        empty = codex_home.session("2026-01-15", "empty", [codex_home.message("user", "x")])
        assert provider.extract_token_info(empty) is None


def test_extract_date_from_path() -> None:
    assert extract_date_from_path(Path("/h/sessions/2026/01/15/r.jsonl")) == "2026-01-15"
    assert extract_date_from_path(Path("/h/sessions/2026/1/5/r.jsonl")) == "2026-01-05"
    assert extract_date_from_path(Path("/h/sessions/misc/r.jsonl")) is None
    assert extract_date_from_path(Path("r.jsonl")) is None


class TestProjectsAndSessions:
    def _populate(self, codex_home) -> None:
        codex_home.session(
            "2026-01-15",
            "a",
            [
                codex_home.meta("sess-a", "/work/alpha"),
                codex_home.message("user", "alpha one"),
            ],
            mtime=JAN_15,
        )
        codex_home.session(
            "2026-01-16",
            "b",
            [
                codex_home.meta("sess-b", "/work/alpha", model_provider=None),
                codex_home.message("user", "alpha two"),
                codex_home.message("assistant", "done"),
            ],
            mtime=JAN_16,
        )
        codex_home.session(
            "2026-01-16",
            "c",
            [codex_home.meta("sess-c", "/work/beta")],
            mtime=JAN_16,
        )
        codex_home.session(
            "2026-01-16", "d", [codex_home.message("user", "no meta")], mtime=JAN_16
        )

    def test_projects_group_by_cwd(self, codex_home) -> None:
        self._populate(codex_home)

        projects = _provider(codex_home).get_projects()

        (alpha,) = projects
        assert alpha.id == "/work/alpha"
        assert alpha.short_name == "alpha"
        assert alpha.session_count == 2
        assert alpha.last_modified == "2026-01-16T00:00:00+00:00"

    def test_sessions_filter_by_cwd(self, codex_home) -> None:
        self._populate(codex_home)
        provider = _provider(codex_home)

        sessions = provider.get_sessions("/work/alpha")

        assert [entry.session_id for entry in sessions] == ["sess-b", "sess-a"]
        assert sessions[0].message_count == 2
        assert sessions[0].first_prompt == "alpha two"
        assert sessions[1].model_provider == "openai"
        assert provider.get_sessions("/work/beta") == []

    def test_collect_session_files(self, codex_home) -> None:
        self._populate(codex_home)
        provider = _provider(codex_home)
        files = provider.collect_session_files()
        assert sorted(item.session_id for item in files) == ["a", "b", "c", "d"]
        assert {item.project_id for item in files} == {""}

        by_session = {
            described.session_id: described
            for described in (provider.describe_session_file(item) for item in files)
        }
        assert set(by_session) == {"sess-a", "sess-b", "sess-c", "d"}
        assert by_session["sess-a"].project_id == "/work/alpha"
        assert by_session["sess-a"].project_name == "alpha"
        assert by_session["d"].project_id == ""


# Opens like every record the scanners look for, then nests past the recursion limit.
DEEP_LINE = (
    '{"type":"response_item","payload":{"type":"message","role":"user","token_count":'
    + "[" * 200000
)


class TestUndecodableLines:
    def _write(self, codex_home) -> Path:
        return codex_home.session(
            "2026-01-15",
            "deep",
            [
                DEEP_LINE,
                codex_home.meta("deep-1", "/work/alpha"),
                codex_home.message("user", "find the needle"),
                DEEP_LINE,
                codex_home.token_count(7, 3),
            ],
        )

    def test_materialize_skips_deeply_nested_line(self, codex_home) -> None:
        path = self._write(codex_home)
        (message,) = _provider(codex_home).materialize(path)
        assert message.content == [TextBlock(text="find the needle")]

    def test_listings_and_stats_survive_deeply_nested_line(self, codex_home) -> None:
        path = self._write(codex_home)
        provider = _provider(codex_home)

        (project,) = provider.get_projects()
        assert project.id == "/work/alpha"
        (session,) = provider.get_sessions("/work/alpha")
        assert session.message_count == 1
        assert session.first_prompt == "find the needle"
        assert provider.extract_token_info(path) == TokenInfo(7, 3, 10)
        assert codex_stats(provider).total_tokens == 10

    def test_search_survives_deeply_nested_line(self, codex_home) -> None:
        self._write(codex_home)
        (result,) = SearchEngine(_provider(codex_home)).search("needle", max_results=10)
        assert result.session_id == "deep-1"
        assert result.project_id == "/work/alpha"
        assert result.matched_text == "find the needle"

    def test_invalid_utf8_line_is_skipped(self, codex_home) -> None:
        path = codex_home.session(
            "2026-01-15",
            "bytes",
            [codex_home.message("user", "before"), codex_home.message("assistant", "after")],
        )
        first, second = path.read_bytes().splitlines(keepends=True)
        path.write_bytes(first + b"\xff\xfe{\"type\":\n" + second)

        messages = _provider(codex_home).materialize(path)

        assert [message.content for message in messages] == [
            [TextBlock(text="before")],
            [TextBlock(text="after")],
        ]
