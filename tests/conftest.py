from __future__ import annotations

import json
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest

from session_atlas.storage.models import AtlasConfig, SourcesConfig


def dump_lines(records: Iterable[dict[str, Any] | str]) -> str:
    """Serialize records the way the CLIs write them: compact JSON, one per line."""
    lines = []
    for record in records:
        if isinstance(record, str):
            lines.append(record)
        else:
            lines.append(json.dumps(record, separators=(",", ":"), ensure_ascii=False))
    return "".join(f"{line}\n" for line in lines)


def set_mtime(path: Path, epoch: float) -> None:
    os.utime(path, (epoch, epoch))


class ClaudeHome:
    """Builds a throwaway Claude Code home directory."""

    def __init__(self, root: Path):
        self.root = root
        self.projects_dir = root / "projects"
        self.projects_dir.mkdir(parents=True, exist_ok=True)

    def session(
        self,
        project_id: str,
        session_id: str,
        records: Iterable[dict[str, Any] | str],
        mtime: float | None = None,
    ) -> Path:
        path = self.projects_dir / project_id / f"{session_id}.jsonl"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dump_lines(records), encoding="utf-8")
        if mtime is not None:
            set_mtime(path, mtime)
        return path

    def write_index(self, project_id: str, payload: dict[str, Any] | str) -> Path:
        path = self.projects_dir / project_id / "sessions-index.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        text = payload if isinstance(payload, str) else json.dumps(payload, indent=2)
        path.write_text(text, encoding="utf-8")
        return path

    def write_stats(self, payload: dict[str, Any] | str) -> Path:
        path = self.root / "stats-cache.json"
        text = payload if isinstance(payload, str) else json.dumps(payload)
        path.write_text(text, encoding="utf-8")
        return path

    @staticmethod
    def user(
        content: str | list[dict[str, Any]],
        uuid: str = "u-1",
        session_id: str = "sess-1",
        timestamp: str = "2026-01-01T10:00:00Z",
        cwd: str | None = None,
        git_branch: str | None = None,
    ) -> dict[str, Any]:
        record: dict[str, Any] = {
            "type": "user",
            "uuid": uuid,
            "sessionId": session_id,
            "timestamp": timestamp,
            "message": {"role": "user", "content": content},
        }
        if cwd is not None:
            record["cwd"] = cwd
        if git_branch is not None:
            record["gitBranch"] = git_branch
        return record

    @staticmethod
    def assistant(
        content: str | list[dict[str, Any]],
        uuid: str = "a-1",
        session_id: str = "sess-1",
        timestamp: str = "2026-01-01T10:00:05Z",
        model: str = "claude-sonnet-4",
    ) -> dict[str, Any]:
        return {
            "type": "assistant",
            "uuid": uuid,
            "sessionId": session_id,
            "timestamp": timestamp,
            "message": {"role": "assistant", "content": content, "model": model},
        }


class CodexHome:
    """Builds a throwaway Codex home directory."""

    def __init__(self, root: Path):
        self.root = root
        self.sessions_dir = root / "sessions"
        self.sessions_dir.mkdir(parents=True, exist_ok=True)

    def session(
        self,
        date: str,
        name: str,
        records: Iterable[dict[str, Any] | str],
        mtime: float | None = None,
    ) -> Path:
        year, month, day = date.split("-")
        path = self.sessions_dir / year / month / day / f"{name}.jsonl"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dump_lines(records), encoding="utf-8")
        if mtime is not None:
            set_mtime(path, mtime)
        return path

    @staticmethod
    def meta(
        session_id: str,
        cwd: str,
        model_provider: str | None = "openai",
        branch: str | None = None,
        cli_version: str = "0.40.0",
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": session_id,
            "cwd": cwd,
            "cli_version": cli_version,
        }
        if model_provider is not None:
            payload["model_provider"] = model_provider
        if branch is not None:
            payload["git"] = {"branch": branch}
        return {"type": "session_meta", "timestamp": "2026-01-15T09:00:00Z", "payload": payload}

    @staticmethod
    def message(
        role: str, text: str, timestamp: str = "2026-01-15T09:00:01Z"
    ) -> dict[str, Any]:
        item_type = "input_text" if role == "user" else "output_text"
        return {
            "type": "response_item",
            "timestamp": timestamp,
            "payload": {
                "type": "message",
                "role": role,
                "content": [{"type": item_type, "text": text}],
            },
        }

    @staticmethod
    def function_call(name: str, arguments: Any, call_id: str = "call-1") -> dict[str, Any]:
        return {
            "type": "response_item",
            "timestamp": "2026-01-15T09:00:02Z",
            "payload": {
                "type": "function_call",
                "name": name,
                "arguments": arguments,
                "call_id": call_id,
            },
        }

    @staticmethod
    def function_call_output(output: Any, call_id: str = "call-1") -> dict[str, Any]:
        return {
            "type": "response_item",
            "timestamp": "2026-01-15T09:00:03Z",
            "payload": {"type": "function_call_output", "call_id": call_id, "output": output},
        }

    @staticmethod
    def reasoning(summary: Any) -> dict[str, Any]:
        return {
            "type": "response_item",
            "timestamp": "2026-01-15T09:00:04Z",
            "payload": {"type": "reasoning", "summary": summary},
        }

    @staticmethod
    def token_count(input_tokens: int, output_tokens: int, total: int | None = None) -> dict:
        usage: dict[str, int] = {"input_tokens": input_tokens, "output_tokens": output_tokens}
        if total is not None:
            usage["total_tokens"] = total
        return {
            "type": "event_msg",
            "timestamp": "2026-01-15T09:00:05Z",
            "payload": {"type": "token_count", "info": {"total_token_usage": usage}},
        }


@pytest.fixture
def claude_home(tmp_path: Path) -> ClaudeHome:
    """Empty Claude Code home under tmp_path."""
    return ClaudeHome(tmp_path / ".claude")


@pytest.fixture
def codex_home(tmp_path: Path) -> CodexHome:
    """Empty Codex home under tmp_path."""
    return CodexHome(tmp_path / ".codex")


@pytest.fixture
def atlas_config(claude_home: ClaudeHome, codex_home: CodexHome) -> AtlasConfig:
    """Configuration pointing both providers at the temporary homes."""
    return AtlasConfig(
        sources=SourcesConfig(claude_dir=claude_home.root, codex_dir=codex_home.root)
    )
