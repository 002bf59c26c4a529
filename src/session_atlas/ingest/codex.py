from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from session_atlas.core.content import (
    FIRST_PROMPT_LENGTH,
    MAX_ARGS_SIZE,
    MAX_OUTPUT_BLOCK_SIZE,
    MAX_TEXT_BLOCK_SIZE,
    file_times,
    pretty_arguments,
    short_name_from_path,
    stringify_output,
    truncate_text,
)
from session_atlas.ingest.base import SessionFile, SessionProvider
from session_atlas.storage.models import (
    DisplayBlock,
    DisplayMessage,
    FunctionCallBlock,
    FunctionCallOutputBlock,
    ProjectEntry,
    ReasoningBlock,
    SessionIndexEntry,
    TextBlock,
)

logger = logging.getLogger(__name__)

META_SCAN_LINES = 5
_TEXT_ITEM_TYPES = {"input_text", "output_text", "text"}
# developer and system prompts are injected by the CLI, not part of the conversation
_VISIBLE_ROLES = {"user", "assistant"}


@dataclass(frozen=True)
class SessionMeta:
    id: str
    cwd: str
    cli_version: str | None = None
    model_provider: str | None = None
    git_branch: str | None = None


@dataclass(frozen=True)
class TokenInfo:
    input_tokens: int
    output_tokens: int
    total_tokens: int


def _load_row(line: str) -> dict[str, Any] | None:
    try:
        row = json.loads(line)
    except (json.JSONDecodeError, RecursionError):
        return None
    return row if isinstance(row, dict) else None


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return 0


def _is_digits(value: str, max_len: int) -> bool:
    return 0 < len(value) <= max_len and value.isascii() and value.isdigit()


def extract_date_from_path(path: Path) -> str | None:
    """``YYYY-MM-DD`` from a ``.../<year>/<month>/<day>/<file>`` session path."""
    parts = path.parts
    if len(parts) < 4:
        return None
    year, month, day = parts[-4], parts[-3], parts[-2]
    if len(year) == 4 and _is_digits(year, 4) and _is_digits(month, 2) and _is_digits(day, 2):
        return f"{year}-{month.zfill(2)}-{day.zfill(2)}"
    return None


class CodexProvider(SessionProvider):
    """OpenAI Codex rollouts: ``<codex_dir>/sessions/<year>/<month>/<day>/<file>.jsonl``."""

    def __init__(self, codex_dir: Path | None = None):
        self.codex_dir = (codex_dir or self._default_codex_dir()).expanduser()
        self.sessions_dir = self.codex_dir / "sessions"

    @property
    def source_name(self) -> str:
        return "codex"

    @property
    def root_dir(self) -> Path:
        return self.sessions_dir

    @staticmethod
    def _default_codex_dir() -> Path:
        codex_home = os.environ.get("CODEX_HOME", "").strip()
        if codex_home:
            return Path(codex_home)
        return Path.home() / ".codex"

    # Decoding

    @staticmethod
    def _extract_message_content(payload: dict[str, Any]) -> list[DisplayBlock]:
        content = payload.get("content")
        blocks: list[DisplayBlock] = []

        if isinstance(content, str):
            if content.strip():
                blocks.append(TextBlock(text=truncate_text(content, MAX_TEXT_BLOCK_SIZE)))
            return blocks
        if not isinstance(content, list):
            return blocks

        for item in content:
            if not isinstance(item, dict):
                continue
            text = item.get("text")
            if not isinstance(text, str) or not text.strip():
                continue
            item_type = item.get("type")
            if item_type in _TEXT_ITEM_TYPES:
                blocks.append(TextBlock(text=truncate_text(text, MAX_TEXT_BLOCK_SIZE)))
            elif item_type == "reasoning":
                blocks.append(ReasoningBlock(text=truncate_text(text, MAX_TEXT_BLOCK_SIZE)))
        return blocks

    @staticmethod
    def _extract_reasoning_text(payload: dict[str, Any]) -> str:
        text = payload.get("text")
        if isinstance(text, str) and text:
            return text

        summary = payload.get("summary")
        if isinstance(summary, str):
            return summary
        if isinstance(summary, list):
            parts = [
                item["text"]
                for item in summary
                if isinstance(item, dict) and isinstance(item.get("text"), str)
            ]
            return "\n".join(parts)
        return ""

    def decode_row(self, row: dict[str, Any]) -> DisplayMessage | None:
        if row.get("type") != "response_item":
            return None
        payload = row.get("payload")
        if not isinstance(payload, dict):
            return None

        timestamp = _str_or_none(row.get("timestamp"))
        payload_type = payload.get("type")

        if payload_type == "message":
            role = payload.get("role")
            if role not in _VISIBLE_ROLES:
                return None
            blocks = self._extract_message_content(payload)
            if not blocks:
                return None
            return DisplayMessage(role=role, timestamp=timestamp, content=blocks)

        if payload_type == "function_call":
            arguments = pretty_arguments(payload.get("arguments"))
            return DisplayMessage(
                role="assistant",
                timestamp=timestamp,
                content=[
                    FunctionCallBlock(
                        name=_str_or_none(payload.get("name")) or "unknown",
                        arguments=truncate_text(arguments, MAX_ARGS_SIZE),
                        call_id=_str_or_none(payload.get("call_id")) or "",
                    )
                ],
            )

        if payload_type == "function_call_output":
            output = stringify_output(payload.get("output"))
            return DisplayMessage(
                role="tool",
                timestamp=timestamp,
                content=[
                    FunctionCallOutputBlock(
                        call_id=_str_or_none(payload.get("call_id")) or "",
                        output=truncate_text(output, MAX_OUTPUT_BLOCK_SIZE),
                    )
                ],
            )

        if payload_type == "reasoning":
            text = self._extract_reasoning_text(payload)
            if not text.strip():
                return None
            return DisplayMessage(
                role="assistant",
                timestamp=timestamp,
                content=[ReasoningBlock(text=truncate_text(text, MAX_TEXT_BLOCK_SIZE))],
            )

        return None

    def decode_lines(self, lines: Iterable[str]) -> Iterator[DisplayMessage]:
        for raw_line in lines:
            line = raw_line.strip()
            if not line:
                continue
            row = _load_row(line)
            if row is None:
                continue
            message = self.decode_row(row)
            if message is not None:
                yield message

    # Directory layout

    @staticmethod
    def _subdirs(path: Path) -> list[Path]:
        try:
            return sorted(child for child in path.iterdir() if child.is_dir())
        except OSError:
            return []

    def scan_all_session_files(self) -> list[Path]:
        if not self.sessions_dir.is_dir():
            return []

        files: list[Path] = []
        for year_dir in self._subdirs(self.sessions_dir):
            for month_dir in self._subdirs(year_dir):
                for day_dir in self._subdirs(month_dir):
                    files.extend(
                        sorted(path for path in day_dir.glob("*.jsonl") if path.is_file())
                    )
        return files

    # Single-file metadata

    def extract_session_meta(self, path: Path) -> SessionMeta | None:
        try:
            with path.open(encoding="utf-8", errors="replace") as file:
                for index, raw_line in enumerate(file):
                    if index >= META_SCAN_LINES:
                        break
                    line = raw_line.strip()
                    if not line:
                        continue
                    row = _load_row(line)
                    if row is None or row.get("type") != "session_meta":
                        continue
                    payload = row.get("payload")
                    if not isinstance(payload, dict):
                        continue
                    git = payload.get("git")
                    return SessionMeta(
                        id=_str_or_none(payload.get("id")) or "",
                        cwd=_str_or_none(payload.get("cwd")) or "",
                        cli_version=_str_or_none(payload.get("cli_version")),
                        model_provider=_str_or_none(payload.get("model_provider")),
                        git_branch=(
                            _str_or_none(git.get("branch")) if isinstance(git, dict) else None
                        ),
                    )
        except OSError:
            logger.debug("Could not read %s for session meta", path)
        return None

    def extract_first_prompt(self, path: Path) -> str | None:
        try:
            with path.open(encoding="utf-8", errors="replace") as file:
                for raw_line in file:
                    line = raw_line.strip()
                    if not line or '"role"' not in line or '"user"' not in line:
                        continue
                    row = _load_row(line)
                    if row is None or row.get("type") != "response_item":
                        continue
                    payload = row.get("payload")
                    if not isinstance(payload, dict):
                        continue
                    if payload.get("type") != "message" or payload.get("role") != "user":
                        continue
                    content = payload.get("content")
                    if not isinstance(content, list):
                        continue
                    for item in content:
                        if not isinstance(item, dict):
                            continue
                        text = item.get("text")
                        if item.get("type") in {"input_text", "text"} and isinstance(text, str):
                            if text:
                                return truncate_text(text, FIRST_PROMPT_LENGTH)
        except OSError:
            logger.debug("Could not read %s for first prompt", path)
        return None

    @staticmethod
    def _maybe_message_line(line: str) -> bool:
        return (
            '"type":"response_item"' in line or '"type": "response_item"' in line
        ) and ('"type":"message"' in line or '"type": "message"' in line)

    def count_messages(self, path: Path) -> int:
        count = 0
        try:
            with path.open(encoding="utf-8", errors="replace") as file:
                for raw_line in file:
                    line = raw_line.strip()
                    if not self._maybe_message_line(line):
                        continue
                    row = _load_row(line)
                    if row is None or row.get("type") != "response_item":
                        continue
                    payload = row.get("payload")
                    if (
                        isinstance(payload, dict)
                        and payload.get("type") == "message"
                        and payload.get("role") in _VISIBLE_ROLES
                    ):
                        count += 1
        except OSError:
            return 0
        return count

    def extract_token_info(self, path: Path) -> TokenInfo | None:
        """Last cumulative token-count snapshot in the file."""
        last: TokenInfo | None = None
        try:
            with path.open(encoding="utf-8", errors="replace") as file:
                for raw_line in file:
                    line = raw_line.strip()
                    if not line or '"token_count"' not in line:
                        continue
                    row = _load_row(line)
                    if row is None or row.get("type") != "event_msg":
                        continue
                    payload = row.get("payload")
                    if not isinstance(payload, dict) or payload.get("type") != "token_count":
                        continue
                    info = payload.get("info")
                    usage = info.get("total_token_usage") if isinstance(info, dict) else None
                    if not isinstance(usage, dict):
                        continue
                    input_tokens = _as_int(usage.get("input_tokens"))
                    output_tokens = _as_int(usage.get("output_tokens"))
                    total = usage.get("total_tokens")
                    last = TokenInfo(
                        input_tokens=input_tokens,
                        output_tokens=output_tokens,
                        total_tokens=(
                            _as_int(total) if total is not None else input_tokens + output_tokens
                        ),
                    )
        except OSError:
            logger.debug("Could not read %s for token usage", path)
        return last

    # Projects and sessions

    def list_all_sessions(self) -> list[SessionIndexEntry]:
        entries: list[SessionIndexEntry] = []
        for path in self.scan_all_session_files():
            meta = self.extract_session_meta(path)
            created, modified = file_times(path)
            entries.append(
                SessionIndexEntry(
                    source=self.source_name,
                    session_id=(meta.id if meta and meta.id else path.stem),
                    file_path=str(path),
                    first_prompt=self.extract_first_prompt(path),
                    message_count=self.count_messages(path),
                    created=created,
                    modified=modified,
                    git_branch=meta.git_branch if meta else None,
                    cwd=meta.cwd if meta else "",
                    model_provider=meta.model_provider if meta else None,
                    cli_version=meta.cli_version if meta else None,
                )
            )

        entries.sort(key=lambda entry: entry.modified or "", reverse=True)
        return entries

    def get_projects(self) -> list[ProjectEntry]:
        projects: dict[str, ProjectEntry] = {}
        for session in self.list_all_sessions():
            cwd = session.cwd or ""
            if not cwd or session.message_count == 0:
                continue

            project = projects.get(cwd)
            if project is None:
                project = ProjectEntry(
                    source=self.source_name,
                    id=cwd,
                    display_path=cwd,
                    short_name=short_name_from_path(cwd),
                    session_count=0,
                    model_provider=session.model_provider,
                )
                projects[cwd] = project

            project.session_count += 1
            if session.modified and (
                project.last_modified is None or session.modified > project.last_modified
            ):
                project.last_modified = session.modified

        return sorted(
            projects.values(), key=lambda project: project.last_modified or "", reverse=True
        )

    def get_sessions(self, project_id: str) -> list[SessionIndexEntry]:
        return [
            entry
            for entry in self.list_all_sessions()
            if entry.cwd == project_id and entry.message_count > 0
        ]

    def collect_session_files(self) -> list[SessionFile]:
        # project details live in each file's session_meta; see describe_session_file
        return [
            SessionFile(path=path, project_id="", project_name="", session_id=path.stem)
            for path in self.scan_all_session_files()
        ]

    def describe_session_file(self, session_file: SessionFile) -> SessionFile:
        meta = self.extract_session_meta(session_file.path)
        if meta is None:
            return session_file
        return SessionFile(
            path=session_file.path,
            project_id=meta.cwd,
            project_name=short_name_from_path(meta.cwd),
            session_id=meta.id or session_file.session_id,
        )

    def cache_key(self, path: Path) -> tuple[str, str]:
        meta = self.extract_session_meta(path)
        if meta is None:
            return "", path.stem
        return meta.cwd, meta.id or path.stem
