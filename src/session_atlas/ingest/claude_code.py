from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from session_atlas.core.content import (
    FIRST_PROMPT_LENGTH,
    file_times,
    flatten_tool_result,
    format_mtime,
    pretty_json,
    short_name_from_path,
    truncate_text,
)
from session_atlas.core.errors import MalformedError, NotFoundError
from session_atlas.ingest.base import SessionFile, SessionProvider
from session_atlas.storage.models import (
    DisplayBlock,
    DisplayMessage,
    ProjectEntry,
    SessionIndexEntry,
    SessionsIndex,
    SessionsIndexFileEntry,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from session_atlas.storage.session_index import SessionIndexFile

logger = logging.getLogger(__name__)

# Large record kinds that never carry conversation content
SKIP_RECORD_TYPES = ("file-history-snapshot", "progress")
_SKIP_MARKERS = tuple(f'"type":"{record_type}"' for record_type in SKIP_RECORD_TYPES)
_MESSAGE_MARKERS = ('"type":"user"', '"type":"assistant"')
METADATA_SCAN_LINES = 10


class ClaudeMessage(BaseModel):
    role: str
    content: str | list[dict[str, Any]]
    model: str | None = None


class ClaudeRecord(BaseModel):
    """One line of a Claude Code session log."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: str
    uuid: str | None = None
    parent_uuid: str | None = None
    session_id: str | None = None
    timestamp: str | None = None
    message: ClaudeMessage | None = None
    is_sidechain: bool | None = None
    cwd: str | None = None
    version: str | None = None
    git_branch: str | None = None
    slug: str | None = None


def decode_project_path(encoded: str) -> str:
    """Best-effort reverse of Claude's project directory name encoding."""
    if os.name == "nt":
        if len(encoded) >= 2 and encoded[1] == "-":
            rest = encoded[2:].replace("-", "\\")
            return f"{encoded[0]}:{rest}"
        return encoded.replace("-", "\\")
    return encoded.replace("-", "/")


class ClaudeCodeProvider(SessionProvider):
    """Claude Code transcripts: ``<claude_dir>/projects/<encoded-project>/<session>.jsonl``."""

    def __init__(self, claude_dir: Path | None = None):
        self.claude_dir = (claude_dir or Path.home() / ".claude").expanduser()
        self.projects_dir = self.claude_dir / "projects"
        self.stats_cache_path = self.claude_dir / "stats-cache.json"

    @property
    def source_name(self) -> str:
        return "claude"

    @property
    def root_dir(self) -> Path:
        return self.projects_dir

    # Decoding

    @staticmethod
    def parse_record(line: str) -> ClaudeRecord | None:
        try:
            return ClaudeRecord.model_validate_json(line)
        except ValidationError:
            return None

    @staticmethod
    def convert_content(content: str | list[dict[str, Any]]) -> list[DisplayBlock]:
        if isinstance(content, str):
            if not content.strip():
                return []
            return [TextBlock(text=content)]

        blocks: list[DisplayBlock] = []
        for block in content:
            block_type = block.get("type")
            if block_type == "text":
                text = block.get("text")
                if isinstance(text, str) and text.strip():
                    blocks.append(TextBlock(text=text))
            elif block_type == "thinking":
                thinking = block.get("thinking")
                if isinstance(thinking, str) and thinking.strip():
                    blocks.append(ThinkingBlock(thinking=thinking))
            elif block_type == "tool_use":
                tool_id = block.get("id")
                name = block.get("name")
                if not isinstance(tool_id, str) or not isinstance(name, str):
                    continue
                blocks.append(
                    ToolUseBlock(id=tool_id, name=name, input=pretty_json(block.get("input")))
                )
            elif block_type == "tool_result":
                tool_use_id = block.get("tool_use_id")
                if not isinstance(tool_use_id, str):
                    continue
                blocks.append(
                    ToolResultBlock(
                        tool_use_id=tool_use_id,
                        content=flatten_tool_result(block.get("content")),
                        is_error=bool(block.get("is_error") or False),
                    )
                )
        return blocks

    def decode_lines(self, lines: Iterable[str]) -> Iterator[DisplayMessage]:
        for raw_line in lines:
            line = raw_line.strip()
            if not line:
                continue
            if any(marker in line for marker in _SKIP_MARKERS):
                continue

            record = self.parse_record(line)
            if record is None or record.message is None:
                continue
            if record.type not in {"user", "assistant"}:
                continue

            blocks = self.convert_content(record.message.content)
            if not blocks:
                continue

            yield DisplayMessage(
                uuid=record.uuid,
                role=record.message.role,
                timestamp=record.timestamp,
                model=record.message.model,
                content=blocks,
            )

    # Single-file metadata

    def extract_first_prompt(self, path: Path) -> str | None:
        try:
            with path.open(encoding="utf-8", errors="replace") as file:
                for raw_line in file:
                    line = raw_line.strip()
                    if not line or '"type":"user"' not in line:
                        continue
                    record = self.parse_record(line)
                    if record is None or record.type != "user" or record.message is None:
                        continue
                    if record.message.role != "user":
                        continue
                    content = record.message.content
                    if isinstance(content, str):
                        if content:
                            return truncate_text(content, FIRST_PROMPT_LENGTH)
                        continue
                    for block in content:
                        text = block.get("text")
                        if block.get("type") == "text" and isinstance(text, str) and text:
                            return truncate_text(text, FIRST_PROMPT_LENGTH)
        except OSError:
            logger.debug("Could not read %s for first prompt", path)
        return None

    def extract_session_metadata(self, path: Path) -> tuple[str, str | None, str | None] | None:
        """(session id, git branch, cwd) from the first record carrying a session id."""
        try:
            with path.open(encoding="utf-8", errors="replace") as file:
                for index, raw_line in enumerate(file):
                    if index >= METADATA_SCAN_LINES:
                        break
                    line = raw_line.strip()
                    if not line:
                        continue
                    record = self.parse_record(line)
                    if record is not None and record.session_id:
                        return record.session_id, record.git_branch, record.cwd
        except OSError:
            logger.debug("Could not read %s for metadata", path)
        return None

    @staticmethod
    def count_messages(path: Path) -> int:
        count = 0
        try:
            with path.open(encoding="utf-8", errors="replace") as file:
                for line in file:
                    if any(marker in line for marker in _MESSAGE_MARKERS):
                        count += 1
        except OSError:
            return 0
        return count

    # Projects and sessions

    def _project_dirs(self) -> list[Path]:
        if not self.projects_dir.is_dir():
            return []
        return sorted(path for path in self.projects_dir.iterdir() if path.is_dir())

    @staticmethod
    def _session_files(project_dir: Path) -> list[Path]:
        return sorted(
            path for path in project_dir.glob("*.jsonl") if path.is_file() and path.stem
        )

    def _display_path(self, project_dir: Path) -> str:
        return SessionIndexFile(project_dir).original_path() or decode_project_path(
            project_dir.name
        )

    def get_projects(self) -> list[ProjectEntry]:
        projects: list[ProjectEntry] = []
        for project_dir in self._project_dirs():
            session_count = len(self._session_files(project_dir))
            if session_count == 0:
                continue

            display_path = self._display_path(project_dir)
            try:
                last_modified = format_mtime(project_dir.stat().st_mtime)
            except OSError:
                last_modified = None

            projects.append(
                ProjectEntry(
                    source=self.source_name,
                    id=project_dir.name,
                    display_path=display_path,
                    short_name=short_name_from_path(display_path),
                    session_count=session_count,
                    last_modified=last_modified,
                )
            )

        projects.sort(key=lambda project: project.last_modified or "", reverse=True)
        return projects

    def get_sessions(self, project_id: str) -> list[SessionIndexEntry]:
        project_dir = self.projects_dir / project_id
        if not project_dir.is_dir():
            raise NotFoundError(f"Project directory not found: {project_id}")

        disk_sessions = {path.stem: path for path in self._session_files(project_dir)}

        index_file = SessionIndexFile(project_dir)
        try:
            index = index_file.read()
        except MalformedError as exc:
            logger.warning("Ignoring unreadable sessions index, scanning directory: %s", exc)
            index = None

        if index is not None and index.entries:
            entries = self._reconcile(index, project_dir, disk_sessions)
        else:
            entries = [
                self.scan_single_session(path, session_id)
                for session_id, path in disk_sessions.items()
            ]

        entries = [entry for entry in entries if entry.message_count > 0]
        entries.sort(key=lambda entry: entry.modified or "", reverse=True)
        return entries

    def _reconcile(
        self,
        index: SessionsIndex,
        project_dir: Path,
        disk_sessions: dict[str, Path],
    ) -> list[SessionIndexEntry]:
        original_path = index.original_path
        entries: list[SessionIndexEntry] = []
        seen: set[str] = set()

        for item in index.entries:
            if item.session_id in seen:
                continue
            seen.add(item.session_id)
            entry = self._convert_index_entry(item, project_dir)
            if entry.project_path is None:
                entry.project_path = original_path
            entries.append(entry)

        for session_id, path in disk_sessions.items():
            if session_id in seen:
                continue
            seen.add(session_id)
            entry = self.scan_single_session(path, session_id)
            if entry.project_path is None:
                entry.project_path = original_path
            entries.append(entry)

        return entries

    def _convert_index_entry(
        self, item: SessionsIndexFileEntry, project_dir: Path
    ) -> SessionIndexEntry:
        file_path = item.full_path or str(project_dir / f"{item.session_id}.jsonl")
        message_count = item.message_count
        if message_count is None:
            message_count = self.count_messages(Path(file_path))

        return SessionIndexEntry(
            source=self.source_name,
            session_id=item.session_id,
            file_path=file_path,
            first_prompt=item.first_prompt,
            message_count=message_count,
            created=item.created,
            modified=item.modified,
            git_branch=item.git_branch,
            project_path=item.project_path,
            is_sidechain=item.is_sidechain,
        )

    def scan_single_session(self, path: Path, session_id: str) -> SessionIndexEntry:
        metadata = self.extract_session_metadata(path)
        git_branch, cwd = (metadata[1], metadata[2]) if metadata else (None, None)
        created, modified = file_times(path)

        return SessionIndexEntry(
            source=self.source_name,
            session_id=session_id,
            file_path=str(path),
            first_prompt=self.extract_first_prompt(path),
            message_count=self.count_messages(path),
            created=created,
            modified=modified,
            git_branch=git_branch,
            project_path=cwd,
            is_sidechain=False,
        )

    def collect_session_files(self) -> list[SessionFile]:
        files: list[SessionFile] = []
        for project_dir in self._project_dirs():
            session_paths = self._session_files(project_dir)
            if not session_paths:
                continue
            project_name = short_name_from_path(self._display_path(project_dir))
            for path in session_paths:
                files.append(
                    SessionFile(
                        path=path,
                        project_id=project_dir.name,
                        project_name=project_name,
                        session_id=path.stem,
                    )
                )
        return files

    def cache_key(self, path: Path) -> tuple[str, str]:
        return path.parent.name, path.stem

    # Resume support

    def ensure_session_in_index(self, session_id: str, file_path: Path, project_path: str) -> bool:
        """Append an orphaned session to its project's sessions-index.json.

        Returns True when an entry was written. An existing index that does not
        parse is left untouched.
        """
        index_file = SessionIndexFile(file_path.parent)
        try:
            index = index_file.read()
        except MalformedError as exc:
            logger.warning("Refusing to rewrite unreadable sessions index: %s", exc)
            return False

        if index is None:
            index = SessionsIndex(version=1, entries=[], original_path=project_path)

        if any(entry.session_id == session_id for entry in index.entries):
            return False

        metadata = self.extract_session_metadata(file_path)
        git_branch, cwd = (metadata[1], metadata[2]) if metadata else (None, None)
        created, modified = file_times(file_path)
        try:
            file_mtime: int | None = int(file_path.stat().st_mtime * 1000)
        except OSError:
            file_mtime = None

        index.entries.append(
            SessionsIndexFileEntry(
                session_id=session_id,
                full_path=str(file_path),
                file_mtime=file_mtime,
                first_prompt=self.extract_first_prompt(file_path),
                message_count=self.count_messages(file_path),
                created=created,
                modified=modified,
                git_branch=git_branch,
                project_path=cwd or project_path,
                is_sidechain=False,
            )
        )
        index_file.write(index)
        logger.info("Added session %s to %s", session_id, index_file.path)
        return True

    def resolve_project_path(self, file_path: Path, fallback: str) -> str:
        """Working directory to resume a session in: the index's original path when it exists."""
        original = SessionIndexFile(file_path.parent).original_path()
        if original and Path(original).exists():
            return original
        return fallback
