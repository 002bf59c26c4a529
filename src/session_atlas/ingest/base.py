from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from session_atlas.core.errors import MalformedError, NotFoundError
from session_atlas.storage.models import DisplayMessage, ProjectEntry, SessionIndexEntry


@dataclass(frozen=True)
class SessionFile:
    """A session log discovered on disk, with the project it belongs to."""

    path: Path
    project_id: str
    project_name: str
    session_id: str


def open_session_file(path: Path) -> IO[str]:
    """Open a session log for streaming; the only decode failure surfaced to callers."""
    if not path.is_file():
        raise NotFoundError(f"Session file not found: {path}")
    try:
        return path.open(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise MalformedError(f"Failed to open file {path}: {exc}") from exc


class SessionProvider(ABC):
    """Abstract base for one session-log source: decoding plus directory indexing."""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Identifier for this provider (e.g. "claude", "codex")."""

    @property
    @abstractmethod
    def root_dir(self) -> Path:
        """Directory holding this provider's session logs."""

    @abstractmethod
    def decode_lines(self, lines: Iterable[str]) -> Iterator[DisplayMessage]:
        """Decode raw log lines into normalized messages, skipping what does not decode."""

    @abstractmethod
    def get_projects(self) -> list[ProjectEntry]:
        """List projects, newest first."""

    @abstractmethod
    def get_sessions(self, project_id: str) -> list[SessionIndexEntry]:
        """List sessions of one project, newest first."""

    @abstractmethod
    def collect_session_files(self) -> list[SessionFile]:
        """Every session log on disk, for full scans (search)."""

    @abstractmethod
    def extract_first_prompt(self, path: Path) -> str | None:
        """First user prompt of a session, truncated for display."""

    def describe_session_file(self, session_file: SessionFile) -> SessionFile:
        """Fill in project details that need a read of the file itself."""
        return session_file

    @abstractmethod
    def cache_key(self, path: Path) -> tuple[str, str]:
        """(project id, session id) identifying a session file in the message cache."""

    def iter_messages(self, path: Path) -> Iterator[DisplayMessage]:
        """Stream one session file in a single forward pass."""
        with open_session_file(path) as handle:
            yield from self.decode_lines(handle)

    def materialize(self, path: Path) -> list[DisplayMessage]:
        return list(self.iter_messages(path))
