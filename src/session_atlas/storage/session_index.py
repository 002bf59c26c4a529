from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from session_atlas.core.errors import MalformedError
from session_atlas.storage.models import SessionsIndex

INDEX_FILENAME = "sessions-index.json"


class SessionIndexFile:
    """Claude's per-project sessions-index.json.

    The file is maintained by the Claude CLI; this class only reads it, plus the
    single append path used when an orphaned session has to be made resumable.
    """

    def __init__(self, project_dir: Path):
        self.project_dir = project_dir
        self.path = project_dir / INDEX_FILENAME

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> SessionsIndex | None:
        if not self.exists():
            return None
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise MalformedError(f"Failed to read sessions index {self.path}: {exc}") from exc
        try:
            return SessionsIndex.model_validate_json(raw)
        except ValidationError as exc:
            raise MalformedError(f"Failed to parse sessions index {self.path}: {exc}") from exc

    def original_path(self) -> str | None:
        try:
            index = self.read()
        except MalformedError:
            return None
        if index is None or not index.original_path:
            return None
        return index.original_path

    def write(self, index: SessionsIndex) -> None:
        payload = index.model_dump(mode="json", by_alias=True)
        self.path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
