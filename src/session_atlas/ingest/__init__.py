from __future__ import annotations

from session_atlas.ingest.base import SessionFile, SessionProvider
from session_atlas.ingest.claude_code import ClaudeCodeProvider
from session_atlas.ingest.codex import CodexProvider
from session_atlas.ingest.sources import (
    VALID_SOURCE_NAMES,
    normalize_source_name,
    require_source,
)
from session_atlas.storage.models import SourcesConfig

__all__ = [
    "SessionProvider",
    "SessionFile",
    "ClaudeCodeProvider",
    "CodexProvider",
    "VALID_SOURCE_NAMES",
    "normalize_source_name",
    "require_source",
    "get_provider",
]


def get_provider(source: str, sources: SourcesConfig | None = None) -> SessionProvider:
    """Return the provider for a source tag; unknown tags raise UnknownSourceError."""
    normalized = require_source(source)
    sources = sources or SourcesConfig()
    if normalized == "claude":
        return ClaudeCodeProvider(claude_dir=sources.claude_dir)
    return CodexProvider(codex_dir=sources.codex_dir)
