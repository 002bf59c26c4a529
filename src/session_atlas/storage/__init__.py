from __future__ import annotations

from session_atlas.storage.models import (
    AtlasConfig,
    DisplayBlock,
    DisplayMessage,
    PaginatedMessages,
    ProjectEntry,
    SearchResult,
    SessionIndexEntry,
    SessionsIndex,
    SessionsIndexFileEntry,
    TokenUsageSummary,
)
from session_atlas.storage.session_index import SessionIndexFile

__all__ = [
    "AtlasConfig",
    "DisplayBlock",
    "DisplayMessage",
    "PaginatedMessages",
    "ProjectEntry",
    "SearchResult",
    "SessionIndexEntry",
    "SessionIndexFile",
    "SessionsIndex",
    "SessionsIndexFileEntry",
    "TokenUsageSummary",
]
