from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from session_atlas.core.cache import SessionCache
from session_atlas.core.errors import NotFoundError
from session_atlas.core.paginate import paginate
from session_atlas.core.search import SearchEngine
from session_atlas.core.stats import get_stats
from session_atlas.ingest import get_provider
from session_atlas.ingest.base import SessionProvider
from session_atlas.ingest.claude_code import ClaudeCodeProvider
from session_atlas.storage.models import (
    AtlasConfig,
    DisplayMessage,
    PaginatedMessages,
    ProjectEntry,
    SearchResult,
    SessionIndexEntry,
    TokenUsageSummary,
)

logger = logging.getLogger(__name__)


class SessionEngine:
    """Query entry points shared by every consumer (CLI, watch loop, embedding hosts).

    Each call re-derives its answer from the provider's files. The optional
    message cache only short-circuits re-materializing a session; it is emptied
    through :meth:`handle_file_changes`.
    """

    def __init__(self, config: AtlasConfig | None = None, cache: SessionCache | None = None):
        self.config = config or AtlasConfig()
        if cache is None and self.config.cache.enabled:
            cache = SessionCache(max_entries=self.config.cache.max_entries)
        self.cache = cache

    def provider(self, source: str) -> SessionProvider:
        return get_provider(source, self.config.sources)

    def get_projects(self, source: str) -> list[ProjectEntry]:
        return self.provider(source).get_projects()

    def get_sessions(self, source: str, project_id: str) -> list[SessionIndexEntry]:
        return self.provider(source).get_sessions(project_id)

    def load_messages(self, source: str, file_path: str | Path) -> list[DisplayMessage]:
        provider = self.provider(source)
        path = Path(file_path)
        if not path.is_file():
            raise NotFoundError(f"Session file not found: {path}")
        if self.cache is None:
            return provider.materialize(path)

        key = provider.cache_key(path)
        messages = self.cache.get(key)
        if messages is None:
            messages = provider.materialize(path)
            self.cache.put(key, path, messages)
        return messages

    def get_messages(
        self,
        source: str,
        file_path: str | Path,
        page: int = 0,
        page_size: int | None = None,
        from_end: bool = False,
    ) -> PaginatedMessages:
        messages = self.load_messages(source, file_path)
        if page_size is None:
            page_size = self.config.paging.page_size
        return paginate(messages, page, page_size, from_end)

    def search(self, source: str, query: str, max_results: int | None = None) -> list[SearchResult]:
        settings = self.config.search
        engine = SearchEngine(
            self.provider(source),
            max_workers=settings.max_workers,
            per_file_limit=settings.per_file_limit,
            context_chars=settings.context_chars,
        )
        if max_results is None:
            max_results = settings.max_results
        return engine.search(query, max_results)

    def get_stats(self, source: str) -> TokenUsageSummary:
        return get_stats(source, self.config.sources)

    def ensure_session_in_index(
        self, source: str, session_id: str, file_path: str | Path, project_path: str
    ) -> bool:
        provider = self.provider(source)
        if not isinstance(provider, ClaudeCodeProvider):
            return False
        path = Path(file_path)
        if not path.is_file():
            raise NotFoundError(f"Session file not found: {path}")
        return provider.ensure_session_in_index(session_id, path, project_path)

    def handle_file_changes(self, paths: Iterable[str | Path]) -> int:
        if self.cache is None:
            return 0
        dropped = self.cache.invalidate_paths(paths)
        if dropped:
            logger.debug("Invalidated %d cached session(s)", dropped)
        return dropped
