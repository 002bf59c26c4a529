from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Iterable
from pathlib import Path

from session_atlas.storage.models import DisplayMessage

CacheKey = tuple[str, str]


class SessionCache:
    """Bounded LRU of materialized sessions keyed by (project id, session id).

    This is process-wide mutable state. It is only invalidated from outside,
    through file-change notifications, and nothing refreshes it proactively.
    Queries behave the same without it, only slower.
    """

    def __init__(self, max_entries: int = 20):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: OrderedDict[CacheKey, tuple[Path, list[DisplayMessage]]] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: CacheKey) -> list[DisplayMessage] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries.move_to_end(key)
            return entry[1]

    def put(self, key: CacheKey, path: Path, messages: list[DisplayMessage]) -> None:
        with self._lock:
            self._entries[key] = (path, messages)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def invalidate(self, key: CacheKey) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_paths(self, paths: Iterable[str | Path]) -> int:
        """Drop entries backed by any of ``paths``; returns how many were dropped."""
        changed = {Path(path) for path in paths}
        if not changed:
            return 0
        with self._lock:
            stale = [key for key, (path, _) in self._entries.items() if path in changed]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
