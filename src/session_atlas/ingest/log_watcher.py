from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

WATCHED_SUFFIXES = frozenset({".jsonl", ".json"})


@dataclass
class _FileState:
    mtime_ns: int
    size: int
    inode: int | None


class SessionWatcher:
    """Poll provider directories for created, modified and removed session files.

    Only file-change batches are reported; callers use them to drop cached
    sessions and re-query. The first poll records the current state and reports
    nothing.
    """

    def __init__(
        self,
        roots: Iterable[Path],
        *,
        poll_interval: float = 0.5,
        debounce: float = 0.3,
    ) -> None:
        self.roots = [Path(root) for root in roots]
        self.poll_interval = max(poll_interval, 0.05)
        self.debounce = max(debounce, 0.0)
        self._state: dict[Path, _FileState] = {}
        self._primed = False

    def _scan(self) -> dict[Path, _FileState]:
        current: dict[Path, _FileState] = {}
        for root in self.roots:
            if not root.is_dir():
                continue
            for path in root.rglob("*"):
                if path.suffix not in WATCHED_SUFFIXES:
                    continue
                try:
                    stat = path.stat()
                except OSError:
                    continue
                if not path.is_file():
                    continue
                current[path] = _FileState(
                    mtime_ns=stat.st_mtime_ns,
                    size=stat.st_size,
                    inode=getattr(stat, "st_ino", None),
                )
        return current

    def poll(self) -> list[Path]:
        current = self._scan()
        previous = self._state
        self._state = current
        if not self._primed:
            self._primed = True
            return []

        changed: list[Path] = []
        for path, state in current.items():
            if previous.get(path) != state:
                changed.append(path)
        changed.extend(path for path in previous if path not in current)
        return sorted(changed)

    def _debounced_batch(self, first: list[Path]) -> list[Path]:
        # Keep collecting until a quiet interval passes, so a burst of appends is one batch.
        batch = set(first)
        if self.debounce <= 0:
            return sorted(batch)
        while True:
            time.sleep(self.debounce)
            more = self.poll()
            if not more:
                return sorted(batch)
            batch.update(more)

    def watch(
        self,
        *,
        on_change: Callable[[list[Path]], None] | None = None,
        max_batches: int | None = None,
        max_seconds: float | None = None,
    ) -> int:
        start = time.monotonic()
        batches = 0
        if not self._primed:
            self.poll()

        while True:
            changed = self.poll()
            if changed:
                batch = self._debounced_batch(changed)
                logger.debug("Detected %d changed session file(s)", len(batch))
                if on_change is not None:
                    on_change(batch)
                batches += 1
                if max_batches is not None and batches >= max_batches:
                    break

            if max_seconds is not None and (time.monotonic() - start) >= max_seconds:
                break
            time.sleep(self.poll_interval)

        return batches
