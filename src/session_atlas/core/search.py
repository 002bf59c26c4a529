from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor

from session_atlas.core.content import FIRST_PROMPT_LENGTH, truncate_text
from session_atlas.core.errors import SessionAtlasError
from session_atlas.ingest.base import SessionFile, SessionProvider
from session_atlas.storage.models import (
    DisplayMessage,
    SearchResult,
    TextBlock,
    block_text,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_CHARS = 50
DEFAULT_PER_FILE_LIMIT = 5


def _lowered_with_offsets(text: str) -> tuple[str, list[int]]:
    """Lowercase ``text`` keeping, for each lowered character, its source index.

    A few characters change length when lowercased, so positions found in the
    lowered text cannot be reused on the original without this map.
    """
    lowered: list[str] = []
    offsets: list[int] = []
    for index, char in enumerate(text):
        low = char.lower()
        lowered.append(low)
        offsets.extend([index] * len(low))
    return "".join(lowered), offsets


def extract_context(text: str, query_lower: str, context_chars: int = DEFAULT_CONTEXT_CHARS) -> str:
    """Snippet around the first case-insensitive occurrence of ``query_lower``.

    Works on characters, never bytes. Falls back to a plain truncation when the
    query does not occur in ``text``.
    """
    lowered, offsets = _lowered_with_offsets(text)
    position = lowered.find(query_lower) if query_lower else -1
    if position < 0:
        return truncate_text(text, context_chars * 2)

    match_start = offsets[position]
    match_end = offsets[position + len(query_lower) - 1] + 1
    start = max(match_start - context_chars, 0)
    end = min(match_end + context_chars, len(text))
    return text[start:end]


def first_user_prompt(messages: list[DisplayMessage]) -> str | None:
    for message in messages:
        if message.role != "user":
            continue
        for block in message.content:
            if isinstance(block, TextBlock):
                return truncate_text(block.text, FIRST_PROMPT_LENGTH)
    return None


class SearchEngine:
    """Parallel substring search over every session file of one provider."""

    def __init__(
        self,
        provider: SessionProvider,
        max_workers: int | None = None,
        per_file_limit: int = DEFAULT_PER_FILE_LIMIT,
        context_chars: int = DEFAULT_CONTEXT_CHARS,
    ):
        self.provider = provider
        self.max_workers = max_workers or os.cpu_count() or 1
        self.per_file_limit = per_file_limit
        self.context_chars = context_chars

    def search(self, query: str, max_results: int) -> list[SearchResult]:
        query_lower = query.lower()
        if not query_lower.strip() or max_results <= 0:
            return []

        files = self.provider.collect_session_files()
        if not files:
            return []

        # Each task owns its result list; lists are merged once every task is done.
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(files))) as executor:
            per_file = list(executor.map(lambda item: self.search_file(item, query_lower), files))

        results = [result for file_results in per_file for result in file_results]
        return results[:max_results]

    def search_file(self, session_file: SessionFile, query_lower: str) -> list[SearchResult]:
        try:
            raw = session_file.path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            logger.debug("Skipping unreadable session file %s", session_file.path)
            return []
        if query_lower not in raw.lower():
            return []

        session_file = self.provider.describe_session_file(session_file)
        try:
            messages = self.provider.materialize(session_file.path)
        except SessionAtlasError as exc:
            logger.debug("Skipping session file %s: %s", session_file.path, exc)
            return []

        results: list[SearchResult] = []
        first_prompt: str | None = None
        first_prompt_loaded = False

        for message in messages:
            matched = next(
                (
                    text
                    for text in (block_text(block) for block in message.content)
                    if query_lower in text.lower()
                ),
                None,
            )
            if matched is None:
                continue

            if not first_prompt_loaded:
                first_prompt = first_user_prompt(messages)
                first_prompt_loaded = True

            results.append(
                SearchResult(
                    source=self.provider.source_name,
                    project_id=session_file.project_id,
                    project_name=session_file.project_name,
                    session_id=session_file.session_id,
                    first_prompt=first_prompt,
                    matched_text=extract_context(matched, query_lower, self.context_chars),
                    role=message.role,
                    timestamp=message.timestamp,
                    file_path=str(session_file.path),
                )
            )
            if len(results) >= self.per_file_limit:
                break

        return results
