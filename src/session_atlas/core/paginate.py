from __future__ import annotations

from collections.abc import Sequence

from session_atlas.storage.models import DisplayMessage, PaginatedMessages


def page_window(
    total: int, page: int, page_size: int, from_end: bool = False
) -> tuple[int, int, bool]:
    """Return ``(start, end, has_more)`` for one page of a ``total``-long sequence.

    Forward pages count from the oldest message. With ``from_end`` page 0 holds the
    newest ``page_size`` messages, page 1 the ones before them, and so on, so a
    consumer can open a long session already scrolled to the bottom. Pages past
    either end are empty with ``has_more`` False.
    """
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")
    if page < 0:
        raise ValueError(f"page must not be negative, got {page}")

    if from_end:
        end = max(total - page * page_size, 0)
        start = max(end - page_size, 0)
        return start, end, start > 0

    start = min(page * page_size, total)
    end = min((page + 1) * page_size, total)
    return start, end, end < total


def paginate(
    messages: Sequence[DisplayMessage],
    page: int,
    page_size: int,
    from_end: bool = False,
) -> PaginatedMessages:
    start, end, has_more = page_window(len(messages), page, page_size, from_end)
    return PaginatedMessages(
        messages=list(messages[start:end]),
        total=len(messages),
        page=page,
        page_size=page_size,
        has_more=has_more,
    )
