from __future__ import annotations

import pytest

from session_atlas.core.paginate import page_window, paginate
from session_atlas.storage.models import DisplayMessage, TextBlock


def _messages(count: int) -> list[DisplayMessage]:
    return [
        DisplayMessage(uuid=str(i), role="user", content=[TextBlock(text=f"m{i}")])
        for i in range(count)
    ]


@pytest.mark.parametrize(
    ("page", "expected"),
    [
        (0, (0, 50, True)),
        (1, (50, 100, True)),
        (2, (100, 120, False)),
        (3, (120, 120, False)),
    ],
)
def test_forward_windows(page: int, expected: tuple[int, int, bool]) -> None:
    assert page_window(120, page, 50) == expected


@pytest.mark.parametrize(
    ("page", "expected"),
    [
        (0, (70, 120, True)),
        (1, (20, 70, True)),
        (2, (0, 20, False)),
        (3, (0, 0, False)),
    ],
)
def test_reverse_windows(page: int, expected: tuple[int, int, bool]) -> None:
    assert page_window(120, page, 50, from_end=True) == expected


def test_empty_sequence() -> None:
    assert page_window(0, 0, 50) == (0, 0, False)
    assert page_window(0, 0, 50, from_end=True) == (0, 0, False)


def test_invalid_arguments_raise() -> None:
    with pytest.raises(ValueError):
        page_window(10, 0, 0)
    with pytest.raises(ValueError):
        page_window(10, -1, 5)


def test_paginate_latest_first() -> None:
    result = paginate(_messages(7), page=0, page_size=3, from_end=True)
    assert [message.uuid for message in result.messages] == ["4", "5", "6"]
    assert result.total == 7
    assert result.has_more is True

    last = paginate(_messages(7), page=2, page_size=3, from_end=True)
    assert [message.uuid for message in last.messages] == ["0"]
    assert last.has_more is False


def test_paginated_wire_shape() -> None:
    wire = paginate(_messages(2), page=0, page_size=50).to_wire()
    assert wire["total"] == 2
    assert wire["pageSize"] == 50
    assert wire["hasMore"] is False
    assert wire["messages"][0]["content"] == [{"type": "text", "text": "m0"}]


def test_three_message_session_in_pages_of_two() -> None:
    first = paginate(_messages(3), page=0, page_size=2)
    second = paginate(_messages(3), page=1, page_size=2)
    assert [m.uuid for m in first.messages] == ["0", "1"] and first.has_more is True
    assert [m.uuid for m in second.messages] == ["2"] and second.has_more is False


@pytest.mark.parametrize(("total", "size"), [(0, 1), (7, 3), (120, 50), (5, 10)])
def test_forward_windows_tile_the_sequence(total: int, size: int) -> None:
    covered: list[int] = []
    page = 0
    while True:
        start, end, has_more = page_window(total, page, size)
        covered.extend(range(start, end))
        if not has_more:
            break
        page += 1
    assert covered == list(range(total))
