from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Size ceilings for Codex payloads (characters)
MAX_TEXT_BLOCK_SIZE = 20_000
MAX_OUTPUT_BLOCK_SIZE = 30_000
MAX_ARGS_SIZE = 10_000

FIRST_PROMPT_LENGTH = 100
ELLIPSIS = "..."


def truncate_text(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}{ELLIPSIS}"


def pretty_json(value: Any) -> str:
    try:
        return json.dumps(value, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def pretty_arguments(raw_value: Any) -> str:
    """Pretty-print call arguments, re-parsing pre-serialized JSON strings."""
    if raw_value is None:
        return ""
    if isinstance(raw_value, str):
        try:
            decoded = json.loads(raw_value)
        except json.JSONDecodeError:
            return raw_value
        return pretty_json(decoded)
    return pretty_json(raw_value)


def stringify_output(raw_value: Any) -> str:
    if raw_value is None:
        return ""
    if isinstance(raw_value, str):
        return raw_value
    return pretty_json(raw_value)


def flatten_tool_result(content: Any) -> str:
    """Flatten tool-result content; arrays of sub-blocks join their text fields."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and isinstance(item.get("text"), str):
                parts.append(item["text"])
        return "\n".join(parts)
    return pretty_json(content)


def short_name_from_path(path: str) -> str:
    """Last path segment, tolerant of both separators and trailing slashes."""
    trimmed = path.rstrip("/\\")
    position = max(trimmed.rfind("/"), trimmed.rfind("\\"))
    if position < 0:
        return trimmed
    return trimmed[position + 1 :]


def format_mtime(value: float) -> str:
    return datetime.fromtimestamp(int(value), tz=UTC).isoformat()


def file_times(path: Path) -> tuple[str | None, str | None]:
    """Return (created, modified) ISO timestamps for a file, when available."""
    try:
        stat = path.stat()
    except OSError:
        return None, None
    created_ts = getattr(stat, "st_birthtime", None)
    if created_ts is None:
        created_ts = stat.st_ctime
    return format_mtime(created_ts), format_mtime(stat.st_mtime)
