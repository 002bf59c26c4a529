from __future__ import annotations

from dataclasses import dataclass

from session_atlas.core.errors import UnknownSourceError


@dataclass(frozen=True)
class SourceDefinition:
    name: str
    display_name: str
    aliases: tuple[str, ...] = ()


SOURCE_DEFINITIONS: tuple[SourceDefinition, ...] = (
    SourceDefinition(
        name="claude",
        display_name="Claude Code",
        aliases=("claude", "claude-code", "claude_code", "claudecode"),
    ),
    SourceDefinition(
        name="codex",
        display_name="OpenAI Codex",
        aliases=("codex", "openai-codex", "openai_codex"),
    ),
)

SOURCE_BY_NAME: dict[str, SourceDefinition] = {item.name: item for item in SOURCE_DEFINITIONS}
VALID_SOURCE_NAMES: tuple[str, ...] = tuple(item.name for item in SOURCE_DEFINITIONS)


def _build_alias_lookup() -> dict[str, str]:
    mapping: dict[str, str] = {}
    for source in SOURCE_DEFINITIONS:
        for alias in source.aliases:
            normalized = alias.strip().lower().replace("_", "-")
            if normalized:
                mapping[normalized] = source.name
        mapping[source.name] = source.name
    return mapping


SOURCE_NAME_ALIASES = _build_alias_lookup()


def normalize_source_name(value: str) -> str:
    normalized = value.strip().lower().replace("_", "-")
    return SOURCE_NAME_ALIASES.get(normalized, normalized)


def require_source(value: str) -> str:
    """Resolve a provider tag or raise; there is no default provider."""
    normalized = normalize_source_name(value)
    if normalized not in SOURCE_BY_NAME:
        raise UnknownSourceError(value, VALID_SOURCE_NAMES)
    return normalized
