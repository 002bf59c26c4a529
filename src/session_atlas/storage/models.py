from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models exchanged with consumers or stored in CLI cache files."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# Display blocks


class TextBlock(WireModel):
    type: Literal["text"] = "text"
    text: str


class ThinkingBlock(WireModel):
    type: Literal["thinking"] = "thinking"
    thinking: str


class ToolUseBlock(WireModel):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: str


class ToolResultBlock(WireModel):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False


class ReasoningBlock(WireModel):
    type: Literal["reasoning"] = "reasoning"
    text: str


class FunctionCallBlock(WireModel):
    type: Literal["function_call"] = "function_call"
    name: str
    arguments: str
    call_id: str = ""


class FunctionCallOutputBlock(WireModel):
    type: Literal["function_call_output"] = "function_call_output"
    call_id: str = ""
    output: str


DisplayBlock = Annotated[
    TextBlock
    | ThinkingBlock
    | ToolUseBlock
    | ToolResultBlock
    | ReasoningBlock
    | FunctionCallBlock
    | FunctionCallOutputBlock,
    Field(discriminator="type"),
]


def block_text(block: DisplayBlock) -> str:
    """Return the searchable text carried by a display block."""
    if isinstance(block, ThinkingBlock):
        return block.thinking
    if isinstance(block, ToolUseBlock):
        return block.input
    if isinstance(block, ToolResultBlock):
        return block.content
    if isinstance(block, FunctionCallBlock):
        return block.arguments
    if isinstance(block, FunctionCallOutputBlock):
        return block.output
    return block.text


class DisplayMessage(WireModel):
    """Normalized message shared by every provider."""

    uuid: str | None = None
    role: str
    timestamp: str | None = None
    model: str | None = None
    content: list[DisplayBlock] = Field(default_factory=list)


class PaginatedMessages(WireModel):
    messages: list[DisplayMessage]
    total: int
    page: int
    page_size: int
    has_more: bool


# Projects and sessions


class ProjectEntry(WireModel):
    source: str
    # Claude: encoded directory name, Codex: cwd
    id: str
    display_path: str
    short_name: str
    session_count: int
    last_modified: str | None = None
    model_provider: str | None = None


class SessionIndexEntry(WireModel):
    """Unified session listing entry."""

    source: str
    session_id: str
    file_path: str
    first_prompt: str | None = None
    message_count: int = 0
    created: str | None = None
    modified: str | None = None
    git_branch: str | None = None
    project_path: str | None = None
    # Claude only
    is_sidechain: bool | None = None
    # Codex only
    cwd: str | None = None
    model_provider: str | None = None
    cli_version: str | None = None


class SessionsIndexFileEntry(WireModel):
    """Entry of Claude's sessions-index.json. Unknown keys survive a rewrite."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    session_id: str
    full_path: str | None = None
    file_mtime: int | float | None = None
    first_prompt: str | None = None
    message_count: int | None = None
    created: str | None = None
    modified: str | None = None
    git_branch: str | None = None
    project_path: str | None = None
    is_sidechain: bool | None = None


class SessionsIndex(WireModel):
    """Claude's per-project sessions-index.json cache file."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    version: int | None = None
    entries: list[SessionsIndexFileEntry] = Field(default_factory=list)
    original_path: str | None = None


# Stats


class ModelUsageEntry(WireModel):
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_input_tokens: int = 0
    cache_creation_input_tokens: int = 0


class DailyActivity(WireModel):
    date: str
    message_count: int = 0
    session_count: int = 0
    tool_call_count: int = 0


class DailyModelTokens(WireModel):
    date: str
    tokens_by_model: dict[str, int] = Field(default_factory=dict)


class StatsCache(WireModel):
    """Claude's stats-cache.json aggregate, maintained by the Claude CLI."""

    version: int | None = None
    last_computed_date: str | None = None
    daily_activity: list[DailyActivity] = Field(default_factory=list)
    daily_model_tokens: list[DailyModelTokens] = Field(default_factory=list)
    model_usage: dict[str, ModelUsageEntry] = Field(default_factory=dict)


class DailyTokenEntry(WireModel):
    date: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class TokenUsageSummary(WireModel):
    """Token and activity totals; identical shape for every provider."""

    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    tokens_by_model: dict[str, int] = Field(default_factory=dict)
    daily_tokens: list[DailyTokenEntry] = Field(default_factory=list)
    session_count: int = 0
    message_count: int = 0


# Search


class SearchResult(WireModel):
    source: str
    project_id: str
    project_name: str
    session_id: str
    first_prompt: str | None = None
    matched_text: str
    role: str
    timestamp: str | None = None
    file_path: str


# Configuration


def _env_dir(env_var: str, fallback: str) -> Path:
    value = os.environ.get(env_var, "").strip()
    if value:
        return Path(value).expanduser()
    return Path.home() / fallback


class SourcesConfig(BaseModel):
    """Locations of the provider home directories."""

    claude_dir: Path = Field(
        default_factory=lambda: _env_dir("CLAUDE_CONFIG_DIR", ".claude"),
        validation_alias=AliasChoices("claude_dir", "claude"),
        description="Claude Code home (contains projects/ and stats-cache.json)",
    )
    codex_dir: Path = Field(
        default_factory=lambda: _env_dir("CODEX_HOME", ".codex"),
        validation_alias=AliasChoices("codex_dir", "codex"),
        description="Codex home (contains sessions/)",
    )


class PagingConfig(BaseModel):
    page_size: int = Field(default=50, gt=0)


class SearchConfig(BaseModel):
    """Full-text search limits."""

    max_results: int = Field(default=50, gt=0)
    max_workers: int | None = Field(
        default=None,
        gt=0,
        description="Worker threads for per-file search tasks (default: CPU count)",
    )
    context_chars: int = Field(default=50, ge=0)
    per_file_limit: int = Field(default=5, gt=0)


class CacheConfig(BaseModel):
    """Bounded LRU cache of materialized sessions."""

    enabled: bool = True
    max_entries: int = Field(default=20, gt=0)


class WatchConfig(BaseModel):
    poll_interval: float = Field(default=0.5, gt=0.0)
    debounce: float = Field(default=0.3, ge=0.0)


class ThemeConfig(BaseModel):
    """CLI theme configuration."""

    name: str = "dark+"


class AtlasConfig(BaseModel):
    """Root configuration for config.yaml."""

    extends: list[str] = Field(default_factory=list)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    paging: PagingConfig = Field(default_factory=PagingConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    theme: ThemeConfig = Field(default_factory=ThemeConfig)
