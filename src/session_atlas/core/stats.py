from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path

from pydantic import ValidationError

from session_atlas.core.errors import MalformedError
from session_atlas.ingest.claude_code import ClaudeCodeProvider
from session_atlas.ingest.codex import CodexProvider, extract_date_from_path
from session_atlas.ingest.sources import require_source
from session_atlas.storage.models import (
    DailyTokenEntry,
    SourcesConfig,
    StatsCache,
    TokenUsageSummary,
)

logger = logging.getLogger(__name__)


def split_day_total(day_total: int, total_input: int, total_output: int) -> tuple[int, int]:
    """Estimate a day's input/output split from the all-time ratio.

    The Claude aggregate only records a per-day total, so the input share is
    ``day_total * total_input // (total_input + total_output)`` and the output
    share is the remainder. With no recorded tokens the day is split in half.
    """
    grand_total = total_input + total_output
    if grand_total > 0:
        day_input = day_total * total_input // grand_total
    else:
        day_input = day_total // 2
    return day_input, day_total - day_input


def claude_stats(stats_cache_path: Path) -> TokenUsageSummary:
    if not stats_cache_path.exists():
        return TokenUsageSummary()

    try:
        cache = StatsCache.model_validate_json(stats_cache_path.read_bytes())
    except OSError as exc:
        raise MalformedError(f"Failed to read stats cache {stats_cache_path}: {exc}") from exc
    except ValidationError as exc:
        raise MalformedError(f"Failed to parse stats cache {stats_cache_path}: {exc}") from exc

    total_input = 0
    total_output = 0
    for usage in cache.model_usage.values():
        total_input += (
            usage.input_tokens + usage.cache_read_input_tokens + usage.cache_creation_input_tokens
        )
        total_output += usage.output_tokens

    summary = TokenUsageSummary(
        total_input_tokens=total_input,
        total_output_tokens=total_output,
    )
    for activity in cache.daily_activity:
        summary.message_count += activity.message_count
        summary.session_count += activity.session_count

    tokens_by_model: dict[str, int] = defaultdict(int)
    for day in sorted(cache.daily_model_tokens, key=lambda item: item.date):
        day_total = 0
        for model, tokens in day.tokens_by_model.items():
            day_total += tokens
            tokens_by_model[model] += tokens
        day_input, day_output = split_day_total(day_total, total_input, total_output)
        summary.daily_tokens.append(
            DailyTokenEntry(
                date=day.date,
                input_tokens=day_input,
                output_tokens=day_output,
                total_tokens=day_total,
            )
        )
        summary.total_tokens += day_total

    summary.tokens_by_model = dict(tokens_by_model)
    return summary


def codex_stats(provider: CodexProvider) -> TokenUsageSummary:
    summary = TokenUsageSummary()
    tokens_by_model: dict[str, int] = defaultdict(int)
    daily: dict[str, DailyTokenEntry] = {}

    for path in provider.scan_all_session_files():
        summary.session_count += 1
        summary.message_count += provider.count_messages(path)

        info = provider.extract_token_info(path)
        if info is None:
            continue

        meta = provider.extract_session_meta(path)
        model_provider = (meta.model_provider if meta else None) or "unknown"

        summary.total_input_tokens += info.input_tokens
        summary.total_output_tokens += info.output_tokens
        summary.total_tokens += info.total_tokens
        tokens_by_model[model_provider] += info.total_tokens

        date = extract_date_from_path(path)
        if date is None:
            logger.debug("No date in session path %s", path)
            continue
        entry = daily.setdefault(date, DailyTokenEntry(date=date))
        entry.input_tokens += info.input_tokens
        entry.output_tokens += info.output_tokens
        entry.total_tokens += info.total_tokens

    summary.tokens_by_model = dict(tokens_by_model)
    summary.daily_tokens = [daily[date] for date in sorted(daily)]
    return summary


def get_stats(source: str, sources: SourcesConfig | None = None) -> TokenUsageSummary:
    normalized = require_source(source)
    sources = sources or SourcesConfig()
    if normalized == "claude":
        return claude_stats(ClaudeCodeProvider(claude_dir=sources.claude_dir).stats_cache_path)
    return codex_stats(CodexProvider(codex_dir=sources.codex_dir))
