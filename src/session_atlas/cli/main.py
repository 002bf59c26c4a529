from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from session_atlas.cli.theme import DEFAULT_THEME, ThemeManager
from session_atlas.core.config import load_config
from session_atlas.core.engine import SessionEngine
from session_atlas.core.errors import SessionAtlasError
from session_atlas.ingest.claude_code import ClaudeCodeProvider, decode_project_path
from session_atlas.ingest.log_watcher import SessionWatcher
from session_atlas.ingest.sources import require_source
from session_atlas.storage.models import (
    DisplayMessage,
    FunctionCallBlock,
    FunctionCallOutputBlock,
    ReasoningBlock,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
)

app = typer.Typer(help="Browse, search and summarize Claude Code and Codex session logs")

_theme_manager = ThemeManager(DEFAULT_THEME)
console = Console(theme=_theme_manager.get_theme())

T = TypeVar("T")


class _State:
    config_path: Path | None = None


_state = _State()


def _configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger("session_atlas")
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)
    handler = RichHandler(console=Console(stderr=True), show_path=False, show_time=False)
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def get_engine() -> SessionEngine:
    """Load configuration and apply its theme before building the engine."""
    global console
    try:
        config = load_config(_state.config_path)
    except (ValidationError, SessionAtlasError) as exc:
        console.print(f"[error]Invalid configuration: {escape(str(exc))}[/error]")
        raise typer.Exit(1) from None

    if config.theme.name != _theme_manager.theme_name:
        try:
            _theme_manager.set_theme(config.theme.name)
        except ValueError as exc:
            console.print(f"[warning]{escape(str(exc))}[/warning]")
        else:
            console = Console(theme=_theme_manager.get_theme())
    return SessionEngine(config)


def run_query(action: Callable[[], T]) -> T:
    try:
        return action()
    except (SessionAtlasError, ValueError) as exc:
        console.print(f"[error]{escape(str(exc))}[/error]")
        raise typer.Exit(1) from None


def _emit_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@app.callback()
def _main(
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to config.yaml (default: ~/.session-atlas/config.yaml)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Browse, search and summarize Claude Code and Codex session logs."""
    _state.config_path = config
    _configure_logging(verbose)


@app.command()
def projects(
    source: str = typer.Argument(..., help="Session source: claude or codex"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """List projects that have session logs."""
    engine = get_engine()
    entries = run_query(lambda: engine.get_projects(source))

    if as_json:
        _emit_json([entry.to_wire() for entry in entries])
        return
    if not entries:
        console.print("[warning]No projects found.[/warning]")
        return

    table = Table(title=f"Projects ({require_source(source)})")
    table.add_column("Project", style="table_header")
    table.add_column("Sessions", justify="right")
    table.add_column("Last modified")
    table.add_column("ID", overflow="fold")
    for entry in entries:
        table.add_row(
            escape(entry.short_name),
            str(entry.session_count),
            entry.last_modified or "-",
            escape(entry.id),
        )
    console.print(table)


@app.command()
def sessions(
    source: str = typer.Argument(..., help="Session source: claude or codex"),
    project_id: str = typer.Argument(..., help="Project ID as listed by 'projects'"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """List sessions of one project, newest first."""
    engine = get_engine()
    entries = run_query(lambda: engine.get_sessions(source, project_id))

    if as_json:
        _emit_json([entry.to_wire() for entry in entries])
        return
    if not entries:
        console.print("[warning]No sessions found.[/warning]")
        return

    table = Table(title="Sessions")
    table.add_column("Session", style="table_header", overflow="fold")
    table.add_column("Messages", justify="right")
    table.add_column("Modified")
    table.add_column("Branch")
    table.add_column("First prompt", overflow="fold")
    for entry in entries:
        table.add_row(
            escape(entry.session_id),
            str(entry.message_count),
            entry.modified or "-",
            escape(entry.git_branch or "-"),
            escape(entry.first_prompt or ""),
        )
    console.print(table)


def _render_message(message: DisplayMessage) -> None:
    role_style = f"role.{message.role}" if message.role in {"user", "assistant", "tool"} else "bold"
    header = f"[{role_style}]{escape(message.role)}[/{role_style}]"
    if message.timestamp:
        header += f" [dim]{escape(message.timestamp)}[/dim]"
    if message.model:
        header += f" [dim]({escape(message.model)})[/dim]"
    console.print(header)

    for block in message.content:
        if isinstance(block, TextBlock):
            console.print(escape(block.text))
        elif isinstance(block, (ThinkingBlock, ReasoningBlock)):
            text = block.thinking if isinstance(block, ThinkingBlock) else block.text
            console.print(f"[block.thinking]{escape(text)}[/block.thinking]")
        elif isinstance(block, ToolUseBlock):
            console.print(f"[block.tool]tool_use {escape(block.name)}[/block.tool]")
            console.print(f"[dim]{escape(block.input)}[/dim]")
        elif isinstance(block, FunctionCallBlock):
            console.print(f"[block.tool]function_call {escape(block.name)}[/block.tool]")
            console.print(f"[dim]{escape(block.arguments)}[/dim]")
        elif isinstance(block, ToolResultBlock):
            style = "error" if block.is_error else "dim"
            console.print(f"[{style}]{escape(block.content)}[/{style}]")
        elif isinstance(block, FunctionCallOutputBlock):
            console.print(f"[dim]{escape(block.output)}[/dim]")
    console.print()


@app.command()
def messages(
    source: str = typer.Argument(..., help="Session source: claude or codex"),
    file_path: Path = typer.Argument(..., help="Session log file"),
    page: int = typer.Option(0, "--page", "-p", min=0, help="Page number"),
    page_size: int | None = typer.Option(
        None, "--page-size", "-n", min=1, help="Messages per page (default from config)"
    ),
    from_end: bool = typer.Option(
        False, "--from-end", help="Count pages from the newest message backwards"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Show one page of a session's messages."""
    engine = get_engine()
    result = run_query(
        lambda: engine.get_messages(
            source, file_path, page=page, page_size=page_size, from_end=from_end
        )
    )

    if as_json:
        _emit_json(result.to_wire())
        return

    for message in result.messages:
        _render_message(message)
    more = " (more available)" if result.has_more else ""
    console.print(
        f"[dim]Page {result.page} · {len(result.messages)} of {result.total} messages{more}[/dim]"
    )


@app.command()
def search(
    source: str = typer.Argument(..., help="Session source: claude or codex"),
    query: str = typer.Argument(..., help="Case-insensitive search text"),
    max_results: int | None = typer.Option(
        None, "--max-results", "-k", min=1, help="Maximum results (default from config)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Search message text across every session of a source."""
    engine = get_engine()
    results = run_query(lambda: engine.search(source, query, max_results))

    if as_json:
        _emit_json([result.to_wire() for result in results])
        return
    if not results:
        console.print("[warning]No matches found.[/warning]")
        return

    for idx, result in enumerate(results, 1):
        console.print(
            f"{idx}. [accent]{escape(result.project_name)}[/accent] "
            f"[dim]{escape(result.session_id)}[/dim] ({escape(result.role)})"
        )
        console.print(f"   {escape(result.matched_text)}")


@app.command()
def stats(
    source: str = typer.Argument(..., help="Session source: claude or codex"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Summarize token usage and activity."""
    engine = get_engine()
    summary = run_query(lambda: engine.get_stats(source))

    if as_json:
        _emit_json(summary.to_wire())
        return

    console.print(f"Sessions: [accent]{summary.session_count}[/accent]")
    console.print(f"Messages: [accent]{summary.message_count}[/accent]")
    console.print(
        f"Tokens: [accent]{summary.total_tokens}[/accent] "
        f"[dim](input {summary.total_input_tokens}, output {summary.total_output_tokens})[/dim]"
    )

    if summary.tokens_by_model:
        table = Table(title="Tokens by model")
        table.add_column("Model", style="table_header")
        table.add_column("Tokens", justify="right")
        for model, tokens in sorted(summary.tokens_by_model.items()):
            table.add_row(escape(model), str(tokens))
        console.print(table)

    if summary.daily_tokens:
        table = Table(title="Daily tokens")
        table.add_column("Date", style="table_header")
        table.add_column("Input", justify="right")
        table.add_column("Output", justify="right")
        table.add_column("Total", justify="right")
        for day in summary.daily_tokens:
            table.add_row(
                day.date, str(day.input_tokens), str(day.output_tokens), str(day.total_tokens)
            )
        console.print(table)


@app.command("repair-index")
def repair_index(
    session_id: str = typer.Argument(..., help="Session ID to add"),
    file_path: Path = typer.Argument(..., help="Session log file"),
    project_path: str | None = typer.Option(
        None, "--project-path", help="Working directory recorded for the project"
    ),
    source: str = typer.Option("claude", "--source", "-s", help="Session source"),
):
    """Add a session missing from its project's sessions-index.json."""
    engine = get_engine()
    provider = run_query(lambda: engine.provider(source))
    if project_path is None:
        project_path = decode_project_path(file_path.parent.name)
        if isinstance(provider, ClaudeCodeProvider):
            project_path = provider.resolve_project_path(file_path, project_path)

    added = run_query(
        lambda: engine.ensure_session_in_index(source, session_id, file_path, project_path)
    )
    if added:
        console.print(f"[success]✓ Added {escape(session_id)} to the sessions index[/success]")
    else:
        console.print("[dim]Sessions index left unchanged.[/dim]")


@app.command()
def watch(
    source: str | None = typer.Option(
        None, "--source", "-s", help="Only watch one source (default: all)"
    ),
    max_batches: int | None = typer.Option(
        None, "--max-batches", min=1, help="Stop after this many change batches"
    ),
    max_seconds: float | None = typer.Option(
        None, "--max-seconds", min=0.0, help="Stop after this many seconds"
    ),
):
    """Report session file changes as they happen."""
    engine = get_engine()
    names = [run_query(lambda: require_source(source))] if source else ["claude", "codex"]
    roots = [engine.provider(name).root_dir for name in names]

    def _on_change(paths: list[Path]) -> None:
        engine.handle_file_changes(paths)
        for path in paths:
            console.print(f"[info]changed[/info] {escape(str(path))}")

    watcher = SessionWatcher(
        roots,
        poll_interval=engine.config.watch.poll_interval,
        debounce=engine.config.watch.debounce,
    )
    console.print(f"[dim]Watching {', '.join(str(root) for root in roots)}[/dim]")
    try:
        batches = watcher.watch(
            on_change=_on_change, max_batches=max_batches, max_seconds=max_seconds
        )
    except KeyboardInterrupt:
        return
    console.print(f"[dim]{batches} change batch(es)[/dim]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
