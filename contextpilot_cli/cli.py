"""Typer-based CLI for ContextPilot: code history context from the terminal."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Coroutine, List, NoReturn, Optional, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown

from . import __version__, config_manager
from .cli_setup import set_llm, set_tool, show_config
from .cli_watch import watch
from .context import RuntimeContext
from .diff_bundle import render_bundle
from .errors import ContextPilotError, NoWorkspaceError, ParseFailedError
from .llm import LLMOracle, create_provider
from .models import LineRange
from .orchestrator import ContextPilotOrchestrator
from .progress import RichProgressSink
from .selection import (
    commit_document,
    commit_items,
    list_subdirectories,
    occurrence_items,
    pick_many,
    pick_one,
    render_items,
    safe_document_name,
    show_document,
)

T = TypeVar("T")

console = Console()

app = typer.Typer(
    help="🧭 ContextPilot CLI: relevant files, authors, and commits for any line of code.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("watch")(watch)
app.command("show-config")(show_config)
app.command("set-llm")(set_llm)
app.command("set-tool")(set_tool)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"ContextPilot CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Log engine activity and tool output."),
):
    """ContextPilot CLI: query the contextpilot history index from your terminal."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# ===================================================================
# Shared helpers
# ===================================================================

WORKSPACE_OPTION = typer.Option(Path("."), "--workspace", "-w", help="Workspace (repository) root.")
LINE_OPTION = typer.Option(None, "--line", "-l", min=1, help="Query a single line.")
START_OPTION = typer.Option(None, "--start", "-s", min=1, help="First line of the range.")
END_OPTION = typer.Option(None, "--end", "-e", min=1, help="Last line of the range.")


def open_workspace(workspace: Path) -> RuntimeContext:
    if not workspace.is_dir():
        report_error(NoWorkspaceError(f"No workspace open: {workspace} is not a directory"))
    return RuntimeContext(workspace)


def line_range_from(line: Optional[int], start: Optional[int], end: Optional[int]) -> LineRange:
    """``--line`` wins; no options means the whole file."""
    if line is not None:
        return LineRange.single_line(line)
    if start is None and end is None:
        return LineRange.whole_file()
    start = start or 1
    return LineRange(start, end if end is not None else start)


def target_file(file: Path) -> Path:
    return file.resolve() if file.exists() else file


def report_error(exc: ContextPilotError) -> NoReturn:
    if isinstance(exc, ParseFailedError):
        console.print(f"[red]✗[/red] contextpilot ran but its output could not be parsed: {exc}")
    else:
        console.print(f"[red]✗[/red] {exc}")
    raise typer.Exit(1)


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except ContextPilotError as exc:
        report_error(exc)


# ===================================================================
# Queries
# ===================================================================

@app.command("files")
def related_files(
    file: Path = typer.Argument(..., help="File to find related files for."),
    line: Optional[int] = LINE_OPTION,
    start: Optional[int] = START_OPTION,
    end: Optional[int] = END_OPTION,
    workspace: Path = WORKSPACE_OPTION,
    list_only: bool = typer.Option(False, "--list", help="Print the results without prompting."),
    open_file: bool = typer.Option(False, "--open", help="Open the selected file in $EDITOR."),
):
    """🔗 Files that change together with the given file, line, or range.

    Example:
      cpilot files src/main.rs
      cpilot files src/main.rs --line 42
      cpilot files src/main.rs -s 10 -e 30 --open
    """
    ctx = open_workspace(workspace)
    orchestrator = ContextPilotOrchestrator(ctx)
    occurrences = run_async(orchestrator.related_files(target_file(file), line_range_from(line, start, end)))

    if not occurrences:
        console.print("[yellow]No related files found.[/yellow]")
        return

    items = occurrence_items(occurrences)
    if list_only:
        render_items(items, console, "Related files")
        return

    selected = pick_one(items, console, "Related files")
    if selected is None:
        return
    selected_path = ctx.workspace / selected.label
    console.print(str(selected_path))
    if open_file:
        if not selected_path.is_file():
            console.print(f"[red]✗[/red] Failed to open file: {selected_path} does not exist")
            raise typer.Exit(1)
        typer.edit(filename=str(selected_path))


@app.command("authors")
def related_authors(
    file: Path = typer.Argument(..., help="File to find relevant authors for."),
    line: Optional[int] = LINE_OPTION,
    start: Optional[int] = START_OPTION,
    end: Optional[int] = END_OPTION,
    workspace: Path = WORKSPACE_OPTION,
    list_only: bool = typer.Option(False, "--list", help="Print the results without prompting."),
):
    """👥 Authors who shaped the given file, line, or range.

    Example:
      cpilot authors src/main.rs --line 42
    """
    ctx = open_workspace(workspace)
    orchestrator = ContextPilotOrchestrator(ctx)
    authors = run_async(orchestrator.related_authors(target_file(file), line_range_from(line, start, end)))

    if not authors:
        console.print("[yellow]No authors found.[/yellow]")
        return

    items = occurrence_items(authors)
    if list_only:
        render_items(items, console, "Relevant authors")
        return

    selected = pick_one(items, console, "Relevant authors")
    if selected is not None:
        console.print(selected.label)


@app.command("commits")
def relevant_commits(
    file: Path = typer.Argument(..., help="File to find relevant commits for."),
    line: Optional[int] = LINE_OPTION,
    start: Optional[int] = START_OPTION,
    end: Optional[int] = END_OPTION,
    workspace: Path = WORKSPACE_OPTION,
    list_only: bool = typer.Option(False, "--list", help="Print the results without prompting."),
):
    """📜 Commits relevant to the given file or range, newest first.

    Example:
      cpilot commits src/main.rs -s 10 -e 30
    """
    ctx = open_workspace(workspace)
    orchestrator = ContextPilotOrchestrator(ctx)
    commits = run_async(orchestrator.relevant_commits(target_file(file), line_range_from(line, start, end)))

    if not commits:
        console.print("[yellow]No relevant commits found.[/yellow]")
        return

    items = commit_items(commits)
    if list_only:
        render_items(items, console, "Relevant commits")
        return

    selected = pick_one(items, console, "Select a commit to view details")
    if selected is None:
        return
    console.rule(safe_document_name(selected.label))
    show_document(commit_document(selected), console)


# ===================================================================
# Indexing
# ===================================================================

def _since_timestamp(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).timestamp()
    except ValueError:
        raise typer.BadParameter(f"'{value}' is neither epoch seconds nor an ISO date", param_hint="--since")


@app.command("index")
def index_workspace(
    subdir: Optional[List[str]] = typer.Option(
        None, "--subdir", "-i", help="Only index this subdirectory (repeatable)."
    ),
    pick: bool = typer.Option(False, "--pick", help="Choose subdirectories interactively."),
    workspace: Path = WORKSPACE_OPTION,
):
    """🗂️  Index the workspace, or selected subdirectories of it.

    Example:
      cpilot index
      cpilot index -i src -i lib
      cpilot index --pick
    """
    ctx = open_workspace(workspace)
    subdirs = list(subdir or [])

    if pick:
        options = list_subdirectories(ctx.workspace)
        if not options:
            console.print("[yellow]No subdirectories found.[/yellow]")
            return
        subdirs = pick_many(options, console, "Select subdirectories to index")
        if not subdirs:
            console.print("[yellow]No subdirectories selected.[/yellow]")
            return

    orchestrator = ContextPilotOrchestrator(ctx)
    title = f"Indexing {len(subdirs)} subdirectories" if subdirs else "Indexing workspace"
    with RichProgressSink(title) as progress:
        run = run_async(orchestrator.index(subdirs or None, progress))

    console.print(f"[green]✓[/green] Indexing completed ({run.files_seen} file(s) reported).")


@app.command("reindex")
def reindex_workspace(
    since: Optional[str] = typer.Option(
        None, "--since", help="Last index time (epoch seconds or ISO date); enables incremental mode."
    ),
    base: Optional[str] = typer.Option(
        None, "--base", help="Commit the last index was built from; preferred over --since."
    ),
    full: bool = typer.Option(False, "--full", help="Force a full index."),
    workspace: Path = WORKSPACE_OPTION,
):
    """♻️  Re-index files changed since the last index.

    Without a known last index commit or time this falls back to a full index.

    Example:
      cpilot reindex --base 3f2c9e1
      cpilot reindex --since 2024-05-01T12:00:00
      cpilot reindex --full
    """
    ctx = open_workspace(workspace)
    if since is not None:
        ctx.reindex_state.last_indexed_at = _since_timestamp(since)
    if base is not None:
        ctx.reindex_state.last_indexed_revision = base
    orchestrator = ContextPilotOrchestrator(ctx)

    with RichProgressSink("Re-indexing") as progress:
        if full:
            run = run_async(orchestrator.index(progress=progress))
        else:
            run = run_async(orchestrator.reindex(progress))

    if run.mode.value == "full":
        console.print(f"[green]✓[/green] Full index completed ({run.files_seen} file(s) reported).")
        return
    console.print(f"[green]✓[/green] Incremental index completed: {len(run.indexed)} file(s) re-indexed.")
    for path in run.failed:
        console.print(f"  [red]✗[/red] {path}")


# ===================================================================
# Diff bundles and analysis
# ===================================================================

@app.command("diffs")
def generate_diffs(
    file: Path = typer.Argument(..., help="File whose history to bundle."),
    start: Optional[int] = START_OPTION,
    end: Optional[int] = END_OPTION,
    workspace: Path = WORKSPACE_OPTION,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the bundle to this file."),
):
    """🧾 Bundle the diffs of relevant commits as Markdown for a chat session.

    Example:
      cpilot diffs src/main.rs -s 10 -e 30 -o context.md
    """
    ctx = open_workspace(workspace)
    orchestrator = ContextPilotOrchestrator(ctx)
    with RichProgressSink("Collecting diffs") as progress:
        blocks = run_async(
            orchestrator.diff_bundle(target_file(file), line_range_from(None, start, end), progress)
        )

    if not blocks:
        console.print("[yellow]No relevant commit diffs found.[/yellow]")
        return

    text = render_bundle(blocks, file)
    if output is None:
        typer.echo(text)
        return
    output.write_text(text, encoding="utf-8")
    console.print(f"[green]✓[/green] Wrote {len(blocks)} commit diff(s) to {output}")


@app.command("analyze")
def analyze_commits(
    file: Path = typer.Argument(..., help="File whose history to analyze."),
    start: Optional[int] = START_OPTION,
    end: Optional[int] = END_OPTION,
    workspace: Path = WORKSPACE_OPTION,
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="LLM provider override."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="LLM model override."),
):
    """🤖 Explain the history of a file or range with an LLM.

    Example:
      cpilot analyze src/main.rs -s 10 -e 30
      cpilot analyze src/main.rs -p ollama -m qwen2.5-coder:7b
    """
    ctx = open_workspace(workspace)
    orchestrator = ContextPilotOrchestrator(ctx)
    try:
        oracle = LLMOracle(create_provider(provider, model))
    except ContextPilotError as exc:
        report_error(exc)

    with RichProgressSink("Analyzing commits") as progress:
        blocks, analysis = run_async(
            orchestrator.analyze(target_file(file), oracle, line_range_from(None, start, end), progress)
        )

    if not blocks:
        console.print("[yellow]No relevant commit diffs found; nothing to analyze.[/yellow]")
        return
    console.rule(f"Analysis of {len(blocks)} commit(s)")
    console.print(Markdown(analysis or ""))


@app.command("doctor")
def doctor(workspace: Path = WORKSPACE_OPTION):
    """🩺 Check that a compatible contextpilot is installed."""
    ctx = open_workspace(workspace)
    settings = config_manager.load_tool_config()
    orchestrator = ContextPilotOrchestrator(ctx, settings=settings)
    run_async(orchestrator.ensure_ready())
    console.print(
        f"[green]✓[/green] contextpilot {ctx.installed_version} at {ctx.resolved_binary} "
        f"(requires >= {settings.min_version})"
    )


if __name__ == "__main__":
    app()
