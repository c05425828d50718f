"""Watch mode: reindex when git HEAD or refs change."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from .context import RuntimeContext
from .errors import ContextPilotError
from .orchestrator import ContextPilotOrchestrator
from .reindex import ReindexMode, ReindexRun
from .watch import WatchTrigger

console = Console()


def _report_run(run: ReindexRun) -> None:
    if run.mode is ReindexMode.FULL:
        console.print(f"  [green]✓[/green] Full re-index ({run.files_seen} file(s) reported)")
    elif run.indexed or run.failed:
        console.print(f"  [green]✓[/green] Re-indexed {len(run.indexed)} changed file(s)")
        for path in run.failed:
            console.print(f"    [red]✗[/red] {path}")
    else:
        console.print("  [dim]Nothing changed since the last index[/dim]")


def _report_error(exc: Exception) -> None:
    console.print(f"  [red]✗[/red] Re-index failed: {exc}")


async def _watch(orchestrator: ContextPilotOrchestrator, debounce: float, index_now: bool) -> None:
    await orchestrator.ensure_ready()
    trigger = WatchTrigger(
        orchestrator.scheduler,
        debounce=debounce,
        on_complete=_report_run,
        on_error=_report_error,
    )
    trigger.start()
    try:
        if index_now:
            await trigger.trigger()
        await asyncio.Event().wait()
    finally:
        trigger.stop()
        console.print(f"\n[yellow]Stopped watching.[/yellow] Re-indexed {trigger.runs} time(s).")


def watch(
    workspace: Path = typer.Option(Path("."), "--workspace", "-w", help="Repository to watch."),
    debounce: float = typer.Option(2.0, "--debounce", "-d", min=0, help="Seconds to wait for refs to settle."),
    index_now: bool = typer.Option(False, "--index-now", help="Re-index once before watching."),
):
    """👀 Watch mode: re-index whenever HEAD or a ref moves.

    The first re-index is a full one; later ones only index files changed
    since the previous run.

    Example:
      cpilot watch
      cpilot watch -w ~/src/project --debounce 5
    """
    if not workspace.is_dir():
        console.print(f"[red]✗[/red] No workspace open: {workspace} is not a directory")
        raise typer.Exit(1)

    ctx = RuntimeContext(workspace)
    orchestrator = ContextPilotOrchestrator(ctx)

    console.print(f"\n[bold green]👀 Watching[/bold green] [cyan]{ctx.workspace}[/cyan] for ref changes...")
    console.print(f"[dim]  Debounce:  {debounce}s")
    console.print("  Press Ctrl+C to stop[/dim]\n")

    try:
        asyncio.run(_watch(orchestrator, debounce, index_now))
    except ContextPilotError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        pass
