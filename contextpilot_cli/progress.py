"""Progress sinks: where the engine reports (increment, message) pairs.

Increments are percentages of one operation; their running total only grows
and is capped at 100.
"""

from __future__ import annotations

from typing import Optional, Protocol

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TaskProgressColumn, TextColumn

TOTAL = 100.0


class ProgressSink(Protocol):
    def report(self, increment: float, message: Optional[str] = None) -> None:
        ...


class NullProgress:
    """Discard all progress reports."""

    def report(self, increment: float, message: Optional[str] = None) -> None:
        return None


class RichProgressSink:
    """Render reports on a rich progress bar, as a context manager."""

    def __init__(self, title: str, console: Optional[Console] = None):
        self.title = title
        self.completed = 0.0
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console or Console(stderr=True),
            transient=True,
        )
        self._task: Optional[TaskID] = None

    def __enter__(self) -> "RichProgressSink":
        self._progress.start()
        self._task = self._progress.add_task(self.title, total=TOTAL)
        return self

    def __exit__(self, *exc_info) -> None:
        self._progress.stop()

    def report(self, increment: float, message: Optional[str] = None) -> None:
        step = min(max(increment, 0.0), TOTAL - self.completed)
        self.completed += step
        if self._task is None:
            return
        description = f"{self.title}: {message}" if message else self.title
        self._progress.update(self._task, advance=step, description=description)
