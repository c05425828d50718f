"""Reindex automatically when git HEAD or refs move."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import ContextPilotError, NoWorkspaceError, ReindexInProgressError
from .progress import ProgressSink
from .reindex import ReindexRun, ReindexScheduler

logger = logging.getLogger(__name__)


def is_ref_change(git_dir: Path, src_path: str) -> bool:
    """True for writes to HEAD, packed-refs, or anything under refs/."""
    path = Path(src_path)
    if path.suffix == ".lock":
        return False
    try:
        relative = path.relative_to(git_dir)
    except ValueError:
        return False
    parts = relative.parts
    if not parts:
        return False
    return parts[0] == "refs" or relative.as_posix() in ("HEAD", "packed-refs")


class GitRefHandler(FileSystemEventHandler):
    """Forward ref mutations from the watchdog thread to the event loop."""

    def __init__(self, git_dir: Path, notify: Callable[[], None]):
        super().__init__()
        self.git_dir = git_dir
        self.notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        for src in (event.src_path, getattr(event, "dest_path", "")):
            if src and is_ref_change(self.git_dir, str(src)):
                self.notify()
                return


class WatchTrigger:
    """Run the reindex scheduler after git ref changes settle.

    Bursts of ref writes (a rebase, a pull) are coalesced by ``debounce``
    seconds. The first reindex is full because no index time is known yet;
    later ones are incremental. A ref change that arrives while a reindex is
    running queues one more run for when it finishes.
    """

    def __init__(
        self,
        scheduler: ReindexScheduler,
        debounce: float = 2.0,
        progress_factory: Optional[Callable[[], ProgressSink]] = None,
        on_complete: Optional[Callable[[ReindexRun], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.scheduler = scheduler
        self.debounce = debounce
        self.progress_factory = progress_factory
        self.on_complete = on_complete
        self.on_error = on_error
        self.git_dir = scheduler.context.workspace / ".git"
        self.runs = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._observer: Optional[Observer] = None
        self._tasks: set = set()
        self._pending = False

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        if not self.git_dir.is_dir():
            raise NoWorkspaceError(f"{self.scheduler.context.workspace} is not a git repository")
        self._loop = loop or asyncio.get_running_loop()
        self._observer = Observer()
        self._observer.schedule(GitRefHandler(self.git_dir, self.notify), str(self.git_dir), recursive=True)
        self._observer.start()
        logger.info("Watching %s for ref changes", self.git_dir)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def notify(self) -> None:
        """Thread-safe entry point for ref change events."""
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._schedule)

    def _schedule(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(self.debounce, self._fire)

    @property
    def pending(self) -> bool:
        """True when a ref change is waiting for the running reindex to finish."""
        return self._pending

    def _fire(self) -> None:
        self._timer = None
        if self.scheduler.context.reindex_running:
            logger.info("Reindex already running; queued another after it")
            self._pending = True
            return
        task = self._loop.create_task(self.trigger())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def trigger(self) -> Optional[ReindexRun]:
        """Reindex once, reporting errors instead of raising them."""
        progress = self.progress_factory() if self.progress_factory else None
        try:
            run = await self.scheduler.run(progress)
        except ReindexInProgressError:
            logger.info("Reindex already running; queued another after it")
            self._pending = True
            return None
        except ContextPilotError as exc:
            logger.error("Watch-triggered reindex failed: %s", exc)
            if self.on_error:
                self.on_error(exc)
            self._drain_pending()
            return None
        self.runs += 1
        if self.on_complete:
            self.on_complete(run)
        self._drain_pending()
        return run

    def _drain_pending(self) -> None:
        if not self._pending or self._observer is None:
            return
        self._pending = False
        logger.info("Ref changed during the last reindex; running again")
        self._schedule()
