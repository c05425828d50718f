"""Full and incremental reindexing of a workspace."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional, Sequence

from .change_tracker import ChangeTracker
from .config import INDEXING_MARKER
from .context import RuntimeContext
from .errors import CommandFailedError, ReindexInProgressError
from .invoker import ProcessInvoker
from .progress import NullProgress, ProgressSink
from .tool import ContextPilotTool

logger = logging.getLogger(__name__)

# Share of the progress bar the indexing markers may fill before the run ends.
MARKER_CEILING = 90.0


class ReindexPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ReindexMode(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


@dataclass
class ReindexRun:
    """State of one reindex invocation."""

    mode: ReindexMode
    phase: ReindexPhase = ReindexPhase.IDLE
    indexed: List[Path] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)
    files_seen: int = 0
    error: Optional[Exception] = None


class ReindexScheduler:
    """Choose between a full and an incremental index and run it.

    Only one reindex may run per process at a time; a second trigger while
    one is in flight raises :class:`ReindexInProgressError`.
    """

    def __init__(
        self,
        context: RuntimeContext,
        invoker: ProcessInvoker,
        tool: ContextPilotTool,
        tracker: ChangeTracker,
        clock: Callable[[], float] = time.time,
    ):
        self.context = context
        self.invoker = invoker
        self.tool = tool
        self.tracker = tracker
        self.clock = clock
        self.last_run: Optional[ReindexRun] = None

    @asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        if self.context.reindex_running:
            raise ReindexInProgressError("A reindex is already running for this workspace.")
        self.context.reindex_running = True
        try:
            yield
        finally:
            self.context.reindex_running = False

    async def run(
        self,
        progress: Optional[ProgressSink] = None,
        subdirs: Optional[Sequence[str]] = None,
        force_full: bool = False,
    ) -> ReindexRun:
        """Incremental when a previous index is recorded, otherwise full."""
        if force_full or subdirs or not self.tracker.has_index:
            return await self.full_index(progress, subdirs)
        return await self.incremental_index(progress)

    async def full_index(
        self,
        progress: Optional[ProgressSink] = None,
        subdirs: Optional[Sequence[str]] = None,
    ) -> ReindexRun:
        progress = progress or NullProgress()
        run = ReindexRun(ReindexMode.FULL)
        async with self._exclusive():
            self.last_run = run
            run.phase = ReindexPhase.RUNNING
            started = self.clock()
            revision = await self.tracker.head_revision()
            reported = 0.0

            # The total is unknown up front: each file closes a tenth of the
            # remaining gap below MARKER_CEILING.
            def count_markers(stream: str, line: str) -> None:
                nonlocal reported
                if stream == "stdout" and INDEXING_MARKER in line:
                    run.files_seen += line.count(INDEXING_MARKER)
                    step = (MARKER_CEILING - reported) * 0.1
                    reported += step
                    progress.report(step, f"{run.files_seen} file(s) indexed")

            scope = f"{len(subdirs)} subdirectories" if subdirs else "workspace"
            logger.info("Full index of %s started", scope)
            try:
                await self.invoker.run(self.tool.index(subdirs), on_line=count_markers)
            except Exception as exc:
                self._fail(run, exc)
                raise

            self._succeed(run, started, revision)
            progress.report(100 - reported, f"Indexed {run.files_seen} file(s)")
            logger.info("Full index completed: %d file(s)", run.files_seen)
        return run

    async def incremental_index(self, progress: Optional[ProgressSink] = None) -> ReindexRun:
        progress = progress or NullProgress()
        run = ReindexRun(ReindexMode.INCREMENTAL)
        async with self._exclusive():
            self.last_run = run
            run.phase = ReindexPhase.RUNNING
            started = self.clock()
            revision = await self.tracker.head_revision()
            try:
                changed = await self.tracker.changed_paths_since(
                    self.tracker.last_indexed_at,
                    self.tracker.last_indexed_revision,
                    until=revision or "HEAD",
                )
            except Exception as exc:
                self._fail(run, exc)
                raise

            if not changed:
                logger.info("Nothing changed since the last index")
                self._succeed(run, started, revision)
                progress.report(100, "Index is up to date")
                return run

            step = 100 / len(changed)
            for position, path in enumerate(changed, 1):
                try:
                    await self.invoker.run(self.tool.index_file(path))
                except CommandFailedError as exc:
                    logger.warning("Skipping %s: %s", path, exc)
                    run.failed.append(path)
                else:
                    run.indexed.append(path)
                progress.report(step, f"{position}/{len(changed)} {self._relative(path)}")

            self._succeed(run, started, revision)
            logger.info(
                "Incremental index completed: %d indexed, %d failed",
                len(run.indexed),
                len(run.failed),
            )
        return run

    def _succeed(self, run: ReindexRun, started: float, revision: Optional[str]) -> None:
        # Start time, not finish time: commits landing mid-run belong to the next diff.
        run.phase = ReindexPhase.SUCCEEDED
        self.tracker.mark_indexed(started, revision)

    def _fail(self, run: ReindexRun, exc: Exception) -> None:
        run.phase = ReindexPhase.FAILED
        run.error = exc
        logger.error("%s index failed: %s", run.mode.value.capitalize(), exc)

    def _relative(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.context.workspace))
        except ValueError:
            return str(path)
