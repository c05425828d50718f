"""Tests for ref-change detection and the debounced watch trigger."""

import asyncio
from pathlib import Path

import pytest
from watchdog.events import FileModifiedEvent, FileMovedEvent

from contextpilot_cli.errors import CommandFailedError, NoWorkspaceError, ReindexInProgressError
from contextpilot_cli.reindex import ReindexMode, ReindexRun
from contextpilot_cli.watch import GitRefHandler, WatchTrigger, is_ref_change


class StubScheduler:
    def __init__(self, context, outcomes=None):
        self.context = context
        self.outcomes = list(outcomes or [])
        self.calls = 0

    async def run(self, progress=None):
        self.calls += 1
        outcome = self.outcomes.pop(0) if self.outcomes else ReindexRun(ReindexMode.INCREMENTAL)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class BlockingScheduler(StubScheduler):
    """Holds the first run open until ``release`` is set."""

    release = None

    async def run(self, progress=None):
        first = self.calls == 0
        self.context.reindex_running = True
        try:
            if first:
                await self.release.wait()
            return await super().run(progress)
        finally:
            self.context.reindex_running = False


@pytest.fixture
def git_dir(workspace: Path) -> Path:
    path = workspace.resolve() / ".git"
    (path / "refs" / "heads").mkdir(parents=True)
    (path / "HEAD").write_text("ref: refs/heads/main\n")
    return path


class TestIsRefChange:
    @pytest.mark.parametrize(
        "relative, expected",
        [
            ("HEAD", True),
            ("packed-refs", True),
            ("refs/heads/main", True),
            ("refs/tags/v1.0", True),
            ("refs/heads/main.lock", False),
            ("index", False),
            ("objects/ab/cdef", False),
            ("logs/HEAD", False),
        ],
    )
    def test_paths(self, git_dir, relative, expected):
        assert is_ref_change(git_dir, str(git_dir / relative)) is expected

    def test_outside_git_dir(self, git_dir):
        assert is_ref_change(git_dir, str(git_dir.parent / "HEAD")) is False


class TestGitRefHandler:
    def test_modified_ref_notifies(self, git_dir):
        notified = []
        handler = GitRefHandler(git_dir, lambda: notified.append(True))
        handler.on_any_event(FileModifiedEvent(str(git_dir / "refs" / "heads" / "main")))
        handler.on_any_event(FileModifiedEvent(str(git_dir / "index")))
        assert notified == [True]

    def test_lock_renamed_into_place_notifies(self, git_dir):
        notified = []
        handler = GitRefHandler(git_dir, lambda: notified.append(True))
        handler.on_any_event(FileMovedEvent(str(git_dir / "HEAD.lock"), str(git_dir / "HEAD")))
        assert notified == [True]


class TestWatchTrigger:
    def test_requires_git_directory(self, runtime_context):
        trigger = WatchTrigger(StubScheduler(runtime_context))
        with pytest.raises(NoWorkspaceError):
            trigger.start()

    def test_trigger_reports_completion(self, runtime_context):
        completed = []
        trigger = WatchTrigger(StubScheduler(runtime_context), on_complete=completed.append)

        run = asyncio.run(trigger.trigger())

        assert completed == [run]
        assert trigger.runs == 1

    def test_trigger_queues_overlapping_run(self, runtime_context):
        errors = []
        scheduler = StubScheduler(runtime_context, [ReindexInProgressError("busy")])
        trigger = WatchTrigger(scheduler, on_error=errors.append)

        assert asyncio.run(trigger.trigger()) is None
        assert errors == []
        assert trigger.runs == 0
        assert trigger.pending is True

    def test_trigger_reports_failure(self, runtime_context):
        errors = []
        failure = CommandFailedError("contextpilot", "crashed", 1)
        trigger = WatchTrigger(StubScheduler(runtime_context, [failure]), on_error=errors.append)

        assert asyncio.run(trigger.trigger()) is None
        assert errors == [failure]

    def test_bursts_are_debounced(self, git_dir, runtime_context):
        scheduler = StubScheduler(runtime_context)
        trigger = WatchTrigger(scheduler, debounce=0.05)

        async def scenario():
            trigger.start()
            try:
                for _ in range(5):
                    trigger.notify()
                    await asyncio.sleep(0.01)
                await asyncio.sleep(0.3)
            finally:
                trigger.stop()

        asyncio.run(scenario())
        assert scheduler.calls == 1
        assert trigger.runs == 1

    def test_queues_while_reindex_running(self, git_dir, runtime_context):
        scheduler = StubScheduler(runtime_context)
        trigger = WatchTrigger(scheduler, debounce=0.01)
        runtime_context.reindex_running = True

        async def scenario():
            trigger.start()
            try:
                trigger.notify()
                await asyncio.sleep(0.1)
            finally:
                trigger.stop()

        asyncio.run(scenario())
        assert scheduler.calls == 0
        assert trigger.pending is True

    def test_ref_change_during_run_triggers_another(self, git_dir, runtime_context):
        scheduler = BlockingScheduler(runtime_context)
        trigger = WatchTrigger(scheduler, debounce=0.01)

        async def scenario():
            scheduler.release = asyncio.Event()
            trigger.start()
            try:
                first = asyncio.ensure_future(trigger.trigger())
                await asyncio.sleep(0)
                trigger.notify()
                await asyncio.sleep(0.1)
                assert trigger.pending is True
                scheduler.release.set()
                await first
                await asyncio.sleep(0.2)
            finally:
                trigger.stop()

        asyncio.run(scenario())
        assert scheduler.calls == 2
        assert trigger.runs == 2
        assert trigger.pending is False

