"""Orchestrator wiring the version gate, invoker, parsers, and pipelines."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from . import config_manager
from .change_tracker import ChangeTracker
from .commit_analysis import CommitAnalyst
from .context import RuntimeContext
from .diff_bundle import DiffBundlePipeline
from .errors import NoActiveSelectionError
from .invoker import LineSink, ProcessInvoker
from .llm import LLMOracle
from .models import CommitDescriptor, DiffBlock, FileOccurrence, LineRange
from .parser import parse_commit_descriptions, parse_occurrences
from .progress import ProgressSink
from .reindex import ReindexRun, ReindexScheduler
from .tool import ContextPilotTool, ToolMode
from .version_gate import VersionGate

PathLike = Union[str, Path]


class ContextPilotOrchestrator:
    """Entry point for every user action.

    Each action passes the version gate first; a gate failure aborts the
    action before any other command runs.
    """

    def __init__(
        self,
        context: RuntimeContext,
        invoker: Optional[ProcessInvoker] = None,
        settings: Optional[config_manager.ToolSettings] = None,
        line_sink: Optional[LineSink] = None,
    ):
        self.context = context
        self.settings = settings or config_manager.load_tool_config()
        self.invoker = invoker or ProcessInvoker(default_timeout=self.settings.command_timeout, line_sink=line_sink)
        self.tool = ContextPilotTool(context, self.settings.binary)
        self.gate = VersionGate(context, self.invoker, self.settings.binary)
        self.tracker = ChangeTracker(context, self.invoker, self.tool)
        self.scheduler = ReindexScheduler(context, self.invoker, self.tool, self.tracker)
        self.pipeline = DiffBundlePipeline(context, self.invoker, self.tool)

    async def ensure_ready(self) -> bool:
        return await self.gate.ensure_compatible(self.settings.min_version)

    def resolve_target(self, file: PathLike, line_range: Optional[LineRange] = None) -> Tuple[Path, LineRange]:
        """Validate the queried file and range.

        Raises:
            NoActiveSelectionError: Missing file or an impossible range.
        """
        path = Path(file)
        if not path.is_absolute():
            path = self.context.workspace / path
        if not path.is_file():
            raise NoActiveSelectionError(f"No such file: {file}")
        line_range = line_range or LineRange.whole_file()
        if line_range.start < 1 or (line_range.end and line_range.end < line_range.start):
            raise NoActiveSelectionError(f"Invalid line range {line_range.start}-{line_range.end}")
        return path, line_range

    async def _query(self, mode: ToolMode, file: PathLike, line_range: Optional[LineRange]) -> str:
        await self.ensure_ready()
        path, line_range = self.resolve_target(file, line_range)
        outcome = await self.invoker.run(self.tool.query(mode, path, line_range))
        return outcome.stdout

    async def related_files(self, file: PathLike, line_range: Optional[LineRange] = None) -> List[FileOccurrence]:
        return parse_occurrences(await self._query(ToolMode.QUERY, file, line_range))

    async def related_authors(self, file: PathLike, line_range: Optional[LineRange] = None) -> List[FileOccurrence]:
        return parse_occurrences(await self._query(ToolMode.AUTHOR, file, line_range))

    async def relevant_commits(
        self, file: PathLike, line_range: Optional[LineRange] = None
    ) -> List[CommitDescriptor]:
        return parse_commit_descriptions(await self._query(ToolMode.DESC, file, line_range))

    async def index(
        self,
        subdirs: Optional[Sequence[str]] = None,
        progress: Optional[ProgressSink] = None,
    ) -> ReindexRun:
        await self.ensure_ready()
        return await self.scheduler.full_index(progress, subdirs)

    async def reindex(self, progress: Optional[ProgressSink] = None) -> ReindexRun:
        await self.ensure_ready()
        return await self.scheduler.run(progress)

    async def diff_bundle(
        self,
        file: PathLike,
        line_range: Optional[LineRange] = None,
        progress: Optional[ProgressSink] = None,
    ) -> List[DiffBlock]:
        await self.ensure_ready()
        path, line_range = self.resolve_target(file, line_range)
        return await self.pipeline.run(path, line_range, progress)

    async def analyze(
        self,
        file: PathLike,
        oracle: LLMOracle,
        line_range: Optional[LineRange] = None,
        progress: Optional[ProgressSink] = None,
    ) -> Tuple[List[DiffBlock], Optional[str]]:
        """Diff bundle plus LLM explanation; no LLM call for an empty bundle."""
        blocks = await self.diff_bundle(file, line_range, progress)
        if not blocks:
            return blocks, None
        return blocks, await CommitAnalyst(oracle).analyze(blocks, file)
