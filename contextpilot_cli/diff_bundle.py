"""Collect per-commit diffs of a file into a bundle for review or an LLM."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from .context import RuntimeContext
from .errors import CommandFailedError
from .invoker import ProcessInvoker
from .models import CommitDescriptor, DiffBlock, LineRange
from .parser import parse_commit_descriptions
from .progress import NullProgress, ProgressSink
from .tool import ContextPilotTool, ToolMode

logger = logging.getLogger(__name__)

# Three coarse steps: describe, diff collection, assembly.
STEP_INCREMENTS = (30.0, 60.0, 10.0)


class DiffBundlePipeline:
    """describe -> parse -> ``git show`` per commit -> ordered bundle.

    A commit whose diff cannot be retrieved, or is blank, is logged and left
    out. Only a failure of the describe step fails the pipeline.
    """

    def __init__(self, context: RuntimeContext, invoker: ProcessInvoker, tool: ContextPilotTool):
        self.context = context
        self.invoker = invoker
        self.tool = tool

    async def run(
        self,
        file: Union[str, Path],
        line_range: Optional[LineRange] = None,
        progress: Optional[ProgressSink] = None,
    ) -> List[DiffBlock]:
        progress = progress or NullProgress()
        line_range = line_range or LineRange.whole_file()

        outcome = await self.invoker.run(self.tool.query(ToolMode.DESC, file, line_range))
        commits = parse_commit_descriptions(outcome.stdout)
        progress.report(STEP_INCREMENTS[0], f"Found {len(commits)} relevant commit(s)")
        if not commits:
            return []

        target = self._git_path(file)
        blocks: List[DiffBlock] = []
        for commit in commits:
            block = await self._retrieve(commit, target)
            if block is not None:
                blocks.append(block)
        progress.report(STEP_INCREMENTS[1], f"Collected {len(blocks)} diff(s)")

        logger.info("Diff bundle for %s: %d of %d commit(s)", target, len(blocks), len(commits))
        progress.report(STEP_INCREMENTS[2], "Bundle ready")
        return blocks

    async def _retrieve(self, commit: CommitDescriptor, target: str) -> Optional[DiffBlock]:
        try:
            outcome = await self.invoker.run(self.tool.git_show(commit.commit_id, target))
        except CommandFailedError as exc:
            logger.warning("Skipping commit %s: %s", commit.commit_id, exc)
            return None

        if not outcome.stdout.strip():
            logger.info("Skipping commit %s: empty diff for %s", commit.commit_id, target)
            return None

        return DiffBlock(
            reference=commit.reference,
            title=commit.title,
            author=commit.author,
            date=commit.date,
            diff=outcome.stdout,
        )

    def _git_path(self, file: Union[str, Path]) -> str:
        path = Path(file)
        if path.is_absolute():
            try:
                return path.relative_to(self.context.workspace).as_posix()
            except ValueError:
                return str(path)
        return path.as_posix()


def render_bundle(blocks: List[DiffBlock], file: Union[str, Path]) -> str:
    """Render a bundle as Markdown, one section per commit."""
    lines = [f"# Relevant commit diffs for `{file}`", ""]
    if not blocks:
        lines.append("_No commit diffs found._")
        return "\n".join(lines) + "\n"

    for index, block in enumerate(blocks, 1):
        lines += [
            f"## {index}. {block.title}",
            "",
            f"**Commit:** {block.reference}  ",
            f"**Author:** {block.author}  ",
            f"**Date:** {block.date}",
            "",
            "```diff",
            block.diff.rstrip("\n"),
            "```",
            "",
        ]
    return "\n".join(lines)
