"""Track when the workspace was last indexed and what changed since."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import List, Optional

from .context import RuntimeContext
from .errors import CommandFailedError
from .invoker import ProcessInvoker
from .tool import ContextPilotTool

logger = logging.getLogger(__name__)

# Object id of git's empty tree; diffing against it lists every tracked file.
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


class ChangeTracker:
    """Owns ``ReindexState`` on the runtime context.

    Changed paths are added, copied, modified, renamed, or type-changed files
    between the indexed commit and ``HEAD``. The indexed commit is the
    ``HEAD`` recorded when the last index started. Without one (a timestamp
    given on the command line) it falls back to the newest commit dated at or
    before the timestamp. Deleted files are left out since there is nothing
    to index.
    """

    def __init__(self, context: RuntimeContext, invoker: ProcessInvoker, tool: ContextPilotTool):
        self.context = context
        self.invoker = invoker
        self.tool = tool

    @property
    def last_indexed_at(self) -> Optional[float]:
        return self.context.reindex_state.last_indexed_at

    @property
    def last_indexed_revision(self) -> Optional[str]:
        return self.context.reindex_state.last_indexed_revision

    @property
    def has_index(self) -> bool:
        return self.last_indexed_at is not None or self.last_indexed_revision is not None

    def mark_indexed(self, when: Optional[float] = None, revision: Optional[str] = None) -> None:
        state = self.context.reindex_state
        state.last_indexed_at = time.time() if when is None else when
        state.last_indexed_revision = revision
        logger.debug("Recorded index at %s (revision %s)", state.last_indexed_at, revision)

    async def head_revision(self) -> Optional[str]:
        """Current ``HEAD`` commit, or None outside a repository or before the first commit."""
        try:
            outcome = await self.invoker.run(self.tool.git("rev-parse", "--verify", "--quiet", "HEAD"))
        except CommandFailedError as exc:
            logger.debug("No HEAD revision: %s", exc)
            return None
        return outcome.stdout.strip() or None

    async def base_revision(self, timestamp: float) -> str:
        """Newest commit on ``HEAD`` at or before ``timestamp``, else the empty tree."""
        outcome = await self.invoker.run(self.tool.git("rev-list", "-1", f"--before={int(timestamp)}", "HEAD"))
        return outcome.stdout.strip() or EMPTY_TREE

    async def changed_paths_since(
        self,
        timestamp: Optional[float],
        revision: Optional[str] = None,
        until: str = "HEAD",
    ) -> List[Path]:
        if revision is None and timestamp is None:
            return []
        since = revision or await self.base_revision(timestamp)
        outcome = await self.invoker.run(self.tool.git_changed_paths(since, until))
        paths = [self.context.workspace / line.strip() for line in outcome.stdout.splitlines() if line.strip()]
        logger.info("%d path(s) changed since %s", len(paths), since[:12])
        return paths
