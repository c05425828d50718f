"""Process-wide runtime state, owned explicitly instead of held in globals.

One :class:`RuntimeContext` is created when the CLI starts and handed to every
engine component. It lives until the process exits; nothing resets it, so a
failed version check stays failed until restart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .models import ReindexState, ToolVersion, VersionCheckResult


@dataclass
class RuntimeContext:
    workspace: Path
    version_check: VersionCheckResult = VersionCheckResult.UNCHECKED
    version_error: Optional[Exception] = None
    resolved_binary: Optional[str] = None
    installed_version: Optional[ToolVersion] = None
    reindex_state: ReindexState = field(default_factory=ReindexState)
    reindex_running: bool = False

    def __post_init__(self) -> None:
        self.workspace = Path(self.workspace).resolve()
