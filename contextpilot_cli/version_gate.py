"""Installation and version check for the external indexer."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .config import INSTALL_CANDIDATE_DIRS, INSTALL_GUIDANCE, TOOL_NAME
from .context import RuntimeContext
from .errors import (
    CommandFailedError,
    IncompatibleVersionError,
    ToolNotInstalledError,
    UnexpectedVersionFormatError,
)
from .invoker import ProcessInvoker
from .models import InvocationSpec, ToolVersion, VersionCheckResult
from .parser import parse_version_announcement

logger = logging.getLogger(__name__)

VersionLike = Union[str, ToolVersion]


def _as_version(value: VersionLike) -> ToolVersion:
    return value if isinstance(value, ToolVersion) else ToolVersion.parse(value)


def is_compatible(installed: VersionLike, required: VersionLike) -> bool:
    """True when ``installed`` >= ``required`` compared as (major, minor, patch)."""
    return _as_version(installed) >= _as_version(required)


class VersionGate:
    """Find a compatible ``contextpilot`` once per process.

    Candidates are tried in order: the bare name on ``PATH``, then each
    well-known install directory. The first one that announces a version
    decides the outcome. Both outcomes are kept on the runtime context, so a
    failed check is not retried until the process restarts.
    """

    def __init__(
        self,
        context: RuntimeContext,
        invoker: ProcessInvoker,
        binary: str = TOOL_NAME,
        candidate_dirs: Sequence[str] = INSTALL_CANDIDATE_DIRS,
        check_timeout: Optional[float] = 10.0,
    ):
        self.context = context
        self.invoker = invoker
        self.binary = binary
        self.candidate_dirs = candidate_dirs
        self.check_timeout = check_timeout

    def candidates(self) -> List[str]:
        if os.sep in self.binary:
            return [str(Path(self.binary).expanduser())]
        found = [self.binary]
        for directory in self.candidate_dirs:
            candidate = str(Path(directory).expanduser() / self.binary)
            if candidate not in found:
                found.append(candidate)
        return found

    async def ensure_compatible(self, min_version: VersionLike) -> bool:
        """Return True if a compatible indexer is installed.

        Raises:
            ToolNotInstalledError: No candidate produced a version report.
            IncompatibleVersionError: The first working candidate is too old.
        """
        ctx = self.context
        if ctx.version_check is VersionCheckResult.COMPATIBLE:
            return True
        if ctx.version_check is VersionCheckResult.INCOMPATIBLE:
            raise ctx.version_error

        try:
            await self._check_candidates(_as_version(min_version))
        except (ToolNotInstalledError, IncompatibleVersionError) as exc:
            ctx.version_check = VersionCheckResult.INCOMPATIBLE
            ctx.version_error = exc
            raise

        ctx.version_check = VersionCheckResult.COMPATIBLE
        return True

    async def _check_candidates(self, required: ToolVersion) -> None:
        ctx = self.context
        for candidate in self.candidates():
            spec = InvocationSpec(candidate, ("--version",), ctx.workspace, timeout=self.check_timeout)
            try:
                outcome = await self.invoker.run(spec)
                installed = parse_version_announcement(outcome.stdout)
            except (CommandFailedError, UnexpectedVersionFormatError) as exc:
                logger.debug("No usable %s at %s: %s", TOOL_NAME, candidate, exc)
                continue

            if not is_compatible(installed, required):
                raise IncompatibleVersionError(str(installed), str(required), candidate)

            logger.info("Using %s %s at %s", TOOL_NAME, installed, candidate)
            ctx.resolved_binary = candidate
            ctx.installed_version = installed
            return

        logger.warning("%s was not found.\n%s", TOOL_NAME, INSTALL_GUIDANCE)
        raise ToolNotInstalledError(f"{TOOL_NAME} is not installed.\n{INSTALL_GUIDANCE}")
