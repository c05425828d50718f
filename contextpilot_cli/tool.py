"""Command-line contract of the external indexer and of git."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Union

from .config import GIT_BINARY, TOOL_NAME
from .context import RuntimeContext
from .models import InvocationSpec, LineRange

PathLike = Union[str, Path]


class ToolMode(str, Enum):
    QUERY = "query"
    AUTHOR = "author"
    DESC = "desc"
    INDEX = "index"
    INDEX_FILE = "indexfile"


class ContextPilotTool:
    """Build invocations of ``contextpilot`` and git for one workspace.

    ``contextpilot <workspace> -t <mode> [<file>] [-s <start> -e <end>] [-i <dirs>]``

    Every invocation runs with the workspace root as working directory. Once
    the version gate has resolved a binary location, that location is used.
    """

    def __init__(self, context: RuntimeContext, binary: str = TOOL_NAME, timeout: Optional[float] = None):
        self.context = context
        self._binary = binary
        self.timeout = timeout

    @property
    def binary(self) -> str:
        return self.context.resolved_binary or self._binary

    @property
    def workspace(self) -> Path:
        return self.context.workspace

    def invocation(
        self,
        mode: ToolMode,
        file: Optional[PathLike] = None,
        line_range: Optional[LineRange] = None,
        subdirs: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> InvocationSpec:
        args = [str(self.workspace), "-t", ToolMode(mode).value]
        if file is not None:
            args.append(str(file))
        if line_range is not None:
            args += ["-s", str(line_range.start), "-e", str(line_range.end)]
        if subdirs:
            args += ["-i", ",".join(subdirs)]
        return InvocationSpec(
            self.binary,
            tuple(args),
            self.workspace,
            timeout=timeout if timeout is not None else self.timeout,
        )

    def query(self, mode: ToolMode, file: PathLike, line_range: LineRange) -> InvocationSpec:
        return self.invocation(mode, file, line_range)

    def index(self, subdirs: Optional[Sequence[str]] = None) -> InvocationSpec:
        return self.invocation(ToolMode.INDEX, subdirs=subdirs)

    def index_file(self, file: PathLike) -> InvocationSpec:
        return self.invocation(ToolMode.INDEX_FILE, file)

    def git(self, *args: str) -> InvocationSpec:
        return InvocationSpec(GIT_BINARY, tuple(args), self.workspace, timeout=self.timeout)

    def git_changed_paths(self, since: str, until: str = "HEAD") -> InvocationSpec:
        return self.git("diff", "--name-only", "--diff-filter=ACMRT", since, until)

    def git_show(self, ref: str, path: PathLike) -> InvocationSpec:
        return self.git("show", ref, "--", str(path))
