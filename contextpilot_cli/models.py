"""Core data models shared by the invoker, parsers, and pipelines."""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

VERSION_PATTERN = re.compile(r"(\d+)\.(\d+)\.(\d+)")

# Sort key for commit dates that cannot be parsed.
INVALID_DATE = float("-inf")

_GIT_DATE_FORMATS = (
    "%a %b %d %H:%M:%S %Y %z",
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)


@dataclass(frozen=True, order=True)
class ToolVersion:
    """Semantic version triple; ordering is lexicographic on the fields."""

    major: int = 0
    minor: int = 0
    patch: int = 0

    @classmethod
    def parse(cls, text: str) -> "ToolVersion":
        """Parse the first ``X.Y.Z`` in ``text``; no match yields 0.0.0."""
        match = VERSION_PATTERN.search(text or "")
        if not match:
            return cls()
        return cls(*(int(part) for part in match.groups()))

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


class VersionCheckResult(str, Enum):
    UNCHECKED = "unchecked"
    COMPATIBLE = "compatible"
    INCOMPATIBLE = "incompatible"


@dataclass(frozen=True)
class InvocationSpec:
    """A single external command: binary, arguments, working directory.

    ``timeout`` is in seconds; ``None`` means wait for the process to exit.
    """

    binary: str
    args: Tuple[str, ...]
    cwd: Path
    timeout: Optional[float] = None

    @property
    def argv(self) -> List[str]:
        return [self.binary, *self.args]

    @property
    def command_line(self) -> str:
        return shlex.join(self.argv)


@dataclass
class InvocationOutcome:
    returncode: int
    stdout: str
    stderr: str
    events: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


@dataclass
class FileOccurrence:
    """One ranked line of query or author output.

    In author mode ``path`` holds the author name.
    """

    path: str
    count: int = 0


@dataclass
class CommitDescriptor:
    title: str
    description: str
    author: str
    date: str
    reference: str

    @property
    def timestamp(self) -> float:
        return parse_commit_date(self.date)

    @property
    def commit_id(self) -> str:
        """Bare commit reference: the last path segment of ``reference``."""
        return self.reference.rstrip("/").rsplit("/", 1)[-1]


@dataclass
class ReindexState:
    """Process-local record of the last successful index run.

    ``last_indexed_revision`` is the ``HEAD`` commit the run started from; when
    known it is the diff base for the next incremental run.
    """

    last_indexed_at: Optional[float] = None
    last_indexed_revision: Optional[str] = None


@dataclass
class DiffBlock:
    reference: str
    title: str
    author: str
    date: str
    diff: str


@dataclass
class SelectionItem:
    """A record handed to the selection UI."""

    label: str
    description: str = ""
    detail: str = ""
    full_text: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


def parse_commit_date(value: str) -> float:
    """Convert an ISO-ish or git-style date to epoch seconds.

    Naive values are read as UTC. Anything unparsable maps to
    :data:`INVALID_DATE` so it sorts oldest.
    """
    text = (value or "").strip()
    if not text:
        return INVALID_DATE

    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _GIT_DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            return INVALID_DATE
        if parsed is None:
            return INVALID_DATE

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


@dataclass(frozen=True)
class LineRange:
    """1-based inclusive line range; ``end == 0`` means the whole file."""

    start: int = 1
    end: int = 0

    @classmethod
    def whole_file(cls) -> "LineRange":
        return cls(1, 0)

    @classmethod
    def single_line(cls, line: int) -> "LineRange":
        return cls(line, line)

    @property
    def is_whole_file(self) -> bool:
        return self.start == 1 and self.end == 0
