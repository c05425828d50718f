"""Parsers for contextpilot output.

Two deliberately different styles live here:

- Occurrence lists (``query`` / ``author`` modes) are parsed leniently: every
  non-empty line becomes a record, even when it does not match the expected
  ``<path> - <N> occurrences`` shape.
- Commit descriptions (``desc`` mode) are strict JSON: any malformation is a
  :class:`ParseFailedError` and nothing is returned.
"""

from __future__ import annotations

import json
import re
from typing import List

from .config import TOOL_NAME
from .errors import ParseFailedError, UnexpectedVersionFormatError
from .models import CommitDescriptor, FileOccurrence, ToolVersion

OCCURRENCES_PATTERN = re.compile(r"- (\d+) occurrences")
VERSION_ANNOUNCEMENT_PATTERN = re.compile(re.escape(TOOL_NAME) + r"\s+v?(\d+\.\d+\.\d+)", re.IGNORECASE)

COMMIT_FIELDS = 5


# ===================================================================
# Occurrence-list mode
# ===================================================================

def parse_occurrence_line(line: str) -> FileOccurrence:
    line = line.strip()
    path = line.split(" - ", 1)[0].strip()
    match = OCCURRENCES_PATTERN.search(line)
    return FileOccurrence(path=path, count=int(match.group(1)) if match else 0)


def parse_occurrences(stdout: str) -> List[FileOccurrence]:
    """Parse query/author output, preserving the tool's ranking order."""
    return [parse_occurrence_line(line) for line in stdout.splitlines() if line.strip()]


# ===================================================================
# Commit-description mode
# ===================================================================

def parse_commit_descriptions(stdout: str) -> List[CommitDescriptor]:
    """Parse ``desc`` output: a JSON array of 5-element arrays.

    Returns commits sorted by date, newest first. Unparsable dates sort last.

    Raises:
        ParseFailedError: Output is not valid JSON or not the expected shape.
    """
    try:
        payload = json.loads(stdout.strip())
    except json.JSONDecodeError as exc:
        raise ParseFailedError(f"Failed to parse commit descriptions: {exc}") from exc

    if not isinstance(payload, list):
        raise ParseFailedError("Failed to parse commit descriptions: expected a JSON array")

    commits: List[CommitDescriptor] = []
    for index, entry in enumerate(payload):
        if not isinstance(entry, list) or len(entry) != COMMIT_FIELDS:
            raise ParseFailedError(
                f"Failed to parse commit descriptions: entry {index} is not a "
                f"{COMMIT_FIELDS}-element array"
            )
        commits.append(CommitDescriptor(*(str(value) for value in entry)))

    commits.sort(key=lambda commit: commit.timestamp, reverse=True)
    return commits


# ===================================================================
# Version-announcement mode
# ===================================================================

def parse_version_announcement(stdout: str) -> ToolVersion:
    """Extract the version from ``contextpilot --version`` output.

    Raises:
        UnexpectedVersionFormatError: No ``contextpilot X.Y.Z`` announcement.
    """
    match = VERSION_ANNOUNCEMENT_PATTERN.search(stdout or "")
    if not match:
        raise UnexpectedVersionFormatError(
            f"Unexpected version output: {stdout.strip()[:200]!r}"
        )
    return ToolVersion.parse(match.group(1))
