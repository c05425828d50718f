"""Exception hierarchy for the orchestration engine.

Every failure the engine reports derives from :class:`ContextPilotError` so
the CLI layer can render it uniformly. Command failures ("the tool could not
run") and parse failures ("the tool ran but emitted garbage") are kept apart.
"""

from __future__ import annotations

from typing import Optional


class ContextPilotError(Exception):
    """Base class for all ContextPilot front end errors."""


class ToolNotInstalledError(ContextPilotError):
    """No candidate location produced a recognisable version report."""


class IncompatibleVersionError(ContextPilotError):
    """The installed indexer is older than the required version."""

    def __init__(self, installed: str, required: str, location: str):
        self.installed = installed
        self.required = required
        self.location = location
        super().__init__(
            f"contextpilot {installed} at {location} is too old; version {required} or newer "
            f"is required. Upgrade with: cargo install contextpilot --force"
        )


class UnexpectedVersionFormatError(ContextPilotError):
    """The version report did not contain a ``contextpilot X.Y.Z`` announcement."""


class CommandFailedError(ContextPilotError):
    """An external command exited non-zero or produced only stderr."""

    def __init__(
        self,
        command: str,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command failed: {command}\n{message}")


class CommandTimeoutError(CommandFailedError):
    """An external command exceeded its timeout and was killed."""


class ParseFailedError(ContextPilotError):
    """Structured tool output could not be parsed."""


class NoWorkspaceError(ContextPilotError):
    """No usable workspace directory was given."""


class NoActiveSelectionError(ContextPilotError):
    """No file or line range is available for the requested query."""


class ReindexInProgressError(ContextPilotError):
    """A reindex is already running in this process."""


class LLMUnavailableError(ContextPilotError):
    """The LLM oracle gave no answer after all attempts."""
