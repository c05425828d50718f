"""Pytest configuration and fixtures for ContextPilot CLI tests."""

import shutil
import stat
import tempfile
from pathlib import Path
from typing import Callable, Generator, List, Optional, Tuple

import pytest

from contextpilot_cli import config_manager
from contextpilot_cli.context import RuntimeContext
from contextpilot_cli.errors import CommandFailedError
from contextpilot_cli.models import InvocationOutcome, InvocationSpec

Matcher = Callable[[InvocationSpec], bool]


class FakeInvoker:
    """Stand-in for ProcessInvoker that answers from scripted rules.

    Rules are checked in the order they were added; the first match wins.
    Every spec that reaches ``run`` is recorded in ``calls``.
    """

    def __init__(self):
        self.calls: List[InvocationSpec] = []
        self._rules: List[Tuple[Matcher, str, Optional[Exception]]] = []

    def respond(self, match: Matcher, stdout: str = "", error: Optional[Exception] = None) -> "FakeInvoker":
        self._rules.append((match, stdout, error))
        return self

    async def run(self, spec: InvocationSpec, on_line=None) -> InvocationOutcome:
        self.calls.append(spec)
        for match, stdout, error in self._rules:
            if not match(spec):
                continue
            if error is not None:
                raise error
            events = [("stdout", line) for line in stdout.splitlines()]
            if on_line is not None:
                for stream, line in events:
                    on_line(stream, line)
            return InvocationOutcome(0, stdout, "", events)
        raise CommandFailedError(spec.command_line, "no scripted response", 127)


def mode_is(mode: str) -> Matcher:
    """Match contextpilot invocations running in ``mode``."""
    return lambda spec: spec.args[1:3] == ("-t", mode)


def git_command(subcommand: str) -> Matcher:
    return lambda spec: spec.binary == "git" and spec.args[:1] == (subcommand,)


def is_version_query(spec: InvocationSpec) -> bool:
    return spec.args == ("--version",)


class RecordingProgress:
    def __init__(self):
        self.reports: List[Tuple[float, Optional[str]]] = []

    def report(self, increment: float, message: Optional[str] = None) -> None:
        self.reports.append((increment, message))

    @property
    def increments(self) -> List[float]:
        return [increment for increment, _ in self.reports]


FAKE_TOOL_SCRIPT = """#!/bin/sh
if [ "$1" = "--version" ]; then
  echo "contextpilot ${CONTEXTPILOT_FAKE_VERSION:-1.2.3}"
  exit 0
fi
case "$3" in
  query) printf 'src/b.py - 5 occurrences\\nsrc/c.py - 2 occurrences\\n' ;;
  author) printf 'Alice - 7 occurrences\\nBob - 1 occurrences\\n' ;;
  desc) printf '%s\\n' "${CONTEXTPILOT_FAKE_DESC:-[]}" ;;
  index) printf 'Indexing file src/main.py\\nIndexing file src/b.py\\n' ;;
  indexfile) echo "Indexing file $4" ;;
  *) echo "unknown mode $3" >&2; exit 2 ;;
esac
"""


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch) -> Path:
    """Point the config home at a per-test directory."""
    home = tmp_path / "contextpilot-home"
    monkeypatch.setattr("contextpilot_cli.config.BASE_DIR", home)
    monkeypatch.setattr("contextpilot_cli.config.CONFIG_FILE", home / "config.toml")
    return home


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def workspace(temp_dir: Path) -> Path:
    """A workspace with a couple of source files."""
    root = temp_dir / "repo"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.py").write_text("def main():\n    return 42\n")
    (root / "src" / "b.py").write_text("import main\n")
    return root


@pytest.fixture
def runtime_context(workspace: Path) -> RuntimeContext:
    return RuntimeContext(workspace)


@pytest.fixture
def fake_invoker() -> FakeInvoker:
    return FakeInvoker()


@pytest.fixture
def progress() -> RecordingProgress:
    return RecordingProgress()


@pytest.fixture
def fake_tool(temp_dir: Path) -> Path:
    """An executable that mimics contextpilot and is registered in config.toml."""
    if shutil.which("sh") is None:
        pytest.skip("requires a POSIX shell")
    script = temp_dir / "bin" / "contextpilot"
    script.parent.mkdir(parents=True)
    script.write_text(FAKE_TOOL_SCRIPT)
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    config_manager.save_tool_config(binary=str(script))
    return script
