"""Asynchronous runner for external commands with streamed output."""

from __future__ import annotations

import asyncio
import codecs
import logging
from typing import Callable, List, Optional, Tuple

from .errors import CommandFailedError, CommandTimeoutError
from .models import InvocationOutcome, InvocationSpec

logger = logging.getLogger(__name__)

# Receives every streamed output line as (stream name, line) before the
# command resolves. Stands in for the editor's output channel.
tool_output = logging.getLogger("contextpilot_cli.tool_output")

LineSink = Callable[[str, str], None]

_CHUNK_SIZE = 64 * 1024


class ProcessInvoker:
    """Run one external process per call and resolve on its exit status.

    A non-zero exit, or a zero exit with stderr but no stdout, raises
    :class:`CommandFailedError`. ``default_timeout`` applies to specs that do
    not set their own; ``None`` waits indefinitely.
    """

    def __init__(self, default_timeout: Optional[float] = None, line_sink: Optional[LineSink] = None):
        self.default_timeout = default_timeout
        self.line_sink = line_sink

    async def run(self, spec: InvocationSpec, on_line: Optional[LineSink] = None) -> InvocationOutcome:
        timeout = spec.timeout if spec.timeout is not None else self.default_timeout
        logger.debug("Running %s (cwd=%s)", spec.command_line, spec.cwd)

        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                cwd=str(spec.cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise CommandFailedError(spec.command_line, f"Could not start process: {exc}") from exc

        events: List[Tuple[str, str]] = []
        stdout_parts: List[str] = []
        stderr_parts: List[str] = []

        def emit(stream: str, line: str) -> None:
            events.append((stream, line))
            tool_output.info("[%s] %s", stream, line)
            for sink in (self.line_sink, on_line):
                if sink is not None:
                    sink(stream, line)

        async def pump(reader: asyncio.StreamReader, stream: str, parts: List[str]) -> None:
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            pending = ""
            while True:
                chunk = await reader.read(_CHUNK_SIZE)
                text = decoder.decode(chunk, final=not chunk)
                if not chunk and not text:
                    break
                parts.append(text)
                pending += text
                *lines, pending = pending.split("\n")
                for line in lines:
                    emit(stream, line.rstrip("\r"))
            if pending:
                emit(stream, pending.rstrip("\r"))

        try:
            await asyncio.wait_for(
                asyncio.gather(
                    pump(process.stdout, "stdout", stdout_parts),
                    pump(process.stderr, "stderr", stderr_parts),
                    process.wait(),
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            if process.returncode is None:
                process.kill()
            await process.wait()
            raise CommandTimeoutError(spec.command_line, f"Timed out after {timeout}s")

        outcome = InvocationOutcome(
            returncode=process.returncode,
            stdout="".join(stdout_parts),
            stderr="".join(stderr_parts),
            events=events,
        )

        if outcome.returncode != 0:
            message = outcome.stderr.strip() or f"Exited with status {outcome.returncode}"
            raise CommandFailedError(spec.command_line, message, outcome.returncode, outcome.stderr)
        if outcome.stderr and not outcome.stdout:
            raise CommandFailedError(spec.command_line, outcome.stderr.strip(), outcome.returncode, outcome.stderr)

        return outcome
