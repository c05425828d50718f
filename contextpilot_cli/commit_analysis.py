"""Ask an LLM to explain the history behind a piece of code."""

from __future__ import annotations

from pathlib import Path
from typing import List, Union

from .llm import LLMOracle
from .models import DiffBlock

MAX_DIFF_CHARS = 4000
MAX_PROMPT_CHARS = 24000

PROMPT_HEADER = """You are reviewing the history of `{file}`.
Below are the commits that touched the code in question, newest first, each
with its diff restricted to this file.

Explain:
1. How this code evolved and why, commit by commit.
2. Which changes look risky or were later reverted or reworked.
3. What a developer changing this code today should keep in mind.
"""


class CommitAnalyst:
    """Build an analysis prompt from a diff bundle and query the oracle."""

    def __init__(self, oracle: LLMOracle):
        self.oracle = oracle

    def build_prompt(self, blocks: List[DiffBlock], file: Union[str, Path]) -> str:
        parts = [PROMPT_HEADER.format(file=file)]
        budget = MAX_PROMPT_CHARS - len(parts[0])
        for block in blocks:
            diff = block.diff
            if len(diff) > MAX_DIFF_CHARS:
                diff = diff[:MAX_DIFF_CHARS] + "\n... (diff truncated)"
            section = (
                f"\n### {block.title}\n"
                f"Commit: {block.reference}\nAuthor: {block.author}\nDate: {block.date}\n"
                f"```diff\n{diff.rstrip()}\n```\n"
            )
            if len(section) > budget:
                parts.append("\n(Older commits omitted.)\n")
                break
            parts.append(section)
            budget -= len(section)
        return "".join(parts)

    async def analyze(self, blocks: List[DiffBlock], file: Union[str, Path]) -> str:
        return await self.oracle.acomplete(self.build_prompt(blocks, file))
