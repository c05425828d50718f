"""Tests for selection records, prompts, and subdirectory listing."""

import io
from pathlib import Path

import pytest
from rich.console import Console

from contextpilot_cli.models import CommitDescriptor, FileOccurrence
from contextpilot_cli.selection import (
    commit_document,
    commit_items,
    list_subdirectories,
    occurrence_items,
    pick_many,
    pick_one,
    safe_document_name,
)


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=120)


def scripted_answers(monkeypatch, *answers):
    pending = list(answers)
    monkeypatch.setattr("contextpilot_cli.selection.Prompt.ask", lambda *args, **kwargs: pending.pop(0))


COMMIT = CommitDescriptor(
    title="Fix crash on start",
    description="The loader\nassumed a config file.\n\n" + "x" * 200,
    author="Jane Doe",
    date="2024-01-15",
    reference="https://github.com/acme/app/commit/abc123",
)


class TestRecords:
    def test_occurrence_items(self):
        items = occurrence_items([FileOccurrence("src/a.py", 12), FileOccurrence("odd", 0)])
        assert [(i.label, i.description) for i in items] == [
            ("src/a.py", "12 occurrences"),
            ("odd", "0 occurrences"),
        ]

    def test_commit_items(self):
        item = commit_items([COMMIT])[0]
        assert item.label == "Fix crash on start"
        assert item.detail == "Jane Doe • 2024-01-15"
        assert item.description.startswith("The loader assumed a config file. x")
        assert "\n" not in item.description
        assert item.full_text == COMMIT.description
        assert item.metadata["reference"] == COMMIT.reference

    def test_commit_document(self):
        document = commit_document(commit_items([COMMIT])[0])
        assert document.startswith("# Fix crash on start\n\nThe loader")
        assert document.endswith(
            "---\n**Author:** Jane Doe\n**Date:** 2024-01-15\n"
            "**Commit URL:** https://github.com/acme/app/commit/abc123"
        )

    @pytest.mark.parametrize(
        "title, expected",
        [
            ("Fix: crash / on start!", "Fix__crash___on_star"),
            ("short-name_v1.2", "short-name_v1.2"),
        ],
    )
    def test_safe_document_name(self, title, expected):
        assert safe_document_name(title) == expected


class TestPrompts:
    def test_pick_one(self, monkeypatch, console):
        scripted_answers(monkeypatch, "2")
        items = occurrence_items([FileOccurrence("a.py", 3), FileOccurrence("b.py", 1)])
        assert pick_one(items, console).label == "b.py"

    def test_pick_one_skipped(self, monkeypatch, console):
        scripted_answers(monkeypatch, "0")
        assert pick_one(occurrence_items([FileOccurrence("a.py", 3)]), console) is None

    def test_pick_one_without_items_does_not_prompt(self, console):
        assert pick_one([], console) is None

    def test_pick_many_reprompts_on_bad_input(self, monkeypatch, console):
        scripted_answers(monkeypatch, "9", "1, 3, 1")
        assert pick_many(["src", "lib", "docs"], console) == ["src", "docs"]
        assert "Enter numbers between 1 and 3" in console.file.getvalue()

    def test_pick_many_empty_selects_nothing(self, monkeypatch, console):
        scripted_answers(monkeypatch, "")
        assert pick_many(["src"], console) == []


class TestListSubdirectories:
    def _tree(self, root: Path, *dirs: str) -> None:
        for directory in dirs:
            (root / directory).mkdir(parents=True)

    def test_respects_gitignore(self, temp_dir: Path):
        self._tree(temp_dir, ".git/refs", "build/out", "docs", "node_modules/pkg", "src/pkg", "src/cache")
        (temp_dir / ".gitignore").write_text("build/\nnode_modules/\ncache/\n")

        assert list_subdirectories(temp_dir) == ["docs", "src", "src/pkg"]

    def test_without_gitignore(self, temp_dir: Path):
        self._tree(temp_dir, ".git", "a/b", "c")
        (temp_dir / "file.txt").write_text("not a dir")

        assert list_subdirectories(temp_dir) == ["a", "a/b", "c"]
