"""Terminal stand-ins for the editor's quick pick and document views."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Sequence

import pathspec
from rich.console import Console
from rich.markdown import Markdown
from rich.prompt import Prompt
from rich.table import Table

from .models import CommitDescriptor, FileOccurrence, SelectionItem

DESCRIPTION_PREVIEW_CHARS = 80
DOCUMENT_NAME_CHARS = 20

ALWAYS_SKIPPED_DIRS = {".git"}


# ===================================================================
# Record builders
# ===================================================================

def occurrence_items(occurrences: Sequence[FileOccurrence]) -> List[SelectionItem]:
    return [
        SelectionItem(label=item.path, description=f"{item.count} occurrences", metadata={"count": item.count})
        for item in occurrences
    ]


def commit_items(commits: Sequence[CommitDescriptor]) -> List[SelectionItem]:
    return [
        SelectionItem(
            label=commit.title,
            detail=f"{commit.author} • {commit.date}",
            description=re.sub(r"\s+", " ", commit.description[:DESCRIPTION_PREVIEW_CHARS]),
            full_text=commit.description,
            metadata={"author": commit.author, "date": commit.date, "reference": commit.reference},
        )
        for commit in commits
    ]


def commit_document(item: SelectionItem) -> str:
    """Markdown shown when a commit is selected."""
    return (
        f"# {item.label}\n\n{item.full_text}\n\n---\n"
        f"**Author:** {item.metadata.get('author', '')}\n"
        f"**Date:** {item.metadata.get('date', '')}\n"
        f"**Commit URL:** {item.metadata.get('reference', '')}"
    )


def safe_document_name(title: str) -> str:
    return re.sub(r"[^\w\d\-_.]", "_", title[:DOCUMENT_NAME_CHARS])


# ===================================================================
# Interactive selection
# ===================================================================

def render_items(items: Sequence[SelectionItem], console: Console, title: str = "") -> None:
    show_detail = any(item.detail for item in items)
    table = Table(title=title or None, show_lines=False)
    table.add_column("#", style="dim", justify="right", width=4)
    table.add_column("Item", style="cyan", overflow="fold")
    if show_detail:
        table.add_column("Detail", style="magenta")
    table.add_column("Description", style="dim", overflow="fold")
    for index, item in enumerate(items, 1):
        row = [str(index), item.label]
        if show_detail:
            row.append(item.detail)
        row.append(item.description)
        table.add_row(*row)
    console.print(table)


def pick_one(items: Sequence[SelectionItem], console: Console, title: str = "") -> Optional[SelectionItem]:
    """Show ``items`` and return the chosen one, or None when skipped."""
    if not items:
        return None
    render_items(items, console, title)
    choices = [str(index) for index in range(len(items) + 1)]
    answer = Prompt.ask(
        "Select an item (0 to skip)", choices=choices, default="0", show_choices=False, console=console
    )
    index = int(answer)
    return items[index - 1] if index else None


def pick_many(options: Sequence[str], console: Console, title: str = "") -> List[str]:
    """Multi-select by comma-separated numbers; empty input selects nothing."""
    if not options:
        return []
    render_items([SelectionItem(label=option) for option in options], console, title)
    while True:
        answer = Prompt.ask("Select items (e.g. 1,3,4; empty to cancel)", default="", console=console)
        picked: List[str] = []
        valid = True
        for token in filter(None, (part.strip() for part in answer.split(","))):
            if not token.isdigit() or not 1 <= int(token) <= len(options):
                valid = False
                break
            option = options[int(token) - 1]
            if option not in picked:
                picked.append(option)
        if valid:
            return picked
        console.print(f"[red]✗[/red] Enter numbers between 1 and {len(options)}.")


def show_document(markdown_text: str, console: Console) -> None:
    console.print(Markdown(markdown_text))


# ===================================================================
# Workspace subdirectories
# ===================================================================

def _load_gitignore(root: Path) -> Optional[pathspec.PathSpec]:
    gitignore = root / ".gitignore"
    if not gitignore.is_file():
        return None
    lines = gitignore.read_text(encoding="utf-8", errors="ignore").splitlines()
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


def list_subdirectories(root: Path) -> List[str]:
    """Every subdirectory of ``root`` not excluded by its ``.gitignore``.

    Paths are relative to ``root``, parents before children; ignored
    directories are not descended into.
    """
    root = root.resolve()
    spec = _load_gitignore(root)
    results: List[str] = []

    def walk(directory: Path) -> None:
        for child in sorted(directory.iterdir()):
            if not child.is_dir() or child.is_symlink() or child.name in ALWAYS_SKIPPED_DIRS:
                continue
            relative = child.relative_to(root).as_posix()
            if spec is not None and spec.match_file(relative + "/"):
                continue
            results.append(relative)
            walk(child)

    walk(root)
    return results
