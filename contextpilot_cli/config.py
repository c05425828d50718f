"""Configuration paths and defaults for the ContextPilot front end."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("CONTEXTPILOT_HOME", str(Path.home() / ".contextpilot"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

# External indexer
TOOL_NAME = "contextpilot"
DEFAULT_MIN_VERSION = "0.9.0"
INDEXING_MARKER = "Indexing file"

# Tried in order after the bare name on PATH; "~" is expanded per user.
INSTALL_CANDIDATE_DIRS = (
    "~/.cargo/bin",
    "~/.local/bin",
    "/usr/local/bin",
    "/opt/homebrew/bin",
    "/usr/bin",
)

INSTALL_GUIDANCE = (
    "Install contextpilot with one of:\n"
    "  cargo install contextpilot\n"
    "  brew install krshrimali/context-pilot/context-pilot\n"
    "  or download a release from https://github.com/krshrimali/context-pilot-rs/releases"
)

# Version control collaborator
GIT_BINARY = "git"

# LLM oracle policy
LLM_TIMEOUT_SECONDS = 30
LLM_MAX_ATTEMPTS = 3
LLM_BACKOFF_SECONDS = 2.0


def ensure_base_dirs() -> None:
    """Create the configuration directory if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
