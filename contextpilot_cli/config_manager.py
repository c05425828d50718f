"""Configuration manager for ContextPilot CLI using TOML files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import toml

from . import config

logger = logging.getLogger(__name__)


# Default configurations for each provider
DEFAULT_CONFIGS = {
    "openai": {
        "provider": "openai",
        "model": "gpt-4o-mini",
        "api_key": "",
        "endpoint": "https://api.openai.com/v1/chat/completions",
    },
    "anthropic": {
        "provider": "anthropic",
        "model": "claude-3-5-sonnet-20241022",
        "api_key": "",
    },
    "groq": {
        "provider": "groq",
        "model": "llama-3.3-70b-versatile",
        "api_key": "",
    },
    "ollama": {
        "provider": "ollama",
        "model": "qwen2.5-coder:7b",
        "endpoint": "http://127.0.0.1:11434/api/generate",
    },
}

ALL_PROVIDERS = list(DEFAULT_CONFIGS)


@dataclass
class ToolSettings:
    """Settings for the external indexer, read from the ``[tool]`` section."""

    binary: str = config.TOOL_NAME
    min_version: str = config.DEFAULT_MIN_VERSION
    command_timeout: Optional[float] = None


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not config.CONFIG_FILE.exists():
        return {}
    try:
        with open(config.CONFIG_FILE, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", config.CONFIG_FILE, exc)
        return {}


def _save_full_config(data: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    config.ensure_base_dirs()
    try:
        with open(config.CONFIG_FILE, "w") as f:
            toml.dump(data, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config %s: %s", config.CONFIG_FILE, exc)
        return False


def load_llm_config() -> Dict[str, Any]:
    """Load the ``[llm]`` section, falling back to OpenAI defaults."""
    return load_full_config().get("llm", get_provider_config("openai"))


def save_llm_config(provider: str, model: str, api_key: str = "", endpoint: str = "") -> bool:
    """Save LLM configuration, preserving the ``[tool]`` section.

    Args:
        provider: Provider name (openai, anthropic, groq, ollama)
        model: Model name
        api_key: API key for cloud providers
        endpoint: Custom endpoint (Ollama or OpenAI-compatible gateways)

    Returns:
        True if saved successfully, False otherwise
    """
    data = load_full_config()
    data["llm"] = {"provider": provider, "model": model}
    if api_key:
        data["llm"]["api_key"] = api_key
    if endpoint:
        data["llm"]["endpoint"] = endpoint
    return _save_full_config(data)


def load_tool_config() -> ToolSettings:
    """Load the ``[tool]`` section into :class:`ToolSettings`."""
    section = load_full_config().get("tool", {})
    timeout = section.get("command_timeout")
    return ToolSettings(
        binary=section.get("binary", config.TOOL_NAME),
        min_version=str(section.get("min_version", config.DEFAULT_MIN_VERSION)),
        command_timeout=float(timeout) if timeout else None,
    )


def save_tool_config(
    binary: Optional[str] = None,
    min_version: Optional[str] = None,
    command_timeout: Optional[float] = None,
) -> bool:
    """Update the ``[tool]`` section; unspecified keys keep their value."""
    data = load_full_config()
    section = data.setdefault("tool", {})
    if binary:
        section["binary"] = binary
    if min_version:
        section["min_version"] = min_version
    if command_timeout is not None:
        if command_timeout > 0:
            section["command_timeout"] = command_timeout
        else:
            section.pop("command_timeout", None)
    return _save_full_config(data)


def get_provider_config(provider: str) -> Dict[str, Any]:
    """Get default configuration for a specific provider."""
    return DEFAULT_CONFIGS.get(provider, DEFAULT_CONFIGS["openai"]).copy()
