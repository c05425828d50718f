"""Configuration commands: LLM provider and external tool settings."""

from __future__ import annotations

from typing import Optional

import typer

from . import config, config_manager
from .models import VERSION_PATTERN


def print_success(message: str):
    """Print success message."""
    typer.echo(typer.style(f"✅ {message}", fg=typer.colors.GREEN))


def print_error(message: str):
    """Print error message."""
    typer.echo(typer.style(f"❌ {message}", fg=typer.colors.RED), err=True)


def _mask(api_key: str) -> str:
    if not api_key:
        return typer.style("(not set)", dim=True)
    return api_key[:8] + "•" * min(max(len(api_key) - 8, 0), 16)


def show_config():
    """Show the external tool and LLM configuration."""
    tool = config_manager.load_tool_config()
    llm = config_manager.load_llm_config()

    typer.echo("")
    typer.echo(typer.style("  contextpilot", bold=True))
    typer.echo(f"  Binary       {tool.binary}")
    typer.echo(f"  Min version  {tool.min_version}")
    typer.echo(f"  Timeout      {f'{tool.command_timeout:g}s' if tool.command_timeout else 'none'}")
    typer.echo("")
    typer.echo(typer.style("  LLM", bold=True))
    typer.echo(f"  Provider     {llm.get('provider', 'openai')}")
    typer.echo(f"  Model        {llm.get('model', '')}")
    if llm.get("endpoint"):
        typer.echo(f"  Endpoint     {typer.style(llm['endpoint'], dim=True)}")
    typer.echo(f"  API Key      {_mask(llm.get('api_key', ''))}")
    typer.echo(f"  Config       {typer.style(str(config.CONFIG_FILE), dim=True)}")
    typer.echo("")


def set_llm(
    provider: str = typer.Argument(..., help="LLM provider: openai, anthropic, groq, ollama"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model name (uses provider default if not set)."),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k", help="API key for cloud providers."),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", "-e", help="Custom endpoint URL."),
):
    """Choose the LLM used by 'analyze'.

    Examples:
        cpilot set-llm openai -k YOUR_API_KEY
        cpilot set-llm anthropic -k YOUR_API_KEY -m claude-3-5-sonnet-20241022
        cpilot set-llm ollama -m qwen2.5-coder:7b
    """
    provider = provider.lower().strip()
    if provider not in config_manager.ALL_PROVIDERS:
        print_error(f"Unknown provider '{provider}'. Choose from: {', '.join(config_manager.ALL_PROVIDERS)}")
        raise typer.Exit(code=1)

    defaults = config_manager.get_provider_config(provider)
    resolved_model = model or defaults.get("model", "")
    resolved_endpoint = endpoint or defaults.get("endpoint", "")

    if provider != "ollama" and not api_key:
        typer.echo(typer.style("ℹ️  No API key given; 'analyze' will fail until one is set.", fg=typer.colors.BLUE))

    if not config_manager.save_llm_config(provider, resolved_model, api_key or "", resolved_endpoint):
        print_error("Failed to save configuration.")
        raise typer.Exit(code=1)
    print_success(f"LLM set to {provider} ({resolved_model})")


def set_tool(
    binary: Optional[str] = typer.Option(None, "--binary", "-b", help="contextpilot executable name or path."),
    min_version: Optional[str] = typer.Option(None, "--min-version", help="Minimum compatible version (X.Y.Z)."),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", min=0, help="Per-command timeout in seconds (0 disables)."
    ),
):
    """Configure how the contextpilot executable is found and run.

    Examples:
        cpilot set-tool --binary ~/bin/contextpilot
        cpilot set-tool --timeout 600
    """
    if binary is None and min_version is None and timeout is None:
        print_error("Nothing to change. Pass --binary, --min-version, or --timeout.")
        raise typer.Exit(code=1)

    if min_version is not None and not VERSION_PATTERN.fullmatch(min_version):
        print_error(f"'{min_version}' is not a version of the form X.Y.Z")
        raise typer.Exit(code=1)

    if not config_manager.save_tool_config(binary, min_version, timeout):
        print_error("Failed to save configuration.")
        raise typer.Exit(code=1)
    print_success("Tool settings saved")
