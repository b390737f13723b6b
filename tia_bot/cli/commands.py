"""CLI commands for tia-bot."""

import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from tia_bot.bootstrap import DEFAULT_PROFILE, resolve_provider_settings, run_profile
from tia_bot.config import Settings, list_profiles, load_agent_profile, load_environment
from tia_bot.errors import ConfigurationError
from tia_bot.providers.registry import get_backend

app = typer.Typer(
    name="tia-bot",
    help="tia-bot: LLM-backed chat agents for XMPP group chat rooms",
)
console = Console()


def _settings(profile_dir: Optional[Path], secrets: Optional[Path]) -> Settings:
    overrides: dict = {}
    if profile_dir is not None:
        overrides["profile_dir"] = profile_dir
    if secrets is not None:
        overrides["secrets_path"] = secrets
    return Settings(**overrides)


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


@app.command()
def run(
    profile: str = typer.Option(
        DEFAULT_PROFILE, "--profile", "-p", envvar="AGENT_PROFILE", help="Agent profile name"
    ),
    backend: Optional[str] = typer.Option(
        None, "--backend", "-b", help="Override the profile's provider type (mistral, ollama)"
    ),
    profile_dir: Optional[Path] = typer.Option(None, "--profile-dir", help="Profile directory"),
    secrets: Optional[Path] = typer.Option(None, "--secrets", help="Secrets file path"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", help=".env file to read"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Start an agent and keep it running until SIGINT/SIGTERM."""
    settings = _settings(profile_dir, secrets)
    _configure_logging("DEBUG" if verbose else settings.log_level)

    exit_code = run_profile(profile, settings=settings, backend=backend, env_file=env_file)
    raise typer.Exit(exit_code)


@app.command()
def profiles(
    profile_dir: Optional[Path] = typer.Option(None, "--profile-dir", help="Profile directory"),
) -> None:
    """List available agent profiles."""
    settings = _settings(profile_dir, None)
    names = list_profiles(settings.profile_dir)
    if not names:
        console.print(f"[yellow]No profiles found in {settings.profile_dir}[/yellow]")
        return

    table = Table(title="Agent Profiles")
    table.add_column("Profile", style="cyan")
    table.add_column("Nickname")
    table.add_column("Provider", style="green")
    table.add_column("Model")

    for name in names:
        try:
            agent = load_agent_profile(
                name,
                profile_dir=settings.profile_dir,
                secrets_path=settings.resolved_secrets_path,
                allow_missing_password_key=True,
            )
        except ConfigurationError as e:
            table.add_row(name, "[red]invalid[/red]", "", str(e))
            continue
        provider = agent.provider
        table.add_row(
            name,
            agent.nickname,
            provider.type if provider else "[red]none[/red]",
            (provider.model if provider else None) or "[dim]default[/dim]",
        )

    console.print(table)


@app.command()
def show(
    profile: str = typer.Argument(..., help="Agent profile name"),
    profile_dir: Optional[Path] = typer.Option(None, "--profile-dir", help="Profile directory"),
    secrets: Optional[Path] = typer.Option(None, "--secrets", help="Secrets file path"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", help=".env file to read"),
) -> None:
    """Show how a profile resolves, without connecting."""
    settings = _settings(profile_dir, secrets)
    try:
        agent = load_agent_profile(
            profile,
            profile_dir=settings.profile_dir,
            secrets_path=settings.resolved_secrets_path,
            allow_missing_password_key=True,
        )
        if agent.provider is None:
            raise ConfigurationError(f'Profile "{profile}" is missing provider config')
        backend = get_backend(agent.provider.type)
        resolved = resolve_provider_settings(
            agent.provider.to_config(), backend, load_environment(env_file)
        )
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Profile: {profile}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Nickname", agent.nickname)
    table.add_row("Room", agent.room_jid)
    table.add_row("Account", agent.xmpp_account.jid)
    table.add_row("Service", agent.xmpp_account.service)
    table.add_row("Provider", backend.name)
    table.add_row("Model", resolved.model)
    table.add_row("API Key Env", resolved.api_key_env)
    key = resolved.api_key
    if key == backend.placeholder_api_key:
        table.add_row("API Key", "[dim]placeholder[/dim]")
    elif len(key) <= 8:
        table.add_row("API Key", "[dim]********[/dim]")
    else:
        table.add_row("API Key", f"...{key[-4:]}")
    if resolved.base_url:
        table.add_row("Base URL", resolved.base_url)
    table.add_row("Language Steering", "Enabled" if agent.provider.lingue_enabled else "Disabled")

    console.print(table)


if __name__ == "__main__":
    app()
