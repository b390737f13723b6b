"""Profile, secrets and environment loading."""

import json
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from loguru import logger
from pydantic import ValidationError

from tia_bot.config.schema import AgentProfile
from tia_bot.errors import ConfigurationError, ProfileNotFoundError


def load_environment(dotenv_path: Path | None = None) -> dict[str, str]:
    """
    Take a snapshot of the process environment.

    Values from a .env file are included, but variables already set in the
    process environment take precedence.

    Args:
        dotenv_path: Optional .env file. Defaults to ./.env when it exists.

    Returns:
        A plain dict, safe to pass to pure resolution functions.
    """
    path = dotenv_path or Path(".env")
    env: dict[str, str] = {}
    if path.is_file():
        env.update({k: v for k, v in dotenv_values(path).items() if v is not None})
        logger.debug(f"Environment loaded from {path}")
    env.update(os.environ)
    return env


def load_secrets(secrets_path: Path) -> dict[str, Any]:
    """Load the secrets file, returning an empty mapping when it is absent."""
    if not secrets_path.exists():
        return {}
    try:
        data = json.loads(secrets_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid secrets file {secrets_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Secrets file {secrets_path} must contain an object")
    return data


def save_secret(secrets_path: Path, password_key: str, password: str) -> None:
    """Store an XMPP password under `xmpp.<password_key>` in the secrets file."""
    data = load_secrets(secrets_path)
    data.setdefault("xmpp", {})[password_key] = password
    secrets_path.parent.mkdir(parents=True, exist_ok=True)
    secrets_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info(f"Saved XMPP password for {password_key} to {secrets_path}")


def load_agent_profile(
    name: str,
    profile_dir: Path,
    secrets_path: Path | None = None,
    allow_missing_password_key: bool = False,
) -> AgentProfile:
    """
    Load and validate a named agent profile.

    Profiles live in `<profile_dir>/<name>.json`. The XMPP password is looked
    up in the secrets file under `xmpp.<password_key>` (the key defaults to
    the account username).

    Args:
        name: Profile name.
        profile_dir: Directory holding profile files.
        secrets_path: Secrets file. Defaults to `<profile_dir>/secrets.json`.
        allow_missing_password_key: Accept a profile whose password is not in
            the secrets file (the runtime may register one).

    Returns:
        The resolved profile.

    Raises:
        ProfileNotFoundError: No profile file exists.
        ConfigurationError: The profile is malformed or lacks a password.
    """
    path = profile_dir / f"{name}.json"
    if not path.exists():
        raise ProfileNotFoundError(name, str(path))

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid profile {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Profile {path} must contain an object")

    data.setdefault("name", name)
    account = data.get("xmpp_account")
    if isinstance(account, dict) and not account.get("password"):
        password_key = account.get("password_key") or account.get("username")
        secrets = load_secrets(secrets_path or profile_dir / "secrets.json")
        password = (secrets.get("xmpp") or {}).get(password_key) if password_key else None
        if password:
            account = {**account, "password": password, "password_key": password_key}
        elif not allow_missing_password_key:
            raise ConfigurationError(
                f'Profile "{name}" has no XMPP password for key "{password_key}"'
            )
        else:
            account = {**account, "password_key": password_key}
        data["xmpp_account"] = account

    try:
        profile = AgentProfile(**data)
    except ValidationError as e:
        raise ConfigurationError(f'Profile "{name}" is invalid: {e}') from e

    logger.debug(f"Profile {name} loaded from {path}")
    return profile


def list_profiles(profile_dir: Path) -> list[str]:
    """Names of the profile files in a directory."""
    if not profile_dir.is_dir():
        return []
    return sorted(p.stem for p in profile_dir.glob("*.json") if p.name != "secrets.json")
