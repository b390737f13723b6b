"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TlsSettings(BaseModel):
    """TLS options for the XMPP connection."""

    model_config = ConfigDict(frozen=True)

    reject_unauthorized: bool = True
    direct_tls: bool = False


class XmppAccount(BaseModel):
    """XMPP account descriptor from an agent profile."""

    model_config = ConfigDict(frozen=True)

    service: str = "xmpp://localhost:5222"
    domain: str
    username: str
    resource: str | None = None
    password_key: str | None = None
    password: str | None = None
    tls: TlsSettings = Field(default_factory=TlsSettings)

    @property
    def jid(self) -> str:
        """Bare JID of the account."""
        return f"{self.username}@{self.domain}"

    def to_config(self) -> dict[str, Any]:
        """Transport configuration for the messaging runtime (TLS excluded)."""
        parsed = urlparse(self.service)
        return {
            "service": self.service,
            "host": parsed.hostname or self.domain,
            "port": parsed.port or 5222,
            "domain": self.domain,
            "username": self.username,
            "resource": self.resource,
            "password": self.password,
            "password_key": self.password_key,
        }


class ProviderDescriptor(BaseModel):
    """The `provider` block of an agent profile."""

    model_config = ConfigDict(frozen=True)

    type: str
    model: str | None = None
    api_key_env: str | None = None
    system_prompt: str | None = None
    system_template: str | None = None
    lingue_enabled: bool = True
    lingue_confidence_min: float = Field(default=0.5, ge=0.0, le=1.0)
    base_url: str | None = None

    def to_config(self) -> dict[str, Any]:
        """Provider settings without the backend type."""
        return self.model_dump(exclude={"type"})


class AgentProfile(BaseModel):
    """A resolved agent profile."""

    model_config = ConfigDict(frozen=True)

    name: str
    nickname: str
    room_jid: str
    xmpp_account: XmppAccount
    provider: ProviderDescriptor | None = None


class Settings(BaseSettings):
    """Process-level settings for tia-bot."""

    model_config = SettingsConfigDict(
        env_prefix="TIA_BOT_",
        env_file=".env",
        extra="ignore",
    )

    profile_dir: Path = Path("./config/agents")
    secrets_path: Path | None = None
    history_max_entries: int = Field(default=40, ge=1)
    serialize_replies: bool = False
    notify_errors: bool = False
    log_level: str = "INFO"

    @property
    def resolved_secrets_path(self) -> Path:
        """Secrets file, defaulting to secrets.json next to the profiles."""
        return self.secrets_path or self.profile_dir / "secrets.json"
