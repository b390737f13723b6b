"""Configuration module."""

from tia_bot.config.loader import (
    list_profiles,
    load_agent_profile,
    load_environment,
    load_secrets,
    save_secret,
)
from tia_bot.config.schema import (
    AgentProfile,
    ProviderDescriptor,
    Settings,
    TlsSettings,
    XmppAccount,
)

__all__ = [
    "AgentProfile",
    "ProviderDescriptor",
    "Settings",
    "TlsSettings",
    "XmppAccount",
    "list_profiles",
    "load_agent_profile",
    "load_environment",
    "load_secrets",
    "save_secret",
]
