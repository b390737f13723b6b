"""Registry of supported chat-completion backends."""

from dataclasses import dataclass

from tia_bot.errors import ConfigurationError
from tia_bot.providers.base import LLMProvider
from tia_bot.providers.mistral_provider import MistralProvider
from tia_bot.providers.ollama_provider import OllamaProvider


@dataclass(frozen=True)
class BackendSpec:
    """How to configure one backend variant."""

    name: str
    provider_cls: type[LLMProvider]
    api_key_env: str
    default_model: str
    default_nickname: str
    requires_api_key: bool = True
    placeholder_api_key: str | None = None
    base_url_env: str | None = None
    default_base_url: str | None = None

    @property
    def uses_base_url(self) -> bool:
        return self.default_base_url is not None


BACKENDS: dict[str, BackendSpec] = {
    "mistral": BackendSpec(
        name="mistral",
        provider_cls=MistralProvider,
        api_key_env="MISTRAL_API_KEY",
        default_model=MistralProvider.DEFAULT_MODEL,
        default_nickname=MistralProvider.DEFAULT_NICKNAME,
    ),
    "ollama": BackendSpec(
        name="ollama",
        provider_cls=OllamaProvider,
        api_key_env="OLLAMA_API_KEY",
        default_model=OllamaProvider.DEFAULT_MODEL,
        default_nickname=OllamaProvider.DEFAULT_NICKNAME,
        requires_api_key=False,
        placeholder_api_key=OllamaProvider.PLACEHOLDER_API_KEY,
        base_url_env="OLLAMA_BASE_URL",
        default_base_url=OllamaProvider.DEFAULT_BASE_URL,
    ),
}


def get_backend(name: str) -> BackendSpec:
    """Look up a backend by name (case-insensitive)."""
    spec = BACKENDS.get(name.lower())
    if spec is None:
        known = ", ".join(sorted(BACKENDS))
        raise ConfigurationError(f'Unknown provider type "{name}" (expected one of: {known})')
    return spec
