"""LLM providers module."""

from tia_bot.providers.base import ChatTurnRequest, LLMProvider, ProviderConfig
from tia_bot.providers.mistral_provider import MistralProvider
from tia_bot.providers.ollama_provider import OllamaProvider
from tia_bot.providers.registry import BACKENDS, BackendSpec, get_backend

__all__ = [
    "BACKENDS",
    "BackendSpec",
    "ChatTurnRequest",
    "LLMProvider",
    "MistralProvider",
    "OllamaProvider",
    "ProviderConfig",
    "get_backend",
]
