"""Mistral provider using LiteLLM as the hosted-API gateway."""

from dataclasses import dataclass
from typing import Any

from tia_bot.errors import ConfigurationError
from tia_bot.providers.base import ChatTurnRequest, LLMProvider


@dataclass(frozen=True)
class HostedChatClient:
    """Credentials and routing for a hosted chat API reached through LiteLLM."""

    api_key: str
    api_base: str | None = None
    route_prefix: str = "mistral"

    def route(self, model: str) -> str:
        """LiteLLM model identifier, e.g. `mistral/mistral-small-latest`."""
        if model.startswith(f"{self.route_prefix}/"):
            return model
        return f"{self.route_prefix}/{model}"

    async def complete(self, **kwargs: Any) -> Any:
        try:
            import litellm
        except ImportError:
            raise RuntimeError("litellm is required. Install with: pip install litellm")

        kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        return await litellm.acompletion(**kwargs)


class MistralProvider(LLMProvider):
    """
    Provider for the Mistral chat completions API.

    Requests go through LiteLLM, so the response has the usual
    `choices[0].message.content` shape.
    """

    name = "mistral"
    DEFAULT_MODEL = "mistral-small-latest"
    DEFAULT_NICKNAME = "MistralBot"

    def initialize_client(self, api_key: str) -> HostedChatClient:
        if not api_key:
            raise ConfigurationError("Mistral provider requires an API key")
        return HostedChatClient(api_key=api_key)

    async def complete_chat_request(self, request: ChatTurnRequest) -> Any:
        kwargs: dict[str, Any] = {
            "model": self.client.route(self.model),
            "messages": request.messages,
            "max_tokens": request.max_tokens,
        }
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        return await self.client.complete(**kwargs)

    def extract_response_text(self, response: Any) -> str | None:
        choices = getattr(response, "choices", None)
        if not choices:
            return None
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str):
            return None
        return content.strip() or None
