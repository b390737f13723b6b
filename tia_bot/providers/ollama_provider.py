"""Ollama provider for locally hosted models."""

from typing import Any

import httpx

from tia_bot.providers.base import ChatTurnRequest, LLMProvider, ProviderConfig
from tia_bot.providers.language import LanguageDetector


class OllamaClient:
    """Minimal async client for Ollama's `/api/chat` endpoint."""

    def __init__(self, base_url: str, api_key: str | None = None, timeout_s: float = 120.0) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._http = httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=timeout_s)

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: str,
        options: dict[str, Any] | None = None,
        stream: bool = False,
    ) -> str | None:
        """Run one chat turn and return the reply text."""
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": stream,
            "options": options or {},
        }
        resp = await self._http.post("/api/chat", json=payload)
        resp.raise_for_status()
        data = resp.json()
        message = data.get("message") or {}
        return message.get("content")

    async def aclose(self) -> None:
        await self._http.aclose()


class OllamaProvider(LLMProvider):
    """
    Provider for a local Ollama server.

    Ollama needs no credential; a placeholder key is accepted so the
    provider fits the same configuration shape as hosted backends.
    """

    name = "ollama"
    DEFAULT_MODEL = "qwen2.5:0.5b"
    DEFAULT_NICKNAME = "OllamaBot"
    DEFAULT_BASE_URL = "http://localhost:11434"
    PLACEHOLDER_API_KEY = "ollama"
    DEFAULT_TEMPERATURE = 0.7
    DEFAULT_NUM_PREDICT = 1000

    def __init__(
        self,
        config: ProviderConfig,
        base_url: str = DEFAULT_BASE_URL,
        language_detector: LanguageDetector | None = None,
    ) -> None:
        # initialize_client runs inside super().__init__ and needs the URL.
        self.base_url = base_url
        super().__init__(config, language_detector=language_detector)

    def initialize_client(self, api_key: str) -> OllamaClient:
        return OllamaClient(self.base_url, api_key=api_key or self.PLACEHOLDER_API_KEY)

    async def complete_chat_request(self, request: ChatTurnRequest) -> Any:
        return await self.client.chat(
            request.messages,
            model=self.model,
            options={
                "temperature": request.temperature or self.DEFAULT_TEMPERATURE,
                "num_predict": request.max_tokens or self.DEFAULT_NUM_PREDICT,
            },
            stream=False,
        )

    def extract_response_text(self, response: Any) -> str | None:
        if not isinstance(response, str):
            return None
        return response.strip() or None

    async def aclose(self) -> None:
        await self.client.aclose()
