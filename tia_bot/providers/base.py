"""Base contract shared by all chat-completion providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from string import Template
from typing import Any

from loguru import logger as default_logger

from tia_bot.errors import ChatCompletionError, ConfigurationError
from tia_bot.history.store import InMemoryHistoryStore
from tia_bot.providers.language import DetectedLanguage, LangdetectDetector, LanguageDetector

DEFAULT_SYSTEM_PROMPT = (
    "You are $nickname, a helpful assistant taking part in a group chat. "
    "Keep replies short and conversational."
)


@dataclass(frozen=True)
class ProviderConfig:
    """Immutable provider settings, built once at bootstrap."""

    api_key: str
    model: str
    nickname: str
    system_prompt: str | None = None
    system_template: str | None = None
    lingue_enabled: bool = True
    lingue_confidence_min: float = 0.5
    max_tokens: int = 512
    temperature: float | None = None
    history_store: InMemoryHistoryStore | None = field(default=None, compare=False)
    logger: Any = field(default=default_logger, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ConfigurationError("Provider api_key must not be empty")
        if not self.model:
            raise ConfigurationError("Provider model must not be empty")
        if not 0.0 <= self.lingue_confidence_min <= 1.0:
            raise ConfigurationError("lingue_confidence_min must be between 0 and 1")
        if self.max_tokens < 1:
            raise ConfigurationError("max_tokens must be positive")


@dataclass
class ChatTurnRequest:
    """One backend call: messages plus sampling limits."""

    messages: list[dict[str, str]]
    max_tokens: int
    temperature: float | None = None


class LLMProvider(ABC):
    """
    Abstract base class for chat-completion providers.

    Subclasses supply three operations: build a client handle, perform one
    chat completion, and pull plain text out of the backend response.
    Everything else (prompt assembly, language steering, history) happens
    here and only talks to those three methods.
    """

    name = "llm"

    def __init__(
        self,
        config: ProviderConfig,
        language_detector: LanguageDetector | None = None,
    ) -> None:
        self.config = config
        self.logger = config.logger
        self.history = config.history_store
        self.language_detector = language_detector or LangdetectDetector()
        self.client = self.initialize_client(config.api_key)

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def nickname(self) -> str:
        return self.config.nickname

    @abstractmethod
    def initialize_client(self, api_key: str) -> Any:
        """
        Build the backend client handle.

        Called once from the constructor. Must not perform network I/O.
        """
        pass

    @abstractmethod
    async def complete_chat_request(self, request: ChatTurnRequest) -> Any:
        """
        Perform one chat completion against the backend.

        Backend failures must propagate unmodified.
        """
        pass

    @abstractmethod
    def extract_response_text(self, response: Any) -> str | None:
        """
        Reduce a raw backend response to plain text.

        Returns None when the backend produced no usable content.
        """
        pass

    async def aclose(self) -> None:
        """Release the client handle."""
        return None

    def build_system_prompt(
        self,
        room: str | None = None,
        sender: str | None = None,
        language: DetectedLanguage | None = None,
    ) -> str:
        """
        Render the system prompt for a turn.

        Uses the template if one is configured, then the literal prompt,
        then the built-in default.
        """
        variables = {
            "nickname": self.nickname,
            "model": self.model,
            "room": room or "",
            "sender": sender or "",
        }
        if self.config.system_template:
            prompt = Template(self.config.system_template).safe_substitute(variables)
        elif self.config.system_prompt:
            prompt = self.config.system_prompt
        else:
            prompt = Template(DEFAULT_SYSTEM_PROMPT).safe_substitute(variables)

        if language is not None:
            prompt += (
                f"\n\nThe latest message is written in {language.name}. "
                f"Reply in {language.name}."
            )
        return prompt

    def detect_language(self, text: str) -> DetectedLanguage | None:
        """Detect the message language if confident enough; never raises."""
        if not self.config.lingue_enabled:
            return None
        try:
            detected = self.language_detector.detect(text)
        except Exception as e:
            self.logger.debug(f"Language detection failed: {e}")
            return None
        if detected is None or detected.confidence < self.config.lingue_confidence_min:
            return None
        if not detected.known:
            self.logger.debug(f"No language name for code {detected.code!r}")
            return None
        return detected

    def build_messages(
        self,
        text: str,
        sender: str | None = None,
        room: str | None = None,
    ) -> list[dict[str, str]]:
        """Assemble system prompt, stored history and the new message."""
        language = self.detect_language(text)
        messages = [
            {
                "role": "system",
                "content": self.build_system_prompt(room=room, sender=sender, language=language),
            }
        ]
        if self.history is not None:
            messages.extend(self.history.get_messages())
        messages.append({"role": "user", "content": self._format_user_content(text, sender)})
        return messages

    async def handle_message(
        self,
        text: str,
        sender: str | None = None,
        room: str | None = None,
    ) -> str | None:
        """
        Produce a reply for one inbound message.

        Args:
            text: Message body.
            sender: Nickname of the author, if known.
            room: Room the message arrived in, if any.

        Returns:
            The reply text, or None when the backend produced nothing usable.

        Raises:
            ChatCompletionError: The backend call failed.
        """
        request = ChatTurnRequest(
            messages=self.build_messages(text, sender=sender, room=room),
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        self.logger.debug(
            f"{self.name} request: model={self.model}, messages={len(request.messages)}"
        )

        try:
            response = await self.complete_chat_request(request)
        except Exception as e:
            self.logger.error(f"{self.name} API error: {e}")
            raise ChatCompletionError(self.name, e) from e

        reply = self.extract_response_text(response)
        if reply is None:
            self.logger.debug(f"{self.name} returned no content")
            return None

        if self.history is not None:
            self.history.add_turn("user", self._format_user_content(text, sender))
            self.history.add_turn("assistant", reply)
        return reply

    @staticmethod
    def _format_user_content(text: str, sender: str | None) -> str:
        return f"{sender}: {text}" if sender else text
