"""Exceptions raised by tia-bot."""


class TiaBotError(Exception):
    """Base class for all tia-bot errors."""


class ConfigurationError(TiaBotError):
    """Profile or provider configuration is unusable."""


class ProfileNotFoundError(ConfigurationError):
    """No profile file exists for the requested name."""

    def __init__(self, name: str, path: str) -> None:
        super().__init__(f'Profile "{name}" not found at {path}')
        self.name = name
        self.path = path


class MissingCredentialError(ConfigurationError):
    """A backend credential could not be resolved from the environment."""

    def __init__(self, env_var: str) -> None:
        super().__init__(f"Missing {env_var} environment variable")
        self.env_var = env_var


class ProviderError(TiaBotError):
    """Base class for errors raised while talking to an LLM backend."""


class ChatCompletionError(ProviderError):
    """A backend chat completion call failed."""

    def __init__(self, provider: str, cause: BaseException) -> None:
        super().__init__(f"{provider} chat completion failed: {cause}")
        self.provider = provider
        self.cause = cause


class TransportError(TiaBotError):
    """The messaging transport could not connect or authenticate."""
