"""Agent bootstrap: profile to running agent, and back down on a signal."""

import asyncio
import signal
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger as default_logger

from tia_bot.agent.runner import create_simple_agent
from tia_bot.config.loader import load_agent_profile, load_environment
from tia_bot.config.schema import AgentProfile, Settings
from tia_bot.errors import ConfigurationError, MissingCredentialError
from tia_bot.history.store import InMemoryHistoryStore
from tia_bot.providers.base import LLMProvider, ProviderConfig
from tia_bot.providers.registry import BackendSpec, get_backend

DEFAULT_PROFILE = "mistral2"


@dataclass(frozen=True)
class ResolvedProvider:
    """Credential, model and endpoint chosen for a provider."""

    api_key: str
    api_key_env: str
    model: str
    base_url: str | None = None


def resolve_provider_settings(
    provider_config: Mapping[str, Any],
    backend: BackendSpec,
    env: Mapping[str, str],
) -> ResolvedProvider:
    """
    Resolve credential, model and base URL for a backend.

    Reads only its arguments, so the environment is whatever snapshot the
    caller passes in.

    Args:
        provider_config: Output of `ProviderDescriptor.to_config()`.
        backend: The backend variant being configured.
        env: Environment snapshot.

    Returns:
        The resolved settings.

    Raises:
        MissingCredentialError: The backend needs a credential and the
            variable is unset or empty.
    """
    api_key_env = provider_config.get("api_key_env") or backend.api_key_env
    api_key = env.get(api_key_env) or ""
    if not api_key:
        if backend.requires_api_key:
            raise MissingCredentialError(api_key_env)
        api_key = backend.placeholder_api_key or ""

    base_url = None
    if backend.uses_base_url:
        base_url = (
            (env.get(backend.base_url_env) if backend.base_url_env else None)
            or provider_config.get("base_url")
            or backend.default_base_url
        )

    return ResolvedProvider(
        api_key=api_key,
        api_key_env=api_key_env,
        model=provider_config.get("model") or backend.default_model,
        base_url=base_url,
    )


def build_provider(
    profile: AgentProfile,
    backend: BackendSpec,
    resolved: ResolvedProvider,
    history_store: InMemoryHistoryStore,
    logger: Any = default_logger,
) -> LLMProvider:
    """Construct the concrete provider for a profile."""
    descriptor = profile.provider
    if descriptor is None:
        raise ConfigurationError(f'Profile "{profile.name}" is missing provider config')
    config = ProviderConfig(
        api_key=resolved.api_key,
        model=resolved.model,
        nickname=profile.nickname or backend.default_nickname,
        system_prompt=descriptor.system_prompt,
        system_template=descriptor.system_template,
        lingue_enabled=descriptor.lingue_enabled,
        lingue_confidence_min=descriptor.lingue_confidence_min,
        history_store=history_store,
        logger=logger,
    )
    if resolved.base_url is not None:
        return backend.provider_cls(config, base_url=resolved.base_url)
    return backend.provider_cls(config)


def build_xmpp_config(profile: AgentProfile) -> dict[str, Any]:
    """Transport config for the runtime, with TLS settings merged in."""
    account = profile.xmpp_account
    return {**account.to_config(), "tls": account.tls}


class AgentBootstrap:
    """
    Turns a profile name into a running agent.

    `start()` does everything up to a connected runtime and raises on any
    failure. `run()` wraps it with exit-code semantics and waits for a stop
    token before tearing down.
    """

    def __init__(
        self,
        profile_name: str,
        settings: Settings,
        env: Mapping[str, str],
        backend: str | None = None,
        agent_factory: Callable[..., Any] = create_simple_agent,
        profile_loader: Callable[..., AgentProfile] = load_agent_profile,
        logger: Any = default_logger,
    ) -> None:
        self.profile_name = profile_name
        self.settings = settings
        self.env = env
        self.backend_name = backend
        self.agent_factory = agent_factory
        self.profile_loader = profile_loader
        self.logger = logger

        self.profile: AgentProfile | None = None
        self.provider: LLMProvider | None = None
        self.runner: Any = None
        self.resolved: ResolvedProvider | None = None

    async def start(self) -> Any:
        """
        Load the profile, build the provider and start the runtime.

        Returns:
            The started runtime handle.
        """
        secrets_path = self.settings.resolved_secrets_path
        profile = self.profile_loader(
            self.profile_name,
            profile_dir=self.settings.profile_dir,
            secrets_path=secrets_path,
            allow_missing_password_key=True,
        )
        if profile is None or profile.provider is None:
            raise ConfigurationError(f'Profile "{self.profile_name}" is missing provider config')
        self.profile = profile

        backend = get_backend(self.backend_name or profile.provider.type)
        self.resolved = resolve_provider_settings(profile.provider.to_config(), backend, self.env)

        self.provider = build_provider(
            profile,
            backend,
            self.resolved,
            InMemoryHistoryStore(max_entries=self.settings.history_max_entries),
            logger=self.logger,
        )

        self.runner = self.agent_factory(
            xmpp_config=build_xmpp_config(profile),
            room_jid=profile.room_jid,
            nickname=profile.nickname,
            provider=self.provider,
            auto_register=True,
            secrets_path=secrets_path,
            logger=self.logger,
            serialize_replies=self.settings.serialize_replies,
            notify_errors=self.settings.notify_errors,
        )
        await self.runner.start()

        self.logger.info(f"{profile.nickname} connected to {profile.room_jid}")
        self.logger.info(f"- Profile: {self.profile_name}")
        self.logger.info(f"- Model: {self.resolved.model}")
        if self.resolved.base_url is not None:
            self.logger.info(f"- {backend.name.capitalize()} URL: {self.resolved.base_url}")
        return self.runner

    async def shutdown(self) -> None:
        """Stop the runtime and release the provider; errors are logged only."""
        if self.runner is not None:
            try:
                await self.runner.stop()
            except Exception as e:
                self.logger.warning(f"Error while stopping agent: {e}")
            self.runner = None
        if self.provider is not None:
            try:
                await self.provider.aclose()
            except Exception as e:
                self.logger.warning(f"Error while closing provider: {e}")
            self.provider = None

    async def run(self, stop_token: asyncio.Event) -> int:
        """
        Start, wait for the stop token, then shut down.

        Returns:
            Process exit code: 0 after a clean stop, 1 if startup failed.
        """
        try:
            await self.start()
        except Exception as e:
            self.logger.error(f"Failed to start bot: {e}")
            if self.provider is not None:
                await self.provider.aclose()
                self.provider = None
            return 1

        await stop_token.wait()
        self.logger.info("Shutting down")
        await self.shutdown()
        return 0


def install_signal_handlers(loop: asyncio.AbstractEventLoop, stop_token: asyncio.Event) -> None:
    """Make SIGINT and SIGTERM set the stop token."""
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_token.set)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler.
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_token.set))


def run_profile(
    profile_name: str = DEFAULT_PROFILE,
    settings: Settings | None = None,
    backend: str | None = None,
    env_file: Path | None = None,
) -> int:
    """Run an agent until SIGINT/SIGTERM and return the exit code."""
    settings = settings or Settings()
    env = load_environment(env_file)

    async def _main() -> int:
        stop_token = asyncio.Event()
        install_signal_handlers(asyncio.get_running_loop(), stop_token)
        bootstrap = AgentBootstrap(profile_name, settings, env, backend=backend)
        return await bootstrap.run(stop_token)

    return asyncio.run(_main())
