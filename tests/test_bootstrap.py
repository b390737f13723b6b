"""Tests for the agent bootstrap sequence."""

import asyncio
import json
import os
import signal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from tia_bot.bootstrap import (
    AgentBootstrap,
    build_xmpp_config,
    install_signal_handlers,
    resolve_provider_settings,
)
from tia_bot.config.loader import load_agent_profile
from tia_bot.config.schema import Settings
from tia_bot.errors import ConfigurationError, MissingCredentialError
from tia_bot.providers.mistral_provider import MistralProvider
from tia_bot.providers.ollama_provider import OllamaProvider
from tia_bot.providers.registry import get_backend


def account(username: str) -> dict:
    return {
        "service": "xmpp://example.org:5222",
        "domain": "example.org",
        "username": username,
        "tls": {"reject_unauthorized": False},
    }


@pytest.fixture
def profile_dir(tmp_path: Path) -> Path:
    d = tmp_path / "agents"
    d.mkdir()
    profiles = {
        "mistral2": {
            "nickname": "Mistral",
            "room_jid": "general@conference.example.org",
            "xmpp_account": account("mistral"),
            "provider": {"type": "mistral"},
        },
        "oquen": {
            "nickname": "Oquen",
            "room_jid": "general@conference.example.org",
            "xmpp_account": account("oquen"),
            "provider": {"type": "ollama", "lingue_enabled": False},
        },
        "noprovider": {
            "nickname": "Silent",
            "room_jid": "general@conference.example.org",
            "xmpp_account": account("silent"),
        },
    }
    for name, data in profiles.items():
        (d / f"{name}.json").write_text(json.dumps(data))
    (d / "secrets.json").write_text(json.dumps({"xmpp": {"mistral": "pw", "oquen": "pw"}}))
    return d


@pytest.fixture
def settings(profile_dir: Path) -> Settings:
    return Settings(profile_dir=profile_dir, history_max_entries=6)


@pytest.fixture
def runner():
    handle = MagicMock()
    handle.start = AsyncMock()
    handle.stop = AsyncMock()
    return handle


@pytest.fixture
def agent_factory(runner):
    return MagicMock(return_value=runner)


def logged(logger: MagicMock) -> str:
    return "\n".join(str(c.args[0]) for c in logger.info.call_args_list)


# resolve_provider_settings


def test_resolve_hosted_uses_default_env_and_model():
    resolved = resolve_provider_settings({}, get_backend("mistral"), {"MISTRAL_API_KEY": "sk-test"})
    assert resolved.api_key == "sk-test"
    assert resolved.api_key_env == "MISTRAL_API_KEY"
    assert resolved.model == "mistral-small-latest"
    assert resolved.base_url is None


def test_resolve_hosted_custom_env_var():
    resolved = resolve_provider_settings(
        {"api_key_env": "TEAM_KEY", "model": "mistral-large-latest"},
        get_backend("mistral"),
        {"TEAM_KEY": "abc", "MISTRAL_API_KEY": "ignored"},
    )
    assert resolved.api_key == "abc"
    assert resolved.model == "mistral-large-latest"


@pytest.mark.parametrize("env", [{}, {"MISTRAL_API_KEY": ""}])
def test_resolve_hosted_missing_credential(env):
    with pytest.raises(MissingCredentialError) as exc_info:
        resolve_provider_settings({}, get_backend("mistral"), env)
    assert exc_info.value.env_var == "MISTRAL_API_KEY"
    assert "MISTRAL_API_KEY" in str(exc_info.value)


def test_resolve_local_uses_placeholder_and_default_url():
    resolved = resolve_provider_settings({}, get_backend("ollama"), {})
    assert resolved.api_key == "ollama"
    assert resolved.model == "qwen2.5:0.5b"
    assert resolved.base_url == "http://localhost:11434"


def test_resolve_local_base_url_precedence():
    backend = get_backend("ollama")
    from_profile = resolve_provider_settings({"base_url": "http://profile:11434"}, backend, {})
    assert from_profile.base_url == "http://profile:11434"

    from_env = resolve_provider_settings(
        {"base_url": "http://profile:11434"}, backend, {"OLLAMA_BASE_URL": "http://env:11434"}
    )
    assert from_env.base_url == "http://env:11434"


def test_unknown_backend():
    with pytest.raises(ConfigurationError):
        get_backend("gpt-9000")


def test_build_xmpp_config_merges_tls(profile_dir):
    profile = load_agent_profile("mistral2", profile_dir)
    config = build_xmpp_config(profile)
    assert config["username"] == "mistral"
    assert config["password"] == "pw"
    assert config["tls"].reject_unauthorized is False


# AgentBootstrap


@pytest.mark.asyncio
async def test_mistral_profile_defaults_model(settings, agent_factory, runner):
    logger = MagicMock()
    bootstrap = AgentBootstrap(
        "mistral2",
        settings,
        {"MISTRAL_API_KEY": "sk-test"},
        agent_factory=agent_factory,
        logger=logger,
    )

    await bootstrap.start()

    assert isinstance(bootstrap.provider, MistralProvider)
    assert bootstrap.provider.model == "mistral-small-latest"
    assert bootstrap.provider.history.max_entries == 6
    runner.start.assert_awaited_once()

    kwargs = agent_factory.call_args.kwargs
    assert kwargs["room_jid"] == "general@conference.example.org"
    assert kwargs["nickname"] == "Mistral"
    assert kwargs["provider"] is bootstrap.provider
    assert kwargs["auto_register"] is True
    assert kwargs["xmpp_config"]["tls"].reject_unauthorized is False

    output = logged(logger)
    assert "Mistral connected to general@conference.example.org" in output
    assert "Profile: mistral2" in output
    assert "Model: mistral-small-latest" in output


@pytest.mark.asyncio
async def test_oquen_profile_resolves_local_url(settings, agent_factory):
    logger = MagicMock()
    bootstrap = AgentBootstrap("oquen", settings, {}, agent_factory=agent_factory, logger=logger)

    await bootstrap.start()

    assert isinstance(bootstrap.provider, OllamaProvider)
    assert bootstrap.provider.base_url == "http://localhost:11434"
    assert bootstrap.provider.config.api_key == "ollama"
    assert "http://localhost:11434" in logged(logger)
    await bootstrap.shutdown()


@pytest.mark.asyncio
async def test_backend_override(settings, agent_factory):
    bootstrap = AgentBootstrap(
        "mistral2", settings, {}, backend="ollama", agent_factory=agent_factory, logger=MagicMock()
    )
    await bootstrap.start()
    assert isinstance(bootstrap.provider, OllamaProvider)
    await bootstrap.shutdown()


@pytest.mark.asyncio
async def test_missing_provider_block_fails_before_runtime(settings, agent_factory, runner):
    bootstrap = AgentBootstrap("noprovider", settings, {}, agent_factory=agent_factory, logger=MagicMock())

    with pytest.raises(ConfigurationError, match="missing provider config"):
        await bootstrap.start()

    agent_factory.assert_not_called()
    runner.start.assert_not_called()


@pytest.mark.asyncio
async def test_missing_credential_exit_code(settings, agent_factory, runner):
    logger = MagicMock()
    bootstrap = AgentBootstrap("mistral2", settings, {}, agent_factory=agent_factory, logger=logger)

    code = await bootstrap.run(asyncio.Event())

    assert code == 1
    runner.start.assert_not_called()
    message = str(logger.error.call_args.args[0])
    assert "Failed to start bot" in message
    assert "MISTRAL_API_KEY" in message


@pytest.mark.asyncio
async def test_missing_profile_exit_code(settings, agent_factory):
    bootstrap = AgentBootstrap("ghost", settings, {}, agent_factory=agent_factory, logger=MagicMock())
    assert await bootstrap.run(asyncio.Event()) == 1
    agent_factory.assert_not_called()


@pytest.mark.asyncio
async def test_runtime_start_failure_exit_code(settings, agent_factory, runner):
    runner.start.side_effect = ConnectionRefusedError("no server")
    bootstrap = AgentBootstrap("oquen", settings, {}, agent_factory=agent_factory, logger=MagicMock())

    assert await bootstrap.run(asyncio.Event()) == 1
    runner.stop.assert_not_called()


@pytest.mark.asyncio
async def test_stop_token_stops_runtime_once(settings, agent_factory, runner):
    bootstrap = AgentBootstrap(
        "mistral2", settings, {"MISTRAL_API_KEY": "sk-test"}, agent_factory=agent_factory, logger=MagicMock()
    )
    stop_token = asyncio.Event()

    task = asyncio.create_task(bootstrap.run(stop_token))
    await asyncio.sleep(0.05)
    assert not task.done()
    runner.stop.assert_not_called()

    stop_token.set()
    code = await asyncio.wait_for(task, timeout=2)

    assert code == 0
    runner.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_stop_failure_still_exits_cleanly(settings, agent_factory, runner):
    runner.stop.side_effect = RuntimeError("stream already closed")
    logger = MagicMock()
    bootstrap = AgentBootstrap(
        "mistral2", settings, {"MISTRAL_API_KEY": "sk-test"}, agent_factory=agent_factory, logger=logger
    )
    stop_token = asyncio.Event()
    stop_token.set()

    assert await bootstrap.run(stop_token) == 0
    runner.stop.assert_awaited_once()
    logger.warning.assert_called()


def test_install_signal_handlers():
    loop = MagicMock()
    token = asyncio.Event()

    install_signal_handlers(loop, token)

    sigs = [c.args[0] for c in loop.add_signal_handler.call_args_list]
    assert sigs == [signal.SIGINT, signal.SIGTERM]
    callback = loop.add_signal_handler.call_args_list[1].args[1]
    callback()
    assert token.is_set()


@pytest.mark.asyncio
async def test_sigterm_while_idle_stops_once(settings, agent_factory, runner):
    loop = asyncio.get_running_loop()
    stop_token = asyncio.Event()
    install_signal_handlers(loop, stop_token)
    try:
        bootstrap = AgentBootstrap(
            "mistral2",
            settings,
            {"MISTRAL_API_KEY": "sk-test"},
            agent_factory=agent_factory,
            logger=MagicMock(),
        )
        task = asyncio.create_task(bootstrap.run(stop_token))
        await asyncio.sleep(0.05)

        os.kill(os.getpid(), signal.SIGTERM)
        code = await asyncio.wait_for(task, timeout=2)
    finally:
        loop.remove_signal_handler(signal.SIGINT)
        loop.remove_signal_handler(signal.SIGTERM)

    assert code == 0
    runner.stop.assert_awaited_once()
