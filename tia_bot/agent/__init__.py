"""Agent runtime."""

from tia_bot.agent.runner import SimpleAgent, create_simple_agent

__all__ = ["SimpleAgent", "create_simple_agent"]
