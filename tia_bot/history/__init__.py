"""Conversation history storage."""

from tia_bot.history.store import InMemoryHistoryStore

__all__ = ["InMemoryHistoryStore"]
