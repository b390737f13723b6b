"""Message bus module."""

from tia_bot.bus.events import InboundMessage, OutboundMessage
from tia_bot.bus.queue import MessageBus

__all__ = ["InboundMessage", "OutboundMessage", "MessageBus"]
