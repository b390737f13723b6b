"""Chat channels."""

from tia_bot.channels.base import BaseChannel
from tia_bot.channels.xmpp import XmppChannel

__all__ = ["BaseChannel", "XmppChannel"]
