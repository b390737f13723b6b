"""Async message bus connecting channels and the agent."""

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

from tia_bot.bus.events import InboundMessage, OutboundMessage

OutboundCallback = Callable[[OutboundMessage], Awaitable[None]]


class MessageBus:
    """
    Inbound and outbound queues plus per-channel outbound subscribers.

    Channels put InboundMessages on `inbound`; the agent publishes
    OutboundMessages which `dispatch_outbound` routes to the subscriber
    registered for the message's channel.
    """

    def __init__(self) -> None:
        self.inbound: asyncio.Queue[InboundMessage] = asyncio.Queue()
        self.outbound: asyncio.Queue[OutboundMessage] = asyncio.Queue()
        self._subscribers: dict[str, list[OutboundCallback]] = {}
        self._running = False

    async def publish_inbound(self, msg: InboundMessage) -> None:
        await self.inbound.put(msg)

    async def consume_inbound(self) -> InboundMessage:
        return await self.inbound.get()

    async def publish_outbound(self, msg: OutboundMessage) -> None:
        await self.outbound.put(msg)

    def subscribe_outbound(self, channel: str, callback: OutboundCallback) -> None:
        """Register a callback for outbound messages on a channel."""
        self._subscribers.setdefault(channel, []).append(callback)

    async def dispatch_outbound(self) -> None:
        """Route outbound messages to subscribers until stopped."""
        self._running = True
        while self._running:
            try:
                msg = await asyncio.wait_for(self.outbound.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            subscribers = self._subscribers.get(msg.channel, [])
            if not subscribers:
                logger.warning(f"No subscriber for outbound channel {msg.channel}")
            for callback in subscribers:
                try:
                    await callback(msg)
                except Exception as e:
                    logger.error(f"Failed to deliver outbound message on {msg.channel}: {e}")

    def stop(self) -> None:
        """Stop the outbound dispatch loop."""
        self._running = False
