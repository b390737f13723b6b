"""Simple agent runtime: one provider answering in one room."""

import asyncio
import re
from pathlib import Path
from typing import Any

from loguru import logger as default_logger

from tia_bot.bus.events import InboundMessage, OutboundMessage
from tia_bot.bus.queue import MessageBus
from tia_bot.channels.base import BaseChannel
from tia_bot.channels.xmpp import XmppChannel
from tia_bot.errors import ChatCompletionError
from tia_bot.providers.base import LLMProvider

ERROR_NOTICE = "Sorry, I couldn't come up with a reply just now."


class SimpleAgent:
    """
    Connects a channel to a provider through the message bus.

    Direct messages are always answered; group chat messages only when they
    address the agent by nickname. Every message is handled in its own task,
    so replies to one room may overlap and finish out of order unless
    `serialize_replies` is set.
    """

    def __init__(
        self,
        channel: BaseChannel,
        bus: MessageBus,
        provider: LLMProvider,
        nickname: str,
        serialize_replies: bool = False,
        notify_errors: bool = False,
        logger: Any = default_logger,
    ) -> None:
        self.channel = channel
        self.bus = bus
        self.provider = provider
        self.nickname = nickname
        self.serialize_replies = serialize_replies
        self.notify_errors = notify_errors
        self.logger = logger

        self._mention = re.compile(
            rf"@?(?<!\w){re.escape(nickname)}(?!\w)[:,]?",
            re.IGNORECASE,
        )
        self._room_locks: dict[str, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._consumer: asyncio.Task[None] | None = None
        self._dispatcher: asyncio.Task[None] | None = None
        self._running = False

        bus.subscribe_outbound(channel.name, self._deliver)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Connect the channel and start processing messages."""
        await self.channel.start()
        self._running = True
        self._dispatcher = asyncio.create_task(self.bus.dispatch_outbound())
        self._consumer = asyncio.create_task(self._consume())
        self.logger.info("Agent runtime started")

    async def stop(self) -> None:
        """
        Stop processing and disconnect.

        In-flight replies are cancelled rather than awaited.
        """
        self._running = False
        self.bus.stop()
        for task in [self._consumer, self._dispatcher, *self._tasks]:
            if task is not None and not task.done():
                task.cancel()
        self._tasks.clear()
        await self.channel.stop()
        self.logger.info("Agent runtime stopped")

    def should_respond(self, msg: InboundMessage) -> bool:
        """Whether a message is meant for the agent."""
        if not msg.content.strip() or msg.sender == self.nickname:
            return False
        if not msg.is_group:
            return True
        return self._mention.search(msg.content) is not None

    def strip_mention(self, content: str) -> str:
        """Remove nickname mentions from a message body."""
        return self._mention.sub("", content).strip()

    async def _consume(self) -> None:
        while self._running:
            msg = await self.bus.consume_inbound()
            if not self.should_respond(msg):
                continue
            task = asyncio.create_task(self._handle(msg))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _handle(self, msg: InboundMessage) -> None:
        if self.serialize_replies:
            lock = self._room_locks.setdefault(msg.chat_id, asyncio.Lock())
            async with lock:
                await self._reply(msg)
        else:
            await self._reply(msg)

    async def _reply(self, msg: InboundMessage) -> None:
        text = self.strip_mention(msg.content) if msg.is_group else msg.content
        room = msg.chat_id if msg.is_group else None
        try:
            reply = await self.provider.handle_message(text, sender=msg.sender or None, room=room)
        except ChatCompletionError as e:
            self.logger.error(f"No reply for {msg.chat_id}: {e}")
            if self.notify_errors:
                reply = ERROR_NOTICE
            else:
                return
        except Exception as e:
            self.logger.error(f"Error processing message from {msg.chat_id}: {e}")
            return

        if not reply:
            return
        await self.bus.publish_outbound(
            OutboundMessage(
                channel=msg.channel,
                chat_id=msg.chat_id,
                content=reply,
                is_group=msg.is_group,
            )
        )

    async def _deliver(self, msg: OutboundMessage) -> None:
        await self.channel.send_message(msg.chat_id, msg.content, is_group=msg.is_group)


def create_simple_agent(
    xmpp_config: dict[str, Any],
    room_jid: str,
    nickname: str,
    provider: LLMProvider,
    auto_register: bool = False,
    secrets_path: Path | None = None,
    logger: Any = default_logger,
    serialize_replies: bool = False,
    notify_errors: bool = False,
) -> SimpleAgent:
    """Build a SimpleAgent talking to one XMPP room."""
    bus = MessageBus()
    channel = XmppChannel(
        xmpp_config,
        room_jid=room_jid,
        nickname=nickname,
        bus=bus,
        auto_register=auto_register,
        secrets_path=secrets_path,
        logger=logger,
    )
    return SimpleAgent(
        channel=channel,
        bus=bus,
        provider=provider,
        nickname=nickname,
        serialize_replies=serialize_replies,
        notify_errors=notify_errors,
        logger=logger,
    )
