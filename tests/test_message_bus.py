"""Tests for MessageBus."""

import asyncio

import pytest

from tia_bot.bus.events import InboundMessage, OutboundMessage
from tia_bot.bus.queue import MessageBus


@pytest.mark.asyncio
async def test_inbound_round_trip():
    bus = MessageBus()
    msg = InboundMessage(channel="xmpp", chat_id="room@conf", content="hi")
    await bus.publish_inbound(msg)
    assert await bus.consume_inbound() is msg


@pytest.mark.asyncio
async def test_dispatch_outbound_routes_by_channel():
    bus = MessageBus()
    delivered: list[OutboundMessage] = []

    async def callback(msg: OutboundMessage) -> None:
        delivered.append(msg)
        bus.stop()

    bus.subscribe_outbound("xmpp", callback)
    await bus.publish_outbound(OutboundMessage(channel="xmpp", chat_id="room@conf", content="yo"))

    await asyncio.wait_for(bus.dispatch_outbound(), timeout=3)

    assert [m.content for m in delivered] == ["yo"]


@pytest.mark.asyncio
async def test_dispatch_survives_failing_subscriber():
    bus = MessageBus()
    delivered: list[str] = []

    async def failing(msg: OutboundMessage) -> None:
        raise RuntimeError("send failed")

    async def working(msg: OutboundMessage) -> None:
        delivered.append(msg.content)
        bus.stop()

    bus.subscribe_outbound("xmpp", failing)
    bus.subscribe_outbound("xmpp", working)
    await bus.publish_outbound(OutboundMessage(channel="xmpp", chat_id="c", content="x"))

    await asyncio.wait_for(bus.dispatch_outbound(), timeout=3)

    assert delivered == ["x"]
