"""XMPP multi-user chat channel built on slixmpp."""

import asyncio
import secrets
import ssl
from collections.abc import Callable
from pathlib import Path
from typing import Any

import slixmpp
from loguru import logger as default_logger
from slixmpp.exceptions import IqError, IqTimeout, PresenceError

from tia_bot.bus.events import InboundMessage
from tia_bot.bus.queue import MessageBus
from tia_bot.channels.base import BaseChannel
from tia_bot.config.loader import save_secret
from tia_bot.config.schema import TlsSettings
from tia_bot.errors import TransportError

DELAY_TAG = "{urn:xmpp:delay}delay"


class XmppChannel(BaseChannel):
    """
    XMPP channel that joins one MUC room.

    Group chat messages from other occupants and direct messages are put on
    the bus. Delayed (history replay) messages and the agent's own echoes
    are ignored.
    """

    def __init__(
        self,
        xmpp_config: dict[str, Any],
        room_jid: str,
        nickname: str,
        bus: MessageBus,
        auto_register: bool = False,
        secrets_path: Path | None = None,
        connect_timeout: float = 30.0,
        logger: Any = default_logger,
        client_factory: Callable[[str, str], Any] = slixmpp.ClientXMPP,
    ) -> None:
        super().__init__(bus)
        self.config = xmpp_config
        self.room_jid = room_jid
        self.nickname = nickname
        self.auto_register = auto_register
        self.secrets_path = secrets_path
        self.connect_timeout = connect_timeout
        self.logger = logger
        self._client_factory = client_factory

        self._client: Any = None
        self._registering = False
        self._session_ready: asyncio.Future[None] | None = None
        self._disconnected: asyncio.Future[None] | None = None

    @property
    def name(self) -> str:
        return "xmpp"

    @property
    def jid(self) -> str:
        jid = f"{self.config['username']}@{self.config['domain']}"
        resource = self.config.get("resource")
        return f"{jid}/{resource}" if resource else jid

    async def start(self) -> None:
        """Connect, authenticate and join the room."""
        password = self.config.get("password")
        if not password:
            if not self.auto_register:
                raise TransportError(f"No XMPP password available for {self.jid}")
            password = secrets.token_urlsafe(18)
            self._registering = True

        loop = asyncio.get_running_loop()
        self._session_ready = loop.create_future()
        self._disconnected = loop.create_future()

        client = self._client_factory(self.jid, password)
        self._client = client
        client.register_plugin("xep_0030")  # Service discovery
        client.register_plugin("xep_0045")  # Multi-user chat
        client.register_plugin("xep_0199")  # Ping
        if self._registering:
            client.register_plugin("xep_0077")  # In-band registration
            client.plugin["xep_0077"].force_registration = True
            client.add_event_handler("register", self._on_register)

        client.add_event_handler("session_start", self._on_session_start)
        client.add_event_handler("failed_auth", self._on_failed_auth)
        client.add_event_handler("connection_failed", self._on_connection_failed)
        client.add_event_handler("disconnected", self._on_disconnected)
        client.add_event_handler("groupchat_message", self._on_groupchat_message)
        client.add_event_handler("message", self._on_direct_message)
        self._apply_tls(client, self.config.get("tls"))

        self.logger.info(f"Connecting to XMPP as {self.jid}")
        client.connect(self.config.get("host") or self.config["domain"], self.config.get("port") or 5222)

        try:
            await asyncio.wait_for(asyncio.shield(self._session_ready), timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            client.disconnect()
            raise TransportError(f"Timed out connecting to XMPP as {self.jid}")
        except TransportError:
            client.disconnect()
            raise

    async def stop(self) -> None:
        """Leave the room and disconnect."""
        if self._client is None:
            return
        self._client.disconnect()
        if self._disconnected is not None and not self._disconnected.done():
            try:
                await asyncio.wait_for(asyncio.shield(self._disconnected), timeout=5.0)
            except asyncio.TimeoutError:
                self.logger.warning("XMPP disconnect did not complete in time")
        self._client = None
        self.logger.info("XMPP channel stopped")

    async def send_message(self, chat_id: str, content: str, is_group: bool = False) -> None:
        """Send to the room (groupchat) or to a single JID (chat)."""
        if self._client is None:
            self.logger.warning("Cannot send XMPP message: channel not connected")
            return
        self._client.send_message(
            mto=chat_id,
            mbody=content,
            mtype="groupchat" if is_group else "chat",
        )

    @staticmethod
    def _apply_tls(client: Any, tls: TlsSettings | dict | None) -> None:
        if tls is None:
            return
        if isinstance(tls, dict):
            tls = TlsSettings(**tls)
        client.enable_direct_tls = tls.direct_tls
        if not tls.reject_unauthorized:
            client.ssl_context.check_hostname = False
            client.ssl_context.verify_mode = ssl.CERT_NONE

    def _resolve_session(self, error: Exception | None = None) -> None:
        if self._session_ready is None or self._session_ready.done():
            return
        if error is None:
            self._session_ready.set_result(None)
        else:
            self._session_ready.set_exception(error)

    async def _on_session_start(self, event: Any) -> None:
        self._client.send_presence()
        await self._client.get_roster()
        try:
            await self._client.plugin["xep_0045"].join_muc_wait(
                self.room_jid, self.nickname, maxstanzas=0
            )
        except (PresenceError, asyncio.TimeoutError) as e:
            self._resolve_session(TransportError(f"Could not join {self.room_jid}: {e}"))
            return
        self.logger.info(f"Joined {self.room_jid} as {self.nickname}")

        if self._registering and self.secrets_path is not None:
            password_key = self.config.get("password_key") or self.config["username"]
            save_secret(self.secrets_path, password_key, self._client.password)
            self._registering = False
        self._resolve_session()

    async def _on_register(self, iq: Any) -> None:
        resp = self._client.Iq()
        resp["type"] = "set"
        resp["register"]["username"] = self._client.boundjid.user
        resp["register"]["password"] = self._client.password
        try:
            await resp.send()
            self.logger.info(f"Registered XMPP account {self._client.boundjid.bare}")
        except (IqError, IqTimeout) as e:
            self._resolve_session(TransportError(f"XMPP registration failed: {e}"))

    def _on_failed_auth(self, event: Any) -> None:
        self._resolve_session(TransportError(f"XMPP authentication failed for {self.jid}"))

    def _on_connection_failed(self, event: Any) -> None:
        self._resolve_session(TransportError(f"XMPP connection failed: {event}"))

    def _on_disconnected(self, event: Any) -> None:
        self._resolve_session(TransportError("XMPP connection closed before session start"))
        if self._disconnected is not None and not self._disconnected.done():
            self._disconnected.set_result(None)

    @staticmethod
    def _is_delayed(msg: Any) -> bool:
        return msg.xml.find(DELAY_TAG) is not None

    async def _on_groupchat_message(self, msg: Any) -> None:
        body = msg["body"]
        sender = msg["mucnick"]
        if not body or sender == self.nickname or self._is_delayed(msg):
            return

        await self.bus.publish_inbound(
            InboundMessage(
                channel=self.name,
                chat_id=msg["from"].bare,
                content=body,
                sender=sender,
                is_group=True,
            )
        )
        self.logger.debug(f"Received groupchat message from {sender}: {body[:50]}")

    async def _on_direct_message(self, msg: Any) -> None:
        if msg["type"] not in ("chat", "normal"):
            return
        body = msg["body"]
        if not body or self._is_delayed(msg):
            return

        sender_jid = msg["from"]
        # Private messages through the room come from room@service/nick.
        sender = sender_jid.resource if sender_jid.bare == self.room_jid else sender_jid.user
        await self.bus.publish_inbound(
            InboundMessage(
                channel=self.name,
                chat_id=str(sender_jid),
                content=body,
                sender=sender,
            )
        )
        self.logger.debug(f"Received direct message from {sender_jid}: {body[:50]}")
