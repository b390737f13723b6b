"""Base class for chat channels."""

from abc import ABC, abstractmethod

from tia_bot.bus.queue import MessageBus


class BaseChannel(ABC):
    """
    Abstract base class for chat channels.

    Channels are responsible for:
    - Connecting to the messaging service
    - Converting messages between platform and internal formats
    - Publishing inbound messages to the bus
    """

    def __init__(self, bus: MessageBus) -> None:
        self.bus = bus

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel identifier."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Connect and begin receiving messages; returns once the session is up."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Disconnect and clean up resources."""
        pass

    @abstractmethod
    async def send_message(self, chat_id: str, content: str, is_group: bool = False) -> None:
        """
        Send a message to a room or a user.

        Args:
            chat_id: Target room JID or user JID.
            content: Message content.
            is_group: Whether chat_id is a group chat room.
        """
        pass
