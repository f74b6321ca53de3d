"""Channel transport interface."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


def build_session_key(channel: str, chat_id: str | int) -> str:
    """Session key for a chat, e.g. ``telegram:12345``."""
    return f"{channel}:{chat_id}"


def parse_session_key(session_key: str) -> tuple[str, str]:
    """Split a session key into (channel, chat_id).

    Raises:
        ValueError: If the key has no channel prefix.
    """
    channel, sep, chat_id = session_key.partition(":")
    if not sep or not channel or not chat_id:
        raise ValueError(f"Invalid session key '{session_key}'")
    return channel, chat_id


@dataclass
class InboundMessage:
    """A chat message as received from a platform, before it is queued."""

    channel: str
    chat_id: str
    sender_id: str
    content: str
    sender_name: str | None = None
    is_group: bool = False
    is_bot: bool = False
    sent_at: datetime = field(default_factory=datetime.utcnow)


MessageCallback = Callable[[InboundMessage], Coroutine[Any, Any, None]]


class ChannelTransport(ABC):
    """Connect/send/receive for one chat platform.

    Transports only move text. Inbound messages are handed to the callback
    registered with on_message, which queues them for the poller.
    """

    name: str = "base"

    @abstractmethod
    async def start(self) -> None:
        """Connect to the platform."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Disconnect from the platform."""
        ...

    @abstractmethod
    async def send(self, chat_id: str, text: str) -> None:
        """Send text to a chat."""
        ...

    @abstractmethod
    async def set_typing(self, chat_id: str, typing: bool) -> None:
        """Show or clear the typing indicator in a chat."""
        ...

    @abstractmethod
    def on_message(self, callback: MessageCallback) -> None:
        """Register the callback for inbound messages."""
        ...


class DisabledTransport(ChannelTransport):
    """No-op transport used when a channel is not configured."""

    def __init__(self, name: str):
        self.name = name

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def send(self, chat_id: str, text: str) -> None:
        raise RuntimeError(f"Channel '{self.name}' is disabled")

    async def set_typing(self, chat_id: str, typing: bool) -> None:
        pass

    def on_message(self, callback: MessageCallback) -> None:
        pass
