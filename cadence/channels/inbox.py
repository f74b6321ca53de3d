"""Durable inbound queue shared by transports and pollers."""

import logging

from cadence.channels.base import InboundMessage
from cadence.db.database import DatabaseManager
from cadence.db.repositories import ChannelMessageRepository

logger = logging.getLogger(__name__)


class ChannelInbox:
    """Writes transport messages into the channel_messages table.

    An instance is registered as each transport's on_message callback.
    """

    def __init__(self, db: DatabaseManager):
        self._db = db

    async def __call__(self, message: InboundMessage) -> None:
        await self.enqueue(message)

    async def enqueue(self, message: InboundMessage) -> int:
        """Queue an inbound message and return its row id."""
        async with self._db.session() as session:
            row = await ChannelMessageRepository(session).enqueue(
                channel=message.channel,
                chat_id=message.chat_id,
                content=message.content,
                sender_id=message.sender_id,
                sender_name=message.sender_name,
                is_group=message.is_group,
                is_bot=message.is_bot,
                sent_at=message.sent_at,
            )
        logger.debug(f"Queued {message.channel} message {row.id} from chat {message.chat_id}")
        return row.id

    async def record_bot_reply(self, channel: str, chat_id: str, text: str) -> None:
        """Store a message the bot sent so chat history stays complete."""
        async with self._db.session() as session:
            await ChannelMessageRepository(session).enqueue(
                channel=channel,
                chat_id=chat_id,
                content=text,
                sender_id="bot",
                is_bot=True,
                processed=True,
            )
