"""Repository for the channel message queue."""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.db.models import ChannelMessage
from cadence.db.repositories.base import BaseRepository


class ChannelMessageRepository(BaseRepository[ChannelMessage]):
    """Inbound queue and per-chat history for messaging channels."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ChannelMessage)

    async def enqueue(
        self,
        channel: str,
        chat_id: str,
        content: str,
        sender_id: str = "",
        sender_name: str | None = None,
        is_group: bool = False,
        is_bot: bool = False,
        processed: bool = False,
        sent_at: datetime | None = None,
    ) -> ChannelMessage:
        """Store a channel message."""
        return await self.add(
            ChannelMessage(
                channel=channel,
                chat_id=chat_id,
                sender_id=sender_id,
                sender_name=sender_name,
                content=content,
                sent_at=sent_at or datetime.utcnow(),
                is_group=is_group,
                is_bot=is_bot,
                processed=processed,
            )
        )

    async def list_unprocessed(self, channel: str, limit: int = 50) -> list[ChannelMessage]:
        """Get unprocessed messages for a channel in arrival order."""
        stmt = (
            select(ChannelMessage)
            .where(ChannelMessage.channel == channel, ChannelMessage.processed.is_(False))
            .order_by(ChannelMessage.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_processed(self, message_id: int) -> bool:
        """Claim a message.

        Returns:
            True only for the caller that flipped processed from False to True.
        """
        result = await self.session.execute(
            update(ChannelMessage)
            .where(ChannelMessage.id == message_id, ChannelMessage.processed.is_(False))
            .values(processed=True)
        )
        return result.rowcount == 1

    async def recent_for_chat(self, channel: str, chat_id: str, limit: int = 20) -> list[ChannelMessage]:
        """Get the newest messages of one chat, oldest first."""
        stmt = (
            select(ChannelMessage)
            .where(ChannelMessage.channel == channel, ChannelMessage.chat_id == chat_id)
            .order_by(ChannelMessage.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(reversed(result.scalars().all()))
