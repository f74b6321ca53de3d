"""Repository for sessions and their messages."""

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.db.models import Session, SessionMessage
from cadence.db.repositories.base import BaseRepository


class SessionRepository(BaseRepository[Session]):
    """Repository for conversation sessions."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Session)

    async def get_by_external_id(self, external_id: str) -> Session | None:
        """Get a channel session by its external identity (e.g. ``telegram:42``)."""
        stmt = select(Session).where(Session.external_id == external_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, source: str, external_id: str) -> Session:
        """Return the session for external_id, creating it on first sight."""
        existing = await self.get_by_external_id(external_id)
        if existing:
            return existing
        return await self.add(Session(source=source, external_id=external_id))

    async def list_by_source(self, source: str | None = None) -> list[Session]:
        """List sessions, most recently active first."""
        stmt = select(Session).order_by(Session.updated_at.desc())
        if source:
            stmt = stmt.where(Session.source == source)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def touch(self, session_id: str, title: str | None = None) -> None:
        """Bump updated_at, and set the title if the session has none yet."""
        entity = await self.get_by_id(session_id)
        if entity is None:
            return
        entity.updated_at = datetime.utcnow()
        if title and not entity.title:
            entity.title = title
        await self.session.flush()


class SessionMessageRepository(BaseRepository[SessionMessage]):
    """Repository for messages within sessions."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, SessionMessage)

    async def add(
        self,
        session_id: str,
        role: str,
        text: str,
        tool_calls: list[dict[str, Any]] | None = None,
        pending_messages: list[dict[str, Any]] | None = None,
        pending_tool_call_id: str | None = None,
        pending_tool_name: str | None = None,
    ) -> SessionMessage:
        """Append a message to a session."""
        return await super().add(
            SessionMessage(
                session_id=session_id,
                role=role,
                text=text,
                tool_calls=tool_calls or [],
                pending_messages=pending_messages,
                pending_tool_call_id=pending_tool_call_id,
                pending_tool_name=pending_tool_name,
            )
        )

    async def find_pending(self, session_id: str) -> SessionMessage | None:
        """Get the message holding the session's parked continuation, if any."""
        stmt = (
            select(SessionMessage)
            .where(
                SessionMessage.session_id == session_id,
                SessionMessage.pending_tool_call_id.is_not(None),
            )
            .order_by(SessionMessage.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def clear_pending(self, message_id: str) -> None:
        """Drop the continuation from one message."""
        await self.session.execute(
            update(SessionMessage)
            .where(SessionMessage.id == message_id)
            .values(pending_messages=None, pending_tool_call_id=None, pending_tool_name=None)
        )

    async def clear_all_pending(self, session_id: str) -> None:
        """Drop every continuation in a session."""
        await self.session.execute(
            update(SessionMessage)
            .where(
                SessionMessage.session_id == session_id,
                SessionMessage.pending_tool_call_id.is_not(None),
            )
            .values(pending_messages=None, pending_tool_call_id=None, pending_tool_name=None)
        )

    async def list_for_session(self, session_id: str, limit: int | None = None) -> list[SessionMessage]:
        """List a session's messages oldest-first.

        Args:
            session_id: Session to read.
            limit: When given, only the newest ``limit`` messages are returned
                (still oldest-first).

        Returns:
            List of SessionMessage instances.
        """
        stmt = select(SessionMessage).where(SessionMessage.session_id == session_id)
        if limit is None:
            stmt = stmt.order_by(SessionMessage.created_at)
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        stmt = stmt.order_by(SessionMessage.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(reversed(result.scalars().all()))
