"""Session/thread manager.

Maps external conversation identities to durable message histories. Each
session holds at most one pending continuation: record_assistant clears any
existing one in the same transaction that writes the new message.
"""

import logging
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from cadence.agent.continuation import Continuation
from cadence.core.errors import SessionNotFoundError
from cadence.db.database import DatabaseManager
from cadence.db.models import MessageRole, Session, SessionMessage, SessionSource
from cadence.db.repositories import SessionMessageRepository, SessionRepository

logger = logging.getLogger(__name__)

TITLE_LENGTH = 60


class SessionManager:
    """Database-backed sessions and messages."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    async def get_or_create(self, source: str, external_id: str) -> str:
        """Return the id of the session for external_id, creating it on first sight."""
        async with self._db.session() as session:
            entity = await SessionRepository(session).get_or_create(source, external_id)
        return entity.id

    async def create_web_session(self) -> str:
        async with self._db.session() as session:
            entity = await SessionRepository(session).add(Session(source=SessionSource.WEB))
        logger.info(f"Created web session {entity.id}")
        return entity.id

    async def get(self, session_id: str) -> Session:
        """Get a session.

        Raises:
            SessionNotFoundError: If it does not exist.
        """
        async with self._db.session() as session:
            entity = await SessionRepository(session).get_by_id(session_id)
        if entity is None:
            raise SessionNotFoundError(session_id)
        return entity

    async def get_message(self, message_id: str) -> SessionMessage | None:
        async with self._db.session() as session:
            return await SessionMessageRepository(session).get_by_id(message_id)

    async def append_user(self, session_id: str, text: str) -> SessionMessage:
        async with self._db.session() as session:
            return await SessionMessageRepository(session).add(session_id, MessageRole.USER, text)

    async def find_pending(self, session_id: str) -> SessionMessage | None:
        async with self._db.session() as session:
            return await SessionMessageRepository(session).find_pending(session_id)

    async def clear_pending(self, message_id: str) -> None:
        async with self._db.session() as session:
            await SessionMessageRepository(session).clear_pending(message_id)

    async def record_assistant(
        self,
        session_id: str,
        text: str,
        tool_calls: list[dict[str, Any]] | None = None,
        continuation: Continuation | None = None,
    ) -> SessionMessage:
        """Store an assistant message, optionally carrying a continuation."""
        async with self._db.session() as session:
            repo = SessionMessageRepository(session)
            await repo.clear_all_pending(session_id)
            return await repo.add(
                session_id,
                MessageRole.ASSISTANT,
                text,
                tool_calls=tool_calls,
                pending_messages=continuation.messages if continuation else None,
                pending_tool_call_id=continuation.tool_call_id if continuation else None,
                pending_tool_name=continuation.tool_name if continuation else None,
            )

    async def build_history(
        self,
        session_id: str,
        window: int,
        exclude_latest: bool = True,
    ) -> list[BaseMessage]:
        """Model-facing history of a session, oldest first.

        Args:
            session_id: Session to read.
            window: Number of stored messages to consider.
            exclude_latest: Drop the newest message (the prompt being answered).

        Returns:
            HumanMessage/AIMessage list; empty messages are skipped.
        """
        async with self._db.session() as session:
            rows = await SessionMessageRepository(session).list_for_session(session_id, limit=window)

        if exclude_latest and rows:
            rows = rows[:-1]

        history: list[BaseMessage] = []
        for row in rows:
            if not row.text:
                continue
            if row.role == MessageRole.USER:
                history.append(HumanMessage(content=row.text))
            else:
                history.append(AIMessage(content=row.text))
        return history

    async def touch(self, session_id: str, first_message: str | None = None) -> None:
        """Bump updated_at and title an untitled session after its first message."""
        title = first_message.strip()[:TITLE_LENGTH] if first_message else None
        async with self._db.session() as session:
            await SessionRepository(session).touch(session_id, title=title)

    async def list_sessions(self, source: str | None = None) -> list[Session]:
        async with self._db.session() as session:
            return await SessionRepository(session).list_by_source(source)

    async def list_messages(self, session_id: str) -> list[SessionMessage]:
        """List a session's messages oldest-first.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        await self.get(session_id)
        async with self._db.session() as session:
            return await SessionMessageRepository(session).list_for_session(session_id)
