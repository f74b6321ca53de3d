"""Conversation service: one user utterance in, one recorded outcome out."""

import logging

from cadence.agent.continuation import Continuation
from cadence.agent.engine import AgentEngine
from cadence.agent.outcomes import NeedsInput, Outcome
from cadence.agent.tools import TurnCapabilities
from cadence.core.errors import NothingPendingError
from cadence.db.models import SessionMessage
from cadence.permissions.broker import PermissionBroker
from cadence.sessions.manager import SessionManager

logger = logging.getLogger(__name__)


class ConversationService:
    """Runs turns within a session.

    If the session has a parked turn, the incoming text is the answer to it:
    the stored continuation is replayed with one tool result appended.
    Otherwise a fresh turn starts from the recent history.
    """

    def __init__(
        self,
        engine: AgentEngine,
        sessions: SessionManager,
        broker: PermissionBroker,
        history_window: int = 20,
    ):
        self._engine = engine
        self._sessions = sessions
        self._broker = broker
        self._history_window = history_window

    async def handle(
        self,
        session_id: str,
        text: str,
        capabilities: TurnCapabilities | None = None,
        history_window: int | None = None,
    ) -> Outcome:
        """Record text as a user message and answer it.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        await self._sessions.get(session_id)
        await self._sessions.append_user(session_id, text)

        pending = await self._sessions.find_pending(session_id)
        if pending is not None:
            outcome = await self._resume(pending, text, capabilities)
        else:
            history = await self._sessions.build_history(
                session_id, history_window or self._history_window, exclude_latest=True
            )
            outcome = await self._engine.run_turn(text, history=history, capabilities=capabilities)

        await self._record(session_id, outcome, text)
        return outcome

    async def resume(
        self,
        session_id: str,
        answer: str,
        capabilities: TurnCapabilities | None = None,
    ) -> Outcome:
        """Answer the session's pending question.

        Raises:
            SessionNotFoundError: If the session does not exist.
            NothingPendingError: If no turn is parked in the session.
        """
        await self._sessions.get(session_id)
        if await self._sessions.find_pending(session_id) is None:
            raise NothingPendingError(session_id)
        return await self.handle(session_id, answer, capabilities)

    async def _resume(
        self,
        pending: SessionMessage,
        answer: str,
        capabilities: TurnCapabilities | None,
    ) -> Outcome:
        continuation = Continuation(
            messages=pending.pending_messages or [],
            tool_call_id=pending.pending_tool_call_id or "",
            tool_name=pending.pending_tool_name or "",
        )
        await self._sessions.clear_pending(pending.id)
        logger.info(f"Resuming parked turn from message {pending.id}")
        return await self._engine.run_turn(answer, capabilities=capabilities, continuation=continuation)

    async def _record(self, session_id: str, outcome: Outcome, user_text: str) -> None:
        continuation = None
        if isinstance(outcome, NeedsInput):
            continuation = Continuation(
                messages=outcome.continuation,
                tool_call_id=outcome.tool_call_id,
                tool_name=outcome.tool_name,
            )

        message = await self._sessions.record_assistant(
            session_id,
            outcome.reply_text,
            tool_calls=outcome.tool_call_dicts(),
            continuation=continuation,
        )
        if isinstance(outcome, NeedsInput) and outcome.permission_ids:
            await self._broker.attach_message(outcome.permission_ids, message.id)

        await self._sessions.touch(session_id, first_message=user_text)
