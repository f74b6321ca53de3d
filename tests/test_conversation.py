"""Tests for ConversationService."""

import tempfile
from pathlib import Path

import pytest
from langchain_core.messages import ToolMessage

from cadence.agent.engine import AgentEngine
from cadence.agent.outcomes import Done, NeedsInput
from cadence.agent.tools import ASK_HUMAN
from cadence.core.errors import NothingPendingError, SessionNotFoundError
from cadence.db.database import DatabaseManager
from cadence.db.models import MessageRole
from cadence.permissions.broker import PermissionBroker
from cadence.sessions.conversation import ConversationService
from cadence.sessions.manager import SessionManager
from cadence.workflows.scheduler import WorkflowScheduler
from cadence.workflows.service import WorkflowService
from tests.fakes import FakeRunner, ScriptedChatModel, ai_text, ai_tool_call


@pytest.fixture
async def db_manager():
    """Provide a temporary database manager."""
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = DatabaseManager(Path(tmpdir) / "test.db")
        await manager.init_db()
        yield manager
        await manager.close()


@pytest.fixture
def model():
    return ScriptedChatModel()


@pytest.fixture
def sessions(db_manager):
    return SessionManager(db_manager)


@pytest.fixture
def broker(db_manager):
    return PermissionBroker(db_manager)


@pytest.fixture
def conversation(db_manager, model, sessions, broker):
    runner = FakeRunner()
    engine = AgentEngine(
        model=model,
        runner=runner,
        workflows=WorkflowService(db_manager, runner, WorkflowScheduler()),
        broker=broker,
        db=db_manager,
    )
    return ConversationService(engine, sessions, broker, history_window=20)


async def test_fresh_turn_records_both_messages(conversation, model, sessions):
    """Test a turn stores the user message and the reply, and titles the session."""
    model.responses = [ai_text("Hi! What can I automate?")]
    session_id = await sessions.create_web_session()

    outcome = await conversation.handle(session_id, "hello there")

    assert isinstance(outcome, Done)
    messages = await sessions.list_messages(session_id)
    assert [(m.role, m.text) for m in messages] == [
        (MessageRole.USER, "hello there"),
        (MessageRole.ASSISTANT, "Hi! What can I automate?"),
    ]
    assert (await sessions.get(session_id)).title == "hello there"


async def test_history_passed_to_next_turn(conversation, model, sessions):
    """Test earlier messages become history, without duplicating the prompt."""
    model.responses = [ai_text("first reply"), ai_text("second reply")]
    session_id = await sessions.create_web_session()

    await conversation.handle(session_id, "first")
    await conversation.handle(session_id, "second")

    sent = [m.content for m in model.calls[1][1:]]
    assert sent == ["first", "first reply", "second"]


async def test_pause_then_answer_resumes(conversation, model, sessions):
    """Test the next message after a question resumes the parked turn."""
    model.responses = [
        ai_tool_call(ASK_HUMAN, {"question": "Which channel?"}, call_id="call_ask"),
        ai_text("Posted to #ops."),
    ]
    session_id = await sessions.create_web_session()

    paused = await conversation.handle(session_id, "post the deploy note")

    assert isinstance(paused, NeedsInput)
    pending = await sessions.find_pending(session_id)
    assert pending is not None
    assert pending.text == "Which channel?"
    assert pending.pending_tool_call_id == "call_ask"
    assert pending.pending_messages == paused.continuation

    outcome = await conversation.handle(session_id, "#ops")

    assert isinstance(outcome, Done)
    assert outcome.text == "Posted to #ops."
    resumed = model.calls[1]
    assert isinstance(resumed[-1], ToolMessage)
    assert resumed[-1].content == "#ops"
    assert await sessions.find_pending(session_id) is None


async def test_resume_without_pending(conversation, sessions):
    session_id = await sessions.create_web_session()

    with pytest.raises(NothingPendingError):
        await conversation.resume(session_id, "yes")


async def test_resume_unknown_session(conversation):
    with pytest.raises(SessionNotFoundError):
        await conversation.resume("missing", "yes")


async def test_handle_unknown_session(conversation):
    with pytest.raises(SessionNotFoundError):
        await conversation.handle("missing", "hi")


async def test_resume_answers_pending(conversation, model, sessions):
    model.responses = [
        ai_tool_call(ASK_HUMAN, {"question": "Which channel?"}),
        ai_text("Done."),
    ]
    session_id = await sessions.create_web_session()
    await conversation.handle(session_id, "post it")

    outcome = await conversation.resume(session_id, "#eng")

    assert outcome.reply_text == "Done."


async def test_permission_ids_linked_to_pending_message(conversation, model, sessions, broker):
    """Test permission requests point at the message that waits for them."""
    model.responses = [
        ai_tool_call(
            "request_permission",
            {"endpoint": "slack.postMessage", "args": {"channel": "#ops"}, "description": "Post"},
        ),
        ai_tool_call(ASK_HUMAN, {"question": "Please approve, then tell me."}),
    ]
    session_id = await sessions.create_web_session()

    outcome = await conversation.handle(session_id, "post it")

    pending = await sessions.find_pending(session_id)
    request = await broker.get(outcome.permission_ids[0])
    assert request.message_id == pending.id
