"""Tests for CadenceOrchestrator wiring and permission-driven resumes."""

import json
import tempfile
from pathlib import Path

import pytest
from langchain_core.messages import ToolMessage

from cadence.agent.outcomes import NeedsInput
from cadence.agent.tools import ASK_HUMAN, TurnCapabilities
from cadence.channels.base import DisabledTransport
from cadence.core.config import Config
from cadence.db.repositories import ChannelMessageRepository, PermissionRepository
from cadence.runtime.orchestrator import SYSTEM_SENDER, CadenceOrchestrator
from tests.fakes import WORKFLOW_CODE, FakeRunner, FakeTransport, ScriptedChatModel, ai_text, ai_tool_call

PERMISSION_ARGS = {"channel": "#general", "text": "hi"}


@pytest.fixture
async def orchestrator():
    """Provide an orchestrator with fake model, runner and transport."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(database={"path": Path(tmpdir) / "test.db"})
        orch = CadenceOrchestrator(
            config,
            model=ScriptedChatModel(),
            runner=FakeRunner(),
            transports={"telegram": FakeTransport()},
        )
        await orch.db.init_db()
        yield orch
        await orch.tasks.shutdown()
        await orch.db.close()


def script_permission_pause(model: ScriptedChatModel) -> None:
    model.responses = [
        ai_tool_call(
            "request_permission",
            {"endpoint": "slack.postMessage", "args": PERMISSION_ARGS, "description": "Post hello"},
            call_id="call_perm",
        ),
        ai_tool_call(ASK_HUMAN, {"question": "Approve the post?"}, call_id="call_ask"),
    ]


async def pause_for_permission(orchestrator, session_id, capabilities=None) -> NeedsInput:
    script_permission_pause(orchestrator.engine._model)
    outcome = await orchestrator.conversation.handle(session_id, "post hello to slack", capabilities)
    assert isinstance(outcome, NeedsInput)
    assert len(outcome.permission_ids) == 1
    return outcome


class TestWiring:
    def test_poller_per_enabled_transport(self, orchestrator):
        assert [p.channel for p in orchestrator.pollers] == ["telegram"]

    def test_disabled_transport_has_no_poller(self):
        config = Config()
        orch = CadenceOrchestrator(
            config,
            model=ScriptedChatModel(),
            runner=FakeRunner(),
            transports={"telegram": DisabledTransport("telegram")},
        )
        assert orch.pollers == []

    async def test_trigger_workflow_runs_in_background(self, orchestrator):
        result = await orchestrator.workflows.create(name="sendDigest", code=WORKFLOW_CODE)
        assert result.success

        orchestrator.trigger_workflow(result.workflow.id)
        await orchestrator.tasks.join()

        assert orchestrator.runner.runs == [(WORKFLOW_CODE, None)]
        executions = await orchestrator.workflows.list_executions(result.workflow.id)
        assert [e.status for e in executions] == ["success"]


class TestPermissionResolved:
    async def test_web_session_resumes_in_background(self, orchestrator):
        """Test resolving a permission answers the parked ask_human of a web session."""
        session_id = await orchestrator.sessions.create_web_session()
        outcome = await pause_for_permission(orchestrator, session_id)

        request = await orchestrator.broker.resolve(outcome.permission_ids[0], "approve")
        assert request.message_id is not None

        model = orchestrator.engine._model
        model.responses = [ai_text("Posted.")]
        await orchestrator.on_permission_resolved(request)
        await orchestrator.tasks.join()

        tool_results = [m for m in model.calls[-1] if isinstance(m, ToolMessage)]
        assert tool_results[-1].tool_call_id == "call_ask"
        assert "was granted" in tool_results[-1].content
        messages = await orchestrator.sessions.list_messages(session_id)
        assert messages[-1].text == "Posted."
        assert await orchestrator.sessions.find_pending(session_id) is None

    async def test_channel_session_gets_synthetic_message(self, orchestrator):
        """Test a channel session is resumed through its inbound queue."""
        session_id = await orchestrator.sessions.get_or_create("telegram", "telegram:42")
        capabilities = TurnCapabilities(channel="telegram", chat_id="42", session_key="telegram:42")
        outcome = await pause_for_permission(orchestrator, session_id, capabilities)

        request = await orchestrator.broker.resolve(outcome.permission_ids[0], "decline")
        await orchestrator.on_permission_resolved(request)

        async with orchestrator.db.session() as session:
            queued = await ChannelMessageRepository(session).list_unprocessed("telegram")
        assert len(queued) == 1
        assert queued[0].chat_id == "42"
        assert queued[0].sender_id == SYSTEM_SENDER
        assert queued[0].content == (
            f"Permission request {request.id} for slack.postMessage was declined."
        )
        assert orchestrator.tasks.active_count == 0

    async def test_no_longer_pending_is_ignored(self, orchestrator):
        session_id = await orchestrator.sessions.create_web_session()
        outcome = await pause_for_permission(orchestrator, session_id)

        # The user answered before the approver acted
        orchestrator.engine._model.responses = [ai_text("Okay, skipping it.")]
        await orchestrator.conversation.handle(session_id, "never mind")

        request = await orchestrator.broker.resolve(outcome.permission_ids[0], "approve")
        await orchestrator.on_permission_resolved(request)

        assert orchestrator.tasks.active_count == 0
        messages = await orchestrator.sessions.list_messages(session_id)
        assert messages[-1].text == "Okay, skipping it."

    async def test_request_without_session_or_message_is_ignored(self, orchestrator):
        request = await orchestrator.broker.request("slack.postMessage", PERMISSION_ARGS, "Post hello")
        request = await orchestrator.broker.resolve(request.id, "approve")

        await orchestrator.on_permission_resolved(request)

        assert orchestrator.tasks.active_count == 0
        async with orchestrator.db.session() as session:
            assert await ChannelMessageRepository(session).list_unprocessed("telegram") == []

    async def test_grant_without_paused_turn_reaches_requesting_chat(self, orchestrator):
        """Test a turn that only shared the approval link still hears about the grant."""
        session_id = await orchestrator.sessions.get_or_create("telegram", "telegram:42")
        capabilities = TurnCapabilities(channel="telegram", chat_id="42", session_key="telegram:42")
        orchestrator.engine._model.responses = [
            ai_tool_call(
                "request_permission",
                {"endpoint": "slack.postMessage", "args": PERMISSION_ARGS, "description": "Post hello"},
            ),
            ai_text("Please approve the post at the link above."),
        ]
        await orchestrator.conversation.handle(session_id, "post hello to slack", capabilities)

        async with orchestrator.db.session() as session:
            [pending_request] = await PermissionRepository(session).list_all()
        assert pending_request.message_id is None
        assert pending_request.session_key == "telegram:42"

        request = await orchestrator.broker.resolve(pending_request.id, "approve")
        await orchestrator.on_permission_resolved(request)

        async with orchestrator.db.session() as session:
            queued = await ChannelMessageRepository(session).list_unprocessed("telegram")
        assert len(queued) == 1
        assert queued[0].chat_id == "42"
        assert queued[0].sender_id == SYSTEM_SENDER
        assert "granted for: Post hello" in queued[0].content
        assert json.dumps(PERMISSION_ARGS) in queued[0].content

    async def test_decline_without_paused_turn_reaches_requesting_chat(self, orchestrator):
        request = await orchestrator.broker.request(
            "slack.postMessage", PERMISSION_ARGS, "Post hello", session_key="telegram:42"
        )
        request = await orchestrator.broker.resolve(request.id, "decline")

        await orchestrator.on_permission_resolved(request)

        async with orchestrator.db.session() as session:
            queued = await ChannelMessageRepository(session).list_unprocessed("telegram")
        assert [m.content for m in queued] == [
            "Permission has been declined for: Post hello. Please inform the user and stop."
        ]
