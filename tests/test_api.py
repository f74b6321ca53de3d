"""Tests for the FastAPI application."""

import hashlib
import hmac
import json
import tempfile
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from cadence.agent.tools import ASK_HUMAN
from cadence.api.app import create_app
from cadence.core.config import Config
from cadence.runtime.orchestrator import CadenceOrchestrator
from cadence.sandbox.runner import RunResult
from cadence.workflows.webhooks import SIGNATURE_HEADER
from tests.fakes import WORKFLOW_CODE, FakeRunner, FakeTransport, ScriptedChatModel, ai_text, ai_tool_call

WEBHOOK_SECRET = "s3cret"

WEBHOOK_CODE = """
export async function onIssueCreated(event) {
  await slack.postMessage({ channel: "#issues", text: event.issue.title });
}
"""


@pytest.fixture
async def test_app():
    """Provide an app whose lifespan has started a fully faked orchestrator."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(
            database={"path": Path(tmpdir) / "test.db"},
            webhooks={"secrets": {"tracker": WEBHOOK_SECRET}},
        )
        orchestrator = CadenceOrchestrator(
            config,
            model=ScriptedChatModel(),
            runner=FakeRunner([RunResult(success=True, output="sent")]),
            transports={"telegram": FakeTransport()},
        )
        app = create_app(orchestrator)

        async with app.router.lifespan_context(app):
            yield app


@pytest.fixture
async def client(test_app):
    """Provide an async HTTP client bound to the app."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def orchestrator(test_app) -> CadenceOrchestrator:
    return test_app.state.orchestrator


@pytest.fixture
def model(orchestrator) -> ScriptedChatModel:
    return orchestrator.engine._model


async def create_workflow(client, **overrides):
    body = {"name": "sendDigest", "code": WORKFLOW_CODE, **overrides}
    response = await client.post("/api/v1/workflows", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def signed_headers(body: bytes) -> dict[str, str]:
    digest = hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()
    return {SIGNATURE_HEADER: f"sha256={digest}", "content-type": "application/json"}


class TestAppCreation:
    """Test application factory."""

    def test_create_app(self, test_app):
        assert test_app.title == "Cadence API"
        assert test_app.version == "0.1.0"

    def test_mounts_api_at_v1(self, test_app):
        routes = [route.path for route in test_app.routes]
        assert "/api/v1" in routes

    def test_lifespan_started_transports(self, orchestrator):
        assert orchestrator.transports["telegram"].started

    async def test_health(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == "0.1.0"
        assert data["channels"] == ["telegram"]
        assert data["scheduled_workflows"] == 0

    async def test_not_ready_without_orchestrator(self):
        app = create_app(None)  # type: ignore[arg-type]
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/api/v1/health")

        assert response.status_code == 503


class TestAgentRoutes:
    async def test_trigger_creates_session(self, client, model):
        model.responses = [ai_text("Hello! What should I automate?")]

        response = await client.post("/api/v1/agent/trigger", json={"prompt": "hi"})

        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "message"
        assert data["text"] == "Hello! What should I automate?"
        assert data["session_id"]

    async def test_trigger_unknown_session(self, client):
        response = await client.post("/api/v1/agent/trigger", json={"prompt": "hi", "session_id": "nope"})
        assert response.status_code == 404

    async def test_trigger_rejects_empty_prompt(self, client):
        response = await client.post("/api/v1/agent/trigger", json={"prompt": ""})
        assert response.status_code == 422

    async def test_needs_input_then_resume(self, client, model):
        """Test a parked question is answered through /resume."""
        model.responses = [
            ai_tool_call(ASK_HUMAN, {"question": "Which channel?"}, call_id="call_ask"),
            ai_text("Posting to #general."),
        ]

        first = await client.post("/api/v1/agent/trigger", json={"prompt": "post a digest"})
        data = first.json()
        assert data["type"] == "needs_input"
        assert data["question"] == "Which channel?"
        assert data["tool_call_id"] == "call_ask"
        assert "continuation" not in data

        second = await client.post(
            "/api/v1/agent/resume",
            json={"session_id": data["session_id"], "answer": "#general"},
        )
        assert second.status_code == 200
        assert second.json()["text"] == "Posting to #general."

    async def test_resume_without_pending(self, client, model):
        model.responses = [ai_text("Hi")]
        first = await client.post("/api/v1/agent/trigger", json={"prompt": "hi"})

        response = await client.post(
            "/api/v1/agent/resume",
            json={"session_id": first.json()["session_id"], "answer": "what?"},
        )
        assert response.status_code == 409

    async def test_resume_unknown_session(self, client):
        response = await client.post("/api/v1/agent/resume", json={"session_id": "nope", "answer": "x"})
        assert response.status_code == 404


class TestSessionRoutes:
    async def test_list_sessions_and_messages(self, client, model):
        model.responses = [ai_text("Hello")]
        trigger = await client.post("/api/v1/agent/trigger", json={"prompt": "hi"})
        session_id = trigger.json()["session_id"]

        sessions = await client.get("/api/v1/sessions", params={"source": "web"})
        assert sessions.status_code == 200
        assert [s["id"] for s in sessions.json()["sessions"]] == [session_id]

        messages = await client.get(f"/api/v1/sessions/{session_id}/messages")
        assert messages.status_code == 200
        assert [(m["role"], m["text"]) for m in messages.json()["messages"]] == [
            ("user", "hi"),
            ("assistant", "Hello"),
        ]

    async def test_messages_unknown_session(self, client):
        response = await client.get("/api/v1/sessions/nope/messages")
        assert response.status_code == 404


class TestWorkflowRoutes:
    async def test_create_and_get(self, client):
        created = await create_workflow(client, cron_schedule="0 9 * * *")

        assert created["trigger_type"] == "cron"
        assert created["next_run_at"] is not None
        assert created["code"] == WORKFLOW_CODE

        by_name = await client.get("/api/v1/workflows/sendDigest")
        assert by_name.status_code == 200
        assert by_name.json()["id"] == created["id"]

        health = await client.get("/api/v1/health")
        assert health.json()["scheduled_workflows"] == 1

    async def test_create_invalid_cron(self, client):
        response = await client.post(
            "/api/v1/workflows",
            json={"name": "sendDigest", "code": WORKFLOW_CODE, "cron_schedule": "every day"},
        )
        assert response.status_code == 400

    async def test_create_typecheck_failure(self, client, orchestrator):
        orchestrator.runner.typecheck_errors = ["TS2304: Cannot find name 'foo'"]

        response = await client.post("/api/v1/workflows", json={"name": "sendDigest", "code": WORKFLOW_CODE})

        assert response.status_code == 400
        assert response.json()["detail"]["errors"] == ["TS2304: Cannot find name 'foo'"]

    async def test_duplicate_name(self, client):
        await create_workflow(client)
        response = await client.post("/api/v1/workflows", json={"name": "sendDigest", "code": WORKFLOW_CODE})
        assert response.status_code == 400

    async def test_list_filters(self, client):
        await create_workflow(client, cron_schedule="0 9 * * *")
        await create_workflow(
            client,
            name="onIssueCreated",
            code=WEBHOOK_CODE,
            webhook_trigger={"plugin": "tracker", "action": "issueCreated"},
        )

        webhooks = await client.get("/api/v1/workflows", params={"trigger_type": "webhook"})
        assert [w["name"] for w in webhooks.json()["workflows"]] == ["onIssueCreated"]

        everything = await client.get("/api/v1/workflows", params={"trigger_type": "all"})
        assert everything.json()["total"] == 2

    async def test_update_and_archive(self, client):
        created = await create_workflow(client, cron_schedule="0 9 * * *")

        paused = await client.put(f"/api/v1/workflows/{created['id']}", json={"status": "paused"})
        assert paused.status_code == 200
        assert paused.json()["status"] == "paused"
        assert paused.json()["next_run_at"] is None

        archived = await client.delete(f"/api/v1/workflows/{created['id']}")
        assert archived.status_code == 200
        assert archived.json()["status"] == "archived"

        listed = await client.get("/api/v1/workflows")
        assert listed.json()["total"] == 0
        with_archived = await client.get("/api/v1/workflows", params={"include_archived": True})
        assert with_archived.json()["total"] == 1

    async def test_update_missing(self, client):
        response = await client.put("/api/v1/workflows/nope", json={"description": "x"})
        assert response.status_code == 404

    async def test_update_rejects_unknown_fields(self, client):
        created = await create_workflow(client)
        response = await client.put(f"/api/v1/workflows/{created['id']}", json={"name": "renamed"})
        assert response.status_code == 422

    async def test_trigger_and_executions(self, client, orchestrator):
        created = await create_workflow(client)

        response = await client.post(f"/api/v1/workflows/{created['id']}/trigger")
        assert response.status_code == 202
        assert response.json() == {"status": "started", "workflow_id": created["id"]}
        await orchestrator.tasks.join()

        executions = await client.get("/api/v1/workflows/executions", params={"workflow": "sendDigest"})
        data = executions.json()
        assert data["total"] == 1
        assert data["executions"][0]["status"] == "success"
        assert data["executions"][0]["triggered_by"] == "manual"

    async def test_trigger_missing(self, client):
        response = await client.post("/api/v1/workflows/nope/trigger")
        assert response.status_code == 404

    async def test_trigger_archived(self, client):
        created = await create_workflow(client)
        await client.delete(f"/api/v1/workflows/{created['id']}")

        response = await client.post(f"/api/v1/workflows/{created['id']}/trigger")
        assert response.status_code == 409


class TestWebhookRoutes:
    async def test_signed_event_starts_workflow(self, client, orchestrator):
        created = await create_workflow(
            client,
            name="onIssueCreated",
            code=WEBHOOK_CODE,
            webhook_trigger={"plugin": "tracker", "action": "issueCreated"},
        )
        body = json.dumps({"action": "issueCreated", "issue": {"title": "Broken login"}}).encode()

        response = await client.post("/api/v1/webhooks/tracker", content=body, headers=signed_headers(body))

        assert response.status_code == 202
        assert response.json()["workflow_ids"] == [created["id"]]
        await orchestrator.tasks.join()
        assert orchestrator.runner.runs[-1][1] == {"action": "issueCreated", "issue": {"title": "Broken login"}}

    async def test_bad_signature(self, client):
        body = b'{"action": "issueCreated"}'
        headers = {SIGNATURE_HEADER: "sha256=deadbeef", "content-type": "application/json"}

        response = await client.post("/api/v1/webhooks/tracker", content=body, headers=headers)

        assert response.status_code == 401

    async def test_unsigned_plugin_accepted(self, client):
        response = await client.post("/api/v1/webhooks/calendar", json={"type": "eventStarted"})

        assert response.status_code == 202
        assert response.json()["action"] == "eventStarted"
        assert response.json()["workflow_ids"] == []

    async def test_missing_action(self, client):
        response = await client.post("/api/v1/webhooks/calendar", json={"nothing": "here"})
        assert response.status_code == 400

    async def test_invalid_json(self, client):
        response = await client.post(
            "/api/v1/webhooks/calendar",
            content=b"not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400


class TestPermissionRoutes:
    async def test_resolve_and_authorize(self, client, orchestrator):
        args = {"channel": "#general", "text": "hi"}
        request = await orchestrator.broker.request("slack.postMessage", args, "Post hello")

        fetched = await client.get(f"/api/v1/permissions/{request.id}")
        assert fetched.status_code == 200
        assert fetched.json()["status"] == "pending"

        denied = await client.post(
            "/api/v1/permissions/authorize",
            json={"endpoint": "slack.postMessage", "args": args},
        )
        assert denied.json() == {"authorized": False, "permission_id": None}

        resolved = await client.post(f"/api/v1/permissions/{request.id}/resolve", json={"action": "approve"})
        assert resolved.status_code == 200
        assert resolved.json()["status"] == "granted"

        # Key order does not matter, but each grant is single use
        reordered = {"text": "hi", "channel": "#general"}
        granted = await client.post(
            "/api/v1/permissions/authorize",
            json={"endpoint": "slack.postMessage", "args": reordered},
        )
        assert granted.json() == {"authorized": True, "permission_id": request.id}
        again = await client.post(
            "/api/v1/permissions/authorize",
            json={"endpoint": "slack.postMessage", "args": args},
        )
        assert again.json()["authorized"] is False

    async def test_resolve_twice(self, client, orchestrator):
        request = await orchestrator.broker.request("slack.postMessage", {}, "Post")
        await client.post(f"/api/v1/permissions/{request.id}/resolve", json={"action": "decline"})

        response = await client.post(f"/api/v1/permissions/{request.id}/resolve", json={"action": "approve"})
        assert response.status_code == 409

    async def test_resolve_bad_action(self, client, orchestrator):
        request = await orchestrator.broker.request("slack.postMessage", {}, "Post")
        response = await client.post(f"/api/v1/permissions/{request.id}/resolve", json={"action": "maybe"})
        assert response.status_code == 400

    async def test_unknown_permission(self, client):
        assert (await client.get("/api/v1/permissions/nope")).status_code == 404
        response = await client.post("/api/v1/permissions/nope/resolve", json={"action": "approve"})
        assert response.status_code == 404
