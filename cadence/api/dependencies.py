"""FastAPI dependency injection providers."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from cadence.permissions.broker import PermissionBroker
from cadence.runtime.orchestrator import CadenceOrchestrator
from cadence.sessions.conversation import ConversationService
from cadence.sessions.manager import SessionManager
from cadence.workflows.service import WorkflowService
from cadence.workflows.webhooks import WebhookDispatcher


def get_orchestrator(request: Request) -> CadenceOrchestrator:
    """
    Get orchestrator from app state.

    Raises:
        HTTPException: 503 if the backend is not wired yet
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Backend not ready")
    return orchestrator


Orchestrator = Annotated[CadenceOrchestrator, Depends(get_orchestrator)]


def get_conversation(orchestrator: Orchestrator) -> ConversationService:
    return orchestrator.conversation


def get_sessions(orchestrator: Orchestrator) -> SessionManager:
    return orchestrator.sessions


def get_broker(orchestrator: Orchestrator) -> PermissionBroker:
    return orchestrator.broker


def get_workflow_service(orchestrator: Orchestrator) -> WorkflowService:
    return orchestrator.workflows


def get_webhook_dispatcher(orchestrator: Orchestrator) -> WebhookDispatcher:
    return orchestrator.webhooks
