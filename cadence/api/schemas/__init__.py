"""Pydantic schemas for API request/response models."""

from cadence.api.schemas.agent import OutcomeResponse, ResumeRequest, ToolCallResponse, TriggerRequest
from cadence.api.schemas.health import HealthResponse
from cadence.api.schemas.permissions import (
    AuthorizeRequest,
    AuthorizeResponse,
    PermissionResponse,
    ResolveRequest,
)
from cadence.api.schemas.sessions import (
    SessionListResponse,
    SessionMessageListResponse,
    SessionMessageResponse,
    SessionResponse,
)
from cadence.api.schemas.webhooks import WebhookAcceptedResponse
from cadence.api.schemas.workflows import (
    ExecutionListResponse,
    ExecutionResponse,
    WebhookTrigger,
    WorkflowCreate,
    WorkflowListResponse,
    WorkflowResponse,
    WorkflowTriggerResponse,
    WorkflowUpdate,
)

__all__ = [
    "AuthorizeRequest",
    "AuthorizeResponse",
    "ExecutionListResponse",
    "ExecutionResponse",
    "HealthResponse",
    "OutcomeResponse",
    "PermissionResponse",
    "ResolveRequest",
    "ResumeRequest",
    "SessionListResponse",
    "SessionMessageListResponse",
    "SessionMessageResponse",
    "SessionResponse",
    "ToolCallResponse",
    "TriggerRequest",
    "WebhookAcceptedResponse",
    "WebhookTrigger",
    "WorkflowCreate",
    "WorkflowListResponse",
    "WorkflowResponse",
    "WorkflowTriggerResponse",
    "WorkflowUpdate",
]
