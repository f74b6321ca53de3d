"""Pydantic schemas for workflow endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WebhookTrigger(BaseModel):
    """Event that triggers a webhook workflow."""

    plugin: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


class WorkflowCreate(BaseModel):
    """Request body for POST /workflows.

    At most one of cron_schedule and webhook_trigger may be given; with
    neither the workflow is manual-only.
    """

    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    description: str | None = None
    cron_schedule: str | None = None
    webhook_trigger: WebhookTrigger | None = None
    notify_target: str | None = None
    """Session key (``<channel>:<chat_id>``) that receives run notifications."""

    model_config = ConfigDict(extra="forbid")


class WorkflowUpdate(BaseModel):
    """Request body for PUT /workflows/{ref}. Omitted fields are unchanged."""

    code: str | None = None
    description: str | None = None
    cron_schedule: str | None = None
    webhook_trigger: WebhookTrigger | None = None
    status: str | None = None
    notify_target: str | None = None

    model_config = ConfigDict(extra="forbid")


class WorkflowResponse(BaseModel):
    id: str
    name: str
    description: str | None
    trigger_type: str
    cron_schedule: str | None
    webhook_trigger: dict[str, str] | None
    status: str
    notify_target: str | None
    next_run_at: datetime | None
    last_run_at: datetime | None
    code: str | None = None

    model_config = ConfigDict(extra="forbid")


class WorkflowListResponse(BaseModel):
    workflows: list[WorkflowResponse]
    total: int

    model_config = ConfigDict(extra="forbid")


class WorkflowTriggerResponse(BaseModel):
    """Response for POST /workflows/{ref}/trigger."""

    status: str
    workflow_id: str

    model_config = ConfigDict(extra="forbid")


class ExecutionResponse(BaseModel):
    """One workflow run."""

    id: str
    workflow_id: str
    status: str
    triggered_by: str
    trigger_payload: dict[str, Any] | None
    result: dict[str, Any] | None
    error: str | None
    started_at: datetime
    finished_at: datetime | None

    model_config = ConfigDict(extra="forbid", from_attributes=True)


class ExecutionListResponse(BaseModel):
    executions: list[ExecutionResponse]
    total: int

    model_config = ConfigDict(extra="forbid")
