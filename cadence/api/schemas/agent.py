"""Pydantic schemas for agent turn endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TriggerRequest(BaseModel):
    """Request body for POST /agent/trigger."""

    prompt: str = Field(..., min_length=1)
    """The user's message."""

    session_id: str | None = None
    """Existing web session to continue. A new session is created when omitted."""

    model_config = ConfigDict(extra="forbid")


class ResumeRequest(BaseModel):
    """Request body for POST /agent/resume."""

    session_id: str
    answer: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


class ToolCallResponse(BaseModel):
    id: str
    name: str
    completed: bool

    model_config = ConfigDict(extra="forbid")


class OutcomeResponse(BaseModel):
    """Result of one agent turn.

    ``type`` selects which of the optional fields are set:

    - message: text
    - script: code, output, error, description, message
    - workflow: name, code, description, cron_schedule, webhook_trigger, message
    - needs_input: question, tool_call_id, tool_name, permission_ids
    """

    session_id: str
    type: str
    tool_calls: list[ToolCallResponse] = Field(default_factory=list)
    text: str | None = None
    message: str | None = None
    code: str | None = None
    output: str | None = None
    error: str | None = None
    description: str | None = None
    name: str | None = None
    cron_schedule: str | None = None
    webhook_trigger: dict[str, Any] | None = None
    question: str | None = None
    tool_call_id: str | None = None
    tool_name: str | None = None
    permission_ids: list[str] | None = None

    model_config = ConfigDict(extra="forbid")
