"""Pydantic schemas for session endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SessionResponse(BaseModel):
    """A conversation session."""

    id: str
    source: str
    external_id: str | None
    title: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="forbid", from_attributes=True)


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]
    total: int

    model_config = ConfigDict(extra="forbid")


class SessionMessageResponse(BaseModel):
    """A stored message. ``pending`` marks the message holding a parked turn."""

    id: str
    role: str
    text: str
    tool_calls: list[dict[str, Any]] = Field(default_factory=list)
    pending: bool
    created_at: datetime

    model_config = ConfigDict(extra="forbid")


class SessionMessageListResponse(BaseModel):
    session_id: str
    messages: list[SessionMessageResponse]
    total: int

    model_config = ConfigDict(extra="forbid")
