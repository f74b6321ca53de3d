"""Pydantic schemas for permission endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PermissionResponse(BaseModel):
    """A permission request as shown to the approver."""

    id: str
    endpoint: str
    args: dict[str, Any]
    description: str
    status: str
    session_key: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="forbid", from_attributes=True)


class ResolveRequest(BaseModel):
    """Request body for POST /permissions/{id}/resolve."""

    action: str
    """Either "approve" or "decline"."""

    model_config = ConfigDict(extra="forbid")


class AuthorizeRequest(BaseModel):
    """Request body for POST /permissions/authorize.

    Sent by the code runner before performing a protected call.
    """

    endpoint: str
    args: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class AuthorizeResponse(BaseModel):
    """Whether an unused grant existed; it is consumed when it did."""

    authorized: bool
    permission_id: str | None = None

    model_config = ConfigDict(extra="forbid")
