"""Pydantic schemas for the health endpoint."""

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    status: str
    version: str
    scheduled_workflows: int
    background_tasks: int
    channels: list[str]

    model_config = ConfigDict(extra="forbid")
