"""Pydantic schemas for webhook endpoints."""

from pydantic import BaseModel, ConfigDict


class WebhookAcceptedResponse(BaseModel):
    """Response for POST /webhooks/{plugin}.

    Workflows run in the background; ``workflow_ids`` lists those started.
    """

    status: str
    plugin: str
    action: str
    workflow_ids: list[str]

    model_config = ConfigDict(extra="forbid")
