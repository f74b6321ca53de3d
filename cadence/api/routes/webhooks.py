"""Webhook receiver routes."""

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from cadence.api.dependencies import Orchestrator, get_webhook_dispatcher
from cadence.api.schemas.webhooks import WebhookAcceptedResponse
from cadence.core.errors import WebhookVerificationError
from cadence.workflows.webhooks import SIGNATURE_HEADER, WebhookDispatcher, extract_action, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/{plugin}", response_model=WebhookAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def receive_webhook(
    plugin: str,
    request: Request,
    orchestrator: Orchestrator,
    dispatcher: Annotated[WebhookDispatcher, Depends(get_webhook_dispatcher)],
) -> WebhookAcceptedResponse:
    """Accept an event from a plugin and start its webhook workflows.

    The body is verified against the plugin's configured secret (if any)
    before it is parsed. Matching workflows run in the background.

    Raises:
        HTTPException: 401 if signature verification fails
        HTTPException: 400 if the body is not JSON or carries no action
    """
    body = await request.body()
    secret = orchestrator.config.webhooks.secrets.get(plugin)
    try:
        verify_signature(secret, body, request.headers.get(SIGNATURE_HEADER))
    except WebhookVerificationError as e:
        logger.warning(f"Rejected webhook for {plugin}: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e

    try:
        payload = json.loads(body) if body else {}
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body must be JSON") from e

    action = extract_action(request.headers, payload)
    if not action:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Could not determine event action")

    if not isinstance(payload, dict):
        payload = {"data": payload}

    workflow_ids = await dispatcher.on_event(plugin, action, payload)
    return WebhookAcceptedResponse(
        status="accepted",
        plugin=plugin,
        action=action,
        workflow_ids=workflow_ids,
    )
