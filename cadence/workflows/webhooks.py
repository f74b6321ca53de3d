"""Inbound webhook verification and dispatch to webhook workflows."""

import hashlib
import hmac
import logging
from collections.abc import Mapping
from typing import Any

from cadence.core.errors import WebhookVerificationError
from cadence.db.database import DatabaseManager
from cadence.db.models import TriggerType
from cadence.db.repositories import WorkflowRepository
from cadence.runtime.tasks import TaskSupervisor
from cadence.workflows.executor import WorkflowExecutor

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-signature-256"
ACTION_HEADER = "x-webhook-action"
ACTION_FIELDS = ("action", "type", "event")


def verify_signature(secret: str | None, body: bytes, signature: str | None) -> None:
    """Check an HMAC-SHA256 signature over the raw request body.

    Plugins without a configured secret are accepted unsigned. The signature
    may carry a ``sha256=`` prefix.

    Raises:
        WebhookVerificationError: If a secret is configured and the signature
            is missing or wrong.
    """
    if not secret:
        return
    if not signature:
        raise WebhookVerificationError("Missing webhook signature")

    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    provided = signature.removeprefix("sha256=").strip()
    if not hmac.compare_digest(expected, provided):
        raise WebhookVerificationError("Invalid webhook signature")


def extract_action(headers: Mapping[str, str], payload: Any) -> str | None:
    """Determine the event action from the action header or the body."""
    action = headers.get(ACTION_HEADER)
    if action:
        return action.strip()
    if isinstance(payload, dict):
        for field_name in ACTION_FIELDS:
            value = payload.get(field_name)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


class WebhookDispatcher:
    """Fans an inbound event out to every matching webhook workflow.

    Each matching workflow runs in its own background task, so one failing
    (or raising) does not affect the others or the webhook acknowledgement.
    """

    def __init__(self, db: DatabaseManager, executor: WorkflowExecutor, tasks: TaskSupervisor):
        self._db = db
        self._executor = executor
        self._tasks = tasks

    async def on_event(self, plugin: str, action: str, payload: dict[str, Any] | None) -> list[str]:
        """Dispatch an event.

        Returns:
            Ids of the workflows that were started.
        """
        async with self._db.session() as session:
            workflows = await WorkflowRepository(session).list_for_webhook(plugin, action)

        if not workflows:
            logger.debug(f"No webhook workflows for {plugin}.{action}")
            return []

        logger.info(f"Dispatching {len(workflows)} workflow(s) for {plugin}.{action}")
        for workflow in workflows:
            self._tasks.spawn(
                self._executor.run(workflow.id, TriggerType.WEBHOOK, payload),
                name=f"webhook:{workflow.name}",
            )
        return [workflow.id for workflow in workflows]
