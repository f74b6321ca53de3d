"""Starts a diagnostic agent turn when a workflow run fails."""

import asyncio
import logging
from typing import Any

from cadence.agent.engine import AgentEngine, TurnCapabilities
from cadence.channels.notifier import Notifier
from cadence.core.prompts import WORKFLOW_FAILURE_PROMPT, build_escalation_prompt
from cadence.runtime.tasks import TaskSupervisor

logger = logging.getLogger(__name__)


class EscalationTrigger:
    """Hands failed runs to the agent for diagnosis and repair.

    The escalation turn runs detached. Its own failures are logged and never
    escalated again. When the workflow has a notify_target, the turn's final
    summary is sent there.
    """

    def __init__(self, engine: AgentEngine, tasks: TaskSupervisor, notifier: Notifier | None = None):
        self._engine = engine
        self._tasks = tasks
        self._notifier = notifier

    def on_failure(
        self,
        workflow_id: str,
        workflow_name: str,
        code: str,
        trigger_type: str,
        error: str,
        event_payload: Any = None,
        notify_target: str | None = None,
    ) -> asyncio.Task[Any]:
        """Start the escalation turn in the background."""
        logger.info(f"Escalating failure for workflow {workflow_name} ({workflow_id})")
        prompt = build_escalation_prompt(
            workflow_id=workflow_id,
            workflow_name=workflow_name,
            code=code,
            trigger_type=trigger_type,
            error=error,
            event_payload=event_payload,
        )
        return self._tasks.spawn(
            self._run(workflow_id, prompt, notify_target),
            name=f"escalation:{workflow_name}",
        )

    async def _run(self, workflow_id: str, prompt: str, notify_target: str | None) -> None:
        try:
            outcome = await self._engine.run_turn(
                prompt,
                history=[],
                capabilities=TurnCapabilities(system_extra=WORKFLOW_FAILURE_PROMPT, session_key=notify_target),
            )
        except Exception as e:
            logger.error(f"Escalation for workflow {workflow_id} failed: {e}", exc_info=True)
            return

        logger.info(f"Escalation for workflow {workflow_id} finished ({outcome.kind})")
        if notify_target and self._notifier is not None:
            await self._notifier.notify(notify_target, outcome.reply_text)
