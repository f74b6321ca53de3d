"""Runs stored workflows and records their executions."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Protocol

from cadence.channels.notifier import Notifier
from cadence.core.prompts import WORKFLOW_FAILED_TEMPLATE, WORKFLOW_SUCCEEDED_TEMPLATE
from cadence.db.database import DatabaseManager
from cadence.db.models import ExecutionStatus, TriggerType, WorkflowExecution, WorkflowStatus
from cadence.db.repositories import ExecutionRepository, WorkflowRepository
from cadence.runtime.tasks import TaskSupervisor
from cadence.sandbox.runner import CodeRunner, RunResult
from cadence.workflows.scheduler import next_fire_time

logger = logging.getLogger(__name__)

OVERLAP_ERROR = "Skipped: previous run of this workflow was still in progress"


class FailureHandler(Protocol):
    def on_failure(
        self,
        workflow_id: str,
        workflow_name: str,
        code: str,
        trigger_type: str,
        error: str,
        event_payload: Any = None,
        notify_target: str | None = None,
    ) -> Any: ...


class WorkflowExecutor:
    """Executes one workflow run end to end.

    Each run creates a running execution, calls the code runner, stamps
    last_run_at whatever the outcome, finishes the execution exactly once,
    escalates failures and notifies the workflow's notify_target.

    Runs of the same workflow are serialized by a per-workflow lock. A cron
    tick that finds the workflow already running is recorded as a cancelled
    execution instead of queueing; webhook and manual runs wait their turn.
    """

    def __init__(
        self,
        db: DatabaseManager,
        runner: CodeRunner,
        notifier: Notifier | None = None,
        escalation: FailureHandler | None = None,
        tasks: TaskSupervisor | None = None,
        timezone: str = "UTC",
    ):
        self._db = db
        self._runner = runner
        self._notifier = notifier
        self._escalation = escalation
        self._tasks = tasks or TaskSupervisor()
        self._timezone = timezone
        self._locks: dict[str, asyncio.Lock] = {}
        # Runs holding or waiting on each lock; the lock is dropped at zero
        self._lock_users: dict[str, int] = {}

    def set_escalation(self, escalation: FailureHandler) -> None:
        self._escalation = escalation

    def is_running(self, workflow_id: str) -> bool:
        lock = self._locks.get(workflow_id)
        return bool(lock and lock.locked())

    async def run(
        self,
        workflow_id: str,
        triggered_by: str,
        event_payload: dict[str, Any] | None = None,
    ) -> WorkflowExecution | None:
        """Execute a workflow.

        Args:
            workflow_id: Workflow to run.
            triggered_by: "cron", "webhook" or "manual".
            event_payload: Webhook payload exposed to the code.

        Returns:
            The finished execution, or None if the workflow is missing or not
            runnable.
        """
        async with self._db.session() as session:
            workflow = await WorkflowRepository(session).get_by_id(workflow_id)

        if workflow is None:
            logger.warning(f"Workflow {workflow_id} not found, nothing to run")
            return None
        if workflow.status == WorkflowStatus.ARCHIVED or (
            workflow.status != WorkflowStatus.ACTIVE and triggered_by != TriggerType.MANUAL
        ):
            logger.info(f"Workflow {workflow.name} is {workflow.status}, not running")
            return None

        lock = self._locks.setdefault(workflow_id, asyncio.Lock())
        if triggered_by == TriggerType.CRON and lock.locked():
            logger.warning(f"Workflow {workflow.name} still running, skipping cron tick")
            async with self._db.session() as session:
                return await ExecutionRepository(session).start(
                    workflow_id, triggered_by, status=ExecutionStatus.CANCELLED
                )

        self._lock_users[workflow_id] = self._lock_users.get(workflow_id, 0) + 1
        try:
            async with lock:
                return await self._execute(
                    workflow_id=workflow.id,
                    name=workflow.name,
                    code=workflow.code,
                    trigger_type=workflow.trigger_type,
                    notify_target=workflow.notify_target,
                    triggered_by=triggered_by,
                    event_payload=event_payload,
                )
        finally:
            self._release(workflow_id)

    def _release(self, workflow_id: str) -> None:
        self._lock_users[workflow_id] -= 1
        if not self._lock_users[workflow_id]:
            del self._lock_users[workflow_id]
            del self._locks[workflow_id]

    async def _execute(
        self,
        workflow_id: str,
        name: str,
        code: str,
        trigger_type: str,
        notify_target: str | None,
        triggered_by: str,
        event_payload: dict[str, Any] | None,
    ) -> WorkflowExecution:
        logger.info(f"Executing workflow {name} ({triggered_by})")

        async with self._db.session() as session:
            execution = await ExecutionRepository(session).start(
                workflow_id, triggered_by, trigger_payload=event_payload
            )

        try:
            result = await self._runner.run(code, event_payload)
        except Exception as e:
            logger.error(f"Runner raised for workflow {name}: {e}", exc_info=True)
            result = RunResult(success=False, error=str(e) or type(e).__name__)

        error = None if result.success else (result.error or "Unknown error")

        async with self._db.session() as session:
            workflow = await WorkflowRepository(session).get_by_id(workflow_id)
            if workflow is not None:
                workflow.last_run_at = datetime.utcnow()
                if workflow.cron_schedule and workflow.status == WorkflowStatus.ACTIVE:
                    workflow.next_run_at = next_fire_time(workflow.cron_schedule, self._timezone)
            repo = ExecutionRepository(session)
            await repo.finish(
                execution.id,
                ExecutionStatus.SUCCESS if result.success else ExecutionStatus.FAILED,
                result={"output": result.output},
                error=error,
            )
            await session.flush()
            execution = await repo.get_by_id(execution.id)

        if error is None:
            logger.info(f"Workflow {name} succeeded")
            self._notify(notify_target, WORKFLOW_SUCCEEDED_TEMPLATE.format(name=name))
        else:
            logger.error(f"Workflow {name} failed: {error}")
            self._notify(notify_target, WORKFLOW_FAILED_TEMPLATE.format(name=name))
            if self._escalation is not None:
                self._escalation.on_failure(
                    workflow_id=workflow_id,
                    workflow_name=name,
                    code=code,
                    trigger_type=trigger_type,
                    error=error,
                    event_payload=event_payload,
                    notify_target=notify_target,
                )

        return execution

    def _notify(self, target: str | None, text: str) -> None:
        if target and self._notifier is not None:
            self._tasks.spawn(self._notifier.notify(target, text), name=f"notify:{target}")
