"""Workflow management: the single place stored workflows are mutated."""

import logging
from dataclasses import dataclass, field
from typing import Any

from cadence.core.errors import InvalidScheduleError
from cadence.db.database import DatabaseManager
from cadence.db.models import TriggerType, Workflow, WorkflowExecution, WorkflowStatus
from cadence.db.repositories import ExecutionRepository, WorkflowRepository
from cadence.sandbox.runner import CodeRunner
from cadence.workflows.scheduler import WorkflowScheduler, parse_cron

logger = logging.getLogger(__name__)


def workflow_to_dict(workflow: Workflow, include_code: bool = False) -> dict[str, Any]:
    """Summarize a workflow for tool results and API responses."""
    data: dict[str, Any] = {
        "id": workflow.id,
        "name": workflow.name,
        "description": workflow.description,
        "trigger_type": workflow.trigger_type,
        "cron_schedule": workflow.cron_schedule,
        "webhook_trigger": workflow.webhook_trigger,
        "status": workflow.status,
        "notify_target": workflow.notify_target,
        "next_run_at": workflow.next_run_at.isoformat() if workflow.next_run_at else None,
        "last_run_at": workflow.last_run_at.isoformat() if workflow.last_run_at else None,
    }
    if include_code:
        data["code"] = workflow.code
    return data


@dataclass
class WorkflowResult:
    """Result of a management operation."""

    success: bool
    workflow: Workflow | None = None
    error: str | None = None
    errors: list[str] = field(default_factory=list)
    not_found: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.workflow is not None:
            data["workflow"] = workflow_to_dict(self.workflow)
        if self.error:
            data["error"] = self.error
        if self.errors:
            data["errors"] = self.errors
        if self.not_found:
            data["not_found"] = True
        return data


def _failure(error: str, errors: list[str] | None = None) -> WorkflowResult:
    return WorkflowResult(success=False, error=error, errors=errors or [])


def _trigger_for(
    cron_schedule: str | None,
    webhook_trigger: dict[str, str] | None,
) -> tuple[str, dict[str, Any]]:
    if cron_schedule:
        return TriggerType.CRON, {"cron": cron_schedule.strip()}
    if webhook_trigger:
        return TriggerType.WEBHOOK, {
            "plugin": webhook_trigger["plugin"].strip(),
            "action": webhook_trigger["action"].strip(),
        }
    return TriggerType.MANUAL, {}


class WorkflowService:
    """Validates and stores workflows and keeps the cron scheduler in step.

    Every mutation re-validates what it changes: code must typecheck and
    export exactly one entry point, cron expressions must parse, and a
    webhook trigger needs both plugin and action.
    """

    def __init__(
        self,
        db: DatabaseManager,
        runner: CodeRunner,
        scheduler: WorkflowScheduler,
    ):
        self._db = db
        self._runner = runner
        self._scheduler = scheduler

    async def _validate_code(self, code: str) -> WorkflowResult | None:
        entry_points = self._runner.extract_entry_points(code)
        if len(entry_points) != 1:
            return _failure(
                "Workflow must export exactly one async function, "
                f"found {len(entry_points)}",
                entry_points,
            )
        check = await self._runner.typecheck(code)
        if not check.valid:
            return _failure("Typecheck failed", check.errors)
        return None

    def _validate_trigger(
        self,
        cron_schedule: str | None,
        webhook_trigger: dict[str, str] | None,
    ) -> WorkflowResult | None:
        if cron_schedule and webhook_trigger:
            return _failure("A workflow takes either cron_schedule or webhook_trigger, not both")
        if cron_schedule:
            try:
                parse_cron(cron_schedule, self._scheduler.timezone)
            except InvalidScheduleError as e:
                return _failure(str(e))
        if webhook_trigger is not None:
            if not webhook_trigger.get("plugin", "").strip() or not webhook_trigger.get("action", "").strip():
                return _failure("webhook_trigger needs both plugin and action")
        return None

    def _sync_schedule(self, workflow: Workflow) -> None:
        """Register or unregister the cron job to match the stored row."""
        if workflow.trigger_type == TriggerType.CRON and workflow.status == WorkflowStatus.ACTIVE:
            workflow.next_run_at = self._scheduler.register(workflow.id, workflow.cron_schedule or "")
        else:
            self._scheduler.unregister(workflow.id)
            workflow.next_run_at = None

    async def _resolve(self, repo: WorkflowRepository, ref: str) -> Workflow | None:
        workflow = await repo.get_by_id(ref)
        if workflow is None:
            workflow = await repo.get_active_by_name(ref)
        return workflow

    async def get(self, ref: str) -> Workflow | None:
        """Get a workflow by id, or by name among non-archived workflows."""
        async with self._db.session() as session:
            return await self._resolve(WorkflowRepository(session), ref)

    async def list_workflows(self, trigger_type: str | None = None, include_archived: bool = False) -> list[Workflow]:
        """List workflows, optionally filtered by trigger type ("all" means no filter)."""
        if trigger_type == "all":
            trigger_type = None
        async with self._db.session() as session:
            return await WorkflowRepository(session).list_filtered(trigger_type, include_archived)

    async def create(
        self,
        name: str,
        code: str,
        description: str | None = None,
        cron_schedule: str | None = None,
        webhook_trigger: dict[str, str] | None = None,
        notify_target: str | None = None,
    ) -> WorkflowResult:
        """Validate and store a new active workflow.

        Args:
            name: Workflow name (its exported entry point).
            code: Workflow source.
            description: Optional human description.
            cron_schedule: Crontab expression for cron workflows.
            webhook_trigger: {"plugin", "action"} for webhook workflows.
            notify_target: Session key to notify after each run.

        Returns:
            WorkflowResult with the stored workflow on success.
        """
        if not name or not name.strip() or not code or not code.strip():
            return _failure("name and code are required for create")

        invalid = self._validate_trigger(cron_schedule, webhook_trigger) or await self._validate_code(code)
        if invalid:
            return invalid

        trigger_type, trigger_config = _trigger_for(cron_schedule, webhook_trigger)

        async with self._db.session() as session:
            repo = WorkflowRepository(session)
            if await repo.get_active_by_name(name.strip()):
                return _failure(f'A workflow named "{name.strip()}" already exists')

            workflow = await repo.add(
                Workflow(
                    name=name.strip(),
                    description=description.strip() if description else None,
                    code=code,
                    trigger_type=trigger_type,
                    trigger_config=trigger_config,
                    status=WorkflowStatus.ACTIVE,
                    notify_target=notify_target,
                )
            )
            self._sync_schedule(workflow)
            await session.flush()

        logger.info(f"Created workflow {workflow.name} ({workflow.trigger_type})")
        return WorkflowResult(success=True, workflow=workflow)

    async def update(
        self,
        ref: str,
        code: str | None = None,
        description: str | None = None,
        cron_schedule: str | None = None,
        webhook_trigger: dict[str, str] | None = None,
        status: str | None = None,
        notify_target: str | None = None,
    ) -> WorkflowResult:
        """Change fields of an existing workflow.

        Passing cron_schedule or webhook_trigger replaces the trigger.
        New code that exports a different entry point renames the workflow,
        unless another active workflow already has that name.
        Setting status to archived is equivalent to archive().
        """
        if status is not None and status not in {s.value for s in WorkflowStatus}:
            return _failure(f"Unknown status '{status}'")

        invalid = self._validate_trigger(cron_schedule, webhook_trigger)
        if invalid:
            return invalid
        if code is not None:
            invalid = await self._validate_code(code)
            if invalid:
                return invalid

        async with self._db.session() as session:
            repo = WorkflowRepository(session)
            workflow = await self._resolve(repo, ref)
            if workflow is None:
                return WorkflowResult(success=False, error=f'Workflow "{ref}" not found', not_found=True)

            if code is not None:
                renamed = await self._rename_for(repo, workflow, code)
                if isinstance(renamed, WorkflowResult):
                    return renamed
                workflow.name = renamed
                workflow.code = code
            if description is not None:
                workflow.description = description.strip() or None
            if cron_schedule or webhook_trigger:
                workflow.trigger_type, workflow.trigger_config = _trigger_for(cron_schedule, webhook_trigger)
            if status is not None:
                workflow.status = status
            if notify_target is not None:
                workflow.notify_target = notify_target or None

            self._sync_schedule(workflow)
            workflow = await repo.save(workflow)

        logger.info(f"Updated workflow {workflow.name}")
        return WorkflowResult(success=True, workflow=workflow)

    async def _rename_for(self, repo: WorkflowRepository, workflow: Workflow, code: str) -> str | WorkflowResult:
        """Name the workflow should carry once its code is replaced."""
        [entry_point] = self._runner.extract_entry_points(code)
        if self._runner.extract_entry_points(workflow.code) == [entry_point]:
            return workflow.name
        clash = await repo.get_active_by_name(entry_point)
        if clash is not None and clash.id != workflow.id:
            return _failure(f'A workflow named "{entry_point}" already exists')
        if entry_point != workflow.name:
            logger.info(f"Renaming workflow {workflow.name} to {entry_point}")
        return entry_point

    async def archive(self, ref: str) -> WorkflowResult:
        """Archive a workflow and stop its schedule."""
        async with self._db.session() as session:
            repo = WorkflowRepository(session)
            workflow = await self._resolve(repo, ref)
            if workflow is None:
                return WorkflowResult(success=False, error=f'Workflow "{ref}" not found', not_found=True)

            workflow.status = WorkflowStatus.ARCHIVED
            self._sync_schedule(workflow)
            workflow = await repo.save(workflow)

        logger.info(f"Archived workflow {workflow.name}")
        return WorkflowResult(success=True, workflow=workflow)

    async def list_executions(self, ref: str | None = None, limit: int = 50) -> list[WorkflowExecution]:
        """List recent executions, optionally for one workflow."""
        async with self._db.session() as session:
            workflow_id = None
            if ref:
                workflow = await self._resolve(WorkflowRepository(session), ref)
                if workflow is None:
                    return []
                workflow_id = workflow.id
            return await ExecutionRepository(session).list_recent(workflow_id, limit)
