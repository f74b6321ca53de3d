"""Repository for workflow execution records."""

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.db.models import ExecutionStatus, WorkflowExecution
from cadence.db.repositories.base import BaseRepository


class ExecutionRepository(BaseRepository[WorkflowExecution]):
    """Durable log of workflow runs."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, WorkflowExecution)

    async def start(
        self,
        workflow_id: str,
        triggered_by: str,
        trigger_payload: dict[str, Any] | None = None,
        status: str = ExecutionStatus.RUNNING,
    ) -> WorkflowExecution:
        """Create an execution record.

        Records created with a terminal status (e.g. a skipped overlapping
        tick) are finished immediately.
        """
        now = datetime.utcnow()
        return await self.add(
            WorkflowExecution(
                workflow_id=workflow_id,
                status=status,
                triggered_by=triggered_by,
                trigger_payload=trigger_payload,
                started_at=now,
                finished_at=None if status == ExecutionStatus.RUNNING else now,
            )
        )

    async def finish(
        self,
        execution_id: str,
        status: str,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> bool:
        """Terminate a running execution.

        Returns:
            False if the execution was not running (already finished).
        """
        outcome = await self.session.execute(
            update(WorkflowExecution)
            .where(
                WorkflowExecution.id == execution_id,
                WorkflowExecution.status == ExecutionStatus.RUNNING,
            )
            .values(status=status, result=result, error=error, finished_at=datetime.utcnow())
        )
        return outcome.rowcount == 1

    async def list_recent(self, workflow_id: str | None = None, limit: int = 50) -> list[WorkflowExecution]:
        """List executions newest first, optionally for one workflow."""
        stmt = select(WorkflowExecution).order_by(WorkflowExecution.started_at.desc()).limit(limit)
        if workflow_id:
            stmt = stmt.where(WorkflowExecution.workflow_id == workflow_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
