"""Repository for workflow operations."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.db.models import TriggerType, Workflow, WorkflowStatus
from cadence.db.repositories.base import BaseRepository


class WorkflowRepository(BaseRepository[Workflow]):
    """Repository for workflow operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Workflow)

    async def get_active_by_name(self, name: str) -> Workflow | None:
        """Get a non-archived workflow by name."""
        stmt = (
            select(Workflow)
            .where(Workflow.name == name, Workflow.status != WorkflowStatus.ARCHIVED)
            .order_by(Workflow.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_filtered(
        self,
        trigger_type: str | None = None,
        include_archived: bool = False,
    ) -> list[Workflow]:
        """List workflows, newest first.

        Args:
            trigger_type: Restrict to one trigger type.
            include_archived: Whether archived workflows are included.

        Returns:
            List of Workflow instances
        """
        stmt = select(Workflow).order_by(Workflow.created_at.desc())
        if trigger_type:
            stmt = stmt.where(Workflow.trigger_type == trigger_type)
        if not include_archived:
            stmt = stmt.where(Workflow.status != WorkflowStatus.ARCHIVED)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_active_cron(self) -> list[Workflow]:
        """List active cron workflows, used to rebuild the scheduler at startup."""
        stmt = select(Workflow).where(
            Workflow.trigger_type == TriggerType.CRON,
            Workflow.status == WorkflowStatus.ACTIVE,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_webhook(self, plugin: str, action: str) -> list[Workflow]:
        """List active webhook workflows registered for a (plugin, action) pair."""
        stmt = (
            select(Workflow)
            .where(
                Workflow.trigger_type == TriggerType.WEBHOOK,
                Workflow.status == WorkflowStatus.ACTIVE,
                Workflow.trigger_config["plugin"].as_string() == plugin,
                Workflow.trigger_config["action"].as_string() == action,
            )
            .order_by(Workflow.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
