"""APScheduler-based cron dispatch for stored workflows."""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from cadence.core.errors import InvalidScheduleError
from cadence.db.database import DatabaseManager
from cadence.db.repositories import WorkflowRepository

logger = logging.getLogger(__name__)

FireCallback = Callable[[str], Awaitable[Any]]


def parse_cron(schedule: str, timezone: str = "UTC") -> CronTrigger:
    """Parse a five-field crontab expression.

    Raises:
        InvalidScheduleError: If the expression is not valid.
    """
    try:
        return CronTrigger.from_crontab(schedule.strip(), timezone=ZoneInfo(timezone))
    except (ValueError, TypeError) as e:
        raise InvalidScheduleError(schedule, str(e)) from e


def next_fire_time(schedule: str, timezone: str = "UTC") -> datetime | None:
    """Next fire time of a cron expression as naive UTC."""
    trigger = parse_cron(schedule, timezone)
    now = datetime.now(ZoneInfo(timezone))
    fire_time = trigger.get_next_fire_time(None, now)
    if fire_time is None:
        return None
    return fire_time.astimezone(ZoneInfo("UTC")).replace(tzinfo=None)


class WorkflowScheduler:
    """Holds one APScheduler job per active cron workflow.

    The job map is a cache of the workflows table: load_all() rebuilds it at
    startup and register/unregister keep it in step with later mutations.
    Both are idempotent and keyed by workflow id.
    """

    def __init__(self, on_fire: FireCallback | None = None, timezone: str = "UTC"):
        """Initialize the scheduler.

        Args:
            on_fire: Coroutine function called with the workflow id on each tick.
            timezone: IANA timezone for cron schedules.
        """
        self._on_fire = on_fire
        self._timezone = timezone
        self._scheduler = AsyncIOScheduler(timezone=ZoneInfo(timezone))
        self._jobs: dict[str, str] = {}

    @property
    def timezone(self) -> str:
        return self._timezone

    def set_fire_callback(self, on_fire: FireCallback) -> None:
        self._on_fire = on_fire

    async def start(self) -> None:
        """Start firing registered jobs."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info(f"Workflow scheduler started ({len(self._jobs)} job(s))")

    async def stop(self) -> None:
        """Stop the scheduler without waiting for in-flight runs."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Workflow scheduler stopped")

    async def load_all(self, db: DatabaseManager) -> int:
        """Register every active cron workflow.

        Workflows with an unparseable schedule are logged and skipped.

        Returns:
            Number of workflows registered.
        """
        async with db.session() as session:
            workflows = await WorkflowRepository(session).list_active_cron()

        registered = 0
        for workflow in workflows:
            schedule = workflow.cron_schedule
            if not schedule:
                logger.warning(f"Cron workflow {workflow.name} has no schedule, skipping")
                continue
            try:
                self.register(workflow.id, schedule)
                registered += 1
            except InvalidScheduleError as e:
                logger.error(f"Skipping workflow {workflow.name}: {e}")

        logger.info(f"Loaded {registered} of {len(workflows)} cron workflow(s)")
        return registered

    def register(self, workflow_id: str, schedule: str) -> datetime | None:
        """Schedule a workflow, replacing any job it already has.

        Returns:
            The next fire time (naive UTC).

        Raises:
            InvalidScheduleError: If the schedule is not valid.
        """
        trigger = parse_cron(schedule, self._timezone)
        self._scheduler.add_job(
            func=self._fire,
            trigger=trigger,
            args=[workflow_id],
            id=workflow_id,
            name=f"workflow:{workflow_id}",
            replace_existing=True,
            # Overlapping ticks reach the executor, which records them as skipped
            max_instances=10,
            coalesce=True,
        )
        self._jobs[workflow_id] = schedule
        logger.info(f"Registered workflow {workflow_id} ({schedule})")
        return next_fire_time(schedule, self._timezone)

    def unregister(self, workflow_id: str) -> bool:
        """Remove a workflow's job.

        Returns:
            True if a job was removed.
        """
        if workflow_id not in self._jobs:
            return False
        del self._jobs[workflow_id]
        if self._scheduler.get_job(workflow_id):
            self._scheduler.remove_job(workflow_id)
        logger.info(f"Unregistered workflow {workflow_id}")
        return True

    def is_registered(self, workflow_id: str) -> bool:
        return workflow_id in self._jobs

    def registered_ids(self) -> list[str]:
        return list(self._jobs)

    def next_run_time(self, workflow_id: str) -> datetime | None:
        """Next fire time of a registered workflow (naive UTC)."""
        schedule = self._jobs.get(workflow_id)
        if schedule is None:
            return None
        return next_fire_time(schedule, self._timezone)

    async def _fire(self, workflow_id: str) -> None:
        if self._on_fire is None:
            logger.warning(f"Workflow {workflow_id} fired with no handler attached")
            return
        try:
            await self._on_fire(workflow_id)
        except Exception as e:
            logger.error(f"Cron run of workflow {workflow_id} failed: {e}", exc_info=True)
