"""Supervision of fire-and-forget background work."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class TaskSupervisor:
    """Runs detached coroutines and keeps them accountable.

    Holds strong references so tasks are not garbage collected mid-flight,
    logs any exception a task ends with, and cancels whatever is still
    running on shutdown. Failures never propagate to the code that spawned
    the task.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        """Schedule coro on the running loop and track it."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task {task.get_name()} failed: {exc}", exc_info=exc)

    async def join(self) -> None:
        """Wait until every tracked task, including ones spawned meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Give running tasks a grace period, then cancel the rest."""
        if not self._tasks:
            return

        pending = list(self._tasks)
        logger.info(f"Waiting for {len(pending)} background task(s)")
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning(f"Cancelled {len(still_running)} background task(s) on shutdown")
