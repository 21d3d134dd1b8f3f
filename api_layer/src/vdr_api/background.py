"""Fire-and-forget background tasks for side effects that must not block a response."""

import asyncio
from typing import Any
from typing import Coroutine

from loguru import logger


class BackgroundSpawner:
    """Schedules side-effect coroutines and keeps them referenced until they finish."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str = "side-effect") -> asyncio.Task:
        """Run ``coro`` in the background; a failure is logged, never raised to the caller."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"Background task failed: {task.get_name()}", task=task.get_name())

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding tasks (shutdown, tests)."""
        while self._tasks:
            logger.debug("Draining background tasks", pending=len(self._tasks))
            _, still_running = await asyncio.wait(list(self._tasks), timeout=timeout)
            if still_running:
                logger.warning("Background tasks still running after drain timeout", pending=len(still_running))
                return
