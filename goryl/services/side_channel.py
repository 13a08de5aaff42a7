"""Best-effort side channel for fire-and-forget async work."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class SideChannel:
    """
    Runs background coroutines whose failure must never fail the caller.

    Tasks are held by strong reference until they finish; any exception is
    logged with the task's label and then dropped.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self.failures = 0

    def submit(self, coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=label)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Side-channel task cancelled: %s", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self.failures += 1
            logger.error(
                "Side-channel task failed: %s", task.get_name(), exc_info=exc
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every task submitted so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
