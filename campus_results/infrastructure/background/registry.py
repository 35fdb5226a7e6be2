# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tracking of fire-and-forget background tasks.

Post-commit side effects (event delivery, dropout-risk recomputation)
run as detached asyncio tasks. The registry keeps a reference to every
running task so it is not garbage collected mid-flight, logs failures,
and lets the application lifespan and the tests wait for completion.

Example:
    registry = get_task_registry()
    registry.spawn(bus.publish(EventTypes.Result.PUBLISHED, payload), name="publish")
    await registry.drain(timeout=5)
"""

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class BackgroundTaskRegistry:
    """Set of in-flight background tasks.

    Attributes:
        _tasks: Tasks that have not finished yet.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._failures = 0

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        """Schedule a coroutine without waiting for it.

        Args:
            coro: Coroutine to run.
            name: Task name used in logs.

        Returns:
            The created task.
        """
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug("Background task %s cancelled", task.get_name())
            return
        error = task.exception()
        if error is not None:
            self._failures += 1
            logger.error(
                "Background task %s failed: %s",
                task.get_name(),
                str(error),
                exc_info=error,
            )

    @property
    def pending(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    @property
    def failures(self) -> int:
        """Number of tasks that ended with an exception."""
        return self._failures

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every in-flight task, including ones spawned meanwhile.

        Args:
            timeout: Give up after this many seconds; remaining tasks keep running.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                logger.warning("%d background tasks still running after drain timeout", len(self._tasks))
                return
            # asyncio.wait never cancels what it waits on
            await asyncio.wait(set(self._tasks), timeout=remaining)

    async def cancel_all(self) -> None:
        """Cancel every in-flight task and wait for them to finish."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


_registry: BackgroundTaskRegistry | None = None


def get_task_registry() -> BackgroundTaskRegistry:
    """Get the singleton task registry."""
    global _registry
    if _registry is None:
        _registry = BackgroundTaskRegistry()
    return _registry


def reset_task_registry() -> None:
    """Drop the singleton registry (tests)."""
    global _registry
    _registry = None
