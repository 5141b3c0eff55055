"""Deferred-check schedulers.

Both adapters run the callback after the current update has been handled and
neither guarantees it runs at all: a recycled worker or a stopped client drops
pending checks, and the batch TTL cleans up after them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from fastapi import BackgroundTasks

LOGGER = logging.getLogger(__name__)


async def run_deferred(delay: float, callback: Callable[[], Awaitable[object]]) -> None:
    await asyncio.sleep(delay)
    try:
        await callback()
    except Exception:
        LOGGER.exception("Deferred check failed")


class BackgroundTasksScheduler:
    """Runs deferred checks after the webhook response has been sent."""

    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def defer(self, delay: float, callback: Callable[[], Awaitable[object]]) -> None:
        self._background_tasks.add_task(run_deferred, delay, callback)


class AsyncioScheduler:
    """Runs deferred checks as tasks on the running event loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def defer(self, delay: float, callback: Callable[[], Awaitable[object]]) -> None:
        task = asyncio.get_running_loop().create_task(run_deferred(delay, callback))
        # Keep a reference so pending tasks are not garbage collected.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        return len(self._tasks)
