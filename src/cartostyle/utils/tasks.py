"""Fire-and-forget asyncio task tracking."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

__all__ = ["BackgroundTasks"]

LOGGER = logging.getLogger(__name__)


class BackgroundTasks:
    """Keeps strong references to spawned tasks until they finish.

    Tasks are never awaited by the code that spawns them; completions re-enter
    the event loop through their own callbacks. ``join`` exists for shutdown
    and tests, ``aclose`` cancels whatever is still in flight.
    """

    def __init__(self, name: str = "background") -> None:
        self._name = name
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any] | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.warning("%s: no running event loop; dropping task %s", self._name, name or coro)
            coro.close()
            return None

        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_finished)
        return task

    async def join(self) -> None:
        """Wait until every task, including ones spawned meanwhile, has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _on_task_finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("%s: task %s failed", self._name, task.get_name(), exc_info=exc)
