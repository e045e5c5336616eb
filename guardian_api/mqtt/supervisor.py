"""Supervisor de tareas para los handlers del bus.

Cada mensaje se procesa en su propia tarea asyncio. Si el handler falla,
se loguea con el nombre de la tarea (el topic) y el loop sigue.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional

from ..metrics import HANDLER_FAILURES

logger = logging.getLogger(__name__)


class TaskSupervisor:
    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self.failed = 0
        self.completed = 0

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            self.completed += 1
            return
        self.failed += 1
        HANDLER_FAILURES.inc()
        logger.error(
            "[MQTT] Handler failed for %s: %s",
            task.get_name(),
            exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Espera las tareas en curso; cancela las que no terminan a tiempo."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("[MQTT] Cancelled %d handler tasks on shutdown", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
