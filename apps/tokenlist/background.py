from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine

LOGGER = logging.getLogger(__name__)


class BackgroundRunner:
    """Owns fire-and-forget work scheduled on the running event loop.

    Tasks are referenced until they finish; failures are logged here since no
    caller awaits them.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def spawn_later(
        self,
        delay: float,
        factory: Callable[[], Awaitable[Any]],
        *,
        name: str | None = None
    ) -> asyncio.Task[Any]:
        async def _delayed() -> None:
            await asyncio.sleep(delay)
            await factory()

        return self.spawn(_delayed(), name=name)

    async def drain(self) -> None:
        # finished tasks may schedule follow-ups, keep going until quiet
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        LOGGER.info('cancelled background tasks count=%s', len(tasks))

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            LOGGER.error('background task failed name=%s error=%s', task.get_name(), error, exc_info=error)
