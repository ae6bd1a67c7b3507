from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Optional

import logging

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


class KeyedScheduler:
    """One pending delayed callback per key.

    Scheduling a key that already has a pending callback cancels the old one
    first; there is no suspension point between the two, so a key never has
    two live timers.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, asyncio.Task] = {}

    def schedule(self, key: str, delay_seconds: float, callback: Callback) -> asyncio.Task:
        self.cancel(key)
        task = asyncio.create_task(self._run(key, delay_seconds, callback), name=f"timer:{key}")
        self._tasks[key] = task
        return task

    async def _run(self, key: str, delay_seconds: float, callback: Callback) -> None:
        try:
            await asyncio.sleep(delay_seconds)
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("scheduler.callback_failed key=%s", key)
        finally:
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]

    def cancel(self, key: str, task: Optional[asyncio.Task] = None) -> bool:
        """Cancel the pending callback for ``key``.

        With ``task`` given, only that exact task is cancelled; a newer task
        scheduled under the same key is left alone.
        """
        current = self._tasks.get(key)
        if current is None or (task is not None and current is not task):
            return False
        del self._tasks[key]
        if current.done():
            return False
        if current is asyncio.current_task():
            # A callback clearing its own key: it is already running to completion.
            return False
        current.cancel()
        return True

    def is_pending(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def pending_keys(self) -> list[str]:
        return [key for key, task in self._tasks.items() if not task.done()]

    async def cancel_all(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
