"""
Delayed reconnect scheduling.

Every pending reconnect is an asyncio task kept in a table keyed by stream
key, so an explicit teardown can cancel a reconnect that has not fired yet.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List

from .models import StreamKey

logger = logging.getLogger(__name__)

ReconnectCallback = Callable[[], Awaitable[None]]
SleepFunction = Callable[[float], Awaitable[None]]


class ReconnectScheduler:
    """Table of pending reconnects, at most one per stream key."""

    def __init__(self, sleep: SleepFunction = asyncio.sleep):
        self._sleep = sleep
        self._pending: Dict[StreamKey, asyncio.Task] = {}

    def schedule(self, key: StreamKey, delay: float, callback: ReconnectCallback) -> asyncio.Task:
        """Run callback after delay seconds, replacing any reconnect pending for key."""
        self.cancel(key)

        task = asyncio.create_task(self._run_after(key, delay, callback), name=f"reconnect-{key}")
        self._pending[key] = task
        logger.debug("Reconnect for %s scheduled in %.1f seconds", key, delay)
        return task

    def cancel(self, key: StreamKey) -> bool:
        """Cancel the pending reconnect for key. Returns True if one was pending."""
        task = self._pending.pop(key, None)
        if task is None or task.done():
            return False

        task.cancel()
        logger.debug("Cancelled pending reconnect for %s", key)
        return True

    def cancel_all(self) -> int:
        cancelled = 0
        for key in list(self._pending):
            if self.cancel(key):
                cancelled += 1
        return cancelled

    def is_pending(self, key: StreamKey) -> bool:
        task = self._pending.get(key)
        return task is not None and not task.done()

    def pending_keys(self) -> List[StreamKey]:
        return [key for key, task in self._pending.items() if not task.done()]

    async def _run_after(self, key: StreamKey, delay: float, callback: ReconnectCallback) -> None:
        try:
            await self._sleep(delay)
        except asyncio.CancelledError:
            logger.debug("Reconnect for %s cancelled before it fired", key)
            raise

        # Past the wait window; a teardown from here on goes through the registry
        if self._pending.get(key) is asyncio.current_task():
            del self._pending[key]

        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Reconnect for %s failed: %s", key, e, exc_info=True)
