"""Time-based triggers: a persisted run throttle and a periodic asyncio task."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any

from .data_store import KeyValueStore

logger = logging.getLogger(__name__)

LAST_CHECK_KEY = "last_expiry_check"


class RunThrottle:
    """Minimum interval between full checks, tracked in the key-value store.

    Advisory only: it saves redundant work when the app is reopened often
    and is not relied on for correctness.
    """

    def __init__(self, store: KeyValueStore, interval: timedelta, key: str = LAST_CHECK_KEY):
        self.store = store
        self.interval = interval
        self.key = key

    def last_run(self) -> datetime | None:
        raw = self.store.get_string(self.key)
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Ignoring unreadable %s value %r", self.key, raw)
            return None

    def should_run(self, now: datetime) -> bool:
        last = self.last_run()
        # A timestamp in the future means the clock moved back; run anyway.
        return last is None or last > now or now - last >= self.interval

    def record_run(self, now: datetime) -> None:
        self.store.set_string(self.key, now.isoformat())


class PeriodicTask:
    """Calls a coroutine function on a fixed interval until stopped."""

    def __init__(
        self,
        callback: Callable[[], Awaitable[Any]],
        interval: timedelta,
        name: str = "expiry-check",
    ):
        self.callback = callback
        self.interval = interval
        self.name = name
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, iterations: int | None = None) -> None:
        """Run the loop in the current task.

        Args:
            iterations: Stop after this many ticks; None runs forever
        """
        count = 0
        while iterations is None or count < iterations:
            try:
                await self.callback()
            except Exception:
                logger.exception("Periodic task %s failed; retrying next tick", self.name)
            count += 1
            if iterations is not None and count >= iterations:
                break
            await asyncio.sleep(self.interval.total_seconds())

    def start(self) -> asyncio.Task:
        """Start the loop as a background task on the running event loop."""
        if self.running:
            return self._task  # type: ignore[return-value]
        self._task = asyncio.create_task(self.run(), name=self.name)
        return self._task

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
