"""Periodic background tasks (dedup sweep, expiry sweep, heartbeat)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from core.ports import Sleep

LOGGER = logging.getLogger(__name__)


class PeriodicTask:
    """Run ``factory()`` every ``interval`` seconds until stopped.

    A failing run is logged and the loop keeps going. With ``run_first`` the
    first run happens immediately instead of after one interval.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        factory: Callable[[], Awaitable[Any]],
        sleep: Sleep = asyncio.sleep,
        run_first: bool = False,
    ) -> None:
        self.name = name
        self.interval = interval
        self._factory = factory
        self._sleep = sleep
        self._run_first = run_first
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> None:
        try:
            await self._factory()
        except asyncio.CancelledError:
            raise
        except Exception:
            LOGGER.exception("Periodic task %s failed", self.name)
        finally:
            self.runs += 1

    async def _loop(self) -> None:
        if self._run_first:
            await self.run_once()
        while True:
            await self._sleep(self.interval)
            await self.run_once()

    def start(self) -> None:
        if self.running:
            return
        LOGGER.debug("Starting periodic task %s (every %ss)", self.name, self.interval)
        self._task = asyncio.create_task(self._loop(), name=self.name)

    async def stop(self, grace: float = 5.0) -> None:
        """Cancel the loop, waiting up to ``grace`` seconds for it to unwind."""

        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await asyncio.wait_for(task, timeout=grace)
        except asyncio.CancelledError:
            pass
        except asyncio.TimeoutError:
            LOGGER.warning("Periodic task %s did not stop within %ss", self.name, grace)
