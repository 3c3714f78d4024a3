from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from rider_service.broadcast import SweepResult

logger = logging.getLogger(__name__)


class PeriodicSweeper:
    def __init__(
        self,
        sweep: Callable[[], SweepResult],
        interval_seconds: float = 30.0,
        on_result: Callable[[SweepResult], None] | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._sweep = sweep
        self._interval_seconds = interval_seconds
        self._on_result = on_result
        self._sleep = sleep_fn
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self.run(), name="rider-sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def run(self) -> None:
        while True:
            await self._sleep(self._interval_seconds)
            self.run_once()

    def run_once(self) -> SweepResult | None:
        try:
            result = self._sweep()
        except Exception:
            logger.exception("sweep_failed", extra={"component": "rider_service"})
            return None
        if self._on_result is not None:
            self._on_result(result)
        if result.riders_marked_offline or result.emergencies_purged:
            logger.info(
                "sweep_completed",
                extra={
                    "component": "rider_service",
                    "riders_marked_offline": result.riders_marked_offline,
                    "emergencies_purged": result.emergencies_purged,
                },
            )
        return result
