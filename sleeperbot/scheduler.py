from __future__ import annotations

import asyncio
import math
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from .config import logger
from .timeutils import utc_now


class PeriodicJob:
    """Runs ``callback`` every ``interval`` seconds on the running event loop.

    The next tick is only armed after the previous callback returned, so ticks
    of one job never overlap. With ``align=True`` ticks land on UTC multiples
    of the interval shifted by ``offset`` (an hourly job fires at :00, a daily
    job with offset 7200 fires at 02:00 UTC). Stopping lets an in-flight tick
    finish and schedules nothing further.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[Any]],
        align: bool = False,
        offset: float = 0,
        clock: Callable[[], float] = time.time,
    ):
        if interval <= 0:
            raise ValueError(f"Job {name}: interval must be positive, got {interval}")
        self.name = name
        self.interval = float(interval)
        self.callback = callback
        self.align = align
        self.offset = float(offset)
        self._clock = clock

        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._last_slot: Optional[int] = None
        self.in_flight = False
        self.runs = 0
        self.errors = 0
        self.last_run: Optional[datetime] = None
        self.last_result: Any = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def current_slot(self) -> int:
        return math.floor((self._clock() - self.offset) / self.interval)

    def next_delay(self) -> float:
        if not self.align:
            return self.interval
        now = self._clock()
        slot = math.floor((now - self.offset) / self.interval) + 1
        return max(slot * self.interval + self.offset - now, 0.0)

    def claim_slot(self) -> bool:
        """False when an aligned job already ticked in the current slot.

        The wait runs on the loop's monotonic clock while slots come from wall
        time, so a wake-up can land just before the boundary it aimed for.
        """
        if not self.align:
            return True
        slot = self.current_slot()
        if slot == self._last_slot:
            logger.debug(f"Job {self.name} woke early in slot {slot}, waiting for the boundary")
            return False
        self._last_slot = slot
        return True

    async def run_once(self) -> Any:
        if self.in_flight:
            logger.warning(f"Job {self.name} is still running, skipping this tick")
            return None

        self.in_flight = True
        started = time.monotonic()
        try:
            self.last_result = await self.callback()
            return self.last_result
        except Exception as e:
            self.errors += 1
            logger.error(f"Job {self.name} failed: {e}")
            return None
        finally:
            self.in_flight = False
            self.runs += 1
            self.last_run = utc_now()
            logger.debug(f"Job {self.name} tick took {time.monotonic() - started:.2f}s")

    async def _loop(self, stop_event: asyncio.Event) -> None:
        logger.info(f"Job {self.name} started (every {self.interval:g}s{', aligned' if self.align else ''})")
        try:
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.next_delay())
                except asyncio.TimeoutError:
                    pass
                if stop_event.is_set():
                    break
                if self.claim_slot():
                    await self.run_once()
        finally:
            logger.info(f"Job {self.name} stopped")

    def start(self) -> None:
        if self.running:
            logger.warning(f"Job {self.name} is already running")
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(self._stop_event), name=f"job:{self.name}")

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def wait_stopped(self) -> None:
        if self._task is not None:
            await self._task
            self._task = None

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "runs": self.runs,
            "errors": self.errors,
            "in_flight": self.in_flight,
        }
