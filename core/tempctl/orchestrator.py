"""
Polling Orchestrator

Checks every room on a fixed interval. All rooms of a cycle are checked
concurrently and the next cycle only starts once every room has finished,
so each plug has at most one command in flight.
"""

import asyncio
import logging
import math
from datetime import datetime
from typing import Callable, Optional, Sequence

from .exceptions import CheckError
from .models import CycleReport, RoomCheckResult
from .room import RoomController

logger = logging.getLogger(__name__)


class PollingOrchestrator:
    """Drives all room controllers on a fixed cadence."""

    def __init__(
        self,
        rooms: Sequence[RoomController],
        interval_seconds: float = 30,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval must be positive")
        self.rooms = list(rooms)
        self.interval_seconds = interval_seconds
        self.clock = clock

        self.stats = {"cycles": 0, "errors": 0, "last_run": None, "last_error": None}

        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None

    async def start(self):
        """Start polling in a background task."""
        if self._task and not self._task.done():
            logger.warning("Polling already running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run(self._stop_event))

    async def stop(self):
        """Stop polling, waiting for an in-flight cycle to finish."""
        if not self._task:
            return

        self._stop_event.set()
        await self._task
        self._task = None

    async def run(self, stop_event: asyncio.Event):
        """Run cycles every interval until `stop_event` is set.

        Setting the event interrupts the wait between cycles but never a
        cycle in progress. If this coroutine is cancelled mid-cycle, the
        cycle still runs to completion before the cancellation propagates.
        """
        loop = asyncio.get_running_loop()
        logger.info(
            "Polling %d room(s) every %s seconds", len(self.rooms), self.interval_seconds
        )

        next_tick = loop.time()
        while not stop_event.is_set():
            cycle = asyncio.ensure_future(self.run_cycle())
            try:
                await asyncio.shield(cycle)
            except asyncio.CancelledError:
                logger.info("Polling cancelled, waiting for the current cycle to finish")
                while not cycle.done():
                    try:
                        await asyncio.shield(cycle)
                    except asyncio.CancelledError:
                        continue
                raise

            next_tick += self.interval_seconds
            now = loop.time()
            if now > next_tick:
                missed = math.ceil((now - next_tick) / self.interval_seconds)
                logger.warning(
                    "Cycle overran the %ss interval, skipping %d tick(s)", self.interval_seconds, missed
                )
                next_tick += missed * self.interval_seconds

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=next_tick - loop.time())
            except asyncio.TimeoutError:
                pass

        logger.info("Polling stopped after %d cycle(s)", self.stats["cycles"])

    async def run_cycle(self, now: Optional[datetime] = None) -> CycleReport:
        """Check every room once and collect one result per room, in room order."""
        now = now or self.clock()
        report = CycleReport(started_at=now)
        report.results = list(await asyncio.gather(*(self._check_room(room, now) for room in self.rooms)))

        self.stats["cycles"] += 1
        self.stats["last_run"] = now
        errors = report.errors
        if errors:
            self.stats["errors"] += len(errors)
            self.stats["last_error"] = str(errors[-1].error)
        logger.debug(
            "Cycle done: %d room(s), %d heating, %d error(s)",
            len(report.results),
            len(report.heating_rooms),
            len(errors),
        )
        return report

    async def _check_room(self, room: RoomController, now: datetime) -> RoomCheckResult:
        try:
            decision = await room.check(now)
        except CheckError as e:
            logger.error("Checking %s: %s", room.name, e)
            return RoomCheckResult(room_name=room.name, error=e)
        except Exception as e:
            logger.error("Unexpected error checking %s: %s", room.name, e, exc_info=True)
            return RoomCheckResult(room_name=room.name, error=e)
        return RoomCheckResult(room_name=room.name, decision=decision)
