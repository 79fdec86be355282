from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional


logger = logging.getLogger("federalist.scheduler")


@dataclass(frozen=True)
class DailyJob:
    name: str
    hour: int
    minute: int
    run: Callable[[], Awaitable[object]]


def seconds_until(hour: int, minute: int, now: Optional[datetime] = None) -> float:
    """Seconds from ``now`` to the next ``hour:minute`` UTC."""
    now = now or datetime.now(timezone.utc)
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class DailyScheduler:
    """Runs each registered job once a day at its UTC wall-clock time."""

    def __init__(self) -> None:
        self.jobs: List[DailyJob] = []
        self._tasks: List[asyncio.Task] = []

    def add(self, name: str, hour: int, minute: int, run: Callable[[], Awaitable[object]]) -> None:
        self.jobs.append(DailyJob(name=name, hour=hour, minute=minute, run=run))

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def run_once(self, job: DailyJob) -> None:
        logger.info("Running %s", job.name)
        try:
            await job.run()
        except Exception:  # pylint: disable=broad-except
            logger.exception("Scheduled job %s failed", job.name)

    async def _loop(self, job: DailyJob) -> None:
        while True:
            await asyncio.sleep(seconds_until(job.hour, job.minute))
            await self.run_once(job)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._loop(job), name=f"job:{job.name}") for job in self.jobs
        ]
        logger.info("Scheduled %d daily jobs", len(self._tasks))

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
