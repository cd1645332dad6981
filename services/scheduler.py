from __future__ import annotations

import asyncio
import logging
from datetime import time, tzinfo
from typing import Awaitable, Callable, Dict

from utils.time_utils import SECONDS_PER_DAY, seconds_until


class Job:
    def __init__(
        self,
        name: str,
        coro: Callable[[], Awaitable[object]],
        *,
        at: time,
        tz: tzinfo | None = None,
    ) -> None:
        self.name = name
        self.coro = coro
        self.at = at
        self.tz = tz
        self.task: asyncio.Task | None = None

    def next_delay(self) -> float:
        delay = seconds_until(self.at, tz=self.tz)
        # A wake-up a hair before the trigger must not fire the same day twice.
        return delay if delay >= 1 else delay + SECONDS_PER_DAY


class Scheduler:
    def __init__(self) -> None:
        self.jobs: Dict[str, Job] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def add_daily_job(
        self,
        name: str,
        at: time,
        coro: Callable[[], Awaitable[object]],
        tz: tzinfo | None = None,
    ) -> None:
        """Run ``coro`` every day at wall-clock ``at`` in ``tz`` (host local time when None)."""
        if name in self.jobs:
            raise RuntimeError(f"Job {name} already exists.")
        job = Job(name, coro, at=at, tz=tz)
        self.jobs[name] = job
        if self._running:
            job.task = asyncio.create_task(self._run_job(job))

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for job in self.jobs.values():
            job.task = asyncio.create_task(self._run_job(job))
        logging.info("Scheduler started with jobs: %s", ", ".join(self.jobs) or "none")

    async def stop(self) -> None:
        self._running = False
        for job in self.jobs.values():
            if job.task:
                job.task.cancel()
        await asyncio.gather(
            *(job.task for job in self.jobs.values() if job.task), return_exceptions=True
        )

    async def _run_job(self, job: Job) -> None:
        while self._running:
            delay = job.next_delay()
            logging.info("Scheduler job %s next run in %.0fs.", job.name, delay)
            await asyncio.sleep(delay)
            try:
                await job.coro()
            except Exception:
                logging.exception("Scheduler job %s failed", job.name)
