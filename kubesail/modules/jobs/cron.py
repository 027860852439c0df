"""Periodic job submission."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..errors import ProcessorClosedError
from .base import Job
from .processor import TaskProcessor

logger = logging.getLogger(__name__)


@dataclass
class CronEntry:
    name: str
    interval: float
    factory: Callable[[], Job]
    task: Optional[asyncio.Task] = None


class CronScheduler:
    """
    Submits a fresh job from each registered factory every interval.

    Each registration runs on its own task, so a submission blocked on a
    full processor only delays that registration.
    """

    def __init__(self, processor: TaskProcessor):
        self.processor = processor
        self._entries: Dict[str, CronEntry] = {}
        self._started = False

    def register_job(self, interval: float, factory: Callable[[], Job], name: Optional[str] = None) -> str:
        """
        Arm a repeating timer.

        Args:
            interval: Seconds between submissions
            factory: Builds the job to submit on each tick
            name: Registration name for trigger(); generated when omitted

        Returns:
            The registration name
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        name = name or f"cron-{len(self._entries) + 1}"
        if name in self._entries:
            raise ValueError(f"cron job {name} already registered")

        entry = CronEntry(name=name, interval=interval, factory=factory)
        self._entries[name] = entry
        if self._started:
            self._launch(entry)
        logger.info(f"[cron] Registered {name} every {interval}s")
        return name

    def _launch(self, entry: CronEntry) -> None:
        entry.task = asyncio.create_task(self._run(entry), name=f"cron-{entry.name}")

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        for entry in self._entries.values():
            self._launch(entry)

    async def _run(self, entry: CronEntry) -> None:
        while True:
            await asyncio.sleep(entry.interval)
            try:
                await self._fire(entry)
            except ProcessorClosedError:
                logger.info(f"[cron] {entry.name}: processor closed, stopping")
                return
            except Exception:
                logger.exception(f"[cron] {entry.name}: failed to build job")

    async def _fire(self, entry: CronEntry) -> Job:
        job = entry.factory()
        await self.processor.submit(job)
        logger.debug(f"[cron] {entry.name}: submitted {job.job_type}")
        return job

    async def trigger(self, name: str) -> Job:
        """
        Submit one job for a registration immediately.

        Raises:
            KeyError: no registration with that name
        """
        entry = self._entries[name]
        return await self._fire(entry)

    async def close(self) -> None:
        """Cancel all timers. Jobs already submitted are unaffected."""
        tasks = [entry.task for entry in self._entries.values() if entry.task]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for entry in self._entries.values():
            entry.task = None
        self._started = False

    async def __aenter__(self) -> "CronScheduler":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
