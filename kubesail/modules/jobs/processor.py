"""
Bounded asyncio worker pool.

A fixed number of worker tasks pull jobs from a bounded queue. submit()
waits while the queue is full, which is the only backpressure callers get.
Failed jobs are logged and dropped; there is no retry.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from ..errors import ProcessorClosedError
from .base import Job

logger = logging.getLogger(__name__)


class TaskProcessor:
    def __init__(self, workers: int = 4, queue_size: int = 100, name: str = "tasks"):
        """
        Initialize processor.

        Args:
            workers: Number of jobs executed concurrently
            queue_size: Jobs that may wait before submit() blocks
            name: Label used in logs and stats
        """
        if workers < 1 or queue_size < 1:
            raise ValueError("workers and queue_size must be positive")
        self.workers = workers
        self.queue_size = queue_size
        self.name = name

        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._tasks: List[asyncio.Task] = []
        self._closed = False
        self._submitted = 0
        self._succeeded = 0
        self._failed = 0

    @property
    def running(self) -> bool:
        return bool(self._tasks) and not self._closed

    def start(self) -> None:
        """Launch the worker tasks. Calling start() twice is a no-op."""
        if self._closed:
            raise ProcessorClosedError(f"processor {self.name} is closed")
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"{self.name}-worker-{i}")
            for i in range(self.workers)
        ]
        logger.info(f"[processor] {self.name}: started {self.workers} workers (queue size {self.queue_size})")

    async def submit(self, job: Job) -> None:
        """
        Enqueue a job, waiting for a free slot when the queue is full.

        Raises:
            ProcessorClosedError: processor no longer accepts jobs
        """
        if self._closed:
            raise ProcessorClosedError(f"processor {self.name} is closed, rejected {job.job_type} {job.job_id}")
        await self._queue.put(job)
        self._submitted += 1
        logger.debug(f"[processor] {self.name}: queued {job.job_type} {job.job_id}")

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await job.do()
                self._succeeded += 1
                logger.debug(f"[processor] {self.name}: {job.job_type} {job.job_id} done")
            except Exception:
                self._failed += 1
                logger.exception(f"[processor] {self.name}: job {job.job_type} {job.job_id} failed")
            finally:
                self._queue.task_done()

    async def close(self) -> None:
        """
        Stop accepting jobs, wait for queued and running jobs, then stop workers.

        Safe to call more than once.
        """
        already_closed = self._closed
        self._closed = True
        if already_closed and not self._tasks:
            return

        if self._tasks:
            await self._queue.join()
        elif not self._queue.empty():
            logger.warning(
                f"[processor] {self.name}: closed before start, dropping {self._queue.qsize()} queued job(s)"
            )

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info(f"[processor] {self.name}: stopped")

    def stats(self) -> Dict[str, object]:
        """Counters for health reporting."""
        return {
            "name": self.name,
            "workers": self.workers,
            "running": self.running,
            "submitted": self._submitted,
            "succeeded": self._succeeded,
            "failed": self._failed,
            "queued": self._queue.qsize(),
        }

    async def __aenter__(self) -> "TaskProcessor":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]:
        await self.close()
        return None
