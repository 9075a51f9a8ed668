# hyperlocal/services/queue.py
"""
In-process job queue with bounded retry.

Jobs live in memory only and are lost on restart. One worker task per queue
runs jobs in FIFO order; a failing job goes back to the tail after a backoff
delay until it runs out of attempts, then it is dropped and logged.
"""

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Optional, Sequence, Set

from hyperlocal.core.exceptions import QueueUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF = (2.0, 5.0, 10.0)


@dataclass
class Job:
    id: str
    payload: Any
    attempts: int = 0
    max_attempts: int = 3
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_error: Optional[str] = None


Processor = Callable[[Job], Awaitable[Any]]


class JobQueue:
    def __init__(
        self,
        name: str,
        backoff: Sequence[float] = DEFAULT_BACKOFF,
        max_attempts: int = 3,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.name = name
        self.backoff = tuple(backoff) or (0.0,)
        self.max_attempts = max_attempts
        self._processor: Optional[Processor] = None
        self._jobs: Deque[Job] = deque()
        self._delayed: Set[asyncio.TimerHandle] = set()
        self._worker: Optional[asyncio.Task] = None
        self._active = False
        self._running = False
        self._completed = 0
        self._failed = 0
        self._idle = asyncio.Event()
        self._idle.set()

    def set_processor(self, processor: Processor) -> None:
        self._processor = processor

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        self._running = True
        logger.info("%s queue started", self.name)
        if self._jobs:
            self._kick()

    def enqueue(self, payload: Any, max_attempts: Optional[int] = None) -> Job:
        """Append a job and return it without waiting for it to run."""
        if not self._running:
            raise QueueUnavailableError(f"{self.name} queue is not running")
        if self._processor is None:
            raise QueueUnavailableError(f"{self.name} queue has no processor")

        job = Job(
            id=f"job-{uuid.uuid4().hex[:12]}",
            payload=payload,
            max_attempts=max_attempts or self.max_attempts,
        )
        self._jobs.append(job)
        self._idle.clear()
        logger.debug("Added job %s to %s queue", job.id, self.name)
        self._kick()
        return job

    def backoff_for(self, attempts: int) -> float:
        index = min(max(attempts, 1), len(self.backoff)) - 1
        return self.backoff[index]

    def get_counts(self) -> dict:
        return {
            "waiting": len(self._jobs) - (1 if self._active else 0),
            "active": 1 if self._active else 0,
            "delayed": len(self._delayed),
            "completed": self._completed,
            "failed": self._failed,
        }

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait until nothing is waiting, running or scheduled for retry."""
        await asyncio.wait_for(self._idle.wait(), timeout)

    async def close(self) -> None:
        """Stop accepting jobs. Queued jobs and pending retries are abandoned."""
        self._running = False
        for handle in self._delayed:
            handle.cancel()
        abandoned = len(self._jobs) + len(self._delayed)
        self._delayed.clear()
        self._jobs.clear()
        if self._worker and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._active = False
        self._idle.set()
        if abandoned:
            logger.warning("%s queue closed with %d unfinished jobs", self.name, abandoned)
        else:
            logger.info("%s queue closed", self.name)

    def _kick(self) -> None:
        if not self._running:
            return
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while self._jobs:
            job = self._jobs[0]
            self._active = True
            try:
                await self._processor(job)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._jobs.popleft()
                job.attempts += 1
                job.last_error = str(exc)
                self._handle_failure(job)
            else:
                self._jobs.popleft()
                job.attempts += 1
                self._completed += 1
                logger.info("Job %s completed in %s queue", job.id, self.name)
            finally:
                self._active = False
        self._update_idle()

    def _handle_failure(self, job: Job) -> None:
        if job.attempts < job.max_attempts:
            delay = self.backoff_for(job.attempts)
            logger.warning(
                "Job %s failed in %s queue (attempt %d/%d): %s. Retrying in %ss",
                job.id, self.name, job.attempts, job.max_attempts, job.last_error, delay,
            )
            loop = asyncio.get_running_loop()
            handle = None

            def requeue():
                self._delayed.discard(handle)
                if not self._running:
                    return
                self._jobs.append(job)
                self._kick()

            handle = loop.call_later(delay, requeue)
            self._delayed.add(handle)
        else:
            self._failed += 1
            logger.error(
                "Job %s dropped from %s queue after %d attempts: %s",
                job.id, self.name, job.attempts, job.last_error,
            )

    def _update_idle(self) -> None:
        if not self._jobs and not self._delayed and not self._active:
            self._idle.set()
