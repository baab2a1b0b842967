"""
Background dispatch for learning and analytics jobs.

Jobs are queued on a bounded asyncio.Queue and executed one at a time by a
single worker task, so learning runs never overlap. Dispatch is at most once:
a failing job is logged and dropped, and a job submitted to a full queue is
dropped with a warning.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Any]]


@dataclass
class _QueuedJob:
    name: str
    job: Job
    delay: float


class LearningDispatcher:
    """Serialises fire-and-forget jobs through one worker"""

    def __init__(self, maxsize: int = 100):
        self.maxsize = maxsize
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.stats: Dict[str, int] = {
            "submitted": 0,
            "completed": 0,
            "failed": 0,
            "dropped": 0
        }

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self):
        """Start the worker on the running event loop"""
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        self._worker = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Learning dispatcher started (queue size {self.maxsize})")

    def submit(self, job: Job, delay: float = 0.0, name: str = "job") -> bool:
        """
        Queue a job without waiting for it.

        Args:
            job: Zero-arg callable returning an awaitable
            delay: Seconds to wait before running the job
            name: Label used in logs

        Returns:
            True if queued, False if the queue was full
        """
        if not self.running:
            self.start()

        try:
            self._queue.put_nowait(_QueuedJob(name=name, job=job, delay=delay))
        except asyncio.QueueFull:
            self.stats["dropped"] += 1
            logger.warning(f"Dispatch queue full, dropping {name}", extra={"queue_size": self.maxsize})
            return False

        self.stats["submitted"] += 1
        return True

    async def drain(self):
        """Wait until every queued job has run"""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, drain: bool = True):
        """Stop the worker, optionally finishing queued jobs first"""
        if not self.running:
            return
        if drain:
            await self.drain()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Learning dispatcher stopped", extra=dict(self.stats))

    async def _run(self):
        while True:
            queued = await self._queue.get()
            try:
                if queued.delay > 0:
                    await asyncio.sleep(queued.delay)
                await queued.job()
                self.stats["completed"] += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.stats["failed"] += 1
                logger.error(f"Background job {queued.name} failed: {str(e)}", exc_info=True)
            finally:
                self._queue.task_done()
