"""
Fire-and-forget notification dispatch.

Lifecycle operations submit notifier calls here instead of awaiting them.
Jobs run on a small pool of worker tasks behind a bounded queue and go
through a circuit breaker. Failures are logged and never reach the caller.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from backend.app.core.reliability import CircuitBreaker, CircuitOpenError

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Bounded background executor for notifier calls.

    Workers are started lazily on the first submit, so the dispatcher can be
    built outside a running event loop.
    """

    def __init__(
        self,
        queue_size: int = 1000,
        workers: int = 2,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.queue_size = queue_size
        self.worker_count = max(1, workers)
        self.circuit_breaker = circuit_breaker or CircuitBreaker(name="notifier")
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self.dropped = 0
        self.failed = 0

    def submit(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> bool:
        """
        Queue a notifier call.

        Returns:
            False when the queue is full and the job was dropped
        """
        self._ensure_started()
        try:
            self._queue.put_nowait((func, args, kwargs))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Notification queue full (%s), dropping %s%s",
                self.queue_size, getattr(func, "__name__", func), args,
            )
            return False
        return True

    async def drain(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def aclose(self) -> None:
        for task in self._workers:
            task.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None

    def _ensure_started(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.queue_size)
        if not self._workers:
            self._workers = [
                asyncio.create_task(self._worker(i), name=f"notification-worker-{i}")
                for i in range(self.worker_count)
            ]

    async def _worker(self, index: int) -> None:
        queue = self._queue
        while True:
            func, args, kwargs = await queue.get()
            try:
                await self.circuit_breaker.call(func, *args, **kwargs)
            except CircuitOpenError as e:
                self.failed += 1
                logger.warning("Notification skipped, %s: %s%s", e, getattr(func, "__name__", func), args)
            except Exception:
                self.failed += 1
                logger.exception("Notification failed: %s%s", getattr(func, "__name__", func), args)
            finally:
                queue.task_done()
