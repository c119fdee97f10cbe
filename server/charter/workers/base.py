"""Base worker class for background tasks."""

import asyncio
import logging
from abc import ABC, abstractmethod

from ..core.observability import metrics_collector

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """
    Periodic background task.

    Runs ``process`` on a fixed interval until stopped. An iteration that
    raises is logged and retried on the next tick.
    """

    def __init__(self, name: str, interval_seconds: int = 60):
        self.name = name
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @abstractmethod
    async def process(self) -> None:
        """Process one iteration of the background task."""

    async def start(self) -> None:
        """Start the worker."""
        if self._running:
            logger.warning("Worker is already running", extra={"worker": self.name})
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(
            "Worker started",
            extra={"worker": self.name, "interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the worker gracefully."""
        if not self._running:
            logger.warning("Worker is not running", extra={"worker": self.name})
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.debug("Worker task cancelled", extra={"worker": self.name})
            self._task = None

        logger.info("Worker stopped", extra={"worker": self.name})

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while self._running:
            started = loop.time()
            succeeded = True
            try:
                await self.process()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                succeeded = False
                logger.error(
                    "Worker iteration failed",
                    exc_info=True,
                    extra={"worker": self.name, "error": str(e)}
                )
            metrics_collector.record_worker_iteration(self.name, succeeded)

            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, self.interval_seconds - elapsed))
