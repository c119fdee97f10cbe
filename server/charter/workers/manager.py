"""Worker manager for coordinating background tasks."""

import asyncio
import logging

from ..core.config import settings
from .base import BaseWorker
from .idempotency_cleanup_worker import IdempotencyCleanupWorker
from .notification_worker import NotificationWorker
from .request_expiry_worker import RequestExpiryWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """
    Manages background workers for the application.

    Coordinates starting, stopping, and monitoring of all background workers.
    """

    def __init__(self):
        self.workers: dict[str, BaseWorker] = {}
        self._setup_workers()

    def _setup_workers(self) -> None:
        """Initialize all workers."""
        self.workers["request_expiry"] = RequestExpiryWorker(
            interval_seconds=settings.request_expiry_interval_seconds
        )
        self.workers["notification_dispatch"] = NotificationWorker(
            interval_seconds=settings.notification_dispatch_interval_seconds
        )
        self.workers["idempotency_cleanup"] = IdempotencyCleanupWorker(
            interval_seconds=settings.idempotency_cleanup_interval_seconds
        )

        logger.info("Initialized workers", extra={"worker_count": len(self.workers)})

    async def start_all(self) -> None:
        """Start all workers."""
        for worker in self.workers.values():
            await worker.start()

        logger.info("Started workers", extra={"worker_names": list(self.workers)})

    async def stop_all(self) -> None:
        """Stop all running workers gracefully."""
        running = [w for w in self.workers.values() if w.is_running]
        results = await asyncio.gather(*(w.stop() for w in running), return_exceptions=True)

        for worker, result in zip(running, results):
            if isinstance(result, Exception):
                logger.error(
                    "Error stopping worker",
                    extra={"worker": worker.name, "error": str(result)}
                )

        logger.info("All workers stopped")

    def get_worker(self, name: str) -> BaseWorker:
        """
        Get a specific worker by name.

        Raises:
            KeyError: If worker not found
        """
        return self.workers[name]

    def get_worker_status(self) -> dict[str, bool]:
        """Map of worker name to running state."""
        return {name: worker.is_running for name, worker in self.workers.items()}


# Global worker manager instance
worker_manager = WorkerManager()
