"""Background worker that purges idempotency records past their retention."""

import logging

from ..core.database import async_session_factory
from ..services.idempotency_service import IdempotencyService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class IdempotencyCleanupWorker(BaseWorker):
    def __init__(self, interval_seconds: int = 3600):
        super().__init__(name="IdempotencyCleanup", interval_seconds=interval_seconds)

    async def process(self) -> None:
        async with async_session_factory() as db:
            deleted = await IdempotencyService(db).purge_expired()

        if deleted:
            logger.info(
                "Purged expired idempotency records",
                extra={"deleted_count": deleted, "worker": self.name}
            )
