"""Background worker for expiring stale quote requests."""

import logging

from ..core.clock import utcnow
from ..core.database import async_session_factory
from ..services.request_service import RequestService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class RequestExpiryWorker(BaseWorker):
    """
    Background worker that expires quote requests past their deadline.

    Reads already apply expiry lazily; this sweep persists it for requests
    nobody looks at.
    """

    def __init__(self, interval_seconds: int = 300, batch_size: int = 500):
        super().__init__(name="RequestExpiry", interval_seconds=interval_seconds)
        self.batch_size = batch_size

    async def process(self) -> None:
        """Expire overdue requests until a batch comes back short."""
        async with async_session_factory() as db:
            service = RequestService(db)
            now = utcnow()
            total = 0
            while True:
                expired = await service.expire_requests(now, batch_size=self.batch_size)
                total += expired
                if expired < self.batch_size:
                    break

        if total:
            logger.info(
                "Request expiry sweep finished",
                extra={"expired_count": total, "worker": self.name}
            )
