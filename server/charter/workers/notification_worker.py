"""Background worker delivering queued notifications."""

import logging

from ..core.database import async_session_factory
from ..services.notification_service import NotificationDispatcher, NotificationSender
from .base import BaseWorker

logger = logging.getLogger(__name__)


class NotificationWorker(BaseWorker):
    """Drains the notification outbox through a sender."""

    def __init__(
        self,
        interval_seconds: int = 30,
        sender: NotificationSender | None = None,
        batch_size: int = 100,
    ):
        super().__init__(name="NotificationDispatch", interval_seconds=interval_seconds)
        self.sender = sender
        self.batch_size = batch_size

    async def process(self) -> None:
        async with async_session_factory() as db:
            dispatcher = NotificationDispatcher(db, sender=self.sender)
            counts = await dispatcher.dispatch_pending(batch_size=self.batch_size)

        if counts["failed"]:
            logger.warning(
                "Notifications exhausted their delivery attempts",
                extra={"worker": self.name, **counts}
            )
