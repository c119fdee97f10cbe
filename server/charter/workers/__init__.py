"""Background workers for the charter booking system."""

from .idempotency_cleanup_worker import IdempotencyCleanupWorker
from .notification_worker import NotificationWorker
from .request_expiry_worker import RequestExpiryWorker

__all__ = ["IdempotencyCleanupWorker", "NotificationWorker", "RequestExpiryWorker"]
