"""Service layer package."""

from .booking_service import BookingService
from .idempotency_service import IdempotencyService
from .identifier_service import IdentifierService
from .invoice_service import InvoiceService
from .notification_service import NotificationDispatcher, NotificationOutbox
from .party_service import PartyService
from .passenger_service import PassengerService
from .payment_service import PaymentService
from .quote_service import QuoteService
from .rating_service import RatingService
from .request_service import RequestService

__all__ = [
    "BookingService",
    "IdempotencyService",
    "IdentifierService",
    "InvoiceService",
    "NotificationDispatcher",
    "NotificationOutbox",
    "PartyService",
    "PassengerService",
    "PaymentService",
    "QuoteService",
    "RatingService",
    "RequestService",
]
