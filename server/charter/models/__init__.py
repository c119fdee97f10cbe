"""Models module exporting all database models."""

from .booking import Booking, BookingStatus
from .idempotency import IdempotencyRecord
from .invoice import Invoice, InvoiceStatus
from .notification import NotificationEvent, NotificationKind, NotificationStatus
from .party import Party, PartyRole
from .passenger import Passenger
from .payment import PAYMENT_TRANSITIONS, Payment, PaymentMethod, PaymentStatus
from .quote import Quote, QuoteStatus
from .quote_request import (
    QUOTABLE_REQUEST_STATUSES,
    TERMINAL_REQUEST_STATUSES,
    CabinClass,
    QuoteRequest,
    RequestStatus,
    TripType,
)
from .rating import Rating

__all__ = [
    # Parties
    "Party",
    "PartyRole",

    # Request entities
    "QuoteRequest",
    "RequestStatus",
    "TripType",
    "CabinClass",
    "TERMINAL_REQUEST_STATUSES",
    "QUOTABLE_REQUEST_STATUSES",

    # Quote entities
    "Quote",
    "QuoteStatus",

    # Booking entities
    "Booking",
    "BookingStatus",
    "Passenger",

    # Billing entities
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "PaymentStatus",
    "PaymentMethod",
    "PAYMENT_TRANSITIONS",

    # Feedback
    "Rating",

    # Outbox
    "NotificationEvent",
    "NotificationKind",
    "NotificationStatus",

    # Idempotency entity
    "IdempotencyRecord",
]
