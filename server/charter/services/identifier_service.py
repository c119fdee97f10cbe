"""Human-readable identifier generation for parties and lifecycle entities.

Codes take the form ``PREFIX-MIDDLE-RANDOM``:

* ``PREFIX`` names the role or entity kind (``PA``, ``OP``, ``BK``, ``INV`` ...).
* ``MIDDLE`` is up to four upper-case alphanumerics taken from a meaningful
  source such as a surname, company name or the parent entity's code.
* ``RANDOM`` is five characters drawn uniformly from ``0-9A-Z``.

Every candidate is checked against the table that owns that kind of code.
When the check itself cannot run, a ``UN-`` code is issued instead so the
caller is never blocked on identifier generation.
"""

import logging
import re
import secrets
import string
import time
from enum import Enum
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import GenerationError, ValidationError
from ..models.booking import Booking
from ..models.invoice import Invoice
from ..models.party import Party
from ..models.passenger import Passenger
from ..models.payment import Payment
from ..models.quote import Quote
from ..models.quote_request import QuoteRequest

logger = logging.getLogger(__name__)

ALPHABET = string.digits + string.ascii_uppercase
RANDOM_LENGTH = 5
MIDDLE_LENGTH = 4
SEQUENCE_WIDTH = 5

FALLBACK_PREFIX = "UN"
DEFAULT_FILLER = "UNKN"


class CodeKind(str, Enum):
    """Kinds of codes the generator can issue."""
    PASSENGER = "passenger"
    OPERATOR = "operator"
    AGENT = "agent"
    ADMIN = "admin"
    REQUEST = "request"
    QUOTE = "quote"
    BOOKING = "booking"
    INVOICE = "invoice"
    PAYMENT = "payment"
    PASSENGER_RECORD = "passenger-record"


CODE_PREFIXES: dict[CodeKind, str] = {
    CodeKind.PASSENGER: "PA",
    CodeKind.OPERATOR: "OP",
    CodeKind.AGENT: "AG",
    CodeKind.ADMIN: "AD",
    CodeKind.REQUEST: "RQ",
    CodeKind.QUOTE: "QT",
    CodeKind.BOOKING: "BK",
    CodeKind.INVOICE: "INV",
    CodeKind.PAYMENT: "PMT",
    CodeKind.PASSENGER_RECORD: "PAX",
}

_FILLERS: dict[CodeKind, str] = {
    CodeKind.PASSENGER: "PASS",
    CodeKind.ADMIN: "ADMN",
}

# Column holding each kind of code; uniqueness is checked against it
_CODE_COLUMNS = {
    CodeKind.PASSENGER: Party.user_code,
    CodeKind.OPERATOR: Party.user_code,
    CodeKind.AGENT: Party.user_code,
    CodeKind.ADMIN: Party.user_code,
    CodeKind.REQUEST: QuoteRequest.request_code,
    CodeKind.QUOTE: Quote.quote_id,
    CodeKind.BOOKING: Booking.booking_id,
    CodeKind.INVOICE: Invoice.invoice_id,
    CodeKind.PAYMENT: Payment.payment_id,
    CodeKind.PASSENGER_RECORD: Passenger.passenger_id,
}

_KNOWN_PREFIXES = "|".join(sorted({*CODE_PREFIXES.values(), FALLBACK_PREFIX}, key=len, reverse=True))
_CODE_PATTERN = re.compile(rf"^({_KNOWN_PREFIXES})-([A-Z0-9]+)-([A-Z0-9]+)$")
_NON_ALNUM = re.compile(r"[^A-Z0-9]")


class ParsedCode(NamedTuple):
    prefix: str
    middle: str
    suffix: str


def random_segment(length: int = RANDOM_LENGTH) -> str:
    """Return ``length`` characters drawn uniformly from ``0-9A-Z``."""
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(ALPHABET[remainder])
    return "".join(reversed(digits))


def derive_middle(kind: CodeKind, source: str | None) -> str:
    """
    Derive the MIDDLE segment from a human-meaningful source.

    A source that is itself a code contributes its own middle segment, so
    child entities stay visibly linked to their parent.
    """
    if source:
        candidate = source.strip().upper()
        match = _CODE_PATTERN.match(candidate)
        if match:
            candidate = match.group(2)
        middle = _NON_ALNUM.sub("", candidate)[:MIDDLE_LENGTH]
        if middle:
            return middle
    return _FILLERS.get(kind, DEFAULT_FILLER)


def build_code(kind: CodeKind | str, source: str | None = None) -> str:
    """Build a candidate code without checking uniqueness."""
    kind = CodeKind(kind)
    return f"{CODE_PREFIXES[kind]}-{derive_middle(kind, source)}-{random_segment()}"


def fallback_code(now_ms: int | None = None) -> str:
    """Liveness code used when uniqueness cannot be verified."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{FALLBACK_PREFIX}-{to_base36(now_ms)}-{random_segment()}"


def sequence_code(parent: str, label: str, sequence: int) -> str:
    """Ordered child identifier, e.g. ``BK-SMIT-7Q2ZK-email-00001``."""
    if sequence < 1:
        raise ValidationError(detail="Sequence numbers start at 1")
    return f"{parent}-{label}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_code(code: str) -> ParsedCode:
    """Split a code into prefix, middle and suffix."""
    match = _CODE_PATTERN.match(code or "")
    if not match:
        raise ValidationError(detail=f"'{code}' is not a valid code", errors={"code": code})
    return ParsedCode(*match.groups())


def validate_code(code: str, kind: CodeKind | str | None = None) -> bool:
    """Check that ``code`` is well formed and, optionally, of the given kind."""
    match = _CODE_PATTERN.match(code or "")
    if not match:
        return False

    prefix, middle, suffix = match.groups()
    if prefix == FALLBACK_PREFIX:
        return kind is None and len(suffix) == RANDOM_LENGTH
    if len(middle) > MIDDLE_LENGTH or len(suffix) != RANDOM_LENGTH:
        return False
    if kind is not None and CODE_PREFIXES[CodeKind(kind)] != prefix:
        return False
    return True


class IdentifierService:
    """Service issuing collision-checked codes."""

    def __init__(self, db: AsyncSession, max_attempts: int | None = None):
        self.db = db
        self.max_attempts = max_attempts or settings.identifier_max_attempts

    async def _code_exists(self, kind: CodeKind, code: str) -> bool:
        column = _CODE_COLUMNS[kind]
        result = await self.db.execute(select(column).where(column == code).limit(1))
        return result.first() is not None

    async def generate(self, kind: CodeKind | str, source: str | None = None) -> str:
        """
        Generate a code that is not yet present in the owning table.

        Args:
            kind: Role or entity kind the code is issued for
            source: Surname, company or parent code feeding the MIDDLE segment

        Returns:
            A unique code, or a ``UN-`` fallback code if the store is unreachable

        Raises:
            GenerationError: If every attempt collided with an existing code
        """
        kind = CodeKind(kind)

        for attempt in range(1, self.max_attempts + 1):
            candidate = build_code(kind, source)

            try:
                # A failed check rolls back only to the savepoint; the caller's work survives
                async with self.db.begin_nested():
                    exists = await self._code_exists(kind, candidate)
            except SQLAlchemyError as e:
                code = fallback_code()
                logger.warning(
                    "Uniqueness check failed, issuing fallback code",
                    extra={
                        "kind": kind.value,
                        "candidate": candidate,
                        "fallback_code": code,
                        "error": str(e),
                    }
                )
                return code

            if not exists:
                return candidate

            logger.info(
                "Generated code collided with an existing record",
                extra={"kind": kind.value, "candidate": candidate, "attempt": attempt}
            )

        logger.error(
            "Identifier generation exhausted its attempts",
            extra={"kind": kind.value, "attempts": self.max_attempts}
        )
        raise GenerationError(kind.value, self.max_attempts)
