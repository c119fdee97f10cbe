"""Party registration service."""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.exceptions import ConflictError, NotFoundError
from ..models.party import Party, PartyRole
from ..schemas.party import RegisterPartyRequest
from .identifier_service import CodeKind, IdentifierService

logger = logging.getLogger(__name__)


def naming_source(role: PartyRole, last_name: str | None, company: str | None) -> str | None:
    """Operators and agents are coded by company, everyone else by surname."""
    if role in (PartyRole.OPERATOR, PartyRole.AGENT):
        return company
    return last_name


class PartyService:
    """Service for registering platform parties."""

    def __init__(self, db: AsyncSession, identifier_service: IdentifierService | None = None):
        self.db = db
        self.identifiers = identifier_service or IdentifierService(db)

    async def register_party(self, request: RegisterPartyRequest, now: datetime | None = None) -> Party:
        """
        Register a party and assign its role-prefixed user code.

        Raises:
            ConflictError: If the email address is already registered
        """
        email = request.email.strip().lower()
        if await self.get_party_by_email(email):
            raise ConflictError(
                detail=f"A party with email {email} is already registered",
                conflicting_resource={"email": email},
            )

        role = PartyRole(request.role)
        user_code = await self.identifiers.generate(
            CodeKind(role.value),
            naming_source(role, request.last_name, request.company),
        )
        party = Party(
            user_code=user_code,
            role=role,
            email=email,
            first_name=request.first_name,
            last_name=request.last_name,
            company=request.company,
            created_at=now or utcnow(),
        )
        self.db.add(party)

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(
                detail=f"A party with email {email} is already registered",
                conflicting_resource={"email": email},
            ) from e

        logger.info("Party registered", extra={"user_code": user_code, "role": role.value})
        return party

    async def get_party(self, user_code: str) -> Party | None:
        stmt = select(Party).where(Party.user_code == user_code)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_party_or_raise(self, user_code: str) -> Party:
        party = await self.get_party(user_code)
        if not party:
            raise NotFoundError(resource_type="party", resource_id=user_code)
        return party

    async def get_party_by_email(self, email: str) -> Party | None:
        stmt = select(Party).where(Party.email == email)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
