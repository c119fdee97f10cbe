"""Party router for registering platform participants."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminOnly, DatabaseSession, Principal, RequiredAuth
from ..schemas.common import PartyCode
from ..schemas.party import Party, RegisterPartyRequest
from ..services.party_service import PartyService
from .common import IDEMPOTENCY_KEY_DEPENDENCY, ensure_party_access, handle_idempotent_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/party", tags=["party"])


class GetPartyRequest(BaseModel):
    """Request schema for fetching a party."""

    user_code: PartyCode


def _convert_party_to_schema(party_model) -> Party:
    """Convert party model to schema."""
    return Party.model_validate(party_model)


@router.post("/register", response_model=Party)
async def register_party(
    request: RegisterPartyRequest,
    principal: Principal = AdminOnly,
    db: AsyncSession = DatabaseSession,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Register a party and assign its role-prefixed user code.

    This operation is idempotent based on the Idempotency-Key header.
    """
    party_service = PartyService(db)

    async def operation():
        party = await party_service.register_party(request)
        logger.info(
            "Party registered via API",
            extra={
                "user_code": party.user_code,
                "role": request.role.value,
                "registered_by": principal.code,
            }
        )
        return _convert_party_to_schema(party).model_dump(mode="json")

    return await handle_idempotent_operation(
        method="party/register",
        idempotency_key=idempotency_key,
        request_body=request.model_dump(mode="json"),
        operation_func=operation,
        db=db
    )


@router.post("/get", response_model=Party)
async def get_party(
    request: GetPartyRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Get a party by user code. Parties may read themselves; admins read anyone."""
    ensure_party_access(principal, request.user_code)

    party = await PartyService(db).get_party_or_raise(request.user_code)
    return JSONResponse(
        status_code=200,
        content=_convert_party_to_schema(party).model_dump(mode="json")
    )
