"""Administrative maintenance router."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminOnly, DatabaseSession, Principal
from ..schemas.admin import StatusMigrationResult
from ..services.status_migration import migrate_request_statuses

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"])


@router.post("/migrate-statuses", response_model=StatusMigrationResult)
async def migrate_statuses(
    principal: Principal = AdminOnly,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Rewrite legacy quote request statuses to the current vocabulary."""
    counts = await migrate_request_statuses(db)
    logger.info(
        "Status migration triggered",
        extra={"admin_code": principal.code, **counts}
    )
    return JSONResponse(
        status_code=200,
        content=StatusMigrationResult(**counts).model_dump(mode="json")
    )
