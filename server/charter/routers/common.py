"""Helpers shared by the RPC routers."""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import Principal, require_role
from ..core.exceptions import AuthorizationError, ProblemDetailsException
from ..services.idempotency_service import IdempotencyService

logger = logging.getLogger(__name__)

CLIENT_ROLES = ("passenger", "agent")

# Define dependencies to avoid B008 linting errors
IDEMPOTENCY_KEY_DEPENDENCY = Header(..., alias="Idempotency-Key", min_length=1, max_length=255)
CLIENT_DEPENDENCY = Depends(require_role(*CLIENT_ROLES))
OPERATOR_DEPENDENCY = Depends(require_role("operator"))


def ensure_party_access(principal: Principal, *party_codes: str | None) -> None:
    """
    Allow admins and any principal whose code is among ``party_codes``.

    Raises:
        AuthorizationError: If the principal is not a party to the resource
    """
    if principal.is_admin or principal.code in party_codes:
        return
    logger.warning(
        "Access denied to resource of another party",
        extra={"principal_code": principal.code, "role": principal.role}
    )
    raise AuthorizationError(detail="Not a party to the requested resource")


async def handle_idempotent_operation(
    method: str,
    idempotency_key: str,
    request_body: dict[str, Any],
    operation_func: Callable[[], Awaitable[dict[str, Any] | JSONResponse]],
    db: AsyncSession,
) -> JSONResponse:
    """
    Run ``operation_func`` once per idempotency key and replay its response.

    Successful responses and non-retryable Problem Details are stored;
    retryable failures are not, so a retry with the same key runs again.
    """
    idempotency_service = IdempotencyService(db)

    stored = await idempotency_service.check_idempotency(
        idempotency_key=idempotency_key,
        method=method,
        request_body=request_body
    )
    if stored is not None:
        return JSONResponse(status_code=stored.status_code, content=stored.body, headers=stored.headers)

    try:
        result = await operation_func()
    except ProblemDetailsException as e:
        await db.rollback()
        if not e.problem_details.get("retryable", False):
            await idempotency_service.store_response(
                idempotency_key=idempotency_key,
                method=method,
                request_body=request_body,
                status_code=e.status_code,
                response_body=e.problem_details
            )
        raise

    if isinstance(result, JSONResponse):
        response_dict = json.loads(result.body)
        status_code = result.status_code
    else:
        response_dict = result
        status_code = 200

    await idempotency_service.store_response(
        idempotency_key=idempotency_key,
        method=method,
        request_body=request_body,
        status_code=status_code,
        response_body=response_dict
    )

    return JSONResponse(status_code=status_code, content=response_dict)
