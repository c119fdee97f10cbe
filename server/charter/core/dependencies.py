"""FastAPI dependencies for database sessions and bearer authentication."""

from dataclasses import dataclass
from typing import AsyncGenerator, Optional

import jwt
from fastapi import Depends, Header
from jwt import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .database import get_async_session
from .exceptions import AuthenticationError, AuthorizationError


@dataclass(frozen=True)
class Principal:
    """Authenticated party as asserted by the identity provider."""

    subject: str
    role: str
    code: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Session dependency; tests override this to bind their own engine."""
    async for session in get_async_session():
        yield session


async def get_current_principal(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> Principal:
    """
    Authentication dependency that validates Bearer tokens.

    The token must be an HS256 JWT signed with the configured secret and
    carry ``sub``, ``role`` and ``user_code`` claims.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        Principal: Role and user code from the validated token

    Raises:
        AuthenticationError: If token is invalid or missing
    """
    if not authorization:
        raise AuthenticationError("Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError as e:
        raise AuthenticationError("Invalid authorization header format") from e

    if scheme.lower() != "bearer":
        raise AuthenticationError("Invalid authentication scheme")

    try:
        # Expiry is verified by PyJWT when the exp claim is present
        payload = jwt.decode(
            token,
            settings.bearer_token_secret,
            algorithms=["HS256"]
        )
    except PyJWTError as e:
        raise AuthenticationError(f"Token validation failed: {str(e)}") from e

    subject = payload.get("sub")
    role = payload.get("role")
    user_code = payload.get("user_code")
    if not subject or not role or not user_code:
        raise AuthenticationError("Invalid token payload")

    return Principal(subject=subject, role=role, code=user_code)


def require_role(*roles: str):
    """Build a dependency that only admits principals holding one of ``roles``."""

    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise AuthorizationError(
                detail=f"Role '{principal.role}' may not perform this operation",
                required_permissions=list(roles),
            )
        return principal

    return dependency


RequiredAuth = Depends(get_current_principal)
AdminOnly = Depends(require_role("admin"))
DatabaseSession = Depends(get_db)
