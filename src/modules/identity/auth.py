"""JWT authentication dependency for FastAPI.

Validates Bearer tokens from the Authorization header and extracts the acting
user's identity together with their permission set.
"""

import logging
import uuid
from dataclasses import dataclass, field

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from src.config import settings
from src.exceptions import UnauthorizedException
from src.modules.identity.constants import PERMISSION_INTEGRATION

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    """The caller of an order operation.

    ``permissions`` holds coarse grants such as ``integration``, ``admin`` and
    ``staff``. An integration identity is a trusted system of record.
    """

    id: uuid.UUID
    email: str
    organization_id: uuid.UUID
    permissions: frozenset[str] = field(default_factory=frozenset)

    def has_any_permission(self, *permissions: str) -> bool:
        return any(p in self.permissions for p in permissions)

    @property
    def is_integration(self) -> bool:
        return PERMISSION_INTEGRATION in self.permissions


def _decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises UnauthorizedException on failure."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        raise UnauthorizedException("Invalid or expired token") from exc


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthenticatedUser:
    """FastAPI dependency that extracts and validates the current user from JWT."""
    if credentials is None:
        raise UnauthorizedException("Authentication required")

    payload = _decode_token(credentials.credentials)

    try:
        user = AuthenticatedUser(
            id=uuid.UUID(payload["sub"]),
            email=payload["email"],
            organization_id=uuid.UUID(payload["org_id"]),
            permissions=frozenset(payload.get("permissions", [])),
        )
    except (KeyError, ValueError) as exc:
        raise UnauthorizedException("Token is missing required claims") from exc

    request.state.user = user
    return user
