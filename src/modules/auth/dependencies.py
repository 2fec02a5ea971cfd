"""JWT authentication dependency for FastAPI.

Validates Bearer tokens from the Authorization header and turns the claims
into an ``AuthenticatedUser``. Routers pass that identity explicitly into
every service call.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from src.config import settings
from src.exceptions import ForbiddenException, UnauthorizedException

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

BUYER_TYPES = ("BUYER", "BOTH", "PLATFORM")
SUPPLIER_TYPES = ("SUPPLIER", "BOTH", "PLATFORM")


@dataclass(frozen=True)
class AuthenticatedUser:
    """Caller identity extracted from a JWT token."""

    id: uuid.UUID
    email: str
    organization_id: uuid.UUID
    organization_type: str
    role: str

    @property
    def is_buyer(self) -> bool:
        return self.organization_type in BUYER_TYPES

    @property
    def is_supplier(self) -> bool:
        return self.organization_type in SUPPLIER_TYPES


def require_buyer(user: AuthenticatedUser) -> None:
    """Raise ForbiddenException unless the user is from a buyer org."""
    if not user.is_buyer:
        raise ForbiddenException("This action requires a buyer organization")


def require_supplier(user: AuthenticatedUser) -> None:
    """Raise ForbiddenException unless the user is from a supplier org."""
    if not user.is_supplier:
        raise ForbiddenException("This action requires a supplier organization")


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


def create_access_token(user: AuthenticatedUser, expires_in_minutes: int | None = None) -> str:
    """Issue a token carrying the claims ``get_current_user`` expects."""
    expires = datetime.now(UTC) + timedelta(
        minutes=expires_in_minutes or settings.jwt_expiry_minutes
    )
    claims = {
        "sub": str(user.id),
        "email": user.email,
        "org_id": str(user.organization_id),
        "org_type": user.organization_type,
        "role": user.role,
        "exp": expires,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


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
            organization_type=payload.get("org_type", "BUYER"),
            role=payload.get("role", "MEMBER"),
        )
    except (KeyError, ValueError) as exc:
        raise UnauthorizedException("Token is missing required claims") from exc

    request.state.user = user
    return user
