"""
Authentication and Authorization for TMember.

Supports:
- Email/Password credentials (bcrypt hashes, basic strength rules)
- HS256 JWT issuance and validation
- Bearer-token dependency producing a typed AuthContext
- Organization-scoped membership and admin checks
"""

from __future__ import annotations

import dataclasses
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import APIError
from app.services import memberships as membership_service
from tmember_shared.schemas.common import MembershipRole

log = structlog.get_logger()
settings = get_settings()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)

TOKEN_ISSUER = "tmember"

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
WEAK_PASSWORDS = {"password", "12345678", "qwerty123"}

# ---------------------------------------------------------------------------
# Password hashing & credential checks
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with the configured cost factor."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


def validate_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def validate_password(password: str) -> Optional[str]:
    """Return a description of the first failed rule, or None if acceptable."""
    if len(password) < 8:
        return "password must be at least 8 characters long"
    if not re.search(r"[A-Z]", password):
        return "password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return "password must contain at least one lowercase letter"
    if not re.search(r"[0-9]", password):
        return "password must contain at least one digit"
    if password.lower() in WEAK_PASSWORDS:
        return "password is too common and weak"
    return None


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

class InvalidTokenError(Exception):
    """Signature, expiry or shape check failed."""


@dataclasses.dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str


def create_jwt(
    user_id: int,
    email: str,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT carrying the user's id and email."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "user_id": user_id,
        "email": email,
        "iss": TOKEN_ISSUER,
        "iat": now,
        "exp": exp,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> TokenClaims:
    """Verify a JWT. Raises InvalidTokenError on any failure."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=TOKEN_ISSUER,
            options={"require": ["exp", "iat", "user_id"]},
        )
        return TokenClaims(user_id=int(payload["user_id"]), email=str(payload.get("email", "")))
    except (jwt.PyJWTError, TypeError, ValueError) as exc:
        raise InvalidTokenError("invalid or expired token") from exc


# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class AuthContext:
    """Identity of the caller, plus the active organization once authorized."""

    user_id: int
    email: str
    organization_id: Optional[int] = None
    role: Optional[MembershipRole] = None

    def with_organization(self, organization_id: int, role: MembershipRole) -> "AuthContext":
        return dataclasses.replace(self, organization_id=organization_id, role=role)

    @property
    def is_admin(self) -> bool:
        return self.role == MembershipRole.ADMIN


def _unauthorized(message: str, code: str) -> APIError:
    return APIError(401, message, code, headers={"WWW-Authenticate": "Bearer"})


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Pull the token out of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        raise _unauthorized("Authorization header required", "MISSING_AUTH_HEADER")
    if not authorization.startswith("Bearer "):
        raise _unauthorized("Invalid authorization header format", "INVALID_AUTH_FORMAT")
    # Only the prefix is removed; a blank token fails signature checks instead.
    token = authorization[len("Bearer "):]
    if not token:
        raise _unauthorized("Token is required", "MISSING_TOKEN")
    return token


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

async def get_auth_context(
    request: Request,
    authorization: Optional[str] = Depends(api_key_header),
) -> AuthContext:
    """Main authentication dependency. Requires a valid bearer JWT."""
    token = extract_bearer_token(authorization)
    try:
        claims = decode_jwt(token)
    except InvalidTokenError:
        log.info("auth.invalid_token", path=request.url.path)
        raise _unauthorized("Invalid or expired token", "INVALID_TOKEN")

    auth = AuthContext(user_id=claims.user_id, email=claims.email)
    request.state.auth = auth
    return auth


# ---------------------------------------------------------------------------
# Authorization dependencies (organization scope)
# ---------------------------------------------------------------------------

async def require_org_member(
    organization_id: int,
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
) -> AuthContext:
    """Caller must hold a membership in the organization named in the path."""
    membership = await membership_service.find_membership(
        auth.user_id, organization_id, session
    )
    if membership is None:
        raise APIError(403, "You don't have access to this organization", "ACCESS_DENIED")

    scoped = auth.with_organization(organization_id, MembershipRole(membership.role))
    request.state.auth = scoped
    return scoped


async def require_org_admin(
    auth: AuthContext = Depends(require_org_member),
) -> AuthContext:
    """Requires the admin role in the organization."""
    if not auth.is_admin:
        raise APIError(403, "Admin access required", "ADMIN_REQUIRED")
    return auth
