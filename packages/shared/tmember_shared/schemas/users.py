"""User and authentication schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from .organizations import OrganizationResponse


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    """Public view of a user. The password hash is never part of it."""
    id: int
    email: str
    created_at: datetime
    updated_at: datetime


class AuthResponse(BaseModel):
    user: UserResponse
    token: str


class CurrentUserResponse(BaseModel):
    user: UserResponse
    organizations: list[OrganizationResponse]
