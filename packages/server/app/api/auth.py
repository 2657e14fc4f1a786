"""
Authentication endpoints.

POST /api/auth/register: create an account and receive a token
POST /api/auth/login   : exchange email/password for a token
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    create_jwt,
    hash_password,
    validate_email,
    validate_password,
    verify_password,
)
from app.core.database import get_session
from app.core.errors import APIError
from app.services import users as user_service
from tmember_shared.schemas.users import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    UserResponse,
)

log = structlog.get_logger()
router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user with email/password."""
    if not validate_email(body.email):
        raise APIError(400, "Invalid email format", "INVALID_EMAIL")

    problem = validate_password(body.password)
    if problem:
        raise APIError(400, problem, "WEAK_PASSWORD")

    user = await user_service.create_user(body.email, hash_password(body.password), session)
    token = create_jwt(user.id, user.email)

    log.info("user.registered", user_id=user.id, email=user.email)
    return AuthResponse(user=UserResponse.model_validate(user, from_attributes=True), token=token)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT."""
    user = await user_service.get_user_by_email(body.email, session)

    if not user or not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", email=body.email)
        raise APIError(401, "Invalid email or password", "INVALID_CREDENTIALS")

    token = create_jwt(user.id, user.email)
    log.info("auth.login_success", user_id=user.id)
    return AuthResponse(user=UserResponse.model_validate(user, from_attributes=True), token=token)
