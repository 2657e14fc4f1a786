"""
User endpoints.

GET /api/users/me: current user and the organizations they belong to
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthContext, get_auth_context
from app.core.database import get_session
from app.core.errors import APIError
from app.services import organizations as org_service
from app.services import users as user_service
from tmember_shared.schemas.organizations import OrganizationResponse
from tmember_shared.schemas.users import CurrentUserResponse, UserResponse

router = APIRouter()


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.get_user(auth.user_id, session)
    if not user:
        raise APIError(404, "User not found", "USER_NOT_FOUND")

    rows = await org_service.list_user_organizations(user.id, session)
    return CurrentUserResponse(
        user=UserResponse.model_validate(user, from_attributes=True),
        organizations=[
            OrganizationResponse(
                id=org.id,
                name=org.name,
                billing_details=org.billing_details,
                created_at=org.created_at,
                updated_at=org.updated_at,
                role=role,
            )
            for org, role in rows
        ],
    )
