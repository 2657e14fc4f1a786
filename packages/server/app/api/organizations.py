"""
Organization API endpoints.

GET    /api/organizations                                  : List the caller's organizations
POST   /api/organizations                                  : Create an organization (caller becomes admin)
POST   /api/organizations/{organization_id}/switch         : Make an organization the active one
GET    /api/organizations/{organization_id}/members        : List members (admin)
PUT    /api/organizations/{organization_id}/members/{membership_id}/role: Change a role (admin)
DELETE /api/organizations/{organization_id}/members/{membership_id}     : Remove a member (admin)
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    AuthContext,
    get_auth_context,
    require_org_admin,
    require_org_member,
)
from app.core.database import get_session
from app.core.errors import APIError
from app.models.organization import Organization
from app.services import memberships as membership_service
from app.services import organizations as org_service
from tmember_shared.schemas.organizations import (
    MemberListResponse,
    MemberRemoveResponse,
    MemberResponse,
    MemberRoleUpdateRequest,
    MemberRoleUpdateResponse,
    OrganizationCreateRequest,
    OrganizationListResponse,
    OrganizationResponse,
    SwitchOrganizationResponse,
)

log = structlog.get_logger()
router = APIRouter()


def _org_response(org: Organization, role: Optional[str] = None) -> OrganizationResponse:
    return OrganizationResponse(
        id=org.id,
        name=org.name,
        billing_details=org.billing_details,
        created_at=org.created_at,
        updated_at=org.updated_at,
        role=role,
    )


@router.get("", response_model=OrganizationListResponse)
async def list_organizations(
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    """List organizations the authenticated user belongs to."""
    rows = await org_service.list_user_organizations(auth.user_id, session)
    return OrganizationListResponse(
        organizations=[_org_response(org, role) for org, role in rows]
    )


@router.post("", response_model=OrganizationResponse, status_code=201)
async def create_organization(
    body: OrganizationCreateRequest,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    """Create a new organization. The creator becomes an admin."""
    org, membership = await org_service.create_organization(body.name, auth.user_id, session)
    return _org_response(org, membership.role)


@router.post("/{organization_id}/switch", response_model=SwitchOrganizationResponse)
async def switch_organization(
    organization_id: int,
    auth: AuthContext = Depends(require_org_member),
    session: AsyncSession = Depends(get_session),
):
    """Confirm access to an organization; the client keeps it as its active one."""
    org = await org_service.get_organization(organization_id, session)
    if org is None:
        raise APIError(404, "Organization not found", "ORGANIZATION_NOT_FOUND")

    log.info("org.switched", org_id=organization_id, user_id=auth.user_id)
    return SwitchOrganizationResponse(
        organization=_org_response(org, auth.role),
        message="Successfully switched to organization",
    )


@router.get("/{organization_id}/members", response_model=MemberListResponse)
async def list_members(
    organization_id: int,
    auth: AuthContext = Depends(require_org_admin),
    session: AsyncSession = Depends(get_session),
):
    """List all members of the organization (Admin only)."""
    rows = await membership_service.list_members(organization_id, session)
    return MemberListResponse(
        members=[
            MemberResponse(
                id=membership.id,
                user_id=membership.user_id,
                email=user.email,
                role=membership.role,
            )
            for membership, user in rows
        ]
    )


@router.put(
    "/{organization_id}/members/{membership_id}/role",
    response_model=MemberRoleUpdateResponse,
)
async def update_member_role(
    organization_id: int,
    membership_id: int,
    body: MemberRoleUpdateRequest,
    auth: AuthContext = Depends(require_org_admin),
    session: AsyncSession = Depends(get_session),
):
    """Change a member's role (Admin only)."""
    membership = await membership_service.update_member_role(
        organization_id, membership_id, body.role, session
    )
    return MemberRoleUpdateResponse(
        message="Member role updated successfully",
        membership_id=membership.id,
        new_role=membership.role,
    )


@router.delete(
    "/{organization_id}/members/{membership_id}",
    response_model=MemberRemoveResponse,
)
async def remove_member(
    organization_id: int,
    membership_id: int,
    auth: AuthContext = Depends(require_org_admin),
    session: AsyncSession = Depends(get_session),
):
    """Remove a member from the organization (Admin only)."""
    membership = await membership_service.remove_member(organization_id, membership_id, session)
    return MemberRemoveResponse(
        message="Member removed successfully",
        membership_id=membership.id,
    )
