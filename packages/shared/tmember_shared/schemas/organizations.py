"""
Organization-related Pydantic schemas.

Covers: organization create/list/switch and member management
request/response bodies.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from .common import MembershipRole


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrganizationCreateRequest(BaseModel):
    name: str = Field(..., max_length=255, description="Unique organization name")


class MemberRoleUpdateRequest(BaseModel):
    # Plain str so an unknown role is answered with INVALID_ROLE, not a schema error
    role: str


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrganizationResponse(BaseModel):
    id: int
    name: str
    billing_details: Optional[dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    role: Optional[MembershipRole] = Field(
        default=None, description="The requesting user's role in this organization"
    )


class OrganizationListResponse(BaseModel):
    organizations: list[OrganizationResponse]


class SwitchOrganizationResponse(BaseModel):
    organization: OrganizationResponse
    message: str


class MemberResponse(BaseModel):
    id: int
    user_id: int
    email: str
    role: MembershipRole


class MemberListResponse(BaseModel):
    members: list[MemberResponse]


class MemberRoleUpdateResponse(BaseModel):
    message: str
    membership_id: int
    new_role: MembershipRole


class MemberRemoveResponse(BaseModel):
    message: str
    membership_id: int
