"""
Membership service: creation, lookup, role changes and removal of
organization memberships.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from app.core.errors import APIError
from app.models.membership import OrganizationMembership
from app.models.organization import Organization
from app.models.user import User
from app.services import users as user_service
from tmember_shared.schemas.common import MembershipRole

log = structlog.get_logger()


def coerce_role(role: str | MembershipRole | None) -> MembershipRole:
    """Map anything outside {admin, member} to member."""
    try:
        return MembershipRole(role)
    except ValueError:
        return MembershipRole.MEMBER


async def create_membership(
    user_id: int,
    organization_id: int,
    role: str | MembershipRole | None,
    session: AsyncSession,
) -> OrganizationMembership:
    """Insert a membership. Unknown roles are stored as ``member``.

    Raises 404 USER_NOT_FOUND for a missing or soft-deleted user and 409
    MEMBERSHIP_EXISTS when the pair is already linked.
    """
    if await user_service.get_user(user_id, session) is None:
        raise APIError(404, "User not found", "USER_NOT_FOUND")

    effective = coerce_role(role)
    if role is not None and effective.value != getattr(role, "value", role):
        log.warning(
            "membership.role_coerced",
            requested=str(role),
            stored=effective.value,
            user_id=user_id,
            organization_id=organization_id,
        )

    membership = OrganizationMembership(
        user_id=user_id,
        organization_id=organization_id,
        role=effective.value,
    )
    session.add(membership)
    try:
        await session.flush()
    except IntegrityError as exc:
        log.info(
            "membership.create_conflict",
            user_id=user_id,
            organization_id=organization_id,
            error=str(exc.orig),
        )
        raise APIError(
            409, "User is already a member of this organization", "MEMBERSHIP_EXISTS"
        ) from exc

    log.info(
        "membership.created",
        membership_id=membership.id,
        user_id=user_id,
        organization_id=organization_id,
        role=effective.value,
    )
    return membership


async def find_membership(
    user_id: int, organization_id: int, session: AsyncSession
) -> Optional[OrganizationMembership]:
    """Membership of a user in a live (not soft-deleted) organization."""
    result = await session.execute(
        select(OrganizationMembership)
        .join(Organization, Organization.id == OrganizationMembership.organization_id)
        .where(
            OrganizationMembership.user_id == user_id,
            OrganizationMembership.organization_id == organization_id,
            col(Organization.deleted_at).is_(None),
        )
    )
    return result.scalar_one_or_none()


async def list_members(
    organization_id: int, session: AsyncSession
) -> list[tuple[OrganizationMembership, User]]:
    """All memberships of an organization with their (live) users."""
    result = await session.execute(
        select(OrganizationMembership, User)
        .join(User, User.id == OrganizationMembership.user_id)
        .where(
            OrganizationMembership.organization_id == organization_id,
            col(User.deleted_at).is_(None),
        )
        .order_by(OrganizationMembership.id)
    )
    return [(membership, user) for membership, user in result.all()]


async def _get_org_membership(
    organization_id: int, membership_id: int, session: AsyncSession
) -> OrganizationMembership:
    result = await session.execute(
        select(OrganizationMembership).where(
            OrganizationMembership.id == membership_id,
            OrganizationMembership.organization_id == organization_id,
        )
    )
    membership = result.scalar_one_or_none()
    if membership is None:
        raise APIError(404, "Membership not found", "MEMBERSHIP_NOT_FOUND")
    return membership


async def update_member_role(
    organization_id: int,
    membership_id: int,
    role: str,
    session: AsyncSession,
) -> OrganizationMembership:
    """Change a member's role. Unlike creation, unknown roles are rejected."""
    try:
        new_role = MembershipRole(role)
    except ValueError:
        raise APIError(400, "Invalid role. Must be 'admin' or 'member'", "INVALID_ROLE")

    membership = await _get_org_membership(organization_id, membership_id, session)
    if new_role != MembershipRole.ADMIN:
        await _ensure_other_admin(
            membership, session, "Cannot demote the last admin of organization"
        )

    membership.role = new_role.value
    session.add(membership)
    await session.flush()

    log.info(
        "membership.role_updated",
        membership_id=membership_id,
        organization_id=organization_id,
        role=new_role.value,
    )
    return membership


async def count_admins(
    organization_id: int,
    session: AsyncSession,
    *,
    exclude_membership_id: Optional[int] = None,
) -> int:
    """Admins of an organization whose user accounts are live."""
    stmt = (
        select(func.count())
        .select_from(OrganizationMembership)
        .join(User, User.id == OrganizationMembership.user_id)
        .where(
            OrganizationMembership.organization_id == organization_id,
            OrganizationMembership.role == MembershipRole.ADMIN.value,
            col(User.deleted_at).is_(None),
        )
    )
    if exclude_membership_id is not None:
        stmt = stmt.where(OrganizationMembership.id != exclude_membership_id)
    result = await session.execute(stmt)
    return result.scalar_one()


async def _ensure_other_admin(
    membership: OrganizationMembership, session: AsyncSession, message: str
) -> None:
    """Raise LAST_ADMIN_ERROR if dropping this admin leaves no live admin."""
    if membership.role != MembershipRole.ADMIN.value:
        return
    others = await count_admins(
        membership.organization_id, session, exclude_membership_id=membership.id
    )
    if others == 0:
        raise APIError(400, message, "LAST_ADMIN_ERROR")


async def remove_member(
    organization_id: int, membership_id: int, session: AsyncSession
) -> OrganizationMembership:
    """Hard-delete a membership. The last admin of an organization stays."""
    membership = await _get_org_membership(organization_id, membership_id, session)
    await _ensure_other_admin(
        membership, session, "Cannot remove the last admin from organization"
    )

    await session.execute(
        delete(OrganizationMembership).where(OrganizationMembership.id == membership_id)
    )
    await session.flush()

    log.info(
        "membership.removed",
        membership_id=membership_id,
        organization_id=organization_id,
        user_id=membership.user_id,
    )
    return membership
