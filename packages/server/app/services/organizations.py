"""
Organization service: creation, listing and lifecycle of organizations.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from app.core.errors import APIError
from app.models.membership import OrganizationMembership
from app.models.organization import Organization
from app.services.memberships import create_membership
from tmember_shared.schemas.common import MembershipRole

log = structlog.get_logger()


async def list_user_organizations(
    user_id: int, session: AsyncSession
) -> list[tuple[Organization, str]]:
    """List all live organizations a user belongs to, with their role."""
    result = await session.execute(
        select(Organization, OrganizationMembership.role)
        .join(OrganizationMembership, OrganizationMembership.organization_id == Organization.id)
        .where(OrganizationMembership.user_id == user_id)
        .where(col(Organization.deleted_at).is_(None))
        .order_by(Organization.id)
    )
    return [(org, role) for org, role in result.all()]


async def get_organization(organization_id: int, session: AsyncSession) -> Optional[Organization]:
    result = await session.execute(
        select(Organization).where(
            Organization.id == organization_id,
            col(Organization.deleted_at).is_(None),
        )
    )
    return result.scalar_one_or_none()


async def create_organization(
    name: str,
    creator_id: int,
    session: AsyncSession,
    *,
    billing_details: Optional[dict] = None,
) -> tuple[Organization, OrganizationMembership]:
    """Create an organization and make the creator its admin."""
    name = name.strip()
    if not name:
        raise APIError(400, "Organization name is required", "INVALID_NAME")

    # Unique index covers soft-deleted rows too.
    existing = await session.execute(select(Organization).where(Organization.name == name))
    if existing.scalar_one_or_none():
        raise APIError(409, "Organization name already exists", "NAME_EXISTS")

    org = Organization(name=name, billing_details=billing_details)
    session.add(org)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise APIError(409, "Organization name already exists", "NAME_EXISTS") from exc

    membership = await create_membership(creator_id, org.id, MembershipRole.ADMIN, session)

    log.info("org.created", org_id=org.id, name=name, creator=creator_id)
    return org, membership


async def soft_delete_organization(org: Organization, session: AsyncSession) -> Organization:
    """Hide an organization from default queries."""
    org.deleted_at = datetime.now(timezone.utc)
    session.add(org)
    await session.flush()
    log.info("org.soft_deleted", org_id=org.id)
    return org


async def purge_organization(organization_id: int, session: AsyncSession) -> None:
    """Physically remove an organization. The database cascades to memberships."""
    await session.execute(delete(Organization).where(Organization.id == organization_id))
    await session.flush()
    log.info("org.purged", org_id=organization_id)
