"""User-Organization membership (join table)."""

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from tmember_shared.schemas.common import MembershipRole

from .base import IDMixin, TimestampMixin


class OrganizationMembership(IDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organization_memberships"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "organization_id", name="unique_user_organization"),
        sa.CheckConstraint("role IN ('admin', 'member')", name="ck_membership_role"),
    )

    user_id: int = Field(
        sa_column=sa.Column(
            sa.Integer,
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_memberships_user"),
            nullable=False,
            index=True,
        )
    )
    organization_id: int = Field(
        sa_column=sa.Column(
            sa.Integer,
            sa.ForeignKey(
                "organizations.id", ondelete="CASCADE", name="fk_memberships_organization"
            ),
            nullable=False,
            index=True,
        )
    )
    role: str = Field(
        default=MembershipRole.MEMBER.value, sa_type=sa.String(16), nullable=False
    )  # admin | member
