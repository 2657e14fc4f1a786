"""Organization model."""

from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from .base import IDMixin, SoftDeleteMixin, TimestampMixin


class Organization(IDMixin, TimestampMixin, SoftDeleteMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    name: str = Field(sa_type=sa.String(255), unique=True, index=True, nullable=False)
    billing_details: Optional[dict] = Field(
        default=None,
        sa_type=sa.JSON().with_variant(JSONB(), "postgresql"),
    )
