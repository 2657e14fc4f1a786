"""Base mixins for SQLModel tables."""

from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IDMixin(SQLModel):
    id: Optional[int] = Field(default=None, primary_key=True)


class TimestampMixin(SQLModel):
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.text("CURRENT_TIMESTAMP")},
        sa_type=sa.DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.text("CURRENT_TIMESTAMP"), "onupdate": _utcnow},
        sa_type=sa.DateTime(timezone=True),
    )


class SoftDeleteMixin(SQLModel):
    """Rows with ``deleted_at`` set are hidden from default queries."""

    deleted_at: Optional[datetime] = Field(
        default=None,
        index=True,
        sa_type=sa.DateTime(timezone=True),
    )
