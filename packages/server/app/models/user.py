"""User model."""

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import IDMixin, SoftDeleteMixin, TimestampMixin


class User(IDMixin, TimestampMixin, SoftDeleteMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(sa_type=sa.String(255), unique=True, index=True, nullable=False)
    password_hash: str = Field(nullable=False)  # bcrypt
