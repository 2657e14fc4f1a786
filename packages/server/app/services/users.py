"""
User service: lookup and registration of user accounts.
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
from app.models.user import User

log = structlog.get_logger()


async def get_user(user_id: int, session: AsyncSession) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.id == user_id, col(User.deleted_at).is_(None))
    )
    return result.scalar_one_or_none()


async def get_user_by_email(
    email: str, session: AsyncSession, *, include_deleted: bool = False
) -> Optional[User]:
    """Exact, case-sensitive match on email."""
    stmt = select(User).where(User.email == email)
    if not include_deleted:
        stmt = stmt.where(col(User.deleted_at).is_(None))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_user(email: str, password_hash: str, session: AsyncSession) -> User:
    """Insert a user. Raises 409 EMAIL_EXISTS when the email is taken."""
    # Soft-deleted accounts still hold their email under the unique index.
    if await get_user_by_email(email, session, include_deleted=True):
        raise APIError(409, "User with this email already exists", "EMAIL_EXISTS")

    user = User(email=email, password_hash=password_hash)
    session.add(user)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise APIError(409, "User with this email already exists", "EMAIL_EXISTS") from exc

    log.info("user.created", user_id=user.id, email=email)
    return user


async def soft_delete_user(user: User, session: AsyncSession) -> User:
    """Hide a user from default queries. Memberships are kept."""
    user.deleted_at = datetime.now(timezone.utc)
    session.add(user)
    await session.flush()
    log.info("user.soft_deleted", user_id=user.id)
    return user


async def purge_user(user_id: int, session: AsyncSession) -> None:
    """Physically remove a user. The database cascades to its memberships."""
    await session.execute(delete(User).where(User.id == user_id))
    await session.flush()
    log.info("user.purged", user_id=user_id)
