"""
Database connection and session management.

A single ``Database`` gateway is built at startup, kept on ``app.state`` and
handed to request handlers through ``get_database`` / ``get_session``.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

import structlog
from fastapi import Depends, Request
from pydantic import BaseModel
from sqlalchemy import event, text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

import app.models  # noqa: F401  (populates SQLModel.metadata)
from app.core.config import Settings

log = structlog.get_logger()

MAX_CONNECT_ATTEMPTS = 5
INITIAL_RETRY_DELAY_SECONDS = 2

NOT_INITIALIZED = "database connection is not initialized"

# Applied after create_all; each may already exist from the table definition
# or an earlier run.
EXTRA_CONSTRAINTS: list[tuple[str, str]] = [
    (
        "unique_user_organization",
        "ALTER TABLE organization_memberships "
        "ADD CONSTRAINT unique_user_organization UNIQUE (user_id, organization_id)",
    ),
    (
        "fk_memberships_user",
        "ALTER TABLE organization_memberships "
        "ADD CONSTRAINT fk_memberships_user "
        "FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE",
    ),
    (
        "fk_memberships_organization",
        "ALTER TABLE organization_memberships "
        "ADD CONSTRAINT fk_memberships_organization "
        "FOREIGN KEY (organization_id) REFERENCES organizations(id) ON DELETE CASCADE",
    ),
]


class DatabaseError(Exception):
    """Raised for connection, migration and liveness failures."""


class DatabaseConfig(BaseModel):
    host: str = "localhost"
    port: int = 5432
    user: str = "tmember"
    password: str = "password"
    name: str = "tmember_dev"
    max_idle_conns: int = 10
    max_open_conns: int = 100
    conn_max_lifetime: int = 3600  # seconds
    url: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "DatabaseConfig":
        return cls(
            host=settings.db_host,
            port=settings.db_port,
            user=settings.db_user,
            password=settings.db_password,
            name=settings.db_name,
            max_idle_conns=settings.db_max_idle_conns,
            max_open_conns=settings.db_max_open_conns,
            conn_max_lifetime=settings.db_conn_max_lifetime,
            url=settings.database_url,
        )

    def sqlalchemy_url(self) -> URL:
        if self.url:
            return make_url(self.url)
        return URL.create(
            "postgresql+asyncpg",
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.name,
        )


def engine_options(config: DatabaseConfig, url: URL) -> dict[str, Any]:
    """Pool options for ``create_async_engine``.

    Idle connections map onto ``pool_size``; the rest of the open-connection
    budget becomes ``max_overflow``. SQLite uses its own single-file pools and
    takes no sizing arguments.
    """
    options: dict[str, Any] = {"pool_pre_ping": True}
    if url.get_backend_name() != "sqlite":
        options.update(
            pool_size=config.max_idle_conns,
            max_overflow=max(config.max_open_conns - config.max_idle_conns, 0),
            pool_recycle=config.conn_max_lifetime,
        )
    return options


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def connect(config: DatabaseConfig, *, echo: bool = False) -> AsyncEngine:
    """Open a pooled engine and verify it with a round trip.

    Raises DatabaseError("failed to connect to database: ...") on any failure.
    """
    try:
        url = config.sqlalchemy_url()
        engine = create_async_engine(url, echo=echo, future=True, **engine_options(config, url))
    except Exception as exc:
        raise DatabaseError(f"failed to connect to database: {exc}") from exc

    if url.get_backend_name() == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        await engine.dispose()
        raise DatabaseError(f"failed to connect to database: {exc}") from exc

    log.info(
        "db.connected",
        target=url.render_as_string(hide_password=True),
        max_idle=config.max_idle_conns,
        max_open=config.max_open_conns,
        max_lifetime_seconds=config.conn_max_lifetime,
    )
    return engine


class Database:
    """Owns the process-wide engine and hands out sessions."""

    def __init__(self, config: DatabaseConfig, *, echo: bool = False):
        self.config = config
        self._echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseError(NOT_INITIALIZED)
        return self._engine

    async def initialize(self) -> None:
        """Connect, retrying with exponential backoff (2s, 4s, 8s, 16s)."""
        delay = INITIAL_RETRY_DELAY_SECONDS
        last_exc: Optional[DatabaseError] = None

        for attempt in range(1, MAX_CONNECT_ATTEMPTS + 1):
            try:
                engine = await connect(self.config, echo=self._echo)
            except DatabaseError as exc:
                last_exc = exc
                log.warning(
                    "db.connect_failed",
                    attempt=attempt,
                    max_attempts=MAX_CONNECT_ATTEMPTS,
                    error=str(exc),
                )
                if attempt < MAX_CONNECT_ATTEMPTS:
                    log.info("db.connect_retry", delay_seconds=delay)
                    await asyncio.sleep(delay)
                    delay *= 2
                continue

            self._engine = engine
            self._session_factory = sessionmaker(
                engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            log.info("db.initialized", attempt=attempt)
            return

        raise DatabaseError(
            f"failed to connect to database after {MAX_CONNECT_ATTEMPTS} attempts: {last_exc}"
        ) from last_exc

    async def migrate(self) -> None:
        """Create all tables, then best-effort add the membership constraints."""
        engine = self.engine
        log.info("db.migrate_started")

        try:
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
        except Exception as exc:
            raise DatabaseError(f"failed to run database migrations: {exc}") from exc

        for name, ddl in EXTRA_CONSTRAINTS:
            # One transaction per statement: a failed ALTER aborts its transaction.
            try:
                async with engine.begin() as conn:
                    await conn.execute(text(ddl))
            except Exception as exc:
                log.info("db.constraint_skipped", constraint=name, reason=str(exc))
            else:
                log.info("db.constraint_added", constraint=name)

        log.info("db.migrate_completed")

    async def ping(self) -> None:
        engine = self.engine
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as exc:
            raise DatabaseError(f"database ping failed: {exc}") from exc

    async def check_connection(self) -> str:
        """Ping and report the server version. Returns the version string."""
        await self.ping()
        engine = self.engine
        query = "SELECT sqlite_version()" if engine.dialect.name == "sqlite" else "SELECT version()"
        try:
            async with engine.connect() as conn:
                version = (await conn.execute(text(query))).scalar_one()
        except Exception as exc:
            raise DatabaseError(f"failed to execute test query: {exc}") from exc
        log.info("db.connection_checked", dialect=engine.dialect.name, version=str(version))
        return str(version)

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        log.info("db.closed")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session that commits on success and rolls back on error."""
        if self._session_factory is None:
            raise DatabaseError(NOT_INITIALIZED)
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


def get_database(request: Request) -> Database:
    """FastAPI dependency for the process-wide gateway."""
    return request.app.state.database


async def get_session(
    database: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with database.session() as session:
        yield session
