"""
TMember API Server

Entry point for the FastAPI application.
"""

from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import router as api_router
from app.core.config import get_settings
from app.core.database import Database, DatabaseConfig
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging

settings = get_settings()
log = structlog.get_logger()


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``database`` lets callers hand in an already initialized gateway; otherwise
    one is built from settings and connected on startup.
    """
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="TMember",
        description="Users, organizations and role-based memberships.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.database = database or Database(
        DatabaseConfig.from_settings(settings), echo=settings.debug
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,  # bearer tokens, no cookies
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )
    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")

    @app.on_event("startup")
    async def on_startup():
        db: Database = app.state.database
        log.info("tmember.starting", port=settings.port)
        if not db.is_initialized:
            await db.initialize()
            await db.migrate()
            await db.check_connection()

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("tmember.shutting_down")
        await app.state.database.close()

    return app


app = create_app()


def run() -> None:
    """CLI entry point for the API server."""
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
