"""
System endpoints.

GET  /api/health: liveness plus database reachability
POST /api/echo  : returns the posted message unchanged
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from starlette.responses import JSONResponse

from app.core.database import Database, DatabaseError, get_database
from app.core.errors import APIError
from tmember_shared.schemas.system import EchoRequest, EchoResponse, HealthResponse

log = structlog.get_logger()
router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(database: Database = Depends(get_database)):
    """Health check endpoint. Answers 503 when the database is unreachable."""
    try:
        await database.ping()
    except DatabaseError as exc:
        log.warning("health.database_unavailable", error=str(exc))
        return JSONResponse(
            status_code=503,
            content=HealthResponse(status="error", database="error").model_dump(),
        )
    return HealthResponse(status="ok", database="ok")


@router.post("/echo", response_model=EchoResponse)
async def echo(body: EchoRequest):
    if not body.message.strip():
        raise APIError(400, "Message field cannot be empty", "EMPTY_MESSAGE")
    return EchoResponse(echo=body.message)
