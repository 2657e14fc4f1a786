"""
API error type and the exception handlers that render every failure as
``{"error": ..., "message": ..., "code": ...}``.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from tmember_shared.schemas.common import ErrorResponse

log = structlog.get_logger()


class APIError(HTTPException):
    """HTTPException carrying a short machine-readable code."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: str,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.message = message
        self.code = code


def error_body(status_code: int, message: str, code: Optional[str] = None) -> dict:
    return ErrorResponse(
        error=HTTPStatus(status_code).phrase, message=message, code=code
    ).model_dump(exclude_none=True)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = getattr(exc, "code", None)
    message = exc.detail if isinstance(exc.detail, str) else HTTPStatus(exc.status_code).phrase
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, message, code),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if any(err.get("loc", ("",))[0] == "body" for err in errors):
        message, code = "Invalid JSON payload", "INVALID_JSON"
    else:
        message, code = "Invalid request parameters", "INVALID_PARAMETER"
    log.info("request.invalid", path=request.url.path, code=code, errors=len(errors))
    return JSONResponse(status_code=400, content=error_body(400, message, code))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
