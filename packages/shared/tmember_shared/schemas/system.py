"""Health and echo schemas."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    database: str


class EchoRequest(BaseModel):
    message: str


class EchoResponse(BaseModel):
    echo: str
