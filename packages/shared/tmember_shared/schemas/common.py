from enum import Enum
from typing import Optional

from pydantic import BaseModel


class MembershipRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
    code: Optional[str] = None
