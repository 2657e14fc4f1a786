"""
API Router

Everything is served under /api.
"""

from fastapi import APIRouter

from . import auth, organizations, system, users

router = APIRouter()

router.include_router(system.router, tags=["System"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
