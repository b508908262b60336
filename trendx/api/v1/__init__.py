"""
API v1 Router

Aggregates all v1 endpoint routers.
"""

from fastapi import APIRouter

from trendx.api.v1.endpoints import auth, users

router = APIRouter()

# Include authentication routes
router.include_router(auth.router)

# Include user routes
router.include_router(users.router)
