"""
API routers for the SKD tryout backend.

This module contains all API endpoint routers:
- auth: Authentication endpoints (login, register, logout, profile)
- packages: Package catalogue and rankings
- tryouts: Timed tryout sessions
- payments: Package purchases and the gateway callback
- vouchers: Voucher checks and usage history
- mentors: Mentor applications and back-office
- chat: Chat rooms and messages
- admin: Administrative endpoints
"""

from fastapi import APIRouter

# Import individual routers
from .auth import router as auth_router
from .packages import router as packages_router
from .tryouts import router as tryouts_router
from .payments import router as payments_router
from .vouchers import router as vouchers_router
from .mentors import router as mentors_router
from .chat import router as chat_router

# Import admin sub-routers
from .admin import admin_router

# Create main API router
api_router = APIRouter()

# Include all routers with their prefixes
api_router.include_router(
    auth_router,
    prefix="/auth",
    tags=["authentication"]
)

api_router.include_router(
    packages_router,
    prefix="/packages",
    tags=["packages"]
)

api_router.include_router(
    tryouts_router,
    prefix="/tryouts",
    tags=["tryouts"]
)

api_router.include_router(
    payments_router,
    prefix="/payments",
    tags=["payments"]
)

api_router.include_router(
    vouchers_router,
    prefix="/vouchers",
    tags=["vouchers"]
)

api_router.include_router(
    mentors_router,
    prefix="/mentors",
    tags=["mentors"]
)

api_router.include_router(
    chat_router,
    prefix="/chat",
    tags=["chat"]
)

api_router.include_router(
    admin_router,
    prefix="/admin",
    tags=["admin"]
)

# Export all routers
__all__ = [
    "api_router",
    "auth_router",
    "packages_router",
    "tryouts_router",
    "payments_router",
    "vouchers_router",
    "mentors_router",
    "chat_router",
    "admin_router"
]
