"""API routers module"""

from app.routers.auth import router as auth_router
from app.routers.onboarding import router as onboarding_router
from app.routers.billing import router as billing_router

__all__ = [
    "auth_router",
    "onboarding_router",
    "billing_router",
]
