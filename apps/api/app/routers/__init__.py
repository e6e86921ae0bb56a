"""API routers."""

from app.routers.onboarding import router as onboarding_router
from app.routers.webhooks import router as webhooks_router

__all__ = [
    "onboarding_router",
    "webhooks_router",
]
