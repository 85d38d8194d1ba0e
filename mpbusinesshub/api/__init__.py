"""
API routers.
"""

from mpbusinesshub.api.auth import router as auth_router
from mpbusinesshub.api.sessions import router as sessions_router
from mpbusinesshub.api.registration import router as registration_router
from mpbusinesshub.api.businesses import router as businesses_router
from mpbusinesshub.api.packages import router as packages_router
from mpbusinesshub.api.payments import router as payments_router
from mpbusinesshub.api.products import router as products_router
from mpbusinesshub.api.adverts import router as adverts_router
from mpbusinesshub.api.reviews import router as reviews_router
from mpbusinesshub.api.social_media import router as social_media_router
from mpbusinesshub.api.admin import router as admin_router

__all__ = [
    "auth_router",
    "sessions_router",
    "registration_router",
    "businesses_router",
    "packages_router",
    "payments_router",
    "products_router",
    "adverts_router",
    "reviews_router",
    "social_media_router",
    "admin_router",
]
