"""
MPBusinessHub FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mpbusinesshub.api import (
    admin_router,
    adverts_router,
    auth_router,
    businesses_router,
    packages_router,
    payments_router,
    products_router,
    registration_router,
    reviews_router,
    sessions_router,
    social_media_router,
)
from mpbusinesshub.config.settings import get_settings
from mpbusinesshub.database import close_db, init_db
from mpbusinesshub.middleware.errors import register_exception_handlers

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

if settings.sentry_dsn:
    sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.environment)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"{settings.service_name} v{settings.service_version} starting ({settings.environment})")
    if settings.environment in ("development", "test"):
        await init_db()
        logger.info("Database schema ready")
    if settings.payfast_test_mode:
        logger.info("PayFast running in sandbox mode")

    yield

    logger.info("Shutting down...")
    await close_db()


app = FastAPI(
    title=settings.service_name,
    description="Business directory API: listings, packages, adverts, reviews and payments",
    version=settings.service_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

register_exception_handlers(app)

# Registration must come before the business routes so /register is not
# captured by /businesses/{business_id}
app.include_router(auth_router)
app.include_router(sessions_router)
app.include_router(registration_router)
app.include_router(businesses_router)
app.include_router(packages_router)
app.include_router(payments_router)
app.include_router(products_router)
app.include_router(adverts_router)
app.include_router(reviews_router)
app.include_router(social_media_router)
app.include_router(admin_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "status": "running"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
