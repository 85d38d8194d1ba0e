"""
Pytest configuration and fixtures for MPBusinessHub tests.

Provides fixtures for:
- Database session (file-based SQLite)
- Test client with the database dependency overridden
- Packages, users, businesses and session tokens
"""

import os
from datetime import timedelta
from typing import AsyncGenerator, Optional

os.environ.setdefault("ENV", "test")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from mpbusinesshub.config.settings import get_settings
from mpbusinesshub.database import get_db
from mpbusinesshub.main import app
from mpbusinesshub.models import Business, Package, User
from mpbusinesshub.models.base import Base, utc_now
from mpbusinesshub.models.business import STATUS_APPROVED
from mpbusinesshub.scripts.seed_data import build_packages
from mpbusinesshub.security import hash_password
from mpbusinesshub.services.tiers import get_tier
from mpbusinesshub.services.tokens import SessionTokenManager

# Test database URL (use file-based SQLite for tests to ensure table persistence)
TEST_DATABASE_URL = "sqlite+aiosqlite:///test_db.sqlite"

DEFAULT_PASSWORD = "password123"
DESCRIPTION = (
    "A family run lodge on the banks of the Crocodile River offering guided "
    "tours and self catering chalets."
)


@pytest_asyncio.fixture
async def test_engine():
    """Create test database engine."""
    if os.path.exists("test_db.sqlite"):
        os.remove("test_db.sqlite")

    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()

    if os.path.exists("test_db.sqlite"):
        os.remove("test_db.sqlite")


@pytest_asyncio.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session


@pytest.fixture
def settings():
    """Application settings with PayFast checks that need the network disabled."""
    config = get_settings()
    original = (config.payfast_validate_server, config.payfast_passphrase)
    config.payfast_validate_server = False
    config.payfast_passphrase = None
    yield config
    config.payfast_validate_server, config.payfast_passphrase = original


@pytest_asyncio.fixture
async def packages(test_db: AsyncSession) -> dict:
    """The four subscription packages keyed by name."""
    items = build_packages()
    for package in items:
        test_db.add(package)
    await test_db.commit()
    return {package.name: package for package in items}


@pytest_asyncio.fixture
async def make_user(test_db: AsyncSession):
    """Factory creating users."""

    async def _make_user(
        email: str,
        password: str = DEFAULT_PASSWORD,
        role: str = "user",
        verified: bool = True,
        name: str = "Test User",
    ) -> User:
        user = User(
            name=name,
            email=email,
            hashed_password=hash_password(password),
            role=role,
            email_verified_at=utc_now() if verified else None,
        )
        test_db.add(user)
        await test_db.commit()
        await test_db.refresh(user)
        return user

    return _make_user


@pytest_asyncio.fixture
async def make_business(test_db: AsyncSession, packages: dict):
    """Factory creating a business on a given package with fresh quotas."""

    async def _make_business(
        owner: User,
        package_name: str = "Basic",
        name: str = "Crocodile River Lodge",
        status: str = STATUS_APPROVED,
        category: str = "Tourism",
        district: str = "Mbombela",
        adverts_remaining: Optional[int] = None,
        social_features_remaining: Optional[int] = None,
    ) -> Business:
        tier = get_tier(package_name)
        package: Package = packages[tier.name]
        now = utc_now()
        business = Business(
            user_id=owner.id,
            package_id=package.id,
            package_type=tier.name,
            name=name,
            category=category,
            district=district,
            description=DESCRIPTION,
            phone="013 755 1234",
            email=owner.email,
            address="12 River Road, Mbombela",
            status=status,
            billing_cycle="monthly" if tier.rank else None,
            subscription_ends_at=now + timedelta(days=30) if tier.rank else None,
            adverts_remaining=tier.advert_limit if adverts_remaining is None else adverts_remaining,
            social_features_remaining=(
                tier.social_feature_limit if social_features_remaining is None else social_features_remaining
            ),
            last_adverts_reset=now,
        )
        test_db.add(business)
        await test_db.commit()
        await test_db.refresh(business)
        return business

    return _make_business


@pytest_asyncio.fixture
async def make_token(test_db: AsyncSession):
    """Factory issuing a plain text session token for a user."""

    async def _make_token(user: User, name: str = "pytest") -> str:
        issued = await SessionTokenManager(test_db).create_token(user, name)
        await test_db.commit()
        return issued.plain_text

    return _make_token


@pytest_asyncio.fixture
async def owner(make_user) -> User:
    return await make_user("owner@lodge.co.za", name="Crocodile River Lodge")


@pytest_asyncio.fixture
async def owner_token(make_token, owner: User) -> str:
    return await make_token(owner)


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user("admin@mpbusinesshub.co.za", role="admin", name="Admin")


@pytest_asyncio.fixture
async def admin_token(make_token, admin: User) -> str:
    return await make_token(admin)


@pytest_asyncio.fixture
async def client(test_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database session override."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
