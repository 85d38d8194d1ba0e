"""
Integration tests for service level endpoints and startup.
"""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from mpbusinesshub import database, main

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def empty_database(tmp_path, monkeypatch):
    """Point the application engine at a brand new SQLite file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fresh.sqlite'}", poolclass=NullPool)
    monkeypatch.setattr(database, "engine", engine)
    monkeypatch.setattr(
        database,
        "AsyncSessionLocal",
        async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False),
    )

    yield engine

    await engine.dispose()


class TestServiceEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_root(self, client: AsyncClient):
        response = await client.get("/")

        body = response.json()
        assert body["service"] == "MPBusinessHub API"
        assert body["status"] == "running"

    @pytest.mark.asyncio
    async def test_unknown_route_uses_error_envelope(self, client: AsyncClient):
        response = await client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"status": "error", "message": "Not Found"}


class TestLifespan:
    """Test application startup and shutdown."""

    @pytest.mark.asyncio
    async def test_startup_creates_schema_on_empty_database(self, empty_database, monkeypatch):
        monkeypatch.setattr(main.settings, "environment", "development")

        async with main.lifespan(main.app):
            transport = ASGITransport(app=main.app)
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                response = await ac.get("/api/packages")

        assert response.status_code == 200
        assert response.json()["data"] == []

        async with empty_database.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        assert {"users", "businesses", "packages", "invoices", "personal_access_tokens"} <= set(tables)

    @pytest.mark.asyncio
    async def test_production_leaves_schema_alone(self, monkeypatch):
        monkeypatch.setattr(main.settings, "environment", "production")

        with patch("mpbusinesshub.main.init_db", new_callable=AsyncMock) as init_db, \
                patch("mpbusinesshub.main.close_db", new_callable=AsyncMock) as close_db:
            async with main.lifespan(main.app):
                pass

        init_db.assert_not_awaited()
        close_db.assert_awaited_once()
