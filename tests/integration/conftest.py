"""Integration test fixtures: the API wired to the in-memory tenant database."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from payroll_close.api.app import create_app
from payroll_close.api.dependencies import get_procedures
from payroll_close.database import TenantDatabaseRouter

TEST_TENANT = "payroll_test"


@pytest_asyncio.fixture
async def app(engine, procedures):
    """Application routing TEST_TENANT to the test engine."""
    router = TenantDatabaseRouter("sqlite+aiosqlite:///:memory:")
    router.register(TEST_TENANT, engine)
    app = create_app(tenant_router=router)
    app.dependency_overrides[get_procedures] = lambda: procedures
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client sending the test tenant and operator headers."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Tenant-ID": TEST_TENANT, "X-User": "api-tester"},
    ) as client:
        yield client
