"""Database engines, sessions and per-tenant routing."""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from payroll_close.config import Settings, get_settings

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

_TENANT_NAME = re.compile(r"^\w+$")


class UnknownTenantError(ValueError):
    """Raised when a tenant name cannot be routed to a database."""


class TenantDatabaseRouter:
    """Routes each tenant (payroll class) to its own database.

    Engines are created lazily on first use and cached; both the live and
    the historical tables of a tenant live in the database it routes to.
    """

    def __init__(self, url_template: str, **engine_options):
        self.url_template = url_template
        self.engine_options = engine_options
        self._engines: dict[str, AsyncEngine] = {}
        self._factories: dict[str, async_sessionmaker[AsyncSession]] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> TenantDatabaseRouter:
        """Build a router from application settings."""
        settings = settings or get_settings()
        return cls(
            settings.database_url,
            echo=False,
            pool_pre_ping=True,
        )

    def url_for(self, tenant: str) -> str:
        """Return the database URL for a tenant."""
        if not tenant or not _TENANT_NAME.match(tenant):
            raise UnknownTenantError(f"Invalid tenant name: {tenant!r}")
        if "{tenant}" in self.url_template:
            return self.url_template.format(tenant=tenant)
        return self.url_template

    def register(self, tenant: str, engine: AsyncEngine) -> None:
        """Attach an already-built engine to a tenant."""
        self._engines[tenant] = engine
        self._factories.pop(tenant, None)

    def engine_for(self, tenant: str) -> AsyncEngine:
        """Get (or lazily create) the engine serving a tenant."""
        engine = self._engines.get(tenant)
        if engine is None:
            url = self.url_for(tenant)
            logger.info("Creating database engine for tenant %s", tenant)
            engine = create_async_engine(url, **self.engine_options)
            self._engines[tenant] = engine
        return engine

    def session_factory(self, tenant: str) -> async_sessionmaker[AsyncSession]:
        """Get the session factory for a tenant."""
        factory = self._factories.get(tenant)
        if factory is None:
            factory = async_sessionmaker(
                self.engine_for(tenant),
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
            self._factories[tenant] = factory
        return factory

    @asynccontextmanager
    async def session(self, tenant: str) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session bound to a tenant."""
        async with self.session_factory(tenant)() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def dispose(self) -> None:
        """Dispose every engine created by this router."""
        for engine in self._engines.values():
            await engine.dispose()
        self._engines.clear()
        self._factories.clear()
