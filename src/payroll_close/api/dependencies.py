"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_close.config import get_settings
from payroll_close.database import TenantDatabaseRouter, UnknownTenantError
from payroll_close.services.pipeline_service import PipelineService
from payroll_close.services.procedures import PayrollProcedures, StoredProcedureRunner
from payroll_close.services.report_service import ReportService


def get_tenant_router(request: Request) -> TenantDatabaseRouter:
    """Router attached to the application at startup."""
    return request.app.state.tenant_router


async def get_tenant(
    router: Annotated[TenantDatabaseRouter, Depends(get_tenant_router)],
    x_tenant_id: Annotated[str | None, Header()] = None,
) -> str:
    """Resolve the payroll class from the X-Tenant-ID header."""
    tenant = x_tenant_id or get_settings().default_tenant
    try:
        router.url_for(tenant)
    except UnknownTenantError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        )
    return tenant


async def get_user(x_user: Annotated[str | None, Header()] = None) -> str:
    """Operator name recorded in audit entries."""
    return x_user or "system"


async def get_db_session(
    router: Annotated[TenantDatabaseRouter, Depends(get_tenant_router)],
    tenant: Annotated[str, Depends(get_tenant)],
) -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for the request's tenant."""
    async with router.session(tenant) as session:
        try:
            yield session
        finally:
            await session.close()


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Tenant = Annotated[str, Depends(get_tenant)]
Operator = Annotated[str, Depends(get_user)]


async def get_procedures(db: DbSession) -> PayrollProcedures:
    """Bulk-work engine; overridden in tests."""
    return StoredProcedureRunner(db)


async def get_pipeline_service(
    db: DbSession,
    tenant: Tenant,
    procedures: Annotated[PayrollProcedures, Depends(get_procedures)],
) -> PipelineService:
    return PipelineService(db, procedures, tenant=tenant)


async def get_report_service(db: DbSession, tenant: Tenant) -> ReportService:
    return ReportService(db, tenant=tenant)


Pipeline = Annotated[PipelineService, Depends(get_pipeline_service)]
Reports = Annotated[ReportService, Depends(get_report_service)]
