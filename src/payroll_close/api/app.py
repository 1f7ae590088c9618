"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroll_close import __version__
from payroll_close.api.routes import health_router, pipeline_router, reports_router
from payroll_close.database import TenantDatabaseRouter, UnknownTenantError
from payroll_close.services.period_resolver import PeriodValidationError
from payroll_close.services.pipeline_service import PeriodNotFoundError, PipelineOperationError
from payroll_close.services.report_service import ReportGenerationError
from payroll_close.services.state_machine import StageViolationError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logger.info("Payroll close API starting")
    yield
    await app.state.tenant_router.dispose()


def create_app(tenant_router: TenantDatabaseRouter | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Payroll Close API",
        description="Monthly payroll close pipeline and period reports",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.tenant_router = tenant_router or TenantDatabaseRouter.from_settings()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(StageViolationError)
    async def stage_violation_handler(
        request: Request, exc: StageViolationError
    ) -> JSONResponse:
        """Reject an operation whose stage precondition is not met."""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "status": "FAILED",
                "message": str(exc),
                "operation": exc.operation,
                "current_stage": exc.current_stage,
                "requirement": exc.requirement,
            },
        )

    @app.exception_handler(PeriodValidationError)
    async def period_validation_handler(
        request: Request, exc: PeriodValidationError
    ) -> JSONResponse:
        """Reject a report period that cannot be served."""
        resolution = exc.resolution
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "status": "FAILED",
                "message": str(exc),
                "year": resolution.year,
                "month": resolution.month,
                "current_year": resolution.current_year,
                "current_month": resolution.current_month,
                "current_stage": resolution.current_stage,
            },
        )

    @app.exception_handler(PeriodNotFoundError)
    async def period_not_found_handler(
        request: Request, exc: PeriodNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"status": "FAILED", "message": str(exc)},
        )

    @app.exception_handler(PipelineOperationError)
    async def pipeline_operation_handler(
        request: Request, exc: PipelineOperationError
    ) -> JSONResponse:
        """Surface the store's own message for failed bulk work."""
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "FAILED",
                "message": exc.message,
                "operation": exc.operation,
            },
        )

    @app.exception_handler(ReportGenerationError)
    async def report_generation_handler(
        request: Request, exc: ReportGenerationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "FAILED",
                "message": exc.message,
                "report": exc.report,
            },
        )

    @app.exception_handler(UnknownTenantError)
    async def unknown_tenant_handler(
        request: Request, exc: UnknownTenantError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"status": "FAILED", "message": str(exc)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "FAILED",
                "message": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(pipeline_router, prefix="/api/v1")
    app.include_router(reports_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
