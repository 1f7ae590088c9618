"""API routes."""

from payroll_close.api.routes.health import router as health_router
from payroll_close.api.routes.pipeline import router as pipeline_router
from payroll_close.api.routes.reports import router as reports_router

__all__ = ["health_router", "pipeline_router", "reports_router"]
