"""Payroll close services."""

from payroll_close.services.audit_service import AuditService
from payroll_close.services.period_resolver import (
    PeriodResolution,
    PeriodResolver,
    PeriodValidationError,
)
from payroll_close.services.pipeline_service import (
    PeriodNotFoundError,
    PipelineOperationError,
    PipelineService,
    TransitionResult,
)
from payroll_close.services.procedures import (
    BulkWorkResult,
    PayrollProcedures,
    StoredProcedureRunner,
)
from payroll_close.services.report_service import ReportGenerationError, ReportService
from payroll_close.services.state_machine import (
    PayrollStage,
    PipelineStateMachine,
    StageOperation,
    StageViolationError,
)

__all__ = [
    "AuditService",
    "BulkWorkResult",
    "PayrollProcedures",
    "PayrollStage",
    "PeriodNotFoundError",
    "PeriodResolution",
    "PeriodResolver",
    "PeriodValidationError",
    "PipelineOperationError",
    "PipelineService",
    "PipelineStateMachine",
    "ReportGenerationError",
    "ReportService",
    "StageOperation",
    "StageViolationError",
    "StoredProcedureRunner",
    "TransitionResult",
]
