"""ORM models for the tenant payroll database."""

from payroll_close.models.audit import ProcessLog
from payroll_close.models.base import Base
from payroll_close.models.history import MONTH_FIELDS, HistoricalFact, month_column_name
from payroll_close.models.live import (
    CumulativeSummary,
    EmployeeMaster,
    PaymentDetail,
    TemporarySummary,
    WorkforceSnapshot,
)
from payroll_close.models.period import CURRENT_PERIOD_CODE, ProcessingPeriod

__all__ = [
    "Base",
    "CURRENT_PERIOD_CODE",
    "CumulativeSummary",
    "EmployeeMaster",
    "HistoricalFact",
    "MONTH_FIELDS",
    "PaymentDetail",
    "ProcessLog",
    "ProcessingPeriod",
    "TemporarySummary",
    "WorkforceSnapshot",
    "month_column_name",
]
