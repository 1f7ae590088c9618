"""Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Pipeline schemas
# ============================================================================


class PeriodResponse(BaseModel):
    """Schema for the tenant's processing period."""

    model_config = ConfigDict(from_attributes=True)

    year: int
    month: int
    previous_month: int | None = None
    stage: int
    stage_label: str
    allowed_operations: list[str] = Field(default_factory=list)
    updated_by: str | None = None
    updated_at: datetime | None = None


class TransitionResponse(BaseModel):
    """Schema for a completed stage transition."""

    model_config = ConfigDict(from_attributes=True)

    status: str
    operation: str
    stage: int
    stage_label: str
    message: str
    year: int
    month: int
    details: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Report schemas
# ============================================================================


class PayrollSummaryResponse(BaseModel):
    """Schema for a monthly payroll summary."""

    year: int
    month: int
    employee_count: int
    total_gross: Decimal
    total_tax: Decimal
    total_net: Decimal
    total_roundup: Decimal
    gross_to_date: Decimal
    tax_to_date: Decimal


class PayrollSummaryRangeResponse(BaseModel):
    """Schema for summaries over a range of months."""

    from_period: str
    to_period: str
    items: list[PayrollSummaryResponse]
    total: int


class ReconciliationResponse(BaseModel):
    """Schema for the net pay reconciliation report."""

    year: int
    month: int
    employees_processed: int
    workforce_headcount: int
    total_net_cumulative: Decimal
    total_net_detail: Decimal
    total_gross: Decimal
    total_tax: Decimal
    total_deductions: Decimal
    total_allowances: Decimal
    variance: Decimal
    status: str
    is_balanced: bool


class PaymentBreakdownItem(BaseModel):
    """Schema for one pay element of the breakdown."""

    element: str
    employees: int
    amount: Decimal


class PaymentBreakdownResponse(BaseModel):
    """Schema for the payment breakdown report."""

    year: int
    month: int
    items: list[PaymentBreakdownItem]
    total: int


class SummaryCategoriesResponse(BaseModel):
    """Schema for the summary category totals."""

    year: int
    month: int
    earnings: Decimal
    deductions: Decimal
    tax: Decimal
    net: Decimal
    roundup: Decimal


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    status: str = "FAILED"
    message: str
    operation: str | None = None
    current_stage: int | None = None
    requirement: str | None = None
