"""Report endpoints.

Reports accept any closed month; the period resolver decides whether live
or historical data serves it.
"""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from payroll_close.api.dependencies import Operator, Reports
from payroll_close.api.schemas import (
    ErrorResponse,
    PaymentBreakdownItem,
    PaymentBreakdownResponse,
    PayrollSummaryRangeResponse,
    PayrollSummaryResponse,
    ReconciliationResponse,
    SummaryCategoriesResponse,
)
from payroll_close.periods import PeriodRange

router = APIRouter(prefix="/reports", tags=["reports"])

_REPORT_RESPONSES = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}

Year = Annotated[int | None, Query(ge=1900, le=9999)]
Month = Annotated[int | None, Query()]


def _require_period(year: int | None, month: int | None) -> tuple[int, int]:
    if year is None or month is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="year and month query parameters are required",
        )
    return year, month


@router.get(
    "/summary",
    response_model=PayrollSummaryResponse | PayrollSummaryRangeResponse,
    responses=_REPORT_RESPONSES,
)
async def payroll_summary(
    reports: Reports,
    user: Operator,
    year: Year = None,
    month: Month = None,
    from_period: str | None = None,
    to_period: str | None = None,
) -> PayrollSummaryResponse | PayrollSummaryRangeResponse:
    """Payroll summary for one month, or for each month of a range."""
    if from_period or to_period:
        if not (from_period and to_period):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="from_period and to_period must be given together",
            )
        try:
            period_range = PeriodRange.parse(from_period, to_period)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
        summaries = await reports.payroll_summary_range(period_range, user)
        return PayrollSummaryRangeResponse(
            from_period=str(period_range.start),
            to_period=str(period_range.end),
            items=[PayrollSummaryResponse(**summary) for summary in summaries],
            total=len(summaries),
        )

    year, month = _require_period(year, month)
    return PayrollSummaryResponse(**await reports.payroll_summary(year, month, user))


@router.get(
    "/reconciliation",
    response_model=ReconciliationResponse,
    responses=_REPORT_RESPONSES,
)
async def reconciliation(
    reports: Reports,
    user: Operator,
    year: Year = None,
    month: Month = None,
) -> ReconciliationResponse:
    """Cumulative net pay reconciled against payment detail."""
    year, month = _require_period(year, month)
    return ReconciliationResponse(**await reports.reconciliation(year, month, user))


@router.get(
    "/payment-breakdown",
    response_model=PaymentBreakdownResponse,
    responses=_REPORT_RESPONSES,
)
async def payment_breakdown(
    reports: Reports,
    user: Operator,
    year: Year = None,
    month: Month = None,
) -> PaymentBreakdownResponse:
    """Amounts and employee counts per pay element."""
    year, month = _require_period(year, month)
    items = await reports.payment_breakdown(year, month, user)
    return PaymentBreakdownResponse(
        year=year,
        month=month,
        items=[PaymentBreakdownItem(**item) for item in items],
        total=len(items),
    )


@router.get(
    "/summary-categories",
    response_model=SummaryCategoriesResponse,
    responses=_REPORT_RESPONSES,
)
async def summary_categories(
    reports: Reports,
    user: Operator,
    year: Year = None,
    month: Month = None,
) -> SummaryCategoriesResponse:
    """Earnings, deductions, tax and net totals for the month."""
    year, month = _require_period(year, month)
    return SummaryCategoriesResponse(**await reports.summary_categories(year, month, user))
