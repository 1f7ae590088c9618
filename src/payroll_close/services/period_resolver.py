"""Decides whether live or historical data sources a reporting period."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_close import fact_types
from payroll_close.models import (
    CURRENT_PERIOD_CODE,
    CumulativeSummary,
    HistoricalFact,
    ProcessingPeriod,
)
from payroll_close.periods import month_name
from payroll_close.services.state_machine import PayrollStage, PipelineStateMachine
from payroll_close.virtualization.engine import RewriteScope

logger = logging.getLogger(__name__)

CURRENT = "current"
HISTORY = "history"


@dataclass(frozen=True)
class PeriodResolution:
    """Outcome of resolving a requested reporting period."""

    valid: bool
    source: str | None
    reason: str | None
    year: int
    month: int
    current_year: int | None = None
    current_month: int | None = None
    current_stage: int | None = None


class PeriodValidationError(Exception):
    """Raised when a requested reporting period cannot be served."""

    def __init__(self, resolution: PeriodResolution):
        self.resolution = resolution
        super().__init__(resolution.reason or "Invalid reporting period")


class PeriodResolver:
    """Resolves a requested (year, month) against the tenant's processing period.

    - after the current period: invalid
    - the current period: live data, once calculation is complete
    - before the current period: history, if net pay was recorded that month
    """

    def __init__(self, session: AsyncSession, tenant: str | None = None):
        self.session = session
        self.tenant = tenant

    async def current_period(self) -> ProcessingPeriod | None:
        result = await self.session.execute(
            select(ProcessingPeriod)
            .where(ProcessingPeriod.period_type == CURRENT_PERIOD_CODE)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def resolve(self, year: int, month: int) -> PeriodResolution:
        """Work out which source serves (year, month), without side effects."""
        period = await self.current_period()
        if period is None:
            return PeriodResolution(
                valid=False,
                source=None,
                reason="Current period not found. Please initialize the BT05 period record.",
                year=year,
                month=month,
            )

        cur_year, cur_month, stage = period.year, period.month, period.stage

        def outcome(valid: bool, source: str | None, reason: str | None = None) -> PeriodResolution:
            return PeriodResolution(
                valid=valid,
                source=source,
                reason=reason,
                year=year,
                month=month,
                current_year=cur_year,
                current_month=cur_month,
                current_stage=stage,
            )

        if (year, month) > (cur_year, cur_month):
            return outcome(
                False,
                None,
                f"Cannot select future period. Current period is "
                f"{month_name(cur_month)} {cur_year}.",
            )

        if not 1 <= month <= 12:
            return outcome(False, None, f"Invalid month {month}; expected 1 to 12.")

        label = f"{month_name(month)} {year}"

        if (year, month) == (cur_year, cur_month):
            if stage != PayrollStage.CALCULATED:
                return outcome(
                    False,
                    None,
                    f"Calculation not completed for {label} (stage {stage}: "
                    f"{PipelineStateMachine.describe(stage)}). Reports require stage "
                    f"{int(PayrollStage.CALCULATED)} "
                    f"({PipelineStateMachine.describe(PayrollStage.CALCULATED)}).",
                )
            if not await self._has_live_data(month):
                return outcome(False, None, f"No payroll data found for {label}.")
            return outcome(True, CURRENT)

        if not await self._has_history(year, month):
            return outcome(
                False,
                None,
                f"No historical data found for {label}. "
                f"Month-end may not have been processed for this period.",
            )
        return outcome(True, HISTORY)

    async def activate(self, scope: RewriteScope, year: int, month: int) -> PeriodResolution:
        """Resolve and arm or disarm ``scope`` accordingly.

        Only a valid historical resolution arms the scope.
        """
        resolution = await self.resolve(year, month)
        if resolution.valid and resolution.source == HISTORY:
            scope.arm(year, month)
            logger.info("Serving %s-%02d from history (tenant %s)", year, month, self.tenant)
        else:
            scope.disarm()
            if not resolution.valid:
                logger.info(
                    "Rejected report period %s-%02d (tenant %s): %s",
                    year, month, self.tenant, resolution.reason,
                )
        return resolution

    async def _has_live_data(self, month: int) -> bool:
        count = await self.session.scalar(
            select(func.count())
            .select_from(CumulativeSummary)
            .where(CumulativeSummary.his_type == month)
        )
        return bool(count)

    async def _has_history(self, year: int, month: int) -> bool:
        table = HistoricalFact.__table__
        amount = HistoricalFact.month_column("amtthismth", month)
        count = await self.session.scalar(
            select(func.count())
            .select_from(table)
            .where(
                table.c.his_year == year,
                table.c.his_type == fact_types.NET_PAY,
                amount > 0,
            )
        )
        return bool(count)
