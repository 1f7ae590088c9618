"""Payroll reports written against the live schema.

Every statement here names only live tables. Which schema actually
serves a report is decided per request by the period resolver.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from payroll_close import fact_types
from payroll_close.periods import PeriodRange
from payroll_close.services.audit_service import FAILED, SUCCESS, AuditService
from payroll_close.services.period_resolver import PeriodResolver, PeriodValidationError
from payroll_close.virtualization import QueryGateway, QueryVirtualizer, RewriteScope

logger = logging.getLogger(__name__)

_GROSS = fact_types.sql_list(fact_types.GROSS_PREFIXES)

PAYROLL_SUMMARY_SQL = """
SELECT sr.ord AS year,
       sr.mth AS month,
       COUNT(DISTINCT mc.his_empno) AS employee_count,
       ROUND(COALESCE(SUM(mc.his_grossmth), 0), 2) AS total_gross,
       ROUND(COALESCE(SUM(mc.his_taxmth), 0), 2) AS total_tax,
       ROUND(COALESCE(SUM(mc.his_netmth), 0), 2) AS total_net,
       ROUND(COALESCE(SUM(mc.his_roundup), 0), 2) AS total_roundup,
       ROUND(COALESCE(SUM(mc.his_grosstodate), 0), 2) AS gross_to_date,
       ROUND(COALESCE(SUM(mc.his_taxtodate), 0), 2) AS tax_to_date
FROM (SELECT ord, mth FROM py_stdrate WHERE type = 'BT05') sr
LEFT JOIN py_mastercum mc ON mc.his_type = sr.mth
GROUP BY sr.ord, sr.mth
"""

PAYMENT_DETAIL_TOTALS_SQL = f"""
SELECT
    COALESCE(SUM(CASE WHEN SUBSTR(mpd.his_type, 1, 2) IN ({_GROSS})
                      THEN mpd.amtthismth ELSE 0 END), 0) AS gross,
    COALESCE(SUM(CASE WHEN mpd.his_type = '{fact_types.TAX}'
                      THEN mpd.amtthismth ELSE 0 END), 0) AS tax,
    COALESCE(SUM(CASE WHEN SUBSTR(mpd.his_type, 1, 2) = '{fact_types.DEDUCTION_PREFIX}'
                      THEN mpd.amtthismth ELSE 0 END), 0) AS deductions,
    COALESCE(SUM(CASE WHEN SUBSTR(mpd.his_type, 1, 2) = '{fact_types.LOAN_PREFIX}'
                      THEN mpd.amtthismth ELSE 0 END), 0) AS loans,
    COALESCE(SUM(CASE WHEN SUBSTR(mpd.his_type, 1, 2) = '{fact_types.ALLOWANCE_PREFIX}'
                      THEN mpd.amtthismth ELSE 0 END), 0) AS allowances
FROM py_masterpayded mpd
"""

WORKFORCE_COUNT_SQL = """
SELECT COUNT(DISTINCT we.empl_id) AS headcount
FROM py_wkemployees we
"""

PAYMENT_BREAKDOWN_SQL = """
SELECT mpd.his_type AS element,
       COUNT(DISTINCT mpd.his_empno) AS employees,
       ROUND(COALESCE(SUM(mpd.amtthismth), 0), 2) AS amount
FROM py_masterpayded mpd
INNER JOIN py_wkemployees we ON we.empl_id = mpd.his_empno
WHERE mpd.amtthismth > 0
GROUP BY mpd.his_type
ORDER BY mpd.his_type
"""

SUMMARY_CATEGORIES_SQL = """
SELECT ROUND(COALESCE(SUM(ts.amt1), 0), 2) AS earnings,
       ROUND(COALESCE(SUM(ts.amt2), 0), 2) AS deductions,
       ROUND(COALESCE(SUM(ts.tax), 0), 2) AS tax,
       ROUND(COALESCE(SUM(ts.net), 0), 2) AS net,
       ROUND(COALESCE(SUM(ts.roundup), 0), 2) AS roundup
FROM py_tempsumm ts
"""

# Net figures further apart than this are reported as a variance.
BALANCE_TOLERANCE = Decimal("1")


class ReportGenerationError(Exception):
    """Raised when the store fails while a report is being built.

    Carries the original store message.
    """

    def __init__(self, report: str, message: str):
        self.report = report
        self.message = message
        super().__init__(message)


def _money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


class ReportService:
    """Runs reports for a requested period through the query gateway.

    The period is validated before anything else; each report run is
    audit-logged under the ``Reports`` module.
    """

    def __init__(
        self,
        session: AsyncSession,
        tenant: str | None = None,
        audit: AuditService | None = None,
        virtualizer: QueryVirtualizer | None = None,
    ):
        self.session = session
        self.tenant = tenant
        self.audit = audit or AuditService(session)
        self.resolver = PeriodResolver(session, tenant)
        self.virtualizer = virtualizer or QueryVirtualizer()

    async def open_gateway(self, year: int, month: int) -> QueryGateway:
        """Resolve the period and return a gateway scoped to it.

        Raises PeriodValidationError if the period cannot be served.
        """
        scope = RewriteScope()
        resolution = await self.resolver.activate(scope, year, month)
        if not resolution.valid:
            raise PeriodValidationError(resolution)
        return QueryGateway(self.session, scope, self.virtualizer)

    async def payroll_summary(self, year: int, month: int, user: str | None = None) -> dict[str, Any]:
        """Headcount plus gross, tax and net totals for the month."""
        gateway = await self.open_gateway(year, month)
        return await self._audited("PayrollSummary", year, month, user, self._summary, gateway)

    async def payroll_summary_range(
        self, period_range: PeriodRange, user: str | None = None
    ) -> list[dict[str, Any]]:
        """One summary per month; each month is resolved on its own."""
        gateways = [
            (period, await self.open_gateway(period.year, period.month))
            for period in period_range.months()
        ]
        summaries = []
        for period, gateway in gateways:
            summaries.append(
                await self._audited(
                    "PayrollSummary", period.year, period.month, user, self._summary, gateway
                )
            )
        return summaries

    async def reconciliation(self, year: int, month: int, user: str | None = None) -> dict[str, Any]:
        """Cumulative net pay against net pay rebuilt from payment detail."""
        gateway = await self.open_gateway(year, month)
        return await self._audited(
            "Reconciliation", year, month, user, self._reconciliation, gateway
        )

    async def payment_breakdown(
        self, year: int, month: int, user: str | None = None
    ) -> list[dict[str, Any]]:
        """Per pay element employee counts and amounts."""
        gateway = await self.open_gateway(year, month)
        return await self._audited(
            "PaymentBreakdown", year, month, user, self._breakdown, gateway
        )

    async def summary_categories(
        self, year: int, month: int, user: str | None = None
    ) -> dict[str, Any]:
        """Earnings, deductions, tax, net and round-up from the aggregation view."""
        gateway = await self.open_gateway(year, month)
        return await self._audited(
            "SummaryCategories", year, month, user, self._categories, gateway
        )

    async def _audited(self, action, year, month, user, build, gateway):
        log_id = await self.audit.start("Reports", action, year, month, user)
        await self.session.commit()
        try:
            report = await build(gateway)
        except Exception as exc:
            await self.session.rollback()
            await self.audit.complete(log_id, FAILED, str(exc))
            await self.session.commit()
            logger.exception("%s report failed for %s-%02d", action, year, month)
            raise ReportGenerationError(action, str(exc)) from exc
        await self.audit.complete(log_id, SUCCESS, f"{action} generated")
        await self.session.commit()
        logger.debug("%s scope status: %s", action, gateway.scope.status())
        if isinstance(report, dict):
            report.update(year=year, month=month)
        return report

    async def _summary(self, gateway: QueryGateway) -> dict[str, Any]:
        row = (await gateway.execute(PAYROLL_SUMMARY_SQL)).first() or {}
        return {
            "year": row.get("year"),
            "month": row.get("month"),
            "employee_count": int(row.get("employee_count") or 0),
            "total_gross": _money(row.get("total_gross")),
            "total_tax": _money(row.get("total_tax")),
            "total_net": _money(row.get("total_net")),
            "total_roundup": _money(row.get("total_roundup")),
            "gross_to_date": _money(row.get("gross_to_date")),
            "tax_to_date": _money(row.get("tax_to_date")),
        }

    async def _reconciliation(self, gateway: QueryGateway) -> dict[str, Any]:
        summary = await self._summary(gateway)
        detail = (await gateway.execute(PAYMENT_DETAIL_TOTALS_SQL)).first() or {}
        headcount = (await gateway.execute(WORKFORCE_COUNT_SQL)).scalar() or 0

        gross = _money(detail.get("gross"))
        tax = _money(detail.get("tax"))
        deductions = _money(detail.get("deductions"))
        loans = _money(detail.get("loans"))
        allowances = _money(detail.get("allowances"))
        net_detail = gross - tax - deductions - loans + allowances
        net_cumulative = summary["total_net"] + summary["total_roundup"]
        variance = abs(net_cumulative - net_detail)
        status = "BALANCED" if variance < BALANCE_TOLERANCE else "VARIANCE_DETECTED"

        return {
            "year": summary["year"],
            "month": summary["month"],
            "employees_processed": summary["employee_count"],
            "workforce_headcount": int(headcount),
            "total_net_cumulative": net_cumulative,
            "total_net_detail": net_detail,
            "total_gross": summary["total_gross"],
            "total_tax": summary["total_tax"],
            "total_deductions": deductions + loans,
            "total_allowances": allowances,
            "variance": variance,
            "status": status,
            "is_balanced": status == "BALANCED",
        }

    async def _breakdown(self, gateway: QueryGateway) -> list[dict[str, Any]]:
        result = await gateway.execute(PAYMENT_BREAKDOWN_SQL)
        return [
            {
                "element": row["element"],
                "employees": int(row["employees"] or 0),
                "amount": _money(row["amount"]),
            }
            for row in result.rows
        ]

    async def _categories(self, gateway: QueryGateway) -> dict[str, Any]:
        row = (await gateway.execute(SUMMARY_CATEGORIES_SQL)).first() or {}
        return {
            key: _money(row.get(key))
            for key in ("earnings", "deductions", "tax", "net", "roundup")
        }
