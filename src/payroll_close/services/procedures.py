"""Bulk payroll work executed by the stored-procedure engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_close.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BulkWorkResult:
    """Outcome reported by a bulk operation."""

    message: str
    details: dict[str, Any] = field(default_factory=dict)


class PayrollProcedures(Protocol):
    """Protocol for the engine that performs the payroll arithmetic.

    Every method runs on the caller's session so the bulk work and the
    stage update share one connection. Failures are raised, never returned.
    """

    async def save_payroll_files(self, year: int, month: int, user: str) -> BulkWorkResult:
        ...

    async def recall_payroll_files(self, year: int, month: int, user: str) -> BulkWorkResult:
        ...

    async def update_master_files(
        self, year: int, month: int, user: str, indicator: str
    ) -> BulkWorkResult:
        ...

    async def backup(self, year: int, month: int, user: str) -> BulkWorkResult:
        ...

    async def restore(self, year: int, month: int, user: str) -> BulkWorkResult:
        ...

    async def calculate(self, year: int, month: int, user: str) -> BulkWorkResult:
        ...


@dataclass(frozen=True)
class PaySystemConfig:
    """Company-level switches passed to the procedures."""

    company_code: str
    salary_scale: str
    monthly_tax: str


class StoredProcedureRunner:
    """PayrollProcedures backed by the tenant database's stored procedures."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    async def save_payroll_files(self, year: int, month: int, user: str) -> BulkWorkResult:
        rows = await self._call(
            "CALL py_save_payrollfiles_optimized(:year, :month, :user)",
            {"year": year, "month": month, "user": user},
        )
        return BulkWorkResult("Payroll files saved successfully", {"rows": rows})

    async def recall_payroll_files(self, year: int, month: int, user: str) -> BulkWorkResult:
        rows = await self._call(
            "CALL py_recall_payrollfiles_optimized(:year, :month, :user)",
            {"year": year, "month": month, "user": user},
        )
        return BulkWorkResult("Payroll files recalled successfully", {"rows": rows})

    async def update_master_files(
        self, year: int, month: int, user: str, indicator: str
    ) -> BulkWorkResult:
        """Extract the workforce and rebuild the master payment files."""
        started_at = datetime.now(timezone.utc)
        config = await self._pay_system_config()

        await self._call(
            "CALL sp_extractrec_optimized(:company, :indicator, :salary_scale, :user)",
            {
                "company": config.company_code,
                "indicator": indicator,
                "salary_scale": config.salary_scale,
                "user": user,
            },
        )
        await self._call(
            "CALL py_update_payrollfiles(:company, :salary_scale)",
            {"company": config.company_code, "salary_scale": config.salary_scale},
        )

        failures = await self.session.execute(
            text(
                "SELECT procedure_name, error_details FROM py_performance_log "
                "WHERE started_at >= :started_at AND status = 'FAILED' "
                "ORDER BY started_at DESC"
            ),
            {"started_at": started_at},
        )
        failed = failures.all()
        if failed:
            details = "; ".join(
                f"{row.procedure_name}: {row.error_details or 'Unknown error'}" for row in failed
            )
            raise RuntimeError(f"Master file update failed. {details}")

        summary = (
            await self.session.execute(
                text(
                    "SELECT COUNT(DISTINCT his_empno) AS employees, COUNT(*) AS records, "
                    "COALESCE(SUM(amtthismth), 0) AS total_amount "
                    "FROM py_masterpayded WHERE amtthismth <> 0"
                )
            )
        ).one()
        total = Decimal(str(summary.total_amount or 0)).quantize(Decimal("0.01"))
        message = (
            f"Master file update completed successfully. "
            f"Employees: {summary.employees or 0}, Records: {summary.records or 0}, "
            f"Total Amount: {total}"
        )
        return BulkWorkResult(
            message,
            {
                "employees_processed": summary.employees or 0,
                "total_records": summary.records or 0,
                "total_amount": str(total),
            },
        )

    async def backup(self, year: int, month: int, user: str) -> BulkWorkResult:
        rows = await self._call(
            "CALL sp_calc_backup_optimized(:year, :month, :user)",
            {"year": year, "month": month, "user": user},
        )
        return BulkWorkResult("Payroll backup completed successfully.", {"rows": rows})

    async def restore(self, year: int, month: int, user: str) -> BulkWorkResult:
        rows = await self._call(
            "CALL sp_calc_restore_optimized(:year, :month, :user)",
            {"year": year, "month": month, "user": user},
        )
        return BulkWorkResult("Payroll restore completed successfully.", {"rows": rows})

    async def calculate(self, year: int, month: int, user: str) -> BulkWorkResult:
        config = await self._pay_system_config()
        await self._call(
            "CALL py_calculate_pay(:user, :batch_size, :company, :monthly_tax)",
            {
                "user": user,
                "batch_size": self.settings.calculation_batch_size,
                "company": config.company_code,
                "monthly_tax": config.monthly_tax,
            },
        )
        return BulkWorkResult("Payroll calculations have been successfully computed.")

    async def _pay_system_config(self) -> PaySystemConfig:
        """Company switches from py_paysystem, falling back to settings."""
        result = await self.session.execute(
            text("SELECT comp_code, salaryscale, mthly_tax FROM py_paysystem LIMIT 1")
        )
        row = result.first()
        return PaySystemConfig(
            company_code=(row.comp_code if row and row.comp_code else self.settings.company_code),
            salary_scale=(row.salaryscale if row and row.salaryscale else self.settings.salary_scale),
            monthly_tax=(row.mthly_tax if row and row.mthly_tax else self.settings.monthly_tax),
        )

    async def _call(self, statement: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        logger.info("Executing %s", statement.split("(", 1)[0])
        result = await self.session.execute(text(statement), params)
        if not result.returns_rows:
            return []
        return [dict(row._mapping) for row in result]
