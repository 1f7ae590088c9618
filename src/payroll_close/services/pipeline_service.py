"""Pipeline service - runs stage transitions of the monthly close."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_close.models import CURRENT_PERIOD_CODE, ProcessingPeriod
from payroll_close.services.audit_service import FAILED, SUCCESS, AuditService
from payroll_close.services.procedures import BulkWorkResult, PayrollProcedures
from payroll_close.services.state_machine import (
    PipelineStateMachine,
    StageOperation,
    StageTransition,
    StageViolationError,
)

logger = logging.getLogger(__name__)


class PeriodNotFoundError(Exception):
    """Raised when the tenant has no processing-period row."""

    def __init__(self, tenant: str | None = None):
        self.tenant = tenant
        where = f" for tenant {tenant}" if tenant else ""
        super().__init__(f"Payroll period not found{where}. Please ensure the BT05 record exists.")


class PipelineOperationError(Exception):
    """Raised when the bulk work behind a transition fails.

    Carries the original store message; the stage is left untouched.
    """

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(message)


@dataclass
class TransitionResult:
    """Outcome of a successful transition."""

    status: str
    stage: int
    message: str
    year: int
    month: int
    operation: str
    details: dict[str, Any] = field(default_factory=dict)


class PipelineService:
    """Service driving the processing-period stage cursor.

    Operations:
    - save: close data entry
    - record_personnel_report / record_input_variable_report: report stages
    - update_master_files: extract workforce and rebuild master files
    - backup / restore: snapshot and roll back the calculation inputs
    - calculate: run payroll calculation
    - recall: reopen data entry
    """

    def __init__(
        self,
        session: AsyncSession,
        procedures: PayrollProcedures,
        audit: AuditService | None = None,
        tenant: str | None = None,
    ):
        self.session = session
        self.procedures = procedures
        self.audit = audit or AuditService(session)
        self.tenant = tenant

    async def get_period(self) -> ProcessingPeriod:
        """Load the tenant's processing period."""
        result = await self.session.execute(
            select(ProcessingPeriod)
            .where(ProcessingPeriod.period_type == CURRENT_PERIOD_CODE)
            .execution_options(populate_existing=True)
        )
        period = result.scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(self.tenant)
        if not PipelineStateMachine.is_defined(period.stage):
            logger.warning(
                "Period stage %s is not a defined code (tenant %s)", period.stage, self.tenant
            )
        return period

    async def save(self, user: str) -> TransitionResult:
        return await self.run(StageOperation.SAVE, user)

    async def record_personnel_report(self, user: str) -> TransitionResult:
        return await self.run(StageOperation.PERSONNEL_REPORT, user)

    async def record_input_variable_report(self, user: str) -> TransitionResult:
        return await self.run(StageOperation.INPUT_VARIABLE_REPORT, user)

    async def update_master_files(self, user: str) -> TransitionResult:
        return await self.run(StageOperation.MASTER_FILE_UPDATE, user)

    async def backup(self, user: str) -> TransitionResult:
        return await self.run(StageOperation.BACKUP, user)

    async def restore(self, user: str) -> TransitionResult:
        return await self.run(StageOperation.RESTORE, user)

    async def calculate(self, user: str) -> TransitionResult:
        return await self.run(StageOperation.CALCULATE, user)

    async def recall(self, user: str) -> TransitionResult:
        return await self.run(StageOperation.RECALL, user)

    async def run(self, operation: StageOperation | str, user: str) -> TransitionResult:
        """Run one transition.

        The precondition is checked before any work. The bulk work runs
        next; only on its success is the stage advanced, in the same commit
        that marks the audit entry SUCCESS. On failure the stage is left
        alone, the audit entry is marked FAILED, and PipelineOperationError
        carries the original message.

        Raises StageViolationError if the precondition is not met.
        """
        period = await self.get_period()
        # Plain values: ORM state is expired by a rollback.
        year, month, current = period.year, period.month, period.stage

        transition = PipelineStateMachine.validate(operation, current)
        op_name = transition.operation.value

        log_id = await self.audit.start(transition.module, transition.action, year, month, user)
        await self.session.commit()
        logger.info(
            "Starting %s for %s-%02d at stage %s (tenant %s)",
            op_name, year, month, current, self.tenant,
        )

        try:
            outcome = await self._dispatch(transition, year, month, user)
        except Exception as exc:
            await self.session.rollback()
            await self.audit.complete(log_id, FAILED, str(exc))
            await self.session.commit()
            logger.exception("%s failed for %s-%02d", op_name, year, month)
            raise PipelineOperationError(op_name, str(exc)) from exc

        advanced = await self._advance_stage(current, transition.target, user)
        if not advanced:
            await self.session.rollback()
            reason = "stage changed by a concurrent transition"
            await self.audit.complete(log_id, FAILED, reason)
            await self.session.commit()
            logger.warning("%s lost a race at stage %s", op_name, current)
            raise StageViolationError(op_name, current, transition.requirement, reason)

        await self.audit.complete(log_id, SUCCESS, outcome.message)
        await self.session.commit()
        logger.info("%s completed: stage %s -> %s", op_name, current, int(transition.target))

        return TransitionResult(
            status=SUCCESS,
            stage=int(transition.target),
            message=outcome.message,
            year=year,
            month=month,
            operation=op_name,
            details=outcome.details,
        )

    async def _dispatch(
        self,
        transition: StageTransition,
        year: int,
        month: int,
        user: str,
    ) -> BulkWorkResult:
        """Invoke the bulk work behind a transition."""
        op = transition.operation
        if op == StageOperation.SAVE:
            return await self.procedures.save_payroll_files(year, month, user)
        if op == StageOperation.RECALL:
            return await self.procedures.recall_payroll_files(year, month, user)
        if op == StageOperation.MASTER_FILE_UPDATE:
            return await self.procedures.update_master_files(
                year, month, user, indicator=self.tenant or ""
            )
        if op == StageOperation.BACKUP:
            return await self.procedures.backup(year, month, user)
        if op == StageOperation.RESTORE:
            return await self.procedures.restore(year, month, user)
        if op == StageOperation.CALCULATE:
            return await self.procedures.calculate(year, month, user)
        # Report stages only record that the report was printed.
        return BulkWorkResult(f"{transition.action} recorded")

    async def _advance_stage(self, expected: int, target: int, user: str) -> bool:
        """Conditionally move the cursor; False if it moved underneath us."""
        result = await self.session.execute(
            update(ProcessingPeriod)
            .where(
                ProcessingPeriod.period_type == CURRENT_PERIOD_CODE,
                ProcessingPeriod.stage == expected,
            )
            .values(stage=int(target), updated_by=user, updated_at=func.now())
        )
        return (result.rowcount or 0) > 0
