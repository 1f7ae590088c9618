"""Process audit log writer."""

from __future__ import annotations

import logging

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_close.models import ProcessLog

logger = logging.getLogger(__name__)

STARTED = "STARTED"
SUCCESS = "SUCCESS"
FAILED = "FAILED"


class AuditService:
    """Records ``{module, action, period, user, status, message}`` entries.

    Entries are opened as STARTED and later completed as SUCCESS or FAILED.
    Committing is left to the caller so completion can share a transaction
    with the work it records.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def start(
        self,
        module: str,
        action: str,
        year: int | None,
        month: int | None,
        username: str | None,
    ) -> int:
        """Open a STARTED entry and return its id."""
        entry = ProcessLog(
            module=module,
            action=action,
            process_year=year,
            process_month=month,
            username=username,
            status=STARTED,
        )
        self.session.add(entry)
        await self.session.flush()
        logger.debug("Audit %s/%s started (log %s)", module, action, entry.id)
        return entry.id

    async def complete(self, log_id: int, status: str, message: str | None = None) -> None:
        """Mark an entry SUCCESS or FAILED."""
        if status not in (SUCCESS, FAILED):
            raise ValueError(f"Invalid completion status: {status}")
        await self.session.execute(
            update(ProcessLog)
            .where(ProcessLog.id == log_id)
            .values(status=status, message=message, completed_at=func.now())
        )
