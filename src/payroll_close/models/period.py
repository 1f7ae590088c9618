"""Processing period (pipeline stage cursor) model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from payroll_close.models.base import Base

# Row of py_stdrate that carries the tenant's processing period.
CURRENT_PERIOD_CODE = "BT05"


class ProcessingPeriod(Base):
    """The tenant's single processing-period row.

    Lives in the standard-rates table under ``type = 'BT05'``. ``stage``
    is the pipeline cursor; it is only ever written by stage transitions.
    """

    __tablename__ = "py_stdrate"

    period_type: Mapped[str] = mapped_column(
        "type", String(10), primary_key=True, default=CURRENT_PERIOD_CODE
    )
    year: Mapped[int] = mapped_column("ord", Integer, nullable=False)
    month: Mapped[int] = mapped_column("mth", Integer, nullable=False)
    previous_month: Mapped[int | None] = mapped_column("pmth", Integer, nullable=True)
    stage: Mapped[int] = mapped_column("sun", Integer, nullable=False, default=0)
    updated_by: Mapped[str | None] = mapped_column("createdby", String(100), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(
        "datemodified",
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=True,
    )