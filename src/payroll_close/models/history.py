"""Historical pay fact model (one wide row per employee, fact type and year)."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Table, func, text

from payroll_close.models.base import Base

MONTHS = range(1, 13)

# Per-month column groups, in the order the live payment-detail table uses.
MONTH_FIELDS: tuple[str, ...] = (
    "amtthismth",
    "totamtpayable",
    "totpaidtodate",
    "initialloan",
    "payindic",
    "nmth",
    "loan",
    "bankcode",
    "bankbranch",
    "bankacnumber",
)


def month_column_name(field: str, month: int) -> str:
    """Name of the column holding ``field`` for a calendar month."""
    if field not in MONTH_FIELDS:
        raise KeyError(f"Unknown month field: {field}")
    if month not in MONTHS:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    return f"{field}{month}"


def _month_columns(month: int) -> list[Column]:
    return [
        Column(f"amtthismth{month}", Numeric(15, 2), nullable=False, server_default=text("0")),
        Column(f"totamtpayable{month}", Numeric(15, 2), nullable=False, server_default=text("0")),
        Column(f"totpaidtodate{month}", Numeric(15, 2), nullable=False, server_default=text("0")),
        Column(f"initialloan{month}", Numeric(15, 2), nullable=False, server_default=text("0")),
        Column(f"payindic{month}", String(1), nullable=True),
        Column(f"nmth{month}", Integer, nullable=True),
        Column(f"loan{month}", Numeric(15, 2), nullable=False, server_default=text("0")),
        Column(f"bankcode{month}", String(10), nullable=True),
        Column(f"bankbranch{month}", String(10), nullable=True),
        Column(f"bankacnumber{month}", String(20), nullable=True),
    ]


pay_history_table = Table(
    "py_payhistory",
    Base.metadata,
    Column("his_empno", String(20), primary_key=True),
    Column("his_type", String(10), primary_key=True),
    Column("his_year", Integer, primary_key=True),
    *[column for month in MONTHS for column in _month_columns(month)],
    Column("createdby", String(100), nullable=True),
    Column("datecreated", DateTime(timezone=True), server_default=func.now()),
    Column("modifiedby", String(100), nullable=True),
    Column("datemodified", DateTime(timezone=True), nullable=True),
)


class HistoricalFact(Base):
    """Every month of one year for one pay element of one employee.

    Written by the month-end closing process; read-only here.
    """

    __table__ = pay_history_table

    @classmethod
    def month_column(cls, field: str, month: int) -> Column:
        """Table column for ``field`` in ``month``."""
        return cls.__table__.c[month_column_name(field, month)]

    def amount_for(self, month: int) -> Decimal:
        """Amount recorded for a calendar month."""
        return getattr(self, month_column_name("amtthismth", month))
