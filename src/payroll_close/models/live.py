"""Live working tables holding only the current period.

These are rebuilt by the external engine every processing cycle and carry
no year dimension.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from payroll_close.models.base import Base


class EmployeeColumnsMixin:
    """Columns shared by the employee master and the workforce snapshot."""

    empl_id: Mapped[str] = mapped_column(String(20), primary_key=True)
    surname: Mapped[str] = mapped_column(String(100), nullable=False)
    othername: Mapped[str | None] = mapped_column(String(100), nullable=True)
    title: Mapped[str | None] = mapped_column(String(20), nullable=True)
    gradelevel: Mapped[str | None] = mapped_column(String(10), nullable=True)
    location: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bankcode: Mapped[str | None] = mapped_column(String(10), nullable=True)
    bankacnumber: Mapped[str | None] = mapped_column(String(20), nullable=True)


class EmployeeMaster(EmployeeColumnsMixin, Base):
    """Tenant employee master."""

    __tablename__ = "hr_employees"


class WorkforceSnapshot(EmployeeColumnsMixin, Base):
    """Employees extracted for the current processing cycle."""

    __tablename__ = "py_wkemployees"


class PaymentDetail(Base):
    """One pay element of one employee for the current month."""

    __tablename__ = "py_masterpayded"

    his_empno: Mapped[str] = mapped_column(String(20), primary_key=True)
    his_type: Mapped[str] = mapped_column(String(10), primary_key=True)
    amtthismth: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    totamtpayable: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    totpaidtodate: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    initialloan: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    payindic: Mapped[str | None] = mapped_column(String(1), nullable=True)
    nmth: Mapped[int | None] = mapped_column(Integer, nullable=True)
    loan: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    bankcode: Mapped[str | None] = mapped_column(String(10), nullable=True)
    bankbranch: Mapped[str | None] = mapped_column(String(10), nullable=True)
    bankacnumber: Mapped[str | None] = mapped_column(String(20), nullable=True)
    createdby: Mapped[str | None] = mapped_column(String(100), nullable=True)
    datecreated: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    modifiedby: Mapped[str | None] = mapped_column(String(100), nullable=True)
    datemodified: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class CumulativeSummary(Base):
    """Per-employee month and year-to-date totals.

    ``his_type`` holds the month number the row belongs to.
    """

    __tablename__ = "py_mastercum"

    his_empno: Mapped[str] = mapped_column(String(20), primary_key=True)
    his_type: Mapped[int] = mapped_column(Integer, primary_key=True)
    his_grossmth: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    his_taxmth: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    his_netmth: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    his_nhfmth: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    his_pensionmth: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    his_roundup: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    his_grosstodate: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    his_taxtodate: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    his_taxfreepaytodate: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    his_taxabletodate: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    datecreated: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    datemodified: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class TemporarySummary(Base):
    """Aggregation view splitting this month's elements into summary categories."""

    __tablename__ = "py_tempsumm"

    cyear: Mapped[int] = mapped_column(Integer, primary_key=True)
    pmonth: Mapped[int] = mapped_column(Integer, primary_key=True)
    type1: Mapped[str] = mapped_column(String(10), primary_key=True)
    desc1: Mapped[str | None] = mapped_column(String(100), nullable=True)
    amt1: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    amt2: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    tax: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    net: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    roundup: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    ledger1: Mapped[str | None] = mapped_column(String(20), nullable=True)
