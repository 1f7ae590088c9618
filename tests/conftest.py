"""Pytest fixtures for payroll close tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payroll_close.models import (
    Base,
    CumulativeSummary,
    EmployeeMaster,
    PaymentDetail,
    ProcessingPeriod,
    ProcessLog,
    TemporarySummary,
    WorkforceSnapshot,
)
from payroll_close.models.history import pay_history_table
from payroll_close.services.procedures import BulkWorkResult

# In-memory SQLite shared by every session of a test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CURRENT_YEAR = 2024
CURRENT_MONTH = 6

EMPLOYEES = {
    "E001": ("Adeyemi", "Tunde"),
    "E002": ("Okafor", "Ngozi"),
}

# One month of pay elements per employee. The same amounts are recorded
# in history for May and June; June is also loaded into the live tables.
PAY_ELEMENTS: dict[tuple[str, str], Decimal] = {
    ("E001", "BP001"): Decimal("300000.00"),
    ("E001", "PT010"): Decimal("20000.00"),
    ("E001", "PY02"): Decimal("25000.00"),
    ("E001", "PR309"): Decimal("7500.00"),
    ("E001", "PR310"): Decimal("24000.00"),
    ("E001", "PL001"): Decimal("10000.00"),
    ("E001", "PY01"): Decimal("253500.00"),
    ("E002", "BT001"): Decimal("200000.00"),
    ("E002", "PY02"): Decimal("15000.00"),
    ("E002", "PR309"): Decimal("5000.00"),
    ("E002", "PY01"): Decimal("179999.60"),
    ("E002", "PY03"): Decimal("0.40"),
}

HISTORY_MONTHS = (5, 6)

# py_mastercum rows for June, consistent with PAY_ELEMENTS.
JUNE_CUMULATIVE = {
    "E001": {
        "his_grossmth": Decimal("300000.00"),
        "his_taxmth": Decimal("25000.00"),
        "his_netmth": Decimal("253500.00"),
        "his_nhfmth": Decimal("7500.00"),
        "his_pensionmth": Decimal("24000.00"),
        "his_roundup": Decimal("0"),
        "his_grosstodate": Decimal("600000.00"),
        "his_taxtodate": Decimal("50000.00"),
        "his_taxfreepaytodate": Decimal("0"),
        "his_taxabletodate": Decimal("0"),
    },
    "E002": {
        "his_grossmth": Decimal("200000.00"),
        "his_taxmth": Decimal("15000.00"),
        "his_netmth": Decimal("179999.60"),
        "his_nhfmth": Decimal("5000.00"),
        "his_pensionmth": Decimal("0"),
        "his_roundup": Decimal("0.40"),
        "his_grosstodate": Decimal("400000.00"),
        "his_taxtodate": Decimal("30000.00"),
        "his_taxfreepaytodate": Decimal("0"),
        "his_taxabletodate": Decimal("0"),
    },
}

# py_tempsumm rows for June: (type1, amt1, amt2, tax, net, roundup).
JUNE_TEMP_SUMMARY = [
    ("BP001", Decimal("300000.00"), 0, 0, 0, 0),
    ("BT001", Decimal("200000.00"), 0, 0, 0, 0),
    ("PT010", Decimal("20000.00"), 0, 0, 0, 0),
    ("PR309", 0, Decimal("12500.00"), 0, 0, 0),
    ("PR310", 0, Decimal("24000.00"), 0, 0, 0),
    ("PL001", 0, Decimal("10000.00"), 0, 0, 0),
    ("PY02", 0, 0, Decimal("40000.00"), 0, 0),
    ("PY01", 0, 0, 0, Decimal("433499.60"), 0),
    ("PY03", 0, 0, 0, 0, Decimal("0.40")),
]


class FakeProcedures:
    """In-memory PayrollProcedures recording calls.

    Operation names listed in ``fail_on`` raise RuntimeError instead.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()

    async def _run(self, name: str, *args) -> BulkWorkResult:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed: ORA-00060 deadlock detected")
        return BulkWorkResult(f"{name} completed", {"procedure": name})

    async def save_payroll_files(self, year, month, user):
        return await self._run("save_payroll_files", year, month, user)

    async def recall_payroll_files(self, year, month, user):
        return await self._run("recall_payroll_files", year, month, user)

    async def update_master_files(self, year, month, user, indicator):
        return await self._run("update_master_files", year, month, user, indicator)

    async def backup(self, year, month, user):
        return await self._run("backup", year, month, user)

    async def restore(self, year, month, user):
        return await self._run("restore", year, month, user)

    async def calculate(self, year, month, user):
        return await self._run("calculate", year, month, user)


@pytest_asyncio.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def procedures() -> FakeProcedures:
    return FakeProcedures()


@pytest_asyncio.fixture
async def payroll_data(session: AsyncSession) -> ProcessingPeriod:
    """Seed June 2024 at stage 999 with live data and May/June history."""
    period = ProcessingPeriod(
        year=CURRENT_YEAR,
        month=CURRENT_MONTH,
        previous_month=CURRENT_MONTH - 1,
        stage=999,
        updated_by="seed",
    )
    session.add(period)

    for empl_id, (surname, othername) in EMPLOYEES.items():
        session.add(EmployeeMaster(empl_id=empl_id, surname=surname, othername=othername))
        session.add(WorkforceSnapshot(empl_id=empl_id, surname=surname, othername=othername))

    history_rows = []
    for (empno, his_type), amount in PAY_ELEMENTS.items():
        row = {"his_empno": empno, "his_type": his_type, "his_year": CURRENT_YEAR}
        for month in HISTORY_MONTHS:
            row[f"amtthismth{month}"] = amount
        history_rows.append(row)
        session.add(PaymentDetail(his_empno=empno, his_type=his_type, amtthismth=amount))
    await session.execute(insert(pay_history_table), history_rows)

    for empno, values in JUNE_CUMULATIVE.items():
        session.add(CumulativeSummary(his_empno=empno, his_type=CURRENT_MONTH, **values))

    for type1, amt1, amt2, tax, net, roundup in JUNE_TEMP_SUMMARY:
        session.add(
            TemporarySummary(
                cyear=CURRENT_YEAR,
                pmonth=CURRENT_MONTH,
                type1=type1,
                desc1=type1,
                amt1=amt1,
                amt2=amt2,
                tax=tax,
                net=net,
                roundup=roundup,
            )
        )

    await session.commit()
    return period


@pytest.fixture
def set_stage(session: AsyncSession) -> Callable[[int], Awaitable[None]]:
    """Move the seeded period to an arbitrary stage value."""

    async def _set_stage(stage: int) -> None:
        await session.execute(
            update(ProcessingPeriod)
            .where(ProcessingPeriod.period_type == "BT05")
            .values(stage=stage)
        )
        await session.commit()

    return _set_stage


@pytest.fixture
def audit_entries(session: AsyncSession) -> Callable[[], Awaitable[list[ProcessLog]]]:
    """Fetch every audit entry in insertion order."""

    async def _entries() -> list[ProcessLog]:
        result = await session.execute(
            select(ProcessLog)
            .order_by(ProcessLog.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    return _entries


@pytest.fixture
def stage_of(session: AsyncSession) -> Callable[[], Awaitable[int]]:
    """Read the stage straight from the table."""

    async def _stage() -> int:
        return await session.scalar(
            select(ProcessingPeriod.stage).where(ProcessingPeriod.period_type == "BT05")
        )

    return _stage


@pytest.fixture
def history_count(session: AsyncSession) -> Callable[[], Awaitable[int]]:
    async def _count() -> int:
        return await session.scalar(select(func.count()).select_from(pay_history_table))

    return _count
