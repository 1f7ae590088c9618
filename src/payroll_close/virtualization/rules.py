"""Rewrite rules mapping live-schema table references to the history table.

Each rule matches one kind of live reference and renders an equivalent
fragment over ``py_payhistory`` for an active (year, month). A rendered
fragment never contains a live table name, so applying a rule twice is
the same as applying it once.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from payroll_close import fact_types
from payroll_close.models import (
    CumulativeSummary,
    EmployeeMaster,
    HistoricalFact,
    PaymentDetail,
    ProcessingPeriod,
    TemporarySummary,
    WorkforceSnapshot,
)
from payroll_close.models.history import MONTH_FIELDS, MONTHS
from payroll_close.models.period import CURRENT_PERIOD_CODE

HISTORY_TABLE = HistoricalFact.__table__.name
EMPLOYEE_MASTER_TABLE = EmployeeMaster.__tablename__

# Words that may follow a table reference but are never an alias.
ALIAS_STOPWORDS = (
    "WHERE", "GROUP", "ORDER", "LIMIT", "HAVING", "UNION", "EXCEPT", "INTERSECT",
    "JOIN", "LEFT", "RIGHT", "INNER", "OUTER", "CROSS", "FULL", "NATURAL",
    "ON", "USING", "AND", "OR", "SET", "VALUES", "WINDOW", "FOR", "AS",
    "OFFSET", "FETCH", "RETURNING", "STRAIGHT_JOIN",
    "CASE", "WHEN", "THEN", "ELSE", "END", "IS", "IN", "NOT", "BETWEEN", "LIKE",
    "ASC", "DESC",
)

_ALIAS = (
    r"(?:\s+(?:AS\s+)?(?!(?:" + "|".join(ALIAS_STOPWORDS) + r")\b)(?P<alias>[A-Za-z_]\w*))?"
)


class RewriteInapplicableError(Exception):
    """Raised internally when a statement cannot be rewritten for a context."""


@dataclass(frozen=True)
class RewriteContext:
    """The historical period a rewrite targets."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if self.month not in MONTHS:
            raise RewriteInapplicableError(
                f"Month must be between 1 and 12 for a historical rewrite, got {self.month}"
            )

    @property
    def previous_month(self) -> int:
        return 12 if self.month == 1 else self.month - 1


def table_reference(table: str) -> re.Pattern[str]:
    """Pattern for a table reference with optional schema prefix and alias.

    ``schema.table``, ``table alias`` and ``table AS alias`` all match;
    a keyword following the table is not taken as an alias, and
    ``table.column`` is not a table reference.
    """
    return re.compile(
        r"(?<![\w.])(?:[A-Za-z_]\w*\.)?" + re.escape(table) + r"\b(?!\.)" + _ALIAS,
        re.IGNORECASE,
    )


@dataclass(frozen=True)
class RewriteRule:
    """A compiled pattern and a renderer parameterized by the context."""

    name: str
    pattern: re.Pattern[str]
    render: Callable[[re.Match[str], RewriteContext], str]

    def matches(self, statement: str) -> bool:
        return self.pattern.search(statement) is not None

    def apply(self, statement: str, context: RewriteContext) -> tuple[str, int]:
        """Rewrite every match; returns the statement and the match count."""
        return self.pattern.subn(lambda match: self.render(match, context), statement)


def _alias(match: re.Match[str], default: str) -> str:
    return match.group("alias") or default


def _month_sum(month: int, alias: str | None = None) -> str:
    """Sum of month amounts from January through ``month``."""
    prefix = f"{alias}." if alias else ""
    return " + ".join(
        f"COALESCE({prefix}amtthismth{m}, 0)" for m in range(1, month + 1)
    )


def render_workforce(match: re.Match[str], context: RewriteContext) -> str:
    alias = match.group("alias")
    return f"{EMPLOYEE_MASTER_TABLE} {alias}" if alias else EMPLOYEE_MASTER_TABLE


def render_payment_detail(match: re.Match[str], context: RewriteContext) -> str:
    m = context.month
    columns = ",\n        ".join(f"{field}{m} AS {field}" for field in MONTH_FIELDS)
    return (
        f"(SELECT\n"
        f"        his_empno,\n"
        f"        his_type,\n"
        f"        {columns},\n"
        f"        createdby,\n"
        f"        datecreated,\n"
        f"        modifiedby,\n"
        f"        datemodified\n"
        f"      FROM {HISTORY_TABLE}\n"
        f"      WHERE his_year = {context.year}\n"
        f"        AND amtthismth{m} > 0) {_alias(match, 'mpd_hist')}"
    )


def _single_lookup(alias: str, column: str, year: int, condition: str) -> str:
    # Outer COALESCE: an employee without the fact has no row at all.
    return (
        f"COALESCE((SELECT {alias}.{column}\n"
        f"        FROM {HISTORY_TABLE} {alias}\n"
        f"        WHERE {alias}.his_empno = ph.his_empno\n"
        f"          AND {alias}.his_year = {year}\n"
        f"          AND {condition}\n"
        f"        LIMIT 1), 0)"
    )


def _summed_lookup(alias: str, expression: str, year: int, condition: str) -> str:
    return (
        f"(SELECT COALESCE(SUM({expression}), 0)\n"
        f"        FROM {HISTORY_TABLE} {alias}\n"
        f"        WHERE {alias}.his_empno = ph.his_empno\n"
        f"          AND {alias}.his_year = {year}\n"
        f"          AND {condition})"
    )


def render_cumulative_summary(match: re.Match[str], context: RewriteContext) -> str:
    y, m = context.year, context.month
    amount = f"amtthismth{m}"
    gross = fact_types.sql_list(fact_types.GROSS_PREFIXES)
    columns = [
        "ph.his_empno AS his_empno",
        f"{m} AS his_type",
        _summed_lookup(
            "ph1", f"ph1.{amount}", y,
            f"SUBSTR(ph1.his_type, 1, 2) IN ({gross})\n          AND ph1.{amount} > 0",
        ) + " AS his_grossmth",
        _single_lookup("ph2", amount, y, f"ph2.his_type = '{fact_types.TAX}'") + " AS his_taxmth",
        _single_lookup("ph3", amount, y, f"ph3.his_type = '{fact_types.NET_PAY}'") + " AS his_netmth",
        _single_lookup("ph4", amount, y, f"ph4.his_type = '{fact_types.HOUSING_FUND}'")
        + " AS his_nhfmth",
        _summed_lookup(
            "ph5", f"ph5.{amount}", y,
            f"ph5.his_type LIKE '{fact_types.PENSION_PATTERN}'\n"
            f"          AND ph5.his_type <> '{fact_types.HOUSING_FUND}'",
        ) + " AS his_pensionmth",
        _single_lookup("ph10", amount, y, f"ph10.his_type = '{fact_types.ROUNDUP}'")
        + " AS his_roundup",
        _summed_lookup(
            "ph6", _month_sum(m, "ph6"), y, f"SUBSTR(ph6.his_type, 1, 2) IN ({gross})"
        ) + " AS his_grosstodate",
        _summed_lookup("ph7", _month_sum(m, "ph7"), y, f"ph7.his_type = '{fact_types.TAX}'")
        + " AS his_taxtodate",
        _summed_lookup(
            "ph8", _month_sum(m, "ph8"), y, f"ph8.his_type LIKE '{fact_types.TAX_FREE_PREFIX}%'"
        ) + " AS his_taxfreepaytodate",
        _summed_lookup(
            "ph9", _month_sum(m, "ph9"), y, f"ph9.his_type = '{fact_types.TAXABLE_TO_DATE}'"
        ) + " AS his_taxabletodate",
        "MAX(ph.datecreated) AS datecreated",
        "MAX(ph.datemodified) AS datemodified",
    ]
    select_list = ",\n        ".join(columns)
    return (
        f"(SELECT\n"
        f"        {select_list}\n"
        f"      FROM {HISTORY_TABLE} ph\n"
        f"      WHERE ph.his_year = {y}\n"
        f"        AND ph.{amount} > 0\n"
        f"      GROUP BY ph.his_empno) {_alias(match, 'mc')}"
    )


def _category(condition: str, amount: str) -> str:
    return f"SUM(CASE WHEN {condition} THEN CAST({amount} AS DECIMAL(15,2)) ELSE 0 END)"


def render_temporary_summary(match: re.Match[str], context: RewriteContext) -> str:
    y, m = context.year, context.month
    amount = f"amtthismth{m}"
    prefix = "SUBSTR(his_type, 1, 2)"
    earnings = fact_types.sql_list(fact_types.EARNING_PREFIXES)
    deductions = fact_types.sql_list(fact_types.DEDUCTION_PREFIXES)
    return (
        f"(SELECT\n"
        f"        {y} AS cyear,\n"
        f"        {m} AS pmonth,\n"
        f"        his_type AS type1,\n"
        f"        his_type AS desc1,\n"
        f"        {_category(f'{prefix} IN ({earnings})', amount)} AS amt1,\n"
        f"        {_category(f'{prefix} IN ({deductions})', amount)} AS amt2,\n"
        f"        {_category(f'his_type = {fact_types.TAX!r}', amount)} AS tax,\n"
        f"        {_category(f'his_type = {fact_types.NET_PAY!r}', amount)} AS net,\n"
        f"        {_category(f'his_type = {fact_types.ROUNDUP!r}', amount)} AS roundup,\n"
        f"        '' AS ledger1\n"
        f"      FROM {HISTORY_TABLE}\n"
        f"      WHERE his_year = {y}\n"
        f"      GROUP BY his_type) {_alias(match, 'ts')}"
    )


_PERIOD_LOOKUP = re.compile(
    r"\(\s*SELECT\s+(?P<columns>\w+(?:\s*,\s*\w+)*)\s+FROM\s+(?:[A-Za-z_]\w*\.)?"
    + re.escape(ProcessingPeriod.__tablename__)
    + r"\s+WHERE\s+type\s*=\s*'"
    + CURRENT_PERIOD_CODE
    + r"'(?:\s+LIMIT\s+1)?\s*\)"
    + _ALIAS,
    re.IGNORECASE,
)


def render_current_period(match: re.Match[str], context: RewriteContext) -> str:
    values = {
        "ord": context.year,
        "mth": context.month,
        "pmth": context.previous_month,
    }
    columns = [c.strip().lower() for c in match.group("columns").split(",")]
    if any(column not in values for column in columns):
        # Only the period columns have literal equivalents.
        return match.group(0)
    alias = match.group("alias")
    if len(columns) == 1:
        literal = str(values[columns[0]])
        return f"{literal} AS {alias}" if alias else literal
    select_list = ", ".join(f"{values[c]} AS {c}" for c in columns)
    return f"(SELECT {select_list}) {alias or 'sr'}"


WORKFORCE_RULE = RewriteRule(
    "workforce", table_reference(WorkforceSnapshot.__tablename__), render_workforce
)
PAYMENT_DETAIL_RULE = RewriteRule(
    "payment_detail", table_reference(PaymentDetail.__tablename__), render_payment_detail
)
CUMULATIVE_SUMMARY_RULE = RewriteRule(
    "cumulative_summary",
    table_reference(CumulativeSummary.__tablename__),
    render_cumulative_summary,
)
TEMPORARY_SUMMARY_RULE = RewriteRule(
    "temporary_summary",
    table_reference(TemporarySummary.__tablename__),
    render_temporary_summary,
)
CURRENT_PERIOD_RULE = RewriteRule("current_period", _PERIOD_LOOKUP, render_current_period)

RULES: tuple[RewriteRule, ...] = (
    CURRENT_PERIOD_RULE,
    WORKFORCE_RULE,
    TEMPORARY_SUMMARY_RULE,
    PAYMENT_DETAIL_RULE,
    CUMULATIVE_SUMMARY_RULE,
)
