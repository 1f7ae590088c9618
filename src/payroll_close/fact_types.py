"""Fact-type codes classifying pay elements.

Codes are short strings; the first two characters name the family.
"""

NET_PAY = "PY01"
TAX = "PY02"
ROUNDUP = "PY03"
HOUSING_FUND = "PR309"
PENSION_PATTERN = "PR3%"
TAXABLE_TO_DATE = "PT05"

GROSS_PREFIXES = ("BP", "BT")
ALLOWANCE_PREFIX = "PT"
TAX_FREE_PREFIX = "FP"
DEDUCTION_PREFIX = "PR"
LOAN_PREFIX = "PL"

# Families feeding the aggregation view's earnings (amt1) and deductions (amt2).
EARNING_PREFIXES = GROSS_PREFIXES + (ALLOWANCE_PREFIX, TAX_FREE_PREFIX)
DEDUCTION_PREFIXES = (DEDUCTION_PREFIX, LOAN_PREFIX)


def sql_list(values: tuple[str, ...]) -> str:
    """Render codes as a SQL ``IN`` list body."""
    return ", ".join(f"'{value}'" for value in values)
