"""Historical query virtualization."""

from payroll_close.virtualization.engine import (
    SYSTEM_STATEMENT_PATTERNS,
    QueryVirtualizer,
    RewriteScope,
)
from payroll_close.virtualization.gateway import QueryGateway, QueryMetadata, QueryResult
from payroll_close.virtualization.rules import (
    RULES,
    RewriteContext,
    RewriteInapplicableError,
    RewriteRule,
)

__all__ = [
    "QueryGateway",
    "QueryMetadata",
    "QueryResult",
    "QueryVirtualizer",
    "RULES",
    "RewriteContext",
    "RewriteInapplicableError",
    "RewriteRule",
    "RewriteScope",
    "SYSTEM_STATEMENT_PATTERNS",
]
