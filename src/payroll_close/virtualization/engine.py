"""Query virtualization engine.

Statements are always written against the live schema. When a request
scope is armed for a historical period, the engine rewrites them to read
the equivalent data from the history table; otherwise they pass through.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from payroll_close.virtualization.rules import (
    RULES,
    RewriteContext,
    RewriteInapplicableError,
    RewriteRule,
)

logger = logging.getLogger(__name__)

# Exempt from rewriting even while armed.
SYSTEM_STATEMENT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^\s*(?:SHOW|DESCRIBE|DESC|EXPLAIN|PRAGMA)\b",
        r"\binformation_schema\b",
        r"\bsqlite_master\b",
        r"^\s*(?:CREATE|DROP|ALTER)\s+(?:OR\s+REPLACE\s+)?(?:VIEW|TABLE)\b",
        # History is read-only; writes keep their live targets.
        r"^\s*(?:INSERT|UPDATE|DELETE|CALL|REPLACE)\b",
    )
)

# Direct reads of the period cursor, exempt only when no live table is named.
PERIOD_CURSOR_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^\s*SELECT\s[^()]*?\bFROM\s+(?:\w+\.)?py_stdrate\b", re.IGNORECASE),
)


@dataclass
class RewriteScope:
    """Request-scoped rewrite state.

    One scope belongs to one reporting workflow, so arming it for a
    historical period never affects another request.
    """

    armed: bool = False
    context: RewriteContext | None = None
    queries_processed: int = 0
    queries_rewritten: int = 0

    def arm(self, year: int, month: int) -> None:
        """Route subsequent statements to the history table for (year, month)."""
        self.context = RewriteContext(year, month)
        self.armed = True
        self.queries_processed = 0
        self.queries_rewritten = 0

    def disarm(self) -> None:
        """Return to pass-through."""
        self.armed = False
        self.context = None

    def require_context(self) -> RewriteContext:
        if self.context is None:
            raise RewriteInapplicableError("Scope is armed without a historical period")
        return self.context

    def status(self) -> dict[str, Any]:
        return {
            "armed": self.armed,
            "year": self.context.year if self.context else None,
            "month": self.context.month if self.context else None,
            "queries_processed": self.queries_processed,
            "queries_rewritten": self.queries_rewritten,
        }


class QueryVirtualizer:
    """Applies the rewrite rules to statements for an armed scope.

    Rules are independent and order-insensitive; each is applied once over
    the output of the previous one.
    """

    def __init__(
        self,
        rules: tuple[RewriteRule, ...] = RULES,
        system_patterns: tuple[re.Pattern[str], ...] = SYSTEM_STATEMENT_PATTERNS,
    ):
        self.rules = rules
        self.system_patterns = system_patterns

    def is_system_statement(self, statement: str) -> bool:
        if any(pattern.search(statement) for pattern in self.system_patterns):
            return True
        if self.needs_rewrite(statement):
            return False
        return any(pattern.search(statement) for pattern in PERIOD_CURSOR_PATTERNS)

    def needs_rewrite(self, statement: str) -> bool:
        return any(rule.matches(statement) for rule in self.rules)

    def apply_rules(self, statement: str, context: RewriteContext) -> tuple[str, list[str]]:
        """Apply every rule; returns the statement and the names of rules that fired."""
        applied: list[str] = []
        for rule in self.rules:
            rewritten, count = rule.apply(statement, context)
            if count and rewritten != statement:
                applied.append(rule.name)
            statement = rewritten
        return statement, applied

    def rewrite(self, statement: str, scope: RewriteScope) -> str:
        """Return the statement to execute for ``scope``.

        Never raises for rewrite problems: an inconsistent scope or an
        inapplicable context is logged and the statement passes through.
        """
        scope.queries_processed += 1
        if not scope.armed:
            return statement
        if self.is_system_statement(statement):
            logger.debug("System statement exempt from rewrite")
            return statement

        try:
            context = scope.require_context()
            rewritten, applied = self.apply_rules(statement, context)
        except RewriteInapplicableError as exc:
            logger.warning("Historical rewrite skipped, passing statement through: %s", exc)
            return statement

        if applied:
            scope.queries_rewritten += 1
            logger.debug(
                "Rewrote statement for %s-%02d using %s",
                context.year, context.month, ", ".join(applied),
            )
        return rewritten
