"""Shared query-execution entry point for reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_close.virtualization.engine import QueryVirtualizer, RewriteScope


@dataclass(frozen=True)
class QueryMetadata:
    """Shape of a result; identical whichever schema served it."""

    columns: tuple[str, ...]
    row_count: int


@dataclass(frozen=True)
class QueryResult:
    rows: list[dict[str, Any]]
    metadata: QueryMetadata

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None

    def scalar(self) -> Any:
        row = self.first()
        if row is None:
            return None
        return next(iter(row.values()))


@dataclass
class QueryGateway:
    """Executes live-schema statements, rewriting them when the scope is armed.

    Usage:
        scope = RewriteScope()
        await resolver.activate(scope, 2024, 5)
        gateway = QueryGateway(session, scope)
        result = await gateway.execute("SELECT ... FROM py_mastercum mc ...")
    """

    session: AsyncSession
    scope: RewriteScope = field(default_factory=RewriteScope)
    virtualizer: QueryVirtualizer = field(default_factory=QueryVirtualizer)

    async def execute(
        self,
        statement: str,
        parameters: dict[str, Any] | None = None,
    ) -> QueryResult:
        sql = self.virtualizer.rewrite(statement, self.scope)
        result = await self.session.execute(text(sql), parameters or {})
        if not result.returns_rows:
            return QueryResult(rows=[], metadata=QueryMetadata(columns=(), row_count=result.rowcount))
        columns = tuple(result.keys())
        rows = [dict(row._mapping) for row in result]
        return QueryResult(rows=rows, metadata=QueryMetadata(columns=columns, row_count=len(rows)))
