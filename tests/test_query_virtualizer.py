"""Tests for request-scoped query virtualization."""

import logging

import pytest

from payroll_close.virtualization import QueryVirtualizer, RewriteScope

SUMMARY = "SELECT SUM(mc.his_netmth) FROM py_mastercum mc"


@pytest.fixture
def virtualizer() -> QueryVirtualizer:
    return QueryVirtualizer()


class TestRewriteScope:
    def test_starts_disarmed(self):
        scope = RewriteScope()
        assert scope.armed is False
        assert scope.status() == {
            "armed": False,
            "year": None,
            "month": None,
            "queries_processed": 0,
            "queries_rewritten": 0,
        }

    def test_arm_resets_counters(self):
        scope = RewriteScope(queries_processed=4, queries_rewritten=3)
        scope.arm(2024, 5)
        assert scope.armed is True
        assert (scope.context.year, scope.context.month) == (2024, 5)
        assert scope.queries_processed == 0
        assert scope.queries_rewritten == 0

    def test_disarm_clears_context(self):
        scope = RewriteScope()
        scope.arm(2024, 5)
        scope.disarm()
        assert scope.armed is False
        assert scope.context is None

    def test_scopes_are_independent(self):
        """Arming one request's scope leaves another untouched."""
        first, second = RewriteScope(), RewriteScope()
        first.arm(2024, 5)
        assert second.armed is False
        assert second.context is None


class TestQueryVirtualizer:
    def test_disarmed_passes_through(self, virtualizer):
        scope = RewriteScope()
        assert virtualizer.rewrite(SUMMARY, scope) == SUMMARY
        assert scope.queries_processed == 1
        assert scope.queries_rewritten == 0

    def test_armed_rewrites(self, virtualizer):
        scope = RewriteScope()
        scope.arm(2024, 5)
        sql = virtualizer.rewrite(SUMMARY, scope)
        assert "py_mastercum" not in sql
        assert "py_payhistory" in sql
        assert scope.queries_processed == 1
        assert scope.queries_rewritten == 1

    def test_armed_without_matching_tables(self, virtualizer):
        scope = RewriteScope()
        scope.arm(2024, 5)
        statement = "SELECT COUNT(*) FROM py_payhistory"
        assert virtualizer.rewrite(statement, scope) == statement
        assert scope.queries_processed == 1
        assert scope.queries_rewritten == 0

    @pytest.mark.parametrize(
        "statement",
        [
            "SHOW TABLES",
            "DESCRIBE py_mastercum",
            "EXPLAIN SELECT * FROM py_mastercum",
            "SELECT table_name FROM information_schema.tables WHERE table_name = 'py_mastercum'",
            "SELECT name FROM sqlite_master WHERE name = 'py_wkemployees'",
            "SELECT ord, mth, sun FROM py_stdrate WHERE type = 'BT05'",
            "UPDATE py_stdrate SET sun = 666 WHERE type = 'BT05'",
            "INSERT INTO py_masterpayded (his_empno, his_type) VALUES ('E1', 'PY01')",
            "DELETE FROM py_tempsumm",
            "CALL py_calculate_pay('admin', 500, 'NAVY', 'No')",
            "CREATE VIEW v AS SELECT * FROM py_mastercum",
        ],
    )
    def test_system_statements_exempt(self, virtualizer, statement):
        """Metadata, period cursor and write statements are never rewritten."""
        scope = RewriteScope()
        scope.arm(2024, 5)
        assert virtualizer.rewrite(statement, scope) == statement
        assert scope.queries_rewritten == 0

    def test_period_lookup_inside_report_is_rewritten(self, virtualizer):
        """Only direct period reads are exempt, not embedded lookups."""
        scope = RewriteScope()
        scope.arm(2024, 5)
        statement = (
            "SELECT COUNT(*) FROM (SELECT ord, mth FROM py_stdrate WHERE type = 'BT05') sr"
        )
        assert virtualizer.is_system_statement(statement) is False
        assert virtualizer.rewrite(statement, scope) == (
            "SELECT COUNT(*) FROM (SELECT 2024 AS ord, 5 AS mth) sr"
        )

    def test_period_cursor_join_is_rewritten(self, virtualizer):
        """A period read that joins a live table is not a system statement."""
        scope = RewriteScope()
        scope.arm(2024, 5)
        statement = (
            "SELECT mc.his_empno, mc.his_netmth FROM py_stdrate s "
            "JOIN py_mastercum mc ON mc.his_type = s.mth WHERE s.type='BT05'"
        )
        assert virtualizer.is_system_statement(statement) is False
        sql = virtualizer.rewrite(statement, scope)
        assert "py_mastercum" not in sql
        assert "py_payhistory" in sql
        assert "GROUP BY ph.his_empno) mc ON mc.his_type = s.mth" in sql
        assert scope.queries_rewritten == 1

    def test_armed_without_context_warns(self, virtualizer, caplog):
        """An inconsistent scope passes the statement through with a warning."""
        scope = RewriteScope(armed=True)
        with caplog.at_level(logging.WARNING, logger="payroll_close.virtualization.engine"):
            assert virtualizer.rewrite(SUMMARY, scope) == SUMMARY
        assert "passing statement through" in caplog.text
        assert scope.queries_rewritten == 0

    def test_counters_accumulate(self, virtualizer):
        scope = RewriteScope()
        scope.arm(2024, 5)
        virtualizer.rewrite(SUMMARY, scope)
        virtualizer.rewrite("SELECT 1", scope)
        virtualizer.rewrite("SELECT * FROM py_wkemployees we", scope)
        status = scope.status()
        assert status["queries_processed"] == 3
        assert status["queries_rewritten"] == 2
        assert (status["year"], status["month"]) == (2024, 5)
