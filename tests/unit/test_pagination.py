"""
Unit Tests for pagination normalization

Every dialect form ends as SQLite's trailing LIMIT c OFFSET o; forms that
cannot be moved safely are left unchanged with a warning.
"""

from functools import partial

import pytest

from sqlite_bridge.sql_translator.diagnostics import DiagnosticCollector
from sqlite_bridge.sql_translator.pagination import pagination_pass, split_clauses

mysql_pagination = partial(pagination_pass, limit_comma=True)
postgresql_pagination = partial(pagination_pass, offset_first=True, fetch=True)
mssql_pagination = partial(pagination_pass, top=True, fetch=True)
oracle_pagination = partial(pagination_pass, rownum=True, fetch=True)


@pytest.mark.unit
class TestLocalForms:
    """Forms rewritten where they stand"""

    def setup_method(self):
        self.diagnostics = DiagnosticCollector()

    def test_limit_comma(self):
        """LIMIT o, c becomes LIMIT c OFFSET o"""
        assert mysql_pagination("SELECT * FROM t LIMIT 10, 20", self.diagnostics) == \
            "SELECT * FROM t LIMIT 20 OFFSET 10"

    def test_limit_comma_parameters(self):
        assert mysql_pagination("SELECT * FROM t LIMIT ?, ?", self.diagnostics) == \
            "SELECT * FROM t LIMIT ? OFFSET ?"

    def test_offset_before_limit(self):
        assert postgresql_pagination("SELECT * FROM t OFFSET 5 LIMIT 10", self.diagnostics) == \
            "SELECT * FROM t LIMIT 10 OFFSET 5"

    def test_limit_all(self):
        assert postgresql_pagination("SELECT * FROM t LIMIT ALL OFFSET 3", self.diagnostics) == \
            "SELECT * FROM t LIMIT -1 OFFSET 3"

    def test_offset_fetch(self):
        assert mssql_pagination(
            "SELECT * FROM t ORDER BY id OFFSET 10 ROWS FETCH NEXT 5 ROWS ONLY", self.diagnostics
        ) == "SELECT * FROM t ORDER BY id LIMIT 5 OFFSET 10"

    def test_fetch_first(self):
        assert oracle_pagination("SELECT * FROM t FETCH FIRST 3 ROWS ONLY", self.diagnostics) == \
            "SELECT * FROM t LIMIT 3"

    def test_offset_alone(self):
        """SQLite only accepts OFFSET after a LIMIT"""
        assert postgresql_pagination("SELECT * FROM t ORDER BY id OFFSET 20", self.diagnostics) == \
            "SELECT * FROM t ORDER BY id LIMIT -1 OFFSET 20"

    def test_fetch_with_ties_unchanged(self):
        sql = "SELECT * FROM t ORDER BY a FETCH FIRST 5 ROWS WITH TIES"
        assert postgresql_pagination(sql, self.diagnostics) == sql
        assert len(self.diagnostics.warnings) == 1

    def test_canonical_form_idempotent(self):
        """LIMIT n OFFSET m passes through every dialect unchanged"""
        sql = "SELECT * FROM t LIMIT 20 OFFSET 10"
        for rewrite in (mysql_pagination, postgresql_pagination, mssql_pagination, oracle_pagination):
            assert rewrite(sql, self.diagnostics) == sql
            assert rewrite(rewrite(sql, self.diagnostics), self.diagnostics) == sql
        assert self.diagnostics.warnings == []

    def test_literal_limit_untouched(self):
        sql = "SELECT 'LIMIT 1, 2' FROM t"
        assert mysql_pagination(sql, self.diagnostics) == sql


@pytest.mark.unit
class TestTopRelocation:
    """SQL Server prefix TOP n"""

    def setup_method(self):
        self.diagnostics = DiagnosticCollector()

    def test_top_to_limit(self):
        assert mssql_pagination("SELECT TOP 10 * FROM users ORDER BY id", self.diagnostics) == \
            "SELECT * FROM users ORDER BY id LIMIT 10"

    def test_top_parenthesized_and_distinct(self):
        assert mssql_pagination("SELECT DISTINCT TOP (5) name FROM users;", self.diagnostics) == \
            "SELECT DISTINCT name FROM users LIMIT 5;"

    def test_top_in_subquery(self):
        """Each query level gets its own LIMIT"""
        sql = "SELECT * FROM (SELECT TOP 3 id FROM t ORDER BY id) x"
        assert mssql_pagination(sql, self.diagnostics) == "SELECT * FROM (SELECT id FROM t ORDER BY id LIMIT 3) x"

    def test_top_percent_warns(self):
        sql = "SELECT TOP 10 PERCENT * FROM t"
        assert mssql_pagination(sql, self.diagnostics) == sql
        assert "PERCENT" in self.diagnostics.warnings[0].message

    def test_top_with_union_warns(self):
        sql = "SELECT TOP 5 a FROM t UNION SELECT a FROM u"
        assert mssql_pagination(sql, self.diagnostics) == sql
        assert len(self.diagnostics.warnings) == 1

    @pytest.mark.parametrize("sql,statement", [
        ("UPDATE TOP (5) t SET a = 1", "UPDATE"),
        ("DELETE TOP (5) FROM t WHERE a = 1", "DELETE"),
    ])
    def test_dml_top_warns(self, sql, statement):
        assert mssql_pagination(sql, self.diagnostics) == sql
        assert len(self.diagnostics.warnings) == 1
        assert self.diagnostics.warnings[0].message.startswith(f"{statement} TOP")

    def test_unparenthesized_parameter_warns(self):
        sql = "SELECT TOP @n a FROM t"
        assert mssql_pagination(sql, self.diagnostics) == sql
        assert len(self.diagnostics.warnings) == 1

    def test_parenthesized_parameter_moved(self):
        assert mssql_pagination("SELECT TOP (@n) a FROM t", self.diagnostics) == "SELECT a FROM t LIMIT @n"
        assert self.diagnostics.warnings == []

    def test_column_named_top_untouched(self):
        sql = "SELECT top FROM t"
        assert mssql_pagination(sql, self.diagnostics) == sql
        assert self.diagnostics.warnings == []


@pytest.mark.unit
class TestRowLocking:
    """SQLite locks the database, not rows"""

    def setup_method(self):
        self.diagnostics = DiagnosticCollector()

    def test_for_update_dropped(self):
        assert postgresql_pagination("SELECT * FROM t LIMIT 5 FOR UPDATE", self.diagnostics) == \
            "SELECT * FROM t LIMIT 5"
        assert len(self.diagnostics.warnings) == 1

    def test_for_update_of_skip_locked(self):
        assert postgresql_pagination("SELECT * FROM t WHERE id = 1 FOR UPDATE OF t SKIP LOCKED;",
                                     self.diagnostics) == "SELECT * FROM t WHERE id = 1;"

    def test_dropped_before_rownum_relocation(self):
        assert oracle_pagination("SELECT * FROM t WHERE ROWNUM <= 1 FOR UPDATE NOWAIT", self.diagnostics) == \
            "SELECT * FROM t LIMIT 1"

    def test_lock_in_share_mode(self):
        assert mysql_pagination("SELECT * FROM t LOCK IN SHARE MODE", self.diagnostics) == "SELECT * FROM t"


@pytest.mark.unit
class TestRownumRelocation:
    """Oracle ROWNUM predicates"""

    def setup_method(self):
        self.diagnostics = DiagnosticCollector()

    def test_rownum_only_predicate(self):
        assert oracle_pagination("SELECT * FROM users WHERE ROWNUM <= 10", self.diagnostics) == \
            "SELECT * FROM users LIMIT 10"

    def test_rownum_conjunct(self):
        assert oracle_pagination("SELECT * FROM users WHERE active = 1 AND ROWNUM < 6", self.diagnostics) == \
            "SELECT * FROM users WHERE active = 1 LIMIT 5"

    def test_rownum_reversed_operands(self):
        assert oracle_pagination("SELECT * FROM users WHERE 10 >= ROWNUM", self.diagnostics) == \
            "SELECT * FROM users LIMIT 10"

    def test_rownum_with_order_by_warns(self):
        result = oracle_pagination("SELECT * FROM users WHERE ROWNUM <= 3 ORDER BY name", self.diagnostics)
        assert result == "SELECT * FROM users ORDER BY name LIMIT 3"
        assert "ORDER BY" in self.diagnostics.warnings[0].message

    def test_rownum_disjunction_unchanged(self):
        sql = "SELECT * FROM users WHERE ROWNUM <= 3 OR active = 1"
        assert oracle_pagination(sql, self.diagnostics) == sql
        assert len(self.diagnostics.warnings) == 1

    def test_rownum_in_select_list_unchanged(self):
        sql = "SELECT ROWNUM, name FROM users"
        assert oracle_pagination(sql, self.diagnostics) == sql
        assert len(self.diagnostics.warnings) == 1


@pytest.mark.unit
def test_split_clauses_depth_zero_only():
    """Clauses of nested queries belong to their own level"""
    clauses = split_clauses("SELECT a FROM (SELECT b FROM c WHERE d) x WHERE e ORDER BY a")
    assert [c.keyword for c in clauses] == ["SELECT", "FROM", "WHERE", "ORDER BY"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
