"""
Unit Tests for IdentifierNormalizer and schema prefix stripping
"""

import pytest

from sqlite_bridge.sql_translator.diagnostics import DiagnosticCollector
from sqlite_bridge.sql_translator.identifier_normalizer import (
    IdentifierNormalizer,
    find_schema_qualifiers,
    quote_identifiers_pass,
    strip_schema_prefix_pass,
    strip_schema_prefixes,
)


@pytest.mark.unit
class TestIdentifierNormalizer:
    """Unit tests for IdentifierNormalizer class"""

    @pytest.fixture
    def backticks(self):
        return IdentifierNormalizer(["backtick"])

    @pytest.fixture
    def brackets(self):
        return IdentifierNormalizer(["bracket"])

    def test_backticks_to_double_quotes(self, backticks):
        """MySQL backtick identifiers become double-quoted"""
        normalized, count = backticks.normalize("SELECT `first name` FROM `users`")
        assert normalized == 'SELECT "first name" FROM "users"'
        assert count == 2

    def test_escaped_backtick(self, backticks):
        normalized, _ = backticks.normalize("SELECT `a``b`")
        assert normalized == 'SELECT "a`b"'

    def test_brackets_to_double_quotes(self, brackets):
        """SQL Server bracket identifiers become double-quoted"""
        normalized, count = brackets.normalize("SELECT [Order Id] FROM [dbo].[Orders]")
        assert normalized == 'SELECT "Order Id" FROM "dbo"."Orders"'
        assert count == 3

    def test_embedded_double_quote_escaped(self, brackets):
        normalized, _ = brackets.normalize('SELECT [say "hi"]')
        assert normalized == 'SELECT "say ""hi"""'

    def test_styles_are_independent(self, backticks):
        """Brackets are left alone unless requested"""
        normalized, count = backticks.normalize("SELECT arr[1]")
        assert normalized == "SELECT arr[1]"
        assert count == 0

    def test_unknown_style_rejected(self):
        with pytest.raises(ValueError):
            IdentifierNormalizer(["parens"])

    def test_is_quoted(self, backticks):
        assert backticks.is_quoted('"FirstName"')
        assert not backticks.is_quoted("FirstName")

    def test_literals_untouched(self):
        """The pass never rewrites backticks inside string literals"""
        collector = DiagnosticCollector()
        result = quote_identifiers_pass("SELECT `a` FROM t WHERE b = '`x`'", collector,
                                        quote_styles=("backtick",))
        assert result == "SELECT \"a\" FROM t WHERE b = '`x`'"


@pytest.mark.unit
class TestSchemaPrefixes:
    """Schema qualifiers are dropped for schemas found in table positions"""

    def test_table_positions(self):
        assert find_schema_qualifiers("SELECT * FROM sales.orders o JOIN hr.staff s ON o.id = s.id") == \
            {"sales", "hr"}

    def test_strip_from_and_references(self):
        """Column references qualified by a found schema lose it too"""
        sql = "SELECT sales.orders.id FROM sales.orders WHERE sales.orders.total > 0"
        stripped, count = strip_schema_prefixes(sql)
        assert stripped == "SELECT orders.id FROM orders WHERE orders.total > 0"
        assert count == 3

    def test_table_alias_qualifiers_kept(self):
        """A table alias is not a schema"""
        stripped, count = strip_schema_prefixes("SELECT o.id FROM orders o")
        assert stripped == "SELECT o.id FROM orders o"
        assert count == 0

    def test_three_part_name(self):
        stripped, _ = strip_schema_prefixes("SELECT * FROM db.dbo.orders")
        assert stripped == "SELECT * FROM orders"

    def test_quoted_schema(self):
        stripped, _ = strip_schema_prefixes('INSERT INTO "dbo"."Orders" (id) VALUES (1)')
        assert stripped == 'INSERT INTO "Orders" (id) VALUES (1)'

    def test_index_target(self):
        """CREATE INDEX ... ON schema.table is a table position"""
        stripped, _ = strip_schema_prefixes("CREATE INDEX idx ON app.users (email)")
        assert stripped == "CREATE INDEX idx ON users (email)"

    def test_pass_keeps_literals(self):
        collector = DiagnosticCollector(verbose=True)
        result = strip_schema_prefix_pass("SELECT 'app.users' FROM app.users", collector)
        assert result == "SELECT 'app.users' FROM users"
        assert collector.diagnostics


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
