"""
Unit Tests for the shared query rewrite builders
"""

import pytest

from sqlite_bridge.sql_translator import query_passes as qp
from sqlite_bridge.sql_translator.diagnostics import DiagnosticCollector
from sqlite_bridge.sql_translator.lexer import mask
from sqlite_bridge.sql_translator.mappings.datatypes import get_type_table
from sqlite_bridge.sql_translator.mappings.functions import FunctionCategory, get_function_registry


def rewrite(sql, builders):
    """Run builders over masked SQL and restore the literals"""
    masked = mask(sql)
    return masked.restore(qp.dispatch_calls(masked.text, builders))


@pytest.mark.unit
class TestConditionals:
    """CASE-producing builders"""

    def test_if_to_case(self):
        assert rewrite("SELECT IF(a > 1, 'big', 'small')", {"IF": qp.if_to_case}) == \
            "SELECT CASE WHEN a > 1 THEN 'big' ELSE 'small' END"

    def test_nvl2_to_case(self):
        assert rewrite("SELECT NVL2(a, 1, 0)", {"NVL2": qp.nvl2_to_case}) == \
            "SELECT CASE WHEN a IS NOT NULL THEN 1 ELSE 0 END"

    def test_decode_pairs_and_default(self):
        """One WHEN per search/result pair, odd trailing argument as ELSE"""
        sql = "SELECT DECODE(status, 'A', 'Active', 'I', 'Inactive', 'Unknown') FROM users"
        assert rewrite(sql, {"DECODE": qp.decode_to_case}) == (
            "SELECT CASE WHEN status = 'A' THEN 'Active' WHEN status = 'I' THEN 'Inactive' "
            "ELSE 'Unknown' END FROM users"
        )

    def test_decode_without_default(self):
        assert rewrite("SELECT DECODE(x, 1, 'one')", {"DECODE": qp.decode_to_case}) == \
            "SELECT CASE WHEN x = 1 THEN 'one' END"

    def test_decode_null_search(self):
        """DECODE matches NULL against NULL"""
        assert rewrite("SELECT DECODE(x, NULL, 'none', 'some')", {"DECODE": qp.decode_to_case}) == \
            "SELECT CASE WHEN x IS NULL THEN 'none' ELSE 'some' END"

    def test_choose_to_case(self):
        assert rewrite("SELECT CHOOSE(i, 'a', 'b')", {"CHOOSE": qp.choose_to_case}) == \
            "SELECT CASE WHEN i = 1 THEN 'a' WHEN i = 2 THEN 'b' END"

    def test_wrong_arity_kept(self):
        assert rewrite("SELECT IF(a, b)", {"IF": qp.if_to_case}) == "SELECT IF(a, b)"


@pytest.mark.unit
class TestStrings:
    """Concatenation, search and trimming"""

    def test_concat(self):
        masked = mask("SELECT 1")
        assert qp.concat_expression(["a", "b"], masked) == "(a || b)"

    def test_concat_null_as_empty(self):
        masked = mask("SELECT 1")
        assert masked.restore(qp.concat_expression(["a", "b"], masked, null_as_empty=True)) == \
            "(COALESCE(a, '') || COALESCE(b, ''))"

    def test_concat_ws(self):
        masked = mask("SELECT 1")
        assert masked.restore(qp.concat_ws_expression(["'-'", "a", "b"], masked)) == \
            "SUBSTR(COALESCE('-' || a, '') || COALESCE('-' || b, ''), LENGTH('-') + 1)"

    def test_position(self):
        assert rewrite("SELECT POSITION('b' IN name)", {"POSITION": qp.position_call}) == \
            "SELECT INSTR(name, 'b')"

    def test_locate_with_start(self):
        assert rewrite("SELECT LOCATE('b', name, 3)", {"LOCATE": qp.locate_call}) == (
            "SELECT (CASE WHEN INSTR(SUBSTR(name, 3), 'b') > 0 "
            "THEN INSTR(SUBSTR(name, 3), 'b') + 3 - 1 ELSE 0 END)"
        )

    def test_substring_from_for(self):
        assert rewrite("SELECT SUBSTRING(name FROM 2 FOR 3)", {"SUBSTRING": qp.substring_call}) == \
            "SELECT SUBSTR(name, 2, 3)"

    def test_substring_plain_arguments_kept(self):
        """Comma-separated SUBSTRING is left to the rename table"""
        assert rewrite("SELECT SUBSTRING(name, 2, 3)", {"SUBSTRING": qp.substring_call}) == \
            "SELECT SUBSTRING(name, 2, 3)"

    def test_left_right(self):
        builders = {"LEFT": qp.left_call, "RIGHT": qp.right_call}
        assert rewrite("SELECT LEFT(a, 2), RIGHT(a, 3)", builders) == "SELECT SUBSTR(a, 1, 2), SUBSTR(a, -3)"
        assert rewrite("SELECT RIGHT(a, n + 1)", builders) == "SELECT SUBSTR(a, -(n + 1))"

    def test_trim(self):
        assert rewrite("SELECT TRIM(LEADING 'x' FROM name)", {"TRIM": qp.trim_call}) == \
            "SELECT LTRIM(name, 'x')"
        assert rewrite("SELECT TRIM(BOTH FROM name)", {"TRIM": qp.trim_call}) == "SELECT TRIM(name)"
        assert rewrite("SELECT TRIM(name)", {"TRIM": qp.trim_call}) == "SELECT TRIM(name)"

    def test_len(self):
        assert rewrite("SELECT LEN(name)", {"LEN": qp.len_call}) == "SELECT LENGTH(RTRIM(name))"


@pytest.mark.unit
class TestAggregates:
    """Ordered-set aggregates folded into GROUP_CONCAT"""

    def setup_method(self):
        self.diagnostics = DiagnosticCollector()

    def builders(self, masked):
        return {
            "STRING_AGG": lambda call: qp.string_agg_call(call, masked, self.diagnostics),
            "LISTAGG": lambda call: qp.listagg_call(call, masked, self.diagnostics),
            "GROUP_CONCAT": lambda call: qp.mysql_group_concat(call, masked, self.diagnostics),
        }

    def run(self, sql):
        masked = mask(sql)
        text = qp.drop_within_group(masked.text, masked, self.diagnostics)
        return masked.restore(qp.dispatch_calls(text, self.builders(masked)))

    def test_string_agg(self):
        assert self.run("SELECT STRING_AGG(name, ', ') FROM t") == "SELECT GROUP_CONCAT(name, ', ') FROM t"
        assert self.diagnostics.warnings == []

    def test_string_agg_order_by_dropped(self):
        assert self.run("SELECT STRING_AGG(name, ',' ORDER BY name) FROM t") == \
            "SELECT GROUP_CONCAT(name, ',') FROM t"
        assert len(self.diagnostics.warnings) == 1

    def test_listagg_within_group(self):
        assert self.run("SELECT LISTAGG(name, ';') WITHIN GROUP (ORDER BY name) FROM t") == \
            "SELECT GROUP_CONCAT(name, ';') FROM t"
        assert len(self.diagnostics.warnings) == 1

    def test_listagg_default_separator(self):
        """Oracle's default LISTAGG separator is empty"""
        assert self.run("SELECT LISTAGG(name) FROM t") == "SELECT GROUP_CONCAT(name, '') FROM t"

    def test_group_concat_separator(self):
        assert self.run("SELECT GROUP_CONCAT(name SEPARATOR '|') FROM t") == \
            "SELECT GROUP_CONCAT(name, '|') FROM t"

    def test_group_concat_plain_kept(self):
        """Valid SQLite GROUP_CONCAT calls are not touched"""
        assert self.run("SELECT GROUP_CONCAT(name) FROM t") == "SELECT GROUP_CONCAT(name) FROM t"

    def test_group_concat_values_concatenated(self):
        """MySQL concatenates multiple values per row before joining"""
        assert self.run("SELECT GROUP_CONCAT(first, ' ', last) FROM t") == \
            "SELECT GROUP_CONCAT(first || ' ' || last) FROM t"

    def test_group_concat_distinct_separator_warns(self):
        assert self.run("SELECT GROUP_CONCAT(DISTINCT name SEPARATOR ';') FROM t") == \
            "SELECT GROUP_CONCAT(DISTINCT name) FROM t"
        assert len(self.diagnostics.warnings) == 1


@pytest.mark.unit
class TestCasts:
    """Casts onto canonical types and date functions"""

    def setup_method(self):
        self.diagnostics = DiagnosticCollector()
        self.rules = qp.CastRules(type_table=get_type_table("postgresql"))

    def run(self, sql):
        masked = mask(sql)
        text = qp.dispatch_calls(masked.text, {"CAST": lambda call: qp.cast_call(call, self.rules, masked,
                                                                                 self.diagnostics)})
        return masked.restore(qp.pg_cast_operators(text, self.rules, masked, self.diagnostics))

    def test_cast_to_canonical(self):
        assert self.run("SELECT CAST(a AS VARCHAR(20))") == "SELECT CAST(a AS TEXT)"
        assert self.run("SELECT CAST(a AS NUMERIC(10, 2))") == "SELECT CAST(a AS REAL)"

    def test_temporal_cast(self):
        assert self.run("SELECT CAST(a AS DATE)") == "SELECT date(a)"
        assert self.run("SELECT CAST(a AS timestamp with time zone)") == "SELECT datetime(a)"

    def test_double_colon_cast(self):
        assert self.run("SELECT id::text, created_at::date FROM t") == \
            "SELECT CAST(id AS TEXT), date(created_at) FROM t"

    def test_double_colon_on_literal_and_call(self):
        assert self.run("SELECT '42'::integer, lower(name)::varchar(10)") == \
            "SELECT CAST('42' AS INTEGER), CAST(lower(name) AS TEXT)"

    def test_array_cast_warns(self):
        assert self.run("SELECT tags::text[] FROM t") == "SELECT CAST(tags AS TEXT) FROM t"
        assert len(self.diagnostics.warnings) == 1

    def test_unknown_type_warns(self):
        assert self.run("SELECT CAST(a AS hstore)") == "SELECT CAST(a AS hstore)"
        assert len(self.diagnostics.warnings) == 1


@pytest.mark.unit
class TestOperatorsAndRenames:

    def setup_method(self):
        self.diagnostics = DiagnosticCollector()

    def test_operator_rules(self):
        rules = (
            qp.operator_rule("^=", r"\s*\^=\s*", " <> "),
            qp.operator_rule("(+)", r"\s*\(\s*\+\s*\)", None),
        )
        masked = mask("SELECT * FROM a, b WHERE a.x ^= 1 AND a.id = b.id(+)")
        result = masked.restore(qp.apply_operator_rules(masked.text, masked, self.diagnostics, rules))
        assert result == "SELECT * FROM a, b WHERE a.x <> 1 AND a.id = b.id(+)"
        assert len(self.diagnostics.warnings) == 1

    def test_operator_map(self):
        rules = (
            qp.operator_rule("IS NOT DISTINCT FROM", r"x", "IS"),
            qp.operator_rule("~", r"~", None),
        )
        assert qp.operator_map(rules) == {"IS NOT DISTINCT FROM": "IS"}

    def test_mod_call(self):
        assert rewrite("SELECT MOD(a, 2)", {"MOD": qp.mod_call}) == "SELECT (a % 2)"

    def test_rename_functions(self):
        """Registry renames apply; unsupported functions stay with a warning"""
        masked = mask("SELECT NVL(a, 0), INITCAP(b)")
        text = qp.rename_functions(
            masked.text,
            masked,
            self.diagnostics,
            get_function_registry("oracle"),
            [FunctionCategory.CONDITIONAL, FunctionCategory.STRING],
        )
        assert masked.restore(text) == "SELECT IFNULL(a, 0), INITCAP(b)"
        assert "INITCAP" in self.diagnostics.warnings[0].message

    def test_current_value(self):
        build = qp.current_value("CURRENT_TIMESTAMP")
        assert rewrite("SELECT NOW(), NOW(3)", {"NOW": build}) == "SELECT CURRENT_TIMESTAMP, NOW(3)"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
