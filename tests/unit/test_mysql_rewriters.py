"""
Unit Tests for the MySQL / MariaDB schema and query rewriters
"""

import pytest

from sqlite_bridge.config_schema import RewriterOptions, Transformations
from sqlite_bridge.plugins import MySQLQueryRewriter, MySQLSchemaRewriter


@pytest.mark.unit
class TestMySQLSchemaRewriter:
    """mysqldump-style DDL"""

    def setup_method(self):
        self.warnings = []
        self.rewriter = MySQLSchemaRewriter(on_diagnostic=self._collect)

    def _collect(self, level, message):
        if level.value == "WARN":
            self.warnings.append(message)

    def test_dump_table(self):
        """Backticks, AUTO_INCREMENT and table options in one statement"""
        sql = (
            "CREATE TABLE `users` (`id` INT AUTO_INCREMENT PRIMARY KEY, "
            "`name` VARCHAR(255) NOT NULL) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;"
        )
        result = self.rewriter.rewrite(sql)
        assert result.sql == 'CREATE TABLE "users" ("id" INTEGER PRIMARY KEY AUTOINCREMENT, "name" TEXT NOT NULL);'
        assert any("ENGINE" in w for w in self.warnings)
        assert "auto_increment" in result.passes_applied

    def test_enum_becomes_check(self):
        sql = "CREATE TABLE t (status ENUM('a','b') NOT NULL)"
        assert self.rewriter.rewrite_schema(sql) == \
            "CREATE TABLE t (status TEXT CHECK(status IN ('a','b')) NOT NULL)"

    def test_enum_without_constraints(self):
        rewriter = MySQLSchemaRewriter(RewriterOptions(transformations=Transformations(constraints=False)))
        assert rewriter.rewrite_schema("CREATE TABLE t (status ENUM('a','b'))") == "CREATE TABLE t (status TEXT)"

    def test_inline_key_dropped(self):
        sql = "CREATE TABLE t (id INT, name VARCHAR(50), KEY idx_name (name))"
        assert self.rewriter.rewrite_schema(sql) == "CREATE TABLE t (id INTEGER, name TEXT)"
        assert len(self.warnings) == 1

    def test_unique_key_becomes_constraint(self):
        sql = "CREATE TABLE t (email VARCHAR(100), UNIQUE KEY uq_email (email))"
        assert self.rewriter.rewrite_schema(sql) == \
            "CREATE TABLE t (email TEXT, CONSTRAINT uq_email UNIQUE (email))"

    def test_timestamp_defaults(self):
        sql = (
            "CREATE TABLE t (created DATETIME DEFAULT NOW(), "
            "updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP)"
        )
        assert self.rewriter.rewrite_schema(sql) == (
            "CREATE TABLE t (created TEXT DEFAULT CURRENT_TIMESTAMP, updated TEXT DEFAULT CURRENT_TIMESTAMP)"
        )
        assert any("ON UPDATE" in w for w in self.warnings)

    def test_partitioning_dropped(self):
        sql = (
            "CREATE TABLE sales (id INT, sold DATE) PARTITION BY RANGE (YEAR(sold)) "
            "(PARTITION p0 VALUES LESS THAN (2020))"
        )
        assert self.rewriter.rewrite_schema(sql) == "CREATE TABLE sales (id INTEGER, sold TEXT)"
        assert any("partition" in w.lower() for w in self.warnings)

    def test_session_statement_dropped(self):
        assert self.rewriter.rewrite_schema("SET NAMES utf8mb4;") == ""

    def test_retain_length_qualifiers(self):
        rewriter = MySQLSchemaRewriter(RewriterOptions(retain_length_qualifiers=True))
        assert rewriter.rewrite_schema("CREATE TABLE t (name VARCHAR(255))") == "CREATE TABLE t (name TEXT(255))"

    def test_map_type(self):
        assert self.rewriter.map_type("VARCHAR(255)") == "TEXT"
        assert self.rewriter.map_type("geometry") == "BLOB"
        assert self.rewriter.map_type("double precision") == "REAL"
        assert self.rewriter.map_type("hstore") == "TEXT"

    def test_custom_type_mapping(self):
        rewriter = MySQLSchemaRewriter(RewriterOptions(custom_type_mappings={"JSON": "BLOB"}))
        assert rewriter.map_type("json") == "BLOB"
        assert self.rewriter.map_type("json") == "TEXT"

    def test_needs_translation(self):
        assert self.rewriter.needs_translation("auto_increment")
        assert self.rewriter.needs_translation(" INDEX ")
        assert not self.rewriter.needs_translation("FOREIGN_KEY")
        assert not self.rewriter.needs_translation("bogus")

        disabled = MySQLSchemaRewriter(RewriterOptions(transformations=Transformations(auto_increment=False)))
        assert not disabled.needs_translation("AUTO_INCREMENT")
        assert "auto_increment" not in disabled.pass_names

    def test_empty_input(self):
        assert self.rewriter.rewrite_schema("") == ""
        assert self.rewriter.rewrite_schema("   \n") == ""

    def test_non_string_rejected(self):
        with pytest.raises(TypeError):
            self.rewriter.rewrite(None)


@pytest.mark.unit
class TestMySQLQueryRewriter:
    """SELECT/DML rewriting"""

    def setup_method(self):
        self.rewriter = MySQLQueryRewriter(on_diagnostic=lambda level, message: None)

    def test_limit_comma(self):
        assert self.rewriter.rewrite_query("SELECT `name` FROM `users` LIMIT 10, 20") == \
            'SELECT "name" FROM "users" LIMIT 20 OFFSET 10'

    def test_date_add(self):
        assert self.rewriter.rewrite_query("SELECT DATE_ADD(created_at, INTERVAL 1 DAY) FROM orders") == \
            "SELECT date(created_at, '+1 days') FROM orders"

    def test_infix_interval(self):
        assert self.rewriter.rewrite_query("SELECT created_at + INTERVAL 7 DAY FROM t") == \
            "SELECT date(created_at, '+7 days') FROM t"

    def test_date_format(self):
        assert self.rewriter.rewrite_query("SELECT DATE_FORMAT(created_at, '%Y-%m-%d') FROM t") == \
            "SELECT strftime('%Y-%m-%d', created_at) FROM t"

    def test_concat(self):
        assert self.rewriter.rewrite_query("SELECT CONCAT(first_name, ' ', last_name) FROM users") == \
            "SELECT (first_name || ' ' || last_name) FROM users"

    def test_if_and_renames(self):
        assert self.rewriter.rewrite_query("SELECT IF(score > 50, 'pass', 'fail'), UCASE(name) FROM t") == \
            "SELECT CASE WHEN score > 50 THEN 'pass' ELSE 'fail' END, UPPER(name) FROM t"

    def test_group_concat_separator(self):
        assert self.rewriter.rewrite_query("SELECT GROUP_CONCAT(name SEPARATOR '; ') FROM t") == \
            "SELECT GROUP_CONCAT(name, '; ') FROM t"

    def test_casts(self):
        assert self.rewriter.rewrite_query("SELECT CAST(x AS SIGNED), CAST(d AS DATETIME) FROM t") == \
            "SELECT CAST(x AS INTEGER), datetime(d) FROM t"
        assert self.rewriter.rewrite_query("SELECT CONVERT(name USING utf8mb4) FROM t") == "SELECT name FROM t"

    def test_null_safe_equality(self):
        assert self.rewriter.rewrite_query("SELECT * FROM t WHERE a <=> b") == "SELECT * FROM t WHERE a IS b"

    def test_fulltext_match_warns(self):
        sql = "SELECT * FROM t WHERE MATCH(a) AGAINST ('x')"
        result = self.rewriter.rewrite(sql)
        assert result.sql == sql
        assert len(result.warnings) == 1
        assert "FTS5" in result.warnings[0].message

    def test_on_duplicate_key_update(self):
        result = self.rewriter.rewrite(
            "INSERT INTO t (id, hits) VALUES (1, 1) ON DUPLICATE KEY UPDATE hits = hits + VALUES(hits)"
        )
        assert result.sql == "INSERT INTO t (id, hits) VALUES (1, 1) ON CONFLICT DO UPDATE SET hits = hits + excluded.hits"
        assert result.warnings == []

    def test_on_duplicate_key_row_alias(self):
        assert self.rewriter.rewrite_query(
            "INSERT INTO t (id, hits) VALUES (1, 1) AS new ON DUPLICATE KEY UPDATE hits = new.hits + 1"
        ) == "INSERT INTO t (id, hits) VALUES (1, 1) ON CONFLICT DO UPDATE SET hits = excluded.hits + 1"

    def test_on_duplicate_key_from_select_warns(self):
        result = self.rewriter.rewrite("INSERT INTO t (id) SELECT id FROM u ON DUPLICATE KEY UPDATE id = id")
        assert result.sql == "INSERT INTO t (id) SELECT id FROM u ON CONFLICT DO UPDATE SET id = id"
        assert "WHERE" in result.warnings[0].message

    def test_insert_ignore(self):
        assert self.rewriter.rewrite_query("INSERT IGNORE INTO t (a) VALUES (1)") == \
            "INSERT OR IGNORE INTO t (a) VALUES (1)"

    def test_for_update_dropped(self):
        result = self.rewriter.rewrite("SELECT * FROM t WHERE id = 1 LOCK IN SHARE MODE")
        assert result.sql == "SELECT * FROM t WHERE id = 1"
        assert len(result.warnings) == 1

    def test_literals_untouched(self):
        sql = "SELECT 'NOW() LIMIT 1, 2' FROM t"
        assert self.rewriter.rewrite_query(sql) == sql

    def test_rewrite_function(self):
        assert self.rewriter.rewrite_function("IF(a, 1, 0)") == "CASE WHEN a THEN 1 ELSE 0 END"

    def test_rewrite_operator(self):
        assert self.rewriter.rewrite_operator("<=>") == "IS"
        assert self.rewriter.rewrite_operator("div") == "/"
        assert self.rewriter.rewrite_operator("XOR") == "XOR"
        assert self.rewriter.rewrite_operator("===") == "==="

    def test_needs_rewrite(self):
        assert self.rewriter.needs_rewrite("SELECT * FROM t LIMIT 5, 10")
        assert self.rewriter.needs_rewrite("SELECT NOW()")
        assert not self.rewriter.needs_rewrite("SELECT id FROM users WHERE id = ?")
        assert not self.rewriter.needs_rewrite("  ")

    def test_functions_toggle(self, no_functions_options):
        rewriter = MySQLQueryRewriter(no_functions_options)
        assert rewriter.pass_names == ("quote_identifiers", "upsert", "pagination", "strip_schema_prefix")
        assert rewriter.rewrite_query("SELECT IF(a, 1, 0) FROM t") == "SELECT IF(a, 1, 0) FROM t"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
