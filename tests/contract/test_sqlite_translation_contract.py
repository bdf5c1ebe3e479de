"""
Contract Tests for SQLite translation

End-to-end properties every dialect's rewriters must satisfy: canonical
type resolution, pagination normalization and idempotence, schema
idempotence, conditional unrolling, auto-increment convergence and
diagnostics for dropped features.
"""

import pytest

from sqlite_bridge.sql_translator.mappings.datatypes import get_type_table
from sqlite_bridge.sql_translator.models import CanonicalType, DiagnosticLevel

CANONICAL_AUTO_INCREMENT = "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL)"


@pytest.mark.contract
class TestTypeResolution:
    """Every declared source type resolves to its declared storage class"""

    @pytest.mark.parametrize("dialect", ["postgresql", "mysql", "oracle", "mssql"])
    def test_declared_types_resolve(self, dialect):
        table = get_type_table(dialect)
        for mapping in table.entries:
            assert table.resolve(mapping.source_type) == mapping.canonical_type, mapping.source_type
            if mapping.scale_sensitive:
                assert table.resolve(f"{mapping.source_type}(10,0)") == CanonicalType.INTEGER
                assert table.resolve(f"{mapping.source_type}(10,2)") == CanonicalType.REAL

    @pytest.mark.parametrize("dialect,source_type,expected", [
        ("mysql", "varchar(255)", "TEXT"),
        ("mysql", "TINYINT(1)", "INTEGER"),
        ("postgresql", "double precision", "REAL"),
        ("postgresql", "bytea", "BLOB"),
        ("oracle", "NUMBER(10,0)", "INTEGER"),
        ("oracle", "NUMBER(10,2)", "REAL"),
        ("mssql", "nvarchar(max)", "TEXT"),
        ("mssql", "varbinary(max)", "BLOB"),
    ])
    def test_map_type(self, registry, dialect, source_type, expected):
        assert registry.get_schema_plugin(dialect).map_type(source_type) == expected


@pytest.mark.contract
class TestPagination:

    def test_limit_comma(self, registry):
        assert registry.get_query_plugin("mysql").rewrite_query("SELECT * FROM t LIMIT 10, 20") == \
            "SELECT * FROM t LIMIT 20 OFFSET 10"

    def test_top_relocation(self, registry):
        assert registry.get_query_plugin("mssql").rewrite_query("SELECT TOP 10 * FROM users ORDER BY id") == \
            "SELECT * FROM users ORDER BY id LIMIT 10"

    def test_rownum_relocation(self, registry):
        assert registry.get_query_plugin("oracle").rewrite_query("SELECT * FROM users WHERE ROWNUM <= 10") == \
            "SELECT * FROM users LIMIT 10"

    @pytest.mark.parametrize("dialect", ["postgresql", "mysql", "oracle", "mssql"])
    def test_canonical_pagination_idempotent(self, registry, dialect):
        """LIMIT n OFFSET m is already SQLite; rewriting it again changes nothing"""
        rewriter = registry.get_query_plugin(dialect)
        sql = "SELECT * FROM t LIMIT 20 OFFSET 10"
        once = rewriter.rewrite_query(sql)
        assert once == sql
        assert rewriter.rewrite_query(once) == once


@pytest.mark.contract
class TestConditionals:

    def test_decode_unrolled(self, registry):
        sql = "SELECT DECODE(status, 'A', 'Active', 'I', 'Inactive', 'Unknown') FROM users"
        assert registry.get_query_plugin("oracle").rewrite_query(sql) == (
            "SELECT CASE WHEN status = 'A' THEN 'Active' WHEN status = 'I' THEN 'Inactive' "
            "ELSE 'Unknown' END FROM users"
        )


@pytest.mark.contract
class TestAutoIncrementConvergence:
    """Auto-generated key columns of every dialect end in the same SQLite form"""

    @pytest.mark.parametrize("dialect,sql", [
        ("mysql", "CREATE TABLE users (id INT AUTO_INCREMENT PRIMARY KEY, name VARCHAR(255) NOT NULL)"),
        ("oracle", "CREATE TABLE users (id NUMBER GENERATED ALWAYS AS IDENTITY PRIMARY KEY, "
                   "name VARCHAR2(255) NOT NULL)"),
        ("postgresql", "CREATE TABLE users (id SERIAL PRIMARY KEY, name VARCHAR(255) NOT NULL)"),
    ])
    def test_converges(self, registry, dialect, sql):
        assert registry.get_schema_plugin(dialect).rewrite_schema(sql) == CANONICAL_AUTO_INCREMENT

    def test_output_is_fixed_point(self, registry):
        rewriter = registry.get_schema_plugin("mysql")
        assert rewriter.rewrite_schema(CANONICAL_AUTO_INCREMENT) == CANONICAL_AUTO_INCREMENT

    @pytest.mark.parametrize("dialect,sql,expected", [
        ("postgresql", "CREATE TABLE t (id integer DEFAULT nextval('s'), code TEXT PRIMARY KEY)",
         "CREATE TABLE t (id INTEGER, code TEXT PRIMARY KEY)"),
        ("oracle", "CREATE TABLE t (id NUMBER DEFAULT t_seq.NEXTVAL, code VARCHAR2(10), "
                   "CONSTRAINT pk PRIMARY KEY (code))",
         "CREATE TABLE t (id INTEGER, code TEXT, CONSTRAINT pk PRIMARY KEY (code))"),
        ("mysql", "CREATE TABLE t (id INT NOT NULL AUTO_INCREMENT, code VARCHAR(10) NOT NULL, "
                  "UNIQUE KEY (id), PRIMARY KEY (code))",
         "CREATE TABLE t (id INTEGER NOT NULL, code TEXT NOT NULL, UNIQUE (id), PRIMARY KEY (code))"),
    ])
    def test_generated_column_beside_other_key(self, registry, dialect, sql, expected):
        """A table keeps a single primary key when the generated column is not it"""
        result = registry.get_schema_plugin(dialect).rewrite(sql)
        assert result.sql == expected
        assert result.sql.count("PRIMARY KEY") == 1
        assert len(result.warnings) == 1
        assert "primary key is code" in result.warnings[0].message


@pytest.mark.contract
class TestSchemaIdempotence:
    """Rewritten DDL is a fixed point of its own dialect's schema rewriter"""

    @pytest.mark.parametrize("dialect,sql", [
        ("postgresql", "CREATE TABLE users (id SERIAL PRIMARY KEY, name VARCHAR(255) NOT NULL)"),
        ("postgresql", "CREATE TABLE t (active BOOLEAN DEFAULT TRUE, tags TEXT[])"),
        ("postgresql", "CREATE TABLE t (status VARCHAR(10) DEFAULT 'new'::character varying)"),
        ("postgresql", "CREATE INDEX CONCURRENTLY idx_users_email ON public.users USING btree (email)"),
        ("postgresql", "CREATE TABLE t (id integer DEFAULT nextval('s'), code TEXT PRIMARY KEY)"),
        ("mysql", "CREATE TABLE `users` (`id` INT AUTO_INCREMENT PRIMARY KEY, "
                  "`name` VARCHAR(255) NOT NULL) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;"),
        ("mysql", "CREATE TABLE t (status ENUM('a','b') NOT NULL)"),
        ("mysql", "CREATE TABLE t (email VARCHAR(100), UNIQUE KEY uq_email (email))"),
        ("mysql", "CREATE TABLE t (created DATETIME DEFAULT NOW(), "
                  "updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP)"),
        ("oracle", "CREATE TABLE users (id NUMBER GENERATED ALWAYS AS IDENTITY PRIMARY KEY, "
                   "name VARCHAR2(255) NOT NULL)"),
        ("oracle", "CREATE TABLE t (qty NUMBER(10), price NUMBER(10,2), ratio NUMBER)"),
        ("oracle", "CREATE TABLE t (id NUMBER(10)) TABLESPACE users PCTFREE 10 NOLOGGING"),
        ("mssql", "CREATE TABLE [dbo].[users] ([id] INT IDENTITY(1,1) NOT NULL, [name] NVARCHAR(100) NULL, "
                  "CONSTRAINT [PK_users] PRIMARY KEY CLUSTERED ([id] ASC)) ON [PRIMARY]"),
        ("mssql", "CREATE TABLE t (guid UNIQUEIDENTIFIER, ts TIMESTAMP, created DATETIME2(7))"),
        ("mssql", "CREATE TABLE t (created DATETIME DEFAULT (GETDATE()))"),
    ])
    def test_rewrite_twice_equals_once(self, registry, dialect, sql):
        rewriter = registry.get_schema_plugin(dialect)
        once = rewriter.rewrite_schema(sql)
        again = rewriter.rewrite(once)
        assert again.sql == once
        # No single pass finds anything left to change
        assert again.passes_applied == ()

    @pytest.mark.parametrize("dialect", ["postgresql", "mysql", "oracle", "mssql"])
    def test_canonical_form_untouched(self, registry, dialect):
        result = registry.get_schema_plugin(dialect).rewrite(CANONICAL_AUTO_INCREMENT)
        assert result.sql == CANONICAL_AUTO_INCREMENT
        assert result.warnings == []


@pytest.mark.contract
class TestDroppedFeatureDiagnostics:

    def test_partition_by_warns(self, registry, recorder):
        sql = (
            "CREATE TABLE sales (id INT, sold DATE) PARTITION BY RANGE (YEAR(sold)) "
            "(PARTITION p0 VALUES LESS THAN (2020))"
        )
        result = registry.get_schema_plugin("mysql").rewrite(sql)
        assert result.sql == "CREATE TABLE sales (id INTEGER, sold TEXT)"
        assert any("partition" in d.message.lower() for d in result.warnings)
        assert any("partition" in message.lower() for message in recorder.warnings)

    def test_informational_rewrites_are_not_warnings(self, registry, recorder):
        result = registry.get_query_plugin("postgresql").rewrite("SELECT * FROM users WHERE name ILIKE 'a%'")
        assert result.sql == "SELECT * FROM users WHERE name LIKE 'a%'"
        assert all(level is not DiagnosticLevel.WARN for level, _ in recorder.calls)

    @pytest.mark.parametrize("dialect", ["postgresql", "mysql", "oracle", "mssql"])
    def test_empty_input(self, registry, dialect):
        assert registry.get_schema_plugin(dialect).rewrite_schema("") == ""
        assert registry.get_query_plugin(dialect).rewrite_query(" ") == ""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
