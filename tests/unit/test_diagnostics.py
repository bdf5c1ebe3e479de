"""
Unit Tests for diagnostics, strict mode and the translation error log
"""

import pytest
from structlog.testing import capture_logs

from sqlite_bridge.config_schema import RewriterOptions
from sqlite_bridge.plugins import MySQLSchemaRewriter
from sqlite_bridge.sql_translator.diagnostics import DiagnosticCollector, log_diagnostic
from sqlite_bridge.sql_translator.error_log import TranslationErrorLog
from sqlite_bridge.sql_translator.models import (
    Diagnostic,
    DiagnosticLevel,
    RewriteResult,
    UnsupportedConstructError,
)


@pytest.mark.unit
class TestDiagnosticCollector:
    """Per-call collection, verbosity and strict mode"""

    def test_info_only_when_verbose(self):
        quiet = DiagnosticCollector()
        quiet.info("note")
        assert quiet.diagnostics == []

        verbose = DiagnosticCollector(verbose=True)
        verbose.info("note")
        assert verbose.diagnostics[0].level is DiagnosticLevel.INFO

    def test_warning_recorded_and_forwarded(self, recorder):
        collector = DiagnosticCollector(source="mysql", callback=recorder)
        collector.current_pass = "strip_features"
        collector.warn("ENGINE dropped", "  ENGINE=InnoDB ")

        warning = collector.warnings[0]
        assert warning.pass_name == "strip_features"
        assert warning.origin_fragment == "ENGINE=InnoDB"
        assert warning.source == "mysql"
        assert recorder.calls == [(DiagnosticLevel.WARN, "[mysql] ENGINE dropped")]

    def test_strict_raises_on_first_warning(self):
        collector = DiagnosticCollector(source="oracle", strict=True)
        collector.current_pass = "operators"
        with pytest.raises(UnsupportedConstructError) as exc_info:
            collector.warn("(+) outer join has no SQLite equivalent", "b.id(+)")

        error = exc_info.value
        assert error.dialect == "oracle"
        assert error.pass_name == "operators"
        assert error.origin_fragment == "b.id(+)"
        assert len(error.diagnostics) == 1

    def test_strict_ignores_info(self):
        collector = DiagnosticCollector(strict=True, verbose=True)
        collector.info("note")
        assert len(collector.diagnostics) == 1

    def test_log_diagnostic_routes_to_structlog(self):
        with capture_logs() as logs:
            log_diagnostic(DiagnosticLevel.WARN, "[mysql] ENGINE dropped")
            log_diagnostic(DiagnosticLevel.INFO, "[mysql] note")
        assert logs[0]["log_level"] == "warning"
        assert logs[0]["detail"] == "[mysql] ENGINE dropped"
        assert logs[1]["log_level"] == "debug"


@pytest.mark.unit
class TestRewriteResult:

    def test_changed_and_warnings(self):
        warning = Diagnostic(DiagnosticLevel.WARN, "dropped")
        note = Diagnostic(DiagnosticLevel.INFO, "note")
        result = RewriteResult(sql="SELECT 1", original_sql="SELECT  1", diagnostics=(warning, note))
        assert result.changed
        assert result.warnings == [warning]

    def test_to_dict(self):
        result = RewriteResult(
            sql="SELECT 1",
            original_sql="SELECT 1",
            diagnostics=(Diagnostic(DiagnosticLevel.WARN, "w", pass_name="operators"),),
            passes_applied=("operators",),
            elapsed_ms=1.23456,
        )
        data = result.to_dict()
        assert data["changed"] is False
        assert data["warning_count"] == 1
        assert data["passes_applied"] == ["operators"]
        assert data["diagnostics"][0]["level"] == "WARN"
        assert data["elapsed_ms"] == 1.235


@pytest.mark.unit
class TestStrictPipeline:
    """Strict failures carry the partial rewrite and are logged"""

    def test_partial_sql_and_error_log(self, tmp_path):
        error_log = TranslationErrorLog(tmp_path)
        rewriter = MySQLSchemaRewriter(RewriterOptions(strict=True), error_log=error_log)

        with pytest.raises(UnsupportedConstructError) as exc_info:
            rewriter.rewrite("CREATE TABLE t (id INT) ENGINE=InnoDB")

        error = exc_info.value
        assert error.dialect == "mysql"
        assert error.pass_name == "strip_features"
        assert error.partial_sql == "CREATE TABLE t (id INTEGER) ENGINE=InnoDB"

        records = error_log.read("mysql")
        assert len(records) == 1
        assert records[0]["errorType"] == "UnsupportedConstructError"
        assert records[0]["originalSQL"] == "CREATE TABLE t (id INT) ENGINE=InnoDB"
        assert records[0]["rewrittenSQL"] == error.partial_sql
        assert (tmp_path / "translate-error-mysql.log").exists()

    def test_non_strict_continues(self, recorder):
        rewriter = MySQLSchemaRewriter(on_diagnostic=recorder)
        result = rewriter.rewrite("CREATE TABLE t (id INT) ENGINE=InnoDB")
        assert result.sql == "CREATE TABLE t (id INTEGER)"
        assert len(result.warnings) == 1
        assert len(recorder.warnings) == 1


@pytest.mark.unit
class TestTranslationErrorLog:

    def test_empty_log(self, tmp_path):
        assert TranslationErrorLog(tmp_path).read("oracle") == []

    def test_records_append(self, tmp_path):
        error_log = TranslationErrorLog(tmp_path / "logs")
        error_log.record("oracle", "SELECT 1 FROM dual", None, ValueError("first"), params=[1, "a"])
        error_log.record("oracle", "SELECT 2 FROM dual", "SELECT 2", ValueError("second"))

        records = error_log.read("oracle")
        assert [r["errorMessage"] for r in records] == ["first", "second"]
        assert records[0]["params"] == [1, "a"]
        assert records[0]["database"] == "oracle"
        assert records[1]["rewrittenSQL"] == "SELECT 2"
        assert error_log.read("mysql") == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
