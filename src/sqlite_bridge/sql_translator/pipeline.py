"""
Rewriter pipelines.

A rewriter owns the ordered pass list of one source dialect and one
statement kind (schema or query). It is built once from RewriterOptions and
holds no per-call state: every rewrite call gets a fresh DiagnosticCollector,
so a single instance can serve concurrent callers.

Passes run in their declared order, each receiving the output of the one
before. In strict mode the first warning aborts the call with an
UnsupportedConstructError carrying the statement as it stood before the
failing pass.
"""

import re
import time
from typing import Optional, Sequence, Tuple

import structlog

from ..config_schema import RewriterOptions
from .diagnostics import DiagnosticCallback, DiagnosticCollector, log_diagnostic
from .error_log import TranslationErrorLog
from .mappings.datatypes import TypeMapping, build_type_table
from .models import DiagnosticLevel, RewriteKind, RewritePass, RewriteResult, UnsupportedConstructError
from .query_passes import OperatorRule, operator_map

logger = structlog.get_logger()

# Feature names understood by SchemaRewriter.needs_translation
FEATURES = ("AUTO_INCREMENT", "DEFAULT", "CHECK", "FOREIGN_KEY", "INDEX", "FUNCTION", "OPERATOR")

_FEATURE_TOGGLES = {
    "AUTO_INCREMENT": "auto_increment",
    "DEFAULT": "default_values",
    "CHECK": "constraints",
    "FOREIGN_KEY": "constraints",
    "INDEX": "indexes",
    "FUNCTION": "functions",
    "OPERATOR": "operators",
}

FUNCTION_PASSES = frozenset({
    "datetime_functions",
    "string_functions",
    "conditional_functions",
    "aggregate_functions",
    "type_casts",
})


class BaseRewriter:
    """
    Common machinery of the schema and query rewriters.

    Subclasses set ``dialect`` and implement ``build_passes``. Passes whose
    ``feature`` toggle is switched off in the options are left out of the
    pipeline.
    """

    dialect: str = ""
    kind: RewriteKind = RewriteKind.QUERY
    # Cheap pre-check patterns: a statement matching none needs no rewrite
    rewrite_markers: Tuple[str, ...] = ()

    def __init__(
        self,
        options: Optional[RewriterOptions] = None,
        on_diagnostic: Optional[DiagnosticCallback] = None,
        error_log: Optional[TranslationErrorLog] = None,
    ):
        if not self.dialect:
            raise TypeError(f"{type(self).__name__} does not declare a dialect")
        self.options = options if options is not None else RewriterOptions()
        self.on_diagnostic = on_diagnostic if on_diagnostic is not None else log_diagnostic
        self.error_log = error_log
        self.type_map = build_type_table(self.dialect, self.options.custom_type_mappings or None)
        self.passes: Tuple[RewritePass, ...] = tuple(p for p in self.build_passes() if self._enabled(p))
        self._markers = (
            re.compile("|".join(f"(?:{marker})" for marker in self.rewrite_markers), re.IGNORECASE)
            if self.rewrite_markers
            else None
        )

    def build_passes(self) -> Sequence[RewritePass]:
        raise NotImplementedError

    def _enabled(self, rewrite_pass: RewritePass) -> bool:
        if rewrite_pass.feature is None:
            return True
        return bool(getattr(self.options.transformations, rewrite_pass.feature))

    @property
    def pass_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.passes)

    def needs_rewrite(self, sql: str) -> bool:
        """
        Quick check whether ``sql`` contains anything this rewriter changes.

        False positives are possible, false negatives are not.
        """
        if not sql or not sql.strip():
            return False
        if self._markers is None:
            return True
        return bool(self._markers.search(sql))

    def rewrite(self, sql: str) -> RewriteResult:
        """Run the full pipeline over one statement"""
        return self._run(sql, self.passes)

    def _run(self, sql: str, passes: Sequence[RewritePass]) -> RewriteResult:
        if not isinstance(sql, str):
            raise TypeError(f"SQL must be str, got {type(sql).__name__}")
        if not sql.strip():
            return RewriteResult(sql="", original_sql=sql)

        start_time = time.perf_counter()
        collector = DiagnosticCollector(
            source=self.dialect,
            strict=self.options.strict,
            verbose=self.options.verbose,
            callback=self.on_diagnostic,
        )
        current = sql
        applied = []
        for rewrite_pass in passes:
            collector.current_pass = rewrite_pass.name
            try:
                rewritten = rewrite_pass.apply(current, collector)
            except UnsupportedConstructError as e:
                e.partial_sql = current
                e.pass_name = e.pass_name or rewrite_pass.name
                e.diagnostics = tuple(collector.diagnostics)
                self._record_failure(sql, e)
                raise
            if rewritten != current:
                applied.append(rewrite_pass.name)
                collector.info(f"Pass {rewrite_pass.name} rewrote the statement")
            current = rewritten
            if not current.strip():
                # Statement dropped (no SQLite counterpart)
                current = ""
                break
        collector.current_pass = None

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        result = RewriteResult(
            sql=current,
            original_sql=sql,
            diagnostics=tuple(collector.diagnostics),
            passes_applied=tuple(applied),
            elapsed_ms=elapsed_ms,
        )
        logger.debug(
            "SQL rewritten",
            dialect=self.dialect,
            kind=self.kind.value,
            passes_applied=len(applied),
            warnings=len(result.warnings),
            elapsed_ms=round(elapsed_ms, 3),
        )
        return result

    def _record_failure(self, sql: str, error: UnsupportedConstructError) -> None:
        logger.warning(
            "Strict SQL translation failed",
            dialect=self.dialect,
            kind=self.kind.value,
            pass_name=error.pass_name,
            error=error.message,
        )
        if self.error_log is not None:
            self.error_log.record(self.dialect, sql, error.partial_sql, error)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dialect={self.dialect!r}, passes={list(self.pass_names)})"


class SchemaRewriter(BaseRewriter):
    """DDL rewriter: CREATE/ALTER/DROP statements toward SQLite"""

    kind = RewriteKind.SCHEMA
    # Feature names (see FEATURES) this dialect's passes translate
    translated_features: frozenset = frozenset({"AUTO_INCREMENT", "DEFAULT", "INDEX"})

    def rewrite_schema(self, sql: str) -> str:
        return self.rewrite(sql).sql

    def get_type_mappings(self) -> Tuple[TypeMapping, ...]:
        return tuple(self.type_map.entries)

    def map_type(self, source_type: str) -> str:
        """Canonical SQLite type name for ``source_type`` (TEXT when unknown)"""
        canonical = self.type_map.resolve(source_type)
        if canonical is None:
            if self.options.verbose:
                self.on_diagnostic(
                    DiagnosticLevel.INFO,
                    f"[{self.dialect}] Unknown type {source_type!r} mapped to TEXT",
                )
            return "TEXT"
        return canonical.value

    def needs_translation(self, feature: str) -> bool:
        name = feature.strip().upper()
        if name not in _FEATURE_TOGGLES:
            return False
        if not getattr(self.options.transformations, _FEATURE_TOGGLES[name]):
            return False
        return name in self.translated_features


class QueryRewriter(BaseRewriter):
    """DML/query rewriter: SELECT/INSERT/UPDATE/DELETE toward SQLite"""

    kind = RewriteKind.QUERY
    operator_rules: Tuple[OperatorRule, ...] = ()

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._operators = operator_map(self.operator_rules)

    def rewrite_query(self, sql: str) -> str:
        return self.rewrite(sql).sql

    def rewrite_function(self, fragment: str) -> str:
        """Rewrite the function calls in an expression fragment"""
        passes = [p for p in self.passes if p.name in FUNCTION_PASSES]
        return self._run(fragment, passes).sql

    def rewrite_operator(self, operator: str) -> str:
        """SQLite spelling of a source operator; unknown operators are returned as given"""
        return self._operators.get(" ".join(operator.upper().split()), operator)
