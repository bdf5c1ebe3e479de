"""
Dialect-keyed registry of schema and query rewriters.

Writes are serialized by a lock and publish a fresh dict, so lookups read
an immutable snapshot without locking. Keys are trimmed and lower-cased,
and a few common spellings are aliased onto the canonical key; there is
no prefix matching.
"""

import threading
from typing import Dict, List, Optional

import structlog

from ..config_schema import RewriterOptions
from ..sql_translator.diagnostics import DiagnosticCallback
from ..sql_translator.error_log import TranslationErrorLog
from ..sql_translator.models import PluginNotFoundError
from ..sql_translator.pipeline import QueryRewriter, SchemaRewriter
from .mssql_query import MSSQLQueryRewriter
from .mssql_schema import MSSQLSchemaRewriter
from .mysql_query import MySQLQueryRewriter
from .mysql_schema import MySQLSchemaRewriter
from .oracle_query import OracleQueryRewriter
from .oracle_schema import OracleSchemaRewriter
from .postgresql_query import PostgreSQLQueryRewriter
from .postgresql_schema import PostgreSQLSchemaRewriter

logger = structlog.get_logger()

DIALECT_ALIASES = {
    "postgres": "postgresql",
    "sqlserver": "mssql",
    "mariadb": "mysql",
}


def normalize_dialect(dialect: str) -> str:
    key = str(dialect).strip().lower()
    return DIALECT_ALIASES.get(key, key)


class PluginRegistry:
    """Schema and query rewriters by source dialect"""

    def __init__(self):
        self._lock = threading.Lock()
        self._schema_plugins: Dict[str, SchemaRewriter] = {}
        self._query_plugins: Dict[str, QueryRewriter] = {}

    @property
    def schema_plugins(self) -> Dict[str, SchemaRewriter]:
        return dict(self._schema_plugins)

    @property
    def query_plugins(self) -> Dict[str, QueryRewriter]:
        return dict(self._query_plugins)

    def register_schema_plugin(self, rewriter: SchemaRewriter) -> None:
        if not isinstance(rewriter, SchemaRewriter):
            raise TypeError(f"Expected a SchemaRewriter, got {type(rewriter).__name__}")
        key = normalize_dialect(rewriter.dialect)
        with self._lock:
            plugins = dict(self._schema_plugins)
            replaced = key in plugins
            plugins[key] = rewriter
            self._schema_plugins = plugins
        logger.debug("Schema rewriter registered", dialect=key, replaced=replaced)

    def register_query_plugin(self, rewriter: QueryRewriter) -> None:
        if not isinstance(rewriter, QueryRewriter):
            raise TypeError(f"Expected a QueryRewriter, got {type(rewriter).__name__}")
        key = normalize_dialect(rewriter.dialect)
        with self._lock:
            plugins = dict(self._query_plugins)
            replaced = key in plugins
            plugins[key] = rewriter
            self._query_plugins = plugins
        logger.debug("Query rewriter registered", dialect=key, replaced=replaced)

    def get_schema_plugin(self, dialect: str) -> Optional[SchemaRewriter]:
        return self._schema_plugins.get(normalize_dialect(dialect))

    def get_query_plugin(self, dialect: str) -> Optional[QueryRewriter]:
        return self._query_plugins.get(normalize_dialect(dialect))

    def require_schema_plugin(self, dialect: str) -> SchemaRewriter:
        rewriter = self.get_schema_plugin(dialect)
        if rewriter is None:
            raise PluginNotFoundError(dialect, "schema", self.list_schema_plugins())
        return rewriter

    def require_query_plugin(self, dialect: str) -> QueryRewriter:
        rewriter = self.get_query_plugin(dialect)
        if rewriter is None:
            raise PluginNotFoundError(dialect, "query", self.list_query_plugins())
        return rewriter

    def list_schema_plugins(self) -> List[str]:
        return sorted(self._schema_plugins)

    def list_query_plugins(self) -> List[str]:
        return sorted(self._query_plugins)

    def clear(self) -> None:
        with self._lock:
            self._schema_plugins = {}
            self._query_plugins = {}

    def register_all(
        self,
        options: Optional[RewriterOptions] = None,
        on_diagnostic: Optional[DiagnosticCallback] = None,
        error_log: Optional[TranslationErrorLog] = None,
    ) -> None:
        """
        Build and register the rewriters of every supported dialect.

        All rewriters share ``options``, the diagnostic callback and the
        error log. Registering again replaces the previous instances.
        """
        options = options if options is not None else RewriterOptions()
        for schema_class, query_class in (
            (PostgreSQLSchemaRewriter, PostgreSQLQueryRewriter),
            (MySQLSchemaRewriter, MySQLQueryRewriter),
            (OracleSchemaRewriter, OracleQueryRewriter),
            (MSSQLSchemaRewriter, MSSQLQueryRewriter),
        ):
            self.register_schema_plugin(schema_class(options, on_diagnostic, error_log))
            self.register_query_plugin(query_class(options, on_diagnostic, error_log))
        logger.info(
            "SQLite rewriters registered",
            dialects=self.list_schema_plugins(),
            strict=options.strict,
            verbose=options.verbose,
        )

    def __repr__(self) -> str:
        return (
            f"PluginRegistry(schema={self.list_schema_plugins()}, "
            f"query={self.list_query_plugins()})"
        )
