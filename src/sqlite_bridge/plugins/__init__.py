"""
Source-dialect rewriter plugins.

One schema rewriter and one query rewriter per source dialect, all
translating toward SQLite. ``register_all_plugins`` fills the process-wide
registry returned by ``get_registry``.
"""

from typing import Optional

from ..config_schema import RewriterOptions
from ..sql_translator.diagnostics import DiagnosticCallback
from ..sql_translator.error_log import TranslationErrorLog
from .mssql_query import MSSQLQueryRewriter
from .mssql_schema import MSSQLSchemaRewriter
from .mysql_query import MySQLQueryRewriter
from .mysql_schema import MySQLSchemaRewriter
from .oracle_query import OracleQueryRewriter
from .oracle_schema import OracleSchemaRewriter
from .postgresql_query import PostgreSQLQueryRewriter
from .postgresql_schema import PostgreSQLSchemaRewriter
from .registry import DIALECT_ALIASES, PluginRegistry, normalize_dialect

# Global instance
_registry = PluginRegistry()


def get_registry() -> PluginRegistry:
    """Process-wide plugin registry"""
    return _registry


def register_all_plugins(
    options: Optional[RewriterOptions] = None,
    on_diagnostic: Optional[DiagnosticCallback] = None,
    error_log: Optional[TranslationErrorLog] = None,
) -> PluginRegistry:
    """Register every dialect's rewriters in the global registry"""
    _registry.register_all(options, on_diagnostic, error_log)
    return _registry


__all__ = [
    "DIALECT_ALIASES",
    "PluginRegistry",
    "normalize_dialect",
    "get_registry",
    "register_all_plugins",
    "PostgreSQLSchemaRewriter",
    "PostgreSQLQueryRewriter",
    "MySQLSchemaRewriter",
    "MySQLQueryRewriter",
    "OracleSchemaRewriter",
    "OracleQueryRewriter",
    "MSSQLSchemaRewriter",
    "MSSQLQueryRewriter",
]
