"""
SQLite Bridge

Rewrites PostgreSQL, MySQL, Oracle and SQL Server statements into SQL that
SQLite accepts, with diagnostics for everything that cannot be carried over
exactly.
"""

__version__ = "0.1.0"

from .config_schema import RewriterOptions, Transformations
from .plugins import PluginRegistry, get_registry, register_all_plugins
from .sql_translator import (
    CanonicalType,
    Diagnostic,
    DiagnosticLevel,
    PluginNotFoundError,
    QueryRewriter,
    RewriteResult,
    SchemaRewriter,
    TranslationError,
    TranslationErrorLog,
    UnsupportedConstructError,
)

__all__ = [
    "__version__",
    "RewriterOptions",
    "Transformations",
    "PluginRegistry",
    "get_registry",
    "register_all_plugins",
    "CanonicalType",
    "Diagnostic",
    "DiagnosticLevel",
    "PluginNotFoundError",
    "QueryRewriter",
    "RewriteResult",
    "SchemaRewriter",
    "TranslationError",
    "TranslationErrorLog",
    "UnsupportedConstructError",
]
