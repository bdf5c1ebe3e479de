"""
SQL dialect translation toward SQLite.

Rewriting is pass based: each source dialect declares an ordered list of
stateless text-to-text passes that run over literal-masked SQL. The pieces
shared by every dialect (type tables, date helpers, DDL and pagination
passes, the pipeline itself) live in this package; the dialect plugins
assemble them.
"""

from .diagnostics import DiagnosticCollector, log_diagnostic
from .error_log import TranslationErrorLog
from .models import (
    CanonicalType,
    Diagnostic,
    DiagnosticLevel,
    PluginNotFoundError,
    RewriteKind,
    RewritePass,
    RewriteResult,
    TranslationError,
    TypeMapping,
    UnsupportedConstructError,
)
from .pipeline import BaseRewriter, QueryRewriter, SchemaRewriter

__all__ = [
    "DiagnosticCollector",
    "log_diagnostic",
    "TranslationErrorLog",
    "CanonicalType",
    "Diagnostic",
    "DiagnosticLevel",
    "PluginNotFoundError",
    "RewriteKind",
    "RewritePass",
    "RewriteResult",
    "TranslationError",
    "TypeMapping",
    "UnsupportedConstructError",
    "BaseRewriter",
    "QueryRewriter",
    "SchemaRewriter",
]
