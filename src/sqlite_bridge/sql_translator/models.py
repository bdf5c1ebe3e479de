"""
Data models for SQLite dialect translation.

Types shared by the rewriters, the mapping tables and the plugin registry:
canonical storage classes, type mappings, diagnostics, rewrite results and
the translation error hierarchy.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple


class CanonicalType(str, Enum):
    """SQLite storage classes every source type collapses to"""

    INTEGER = "INTEGER"
    REAL = "REAL"
    TEXT = "TEXT"
    BLOB = "BLOB"


class DiagnosticLevel(str, Enum):
    INFO = "INFO"
    WARN = "WARN"


class RewriteKind(str, Enum):
    SCHEMA = "schema"
    QUERY = "query"


@dataclass(frozen=True)
class TypeMapping:
    """
    One source-dialect type name and the canonical type it maps to.

    ``scale_sensitive`` entries (Oracle NUMBER family) decide between
    INTEGER and REAL from the ``(precision, scale)`` qualifier instead of
    always using ``canonical_type``.
    """

    source_type: str
    canonical_type: CanonicalType
    scale_sensitive: bool = False

    def __post_init__(self):
        if not self.source_type or not self.source_type.strip():
            raise ValueError("source_type cannot be empty")


@dataclass(frozen=True)
class Diagnostic:
    """Informational note or warning produced while rewriting a statement"""

    level: DiagnosticLevel
    message: str
    origin_fragment: Optional[str] = None
    pass_name: Optional[str] = None
    source: Optional[str] = None

    @property
    def is_warning(self) -> bool:
        return self.level is DiagnosticLevel.WARN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "message": self.message,
            "origin_fragment": self.origin_fragment,
            "pass_name": self.pass_name,
            "source": self.source,
        }


@dataclass(frozen=True)
class RewritePass:
    """
    A named, stateless transformation from SQL text to SQL text.

    ``apply`` receives the statement and the per-call diagnostic collector.
    ``feature`` names the transformation toggle that can switch the pass off
    (None means the pass always runs).
    """

    name: str
    apply: Callable[[str, Any], str]
    feature: Optional[str] = None


@dataclass
class RewriteResult:
    """Outcome of one rewrite call"""

    sql: str
    original_sql: str
    diagnostics: Tuple[Diagnostic, ...] = ()
    passes_applied: Tuple[str, ...] = ()
    elapsed_ms: float = 0.0

    @property
    def changed(self) -> bool:
        return self.sql != self.original_sql

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.is_warning]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging"""
        return {
            "sql": self.sql,
            "changed": self.changed,
            "passes_applied": list(self.passes_applied),
            "warning_count": len(self.warnings),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "elapsed_ms": round(self.elapsed_ms, 3),
        }


class TranslationError(Exception):
    """Base class for dialect translation failures"""

    def __init__(self, message: str, dialect: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.dialect = dialect


class UnsupportedConstructError(TranslationError):
    """
    Raised in strict mode when a construct has no exact SQLite equivalent.

    ``partial_sql`` holds the statement as produced by the last pass that
    completed before the failing one.
    """

    def __init__(
        self,
        message: str,
        dialect: Optional[str] = None,
        pass_name: Optional[str] = None,
        origin_fragment: Optional[str] = None,
        partial_sql: Optional[str] = None,
        diagnostics: Tuple[Diagnostic, ...] = (),
    ):
        super().__init__(message, dialect=dialect)
        self.pass_name = pass_name
        self.origin_fragment = origin_fragment
        self.partial_sql = partial_sql
        self.diagnostics = tuple(diagnostics)


class PluginNotFoundError(TranslationError, LookupError):
    """No rewriter is registered under the requested dialect key"""

    def __init__(self, dialect: str, kind: str, available: Optional[List[str]] = None):
        available = list(available or [])
        known = ", ".join(sorted(available)) or "none"
        super().__init__(
            f"No {kind} rewriter registered for dialect {dialect!r} (registered: {known})",
            dialect=dialect,
        )
        self.kind = kind
        self.available = list(available)
