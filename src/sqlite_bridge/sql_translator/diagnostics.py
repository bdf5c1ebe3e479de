"""
Diagnostic collection for rewrite calls.

Every rewrite call gets its own DiagnosticCollector. Passes report through
it; the collector forwards each diagnostic to the rewriter's callback as it
is emitted and, in strict mode, turns the first warning into an
UnsupportedConstructError.
"""

from typing import Callable, List, Optional

import structlog

from .models import Diagnostic, DiagnosticLevel, UnsupportedConstructError

logger = structlog.get_logger()

DiagnosticCallback = Callable[[DiagnosticLevel, str], None]


def log_diagnostic(level: DiagnosticLevel, message: str) -> None:
    """Default callback: route diagnostics to structlog"""
    if level is DiagnosticLevel.WARN:
        logger.warning("SQL translation warning", detail=message)
    else:
        logger.debug("SQL translation note", detail=message)


class DiagnosticCollector:
    """Per-call sink for INFO/WARN diagnostics"""

    def __init__(
        self,
        source: Optional[str] = None,
        strict: bool = False,
        verbose: bool = False,
        callback: Optional[DiagnosticCallback] = None,
    ):
        self.source = source
        self.strict = strict
        self.verbose = verbose
        self.callback = callback
        self.current_pass: Optional[str] = None
        self.diagnostics: List[Diagnostic] = []

    def info(self, message: str, fragment: Optional[str] = None) -> None:
        # INFO is a trace channel, only recorded when verbose
        if not self.verbose:
            return
        self._emit(DiagnosticLevel.INFO, message, fragment)

    def warn(self, message: str, fragment: Optional[str] = None) -> None:
        diagnostic = self._emit(DiagnosticLevel.WARN, message, fragment)
        if self.strict:
            raise UnsupportedConstructError(
                message,
                dialect=self.source,
                pass_name=self.current_pass,
                origin_fragment=diagnostic.origin_fragment,
                diagnostics=tuple(self.diagnostics),
            )

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.is_warning]

    def _emit(self, level: DiagnosticLevel, message: str, fragment: Optional[str]) -> Diagnostic:
        diagnostic = Diagnostic(
            level=level,
            message=message,
            origin_fragment=fragment.strip() if fragment else None,
            pass_name=self.current_pass,
            source=self.source,
        )
        self.diagnostics.append(diagnostic)
        if self.callback is not None:
            prefix = f"[{self.source}] " if self.source else ""
            self.callback(level, f"{prefix}{message}")
        return diagnostic
