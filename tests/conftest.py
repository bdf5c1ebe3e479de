"""
Pytest configuration for SQLite Bridge tests

Rewriters are pure text-to-text transformations, so every fixture here is
in-process: option sets, a freshly populated plugin registry and a
diagnostic recorder standing in for the structlog callback.
"""

from typing import List, Tuple

import pytest
import structlog

from sqlite_bridge.config_schema import RewriterOptions, Transformations
from sqlite_bridge.plugins.registry import PluginRegistry
from sqlite_bridge.sql_translator.models import DiagnosticLevel

logger = structlog.get_logger()


def pytest_configure(config):
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


class DiagnosticRecorder:
    """Callable collecting (level, message) pairs emitted by a rewriter"""

    def __init__(self):
        self.calls: List[Tuple[DiagnosticLevel, str]] = []

    def __call__(self, level: DiagnosticLevel, message: str) -> None:
        self.calls.append((level, message))

    @property
    def warnings(self) -> List[str]:
        return [message for level, message in self.calls if level is DiagnosticLevel.WARN]


@pytest.fixture
def options():
    """Default rewriter options"""
    return RewriterOptions()


@pytest.fixture
def verbose_options():
    return RewriterOptions(verbose=True)


@pytest.fixture
def strict_options():
    return RewriterOptions(strict=True)


@pytest.fixture
def no_functions_options():
    """Options with the function and operator passes switched off"""
    return RewriterOptions(transformations=Transformations(functions=False, operators=False))


@pytest.fixture
def recorder():
    return DiagnosticRecorder()


@pytest.fixture
def registry(recorder):
    """
    Registry populated with every dialect's rewriters.

    A fresh instance per test, so tests that clear or replace plugins never
    affect the process-wide registry.
    """
    registry = PluginRegistry()
    registry.register_all(RewriterOptions(), on_diagnostic=recorder)
    logger.debug("Test registry ready", dialects=registry.list_schema_plugins())
    return registry
