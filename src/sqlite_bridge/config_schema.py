"""
Rewriter configuration.

Options are validated with pydantic and frozen once built, so a rewriter
constructed with them has no mutable configuration. Options come from code,
from environment variables or from a YAML file.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_PREFIX = "SQLITE_BRIDGE_"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})
CANONICAL_TYPES = ("INTEGER", "REAL", "TEXT", "BLOB")


class Transformations(BaseModel):
    """Toggles for optional transformation families"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    auto_increment: bool = True
    default_values: bool = True
    constraints: bool = True
    indexes: bool = True
    functions: bool = True
    operators: bool = True


class RewriterOptions(BaseModel):
    """
    Options shared by every schema and query rewriter.

    Attributes:
        verbose: Record INFO diagnostics (per-pass trace and notes)
        strict: Raise UnsupportedConstructError on the first warning
        retain_length_qualifiers: Keep ``(n)`` on TEXT/BLOB column types
        custom_type_mappings: Source type name -> canonical type overrides
        transformations: Transformation family toggles
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    verbose: bool = False
    strict: bool = False
    retain_length_qualifiers: bool = False
    custom_type_mappings: Dict[str, str] = Field(default_factory=dict)
    transformations: Transformations = Field(default_factory=Transformations)

    @field_validator("custom_type_mappings")
    @classmethod
    def _check_canonical(cls, value: Dict[str, str]) -> Dict[str, str]:
        normalized = {}
        for source_type, canonical in value.items():
            if not source_type.strip():
                raise ValueError("custom type mapping with an empty source type")
            target = canonical.strip().upper()
            if target not in CANONICAL_TYPES:
                raise ValueError(
                    f"{source_type!r} maps to {canonical!r}; expected one of {', '.join(CANONICAL_TYPES)}"
                )
            normalized[source_type] = target
        return normalized

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides: Any) -> "RewriterOptions":
        """
        Build options from SQLITE_BRIDGE_VERBOSE, SQLITE_BRIDGE_STRICT and
        SQLITE_BRIDGE_RETAIN_LENGTH. Keyword overrides win over the
        environment.
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for field_name, variable in (
            ("verbose", "VERBOSE"),
            ("strict", "STRICT"),
            ("retain_length_qualifiers", "RETAIN_LENGTH"),
        ):
            raw = environ.get(ENV_PREFIX + variable)
            if raw is not None:
                values[field_name] = _parse_bool(ENV_PREFIX + variable, raw)
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "RewriterOptions":
        """Load options from a YAML mapping (an empty file gives the defaults)"""
        with open(path, encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping of rewriter options, got {type(data).__name__}")
        return cls(**data)


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name}={raw!r} is not a boolean (use 1/0, true/false, yes/no, on/off)")
