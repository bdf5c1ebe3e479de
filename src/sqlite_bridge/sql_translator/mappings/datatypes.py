"""
Per-dialect data type mapping tables.

Each source dialect declares an ordered list of (source type, canonical
SQLite type) pairs. TypeMappingTable resolves a written type token against
that list: case- and whitespace-insensitive, longest declared name first,
size/precision qualifiers stripped before lookup.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Tuple

from ..models import CanonicalType, TypeMapping

INTEGER = CanonicalType.INTEGER
REAL = CanonicalType.REAL
TEXT = CanonicalType.TEXT
BLOB = CanonicalType.BLOB

CANONICAL_NAMES = frozenset(t.value for t in CanonicalType)


def _table(*groups: Tuple[CanonicalType, Iterable[str]]) -> Tuple[TypeMapping, ...]:
    return tuple(TypeMapping(name, canonical) for canonical, names in groups for name in names)


POSTGRESQL_TYPES = _table(
    (INTEGER, ["SMALLINT", "INT", "INT2", "INT4", "INT8", "INTEGER", "BIGINT",
               "SMALLSERIAL", "SERIAL", "BIGSERIAL", "SERIAL2", "SERIAL4", "SERIAL8",
               "BOOLEAN", "BOOL"]),
    (REAL, ["DECIMAL", "NUMERIC", "REAL", "FLOAT", "FLOAT4", "FLOAT8",
            "DOUBLE PRECISION", "MONEY"]),
    (TEXT, ["VARCHAR", "CHAR", "CHARACTER", "CHARACTER VARYING", "BPCHAR", "TEXT",
            "CITEXT", "NAME", "TIMESTAMP", "TIMESTAMP WITHOUT TIME ZONE",
            "TIMESTAMP WITH TIME ZONE", "TIMESTAMPTZ", "DATE", "TIME",
            "TIME WITHOUT TIME ZONE", "TIME WITH TIME ZONE", "TIMETZ", "INTERVAL",
            "JSON", "JSONB", "UUID", "ARRAY", "XML", "CIDR", "INET", "MACADDR",
            "TSVECTOR"]),
    (BLOB, ["BYTEA"]),
)

MYSQL_TYPES = _table(
    (INTEGER, ["TINYINT", "SMALLINT", "MEDIUMINT", "INT", "INTEGER", "BIGINT",
               "YEAR", "BOOLEAN", "BOOL", "BIT"]),
    (REAL, ["DECIMAL", "DEC", "NUMERIC", "FIXED", "FLOAT", "DOUBLE",
            "DOUBLE PRECISION", "REAL"]),
    (TEXT, ["CHAR", "VARCHAR", "NCHAR", "NVARCHAR", "TINYTEXT", "TEXT",
            "MEDIUMTEXT", "LONGTEXT", "DATE", "DATETIME", "TIMESTAMP", "TIME",
            "JSON", "ENUM", "SET"]),
    (BLOB, ["BINARY", "VARBINARY", "TINYBLOB", "BLOB", "MEDIUMBLOB", "LONGBLOB",
            "GEOMETRY", "POINT", "LINESTRING", "POLYGON", "MULTIPOINT",
            "MULTILINESTRING", "MULTIPOLYGON", "GEOMETRYCOLLECTION"]),
)

ORACLE_TYPES = (
    TypeMapping("NUMBER", REAL, scale_sensitive=True),
    TypeMapping("NUMERIC", REAL, scale_sensitive=True),
    TypeMapping("DECIMAL", REAL, scale_sensitive=True),
    TypeMapping("DEC", REAL, scale_sensitive=True),
) + _table(
    (REAL, ["FLOAT", "DOUBLE PRECISION", "REAL", "BINARY_FLOAT", "BINARY_DOUBLE"]),
    (INTEGER, ["INTEGER", "INT", "SMALLINT"]),
    (TEXT, ["VARCHAR", "VARCHAR2", "NVARCHAR2", "CHAR", "NCHAR", "CLOB", "NCLOB",
            "LONG", "DATE", "TIMESTAMP", "TIMESTAMP WITH TIME ZONE",
            "TIMESTAMP WITH LOCAL TIME ZONE", "INTERVAL YEAR TO MONTH",
            "INTERVAL DAY TO SECOND", "ROWID", "UROWID", "XMLTYPE"]),
    (BLOB, ["RAW", "LONG RAW", "BLOB", "BFILE"]),
)

MSSQL_TYPES = _table(
    (INTEGER, ["TINYINT", "SMALLINT", "INT", "INTEGER", "BIGINT", "BIT"]),
    (REAL, ["DECIMAL", "NUMERIC", "FLOAT", "REAL", "MONEY", "SMALLMONEY"]),
    (TEXT, ["CHAR", "VARCHAR", "TEXT", "NCHAR", "NVARCHAR", "NTEXT", "DATE",
            "TIME", "DATETIME", "DATETIME2", "SMALLDATETIME", "DATETIMEOFFSET",
            "UNIQUEIDENTIFIER", "XML", "SQL_VARIANT", "HIERARCHYID", "SYSNAME"]),
    # TIMESTAMP is the rowversion binary counter in SQL Server
    (BLOB, ["BINARY", "VARBINARY", "IMAGE", "TIMESTAMP", "ROWVERSION",
            "GEOGRAPHY", "GEOMETRY"]),
)

TYPE_MAPPINGS: Dict[str, Tuple[TypeMapping, ...]] = {
    "postgresql": POSTGRESQL_TYPES,
    "mysql": MYSQL_TYPES,
    "oracle": ORACLE_TYPES,
    "mssql": MSSQL_TYPES,
}

_QUALIFIER_RE = re.compile(r"\s*\(([^()]*)\)")


def normalize_type_name(token: str) -> str:
    """Upper-case, drop qualifiers, collapse whitespace"""
    return " ".join(_QUALIFIER_RE.sub(" ", token).upper().split())


def first_qualifier(token: str) -> Optional[str]:
    match = _QUALIFIER_RE.search(token)
    return match.group(1).strip() if match else None


@dataclass(frozen=True)
class TypeMatch:
    """A type token found in statement text"""

    text: str
    start: int
    end: int
    mapping: TypeMapping
    qualifier: Optional[str]
    canonical_type: CanonicalType


class TypeMappingTable:
    """Resolves source-dialect type tokens to canonical SQLite types"""

    def __init__(
        self,
        dialect: str,
        mappings: Iterable[TypeMapping],
        overrides: Optional[Dict[str, CanonicalType]] = None,
    ):
        self.dialect = dialect
        entries: Dict[str, TypeMapping] = {}
        for mapping in mappings:
            entries[normalize_type_name(mapping.source_type)] = mapping
        for name, canonical in (overrides or {}).items():
            key = normalize_type_name(name)
            entries[key] = TypeMapping(key, CanonicalType(canonical))
        self._entries = entries
        self._pattern = self._compile(entries)

    @staticmethod
    def _compile(entries: Dict[str, TypeMapping]) -> "re.Pattern":
        # Qualifiers may sit between words, as in TIMESTAMP(6) WITH TIME ZONE
        between = r"(?:\s*\([^()]*\))?\s+"
        alternatives = []
        for name in sorted(entries, key=len, reverse=True):
            words = [re.escape(word) for word in name.split()]
            alternatives.append(between.join(words))
        return re.compile(
            r"(" + "|".join(alternatives) + r")(?![\w$])(?:\s*\(([^()]*)\))?",
            re.IGNORECASE,
        )

    @property
    def entries(self) -> List[TypeMapping]:
        return list(self._entries.values())

    def has_mapping(self, source_type: str) -> bool:
        return normalize_type_name(source_type) in self._entries

    def get_mapping(self, source_type: str) -> Optional[TypeMapping]:
        return self._entries.get(normalize_type_name(source_type))

    def resolve(self, token: str) -> Optional[CanonicalType]:
        """Canonical type for ``token`` or None when it is not declared"""
        mapping = self.get_mapping(token)
        if mapping is None:
            return None
        return self._canonical(mapping, first_qualifier(token))

    def match_at(self, text: str, pos: int) -> Optional[TypeMatch]:
        """Longest declared type starting exactly at ``pos``"""
        match = self._pattern.match(text, pos)
        if not match:
            return None
        mapping = self._entries[normalize_type_name(match.group(1))]
        qualifier = match.group(2)
        if qualifier is None:
            qualifier = first_qualifier(match.group(1))
        qualifier = qualifier.strip() if qualifier is not None else None
        return TypeMatch(
            text=match.group(0),
            start=match.start(),
            end=match.end(),
            mapping=mapping,
            qualifier=qualifier,
            canonical_type=self._canonical(mapping, qualifier),
        )

    @staticmethod
    def _canonical(mapping: TypeMapping, qualifier: Optional[str]) -> CanonicalType:
        if mapping.scale_sensitive and qualifier:
            parts = [part.strip() for part in qualifier.split(",")]
            scale = parts[1] if len(parts) > 1 else "0"
            try:
                return REAL if int(scale) > 0 else INTEGER
            except ValueError:
                return mapping.canonical_type
        return mapping.canonical_type

    @staticmethod
    def render(canonical: CanonicalType, qualifier: Optional[str] = None, retain_length: bool = False) -> str:
        """Canonical type name as written into the output statement"""
        if retain_length and qualifier and canonical in (TEXT, BLOB) and qualifier.isdigit():
            return f"{canonical.value}({qualifier})"
        return canonical.value


def get_type_mappings(dialect: str) -> Tuple[TypeMapping, ...]:
    return TYPE_MAPPINGS[dialect]


@lru_cache(maxsize=None)
def get_type_table(dialect: str) -> TypeMappingTable:
    """Shared table for ``dialect`` without custom overrides"""
    return TypeMappingTable(dialect, TYPE_MAPPINGS[dialect])


def build_type_table(dialect: str, overrides: Optional[Dict[str, CanonicalType]] = None) -> TypeMappingTable:
    if not overrides:
        return get_type_table(dialect)
    return TypeMappingTable(dialect, TYPE_MAPPINGS[dialect], overrides)


def has_type_mapping(dialect: str, source_type: str) -> bool:
    return dialect in TYPE_MAPPINGS and get_type_table(dialect).has_mapping(source_type)
