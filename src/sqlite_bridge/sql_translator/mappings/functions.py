"""
Function mapping registry for the query rewriters.

Holds the one-to-one function mappings of each source dialect: a rename to
the SQLite builtin with the same argument list, or no target at all for
functions SQLite lacks. Functions that need their arguments restructured
(DECODE, DATEADD, CONCAT, ...) are rewritten by the dialect passes
themselves and are not listed here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple


class FunctionCategory(Enum):
    STRING = "string"
    CONDITIONAL = "conditional"
    AGGREGATE = "aggregate"
    DATETIME = "datetime"
    MATH = "math"


@dataclass(frozen=True)
class FunctionMapping:
    """
    Mapping of a source function onto SQLite.

    ``sqlite_function`` None means SQLite has no counterpart; such calls are
    left unchanged with a warning. ``exact`` False marks renames whose
    semantics differ in corner cases (reported as a warning).
    """

    source_function: str
    sqlite_function: Optional[str]
    category: FunctionCategory
    exact: bool = True
    notes: str = ""

    def __post_init__(self):
        if not self.source_function:
            raise ValueError("source_function cannot be empty")

    @property
    def supported(self) -> bool:
        return self.sqlite_function is not None


STRING = FunctionCategory.STRING
CONDITIONAL = FunctionCategory.CONDITIONAL
AGGREGATE = FunctionCategory.AGGREGATE
DATETIME = FunctionCategory.DATETIME
MATH = FunctionCategory.MATH


def _unsupported(category: FunctionCategory, names: Iterable[str], notes: str = "") -> List[FunctionMapping]:
    return [FunctionMapping(name, None, category, exact=False, notes=notes) for name in names]


MYSQL_FUNCTIONS: Tuple[FunctionMapping, ...] = (
    FunctionMapping("LCASE", "LOWER", STRING),
    FunctionMapping("UCASE", "UPPER", STRING),
    FunctionMapping("CHAR_LENGTH", "LENGTH", STRING),
    FunctionMapping("CHARACTER_LENGTH", "LENGTH", STRING),
    FunctionMapping("SUBSTRING", "SUBSTR", STRING),
    FunctionMapping("MID", "SUBSTR", STRING),
    FunctionMapping("GREATEST", "MAX", CONDITIONAL),
    FunctionMapping("LEAST", "MIN", CONDITIONAL),
    FunctionMapping("RAND", "RANDOM", MATH, exact=False, notes="RANDOM() returns a 64-bit integer, not [0, 1)"),
    *_unsupported(STRING, ["REVERSE", "LPAD", "RPAD", "REGEXP_REPLACE", "REGEXP_SUBSTR", "FIELD", "ELT",
                           "SOUNDEX", "MD5", "SHA1", "SHA2"]),
    *_unsupported(DATETIME, ["CONVERT_TZ", "MAKEDATE", "MAKETIME", "PERIOD_ADD", "PERIOD_DIFF"]),
)

POSTGRESQL_FUNCTIONS: Tuple[FunctionMapping, ...] = (
    FunctionMapping("CHAR_LENGTH", "LENGTH", STRING),
    FunctionMapping("CHARACTER_LENGTH", "LENGTH", STRING),
    FunctionMapping("SUBSTRING", "SUBSTR", STRING),
    FunctionMapping("STRPOS", "INSTR", STRING),
    FunctionMapping("BTRIM", "TRIM", STRING),
    FunctionMapping("GREATEST", "MAX", CONDITIONAL, exact=False,
                    notes="SQLite returns NULL when any argument is NULL"),
    FunctionMapping("LEAST", "MIN", CONDITIONAL, exact=False,
                    notes="SQLite returns NULL when any argument is NULL"),
    FunctionMapping("RANDOM", "RANDOM", MATH, exact=False, notes="RANDOM() returns a 64-bit integer, not [0, 1)"),
    *_unsupported(STRING, ["LPAD", "RPAD", "REGEXP_REPLACE", "REGEXP_MATCHES", "SPLIT_PART", "INITCAP", "MD5",
                           "TRANSLATE", "REPEAT", "REVERSE"]),
    *_unsupported(DATETIME, ["AGE", "MAKE_DATE", "MAKE_TIMESTAMP", "JUSTIFY_DAYS"]),
    *_unsupported(AGGREGATE, ["UNNEST", "GENERATE_SERIES", "ARRAY_LENGTH"]),
)

ORACLE_FUNCTIONS: Tuple[FunctionMapping, ...] = (
    FunctionMapping("NVL", "IFNULL", CONDITIONAL),
    FunctionMapping("GREATEST", "MAX", CONDITIONAL),
    FunctionMapping("LEAST", "MIN", CONDITIONAL),
    FunctionMapping("LENGTHB", "LENGTH", STRING, exact=False, notes="counts characters, not bytes"),
    FunctionMapping("SUBSTRB", "SUBSTR", STRING, exact=False, notes="counts characters, not bytes"),
    *_unsupported(STRING, ["LPAD", "RPAD", "INITCAP", "REGEXP_REPLACE", "REGEXP_SUBSTR", "REGEXP_INSTR",
                           "REGEXP_LIKE", "TRANSLATE", "SOUNDEX"]),
    *_unsupported(DATETIME, ["NEXT_DAY", "NEW_TIME", "ROUND_DATE"]),
)

MSSQL_FUNCTIONS: Tuple[FunctionMapping, ...] = (
    FunctionMapping("ISNULL", "IFNULL", CONDITIONAL),
    FunctionMapping("SUBSTRING", "SUBSTR", STRING),
    FunctionMapping("GREATEST", "MAX", CONDITIONAL, exact=False,
                    notes="SQLite returns NULL when any argument is NULL"),
    FunctionMapping("LEAST", "MIN", CONDITIONAL, exact=False,
                    notes="SQLite returns NULL when any argument is NULL"),
    FunctionMapping("DATALENGTH", "LENGTH", STRING, exact=False, notes="counts characters of text values, not bytes"),
    FunctionMapping("NEWID", "RANDOM", MATH, exact=False, notes="only usable for random ordering"),
    *_unsupported(STRING, ["STUFF", "REPLICATE", "REVERSE", "PATINDEX", "QUOTENAME", "SPACE", "SOUNDEX",
                           "DIFFERENCE", "TRANSLATE", "FORMATMESSAGE"]),
    *_unsupported(DATETIME, ["SWITCHOFFSET", "TODATETIMEOFFSET", "DATEFROMPARTS", "DATETIMEFROMPARTS"]),
)

FUNCTION_MAPPINGS: Dict[str, Tuple[FunctionMapping, ...]] = {
    "postgresql": POSTGRESQL_FUNCTIONS,
    "mysql": MYSQL_FUNCTIONS,
    "oracle": ORACLE_FUNCTIONS,
    "mssql": MSSQL_FUNCTIONS,
}


class DialectFunctionRegistry:
    """Case-insensitive lookup over one dialect's function mappings"""

    def __init__(self, dialect: str, mappings: Optional[Iterable[FunctionMapping]] = None):
        self.dialect = dialect
        if mappings is None:
            mappings = FUNCTION_MAPPINGS[dialect]
        self._mappings: Dict[str, FunctionMapping] = {m.source_function.upper(): m for m in mappings}

    def has_mapping(self, function_name: str) -> bool:
        return function_name.upper() in self._mappings

    def get_mapping(self, function_name: str) -> Optional[FunctionMapping]:
        return self._mappings.get(function_name.upper())

    def get_mappings(self, category: Optional[FunctionCategory] = None) -> List[FunctionMapping]:
        return [m for m in self._mappings.values() if category is None or m.category is category]

    def get_supported_functions(self) -> List[str]:
        return sorted(name for name, m in self._mappings.items() if m.supported)

    def get_unsupported_functions(self) -> List[str]:
        return sorted(name for name, m in self._mappings.items() if not m.supported)


_registries: Dict[str, DialectFunctionRegistry] = {}


def get_function_registry(dialect: str) -> DialectFunctionRegistry:
    """Shared registry instance for ``dialect``"""
    registry = _registries.get(dialect)
    if registry is None:
        registry = DialectFunctionRegistry(dialect)
        _registries[dialect] = registry
    return registry
