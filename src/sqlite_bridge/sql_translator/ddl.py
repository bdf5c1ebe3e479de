"""
Schema (DDL) rewrite passes shared by the dialect schema rewriters.

A CREATE TABLE body is handled as a list of table elements (column
definitions and table constraints) split at top-level commas; ALTER TABLE
... ADD and bare column-definition fragments are handled the same way with
a single element. Every pass here takes masked text (see lexer.py) and is
parameterized by the dialect module that builds the pipeline.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .lexer import (
    IDENT,
    PLACEHOLDER_RE,
    depth_map,
    find_closing,
    masked_pass,
    rewrite_calls,
    split_statement_tail,
    split_top_level,
    collapse_whitespace,
)
from .mappings.datatypes import TypeMappingTable
from .models import CanonicalType, DiagnosticLevel

PH = PLACEHOLDER_RE.pattern.replace(r"(\d+)", r"\d+")
LEAD = r"^(?:\s|" + PH + r")*"

_STATEMENT_KEYWORDS = (
    "CREATE", "ALTER", "DROP", "INSERT", "UPDATE", "DELETE", "SELECT", "WITH",
    "GRANT", "REVOKE", "COMMENT", "SET", "TRUNCATE", "RENAME", "USE", "BEGIN",
    "COMMIT", "ROLLBACK", "EXEC", "EXECUTE", "GO", "PRAGMA", "REPLACE", "MERGE",
    "DECLARE", "LOCK", "UNLOCK", "ANALYZE", "VACUUM", "EXPLAIN", "CALL",
)
_STATEMENT_RE = re.compile(LEAD + r"(" + "|".join(_STATEMENT_KEYWORDS) + r")\b", re.IGNORECASE)

_CREATE_TABLE_RE = re.compile(
    LEAD + r"CREATE\s+(?:OR\s+REPLACE\s+)?(?:(?:GLOBAL|LOCAL)\s+)?(?:TEMP(?:ORARY)?\s+|UNLOGGED\s+)?"
    r"TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?" + IDENT + r"(?:\s*\.\s*" + IDENT + r")*\s*\(",
    re.IGNORECASE,
)
_ALTER_ADD_RE = re.compile(
    LEAD + r"ALTER\s+TABLE\s+(?:IF\s+EXISTS\s+)?(?:ONLY\s+)?" + IDENT + r"(?:\s*\.\s*" + IDENT + r")*"
    r"\s+ADD\s+(?:COLUMN\s+)?(?:IF\s+NOT\s+EXISTS\s+)?",
    re.IGNORECASE,
)
CREATE_INDEX_RE = re.compile(LEAD + r"CREATE\s+(?:\w+\s+)*?INDEX\b", re.IGNORECASE)

_CONSTRAINT_START_RE = re.compile(
    r"^\s*(?:CONSTRAINT|PRIMARY\s+KEY|FOREIGN\s+KEY|UNIQUE|CHECK|INDEX|KEY|FULLTEXT|SPATIAL|"
    r"PERIOD\s+FOR|EXCLUDE|LIKE)\b",
    re.IGNORECASE,
)
COLUMN_HEAD_RE = re.compile(r"^(\s*)(?P<name>" + IDENT + r")(?=\s|$)")

# Words that may follow a column name when the column has no declared type
_NON_TYPE_WORDS = frozenset({
    "NOT", "NULL", "DEFAULT", "PRIMARY", "REFERENCES", "CHECK", "UNIQUE",
    "CONSTRAINT", "COLLATE", "GENERATED", "AS", "AUTO_INCREMENT", "IDENTITY",
})


@dataclass
class TableElements:
    """The comma-separated element list of a CREATE TABLE/ALTER ADD"""

    prefix: str
    elements: List[Optional[str]]
    suffix: str

    def join(self) -> str:
        return self.prefix + ",".join(e for e in self.elements if e is not None) + self.suffix


def split_table_elements(text: str) -> Optional[TableElements]:
    create = _CREATE_TABLE_RE.match(text)
    if create:
        open_index = create.end() - 1
        close_index = find_closing(text, open_index)
        if close_index < 0:
            return None
        inner = text[open_index + 1:close_index]
        return TableElements(text[:open_index + 1], split_top_level(inner), text[close_index:])
    alter = _ALTER_ADD_RE.match(text)
    if alter:
        body, tail = split_statement_tail(text[alter.end():])
        if body.lstrip().startswith("("):
            # Oracle: ALTER TABLE t ADD (col1 ..., col2 ...)
            open_index = alter.end() + body.index("(")
            close_index = find_closing(text, open_index)
            if close_index < 0:
                return None
            inner = text[open_index + 1:close_index]
            return TableElements(text[:open_index + 1], split_top_level(inner), text[close_index:])
        return TableElements(text[:alter.end()], [body], tail)
    if _STATEMENT_RE.match(text) or not text.strip():
        return None
    # Bare column definition list
    body, tail = split_statement_tail(text)
    return TableElements("", split_top_level(body), tail)


def map_table_elements(text: str, func: Callable[[str], Optional[str]]) -> str:
    """Apply ``func`` to each element; a None result removes the element"""
    parts = split_table_elements(text)
    if parts is None:
        return text
    parts.elements = [func(element) if element is not None else None for element in parts.elements]
    return parts.join()


def is_constraint_element(element: str) -> bool:
    return bool(_CONSTRAINT_START_RE.match(element))


def unquote(identifier: str) -> str:
    identifier = identifier.strip()
    if identifier.startswith('"') and identifier.endswith('"'):
        return identifier[1:-1].replace('""', '"').lower()
    return identifier.lower()


def _leading_ws(element: str) -> str:
    return element[:len(element) - len(element.lstrip())]


# ========== Auto-increment ==========

@dataclass(frozen=True)
class AutoIncrementMarker:
    """Pattern marking a column as auto-generated, searched after the column name"""

    pattern: "re.Pattern"
    label: str
    seed_groups: bool = False


_PK_ATTR_RE = re.compile(
    r"(?:\bCONSTRAINT\s+" + IDENT + r"\s+)?\bPRIMARY\s+KEY\b(?:\s+(?:NON)?CLUSTERED\b)?(?:\s+(?:ASC|DESC)\b)?",
    re.IGNORECASE,
)
_NOT_NULL_RE = re.compile(r"\bNOT\s+NULL\b", re.IGNORECASE)
_BARE_NULL_RE = re.compile(r"(\bDEFAULT\s+)?\bNULL\b", re.IGNORECASE)
_INT_ATTRS_RE = re.compile(r"\b(?:UNSIGNED|SIGNED|ZEROFILL)\b", re.IGNORECASE)
_UNIQUE_ATTR_RE = re.compile(r"\bUNIQUE(?:\s+KEY)?\b", re.IGNORECASE)
_TABLE_PK_RE = re.compile(
    r"^\s*(?:CONSTRAINT\s+" + IDENT + r"\s+)?PRIMARY\s+KEY\b(?:\s+(?:NON)?CLUSTERED\b)?\s*\(([^()]*)\)",
    re.IGNORECASE,
)
_SEQUENCE_RE = re.compile(LEAD + r"(?:CREATE|ALTER|DROP)\s+SEQUENCE\b", re.IGNORECASE)

AUTO_INCREMENT_DECLARATION = "INTEGER PRIMARY KEY AUTOINCREMENT"


def _key_columns(columns: str) -> List[str]:
    names = []
    for column in split_top_level(columns):
        match = re.match(r"\s*(" + IDENT + r")", column)
        if match:
            names.append(unquote(match.group(1)))
    return names


@masked_pass
def auto_increment_pass(text, masked, diagnostics, *, markers: Sequence[AutoIncrementMarker],
                        type_table: TypeMappingTable, sequences: bool = False):
    if sequences and _SEQUENCE_RE.match(text):
        diagnostics.warn(
            "Sequences are not supported by SQLite; statement dropped "
            "(auto-increment columns use INTEGER PRIMARY KEY AUTOINCREMENT)",
            masked.restore(text),
        )
        return ""
    parts = split_table_elements(text)
    if parts is None:
        return text

    # Table-level keys by element index; inline keys by column name
    primary_keys: Dict[int, List[str]] = {}
    inline_keys: List[str] = []
    for index, element in enumerate(parts.elements):
        match = _TABLE_PK_RE.match(element)
        if match:
            primary_keys[index] = _key_columns(match.group(1))
            continue
        head = COLUMN_HEAD_RE.match(element)
        if head and not is_constraint_element(element) and _PK_ATTR_RE.search(element, head.end()):
            inline_keys.append(unquote(head.group("name")))

    changed = False
    for index, element in enumerate(list(parts.elements)):
        if element is None or is_constraint_element(element):
            continue
        head = COLUMN_HEAD_RE.match(element)
        if not head:
            continue
        rest = element[head.end():]
        for marker in markers:
            found = marker.pattern.search(rest)
            if found:
                break
        else:
            continue

        name = head.group("name")
        fragment = masked.restore(element)
        if marker.seed_groups and found.lastindex and found.lastindex >= 2:
            seed, step = found.group(1), found.group(2)
            if seed and step and (seed.strip() != "1" or step.strip() != "1"):
                diagnostics.warn(
                    f"IDENTITY({seed}, {step}) seed/increment ignored; SQLite AUTOINCREMENT starts at 1 step 1",
                    fragment,
                )
        rest = rest[:found.start()] + " " + rest[found.end():]
        stripped = rest.lstrip()
        type_match = type_table.match_at(rest, len(rest) - len(stripped))
        if type_match:
            rest = rest[:type_match.start] + rest[type_match.end:]
        rest = _INT_ATTRS_RE.sub(" ", rest)

        key = unquote(name)
        composite = any(key in columns and len(columns) > 1 for columns in primary_keys.values())
        other_key = [column for column in inline_keys if column != key]
        other_key += [c for columns in primary_keys.values() if key not in columns for c in columns]
        if composite or other_key:
            if composite:
                reason = f"{name} is part of a composite primary key"
            else:
                reason = f"the primary key is {', '.join(other_key)}"
            diagnostics.warn(
                f"AUTOINCREMENT requires a single-column INTEGER PRIMARY KEY; "
                f"{reason} and {name} is declared as plain INTEGER",
                fragment,
            )
            declaration = f"{name} INTEGER"
        else:
            for pattern in (_PK_ATTR_RE, _NOT_NULL_RE, _UNIQUE_ATTR_RE):
                rest = pattern.sub(" ", rest)
            rest = _BARE_NULL_RE.sub(lambda m: m.group(0) if m.group(1) else " ", rest)
            declaration = f"{name} {AUTO_INCREMENT_DECLARATION}"
            for i, columns in primary_keys.items():
                if columns == [key]:
                    parts.elements[i] = None
            diagnostics.info(f"Converted {marker.label} column {name} to {AUTO_INCREMENT_DECLARATION}", fragment)
        leftover = " ".join(rest.split())
        parts.elements[index] = _leading_ws(element) + declaration + (" " + leftover if leftover else "")
        changed = True
    return parts.join() if changed else text


# ========== Type substitution ==========

_ARRAY_SUFFIX_RE = re.compile(r"\s*(?:\[\s*\d*\s*\])+|\s+ARRAY\b(?:\s*\[\s*\d*\s*\])?", re.IGNORECASE)
_CANONICAL_RE = re.compile(
    r"(INTEGER|REAL|TEXT|BLOB)(?![\w$])(?:\s*\(([^()]*)\))?", re.IGNORECASE
)
_WORD_RE = re.compile(r"[A-Za-z_][\w$]*")


@masked_pass
def type_substitution_pass(text, masked, diagnostics, *, type_table: TypeMappingTable,
                           retain_length: bool = False, enum_checks: bool = False,
                           array_types: bool = False):
    def substitute(element: str) -> str:
        if is_constraint_element(element):
            return element
        head = COLUMN_HEAD_RE.match(element)
        if not head:
            return element
        name = head.group("name")
        position = head.end() + len(element[head.end():]) - len(element[head.end():].lstrip())
        type_match = type_table.match_at(element, position)
        if type_match is None:
            canonical = _CANONICAL_RE.match(element, position)
            if canonical:
                rendered = TypeMappingTable.render(
                    CanonicalType(canonical.group(1).upper()), canonical.group(2), retain_length
                )
                return element[:canonical.start()] + rendered + element[canonical.end():]
            word = _WORD_RE.match(element, position)
            if word and word.group(0).upper() not in _NON_TYPE_WORDS:
                diagnostics.warn(
                    f"Unknown {type_table.dialect} type {word.group(0)} kept as written "
                    f"(SQLite applies type affinity rules)",
                    masked.restore(element),
                )
            return element

        end = type_match.end
        base = type_match.mapping.source_type.upper()
        fragment = masked.restore(element)
        if enum_checks and base == "ENUM" and type_match.qualifier:
            replacement = f"TEXT CHECK({name} IN ({type_match.qualifier}))"
            diagnostics.info(f"ENUM column {name} converted to TEXT with a CHECK constraint", fragment)
        elif enum_checks and base == "SET":
            replacement = "TEXT"
            diagnostics.warn(f"SET column {name} stored as TEXT; membership is not enforced", fragment)
        else:
            replacement = TypeMappingTable.render(type_match.canonical_type, type_match.qualifier, retain_length)
            if array_types:
                array = _ARRAY_SUFFIX_RE.match(element, end)
                if array:
                    end = array.end()
                    replacement = "TEXT"
                    diagnostics.warn(f"Array column {name} stored as TEXT", fragment)
        trailing = element[end:]
        if type_match.canonical_type in (CanonicalType.INTEGER, CanonicalType.REAL):
            trailing = re.sub(r"^(\s+(?:UNSIGNED|SIGNED|ZEROFILL)\b)+", "", trailing, flags=re.IGNORECASE)
        return element[:type_match.start] + replacement + trailing

    return map_table_elements(text, substitute)


# ========== Default values ==========

_CURRENT_TIMESTAMP_FUNCS = (
    r"NOW|CURRENT_TIMESTAMP|LOCALTIMESTAMP|GETDATE|GETUTCDATE|SYSDATETIME|SYSUTCDATETIME|"
    r"SYSDATETIMEOFFSET|UTC_TIMESTAMP|TRANSACTION_TIMESTAMP|STATEMENT_TIMESTAMP|CLOCK_TIMESTAMP|"
    r"SYSDATE|SYSTIMESTAMP"
)
_UUID_FUNCS = r"GEN_RANDOM_UUID|UUID_GENERATE_V4|UUID_GENERATE_V1|UUID|SYS_GUID|NEWID|NEWSEQUENTIALID"


def _default_re(functions: str) -> "re.Pattern":
    call = r"(?:" + functions + r")(?:\s*\(\s*\d*\s*\))?"
    return re.compile(
        r"\bDEFAULT\s*(?:\(\s*" + call + r"\s*\)|\s" + call + r")(?![\w(])", re.IGNORECASE
    )


_DEFAULT_TIMESTAMP_RE = _default_re(_CURRENT_TIMESTAMP_FUNCS)
_DEFAULT_DATE_RE = _default_re(r"CURDATE|CURRENT_DATE")
_DEFAULT_TIME_RE = _default_re(r"CURTIME|CURRENT_TIME|LOCALTIME")
_DEFAULT_UUID_RE = re.compile(
    r"\s*\bDEFAULT\s*(?:\(\s*)?(?:" + _UUID_FUNCS + r")\s*\(\s*\)(?:\s*\))?", re.IGNORECASE
)
_ON_UPDATE_RE = re.compile(
    r"\s*\bON\s+UPDATE\s+(?:CURRENT_TIMESTAMP|NOW)(?:\s*\(\s*\d*\s*\))?", re.IGNORECASE
)
_DEFAULT_NEXTVAL_RE = re.compile(
    r"\s*\bDEFAULT\s+(?:nextval\s*\([^()]*\)|" + IDENT + r"\s*\.\s*NEXTVAL\b)", re.IGNORECASE
)
_DEFAULT_BOOLEAN_RE = re.compile(r"\bDEFAULT\s+(TRUE|FALSE)\b", re.IGNORECASE)
_PG_CAST_RE = re.compile(
    r"::\s*\"?[A-Za-z_][\w]*\"?(?:\s+(?:varying|precision|with|without|time|zone))*"
    r"(?:\s*\(\s*\d+(?:\s*,\s*\d+)?\s*\))?(?:\[\])*",
    re.IGNORECASE,
)


@masked_pass
def default_values_pass(text, masked, diagnostics, *, boolean_defaults: bool = False,
                        strip_casts: bool = False):
    if strip_casts and "::" in text:
        text, count = _PG_CAST_RE.subn("", text)
        diagnostics.info(f"Dropped {count} type cast(s) from default expressions")

    text = _DEFAULT_TIMESTAMP_RE.sub("DEFAULT CURRENT_TIMESTAMP", text)
    text = _DEFAULT_DATE_RE.sub("DEFAULT CURRENT_DATE", text)
    text = _DEFAULT_TIME_RE.sub("DEFAULT CURRENT_TIME", text)

    def drop_uuid(match):
        diagnostics.warn(
            "UUID generator default has no SQLite equivalent; default dropped "
            "(generate the value in the application)",
            masked.restore(match.group(0)),
        )
        return ""

    def drop_on_update(match):
        diagnostics.warn(
            "ON UPDATE CURRENT_TIMESTAMP is not supported by SQLite; use a trigger",
            masked.restore(match.group(0)),
        )
        return ""

    def drop_nextval(match):
        diagnostics.warn("Sequence default has no SQLite equivalent; default dropped",
                         masked.restore(match.group(0)))
        return ""

    text = _DEFAULT_UUID_RE.sub(drop_uuid, text)
    text = _ON_UPDATE_RE.sub(drop_on_update, text)
    text = _DEFAULT_NEXTVAL_RE.sub(drop_nextval, text)
    if boolean_defaults:
        text = _DEFAULT_BOOLEAN_RE.sub(lambda m: "DEFAULT " + ("1" if m.group(1).upper() == "TRUE" else "0"), text)
    return text


# ========== Dialect-only features ==========

@dataclass(frozen=True)
class FeatureRule:
    """
    A dialect-only clause removed from schema statements.

    ``replacement`` may use backreferences. ``top_level`` restricts matches
    to parenthesis depth 0 (table options after the element list).
    """

    pattern: "re.Pattern"
    message: str
    level: DiagnosticLevel = DiagnosticLevel.INFO
    replacement: str = ""
    top_level: bool = False


def rule(pattern: str, message: str, level: DiagnosticLevel = DiagnosticLevel.INFO,
         replacement: str = "", top_level: bool = False) -> FeatureRule:
    return FeatureRule(re.compile(pattern, re.IGNORECASE), message, level, replacement, top_level)


def warn_rule(pattern: str, message: str, replacement: str = "", top_level: bool = False) -> FeatureRule:
    return rule(pattern, message, DiagnosticLevel.WARN, replacement, top_level)


_PARTITION_RE = re.compile(r"\bPARTITION\s+BY\b", re.IGNORECASE)
_UNSUPPORTED_ALTER_RE = re.compile(
    r"\bALTER\s+TABLE\b.*?\b(MODIFY|CHANGE|ALTER\s+COLUMN|DROP\s+CONSTRAINT|ADD\s+CONSTRAINT)\b",
    re.IGNORECASE | re.DOTALL,
)


def _report(diagnostics, level: DiagnosticLevel, message: str, fragment: str) -> None:
    if level is DiagnosticLevel.WARN:
        diagnostics.warn(message, fragment)
    else:
        diagnostics.info(message, fragment)


def apply_feature_rules(text: str, masked, diagnostics, rules: Sequence[FeatureRule]) -> str:
    for feature in rules:
        matches = list(feature.pattern.finditer(text))
        if feature.top_level and matches:
            depths = depth_map(text)
            matches = [m for m in matches if m.start() >= len(depths) or depths[m.start()] == 0]
        for match in reversed(matches):
            _report(diagnostics, feature.level, feature.message, masked.restore(match.group(0)))
            text = text[:match.start()] + match.expand(feature.replacement) + text[match.end():]
    return text


def _drop_partitioning(text: str, masked, diagnostics) -> str:
    for match in _PARTITION_RE.finditer(text):
        depths = depth_map(text)
        if depths[match.start()] != 0:
            continue
        body, tail = split_statement_tail(text[match.start():], masked)
        diagnostics.warn(
            "Table partitioning is not supported by SQLite; PARTITION BY clause dropped",
            masked.restore(body),
        )
        return text[:match.start()] + tail
    return text


def _clean_table_suffix(text: str) -> str:
    parts = split_table_elements(text)
    if parts is None or not parts.prefix:
        return text
    suffix = re.sub(r"^\)[\s,]*", ") ", parts.suffix)
    suffix = re.sub(r",(\s*,)+", ",", suffix)
    suffix = re.sub(r"[\s,]+(?=;|$)", "", suffix)
    suffix = re.sub(r",\s*(" + PH + r")", r" \1", suffix)
    parts.suffix = suffix
    return parts.join()


@masked_pass
def strip_features_pass(text, masked, diagnostics, *, rules: Sequence[FeatureRule],
                        statement_rules: Sequence[FeatureRule] = (), element_rules: Sequence[FeatureRule] = (),
                        with_options: bool = False):
    for statement in statement_rules:
        if statement.pattern.search(text):
            _report(diagnostics, statement.level, statement.message, masked.restore(text))
            return ""
    unsupported = _UNSUPPORTED_ALTER_RE.search(text)
    if unsupported:
        diagnostics.warn(
            f"ALTER TABLE ... {unsupported.group(1).upper()} has no SQLite equivalent; "
            "rebuild the table instead",
            masked.restore(text),
        )
    if element_rules:
        def drop_element(element: str) -> Optional[str]:
            for feature in element_rules:
                if feature.pattern.match(element):
                    _report(diagnostics, feature.level, feature.message, masked.restore(element))
                    return None
            return element

        text = map_table_elements(text, drop_element)
    text = _drop_partitioning(text, masked, diagnostics)
    text = apply_feature_rules(text, masked, diagnostics, rules)
    if with_options:
        text = with_options_rule(diagnostics, masked, text)
    return _clean_table_suffix(text)


def with_options_rule(diagnostics, masked, text: str) -> str:
    """Drop ``WITH (option = value, ...)`` lists, naming the features they carry"""

    def build(call):
        options = call.args_text.upper()
        fragment = masked.restore(text[call.start:call.end])
        if "DATA_COMPRESSION" in options or "COMPRESSION" in options:
            diagnostics.warn("Table compression is not supported by SQLite; option dropped", fragment)
        elif "MEMORY_OPTIMIZED" in options:
            diagnostics.warn("Memory-optimized tables are not supported by SQLite; option dropped", fragment)
        elif "SYSTEM_VERSIONING" in options:
            diagnostics.warn("System-versioned temporal tables are not supported by SQLite; option dropped",
                             fragment)
        else:
            diagnostics.info("Storage options dropped", fragment)
        return ""

    return rewrite_calls(text, ["WITH"], build)


# ========== Indexes ==========

_INDEX_METHOD_RE = re.compile(r"\s*\bUSING\s+(BTREE|HASH|RTREE|GIN|GIST|BRIN|SPGIST)\b", re.IGNORECASE)
_INLINE_UNIQUE_RE = re.compile(
    r"^(\s*)UNIQUE\s+(?:KEY|INDEX)\s*(?P<name>" + IDENT + r")?\s*(?:USING\s+\w+\s*)?\((?P<cols>.*)\)\s*"
    r"(?:USING\s+\w+\s*)?$",
    re.IGNORECASE | re.DOTALL,
)
_INLINE_INDEX_RE = re.compile(r"^\s*(?:(FULLTEXT|SPATIAL)\s+)?(?:KEY|INDEX)\b|^\s*(FULLTEXT|SPATIAL)\b", re.IGNORECASE)
_PREFIX_LENGTH_RE = re.compile(r"(" + IDENT + r")\s*\(\s*\d+\s*\)")
_OPCLASS_RE = re.compile(r"\s+[A-Za-z_]\w*_ops\b", re.IGNORECASE)
_NULLS_ORDER_RE = re.compile(r"\s+NULLS\s+(?:FIRST|LAST)\b", re.IGNORECASE)
_INDEX_TARGET_RE = re.compile(r"\bON\s+" + IDENT + r"(?:\s*\.\s*" + IDENT + r")*\s*\(", re.IGNORECASE)
_INDEX_KIND_RE = re.compile(
    r"^(" + LEAD[1:] + r"CREATE\s+(?:UNIQUE\s+)?)((?:(?:FULLTEXT|SPATIAL|BITMAP|CLUSTERED|NONCLUSTERED)\s+)+)INDEX\b",
    re.IGNORECASE,
)
_INDEX_RULES = (
    rule(r"(\bINDEX\s+)CONCURRENTLY\s+", "CONCURRENTLY dropped", replacement=r"\1"),
    warn_rule(r"\s*\bINCLUDE\s*\([^()]*\)", "Covering index INCLUDE columns are not supported by SQLite; dropped"),
    rule(r"\s*\b(?:ALGORITHM|LOCK)\s*=?\s*\w+", "Index build option dropped"),
    rule(r"\s*\b(?:ONLINE|NOSORT|REVERSE|COMPUTE\s+STATISTICS|VISIBLE|INVISIBLE|LOCAL|GLOBAL)\b(?=[^()]*$)",
         "Index attribute dropped"),
    rule(r"\s*\b(?:NON)?CLUSTERED\b", "Clustering hint dropped"),
)
_DROP_INDEX_ON_RE = re.compile(LEAD[1:] + r"(DROP\s+INDEX\s+(?:IF\s+EXISTS\s+)?" + IDENT + r")\s+ON\s+" + IDENT
                               + r"(?:\s*\.\s*" + IDENT + r")*", re.IGNORECASE)


def _index_method(match, masked, diagnostics) -> str:
    method = match.group(1).upper()
    if method in ("BTREE", "HASH"):
        diagnostics.info(f"Index method {method} dropped", masked.restore(match.group(0)))
    else:
        diagnostics.warn(
            f"Index method {method} has no SQLite equivalent; a plain B-tree index is created",
            masked.restore(match.group(0)),
        )
    return ""


def _clean_index_columns(text: str, masked, diagnostics) -> str:
    target = _INDEX_TARGET_RE.search(text)
    if not target:
        return text
    open_index = target.end() - 1
    close_index = find_closing(text, open_index)
    if close_index < 0:
        return text
    columns = text[open_index + 1:close_index]
    cleaned = _PREFIX_LENGTH_RE.sub(r"\1", columns)
    cleaned = _OPCLASS_RE.sub("", cleaned)
    cleaned = _NULLS_ORDER_RE.sub("", cleaned)
    if cleaned != columns:
        diagnostics.info("Index column prefix lengths, operator classes or NULLS ordering dropped",
                         masked.restore(columns))
    return text[:open_index + 1] + cleaned + text[close_index:]


@masked_pass
def index_pass(text, masked, diagnostics, *, inline_keys: bool = False):
    drop_on = _DROP_INDEX_ON_RE.match(text)
    if drop_on:
        diagnostics.info("DROP INDEX ... ON table reduced to DROP INDEX", masked.restore(text))
        return text[:drop_on.start(1)] + drop_on.group(1) + text[drop_on.end():]

    if CREATE_INDEX_RE.match(text):
        if re.search(r"\bINDEXTYPE\s+IS\b", text, re.IGNORECASE):
            diagnostics.warn("Domain indexes (INDEXTYPE IS) are not supported by SQLite; statement dropped",
                             masked.restore(text))
            return ""
        kind = _INDEX_KIND_RE.match(text)
        if kind:
            kinds = kind.group(2).upper().split()
            if "SPATIAL" in kinds:
                diagnostics.warn("Spatial indexes are not supported by SQLite; statement dropped",
                                 masked.restore(text))
                return ""
            if "FULLTEXT" in kinds:
                diagnostics.warn("Full-text index created as a plain index (use FTS5 for text search)",
                                 masked.restore(text))
            else:
                diagnostics.info(f"Index kind {' '.join(kinds)} dropped", masked.restore(kind.group(2)))
            text = kind.group(1) + "INDEX" + text[kind.end():]
        text = _INDEX_METHOD_RE.sub(lambda m: _index_method(m, masked, diagnostics), text)
        text = apply_feature_rules(text, masked, diagnostics, _INDEX_RULES)
        return _clean_index_columns(text, masked, diagnostics)

    parts = split_table_elements(text)
    if parts is None:
        return text

    def normalize_element(element: str) -> Optional[str]:
        if not inline_keys:
            return _INDEX_METHOD_RE.sub(lambda m: _index_method(m, masked, diagnostics), element)
        unique = _INLINE_UNIQUE_RE.match(element)
        if unique:
            columns = _PREFIX_LENGTH_RE.sub(r"\1", unique.group("cols"))
            name = unique.group("name")
            constraint = f"CONSTRAINT {name} UNIQUE ({columns})" if name else f"UNIQUE ({columns})"
            diagnostics.info("Inline UNIQUE KEY converted to a UNIQUE constraint", masked.restore(element))
            return unique.group(1) + constraint
        inline = _INLINE_INDEX_RE.match(element)
        if inline:
            kind = (inline.group(1) or inline.group(2) or "").upper()
            label = f"{kind.lower()} index" if kind else "index"
            diagnostics.warn(
                f"Inline {label} definitions are not supported in SQLite CREATE TABLE; "
                "dropped (create it with CREATE INDEX)",
                masked.restore(element),
            )
            return None
        element = _INDEX_METHOD_RE.sub(lambda m: _index_method(m, masked, diagnostics), element)
        if re.match(r"^\s*(?:CONSTRAINT\s+" + IDENT + r"\s+)?PRIMARY\s+KEY\b", element, re.IGNORECASE):
            element = _PREFIX_LENGTH_RE.sub(r"\1", element)
        return element

    parts.elements = [normalize_element(e) if e is not None else None for e in parts.elements]
    return parts.join()


# ========== Tidy ==========

@masked_pass
def tidy_pass(text, masked, diagnostics):
    if not text.strip() or re.fullmatch(r"[\s;]*", text):
        return ""
    return collapse_whitespace(text)