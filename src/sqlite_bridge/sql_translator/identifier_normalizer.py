"""
Identifier normalization for SQLite-bound SQL.

- Quoted identifiers: MySQL backticks and SQL Server square brackets become
  standard double quotes, the only delimiter SQLite documents.
- Schema prefixes: SQLite has no schemas, so `schema.table` and
  `db.schema.table` are reduced to `table` wherever the name sits in a
  table position, and every other reference qualified by a schema found
  there loses the prefix too.

Both operate on masked text (see lexer.py); literals are never touched.
"""

import re
from typing import Iterable, Set, Tuple

from .lexer import IDENT, masked_pass

_BACKTICK_RE = re.compile(r"`((?:[^`]|``)+)`")
_BRACKET_RE = re.compile(r"\[([^\]\[]+)\]")

_TABLE_POSITION_RE = re.compile(
    r"\b(?:FROM|JOIN|INTO|UPDATE|TABLE|REFERENCES|VIEW|INDEX|ON|TRUNCATE)\s+"
    r"(?:IF\s+(?:NOT\s+)?EXISTS\s+)?(?:ONLY\s+)?"
    r"((?:" + IDENT + r"\s*\.\s*){1,2})(" + IDENT + r")(?!\s*\.)",
    re.IGNORECASE,
)
_QUALIFIER_RE = re.compile(r"(?<![\w.\"$])(" + IDENT + r")\s*\.\s*(?=" + IDENT + r"|\*)")


def _unquote(identifier: str) -> str:
    identifier = identifier.strip()
    if identifier.startswith('"') and identifier.endswith('"'):
        return identifier[1:-1].replace('""', '"').lower()
    return identifier.lower()


def _double_quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class IdentifierNormalizer:
    """
    Rewrites dialect identifier delimiters to double quotes.

    ``quote_styles`` selects which delimiters are converted: "backtick"
    (MySQL), "bracket" (SQL Server). PostgreSQL and Oracle already use
    double quotes and need neither; PostgreSQL array subscripts would be
    damaged by bracket conversion.
    """

    def __init__(self, quote_styles: Iterable[str] = ()):
        self.quote_styles = frozenset(quote_styles)
        unknown = self.quote_styles - {"backtick", "bracket"}
        if unknown:
            raise ValueError(f"Unknown quote styles: {sorted(unknown)}")

    def normalize(self, text: str) -> Tuple[str, int]:
        """
        Normalize delimited identifiers in masked SQL.

        Returns:
            Tuple of (normalized_sql, identifier_count)
        """
        identifier_count = 0

        def from_backtick(match):
            nonlocal identifier_count
            identifier_count += 1
            return _double_quote(match.group(1).replace("``", "`"))

        def from_bracket(match):
            nonlocal identifier_count
            identifier_count += 1
            return _double_quote(match.group(1))

        if "backtick" in self.quote_styles:
            text = _BACKTICK_RE.sub(from_backtick, text)
        if "bracket" in self.quote_styles:
            text = _BRACKET_RE.sub(from_bracket, text)
        return text, identifier_count

    def is_quoted(self, identifier: str) -> bool:
        """True if identifier is delimited with double quotes (e.g. '"FirstName"')"""
        return identifier.startswith('"') and identifier.endswith('"')


def find_schema_qualifiers(text: str) -> Set[str]:
    """Schema (and database) names qualifying tables in table positions"""
    schemas: Set[str] = set()
    for match in _TABLE_POSITION_RE.finditer(text):
        # A join condition ON is not a table position
        if match.group(0)[:2].upper() == "ON" and not _is_index_target(text, match.start()):
            continue
        for part in re.findall(IDENT, match.group(1)):
            schemas.add(_unquote(part))
    return schemas


def _is_index_target(text: str, on_position: int) -> bool:
    preceding = text[:on_position]
    return bool(re.search(r"\bINDEX\s+(?:IF\s+NOT\s+EXISTS\s+)?" + IDENT + r"\s*$", preceding, re.IGNORECASE))


def strip_schema_prefixes(text: str) -> Tuple[str, int]:
    """
    Remove schema qualifiers from masked SQL.

    Returns:
        Tuple of (stripped_sql, prefix_count)
    """
    schemas = find_schema_qualifiers(text)
    if not schemas:
        return text, 0
    count = 0

    def drop(match):
        nonlocal count
        if _unquote(match.group(1)) in schemas:
            count += 1
            return ""
        return match.group(0)

    # db.schema.table needs one round per qualifier level
    for _ in range(3):
        updated = _QUALIFIER_RE.sub(drop, text)
        if updated == text:
            break
        text = updated
    return text, count


@masked_pass
def quote_identifiers_pass(text, masked, diagnostics, *, quote_styles=()):
    normalized, count = IdentifierNormalizer(quote_styles).normalize(text)
    if count:
        diagnostics.info(f"Normalized {count} delimited identifier(s) to double quotes")
    return normalized


@masked_pass
def strip_schema_prefix_pass(text, masked, diagnostics):
    stripped, count = strip_schema_prefixes(text)
    if count:
        diagnostics.info(f"Removed {count} schema qualifier(s)")
    return stripped
