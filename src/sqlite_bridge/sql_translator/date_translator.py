"""
Date/time translation helpers shared by the query rewriters.

SQLite has no date type, only functions over ISO-8601 text: date(),
time(), datetime(), julianday() and strftime() with modifiers such as
'+3 months' or 'start of month'. This module holds

- the per-dialect format-token tables (MySQL %-codes, Oracle/PostgreSQL
  picture strings, .NET format strings) and the translator that maps a
  source format string onto a strftime() format,
- interval unit normalization and the modifier builders used for date
  arithmetic,
- builders for field extraction and date differences.

Builders receive the MaskedSQL of the statement being rewritten so every
string literal they produce is stashed as a placeholder.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .lexer import MaskedSQL


@dataclass(frozen=True)
class FormatToken:
    directive: str
    exact: bool = True


def _exact(directive: str) -> FormatToken:
    return FormatToken(directive, True)


def _approx(directive: str) -> FormatToken:
    return FormatToken(directive, False)


MYSQL_FORMAT_TOKENS: Dict[str, FormatToken] = {
    "%Y": _exact("%Y"),
    "%y": _approx("%Y"),
    "%m": _exact("%m"),
    "%c": _approx("%m"),
    "%M": _approx("%m"),
    "%b": _approx("%m"),
    "%d": _exact("%d"),
    "%e": _approx("%d"),
    "%j": _exact("%j"),
    "%H": _exact("%H"),
    "%k": _approx("%H"),
    "%h": _exact("%I"),
    "%I": _exact("%I"),
    "%l": _approx("%I"),
    "%i": _exact("%M"),
    "%s": _exact("%S"),
    "%S": _exact("%S"),
    "%f": _approx("%f"),
    "%p": _exact("%p"),
    "%T": _exact("%H:%M:%S"),
    "%r": _exact("%I:%M:%S %p"),
    "%W": _approx("%w"),
    "%a": _approx("%w"),
    "%w": _exact("%w"),
    "%u": _exact("%W"),
    "%U": _approx("%W"),
    "%%": _exact("%%"),
}

ORACLE_FORMAT_TOKENS: Dict[str, FormatToken] = {
    "YYYY": _exact("%Y"),
    "RRRR": _exact("%Y"),
    "YY": _approx("%Y"),
    "RR": _approx("%Y"),
    "MONTH": _approx("%m"),
    "MON": _approx("%m"),
    "MM": _exact("%m"),
    "DDD": _exact("%j"),
    "DD": _exact("%d"),
    "DAY": _approx("%w"),
    "DY": _approx("%w"),
    "D": _approx("%w"),
    "HH24": _exact("%H"),
    "HH12": _exact("%I"),
    "HH": _exact("%I"),
    "MI": _exact("%M"),
    "SS": _exact("%S"),
    "FF": _approx("%f"),
    "AM": _exact("%p"),
    "PM": _exact("%p"),
    "IW": _approx("%W"),
    "WW": _approx("%W"),
    "J": _approx("%J"),
    "FM": _approx(""),
}

POSTGRESQL_FORMAT_TOKENS: Dict[str, FormatToken] = {
    "YYYY": _exact("%Y"),
    "YY": _approx("%Y"),
    "MONTH": _approx("%m"),
    "MON": _approx("%m"),
    "MM": _exact("%m"),
    "DDD": _exact("%j"),
    "DD": _exact("%d"),
    "DAY": _approx("%w"),
    "DY": _approx("%w"),
    "D": _approx("%w"),
    "HH24": _exact("%H"),
    "HH12": _exact("%I"),
    "HH": _exact("%I"),
    "MI": _exact("%M"),
    "SS": _exact("%S"),
    "MS": _approx("%f"),
    "US": _approx("%f"),
    "AM": _exact("%p"),
    "PM": _exact("%p"),
    "IW": _approx("%W"),
    "TZ": _approx(""),
    "FM": _approx(""),
}

# .NET custom format strings are case-sensitive (MM month, mm minute)
MSSQL_FORMAT_TOKENS: Dict[str, FormatToken] = {
    "yyyy": _exact("%Y"),
    "yy": _approx("%Y"),
    "MMMM": _approx("%m"),
    "MMM": _approx("%m"),
    "MM": _exact("%m"),
    "M": _approx("%m"),
    "dddd": _approx("%w"),
    "ddd": _approx("%w"),
    "dd": _exact("%d"),
    "d": _approx("%d"),
    "HH": _exact("%H"),
    "H": _approx("%H"),
    "hh": _exact("%I"),
    "h": _approx("%I"),
    "mm": _exact("%M"),
    "m": _approx("%M"),
    "ss": _exact("%S"),
    "s": _approx("%S"),
    "fff": _approx("%f"),
    "tt": _exact("%p"),
}

# Format strings that describe plain ISO-8601 text, parsed natively by SQLite
ISO_DATE_FORMATS = frozenset({
    "%Y-%m-%d", "%Y-%m-%d %H:%i:%s", "%Y-%m-%d %T",
    "YYYY-MM-DD", "YYYY-MM-DD HH24:MI:SS",
})

_TIME_FORMAT_RE = re.compile(r"%[HhIklisSTrpf]|HH|MI|SS", re.IGNORECASE)


def translate_format(
    fmt: str,
    tokens: Dict[str, FormatToken],
    case_sensitive: bool = False,
    percent_codes: bool = False,
) -> Tuple[str, List[str]]:
    """
    Translate a source format string into a strftime() format.

    Returns the translated format and the source tokens that only have an
    approximate strftime() counterpart.
    """
    ordered = sorted(tokens, key=len, reverse=True)
    output = []
    approximate = []
    index = 0
    while index < len(fmt):
        char = fmt[index]
        if percent_codes:
            if char == "%" and index + 1 < len(fmt):
                code = fmt[index:index + 2]
                token = tokens.get(code)
                if token is None:
                    # MySQL prints unknown %x specifiers as x
                    output.append(code[1])
                    approximate.append(code)
                else:
                    output.append(token.directive)
                    if not token.exact:
                        approximate.append(code)
                index += 2
                continue
            output.append(char)
            index += 1
            continue
        if char == '"':
            end = fmt.find('"', index + 1)
            end = len(fmt) if end < 0 else end
            output.append(fmt[index + 1:end].replace("%", "%%"))
            index = end + 1
            continue
        for name in ordered:
            candidate = fmt[index:index + len(name)]
            if candidate == name or (not case_sensitive and candidate.upper() == name):
                token = tokens[name]
                output.append(token.directive)
                if not token.exact:
                    approximate.append(candidate)
                index += len(name)
                break
        else:
            output.append("%%" if char == "%" else char)
            index += 1
    return "".join(output), approximate


def has_time_component(fmt: str) -> bool:
    return bool(_TIME_FORMAT_RE.search(fmt))


def is_iso_format(fmt: Optional[str]) -> bool:
    return fmt is None or fmt in ISO_DATE_FORMATS or fmt.upper() in ISO_DATE_FORMATS


# Interval units, including the SQL Server DATEADD/DATEDIFF abbreviations
_UNIT_ALIASES: Dict[str, Tuple[str, int]] = {}
for _names, _resolved in (
    (("YEAR", "YEARS", "YY", "YYYY", "Y"), ("years", 1)),
    (("QUARTER", "QUARTERS", "QQ", "Q"), ("months", 3)),
    (("MONTH", "MONTHS", "MM", "M", "MON", "MONS"), ("months", 1)),
    (("WEEK", "WEEKS", "WK", "WW"), ("days", 7)),
    (("DAY", "DAYS", "DD", "D", "DAYOFYEAR", "DY", "WEEKDAY", "DW"), ("days", 1)),
    (("HOUR", "HOURS", "HH"), ("hours", 1)),
    (("MINUTE", "MINUTES", "MI", "N", "MIN", "MINS"), ("minutes", 1)),
    (("SECOND", "SECONDS", "SS", "S", "SEC", "SECS"), ("seconds", 1)),
):
    for _name in _names:
        _UNIT_ALIASES[_name] = _resolved

_NUMBER_RE = re.compile(r"[+-]?\d+(?:\.\d+)?")


def normalize_unit(unit: str) -> Optional[Tuple[str, int]]:
    """Map a source interval unit to (SQLite modifier unit, multiplier)"""
    return _UNIT_ALIASES.get(unit.strip().strip("'").upper())


def literal_number(token: str, masked: MaskedSQL) -> Optional[str]:
    """Numeric text of ``token`` if it is a number or a quoted number"""
    token = token.strip()
    value = masked.string_value(token)
    if value is not None:
        token = value.strip()
    return token if _NUMBER_RE.fullmatch(token) else None


def shift_modifier(amount: str, unit: str, masked: MaskedSQL, negate: bool = False) -> Optional[str]:
    """
    Build the SQLite modifier for shifting a date by ``amount`` ``unit``.

    Literal amounts become a '+N unit' string; expressions are concatenated
    at run time. Returns None for units SQLite cannot shift by.
    """
    resolved = normalize_unit(unit)
    if resolved is None:
        return None
    name, factor = resolved
    number = literal_number(amount, masked)
    if number is not None:
        if "." in number:
            value = float(number) * factor * (-1 if negate else 1)
            text = f"{abs(value):g}"
        else:
            value = int(number) * factor * (-1 if negate else 1)
            text = str(abs(value))
        sign = "-" if value < 0 else "+"
        return masked.string(f"{sign}{text} {name}")
    expression = amount.strip()
    if factor != 1:
        expression = f"({expression}) * {factor}"
    if negate:
        expression = f"-({expression})"
    return f"({expression}) || {masked.string(' ' + name)}"


def shift_date(expr: str, modifier: str, with_time: bool = True) -> str:
    function = "datetime" if with_time else "date"
    return f"{function}({expr}, {modifier})"


def is_time_unit(unit: str) -> bool:
    resolved = normalize_unit(unit)
    return bool(resolved) and resolved[0] in ("hours", "minutes", "seconds")


EXTRACT_DIRECTIVES: Dict[str, str] = {
    "YEAR": "%Y",
    "MONTH": "%m",
    "DAY": "%d",
    "DAYOFMONTH": "%d",
    "HOUR": "%H",
    "MINUTE": "%M",
    "SECOND": "%S",
    "DOW": "%w",
    "DOY": "%j",
    "DAYOFYEAR": "%j",
    "WEEK": "%W",
    "EPOCH": "%s",
}


def extract_field(field: str, expr: str, masked: MaskedSQL) -> Optional[str]:
    """Integer-valued date field of ``expr``, or None for unknown fields"""
    name = field.strip().upper()
    if name == "QUARTER":
        return f"((CAST(strftime({masked.string('%m')}, {expr}) AS INTEGER) + 2) / 3)"
    directive = EXTRACT_DIRECTIVES.get(name)
    if directive is None:
        return None
    return f"CAST(strftime({masked.string(directive)}, {expr}) AS INTEGER)"


def _part(directive: str, expr: str, masked: MaskedSQL) -> str:
    return f"CAST(strftime({masked.string(directive)}, {expr}) AS INTEGER)"


def _epoch_seconds(expr: str, masked: MaskedSQL) -> str:
    return _part("%s", expr, masked)


def _months_between(start: str, end: str, masked: MaskedSQL) -> str:
    years = f"({_part('%Y', end, masked)} - {_part('%Y', start, masked)})"
    return f"({years} * 12 + {_part('%m', end, masked)} - {_part('%m', start, masked)})"


def boundary_diff(unit: str, start: str, end: str, masked: MaskedSQL) -> Optional[str]:
    """
    Number of ``unit`` boundaries crossed between ``start`` and ``end``.

    This is how SQL Server's DATEDIFF counts: DATEDIFF(year, '2023-12-31',
    '2024-01-01') is 1.
    """
    resolved = normalize_unit(unit)
    if resolved is None:
        return None
    name, factor = resolved
    if name == "years":
        return f"({_part('%Y', end, masked)} - {_part('%Y', start, masked)})"
    if name == "months":
        months = _months_between(start, end, masked)
        return months if factor == 1 else None
    if name == "days" and factor == 1:
        return f"CAST(julianday(date({end})) - julianday(date({start})) AS INTEGER)"
    if name == "hours":
        fmt = masked.string("%Y-%m-%d %H:00:00")
        return (
            f"CAST(ROUND((julianday(strftime({fmt}, {end})) - "
            f"julianday(strftime({fmt}, {start}))) * 24) AS INTEGER)"
        )
    if name == "minutes":
        fmt = masked.string("%Y-%m-%d %H:%M:00")
        return (
            f"CAST(ROUND((julianday(strftime({fmt}, {end})) - "
            f"julianday(strftime({fmt}, {start}))) * 1440) AS INTEGER)"
        )
    if name == "seconds":
        return f"({_epoch_seconds(end, masked)} - {_epoch_seconds(start, masked)})"
    return None


_ELAPSED_SECONDS = {"seconds": 1, "minutes": 60, "hours": 3600}


def elapsed_diff(unit: str, start: str, end: str, masked: MaskedSQL) -> Optional[str]:
    """
    Number of complete ``unit`` periods from ``start`` to ``end``.

    This is MySQL's TIMESTAMPDIFF: partial periods are truncated.
    """
    resolved = normalize_unit(unit)
    if resolved is None:
        return None
    name, factor = resolved
    seconds = f"({_epoch_seconds(end, masked)} - {_epoch_seconds(start, masked)})"
    if name in _ELAPSED_SECONDS:
        divisor = _ELAPSED_SECONDS[name]
        return seconds if divisor == 1 else f"({seconds} / {divisor})"
    if name == "days":
        return f"({seconds} / {86400 * factor})"
    if name in ("months", "years"):
        stamp = masked.string("%d %H:%M:%S")
        months = (
            f"({_months_between(start, end, masked)} - "
            f"(CASE WHEN strftime({stamp}, {end}) < strftime({stamp}, {start}) THEN 1 ELSE 0 END))"
        )
        if name == "years":
            return f"({months} / 12)"
        return months if factor == 1 else f"({months} / {factor})"
    return None


def last_day_of_month(expr: str, masked: MaskedSQL, month_offset: int = 0) -> str:
    months = month_offset + 1
    sign = "-" if months < 0 else "+"
    return (
        f"date({expr}, {masked.string('start of month')}, "
        f"{masked.string(f'{sign}{abs(months)} month')}, {masked.string('-1 day')})"
    )


def truncate_date(unit: str, expr: str, masked: MaskedSQL, with_time: bool = True) -> Optional[str]:
    """Truncate ``expr`` to the start of the given unit"""
    name = unit.strip().strip("'").upper()
    function = "datetime" if with_time else "date"
    if name in ("YEAR", "YYYY", "YY", "Y", "YEARS", "SYYYY", "RRRR"):
        return f"{function}({expr}, {masked.string('start of year')})"
    if name in ("MONTH", "MM", "MON", "MONTHS", "RM"):
        return f"{function}({expr}, {masked.string('start of month')})"
    if name in ("WEEK", "IW"):
        return f"{function}({expr}, {masked.string('-6 days')}, {masked.string('weekday 1')})"
    if name in ("DAY", "DD", "DDD", "J", "DAYS"):
        return f"{function}({expr}, {masked.string('start of day')})" if with_time else f"date({expr})"
    if name in ("HOUR", "HH", "HH24", "HH12"):
        return f"strftime({masked.string('%Y-%m-%d %H:00:00')}, {expr})"
    if name in ("MINUTE", "MI"):
        return f"strftime({masked.string('%Y-%m-%d %H:%M:00')}, {expr})"
    return None
