"""
Query rewrite helpers shared by the dialect query rewriters.

Function-level rewrites are built on lexer.rewrite_calls: a dialect module
maps function names to builders that receive the parsed call and return the
replacement text (or None to keep the call). The builders here cover what
several dialects share:

- plain renames from the function mapping registry
- CASE-producing conditionals (IF, IIF, NVL2, DECODE, CHOOSE)
- concatenation, substring search and trimming
- ordered-set aggregates folded into GROUP_CONCAT
- casts onto canonical types, temporal casts onto date()/datetime()/time()
- infix operator rules

Every builder works on masked text; string literals it creates are stashed
through the statement's MaskedSQL.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .date_translator import FormatToken, extract_field, shift_date, translate_format
from .lexer import (
    PLACEHOLDER_CLOSE,
    PLACEHOLDER_OPEN,
    FunctionCall,
    MaskedSQL,
    find_closing,
    find_opening,
    find_top_level,
    rewrite_calls,
    split_top_level,
)
from .mappings.datatypes import CANONICAL_NAMES, TypeMappingTable, normalize_type_name
from .mappings.functions import DialectFunctionRegistry, FunctionCategory
from .models import CanonicalType

CallBuilder = Callable[[FunctionCall], Optional[str]]


def dispatch_calls(text: str, builders: Dict[str, CallBuilder]) -> str:
    """Rewrite calls to every function named in ``builders``"""
    if not builders:
        return text
    table = {name.upper(): build for name, build in builders.items()}
    return rewrite_calls(text, table, lambda call: table[call.name.upper()](call))


def rename_functions(text: str, masked: MaskedSQL, diagnostics, registry: DialectFunctionRegistry,
                     categories: Iterable[FunctionCategory]) -> str:
    """Apply the registry's one-to-one renames for ``categories``"""
    mappings = {
        mapping.source_function.upper(): mapping
        for category in categories
        for mapping in registry.get_mappings(category)
    }
    if not mappings:
        return text

    def build(call: FunctionCall) -> Optional[str]:
        mapping = mappings[call.name.upper()]
        fragment = masked.restore(call.source)
        if not mapping.supported:
            note = f" ({mapping.notes})" if mapping.notes else ""
            diagnostics.warn(
                f"{mapping.source_function}() has no SQLite equivalent; left unchanged{note}", fragment
            )
            return None
        if not mapping.exact:
            diagnostics.warn(
                f"{mapping.source_function}() mapped to {mapping.sqlite_function}(): {mapping.notes}", fragment
            )
        if call.name.upper() == mapping.sqlite_function.upper():
            return None
        return f"{mapping.sqlite_function}({call.args_text})"

    return rewrite_calls(text, mappings, build)


# ========== Conditionals ==========

def case_when(branches: Sequence[Tuple[str, str]], default: Optional[str] = None) -> str:
    parts = ["CASE"]
    for condition, result in branches:
        parts.append(f"WHEN {condition} THEN {result}")
    if default is not None:
        parts.append(f"ELSE {default}")
    parts.append("END")
    return " ".join(parts)


def if_to_case(call: FunctionCall) -> Optional[str]:
    """IF(cond, a, b) / IIF(cond, a, b)"""
    args = call.args
    if len(args) != 3:
        return None
    return case_when([(args[0], args[1])], args[2])


def nvl2_to_case(call: FunctionCall) -> Optional[str]:
    args = call.args
    if len(args) != 3:
        return None
    return case_when([(f"{args[0]} IS NOT NULL", args[1])], args[2])


def decode_to_case(call: FunctionCall) -> Optional[str]:
    """
    DECODE(x, s1, r1, s2, r2, ..., default) as a searched CASE.

    One WHEN per search/result pair; an odd trailing argument is the ELSE.
    DECODE matches NULL against NULL, so a NULL search value becomes IS NULL.
    """
    args = call.args
    if len(args) < 3:
        return None
    subject, pairs = args[0], args[1:]
    default = pairs.pop() if len(pairs) % 2 == 1 else None
    branches = []
    for search, result in zip(pairs[0::2], pairs[1::2]):
        if search.upper() == "NULL":
            branches.append((f"{subject} IS NULL", result))
        else:
            branches.append((f"{subject} = {search}", result))
    return case_when(branches, default)


def choose_to_case(call: FunctionCall) -> Optional[str]:
    args = call.args
    if len(args) < 2:
        return None
    index, values = args[0], args[1:]
    return case_when([(f"{index} = {position}", value) for position, value in enumerate(values, start=1)])


# ========== Strings ==========

_IN_RE = re.compile(r"\bIN\b", re.IGNORECASE)
_FROM_RE = re.compile(r"\bFROM\b", re.IGNORECASE)
_FOR_RE = re.compile(r"\bFOR\b", re.IGNORECASE)
_TRIM_SIDE_RE = re.compile(r"^\s*(LEADING|TRAILING|BOTH)\b", re.IGNORECASE)
_INTEGER_RE = re.compile(r"\d+")

_TRIM_FUNCTIONS = {"LEADING": "LTRIM", "TRAILING": "RTRIM", "BOTH": "TRIM"}


def _wrap(expr: str) -> str:
    expr = expr.strip()
    if _INTEGER_RE.fullmatch(expr) or re.fullmatch(r"[\w.\"$]+", expr):
        return expr
    return f"({expr})"


def concat_expression(args: Sequence[str], masked: MaskedSQL, null_as_empty: bool = False) -> Optional[str]:
    """
    CONCAT(a, b, ...) as ``(a || b || ...)``.

    ``null_as_empty`` wraps each argument in COALESCE for dialects whose
    CONCAT skips NULL arguments instead of returning NULL.
    """
    if not args:
        return None
    if null_as_empty:
        empty = masked.string("")
        parts = [f"COALESCE({arg}, {empty})" for arg in args]
    else:
        parts = list(args)
    return "(" + " || ".join(parts) + ")"


def concat_ws_expression(args: Sequence[str], masked: MaskedSQL) -> Optional[str]:
    """
    CONCAT_WS(sep, a, b, ...) skipping NULL values.

    Each value is prefixed with the separator (NULL when the value is
    NULL), the non-NULL prefixed values are joined and the leading
    separator is cut off.
    """
    if len(args) < 2:
        return None
    separator, values = args[0], args[1:]
    empty = masked.string("")
    joined = " || ".join(f"COALESCE({separator} || {value}, {empty})" for value in values)
    return f"SUBSTR({joined}, LENGTH({separator}) + 1)"


def instr_expression(haystack: str, needle: str, start: Optional[str] = None) -> str:
    """1-based position of ``needle`` in ``haystack``, searching from ``start``"""
    if start is None or start.strip() == "1":
        return f"INSTR({haystack}, {needle})"
    offset = _wrap(start)
    search = f"INSTR(SUBSTR({haystack}, {offset}), {needle})"
    return f"(CASE WHEN {search} > 0 THEN {search} + {offset} - 1 ELSE 0 END)"


def position_call(call: FunctionCall) -> Optional[str]:
    """POSITION(needle IN haystack)"""
    separators = find_top_level(call.args_text, _IN_RE)
    if len(separators) != 1:
        return None
    needle = call.args_text[:separators[0].start()].strip()
    haystack = call.args_text[separators[0].end():].strip()
    return instr_expression(haystack, needle)


def locate_call(call: FunctionCall) -> Optional[str]:
    """LOCATE(needle, haystack[, start]) / CHARINDEX(needle, haystack[, start])"""
    args = call.args
    if len(args) not in (2, 3):
        return None
    return instr_expression(args[1], args[0], args[2] if len(args) == 3 else None)


def substring_call(call: FunctionCall) -> Optional[str]:
    """SUBSTRING(s FROM p [FOR n]) / SUBSTRING(s FOR n)"""
    text = call.args_text
    from_match = find_top_level(text, _FROM_RE)
    for_match = find_top_level(text, _FOR_RE)
    if not from_match and not for_match:
        return None
    end = min(m.start() for m in from_match + for_match)
    source = text[:end].strip()
    start = "1"
    length = None
    if from_match:
        stop = for_match[0].start() if for_match and for_match[0].start() > from_match[0].end() else len(text)
        start = text[from_match[0].end():stop].strip()
    if for_match:
        stop = from_match[0].start() if from_match and from_match[0].start() > for_match[0].end() else len(text)
        length = text[for_match[0].end():stop].strip()
    if length is None:
        return f"SUBSTR({source}, {start})"
    return f"SUBSTR({source}, {start}, {length})"


def left_call(call: FunctionCall) -> Optional[str]:
    args = call.args
    if len(args) != 2:
        return None
    return f"SUBSTR({args[0]}, 1, {args[1]})"


def right_call(call: FunctionCall) -> Optional[str]:
    args = call.args
    if len(args) != 2:
        return None
    count = args[1].strip()
    offset = f"-{count}" if _INTEGER_RE.fullmatch(count) else f"-({count})"
    return f"SUBSTR({args[0]}, {offset})"


def trim_call(call: FunctionCall) -> Optional[str]:
    """TRIM([LEADING|TRAILING|BOTH] [chars] FROM s)"""
    text = call.args_text
    separators = find_top_level(text, _FROM_RE)
    if not separators:
        return None
    head = text[:separators[0].start()]
    source = text[separators[0].end():].strip()
    function = "TRIM"
    side = _TRIM_SIDE_RE.match(head)
    if side:
        function = _TRIM_FUNCTIONS[side.group(1).upper()]
        head = head[side.end():]
    characters = head.strip()
    if characters:
        return f"{function}({source}, {characters})"
    return f"{function}({source})"


def len_call(call: FunctionCall) -> Optional[str]:
    """SQL Server LEN ignores trailing spaces"""
    args = call.args
    if len(args) != 1:
        return None
    return f"LENGTH(RTRIM({args[0]}))"


# ========== Aggregates ==========

_ORDER_BY_RE = re.compile(r"\bORDER\s+BY\b", re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"\bSEPARATOR\b", re.IGNORECASE)
_DISTINCT_RE = re.compile(r"^\s*DISTINCT\b\s*", re.IGNORECASE)
_WITHIN_GROUP_RE = re.compile(r"\)\s*WITHIN\s+GROUP\s*\(", re.IGNORECASE)

_UNORDERED_MESSAGE = "{} dropped; SQLite does not guarantee GROUP_CONCAT order"


def drop_within_group(text: str, masked: MaskedSQL, diagnostics) -> str:
    """Remove ``WITHIN GROUP (ORDER BY ...)`` following an aggregate call"""
    while True:
        match = _WITHIN_GROUP_RE.search(text)
        if not match:
            return text
        open_index = match.end() - 1
        close_index = find_closing(text, open_index)
        if close_index < 0:
            return text
        diagnostics.warn(
            _UNORDERED_MESSAGE.format("WITHIN GROUP (ORDER BY ...)"),
            masked.restore(text[match.start() + 1:close_index + 1]),
        )
        text = text[:match.start() + 1] + text[close_index + 1:]


def _strip_order_by(args_text: str, diagnostics, fragment: str) -> str:
    matches = find_top_level(args_text, _ORDER_BY_RE)
    if not matches:
        return args_text
    diagnostics.warn(_UNORDERED_MESSAGE.format("ORDER BY inside an aggregate"), fragment)
    return args_text[:matches[0].start()].rstrip()


def _split_distinct(expr: str) -> Tuple[bool, str]:
    match = _DISTINCT_RE.match(expr)
    if match:
        return True, expr[match.end():].strip()
    return False, expr.strip()


def group_concat(expr: str, separator: Optional[str], masked: MaskedSQL, diagnostics, fragment: str,
                 distinct: bool = False) -> str:
    if distinct:
        if separator is not None and masked.string_value(separator) != ",":
            diagnostics.warn(
                "GROUP_CONCAT(DISTINCT ...) only takes the default ',' separator in SQLite; separator dropped",
                fragment,
            )
        return f"GROUP_CONCAT(DISTINCT {expr})"
    if separator is None:
        return f"GROUP_CONCAT({expr})"
    return f"GROUP_CONCAT({expr}, {separator})"


def mysql_group_concat(call: FunctionCall, masked: MaskedSQL, diagnostics) -> Optional[str]:
    """GROUP_CONCAT([DISTINCT] a[, b ...] [ORDER BY ...] [SEPARATOR s])"""
    text = call.args_text
    separator_match = find_top_level(text, _SEPARATOR_RE)
    has_order = bool(find_top_level(text, _ORDER_BY_RE))
    # A single plain argument is already valid SQLite; a second one would be
    # read as the separator there
    if not separator_match and not has_order and len(split_top_level(text)) == 1:
        return None
    fragment = masked.restore(call.source)
    separator = None
    if separator_match:
        separator = text[separator_match[0].end():].strip()
        text = text[:separator_match[0].start()]
    text = _strip_order_by(text, diagnostics, fragment)
    distinct, text = _split_distinct(text)
    values = [value.strip() for value in split_top_level(text)]
    expr = values[0] if len(values) == 1 else " || ".join(values)
    return group_concat(expr, separator, masked, diagnostics, fragment, distinct)


def string_agg_call(call: FunctionCall, masked: MaskedSQL, diagnostics) -> Optional[str]:
    """STRING_AGG([DISTINCT] expr, sep [ORDER BY ...])"""
    fragment = masked.restore(call.source)
    args = [arg.strip() for arg in split_top_level(_strip_order_by(call.args_text, diagnostics, fragment))]
    if len(args) != 2:
        return None
    distinct, expr = _split_distinct(args[0])
    return group_concat(expr, args[1], masked, diagnostics, fragment, distinct)


def listagg_call(call: FunctionCall, masked: MaskedSQL, diagnostics) -> Optional[str]:
    """LISTAGG([DISTINCT] expr[, sep]); Oracle's default separator is empty"""
    fragment = masked.restore(call.source)
    args = [arg.strip() for arg in split_top_level(call.args_text)]
    if len(args) not in (1, 2):
        return None
    distinct, expr = _split_distinct(args[0])
    separator = args[1] if len(args) == 2 else masked.string("")
    return group_concat(expr, separator, masked, diagnostics, fragment, distinct)


def array_agg_call(call: FunctionCall, masked: MaskedSQL, diagnostics) -> Optional[str]:
    fragment = masked.restore(call.source)
    text = _strip_order_by(call.args_text, diagnostics, fragment)
    distinct, expr = _split_distinct(text)
    diagnostics.warn("ARRAY_AGG produces a comma-separated TEXT value in SQLite, not an array", fragment)
    return f"GROUP_CONCAT(DISTINCT {expr})" if distinct else f"GROUP_CONCAT({expr})"


def bool_aggregate_call(call: FunctionCall, masked: MaskedSQL, diagnostics) -> Optional[str]:
    """BOOL_AND/EVERY -> MIN, BOOL_OR -> MAX over 0/1 values"""
    target = "MAX" if call.name.upper() == "BOOL_OR" else "MIN"
    diagnostics.warn(
        f"{call.name.upper()}() mapped to {target}(); assumes booleans stored as 0/1",
        masked.restore(call.source),
    )
    return f"{target}({call.args_text})"


# ========== Casts ==========

DEFAULT_TEMPORAL_CASTS: Dict[str, str] = {
    "DATE": "date",
    "TIME": "time",
    "TIMETZ": "time",
    "TIME WITH TIME ZONE": "time",
    "TIME WITHOUT TIME ZONE": "time",
    "TIMESTAMP": "datetime",
    "TIMESTAMPTZ": "datetime",
    "TIMESTAMP WITH TIME ZONE": "datetime",
    "TIMESTAMP WITHOUT TIME ZONE": "datetime",
    "TIMESTAMP WITH LOCAL TIME ZONE": "datetime",
    "DATETIME": "datetime",
    "DATETIME2": "datetime",
    "SMALLDATETIME": "datetime",
    "DATETIMEOFFSET": "datetime",
}

_AS_RE = re.compile(r"\bAS\b", re.IGNORECASE)


@dataclass(frozen=True)
class CastRules:
    """How one dialect's cast target types map onto SQLite"""

    type_table: TypeMappingTable
    temporal: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_TEMPORAL_CASTS))
    extra_types: Dict[str, CanonicalType] = field(default_factory=dict)

    def resolve(self, type_text: str) -> Optional[Tuple[str, str]]:
        """
        Resolve a cast target.

        Returns ("function", name) for temporal targets, ("cast", type) for
        everything with a canonical type, or None for unknown types.
        """
        name = normalize_type_name(type_text)
        if name in self.temporal:
            return "function", self.temporal[name]
        if name in CANONICAL_NAMES:
            return "cast", name
        if name in self.extra_types:
            return "cast", self.extra_types[name].value
        canonical = self.type_table.resolve(type_text)
        if canonical is None:
            return None
        return "cast", canonical.value


def cast_expression(expr: str, type_text: str, rules: CastRules, diagnostics, fragment: str) -> str:
    expr = expr.strip()
    type_text = " ".join(type_text.split())
    target = rules.resolve(type_text)
    if target is None:
        diagnostics.warn(f"Cast to unknown type {type_text} kept as written", fragment)
        return f"CAST({expr} AS {type_text})"
    kind, name = target
    if kind == "function":
        return f"{name}({expr})"
    return f"CAST({expr} AS {name})"


def split_cast_arguments(args_text: str) -> Optional[Tuple[str, str]]:
    """``expr AS type`` split at the last top-level AS"""
    matches = find_top_level(args_text, _AS_RE)
    if not matches:
        return None
    last = matches[-1]
    expr = args_text[:last.start()].strip()
    type_text = args_text[last.end():].strip()
    if not expr or not type_text:
        return None
    return expr, type_text


def cast_call(call: FunctionCall, rules: CastRules, masked: MaskedSQL, diagnostics) -> Optional[str]:
    """CAST(expr AS type) / TRY_CAST(expr AS type)"""
    parts = split_cast_arguments(call.args_text)
    if parts is None:
        return None
    fragment = masked.restore(call.source)
    if call.name.upper() == "TRY_CAST":
        diagnostics.info("TRY_CAST mapped to CAST; SQLite casts never raise", fragment)
    return cast_expression(parts[0], parts[1], rules, diagnostics, fragment)


_OPERAND_CHARS = re.compile(r"[\w.$#:]")


def operand_start(text: str, end: int) -> int:
    """Start of the operand ending at ``end`` (exclusive), scanning backwards"""
    index = end
    while index > 0 and text[index - 1].isspace():
        index -= 1
    while index > 0:
        char = text[index - 1]
        if char == ")":
            opening = find_opening(text, index - 1)
            if opening < 0:
                return index
            index = opening
        elif char == PLACEHOLDER_CLOSE:
            opening = text.rfind(PLACEHOLDER_OPEN, 0, index)
            if opening < 0:
                return index
            index = opening
        elif char == '"':
            opening = text.rfind('"', 0, index - 1)
            if opening < 0:
                return index
            index = opening
        elif _OPERAND_CHARS.match(char):
            index -= 1
        else:
            break
        # Stop at word boundaries unless the operand continues with a dot or call name
        if index > 0 and not (_OPERAND_CHARS.match(text[index - 1]) or text[index - 1] in '")'):
            break
    return index


_PG_TYPE_WORD_RE = re.compile(r'\s*("(?:[^"]|"")+"|[A-Za-z_][\w]*)(?:\s*\([^()]*\))?')
_ARRAY_SUFFIX_RE = re.compile(r"(?:\s*\[\s*\d*\s*\])+")


def pg_cast_operators(text: str, rules: CastRules, masked: MaskedSQL, diagnostics) -> str:
    """Rewrite PostgreSQL ``expr::type`` casts into CAST()/date functions"""
    while True:
        position = text.find("::")
        if position < 0:
            return text
        start = operand_start(text, position)
        operand = text[start:position].strip()
        type_start = position + 2
        while type_start < len(text) and text[type_start].isspace():
            type_start += 1
        type_match = rules.type_table.match_at(text, type_start)
        if type_match is not None:
            type_end = type_match.end
            type_text = type_match.text
        else:
            word = _PG_TYPE_WORD_RE.match(text, type_start)
            type_end = word.end() if word else type_start
            type_text = text[type_start:type_end]
        array = _ARRAY_SUFFIX_RE.match(text, type_end)
        fragment = masked.restore(text[start:array.end() if array else type_end])
        if not operand or not type_text.strip():
            diagnostics.warn("Unrecognized :: cast dropped", fragment)
            text = text[:position] + text[type_end:]
            continue
        if array:
            type_end = array.end()
            diagnostics.warn("Array casts are not supported by SQLite; cast to TEXT", fragment)
            replacement = f"CAST({operand} AS TEXT)"
        else:
            replacement = cast_expression(operand, type_text, rules, diagnostics, fragment)
        text = text[:start] + replacement + text[type_end:]


# ========== Operators ==========

@dataclass(frozen=True)
class OperatorRule:
    """
    Infix operator rewrite.

    ``target`` None flags the operator as unsupported and leaves it in
    place. ``exact`` False reports the rewrite as a warning.
    """

    symbol: str
    pattern: "re.Pattern"
    target: Optional[str]
    message: Optional[str] = None
    exact: bool = True


def operator_rule(symbol: str, pattern: str, target: Optional[str], message: Optional[str] = None,
                  exact: bool = True) -> OperatorRule:
    return OperatorRule(symbol, re.compile(pattern, re.IGNORECASE), target, message, exact)


def apply_operator_rules(text: str, masked: MaskedSQL, diagnostics, rules: Sequence[OperatorRule]) -> str:
    for rule in rules:
        def replace(match, rule=rule):
            fragment = masked.restore(match.group(0))
            if rule.target is None:
                diagnostics.warn(rule.message or f"Operator {rule.symbol} has no SQLite equivalent; left unchanged",
                                 fragment)
                return match.group(0)
            if rule.message:
                if rule.exact:
                    diagnostics.info(rule.message, fragment)
                else:
                    diagnostics.warn(rule.message, fragment)
            return rule.target

        text = rule.pattern.sub(replace, text)
    return text


def operator_map(rules: Sequence[OperatorRule]) -> Dict[str, str]:
    """Source operator -> SQLite operator for the supported rules"""
    return {
        " ".join(rule.symbol.upper().split()): rule.target.strip()
        for rule in rules
        if rule.target is not None
    }


def mod_call(call: FunctionCall) -> Optional[str]:
    args = call.args
    if len(args) != 2:
        return None
    return f"({args[0]} % {args[1]})"


# ========== Date/time ==========

_EXTRACT_RE = re.compile(r"^\s*(\w+)\s+FROM\s+(.+)$", re.IGNORECASE | re.DOTALL)


def current_value(value: str) -> CallBuilder:
    """Builder replacing a no-argument call such as NOW() with ``value``"""

    def build(call: FunctionCall) -> Optional[str]:
        if call.args_text.strip():
            return None
        return value

    return build


def extract_call(call: FunctionCall, masked: MaskedSQL, diagnostics) -> Optional[str]:
    """EXTRACT(field FROM expr)"""
    match = _EXTRACT_RE.match(call.args_text)
    if not match:
        return None
    result = extract_field(match.group(1), match.group(2).strip(), masked)
    if result is None:
        diagnostics.warn(f"EXTRACT field {match.group(1).upper()} has no SQLite equivalent; left unchanged",
                         masked.restore(call.source))
    return result


def strftime_call(expr: str, fmt_token: str, masked: MaskedSQL, diagnostics, fragment: str,
                  tokens: Dict[str, FormatToken], case_sensitive: bool = False,
                  percent_codes: bool = False) -> Optional[str]:
    """strftime() equivalent of a dialect date-formatting call with a literal format"""
    fmt = masked.string_value(fmt_token)
    if fmt is None:
        diagnostics.warn("Date format is not a string literal; call left unchanged", fragment)
        return None
    translated, approximate = translate_format(fmt, tokens, case_sensitive, percent_codes)
    if approximate:
        diagnostics.warn(
            f"Date format element(s) {', '.join(approximate)} only approximated by strftime()", fragment
        )
    return f"strftime({masked.string(translated)}, {expr})"


# Parses the interval following ``+/- INTERVAL``: (end, modifiers, with_time) or None
IntervalParser = Callable[[str, int, bool], Optional[Tuple[int, List[str], bool]]]

_INFIX_INTERVAL_RE = re.compile(r"([+-])\s*INTERVAL\b\s*", re.IGNORECASE)


def shift_infix_intervals(text: str, masked: MaskedSQL, diagnostics, parse: IntervalParser) -> str:
    """``expr +/- INTERVAL ...`` as date(expr, modifier...) / datetime(expr, modifier...)"""
    search_from = 0
    while True:
        match = _INFIX_INTERVAL_RE.search(text, search_from)
        if not match:
            return text
        start = operand_start(text, match.start())
        operand = text[start:match.start()].strip()
        parsed = parse(text, match.end(), match.group(1) == "-")
        if not operand or parsed is None:
            diagnostics.warn("INTERVAL arithmetic has no SQLite equivalent; left unchanged",
                             masked.restore(text[start:match.end()]).strip())
            search_from = match.end()
            continue
        end, modifiers, with_time = parsed
        replacement = shift_date(operand, ", ".join(modifiers), with_time)
        text = text[:start] + replacement + text[end:]
        search_from = start
