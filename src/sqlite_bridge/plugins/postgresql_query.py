"""
PostgreSQL query rewriter.

Covers the PostgreSQL-only syntax of everyday queries: ``::`` casts,
ILIKE and the ``~~`` operator family, IS [NOT] DISTINCT FROM, interval
arithmetic, TO_CHAR/DATE_TRUNC style date functions, STRING_AGG and
ARRAY_AGG, and OFFSET ... FETCH pagination.
"""

import re
from functools import partial
from typing import List, Optional, Tuple

from ..sql_translator import date_translator as dates
from ..sql_translator import query_passes as qp
from ..sql_translator.ddl import PH
from ..sql_translator.identifier_normalizer import strip_schema_prefix_pass
from ..sql_translator.lexer import FunctionCall, masked_pass
from ..sql_translator.mappings.functions import FunctionCategory, get_function_registry
from ..sql_translator.models import RewritePass
from ..sql_translator.pagination import pagination_pass
from ..sql_translator.pipeline import QueryRewriter

ILIKE_MESSAGE = "ILIKE mapped to LIKE; SQLite LIKE is case-insensitive for ASCII characters only"

OPERATOR_RULES = (
    qp.operator_rule("NOT ILIKE", r"\bNOT\s+ILIKE\b", "NOT LIKE", ILIKE_MESSAGE),
    qp.operator_rule("!~~*", r"\s*!~~\*\s*", " NOT LIKE ", ILIKE_MESSAGE),
    qp.operator_rule("!~~", r"\s*!~~\s*", " NOT LIKE "),
    qp.operator_rule("ILIKE", r"\bILIKE\b", "LIKE", ILIKE_MESSAGE),
    qp.operator_rule("~~*", r"\s*~~\*\s*", " LIKE ", ILIKE_MESSAGE),
    qp.operator_rule("~~", r"\s*~~\s*", " LIKE "),
    qp.operator_rule("IS NOT DISTINCT FROM", r"\bIS\s+NOT\s+DISTINCT\s+FROM\b", "IS"),
    qp.operator_rule("IS DISTINCT FROM", r"\bIS\s+DISTINCT\s+FROM\b", "IS NOT"),
    qp.operator_rule("~", r"(?:!~\*?|~\*?)(?=\s*" + PH + r")", None,
                     "POSIX regular expression operators have no SQLite equivalent; left unchanged"),
    qp.operator_rule("SIMILAR TO", r"\b(?:NOT\s+)?SIMILAR\s+TO\b", None,
                     "SIMILAR TO has no SQLite equivalent; left unchanged"),
)

_PH_RE = re.compile(r"\s*(" + PH + r")")
_INTERVAL_FIELD_RE = re.compile(r"\s+(YEAR|MONTH|DAY|HOUR|MINUTE|SECOND)S?\b", re.IGNORECASE)
_INTERVAL_PART_RE = re.compile(r"([+-]?\d+(?:\.\d+)?)\s*([A-Za-z]+)")
_DIRECTIVE_RE = re.compile(r"%[^%]")


def _interval_modifiers(value: str, masked, negate: bool) -> Optional[List[str]]:
    """Modifiers for an interval literal such as '1 day' or '2 hours 30 minutes'"""
    parts = _INTERVAL_PART_RE.findall(value)
    if not parts or _INTERVAL_PART_RE.sub("", value).strip():
        return None
    modifiers = []
    for amount, unit in parts:
        modifier = dates.shift_modifier(amount, unit, masked, negate=negate)
        if modifier is None:
            return None
        modifiers.append(modifier)
    return modifiers


def _parse_interval(masked):
    def parse(text: str, pos: int, negate: bool) -> Optional[Tuple[int, List[str], bool]]:
        match = _PH_RE.match(text, pos)
        if not match:
            return None
        value = masked.string_value(match.group(1))
        if value is None:
            return None
        # INTERVAL '3' DAY
        field = _INTERVAL_FIELD_RE.match(text, match.end())
        if field:
            modifier = dates.shift_modifier(value, field.group(1), masked, negate=negate)
            return (field.end(), [modifier], True) if modifier is not None else None
        modifiers = _interval_modifiers(value, masked, negate)
        if modifiers is None:
            return None
        return match.end(), modifiers, True

    return parse


@masked_pass
def datetime_functions_pass(text, masked, diagnostics):
    def to_char(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 2:
            return None
        fragment = masked.restore(call.source)
        fmt = masked.string_value(args[1])
        if fmt is not None:
            translated, _ = dates.translate_format(fmt, dates.POSTGRESQL_FORMAT_TOKENS)
            if not _DIRECTIVE_RE.search(translated):
                diagnostics.warn("TO_CHAR with a numeric format has no SQLite equivalent; left unchanged", fragment)
                return None
        return qp.strftime_call(args[0], args[1], masked, diagnostics, fragment, dates.POSTGRESQL_FORMAT_TOKENS)

    def to_date(call: FunctionCall) -> Optional[str]:
        args = call.args
        name = call.name.upper()
        if name == "TO_TIMESTAMP" and len(args) == 1:
            return f"datetime({args[0]}, {masked.string('unixepoch')})"
        if len(args) != 2:
            return None
        fmt = masked.string_value(args[1])
        if fmt is None or not dates.is_iso_format(fmt):
            diagnostics.warn(f"{name} with a non-ISO format cannot be parsed by SQLite; left unchanged",
                             masked.restore(call.source))
            return None
        function = "datetime" if name == "TO_TIMESTAMP" or dates.has_time_component(fmt) else "date"
        return f"{function}({args[0]})"

    def date_part(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 2:
            return None
        field = masked.string_value(args[0])
        result = dates.extract_field(field, args[1], masked) if field is not None else None
        if result is None:
            diagnostics.warn("DATE_PART field has no SQLite equivalent; left unchanged", masked.restore(call.source))
        return result

    def date_trunc(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 2:
            return None
        unit = masked.string_value(args[0])
        result = dates.truncate_date(unit, args[1], masked) if unit is not None else None
        if result is None:
            diagnostics.warn("DATE_TRUNC unit has no SQLite equivalent; left unchanged", masked.restore(call.source))
        return result

    builders = {
        "NOW": qp.current_value("CURRENT_TIMESTAMP"),
        "TRANSACTION_TIMESTAMP": qp.current_value("CURRENT_TIMESTAMP"),
        "STATEMENT_TIMESTAMP": qp.current_value("CURRENT_TIMESTAMP"),
        "CLOCK_TIMESTAMP": qp.current_value("CURRENT_TIMESTAMP"),
        "TO_CHAR": to_char,
        "TO_DATE": to_date,
        "TO_TIMESTAMP": to_date,
        "EXTRACT": lambda call: qp.extract_call(call, masked, diagnostics),
        "DATE_PART": date_part,
        "DATE_TRUNC": date_trunc,
    }
    text = qp.dispatch_calls(text, builders)
    text = qp.shift_infix_intervals(text, masked, diagnostics, _parse_interval(masked))
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("postgresql"),
                               [FunctionCategory.DATETIME])


@masked_pass
def string_functions_pass(text, masked, diagnostics):
    builders = {
        "CONCAT": lambda call: qp.concat_expression(call.args, masked, null_as_empty=True),
        "CONCAT_WS": lambda call: qp.concat_ws_expression(call.args, masked),
        "POSITION": qp.position_call,
        "SUBSTRING": qp.substring_call,
        "LEFT": qp.left_call,
        "RIGHT": qp.right_call,
        "TRIM": qp.trim_call,
    }
    text = qp.dispatch_calls(text, builders)
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("postgresql"),
                               [FunctionCategory.STRING, FunctionCategory.MATH])


@masked_pass
def conditional_functions_pass(text, masked, diagnostics):
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("postgresql"),
                               [FunctionCategory.CONDITIONAL])


@masked_pass
def aggregate_functions_pass(text, masked, diagnostics):
    builders = {
        "STRING_AGG": lambda call: qp.string_agg_call(call, masked, diagnostics),
        "ARRAY_AGG": lambda call: qp.array_agg_call(call, masked, diagnostics),
        "BOOL_AND": lambda call: qp.bool_aggregate_call(call, masked, diagnostics),
        "BOOL_OR": lambda call: qp.bool_aggregate_call(call, masked, diagnostics),
        "EVERY": lambda call: qp.bool_aggregate_call(call, masked, diagnostics),
    }
    text = qp.dispatch_calls(text, builders)
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("postgresql"),
                               [FunctionCategory.AGGREGATE])


@masked_pass
def type_casts_pass(text, masked, diagnostics, *, rules: qp.CastRules):
    text = qp.dispatch_calls(text, {"CAST": lambda call: qp.cast_call(call, rules, masked, diagnostics)})
    return qp.pg_cast_operators(text, rules, masked, diagnostics)


@masked_pass
def operators_pass(text, masked, diagnostics):
    return qp.apply_operator_rules(text, masked, diagnostics, OPERATOR_RULES)


class PostgreSQLQueryRewriter(QueryRewriter):
    dialect = "postgresql"
    operator_rules = OPERATOR_RULES
    rewrite_markers = (
        r"::",
        r"\bI?LIKE\b",
        r"~",
        r"\bDISTINCT\s+FROM\b",
        r"\bSIMILAR\s+TO\b",
        r"\bINTERVAL\b",
        r"\bOFFSET\b",
        r"\bFETCH\b",
        r"\bLIMIT\s+ALL\b",
        r"\bFOR\s+(?:NO\s+KEY\s+)?(?:KEY\s+)?(?:UPDATE|SHARE)\b",
        r"\b(?:NOW|TRANSACTION_TIMESTAMP|STATEMENT_TIMESTAMP|CLOCK_TIMESTAMP|TO_CHAR|TO_DATE|TO_TIMESTAMP|"
        r"EXTRACT|DATE_PART|DATE_TRUNC|AGE|CONCAT\w*|POSITION|SUBSTRING|STRPOS|BTRIM|LEFT|RIGHT|TRIM|"
        r"CHAR_LENGTH|CHARACTER_LENGTH|GREATEST|LEAST|STRING_AGG|ARRAY_AGG|BOOL_AND|BOOL_OR|EVERY|CAST|"
        r"LPAD|RPAD|REGEXP_\w+|SPLIT_PART|INITCAP|MD5|TRANSLATE|REPEAT|REVERSE|UNNEST|GENERATE_SERIES)\s*\(",
        r"\b\w+\s*\.\s*\w+\s*\.",
    )

    def build_passes(self):
        rules = qp.CastRules(type_table=self.type_map)
        return (
            # PostgreSQL already quotes with double quotes
            RewritePass("datetime_functions", datetime_functions_pass, feature="functions"),
            RewritePass("string_functions", string_functions_pass, feature="functions"),
            RewritePass("conditional_functions", conditional_functions_pass, feature="functions"),
            RewritePass("aggregate_functions", aggregate_functions_pass, feature="functions"),
            RewritePass("type_casts", partial(type_casts_pass, rules=rules), feature="functions"),
            RewritePass("operators", operators_pass, feature="operators"),
            RewritePass("pagination", partial(pagination_pass, offset_first=True, fetch=True)),
            RewritePass("strip_schema_prefix", strip_schema_prefix_pass),
        )
