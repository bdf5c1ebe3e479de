"""
MySQL / MariaDB query rewriter.
"""

import re
from functools import partial
from typing import List, Optional, Tuple

from ..sql_translator import date_translator as dates
from ..sql_translator import query_passes as qp
from ..sql_translator.ddl import PH
from ..sql_translator.identifier_normalizer import quote_identifiers_pass, strip_schema_prefix_pass
from ..sql_translator.lexer import IDENT, FunctionCall, masked_pass
from ..sql_translator.mappings.functions import FunctionCategory, get_function_registry
from ..sql_translator.models import CanonicalType, RewritePass
from ..sql_translator.pagination import pagination_pass
from ..sql_translator.pipeline import QueryRewriter

_INTERVAL_ARG_RE = re.compile(r"^\s*INTERVAL\s+(.+?)\s+(\w+)\s*$", re.IGNORECASE | re.DOTALL)
_INFIX_AMOUNT_RE = re.compile(
    r"(\([^()]*\)|" + PH + r"|[-+]?\d+(?:\.\d+)?|\?|:\w+|@\w+|[\w.]+)\s+(\w+)\b", re.IGNORECASE
)

OPERATOR_RULES = (
    qp.operator_rule("<=>", r"\s*<=>\s*", " IS ", "NULL-safe equality <=> mapped to IS"),
    qp.operator_rule("DIV", r"\s+DIV\s+", " / ", "Integer division DIV mapped to / (integer operands only)"),
    qp.operator_rule("MOD", r"\s+MOD\s+", " % "),
    qp.operator_rule("NOT RLIKE", r"\bNOT\s+(?:RLIKE|REGEXP)\b", "NOT REGEXP",
                     "REGEXP needs a user-defined regexp() function in SQLite", exact=False),
    qp.operator_rule("RLIKE", r"(?<!NOT )\b(?:RLIKE|REGEXP)\b", "REGEXP",
                     "REGEXP needs a user-defined regexp() function in SQLite", exact=False),
    qp.operator_rule("&&", r"\s*&&\s*", " AND "),
    qp.operator_rule("XOR", r"\bXOR\b", None, "Logical XOR has no SQLite equivalent; left unchanged"),
    qp.operator_rule("MATCH AGAINST", r"\bMATCH\s*\([^()]*\)\s*AGAINST\b", None,
                     "Full-text MATCH ... AGAINST has no SQLite equivalent (use an FTS5 table); left unchanged"),
)

# DAYOFWEEK is 1 (Sunday) .. 7, WEEKDAY is 0 (Monday) .. 6
_DAY_NUMBERING = {
    "DAYOFWEEK": "(CAST(strftime({fmt}, {expr}) AS INTEGER) + 1)",
    "WEEKDAY": "((CAST(strftime({fmt}, {expr}) AS INTEGER) + 6) % 7)",
}


def _date_shift(expr: str, amount: str, unit: str, masked, diagnostics, fragment: str,
                negate: bool = False) -> Optional[str]:
    modifier = dates.shift_modifier(amount, unit, masked, negate=negate)
    if modifier is None:
        diagnostics.warn(f"Interval unit {unit.upper()} has no SQLite date modifier; left unchanged", fragment)
        return None
    return dates.shift_date(expr, modifier, with_time=dates.is_time_unit(unit))


def _parse_infix_interval(masked):
    def parse(text: str, pos: int, negate: bool) -> Optional[Tuple[int, List[str], bool]]:
        match = _INFIX_AMOUNT_RE.match(text, pos)
        if not match:
            return None
        modifier = dates.shift_modifier(match.group(1), match.group(2), masked, negate=negate)
        if modifier is None:
            return None
        return match.end(), [modifier], dates.is_time_unit(match.group(2))

    return parse


@masked_pass
def datetime_functions_pass(text, masked, diagnostics):
    def add_interval(call: FunctionCall, negate: bool = False) -> Optional[str]:
        args = call.args
        if len(args) != 2:
            return None
        fragment = masked.restore(call.source)
        interval = _INTERVAL_ARG_RE.match(args[1])
        if interval:
            return _date_shift(args[0], interval.group(1), interval.group(2), masked, diagnostics, fragment, negate)
        # ADDDATE(d, n) / SUBDATE(d, n) shift by days
        return _date_shift(args[0], args[1], "DAY", masked, diagnostics, fragment, negate)

    def timestampadd(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 3:
            return None
        return _date_shift(args[2], args[1], args[0], masked, diagnostics, masked.restore(call.source))

    def date_format(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 2:
            return None
        return qp.strftime_call(args[0], args[1], masked, diagnostics, masked.restore(call.source),
                                dates.MYSQL_FORMAT_TOKENS, case_sensitive=True, percent_codes=True)

    def str_to_date(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 2:
            return None
        fmt = masked.string_value(args[1])
        if fmt is None or not dates.is_iso_format(fmt):
            diagnostics.warn("STR_TO_DATE with a non-ISO format cannot be parsed by SQLite; left unchanged",
                             masked.restore(call.source))
            return None
        function = "datetime" if dates.has_time_component(fmt) else "date"
        return f"{function}({args[0]})"

    def datediff(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 2:
            return None
        return dates.boundary_diff("DAY", args[1], args[0], masked)

    def timestampdiff(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 3:
            return None
        result = dates.elapsed_diff(args[0], args[1], args[2], masked)
        if result is None:
            diagnostics.warn(f"TIMESTAMPDIFF unit {args[0].upper()} is not supported; left unchanged",
                             masked.restore(call.source))
        return result

    def field(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 1:
            return None
        name = call.name.upper()
        if name in _DAY_NUMBERING:
            return _DAY_NUMBERING[name].format(fmt=masked.string("%w"), expr=args[0])
        return dates.extract_field(name, args[0], masked)

    def last_day(call: FunctionCall) -> Optional[str]:
        args = call.args
        return dates.last_day_of_month(args[0], masked) if len(args) == 1 else None

    def unix_timestamp(call: FunctionCall) -> Optional[str]:
        args = call.args
        source = args[0] if args else masked.string("now")
        return f"CAST(strftime({masked.string('%s')}, {source}) AS INTEGER)"

    def from_unixtime(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) == 1:
            return f"datetime({args[0]}, {masked.string('unixepoch')})"
        if len(args) == 2:
            return qp.strftime_call(f"{args[0]}, {masked.string('unixepoch')}", args[1], masked, diagnostics,
                                    masked.restore(call.source), dates.MYSQL_FORMAT_TOKENS,
                                    case_sensitive=True, percent_codes=True)
        return None

    builders = {
        "NOW": qp.current_value("CURRENT_TIMESTAMP"),
        "CURRENT_TIMESTAMP": qp.current_value("CURRENT_TIMESTAMP"),
        "LOCALTIME": qp.current_value("CURRENT_TIMESTAMP"),
        "LOCALTIMESTAMP": qp.current_value("CURRENT_TIMESTAMP"),
        "SYSDATE": qp.current_value("CURRENT_TIMESTAMP"),
        "UTC_TIMESTAMP": qp.current_value("CURRENT_TIMESTAMP"),
        "CURDATE": qp.current_value("CURRENT_DATE"),
        "CURRENT_DATE": qp.current_value("CURRENT_DATE"),
        "UTC_DATE": qp.current_value("CURRENT_DATE"),
        "CURTIME": qp.current_value("CURRENT_TIME"),
        "CURRENT_TIME": qp.current_value("CURRENT_TIME"),
        "UTC_TIME": qp.current_value("CURRENT_TIME"),
        "DATE_ADD": add_interval,
        "ADDDATE": add_interval,
        "DATE_SUB": partial(add_interval, negate=True),
        "SUBDATE": partial(add_interval, negate=True),
        "TIMESTAMPADD": timestampadd,
        "DATE_FORMAT": date_format,
        "STR_TO_DATE": str_to_date,
        "DATEDIFF": datediff,
        "TIMESTAMPDIFF": timestampdiff,
        "EXTRACT": lambda call: qp.extract_call(call, masked, diagnostics),
        "YEAR": field,
        "QUARTER": field,
        "MONTH": field,
        "DAY": field,
        "DAYOFMONTH": field,
        "DAYOFYEAR": field,
        "DAYOFWEEK": field,
        "WEEKDAY": field,
        "WEEK": field,
        "HOUR": field,
        "MINUTE": field,
        "SECOND": field,
        "LAST_DAY": last_day,
        "UNIX_TIMESTAMP": unix_timestamp,
        "FROM_UNIXTIME": from_unixtime,
    }
    text = qp.dispatch_calls(text, builders)
    text = qp.shift_infix_intervals(text, masked, diagnostics, _parse_infix_interval(masked))
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("mysql"), [FunctionCategory.DATETIME])


@masked_pass
def string_functions_pass(text, masked, diagnostics):
    builders = {
        "CONCAT": lambda call: qp.concat_expression(call.args, masked),
        "CONCAT_WS": lambda call: qp.concat_ws_expression(call.args, masked),
        "LOCATE": qp.locate_call,
        "POSITION": qp.position_call,
        "SUBSTRING": qp.substring_call,
        "LEFT": qp.left_call,
        "RIGHT": qp.right_call,
        "TRIM": qp.trim_call,
    }
    text = qp.dispatch_calls(text, builders)
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("mysql"),
                               [FunctionCategory.STRING, FunctionCategory.MATH])


@masked_pass
def conditional_functions_pass(text, masked, diagnostics):
    text = qp.dispatch_calls(text, {"IF": qp.if_to_case})
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("mysql"),
                               [FunctionCategory.CONDITIONAL])


@masked_pass
def aggregate_functions_pass(text, masked, diagnostics):
    return qp.dispatch_calls(text, {"GROUP_CONCAT": lambda call: qp.mysql_group_concat(call, masked, diagnostics)})


_USING_RE = re.compile(r"^(.*?)\s+USING\s+\w+\s*$", re.IGNORECASE | re.DOTALL)


@masked_pass
def type_casts_pass(text, masked, diagnostics, *, rules: qp.CastRules):
    def convert(call: FunctionCall) -> Optional[str]:
        fragment = masked.restore(call.source)
        using = _USING_RE.match(call.args_text)
        if using:
            diagnostics.info("CONVERT ... USING charset dropped; SQLite text is always Unicode", fragment)
            return using.group(1).strip()
        args = call.args
        if len(args) != 2:
            return None
        return qp.cast_expression(args[0], args[1], rules, diagnostics, fragment)

    return qp.dispatch_calls(text, {
        "CAST": lambda call: qp.cast_call(call, rules, masked, diagnostics),
        "CONVERT": convert,
    })


@masked_pass
def operators_pass(text, masked, diagnostics):
    text = qp.dispatch_calls(text, {"MOD": qp.mod_call})
    return qp.apply_operator_rules(text, masked, diagnostics, OPERATOR_RULES)


_INSERT_IGNORE_RE = re.compile(r"^(\s*INSERT)\s+IGNORE\b", re.IGNORECASE)
_DUPLICATE_KEY_RE = re.compile(r"\bON\s+DUPLICATE\s+KEY\s+UPDATE\b", re.IGNORECASE)
_ROW_ALIAS_RE = re.compile(r"\)\s+AS\s+(" + IDENT + r")(\s*\([^()]*\))?\s*$", re.IGNORECASE)
_VALUES_RE = re.compile(r"\bVALUES?\b", re.IGNORECASE)


@masked_pass
def upsert_pass(text, masked, diagnostics):
    """
    INSERT IGNORE and INSERT ... ON DUPLICATE KEY UPDATE.

    SQLite's ON CONFLICT DO UPDATE without a conflict target (3.35+)
    fires on any uniqueness violation, as MySQL's clause does. The
    inserted row is ``excluded`` there, so VALUES(col) and row-alias
    references are rewritten to it.
    """
    ignore = _INSERT_IGNORE_RE.match(text)
    if ignore:
        diagnostics.info("INSERT IGNORE mapped to INSERT OR IGNORE")
        text = ignore.group(1) + " OR IGNORE" + text[ignore.end():]
    match = _DUPLICATE_KEY_RE.search(text)
    if not match:
        return text
    fragment = masked.restore(text[match.start():])
    head, updates = text[:match.start()].rstrip(), text[match.end():]
    alias = _ROW_ALIAS_RE.search(head)
    if alias:
        if alias.group(2):
            diagnostics.warn("Row alias column lists have no SQLite equivalent; ON DUPLICATE KEY UPDATE "
                             "left unchanged", fragment)
            return text
        head = head[:alias.start() + 1]
        updates = re.sub(r"(?<![\w.\"])" + re.escape(alias.group(1)) + r"\s*\.", "excluded.", updates,
                         flags=re.IGNORECASE)
    updates = qp.dispatch_calls(
        updates, {"VALUES": lambda call: f"excluded.{call.args[0]}" if len(call.args) == 1 else None}
    )
    if not _VALUES_RE.search(head):
        diagnostics.warn(
            "INSERT ... SELECT with an upsert clause needs a WHERE clause on the SELECT in SQLite",
            fragment,
        )
    diagnostics.info("ON DUPLICATE KEY UPDATE mapped to ON CONFLICT DO UPDATE", fragment)
    return f"{head} ON CONFLICT DO UPDATE SET{updates}"


class MySQLQueryRewriter(QueryRewriter):
    dialect = "mysql"
    operator_rules = OPERATOR_RULES
    rewrite_markers = (
        r"`",
        r"\bLIMIT\s+\S+\s*,",
        r"\b(?:NOW|CURDATE|CURTIME|SYSDATE|UTC_\w+|DATE_ADD|DATE_SUB|ADDDATE|SUBDATE|TIMESTAMPADD|DATE_FORMAT|"
        r"STR_TO_DATE|DATEDIFF|TIMESTAMPDIFF|EXTRACT|YEAR|QUARTER|MONTH|DAY\w*|WEEK\w*|HOUR|MINUTE|SECOND|"
        r"LAST_DAY|UNIX_TIMESTAMP|FROM_UNIXTIME|CONCAT\w*|LOCATE|POSITION|SUBSTRING|MID|LEFT|RIGHT|TRIM|LCASE|"
        r"UCASE|CHAR_LENGTH|CHARACTER_LENGTH|IF|GREATEST|LEAST|RAND|GROUP_CONCAT|CAST|CONVERT|MOD)\s*\(",
        r"\bINTERVAL\b",
        r"<=>|&&|\bDIV\b|\bMOD\b|\bRLIKE\b|\bREGEXP\b|\bXOR\b",
        r"\bAGAINST\b",
        r"\bINSERT\s+IGNORE\b",
        r"\bON\s+DUPLICATE\s+KEY\b",
        r"\bFOR\s+(?:UPDATE|SHARE)\b",
        r"\bLOCK\s+IN\s+SHARE\s+MODE\b",
        r"\b\w+\s*\.\s*\w+\s*\.",
    )

    def build_passes(self):
        rules = qp.CastRules(
            type_table=self.type_map,
            extra_types={
                "SIGNED": CanonicalType.INTEGER,
                "SIGNED INTEGER": CanonicalType.INTEGER,
                "UNSIGNED": CanonicalType.INTEGER,
                "UNSIGNED INTEGER": CanonicalType.INTEGER,
            },
        )
        return (
            RewritePass("quote_identifiers", partial(quote_identifiers_pass, quote_styles=("backtick",))),
            RewritePass("datetime_functions", datetime_functions_pass, feature="functions"),
            RewritePass("string_functions", string_functions_pass, feature="functions"),
            RewritePass("conditional_functions", conditional_functions_pass, feature="functions"),
            RewritePass("aggregate_functions", aggregate_functions_pass, feature="functions"),
            RewritePass("type_casts", partial(type_casts_pass, rules=rules), feature="functions"),
            RewritePass("operators", operators_pass, feature="operators"),
            RewritePass("upsert", upsert_pass),
            RewritePass("pagination", partial(pagination_pass, limit_comma=True)),
            RewritePass("strip_schema_prefix", strip_schema_prefix_pass),
        )
