"""
SQL Server query rewriter.

T-SQL date functions take the date part as a bare keyword (DATEADD(day, 1,
d)), accept the documented abbreviations (dd, mm, yy, ...) and count
DATEDIFF in boundaries crossed; all of that is resolved here. CONVERT
styles other than the ISO ones cannot be reproduced by SQLite and are
reported.
"""

import re
from functools import partial
from typing import Optional

from ..sql_translator import date_translator as dates
from ..sql_translator import query_passes as qp
from ..sql_translator.identifier_normalizer import quote_identifiers_pass, strip_schema_prefix_pass
from ..sql_translator.lexer import FunctionCall, masked_pass
from ..sql_translator.mappings.functions import FunctionCategory, get_function_registry
from ..sql_translator.models import RewritePass
from ..sql_translator.pagination import pagination_pass
from ..sql_translator.pipeline import QueryRewriter

OPERATOR_RULES = (
    qp.operator_rule("!<", r"\s*!<\s*", " >= "),
    qp.operator_rule("!>", r"\s*!>\s*", " <= "),
)

# CONVERT styles that produce or parse ISO-8601 text
ISO_STYLES = frozenset({"20", "120", "21", "121", "23", "126", "127"})

# DATEPART abbreviations onto extract fields
DATE_PARTS = {
    "YEAR": "YEAR", "YY": "YEAR", "YYYY": "YEAR",
    "QUARTER": "QUARTER", "QQ": "QUARTER", "Q": "QUARTER",
    "MONTH": "MONTH", "MM": "MONTH", "M": "MONTH",
    "DAYOFYEAR": "DOY", "DY": "DOY", "Y": "DOY",
    "DAY": "DAY", "DD": "DAY", "D": "DAY",
    "WEEK": "WEEK", "WK": "WEEK", "WW": "WEEK",
    "HOUR": "HOUR", "HH": "HOUR",
    "MINUTE": "MINUTE", "MI": "MINUTE", "N": "MINUTE",
    "SECOND": "SECOND", "SS": "SECOND", "S": "SECOND",
}
_WEEKDAY_PARTS = frozenset({"WEEKDAY", "DW", "W"})

_HINT = (
    r"(?:NOLOCK|READUNCOMMITTED|READCOMMITTED|REPEATABLEREAD|SERIALIZABLE|UPDLOCK|ROWLOCK|PAGLOCK|HOLDLOCK|"
    r"TABLOCKX?|XLOCK|NOWAIT|READPAST|FORCESEEK|FORCESCAN|NOEXPAND|INDEX\s*(?:\([^()]*\)|=\s*\w+))"
)
_TABLE_HINTS_RE = re.compile(r"\s*\bWITH\s*\(\s*" + _HINT + r"(?:\s*,\s*" + _HINT + r")*\s*\)", re.IGNORECASE)
_QUERY_OPTION_RE = re.compile(r"\s*\bOPTION\s*\([^()]*\)", re.IGNORECASE)
_DIRECTIVE_RE = re.compile(r"%[^%]")


def _date_part(unit: str, expr: str, masked) -> Optional[str]:
    name = unit.strip().strip("'").upper()
    if name in _WEEKDAY_PARTS:
        # SQL Server numbers Sunday as 1 with the default DATEFIRST
        return f"(CAST(strftime({masked.string('%w')}, {expr}) AS INTEGER) + 1)"
    field = DATE_PARTS.get(name)
    if field is None:
        return None
    return dates.extract_field(field, expr, masked)


@masked_pass
def datetime_functions_pass(text, masked, diagnostics):
    def dateadd(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 3:
            return None
        modifier = dates.shift_modifier(args[1], args[0], masked)
        if modifier is None:
            diagnostics.warn(f"DATEADD unit {args[0].upper()} has no SQLite date modifier; left unchanged",
                             masked.restore(call.source))
            return None
        return dates.shift_date(args[2], modifier, with_time=True)

    def datediff(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 3:
            return None
        result = dates.boundary_diff(args[0], args[1], args[2], masked)
        if result is None:
            diagnostics.warn(f"{call.name.upper()} unit {args[0].upper()} is not supported; left unchanged",
                             masked.restore(call.source))
        return result

    def datepart(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 2:
            return None
        result = _date_part(args[0], args[1], masked)
        if result is None:
            diagnostics.warn(f"DATEPART unit {args[0].upper()} has no SQLite equivalent; left unchanged",
                             masked.restore(call.source))
        return result

    def datename(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 2:
            return None
        fragment = masked.restore(call.source)
        part = _date_part(args[0], args[1], masked)
        if part is None:
            diagnostics.warn(f"DATENAME unit {args[0].upper()} has no SQLite equivalent; left unchanged", fragment)
            return None
        diagnostics.warn("DATENAME returns the numeric date part in SQLite, not the localized name", fragment)
        return f"CAST({part} AS TEXT)"

    def field(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 1:
            return None
        return dates.extract_field(call.name, args[0], masked)

    def eomonth(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) == 1:
            return dates.last_day_of_month(args[0], masked)
        if len(args) != 2:
            return None
        offset = dates.literal_number(args[1], masked)
        if offset is None or "." in offset:
            diagnostics.warn("EOMONTH with a non-literal month offset is not supported; left unchanged",
                             masked.restore(call.source))
            return None
        return dates.last_day_of_month(args[0], masked, int(offset))

    def format_call(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) not in (2, 3):
            return None
        fragment = masked.restore(call.source)
        fmt = masked.string_value(args[1])
        if fmt is not None:
            translated, _ = dates.translate_format(fmt, dates.MSSQL_FORMAT_TOKENS, case_sensitive=True)
            if not _DIRECTIVE_RE.search(translated):
                diagnostics.warn("FORMAT with a numeric or standard format string has no SQLite equivalent; "
                                 "left unchanged", fragment)
                return None
        if len(args) == 3:
            diagnostics.warn("FORMAT culture argument ignored", fragment)
        return qp.strftime_call(args[0], args[1], masked, diagnostics, fragment, dates.MSSQL_FORMAT_TOKENS,
                                case_sensitive=True)

    builders = {
        "GETDATE": qp.current_value("CURRENT_TIMESTAMP"),
        "GETUTCDATE": qp.current_value("CURRENT_TIMESTAMP"),
        "SYSDATETIME": qp.current_value("CURRENT_TIMESTAMP"),
        "SYSUTCDATETIME": qp.current_value("CURRENT_TIMESTAMP"),
        "SYSDATETIMEOFFSET": qp.current_value("CURRENT_TIMESTAMP"),
        "DATEADD": dateadd,
        "DATEDIFF": datediff,
        "DATEDIFF_BIG": datediff,
        "DATEPART": datepart,
        "DATENAME": datename,
        "YEAR": field,
        "MONTH": field,
        "DAY": field,
        "EOMONTH": eomonth,
        "FORMAT": format_call,
    }
    text = qp.dispatch_calls(text, builders)
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("mssql"), [FunctionCategory.DATETIME])


@masked_pass
def string_functions_pass(text, masked, diagnostics):
    builders = {
        "CONCAT": lambda call: qp.concat_expression(call.args, masked, null_as_empty=True),
        "CONCAT_WS": lambda call: qp.concat_ws_expression(call.args, masked),
        "CHARINDEX": qp.locate_call,
        "LEN": qp.len_call,
        "LEFT": qp.left_call,
        "RIGHT": qp.right_call,
        "TRIM": qp.trim_call,
    }
    text = qp.dispatch_calls(text, builders)
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("mssql"),
                               [FunctionCategory.STRING, FunctionCategory.MATH])


@masked_pass
def conditional_functions_pass(text, masked, diagnostics):
    text = qp.dispatch_calls(text, {"IIF": qp.if_to_case, "CHOOSE": qp.choose_to_case})
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("mssql"),
                               [FunctionCategory.CONDITIONAL])


@masked_pass
def aggregate_functions_pass(text, masked, diagnostics):
    text = qp.drop_within_group(text, masked, diagnostics)
    return qp.dispatch_calls(text, {"STRING_AGG": lambda call: qp.string_agg_call(call, masked, diagnostics)})


@masked_pass
def type_casts_pass(text, masked, diagnostics, *, rules: qp.CastRules):
    def convert(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) not in (2, 3):
            return None
        fragment = masked.restore(call.source)
        if call.name.upper() == "TRY_CONVERT":
            diagnostics.info("TRY_CONVERT mapped to CAST; SQLite casts never raise", fragment)
        if len(args) == 3:
            style = args[2].strip()
            if style in ISO_STYLES:
                diagnostics.info(f"CONVERT style {style} dropped; SQLite dates are ISO-8601 text", fragment)
            else:
                diagnostics.warn(f"CONVERT style {style} has no SQLite equivalent; style ignored", fragment)
        return qp.cast_expression(args[1], args[0], rules, diagnostics, fragment)

    return qp.dispatch_calls(text, {
        "CAST": lambda call: qp.cast_call(call, rules, masked, diagnostics),
        "TRY_CAST": lambda call: qp.cast_call(call, rules, masked, diagnostics),
        "CONVERT": convert,
        "TRY_CONVERT": convert,
    })


@masked_pass
def operators_pass(text, masked, diagnostics):
    return qp.apply_operator_rules(text, masked, diagnostics, OPERATOR_RULES)


@masked_pass
def table_hints_pass(text, masked, diagnostics):
    def drop(match):
        diagnostics.info("Locking or query hint dropped", masked.restore(match.group(0)).strip())
        return ""

    text = _TABLE_HINTS_RE.sub(drop, text)
    return _QUERY_OPTION_RE.sub(drop, text)


class MSSQLQueryRewriter(QueryRewriter):
    dialect = "mssql"
    operator_rules = OPERATOR_RULES
    rewrite_markers = (
        r"\[",
        r"\bTOP\b",
        r"\bFOR\s+(?:UPDATE|SHARE)\b",
        r"\b(?:OFFSET|FETCH)\b",
        r"![<>]",
        r"\bWITH\s*\(",
        r"\bOPTION\s*\(",
        r"\b(?:GETDATE|GETUTCDATE|SYSDATETIME|SYSUTCDATETIME|SYSDATETIMEOFFSET|DATEADD|DATEDIFF\w*|DATEPART|"
        r"DATENAME|YEAR|MONTH|DAY|EOMONTH|FORMAT|CONCAT\w*|CHARINDEX|LEN|LEFT|RIGHT|TRIM|SUBSTRING|ISNULL|"
        r"IIF|CHOOSE|GREATEST|LEAST|DATALENGTH|NEWID|STRING_AGG|CAST|TRY_CAST|CONVERT|TRY_CONVERT|STUFF|"
        r"REPLICATE|REVERSE|PATINDEX|QUOTENAME|SPACE|SOUNDEX|DIFFERENCE|TRANSLATE|FORMATMESSAGE|SWITCHOFFSET|"
        r"TODATETIMEOFFSET|DATEFROMPARTS|DATETIMEFROMPARTS)\s*\(",
        r"\b\w+\s*\.\s*\w+\s*\.",
    )

    def build_passes(self):
        rules = qp.CastRules(type_table=self.type_map)
        return (
            RewritePass("quote_identifiers", partial(quote_identifiers_pass, quote_styles=("bracket",))),
            RewritePass("datetime_functions", datetime_functions_pass, feature="functions"),
            RewritePass("string_functions", string_functions_pass, feature="functions"),
            RewritePass("conditional_functions", conditional_functions_pass, feature="functions"),
            RewritePass("aggregate_functions", aggregate_functions_pass, feature="functions"),
            RewritePass("type_casts", partial(type_casts_pass, rules=rules), feature="functions"),
            RewritePass("operators", operators_pass, feature="operators"),
            RewritePass("table_hints", table_hints_pass),
            RewritePass("pagination", partial(pagination_pass, top=True, fetch=True)),
            RewritePass("strip_schema_prefix", strip_schema_prefix_pass),
        )
