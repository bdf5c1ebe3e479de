"""
Oracle query rewriter.
"""

import re
from functools import partial
from typing import Optional

from ..sql_translator import date_translator as dates
from ..sql_translator import query_passes as qp
from ..sql_translator.identifier_normalizer import strip_schema_prefix_pass
from ..sql_translator.lexer import IDENT, FunctionCall, masked_pass
from ..sql_translator.mappings.functions import FunctionCategory, get_function_registry
from ..sql_translator.models import RewritePass
from ..sql_translator.pagination import pagination_pass
from ..sql_translator.pipeline import QueryRewriter

OPERATOR_RULES = (
    qp.operator_rule("^=", r"\s*\^=\s*", " <> "),
    qp.operator_rule("MINUS", r"\bMINUS\b", "EXCEPT"),
    qp.operator_rule("(+)", r"\s*\(\s*\+\s*\)", None,
                     "Oracle (+) outer join syntax has no SQLite equivalent; rewrite it as LEFT JOIN"),
)

# Oracle DATE carries a time of day
TEMPORAL_CASTS = dict(qp.DEFAULT_TEMPORAL_CASTS, DATE="datetime")

_NOW_RE = re.compile(r"(?<![\w.$\"])(?:SYSDATE|SYSTIMESTAMP|LOCALTIMESTAMP)\b(?!\s*\()",
                     re.IGNORECASE)
_DUAL_RE = re.compile(r"\s+FROM\s+(?:SYS\s*\.\s*)?DUAL\b", re.IGNORECASE)
_NEXTVAL_RE = re.compile(r"(?<![\w.$\"])(?:" + IDENT + r"\s*\.\s*)?" + IDENT + r"\s*\.\s*NEXTVAL\b", re.IGNORECASE)
_CURRVAL_RE = re.compile(r"(?<![\w.$\"])(?:" + IDENT + r"\s*\.\s*)?" + IDENT + r"\s*\.\s*CURRVAL\b", re.IGNORECASE)
_DIRECTIVE_RE = re.compile(r"%[^%]")


@masked_pass
def datetime_functions_pass(text, masked, diagnostics):
    def to_char(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) == 1:
            return f"CAST({args[0]} AS TEXT)"
        if len(args) != 2:
            return None
        fragment = masked.restore(call.source)
        fmt = masked.string_value(args[1])
        if fmt is not None:
            translated, _ = dates.translate_format(fmt, dates.ORACLE_FORMAT_TOKENS)
            if not _DIRECTIVE_RE.search(translated):
                diagnostics.warn("TO_CHAR with a numeric format has no SQLite equivalent; left unchanged", fragment)
                return None
        return qp.strftime_call(args[0], args[1], masked, diagnostics, fragment, dates.ORACLE_FORMAT_TOKENS)

    def to_date(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) not in (1, 2):
            return None
        name = call.name.upper()
        fmt = masked.string_value(args[1]) if len(args) == 2 else None
        if len(args) == 2 and (fmt is None or not dates.is_iso_format(fmt)):
            diagnostics.warn(f"{name} with a non-ISO format cannot be parsed by SQLite; left unchanged",
                             masked.restore(call.source))
            return None
        with_time = name == "TO_TIMESTAMP" or (fmt is not None and dates.has_time_component(fmt))
        return f"{'datetime' if with_time else 'date'}({args[0]})"

    def add_months(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 2:
            return None
        modifier = dates.shift_modifier(args[1], "MONTH", masked)
        return dates.shift_date(args[0], modifier, with_time=False)

    def months_between(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) != 2:
            return None
        diagnostics.warn("MONTHS_BETWEEN counts whole calendar months; the fractional part is dropped",
                         masked.restore(call.source))
        return dates.boundary_diff("MONTH", args[1], args[0], masked)

    def last_day(call: FunctionCall) -> Optional[str]:
        args = call.args
        return dates.last_day_of_month(args[0], masked) if len(args) == 1 else None

    def trunc(call: FunctionCall) -> Optional[str]:
        args = call.args
        # TRUNC(n) and TRUNC(n, digits) are numeric
        if len(args) != 2:
            return None
        unit = masked.string_value(args[1])
        if unit is None:
            return None
        result = dates.truncate_date(unit, args[0], masked, with_time=False)
        if result is None:
            diagnostics.warn(f"TRUNC format {unit!r} has no SQLite equivalent; left unchanged",
                             masked.restore(call.source))
        return result

    text = _NOW_RE.sub("CURRENT_TIMESTAMP", text)
    builders = {
        "TO_CHAR": to_char,
        "TO_DATE": to_date,
        "TO_TIMESTAMP": to_date,
        "ADD_MONTHS": add_months,
        "MONTHS_BETWEEN": months_between,
        "LAST_DAY": last_day,
        "TRUNC": trunc,
        "EXTRACT": lambda call: qp.extract_call(call, masked, diagnostics),
    }
    text = qp.dispatch_calls(text, builders)
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("oracle"), [FunctionCategory.DATETIME])


@masked_pass
def string_functions_pass(text, masked, diagnostics):
    def instr(call: FunctionCall) -> Optional[str]:
        args = call.args
        if len(args) not in (3, 4):
            return None
        fragment = masked.restore(call.source)
        if len(args) == 4 and args[3].strip() != "1":
            diagnostics.warn("INSTR occurrence argument is not supported by SQLite; left unchanged", fragment)
            return None
        if args[2].strip().startswith("-"):
            diagnostics.warn("INSTR backward search is not supported by SQLite; left unchanged", fragment)
            return None
        return qp.instr_expression(args[0], args[1], args[2])

    builders = {
        "CONCAT": lambda call: qp.concat_expression(call.args, masked, null_as_empty=True),
        "INSTR": instr,
        "TRIM": qp.trim_call,
    }
    text = qp.dispatch_calls(text, builders)
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("oracle"),
                               [FunctionCategory.STRING, FunctionCategory.MATH])


@masked_pass
def conditional_functions_pass(text, masked, diagnostics):
    text = qp.dispatch_calls(text, {"NVL2": qp.nvl2_to_case, "DECODE": qp.decode_to_case})
    return qp.rename_functions(text, masked, diagnostics, get_function_registry("oracle"),
                               [FunctionCategory.CONDITIONAL])


@masked_pass
def aggregate_functions_pass(text, masked, diagnostics):
    text = qp.drop_within_group(text, masked, diagnostics)
    return qp.dispatch_calls(text, {"LISTAGG": lambda call: qp.listagg_call(call, masked, diagnostics)})


@masked_pass
def type_casts_pass(text, masked, diagnostics, *, rules: qp.CastRules):
    def to_number(call: FunctionCall) -> Optional[str]:
        args = call.args
        if not args or len(args) > 3:
            return None
        if len(args) > 1:
            diagnostics.warn("TO_NUMBER format argument ignored", masked.restore(call.source))
        return f"CAST({args[0]} AS REAL)"

    return qp.dispatch_calls(text, {
        "CAST": lambda call: qp.cast_call(call, rules, masked, diagnostics),
        "TO_NUMBER": to_number,
    })


@masked_pass
def operators_pass(text, masked, diagnostics):
    return qp.apply_operator_rules(text, masked, diagnostics, OPERATOR_RULES)


@masked_pass
def pseudo_columns_pass(text, masked, diagnostics):
    """DUAL, sequence NEXTVAL/CURRVAL"""
    text = _DUAL_RE.sub("", text)

    def nextval(match):
        diagnostics.warn("Sequences are not supported by SQLite; NEXTVAL replaced by NULL "
                         "(an INTEGER PRIMARY KEY column assigns the next id)",
                         masked.restore(match.group(0)))
        return "NULL"

    def currval(match):
        diagnostics.warn("Sequences are not supported by SQLite; use last_insert_rowid() instead of CURRVAL",
                         masked.restore(match.group(0)))
        return match.group(0)

    text = _NEXTVAL_RE.sub(nextval, text)
    return _CURRVAL_RE.sub(currval, text)


class OracleQueryRewriter(QueryRewriter):
    dialect = "oracle"
    operator_rules = OPERATOR_RULES
    rewrite_markers = (
        r"\b(?:SYSDATE|SYSTIMESTAMP|LOCALTIMESTAMP|DUAL|ROWNUM|NEXTVAL|CURRVAL|MINUS|FETCH)\b",
        r"\^=",
        r"\bFOR\s+UPDATE\b",
        r"\(\s*\+\s*\)",
        r"\b(?:TO_CHAR|TO_DATE|TO_TIMESTAMP|ADD_MONTHS|MONTHS_BETWEEN|LAST_DAY|TRUNC|EXTRACT|CONCAT|INSTR|TRIM|"
        r"NVL2?|DECODE|GREATEST|LEAST|LENGTHB|SUBSTRB|LISTAGG|CAST|TO_NUMBER|LPAD|RPAD|INITCAP|REGEXP_\w+|"
        r"TRANSLATE|SOUNDEX|NEXT_DAY|NEW_TIME)\s*\(",
        r"\b\w+\s*\.\s*\w+\s*\.",
    )

    def build_passes(self):
        rules = qp.CastRules(type_table=self.type_map, temporal=dict(TEMPORAL_CASTS))
        return (
            RewritePass("datetime_functions", datetime_functions_pass, feature="functions"),
            RewritePass("string_functions", string_functions_pass, feature="functions"),
            RewritePass("conditional_functions", conditional_functions_pass, feature="functions"),
            RewritePass("aggregate_functions", aggregate_functions_pass, feature="functions"),
            RewritePass("type_casts", partial(type_casts_pass, rules=rules), feature="functions"),
            RewritePass("operators", operators_pass, feature="operators"),
            RewritePass("pseudo_columns", pseudo_columns_pass),
            RewritePass("pagination", partial(pagination_pass, rownum=True, fetch=True)),
            RewritePass("strip_schema_prefix", strip_schema_prefix_pass),
        )
