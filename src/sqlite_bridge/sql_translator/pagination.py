"""
Pagination normalization to SQLite's trailing LIMIT/OFFSET.

Local forms are rewritten in place:

    LIMIT o, c                       -> LIMIT c OFFSET o       (MySQL)
    OFFSET o LIMIT c                 -> LIMIT c OFFSET o       (PostgreSQL)
    LIMIT ALL                        -> LIMIT -1
    OFFSET o ROWS FETCH NEXT c ROWS ONLY -> LIMIT c OFFSET o   (SQL:2008)
    FETCH FIRST c ROWS ONLY          -> LIMIT c
    OFFSET o [ROWS] without LIMIT    -> LIMIT -1 OFFSET o

Forms that sit elsewhere in the statement (SQL Server's prefix TOP n and
Oracle's ROWNUM predicate) are moved to a trailing LIMIT using a shallow
clause model of each query level. Subqueries are their own levels and are
rewritten before the query that contains them. TOP on UPDATE/DELETE/INSERT
stays where it is, with a warning.

Row locking clauses (FOR UPDATE, FOR SHARE, LOCK IN SHARE MODE) trail the
same statements and are dropped first, so a relocated LIMIT lands at the
end of the query.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .lexer import depth_map, find_closing, masked_pass, split_statement_tail

COUNT = r"(\d+|\?|:\w+|\$\d+|@\w+)"

_LIMIT_COMMA_RE = re.compile(r"\bLIMIT\s+" + COUNT + r"\s*,\s*" + COUNT, re.IGNORECASE)
_OFFSET_LIMIT_RE = re.compile(
    r"\bOFFSET\s+" + COUNT + r"(?:\s+ROWS?)?\s+LIMIT\s+(\d+|\?|:\w+|\$\d+|@\w+|ALL)\b", re.IGNORECASE
)
_LIMIT_ALL_RE = re.compile(r"\bLIMIT\s+ALL\b", re.IGNORECASE)
_FETCH_SPECIAL_RE = re.compile(
    r"\bFETCH\s+(?:FIRST|NEXT)\b[^;]*?\b(?:PERCENT|WITH\s+TIES)\b", re.IGNORECASE
)
_OFFSET_FETCH_RE = re.compile(
    r"\bOFFSET\s+" + COUNT + r"\s+ROWS?\s+FETCH\s+(?:FIRST|NEXT)\s+" + COUNT + r"\s+ROWS?\s+ONLY\b",
    re.IGNORECASE,
)
_FETCH_RE = re.compile(r"\bFETCH\s+(?:FIRST|NEXT)\s+(?:" + COUNT + r"\s+)?ROWS?\s+ONLY\b", re.IGNORECASE)
_OFFSET_RE = re.compile(r"\bOFFSET\s+" + COUNT + r"(?:\s+ROWS?\b)?", re.IGNORECASE)
_LIMIT_BEFORE_RE = re.compile(r"\bLIMIT\s+(?:-?\d+|\?|:\w+|\$\d+|@\w+)\s*$", re.IGNORECASE)

_TOP_RE = re.compile(
    r"\bSELECT(\s+(?:DISTINCT|ALL)\b)?\s+TOP\s*(\(\s*[^()]+?\s*\)|\d+)(\s+PERCENT\b)?(\s+WITH\s+TIES\b)?",
    re.IGNORECASE,
)
_TOP_PARAMETER_RE = re.compile(
    r"\bSELECT(?:\s+(?:DISTINCT|ALL)\b)?\s+TOP\s+(?:@\w+|:\w+|\?|\$\d+)", re.IGNORECASE
)
_DML_TOP_RE = re.compile(r"\b(UPDATE|DELETE|INSERT)\s+TOP\b", re.IGNORECASE)
_ROW_LOCK_RE = re.compile(
    r"\s*\bFOR\s+(?:UPDATE|SHARE|NO\s+KEY\s+UPDATE|KEY\s+SHARE)\b"
    r"(?:\s+OF\s+[\w.\"]+(?:\s*,\s*[\w.\"]+)*)?(?:\s+(?:NOWAIT|SKIP\s+LOCKED|WAIT\s+\d+))?"
    r"|\s*\bLOCK\s+IN\s+SHARE\s+MODE\b",
    re.IGNORECASE,
)
_ROWNUM_RE = re.compile(r"\bROWNUM\b", re.IGNORECASE)
_ROWNUM_PREDICATE_RE = re.compile(
    r"^\s*(?:ROWNUM\s*(<=|<|=)\s*" + COUNT + r"|" + COUNT + r"\s*(>=|>|=)\s*ROWNUM)\s*$",
    re.IGNORECASE,
)
_AND_RE = re.compile(r"\bAND\b", re.IGNORECASE)
_OR_RE = re.compile(r"\bOR\b", re.IGNORECASE)

_CLAUSE_RE = re.compile(
    r"\b(SELECT|FROM|WHERE|GROUP\s+BY|HAVING|ORDER\s+BY|LIMIT|OFFSET|FETCH|UNION|INTERSECT|"
    r"EXCEPT|MINUS|FOR\s+UPDATE|CONNECT\s+BY|START\s+WITH|WINDOW)\b",
    re.IGNORECASE,
)
_SET_OPERATORS = frozenset({"UNION", "INTERSECT", "EXCEPT", "MINUS"})


@dataclass
class Clause:
    keyword: str
    start: int
    body_start: int
    end: int


def split_clauses(text: str) -> List[Clause]:
    """Depth-0 clauses of one query level, in statement order"""
    depths = depth_map(text)
    matches = [m for m in _CLAUSE_RE.finditer(text) if depths[m.start()] == 0]
    clauses = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        keyword = " ".join(match.group(1).upper().split())
        clauses.append(Clause(keyword, match.start(), match.end(), end))
    return clauses


def _find_clause(clauses: List[Clause], keyword: str) -> Optional[Clause]:
    for clause in clauses:
        if clause.keyword == keyword:
            return clause
    return None


def _top_level_matches(text: str, pattern: "re.Pattern") -> List[re.Match]:
    depths = depth_map(text)
    return [m for m in pattern.finditer(text) if depths[m.start()] == 0]


def _normalize_local(text: str, diagnostics, restore, *, limit_comma, offset_first, fetch) -> str:
    if limit_comma:
        text = _LIMIT_COMMA_RE.sub(r"LIMIT \2 OFFSET \1", text)
    if offset_first:
        text = _OFFSET_LIMIT_RE.sub(
            lambda m: f"LIMIT {'-1' if m.group(2).upper() == 'ALL' else m.group(2)} OFFSET {m.group(1)}", text
        )
        text = _LIMIT_ALL_RE.sub("LIMIT -1", text)
    if fetch:
        special = _FETCH_SPECIAL_RE.search(text)
        if special:
            diagnostics.warn("FETCH ... PERCENT / WITH TIES has no SQLite equivalent; left unchanged",
                             restore(special.group(0)))
        else:
            text = _OFFSET_FETCH_RE.sub(r"LIMIT \2 OFFSET \1", text)
            text = _FETCH_RE.sub(lambda m: f"LIMIT {m.group(1) or '1'}", text)
    if offset_first or fetch:
        text = _add_missing_limit(text)
    return text


def _add_missing_limit(text: str) -> str:
    """SQLite only accepts OFFSET after a LIMIT"""
    for match in reversed(list(_OFFSET_RE.finditer(text))):
        if _LIMIT_BEFORE_RE.search(text[:match.start()]):
            if match.group(0).upper().rstrip().endswith(("ROW", "ROWS")):
                text = text[:match.start()] + f"OFFSET {match.group(1)}" + text[match.end():]
            continue
        text = text[:match.start()] + f"LIMIT -1 OFFSET {match.group(1)}" + text[match.end():]
    return text


def _relocate_top(body: str, diagnostics, restore) -> Tuple[str, Optional[str]]:
    matches = _top_level_matches(body, _TOP_RE)
    if not matches:
        for match in _top_level_matches(body, _TOP_PARAMETER_RE):
            diagnostics.warn("TOP with an unparenthesized parameter cannot be moved to a trailing LIMIT; "
                             "left unchanged", restore(match.group(0)))
        return body, None
    match = matches[0]
    fragment = restore(match.group(0))
    if match.group(3) or match.group(4):
        diagnostics.warn("TOP ... PERCENT / WITH TIES has no SQLite equivalent; left unchanged", fragment)
        return body, None
    clauses = split_clauses(body)
    if any(c.keyword in _SET_OPERATORS for c in clauses):
        diagnostics.warn("TOP in a query with set operators cannot be moved to a trailing LIMIT; left unchanged",
                         fragment)
        return body, None
    if _find_clause(clauses, "LIMIT"):
        diagnostics.warn("TOP combined with LIMIT left unchanged", fragment)
        return body, None
    count = match.group(2).strip()
    if count.startswith("("):
        count = count[1:-1].strip()
    body = body[:match.start()] + "SELECT" + (match.group(1) or "") + body[match.end():]
    return body, count


def _relocate_rownum(body: str, diagnostics, restore) -> Tuple[str, Optional[str]]:
    references = _top_level_matches(body, _ROWNUM_RE)
    if not references:
        return body, None
    clauses = split_clauses(body)
    where = _find_clause(clauses, "WHERE")
    complex_message = "ROWNUM used outside a simple WHERE ROWNUM <= n conjunct; left unchanged"
    if where is None or len(references) != 1 or not (where.body_start <= references[0].start() < where.end):
        diagnostics.warn(complex_message, restore(body))
        return body, None
    condition = body[where.body_start:where.end]
    if _top_level_matches(condition, _OR_RE):
        diagnostics.warn(complex_message, restore(condition))
        return body, None

    depths = depth_map(condition)
    separators = [m for m in _AND_RE.finditer(condition) if depths[m.start()] == 0]
    conjuncts = []
    start = 0
    for separator in separators:
        conjuncts.append(condition[start:separator.start()])
        start = separator.end()
    conjuncts.append(condition[start:])

    limit = None
    remaining = []
    for conjunct in conjuncts:
        predicate = _ROWNUM_PREDICATE_RE.match(conjunct)
        if predicate is None:
            remaining.append(conjunct.strip())
            continue
        operator = predicate.group(1) or {">=": "<=", ">": "<", "=": "="}[predicate.group(4)]
        count = predicate.group(2) or predicate.group(3)
        if operator == "<":
            if not count.isdigit():
                diagnostics.warn(complex_message, restore(conjunct))
                return body, None
            count = str(int(count) - 1)
        elif operator == "=" and count != "1":
            diagnostics.warn(complex_message, restore(conjunct))
            return body, None
        limit = count
    if limit is None:
        diagnostics.warn(complex_message, restore(condition))
        return body, None

    if _find_clause(clauses, "ORDER BY"):
        diagnostics.warn(
            "Oracle applies ROWNUM before ORDER BY while LIMIT applies after it; "
            "result rows may differ",
            restore(condition),
        )
    follower = " " if where.end < len(body) else ""
    if remaining:
        replacement = body[where.start:where.body_start] + " " + " AND ".join(remaining) + follower
    else:
        replacement = ""
    prefix = body[:where.start] if remaining else body[:where.start].rstrip() + follower
    return prefix + replacement + body[where.end:], limit


def _relocate_level(text: str, masked, diagnostics, *, top: bool, rownum: bool) -> str:
    body, tail = split_statement_tail(text, masked)
    limit = None
    if top:
        body, limit = _relocate_top(body, diagnostics, masked.restore)
    if rownum and limit is None:
        body, limit = _relocate_rownum(body, diagnostics, masked.restore)
    if limit is None:
        return text
    return f"{body.rstrip()} LIMIT {limit}{tail}"


def _walk(text: str, masked, diagnostics, *, top: bool, rownum: bool) -> str:
    """Rewrite nested query levels inside-out, then this level"""
    index = 0
    while True:
        open_index = text.find("(", index)
        if open_index < 0:
            break
        close_index = find_closing(text, open_index)
        if close_index < 0:
            break
        inner = text[open_index + 1:close_index]
        rewritten = _walk(inner, masked, diagnostics, top=top, rownum=rownum)
        if re.match(r"\s*SELECT\b", rewritten, re.IGNORECASE):
            rewritten = _relocate_level(rewritten, masked, diagnostics, top=top, rownum=rownum)
        text = text[:open_index + 1] + rewritten + text[close_index:]
        index = open_index + 1 + len(rewritten) + 1
    return text


def _drop_row_locking(text: str, masked, diagnostics) -> str:
    def drop(match):
        diagnostics.warn(
            "Row locking clauses are not supported by SQLite (writers lock the whole database); dropped",
            masked.restore(match.group(0)).strip(),
        )
        return ""

    return _ROW_LOCK_RE.sub(drop, text)


@masked_pass
def pagination_pass(text, masked, diagnostics, *, limit_comma: bool = False, offset_first: bool = False,
                    fetch: bool = False, top: bool = False, rownum: bool = False):
    text = _drop_row_locking(text, masked, diagnostics)
    text = _normalize_local(
        text, diagnostics, masked.restore, limit_comma=limit_comma, offset_first=offset_first, fetch=fetch
    )
    if top:
        for match in _DML_TOP_RE.finditer(text):
            diagnostics.warn(
                f"{match.group(1).upper()} TOP has no SQLite equivalent; left unchanged",
                masked.restore(text),
            )
    if top or rownum:
        text = _walk(text, masked, diagnostics, top=top, rownum=rownum)
        text = _relocate_level(text, masked, diagnostics, top=top, rownum=rownum)
    return text
