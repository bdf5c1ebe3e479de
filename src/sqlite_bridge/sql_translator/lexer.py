"""
Literal-safe scanning for the rewrite passes.

Passes are regex driven, so string literals and comments are masked out
before any pattern runs: sqlparse tokenizes the statement, every
single-quoted string and every comment is replaced by a private-use
placeholder, and the original text is put back after the pass. On the
masked text a parenthesis or a keyword can only belong to SQL structure.

The scanning helpers below (matching parentheses, top-level argument
splitting, function-call rewriting, depth-0 keyword search) all operate on
masked text.
"""

import functools
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple

import sqlparse
from sqlparse import tokens as T

PLACEHOLDER_OPEN = "\ue000"
PLACEHOLDER_CLOSE = "\ue001"
PLACEHOLDER_RE = re.compile(PLACEHOLDER_OPEN + r"(\d+)" + PLACEHOLDER_CLOSE)

# Identifier as it may appear on masked text: double-quoted or bare
IDENT = r'(?:"(?:[^"]|"")+"|[A-Za-z_][\w$#]*)'


def quote_string(value: str) -> str:
    """Render ``value`` as a single-quoted SQL string literal"""
    return "'" + value.replace("'", "''") + "'"


@dataclass
class MaskedSQL:
    """Statement text with literals and comments replaced by placeholders"""

    text: str
    fragments: List[str] = field(default_factory=list)
    comment_ids: set = field(default_factory=set)

    def fragment(self, token: str) -> Optional[str]:
        """Original text behind a placeholder token, or None"""
        match = PLACEHOLDER_RE.fullmatch(token.strip())
        if not match:
            return None
        return self.fragments[int(match.group(1))]

    def is_comment(self, token: str) -> bool:
        match = PLACEHOLDER_RE.fullmatch(token.strip())
        return bool(match) and int(match.group(1)) in self.comment_ids

    def string_value(self, token: str) -> Optional[str]:
        """Unquoted content of a string-literal placeholder, or None"""
        if self.is_comment(token):
            return None
        literal = self.fragment(token)
        if literal is None or not literal.endswith("'"):
            return None
        start = literal.index("'")
        return literal[start + 1:-1].replace("''", "'")

    def stash(self, literal: str) -> str:
        """Register new literal text and return its placeholder"""
        self.fragments.append(literal)
        return f"{PLACEHOLDER_OPEN}{len(self.fragments) - 1}{PLACEHOLDER_CLOSE}"

    def string(self, value: str) -> str:
        """Stash ``value`` as a quoted string literal"""
        return self.stash(quote_string(value))

    def restore(self, text: Optional[str] = None) -> str:
        source = self.text if text is None else text
        # Stashed fragments never contain placeholders, one pass suffices
        return PLACEHOLDER_RE.sub(lambda m: self.fragments[int(m.group(1))], source)


def mask(sql: str) -> MaskedSQL:
    """Tokenize ``sql`` and mask string literals and comments"""
    parts = []
    masked = MaskedSQL(text="")
    for ttype, value in sqlparse.lexer.tokenize(sql):
        if ttype in T.Comment:
            masked.comment_ids.add(len(masked.fragments))
            parts.append(masked.stash(value))
        elif ttype in T.String.Single:
            parts.append(masked.stash(value))
        else:
            parts.append(value)
    masked.text = "".join(parts)
    return masked


def masked_pass(func: Callable) -> Callable:
    """
    Adapt ``func(text, masked, diagnostics, **config)`` to a rewrite pass.

    The wrapped pass takes the raw statement, hands the masked text to
    ``func`` and restores literals in whatever ``func`` returns.
    """

    @functools.wraps(func)
    def wrapper(sql: str, diagnostics, **config) -> str:
        masked = mask(sql)
        return masked.restore(func(masked.text, masked, diagnostics, **config))

    return wrapper


def find_closing(text: str, open_index: int) -> int:
    """Index of the parenthesis closing the one at ``open_index``, or -1"""
    depth = 0
    index = open_index
    length = len(text)
    while index < length:
        char = text[index]
        if char == '"':
            end = text.find('"', index + 1)
            if end < 0:
                return -1
            index = end + 1
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return -1


def find_opening(text: str, close_index: int) -> int:
    """Index of the parenthesis opening the one at ``close_index``, or -1"""
    depth = 0
    for index in range(close_index, -1, -1):
        char = text[index]
        if char == ")":
            depth += 1
        elif char == "(":
            depth -= 1
            if depth == 0:
                return index
    return -1


def depth_map(text: str) -> List[int]:
    """Parenthesis nesting depth at every character position"""
    depths = []
    depth = 0
    in_quote = False
    for char in text:
        if char == '"':
            in_quote = not in_quote
        elif not in_quote and char == "(":
            depths.append(depth)
            depth += 1
            continue
        elif not in_quote and char == ")":
            depth = max(depth - 1, 0)
        depths.append(depth)
    return depths


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on ``separator`` occurrences outside parentheses and quotes"""
    pieces = []
    depth = 0
    in_quote = False
    start = 0
    for index, char in enumerate(text):
        if char == '"':
            in_quote = not in_quote
        elif in_quote:
            continue
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char == separator and depth == 0:
            pieces.append(text[start:index])
            start = index + 1
    pieces.append(text[start:])
    return pieces


def find_top_level(text: str, pattern: "re.Pattern", start: int = 0) -> List[re.Match]:
    """All matches of ``pattern`` that sit at parenthesis depth 0"""
    depths = depth_map(text)
    return [m for m in pattern.finditer(text, start) if m.start() < len(depths) and depths[m.start()] == 0]


@dataclass
class FunctionCall:
    name: str
    start: int
    end: int
    args_text: str
    source: str = ""

    @property
    def args(self) -> List[str]:
        if not self.args_text.strip():
            return []
        return [arg.strip() for arg in split_top_level(self.args_text)]


def call_pattern(names: Iterable[str]) -> "re.Pattern":
    alternatives = "|".join(re.escape(name) for name in sorted(names, key=len, reverse=True))
    return re.compile(r"(?<![\w.$\"])(" + alternatives + r")\s*\(", re.IGNORECASE)


def rewrite_calls(text: str, names: Iterable[str], build: Callable[[FunctionCall], Optional[str]]) -> str:
    """
    Replace calls to any of ``names`` with ``build(call)``.

    Calls are visited right to left so nested calls are rewritten before the
    calls that contain them. ``build`` returns None to leave a call as is.
    """
    pattern = call_pattern(names)
    for match in reversed(list(pattern.finditer(text))):
        open_index = match.end() - 1
        close_index = find_closing(text, open_index)
        if close_index < 0:
            continue
        call = FunctionCall(
            name=match.group(1),
            start=match.start(),
            end=close_index + 1,
            args_text=text[open_index + 1:close_index],
            source=text[match.start():close_index + 1],
        )
        replacement = build(call)
        if replacement is None:
            continue
        text = text[:call.start] + replacement + text[call.end:]
    return text


def split_statement_tail(text: str, masked: Optional[MaskedSQL] = None) -> Tuple[str, str]:
    """
    Split a statement into its body and its tail.

    The tail is trailing whitespace, the terminating semicolon and any
    trailing comments, so clauses can be appended before it.
    """
    end = len(text)
    while end > 0:
        stripped = text[:end].rstrip()
        if stripped.endswith(";"):
            end = len(stripped) - 1
            continue
        match = re.search(PLACEHOLDER_OPEN + r"\d+" + PLACEHOLDER_CLOSE + r"$", stripped)
        if match and masked is not None and masked.is_comment(match.group(0)):
            end = match.start()
            continue
        end = len(stripped)
        break
    return text[:end], text[end:]


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace and tidy spacing around punctuation"""
    text = re.sub(r"\s+", " ", text).strip()
    text = re.sub(r"\(\s+", "(", text)
    text = re.sub(r"\s+([,)])", r"\1", text)
    text = re.sub(r"\s+;", ";", text)
    return text
