"""Raw predicate and identifier sanitizer.

Table and column names are interpolated into compiled SQL, so they must be
plain identifiers. Raw predicate fragments (``where_raw("score > :min")``) are
embedded inside ``( ... )`` in a WHERE clause, so they are checked for
comments, statement terminators and unbalanced parentheses.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from eager_aggregates.core.exceptions import InvalidIdentifierError, SQLSanitizationError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

_QUOTES = {"'": "string", '"': "identifier", "`": "identifier"}


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------


def validate_identifier(name: str) -> str:
    """Return *name* if it is ``column`` or ``table.column``, else raise."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise InvalidIdentifierError(str(name))
    return name


def references_column(sql: str, column: str) -> bool:
    """Whether *sql* names *column* (``table.column``) bare or qualified, outside literals."""
    table, _, bare = validate_identifier(column).rpartition(".")
    prefix = rf"(?:{re.escape(table)}\.)?" if table else ""
    pattern = re.compile(rf"(?<![\w.:]){prefix}{re.escape(bare)}(?!\w)", re.IGNORECASE)
    return any(kind == "code" and pattern.search(content) for kind, content in _tokenize(sql))


# ---------------------------------------------------------------------------
# Internal tokenizer
# ---------------------------------------------------------------------------


def _scan_quoted(sql: str, start: int) -> int:
    """Return the index just past the quoted token opening at *start*.

    Doubled quote characters are escapes. Raises on an unterminated token.
    """
    quote = sql[start]
    n = len(sql)
    j = start + 1
    while j < n:
        if sql[j] == quote:
            if j + 1 < n and sql[j + 1] == quote:
                j += 2
                continue
            return j + 1
        j += 1
    kind = "string literal" if quote == "'" else "quoted identifier"
    raise SQLSanitizationError(f"Unterminated {kind} detected in SQL")


def _tokenize(sql: str) -> list[tuple[str, str]]:
    """Split *sql* into ``('string', …)``, ``('identifier', …)`` and ``('code', …)``."""
    tokens: list[tuple[str, str]] = []
    i = 0
    last = 0
    while i < len(sql):
        if sql[i] in _QUOTES:
            if i > last:
                tokens.append(("code", sql[last:i]))
            end = _scan_quoted(sql, i)
            tokens.append((_QUOTES[sql[i]], sql[i:end]))
            i = last = end
        else:
            i += 1
    if last < len(sql):
        tokens.append(("code", sql[last:]))
    return tokens


def _strip_comments_in_code(code: str) -> str:
    """Remove ``--`` line comments and ``/* */`` block comments from a code segment."""
    result: list[str] = []
    i = 0
    n = len(code)

    while i < n:
        if code[i : i + 2] == "--":
            j = code.find("\n", i)
            if j == -1:
                break
            result.append("\n")
            i = j + 1
        elif code[i : i + 2] == "/*":
            j = code.find("*/", i + 2)
            if j == -1:
                break
            result.append(" ")
            i = j + 2
        else:
            result.append(code[i])
            i += 1

    return "".join(result)


# ---------------------------------------------------------------------------
# Individual sanitization checks
# ---------------------------------------------------------------------------


def _strip_comments(sql: str) -> str:
    """Remove SQL comments while preserving string literals and identifiers."""
    parts: list[str] = []
    for kind, content in _tokenize(sql):
        if kind == "code":
            parts.append(_strip_comments_in_code(content))
        else:
            parts.append(content)
    return "".join(parts)


def _check_no_terminator(sql: str) -> None:
    """Raise if *sql* contains a ``;`` outside literals."""
    for kind, content in _tokenize(sql):
        if kind == "code" and ";" in content:
            raise SQLSanitizationError("Statement terminators are not permitted in predicates")


def _check_balanced(sql: str) -> None:
    """Raise if parentheses outside literals do not balance."""
    depth = 0
    for kind, content in _tokenize(sql):
        if kind != "code":
            continue
        for ch in content:
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth < 0:
                    raise SQLSanitizationError("Unbalanced parentheses in predicate")
    if depth != 0:
        raise SQLSanitizationError("Unbalanced parentheses in predicate")


# ---------------------------------------------------------------------------
# Public class
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SQLSanitizer:
    """Configurable sanitizer for raw predicate fragments.

    **IMPORTANT SECURITY WARNING:**
        This does NOT protect against SQL injection if user-provided data is
        concatenated into the fragment. Pass values as parameters:

            relation.where_raw("score > :min_score", min_score=user_input)

    Attributes:
        strip_comments: Strip ``--`` and ``/* */`` comments.
        block_terminators: Reject fragments containing ``;``.
        require_balanced: Reject fragments whose parentheses do not balance,
            which could otherwise escape the surrounding ``( ... )``.
    """

    strip_comments: bool = True
    block_terminators: bool = True
    require_balanced: bool = True

    def sanitize(self, fragment: str) -> str:
        """Apply all configured checks and return the cleaned, stripped fragment.

        Raises:
            SQLSanitizationError: If any enabled check fails or the fragment is empty.
        """
        if self.strip_comments:
            fragment = _strip_comments(fragment)
        if self.block_terminators:
            _check_no_terminator(fragment)
        if self.require_balanced:
            _check_balanced(fragment)
        fragment = fragment.strip()
        if not fragment:
            raise SQLSanitizationError("Empty predicate")
        return fragment


DEFAULT_SANITIZER = SQLSanitizer()
