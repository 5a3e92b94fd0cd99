"""SQL parameter binding and normalization.

Compiled queries always use ``:name`` placeholders. They are converted to the
driver-specific format right before execution, leaving string literals and
PostgreSQL ``::typecast`` syntax untouched.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from eager_aggregates.core.exceptions import AggregateArgumentError

# Matches :name but not ::typecast and not inside words
# Negative lookbehind for : (handles ::), \w (handles mid-word colons)
_PARAM_PATTERN = re.compile(r"(?<![:\w]):([a-zA-Z_]\w*)")

# Matches single-quoted string literals (with escaped quotes handled)
_STRING_LITERAL_PATTERN = re.compile(r"'(?:[^'\\]|\\.)*'")

_GENERATED_PREFIX = "p_"


class Bindings:
    """Collects parameter values while a statement is being compiled.

    Generated placeholders are named ``p_0``, ``p_1``...; raw predicate
    fragments bring their own names, which must not collide.
    """

    def __init__(self) -> None:
        self._params: dict[str, Any] = {}
        self._counter = 0

    def bind(self, value: Any) -> str:
        """Register *value* under a generated name and return its placeholder."""
        name = f"{_GENERATED_PREFIX}{self._counter}"
        self._counter += 1
        self._params[name] = value
        return f":{name}"

    def bind_named(self, name: str, value: Any) -> None:
        if name.startswith(_GENERATED_PREFIX):
            raise AggregateArgumentError(
                f"Parameter name '{name}' is reserved for generated placeholders"
            )
        if name in self._params and self._params[name] != value:
            raise AggregateArgumentError(
                f"Parameter '{name}' is bound twice with different values"
            )
        self._params[name] = value

    @property
    def params(self) -> dict[str, Any]:
        return dict(self._params)


def normalize_params(sql: str, paramstyle: str) -> str:
    """Convert :name parameters to the target param style.

    Args:
        sql: SQL string with :name parameters.
        paramstyle: Target style - 'named' (no conversion) or 'pyformat' (%(name)s).

    Returns:
        SQL with parameters converted to the target style.
    """
    if paramstyle == "named":
        return sql
    return _convert_to_pyformat(sql)


@lru_cache(maxsize=256)
def _convert_to_pyformat(sql: str) -> str:
    """Convert :name params to %(name)s, preserving string literals."""
    parts: list[str] = []
    last_end = 0

    for match in _STRING_LITERAL_PATTERN.finditer(sql):
        start, end = match.span()
        if start > last_end:
            parts.append(_PARAM_PATTERN.sub(r"%(\1)s", sql[last_end:start]))
        parts.append(match.group())
        last_end = end

    if last_end < len(sql):
        parts.append(_PARAM_PATTERN.sub(r"%(\1)s", sql[last_end:]))

    return "".join(parts)
