"""Tagged predicate types.

Every filter applied to a Relation is one of these closed types. Besides
rendering itself to SQL, each predicate produces a canonical ``signature()``
used to build cache keys: two independently built but equal predicates share
a signature, and any semantic difference changes it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from eager_aggregates.core.exceptions import AggregateArgumentError
from eager_aggregates.core.params import Bindings
from eager_aggregates.core.sanitizer import (
    DEFAULT_SANITIZER,
    references_column,
    validate_identifier,
)

# operator -> kind used in signatures
OPERATORS: dict[str, str] = {
    "=": "eq",
    "!=": "ne",
    "<": "lt",
    "<=": "lte",
    ">": "gt",
    ">=": "gte",
    "IN": "in",
    "NOT IN": "not_in",
    "IS NULL": "is_null",
    "IS NOT NULL": "is_not_null",
}

_UNARY = frozenset({"IS NULL", "IS NOT NULL"})
_LIST = frozenset({"IN", "NOT IN"})


def _canonical_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "(" + ",".join(_canonical_value(v) for v in value) + ")"
    if isinstance(value, (set, frozenset)):
        return "{" + ",".join(sorted(_canonical_value(v) for v in value)) + "}"
    return repr(value)


class Predicate:
    """Base class for filter predicates.

    Subclasses that cannot be decomposed fall back to the type tag as their
    signature, which is coarser but never unstable.
    """

    @property
    def column(self) -> str | None:
        """Qualified column the predicate constrains, if known."""
        return None

    def references(self, column: str) -> bool:
        """Whether the predicate mentions the qualified *column*."""
        return self.column == column

    def signature(self) -> str:
        return type(self).__name__

    def to_sql(self, bindings: Bindings) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Comparison(Predicate):
    """``<column> <operator> <value>`` with a qualified column name."""

    target: str
    operator: str
    value: Any = None

    def __post_init__(self) -> None:
        validate_identifier(self.target)
        operator = self.operator.upper()
        if operator not in OPERATORS:
            raise AggregateArgumentError(f"Unsupported operator: {self.operator!r}")
        object.__setattr__(self, "operator", operator)
        if operator in _LIST:
            if isinstance(self.value, (str, bytes)) or not hasattr(self.value, "__iter__"):
                raise AggregateArgumentError(f"{operator} requires a collection of values")
            object.__setattr__(self, "value", tuple(self.value))

    @classmethod
    def equals(cls, column: str, value: Any) -> Comparison:
        """Build ``=``, ``IS NULL`` or ``IN`` depending on *value*."""
        if value is None:
            return cls(column, "IS NULL")
        if isinstance(value, (list, tuple, set, frozenset)):
            return cls(column, "IN", value)
        return cls(column, "=", value)

    @property
    def column(self) -> str:
        return self.target

    def signature(self) -> str:
        kind = OPERATORS[self.operator]
        if self.operator in _UNARY:
            return f"Comparison:{kind}:{self.target}"
        if self.operator in _LIST:
            # membership ignores order and repeats
            members = ",".join(sorted({_canonical_value(v) for v in self.value}))
            return f"Comparison:{kind}:{self.target}:({members})"
        return (
            f"Comparison:{kind}:{self.target}:"
            f"{type(self.value).__name__}:{_canonical_value(self.value)}"
        )

    def to_sql(self, bindings: Bindings) -> str:
        if self.operator in _UNARY:
            return f"{self.target} {self.operator}"
        if self.operator in _LIST:
            if not self.value:
                # IN () is invalid SQL; an empty IN matches nothing.
                return "1 = 0" if self.operator == "IN" else "1 = 1"
            placeholders = ", ".join(bindings.bind(v) for v in self.value)
            return f"{self.target} {self.operator} ({placeholders})"
        return f"{self.target} {self.operator} {bindings.bind(self.value)}"


@dataclass(frozen=True)
class RawPredicate(Predicate):
    """A sanitized SQL fragment with its own ``:name`` parameters."""

    sql: str
    params: tuple[tuple[str, Any], ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "sql", DEFAULT_SANITIZER.sanitize(self.sql))
        object.__setattr__(self, "params", tuple(sorted(dict(self.params).items())))

    @classmethod
    def of(cls, sql: str, **params: Any) -> RawPredicate:
        return cls(sql, tuple(params.items()))

    def references(self, column: str) -> bool:
        return references_column(self.sql, column)

    def signature(self) -> str:
        normalized = " ".join(self.sql.split())
        bound = ",".join(f"{k}={_canonical_value(v)}" for k, v in self.params)
        return f"RawPredicate:{normalized}:{bound}"

    def to_sql(self, bindings: Bindings) -> str:
        for name, value in self.params:
            bindings.bind_named(name, value)
        return f"({self.sql})"
