"""Cache key derivation.

A key describes an aggregate request shape: relationship, function,
arguments, the caller's filter predicates and any extra joins. It never
depends on object identity or on the order in which predicates or joins were
applied.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, NamedTuple

from eager_aggregates.core.enums import AggregateFunction
from eager_aggregates.query.predicates import Predicate

if TYPE_CHECKING:
    from eager_aggregates.query.relation import Join


class CacheKey(NamedTuple):
    """Hashable description of one aggregate request shape."""

    relationship: str
    function: str
    arguments: tuple[Any, ...]
    predicates: str
    joins: str = ""


class CacheKeyBuilder:
    """Derives CacheKeys from aggregate requests."""

    separator = "|"

    def predicate_signature(self, predicates: Iterable[Predicate]) -> str:
        """Sorted, joined canonical signatures of *predicates*."""
        return self.separator.join(sorted(p.signature() for p in predicates))

    def join_signature(self, joins: Iterable[Join]) -> str:
        """Sorted, joined SQL of *joins*; inner joins filter rows like predicates."""
        return self.separator.join(sorted({j.to_sql() for j in joins}))

    def build(
        self,
        relationship: str,
        function: AggregateFunction,
        arguments: tuple[Any, ...],
        predicates: Iterable[Predicate],
        joins: Iterable[Join] = (),
    ) -> CacheKey:
        return CacheKey(
            relationship=relationship,
            function=function.value,
            arguments=tuple(arguments),
            predicates=self.predicate_signature(predicates),
            joins=self.join_signature(joins),
        )
