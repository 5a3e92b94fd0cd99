"""Query building - tagged predicates and the Relation builder."""

from __future__ import annotations

from eager_aggregates.query.predicates import Comparison, Predicate, RawPredicate
from eager_aggregates.query.relation import Join, Relation

__all__ = [
    "Relation",
    "Join",
    "Predicate",
    "Comparison",
    "RawPredicate",
]
