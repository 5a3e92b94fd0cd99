"""Batch query planner.

Computes one aggregate request shape for every owner of a batch with a
single grouped query, then writes each owner's value into its cache.

    SELECT posts.user_id AS group_key, COUNT(*) AS value
    FROM posts
    WHERE posts.published = :p_0 AND posts.user_id IN (:p_1, :p_2, :p_3)
    GROUP BY posts.user_id

For a through relationship the target table is joined back along the link
chain and the grouping column is the first hop's foreign key.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from eager_aggregates.aggregation.config import AggregationConfig
from eager_aggregates.aggregation.keys import CacheKey
from eager_aggregates.aggregation.registry import Batch, BatchRegistry
from eager_aggregates.core.enums import AggregateFunction
from eager_aggregates.mapping.plan import RelationshipDescriptor
from eager_aggregates.query.predicates import Comparison
from eager_aggregates.query.relation import Relation

if TYPE_CHECKING:
    from eager_aggregates.core.engine import Engine


class BatchQueryPlanner:
    """Fills the caches of a whole batch for one request shape."""

    def __init__(self, engine: Engine, config: AggregationConfig) -> None:
        self._engine = engine
        self._config = config

    def owner_keys(self, descriptor: RelationshipDescriptor, owners: Batch) -> list[Any]:
        """Distinct, non-null owner key values in batch order."""
        seen: set[Any] = set()
        keys: list[Any] = []
        for owner in owners:
            value = descriptor.owner_value(owner)
            if value is None or value in seen:
                continue
            seen.add(value)
            keys.append(value)
        return keys

    def batch_relation(
        self,
        descriptor: RelationshipDescriptor,
        relation: Relation,
        keys: list[Any],
    ) -> Relation:
        """Replace any predicate on the grouping column with ``IN (keys)``."""
        grouping = descriptor.grouping_column()
        return relation.unscope(grouping).where(Comparison(grouping, "IN", keys))

    def fetch(
        self,
        descriptor: RelationshipDescriptor,
        relation: Relation,
        function: AggregateFunction,
        column: str | None,
        distinct: bool,
        keys: list[Any],
    ) -> dict[Any, Any]:
        """Run the grouped query; maps grouping value to aggregate value."""
        grouping = descriptor.grouping_column()
        batched = self.batch_relation(descriptor, relation, keys)
        return self._engine.calculate_grouped(batched, function, grouping, column, distinct)

    def fill(
        self,
        descriptor: RelationshipDescriptor,
        relation: Relation,
        function: AggregateFunction,
        column: str | None,
        distinct: bool,
        batch: Batch,
        key: CacheKey,
    ) -> int:
        """Compute the request for every owner in *batch* and cache it under *key*.

        Returns the number of owners whose cache was written. Storage errors
        propagate; caches written before the error keep their values.
        """
        logger = self._config.logger
        keys = self.owner_keys(descriptor, batch)
        if keys:
            logger.debug(
                "Batch fetch %s.%s for %d owners (%d keys)",
                descriptor.name,
                function.value,
                len(batch),
                len(keys),
            )
            results = self.fetch(descriptor, relation, function, column, distinct, keys)
        else:
            results = {}

        default = function.default(self._config.default_sum)
        filled = 0
        for owner in batch:
            cache = BatchRegistry.cache_for(owner)
            if cache is None:
                continue
            value = results.get(descriptor.owner_value(owner), None)
            cache.set(key, default if value is None else value)
            filled += 1
        return filled
