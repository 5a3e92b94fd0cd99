"""Aggregation interceptor and the per-owner relationship accessor.

``engine.related(user, "posts")`` returns an Association: a query over the
target rows of one owner that exposes count/sum/average/maximum/minimum.
Every aggregate goes through the AggregationInterceptor:

1. owner not loaded with eager aggregations -> plain query, nothing cached
2. cache hit -> cached value, no query
3. owner has live siblings -> one grouped query fills the whole batch
4. otherwise -> single-owner query, cached
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from eager_aggregates.aggregation.config import AggregationConfig
from eager_aggregates.aggregation.keys import CacheKey, CacheKeyBuilder
from eager_aggregates.aggregation.planner import BatchQueryPlanner
from eager_aggregates.aggregation.registry import BatchRegistry
from eager_aggregates.core.enums import AggregateFunction
from eager_aggregates.core.exceptions import AggregateArgumentError
from eager_aggregates.mapping.plan import RelationshipDescriptor
from eager_aggregates.query.predicates import Comparison, Predicate, RawPredicate
from eager_aggregates.query.relation import Relation

if TYPE_CHECKING:
    from eager_aggregates.core.engine import Engine

_MISSING = object()


class AggregationInterceptor:
    """Entry point for every aggregate requested through an Association."""

    def __init__(
        self,
        engine: Engine,
        config: AggregationConfig | None = None,
        keys: CacheKeyBuilder | None = None,
    ) -> None:
        self._engine = engine
        self._config = config or AggregationConfig()
        self._keys = keys or CacheKeyBuilder()
        self._planner = BatchQueryPlanner(engine, self._config)

    @property
    def config(self) -> AggregationConfig:
        return self._config

    def cache_key(
        self,
        association: Association,
        function: AggregateFunction,
        column: str | None,
        distinct: bool,
    ) -> CacheKey:
        return self._keys.build(
            association.descriptor.name,
            function,
            (column, distinct),
            association.relation.predicates,
            association.relation.joins,
        )

    def _check_grouping_filters(self, association: Association) -> None:
        # the owner restriction replaces comparisons on the grouping column;
        # raw fragments cannot be replaced, so they may not name it
        grouping = association.descriptor.grouping_column()
        for predicate in association.relation.predicates:
            if isinstance(predicate, RawPredicate) and predicate.references(grouping):
                raise AggregateArgumentError(
                    f"Raw predicate {predicate.sql!r} filters on grouping column "
                    f"{grouping!r}; use where() so the owner restriction can replace it"
                )

    def _apply_default(self, function: AggregateFunction, value: Any) -> Any:
        if value is None:
            return function.default(self._config.default_sum)
        return value

    def fetch_single(
        self,
        association: Association,
        function: AggregateFunction,
        column: str | None,
        distinct: bool,
    ) -> Any:
        """Aggregate over the rows of this owner only."""
        relation = association.owner_relation()
        value = self._engine.calculate(relation, function, column, distinct)
        return self._apply_default(function, value)

    def calculate(
        self,
        association: Association,
        function: AggregateFunction,
        column: str | None = None,
        distinct: bool = False,
    ) -> Any:
        logger = self._config.logger
        owner = association.owner
        descriptor = association.descriptor
        if column is not None:
            column = association.relation.qualify(column)
        elif function.requires_column:
            raise AggregateArgumentError(f"{function.value}() requires a column")
        self._check_grouping_filters(association)

        cache = BatchRegistry.cache_for(owner)
        if cache is None:
            return self.fetch_single(association, function, column, distinct)

        key = self.cache_key(association, function, column, distinct)
        value = cache.get(key, _MISSING)
        if value is not _MISSING:
            logger.debug("Cache hit %s.%s on %r", descriptor.name, function.value, key)
            return value
        logger.debug("Cache miss %s.%s on %r", descriptor.name, function.value, key)

        batch = BatchRegistry.batch_for(owner)
        if batch is not None and len(batch) > 1:
            self._planner.fill(
                descriptor, association.relation, function, column, distinct, batch, key
            )
            value = cache.get(key, _MISSING)
            if value is not _MISSING:
                return value

        logger.debug("Single fetch %s.%s", descriptor.name, function.value)
        value = self.fetch_single(association, function, column, distinct)
        cache.set(key, value)
        return value


class Association:
    """Aggregate proxy over the target rows of one owner's relationship.

    The wrapped relation holds the target table, the joins of a through
    chain and the caller's filters; the predicate tying rows to this owner
    is only added when a single-owner query runs.
    """

    def __init__(
        self,
        owner: Any,
        descriptor: RelationshipDescriptor,
        relation: Relation,
        interceptor: AggregationInterceptor,
    ) -> None:
        self.owner = owner
        self.descriptor = descriptor
        self.relation = relation
        self._interceptor = interceptor

    def __repr__(self) -> str:
        owner_name = type(self.owner).__name__
        return f"Association({owner_name}.{self.descriptor.name}, {self.relation!r})"

    def _spawn(self, relation: Relation) -> Association:
        return Association(self.owner, self.descriptor, relation, self._interceptor)

    # --- Building ---

    def where(self, *predicates: Predicate, **conditions: Any) -> Association:
        return self._spawn(self.relation.where(*predicates, **conditions))

    def where_raw(self, sql: str, **params: Any) -> Association:
        return self._spawn(self.relation.where_raw(sql, **params))

    def scope(self, name: str) -> Association:
        return self._spawn(self.relation.scope(name))

    def merge(self, other: Relation) -> Association:
        return self._spawn(self.relation.merge(other))

    def owner_relation(self) -> Relation:
        """The relation restricted to this owner's rows."""
        grouping = self.descriptor.grouping_column()
        value = self.descriptor.owner_value(self.owner)
        if value is None:
            # an owner without a key has no rows
            return self.relation.unscope(grouping).where(Comparison(grouping, "IN", ()))
        return self.relation.unscope(grouping).where(Comparison(grouping, "=", value))

    # --- Executing ---

    def all(self) -> Any:
        return self.owner_relation().all()

    def calculate(
        self,
        operation: str | AggregateFunction,
        column: str | None = None,
        *,
        distinct: bool = False,
    ) -> Any:
        """Run *operation*; functions other than the five batched ones are not intercepted."""
        if not AggregateFunction.is_supported(operation):
            return self.owner_relation().calculate(operation, column, distinct=distinct)
        function = AggregateFunction.parse(operation)
        return self._interceptor.calculate(self, function, column, distinct)

    def count(self, column: str | None = None, *, distinct: bool = False) -> Any:
        return self.calculate(AggregateFunction.COUNT, column, distinct=distinct)

    def sum(self, column: str, *, distinct: bool = False) -> Any:
        return self.calculate(AggregateFunction.SUM, column, distinct=distinct)

    def average(self, column: str, *, distinct: bool = False) -> Any:
        return self.calculate(AggregateFunction.AVERAGE, column, distinct=distinct)

    def maximum(self, column: str) -> Any:
        return self.calculate(AggregateFunction.MAXIMUM, column)

    def minimum(self, column: str) -> Any:
        return self.calculate(AggregateFunction.MINIMUM, column)
