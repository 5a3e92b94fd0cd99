"""Unit tests for BatchQueryPlanner."""

from __future__ import annotations

from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from eager_aggregates.aggregation.config import AggregationConfig
from eager_aggregates.aggregation.keys import CacheKeyBuilder
from eager_aggregates.aggregation.planner import BatchQueryPlanner
from eager_aggregates.aggregation.registry import Batch, BatchRegistry
from eager_aggregates.core.enums import AggregateFunction
from eager_aggregates.core.exceptions import QueryExecutionError
from eager_aggregates.mapping.plan import Link, RelationshipDescriptor
from eager_aggregates.query.predicates import Comparison
from eager_aggregates.query.relation import Relation


@dataclass
class Owner:
    id: int | None


class Target:
    pass


POSTS = RelationshipDescriptor(
    name="posts",
    target_class=Target,
    target_table="posts",
    owner_key="id",
    links=(Link("posts", "user_id", "id"),),
)

COUNT_KEY = CacheKeyBuilder().build("posts", AggregateFunction.COUNT, (None, False), ())


@pytest.fixture
def engine() -> MagicMock:
    return MagicMock()


@pytest.fixture
def planner(engine: MagicMock) -> BatchQueryPlanner:
    return BatchQueryPlanner(engine, AggregationConfig())


def _batch(*ids: int | None) -> Batch:
    return BatchRegistry().tag([Owner(i) for i in ids])


class TestOwnerKeys:
    def test_distinct_non_null_in_order(self, planner: BatchQueryPlanner) -> None:
        owners = Batch([Owner(3), Owner(1), Owner(None), Owner(3), Owner(2)])
        assert planner.owner_keys(POSTS, owners) == [3, 1, 2]


class TestBatchRelation:
    def test_adds_in_predicate(self, planner: BatchQueryPlanner) -> None:
        relation = planner.batch_relation(POSTS, Relation("posts").where(published=True), [1, 2])
        assert relation.predicates == (
            Comparison("posts.published", "=", True),
            Comparison("posts.user_id", "IN", (1, 2)),
        )

    def test_replaces_grouping_predicates(self, planner: BatchQueryPlanner) -> None:
        relation = planner.batch_relation(POSTS, Relation("posts").where(user_id=9), [1])
        assert relation.predicates == (Comparison("posts.user_id", "IN", (1,)),)


class TestFill:
    def test_one_grouped_query(self, planner: BatchQueryPlanner, engine: MagicMock) -> None:
        batch = _batch(1, 2, 3)
        engine.calculate_grouped.return_value = {1: 3, 2: 2}

        filled = planner.fill(
            POSTS, Relation("posts"), AggregateFunction.COUNT, None, False, batch, COUNT_KEY
        )

        assert filled == 3
        engine.calculate_grouped.assert_called_once()
        relation, function, group_by, column, distinct = engine.calculate_grouped.call_args.args
        assert relation.predicates == (Comparison("posts.user_id", "IN", (1, 2, 3)),)
        assert function is AggregateFunction.COUNT
        assert group_by == "posts.user_id"
        assert column is None
        assert distinct is False
        assert [BatchRegistry.cache_for(o).get(COUNT_KEY) for o in batch] == [3, 2, 0]

    @pytest.mark.parametrize(
        ("function", "expected"),
        [
            (AggregateFunction.SUM, 0),
            (AggregateFunction.AVERAGE, None),
            (AggregateFunction.MAXIMUM, None),
            (AggregateFunction.MINIMUM, None),
        ],
    )
    def test_defaults_for_owners_without_rows(
        self,
        planner: BatchQueryPlanner,
        engine: MagicMock,
        function: AggregateFunction,
        expected: object,
    ) -> None:
        batch = _batch(1, 2)
        engine.calculate_grouped.return_value = {1: 10}
        key = CacheKeyBuilder().build("posts", function, ("posts.score", False), ())

        planner.fill(POSTS, Relation("posts"), function, "posts.score", False, batch, key)

        cache = BatchRegistry.cache_for(batch[1])
        assert cache.contains(key)
        assert cache.get(key) == expected

    def test_custom_default_sum(self, engine: MagicMock) -> None:
        planner = BatchQueryPlanner(engine, AggregationConfig(default_sum=0.0))
        batch = _batch(1, 2)
        engine.calculate_grouped.return_value = {}
        key = CacheKeyBuilder().build("posts", AggregateFunction.SUM, ("posts.score", False), ())

        planner.fill(
            POSTS, Relation("posts"), AggregateFunction.SUM, "posts.score", False, batch, key
        )

        assert isinstance(BatchRegistry.cache_for(batch[0]).get(key), float)

    def test_null_group_value_uses_default(
        self, planner: BatchQueryPlanner, engine: MagicMock
    ) -> None:
        batch = _batch(1, 2)
        engine.calculate_grouped.return_value = {1: None, 2: 4}

        planner.fill(
            POSTS, Relation("posts"), AggregateFunction.COUNT, None, False, batch, COUNT_KEY
        )

        assert BatchRegistry.cache_for(batch[0]).get(COUNT_KEY) == 0

    def test_owner_without_key(self, planner: BatchQueryPlanner, engine: MagicMock) -> None:
        batch = _batch(1, None)
        engine.calculate_grouped.return_value = {1: 2}

        planner.fill(
            POSTS, Relation("posts"), AggregateFunction.COUNT, None, False, batch, COUNT_KEY
        )

        relation = engine.calculate_grouped.call_args.args[0]
        assert relation.predicates == (Comparison("posts.user_id", "IN", (1,)),)
        assert BatchRegistry.cache_for(batch[1]).get(COUNT_KEY) == 0

    def test_no_keys_no_query(self, planner: BatchQueryPlanner, engine: MagicMock) -> None:
        batch = _batch(None, None)

        filled = planner.fill(
            POSTS, Relation("posts"), AggregateFunction.COUNT, None, False, batch, COUNT_KEY
        )

        assert filled == 2
        engine.calculate_grouped.assert_not_called()
        assert BatchRegistry.cache_for(batch[0]).get(COUNT_KEY) == 0

    def test_untagged_owners_skipped(self, planner: BatchQueryPlanner, engine: MagicMock) -> None:
        batch = Batch([Owner(1), Owner(2)])
        BatchRegistry().tag([batch[0]])
        engine.calculate_grouped.return_value = {1: 1, 2: 1}

        filled = planner.fill(
            POSTS, Relation("posts"), AggregateFunction.COUNT, None, False, batch, COUNT_KEY
        )

        assert filled == 1
        assert BatchRegistry.cache_for(batch[1]) is None

    def test_storage_error_propagates(
        self, planner: BatchQueryPlanner, engine: MagicMock
    ) -> None:
        batch = _batch(1, 2)
        engine.calculate_grouped.side_effect = QueryExecutionError("SELECT", "disk I/O error")

        with pytest.raises(QueryExecutionError, match="disk I/O error"):
            planner.fill(
                POSTS, Relation("posts"), AggregateFunction.COUNT, None, False, batch, COUNT_KEY
            )

        assert all(BatchRegistry.cache_size(o) == 0 for o in batch)

    def test_logs_batch_fetch(
        self,
        planner: BatchQueryPlanner,
        engine: MagicMock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        caplog.set_level("DEBUG", logger="eager_aggregates.aggregation")
        engine.calculate_grouped.return_value = {}

        planner.fill(
            POSTS, Relation("posts"), AggregateFunction.COUNT, None, False, _batch(1, 2), COUNT_KEY
        )

        assert "Batch fetch posts.count for 2 owners (2 keys)" in caplog.text
