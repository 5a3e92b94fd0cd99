"""Unit tests for Batch, BatchRegistry and the AggregationOwner mixin."""

from __future__ import annotations

import gc
from dataclasses import dataclass

import pytest

from eager_aggregates.aggregation.cache import CacheStore
from eager_aggregates.aggregation.registry import AggregationOwner, Batch, BatchRegistry
from eager_aggregates.core.exceptions import OwnerNotTaggableError


@dataclass
class Owner(AggregationOwner):
    id: int


@dataclass(frozen=True)
class FrozenOwner:
    id: int


class SlottedOwner:
    __slots__ = ("id",)

    def __init__(self, id: int) -> None:
        self.id = id


class SlottedRegistryOwner:
    __slots__ = ("id", "aggregation_cache", "batch_ref")

    def __init__(self, id: int) -> None:
        self.id = id


class TestBatch:
    def test_sequence(self) -> None:
        owners = [Owner(1), Owner(2), Owner(3)]
        batch = Batch(owners)
        assert len(batch) == 3
        assert batch[0] is owners[0]
        assert batch[1:] == (owners[1], owners[2])
        assert list(batch) == owners
        assert owners[2] in batch

    def test_repr(self) -> None:
        assert repr(Batch([Owner(1)])) == "Batch(size=1)"

    def test_iteration_keeps_batch_alive(self) -> None:
        owners = [Owner(1), Owner(2)]
        seen: list[Owner] = []
        for owner in BatchRegistry().tag(owners):
            gc.collect()
            assert BatchRegistry.batch_for(owner) is not None
            seen.append(owner)
        assert seen == owners

    def test_batch_released_after_iteration(self) -> None:
        owners = [Owner(1), Owner(2)]
        assert list(BatchRegistry().tag(owners)) == owners
        gc.collect()
        assert BatchRegistry.batch_for(owners[0]) is None


class TestBatchRegistry:
    def test_tag_sets_cache_and_batch(self) -> None:
        owners = [Owner(1), Owner(2)]
        batch = BatchRegistry().tag(owners)
        assert isinstance(batch, Batch)
        for owner in owners:
            assert isinstance(BatchRegistry.cache_for(owner), CacheStore)
            assert BatchRegistry.batch_for(owner) is batch
        assert BatchRegistry.cache_for(owners[0]) is not BatchRegistry.cache_for(owners[1])

    def test_tag_existing_batch(self) -> None:
        batch = Batch([Owner(1)])
        assert BatchRegistry().tag(batch) is batch

    def test_tag_is_idempotent(self) -> None:
        owner = Owner(1)
        registry = BatchRegistry()
        first = registry.tag([owner, Owner(2)])
        cache = BatchRegistry.cache_for(owner)
        registry.tag([owner])
        assert BatchRegistry.cache_for(owner) is cache
        assert BatchRegistry.batch_for(owner) is first

    def test_tag_frozen_dataclass(self) -> None:
        owner = FrozenOwner(1)
        BatchRegistry().tag([owner])
        assert BatchRegistry.caching_enabled(owner)

    def test_slotted_owner_rejected(self) -> None:
        with pytest.raises(OwnerNotTaggableError, match="SlottedOwner"):
            BatchRegistry().tag([SlottedOwner(1)])

    def test_slots_declaring_registry_attributes(self) -> None:
        owner = SlottedRegistryOwner(1)
        batch = BatchRegistry().tag([owner, SlottedRegistryOwner(2)])
        assert BatchRegistry.caching_enabled(owner)
        assert BatchRegistry.batch_for(owner) is batch

    def test_dropped_batch_not_reachable(self) -> None:
        owner = Owner(1)
        batch = BatchRegistry().tag([owner, Owner(2)])
        del batch
        gc.collect()
        assert BatchRegistry.batch_for(owner) is None
        assert BatchRegistry.caching_enabled(owner)

    def test_untagged_owner(self) -> None:
        owner = Owner(1)
        assert BatchRegistry.batch_for(owner) is None
        assert BatchRegistry.cache_for(owner) is None
        assert BatchRegistry.cache_size(owner) == 0
        assert not BatchRegistry.caching_enabled(owner)
        BatchRegistry.clear_cache(owner)

    def test_untagged_plain_object(self) -> None:
        assert not BatchRegistry.caching_enabled(object())


class TestAggregationOwner:
    def test_introspection(self) -> None:
        owner = Owner(1)
        assert not owner.aggregation_caching_enabled()
        BatchRegistry().tag([owner])
        assert owner.aggregation_caching_enabled()

        cache = BatchRegistry.cache_for(owner)
        assert cache is not None
        cache.set("k", 1)
        assert owner.aggregation_cache_size() == 1

        owner.clear_aggregation_cache()
        assert owner.aggregation_cache_size() == 0
        assert owner.aggregation_caching_enabled()

    def test_mixin_does_not_add_dataclass_fields(self) -> None:
        assert Owner(1) == Owner(1)
        assert repr(Owner(1)) == "Owner(id=1)"
