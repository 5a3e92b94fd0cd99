"""Batch registry.

Right after a batch of owners is materialized, every owner is tagged with a
CacheStore and a weak reference to the batch it was loaded with, so a single
owner's aggregate request can find its siblings.
"""

from __future__ import annotations

import weakref
from collections.abc import Iterable, Iterator, Sequence
from typing import Any, overload

from eager_aggregates.aggregation.cache import CacheStore
from eager_aggregates.core.exceptions import OwnerNotTaggableError

CACHE_ATTR = "aggregation_cache"
BATCH_ATTR = "batch_ref"


class Batch(Sequence[Any]):
    """Immutable sequence of owners loaded by one query execution.

    Owners reference their batch weakly: once the caller drops the batch,
    siblings can no longer be found and each owner queries on its own.
    """

    __slots__ = ("_owners", "__weakref__")

    def __init__(self, owners: Iterable[Any]) -> None:
        self._owners: tuple[Any, ...] = tuple(owners)

    @overload
    def __getitem__(self, index: int) -> Any: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Any, ...]: ...

    def __getitem__(self, index: int | slice) -> Any:
        return self._owners[index]

    def __len__(self) -> int:
        return len(self._owners)

    def __iter__(self) -> Iterator[Any]:
        # the generator frame keeps the batch alive while a loop runs over it
        yield from self._owners

    def __repr__(self) -> str:
        return f"Batch(size={len(self._owners)})"


class AggregationOwner:
    """Optional mixin declaring the attributes the registry sets on owners.

    ``aggregation_cache`` is None until the owner is loaded with eager
    aggregations; ``batch_ref`` is a weak reference to its Batch.
    """

    aggregation_cache: CacheStore | None = None
    batch_ref: weakref.ReferenceType[Batch] | None = None

    def clear_aggregation_cache(self) -> None:
        BatchRegistry.clear_cache(self)

    def aggregation_cache_size(self) -> int:
        return BatchRegistry.cache_size(self)

    def aggregation_caching_enabled(self) -> bool:
        return BatchRegistry.caching_enabled(self)


class BatchRegistry:
    """Tags owners with their batch and cache; introspects the result."""

    def tag(self, owners: Iterable[Any]) -> Batch:
        """Wrap *owners* in a Batch and tag each of them.

        Owners already carrying a cache (e.g. loaded again by a nested query)
        keep their existing cache and batch reference.

        Raises:
            OwnerNotTaggableError: If an owner has no instance ``__dict__`` and
                its ``__slots__`` do not declare the two registry attributes.
        """
        batch = owners if isinstance(owners, Batch) else Batch(owners)
        ref = weakref.ref(batch)
        for owner in batch:
            if getattr(owner, CACHE_ATTR, None) is not None:
                continue
            # object.__setattr__ also works for frozen dataclasses
            try:
                object.__setattr__(owner, CACHE_ATTR, CacheStore())
                object.__setattr__(owner, BATCH_ATTR, ref)
            except AttributeError as e:
                raise OwnerNotTaggableError(type(owner).__name__) from e
        return batch

    @staticmethod
    def batch_for(owner: Any) -> Batch | None:
        """The live batch *owner* was loaded with, if any."""
        ref = getattr(owner, BATCH_ATTR, None)
        return ref() if ref is not None else None

    @staticmethod
    def cache_for(owner: Any) -> CacheStore | None:
        return getattr(owner, CACHE_ATTR, None)

    @staticmethod
    def clear_cache(owner: Any) -> None:
        cache = getattr(owner, CACHE_ATTR, None)
        if cache is not None:
            cache.clear()

    @staticmethod
    def cache_size(owner: Any) -> int:
        cache = getattr(owner, CACHE_ATTR, None)
        return cache.size() if cache is not None else 0

    @staticmethod
    def caching_enabled(owner: Any) -> bool:
        return getattr(owner, CACHE_ATTR, None) is not None
