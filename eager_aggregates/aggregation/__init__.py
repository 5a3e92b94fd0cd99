"""Eager aggregation - per-owner caches filled by batched grouped queries."""

from __future__ import annotations

from eager_aggregates.aggregation.cache import CacheStore
from eager_aggregates.aggregation.config import AggregationConfig
from eager_aggregates.aggregation.interceptor import AggregationInterceptor, Association
from eager_aggregates.aggregation.keys import CacheKey, CacheKeyBuilder
from eager_aggregates.aggregation.planner import BatchQueryPlanner
from eager_aggregates.aggregation.registry import AggregationOwner, Batch, BatchRegistry

__all__ = [
    "AggregationConfig",
    "AggregationInterceptor",
    "AggregationOwner",
    "Association",
    "Batch",
    "BatchQueryPlanner",
    "BatchRegistry",
    "CacheKey",
    "CacheKeyBuilder",
    "CacheStore",
]
