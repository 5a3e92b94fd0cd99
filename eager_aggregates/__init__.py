"""eager-aggregates - batched relationship aggregates without N+1 queries."""

from __future__ import annotations

from eager_aggregates.aggregation import (
    AggregationConfig,
    AggregationOwner,
    Association,
    Batch,
    CacheKey,
    CacheStore,
)
from eager_aggregates.core.connection import ConnectionConfig, ConnectionManager
from eager_aggregates.core.engine import Engine
from eager_aggregates.core.enums import AggregateFunction, DatabaseBackend
from eager_aggregates.core.exceptions import (
    AdapterError,
    AggregateArgumentError,
    ColumnMismatchError,
    ConnectionError,  # noqa: A004
    DuplicateEntityError,
    EagerAggregatesError,
    EntityNotFoundError,
    ExecutionError,
    InvalidIdentifierError,
    MappingError,
    PlanCompilationError,
    OwnerNotTaggableError,
    PoolError,
    QueryError,
    QueryExecutionError,
    RegistryError,
    RelationshipConfigurationError,
    RelationshipNotFoundError,
    ScopeNotFoundError,
    SQLSanitizationError,
    UnsupportedAggregateError,
)
from eager_aggregates.core.registry import EntityRegistry
from eager_aggregates.core.sanitizer import SQLSanitizer
from eager_aggregates.mapping import EntityMapper, entity
from eager_aggregates.query import Comparison, RawPredicate, Relation

__all__ = [
    # Connection
    "ConnectionConfig",
    "ConnectionManager",
    # Engine
    "Engine",
    # Registry
    "EntityRegistry",
    # Mapping
    "entity",
    "EntityMapper",
    # Query
    "Relation",
    "Comparison",
    "RawPredicate",
    "SQLSanitizer",
    # Aggregation
    "AggregationConfig",
    "AggregationOwner",
    "Association",
    "Batch",
    "CacheKey",
    "CacheStore",
    # Enums
    "AggregateFunction",
    "DatabaseBackend",
    # Exceptions
    "EagerAggregatesError",
    "RegistryError",
    "EntityNotFoundError",
    "DuplicateEntityError",
    "RelationshipNotFoundError",
    "RelationshipConfigurationError",
    "QueryError",
    "InvalidIdentifierError",
    "UnsupportedAggregateError",
    "AggregateArgumentError",
    "ScopeNotFoundError",
    "SQLSanitizationError",
    "ExecutionError",
    "QueryExecutionError",
    "MappingError",
    "ColumnMismatchError",
    "PlanCompilationError",
    "OwnerNotTaggableError",
    "AdapterError",
    "ConnectionError",
    "PoolError",
]
