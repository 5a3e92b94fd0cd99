"""eager-aggregates exception hierarchy.

Driver exceptions raised during execution are wrapped in QueryExecutionError
with the original chained as ``__cause__``. The aggregation layer never
catches them: callers see the same error with or without eager aggregation.
"""

from __future__ import annotations


class EagerAggregatesError(Exception):
    """Base exception for all eager-aggregates errors."""


# --- Registry ---


class RegistryError(EagerAggregatesError):
    """Base for entity registry errors."""


class EntityNotFoundError(RegistryError):
    """Raised when an entity class has no registered mapping."""

    def __init__(self, entity_name: str) -> None:
        self.entity_name = entity_name
        super().__init__(f"Entity not registered: '{entity_name}'")


class DuplicateEntityError(RegistryError):
    """Raised when the same entity class or table is registered twice."""

    def __init__(self, entity_name: str, table: str) -> None:
        self.entity_name = entity_name
        self.table = table
        super().__init__(f"Duplicate entity '{entity_name}' for table '{table}'")


class RelationshipNotFoundError(RegistryError):
    """Raised when an entity declares no relationship with the given name."""

    def __init__(self, entity_name: str, relationship: str) -> None:
        self.entity_name = entity_name
        self.relationship = relationship
        super().__init__(f"'{entity_name}' has no relationship '{relationship}'")


class RelationshipConfigurationError(RegistryError):
    """Raised when a relationship cannot be resolved into a valid link chain."""

    def __init__(self, relationship: str, detail: str) -> None:
        self.relationship = relationship
        super().__init__(f"Invalid relationship '{relationship}': {detail}")


# --- Query building ---


class QueryError(EagerAggregatesError):
    """Base for query construction errors."""


class InvalidIdentifierError(QueryError):
    """Raised when a table or column name is not a plain SQL identifier."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"Invalid SQL identifier: {identifier!r}")


class UnsupportedAggregateError(QueryError):
    """Raised for aggregate functions other than count/sum/average/maximum/minimum."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Unsupported aggregate function: '{operation}'")


class AggregateArgumentError(QueryError):
    """Raised when an aggregate is called with invalid arguments."""


class ScopeNotFoundError(QueryError):
    """Raised when a named scope is not declared on the queried entity."""

    def __init__(self, entity_name: str, scope: str) -> None:
        self.entity_name = entity_name
        self.scope = scope
        super().__init__(f"'{entity_name}' has no scope '{scope}'")


class SQLSanitizationError(QueryError):
    """Raised when a raw predicate fragment fails a sanitization check."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"SQL sanitization failed: {detail}")


# --- Execution ---


class ExecutionError(EagerAggregatesError):
    """Base for query execution errors."""


class QueryExecutionError(ExecutionError):
    """Raised when the database rejects or fails a statement."""

    def __init__(self, sql: str, detail: str) -> None:
        self.sql = sql
        super().__init__(f"Query failed: {detail} [SQL: {sql}]")


# --- Mapping ---


class MappingError(EagerAggregatesError):
    """Base for mapping errors."""


class ColumnMismatchError(MappingError):
    """Raised when required fields cannot be mapped from row columns."""

    def __init__(self, target_class: str, missing_fields: list[str]) -> None:
        self.target_class = target_class
        self.missing_fields = missing_fields
        super().__init__(f"Cannot map to {target_class}: missing fields {missing_fields}")


class PlanCompilationError(MappingError):
    """Raised when an EntityPlan fails validation during build()."""


class OwnerNotTaggableError(MappingError):
    """Raised when an owner cannot carry an aggregation cache (e.g. slotted classes)."""

    def __init__(self, target_class: str) -> None:
        self.target_class = target_class
        super().__init__(
            f"Cannot enable eager aggregations on {target_class}: instances need a "
            "__dict__ or __slots__ declaring 'aggregation_cache' and 'batch_ref'"
        )


# --- Adapter ---


class AdapterError(EagerAggregatesError):
    """Base for adapter errors."""


class ConnectionError(AdapterError):  # noqa: A001
    """Raised on connection failures."""


class PoolError(AdapterError):
    """Raised on connection pool failures."""
