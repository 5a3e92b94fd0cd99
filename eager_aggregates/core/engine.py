"""Query execution engine.

The Engine compiles Relations, executes them through the adapter, maps rows
to entities and, for relations carrying the eager-aggregation flag, tags the
loaded batch so relationship aggregates can be computed for all owners at once.
"""

from __future__ import annotations

import logging
from typing import Any

from eager_aggregates.aggregation.config import AggregationConfig
from eager_aggregates.aggregation.interceptor import AggregationInterceptor, Association
from eager_aggregates.aggregation.registry import BatchRegistry
from eager_aggregates.core.connection import ConnectionConfig, ConnectionManager
from eager_aggregates.core.enums import AggregateFunction
from eager_aggregates.core.exceptions import (
    QueryExecutionError,
    RelationshipConfigurationError,
)
from eager_aggregates.core.params import normalize_params
from eager_aggregates.core.registry import EntityRegistry
from eager_aggregates.mapping.model import EntityMapper
from eager_aggregates.query.relation import Join, Relation

logger = logging.getLogger(__name__)


def _rows_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor results to list of dicts.

    Handles both tuple-like rows and dict-like rows from different adapters.
    """
    if cursor.description is None:
        return []
    columns = [desc[0] for desc in cursor.description]
    rows = cursor.fetchall()
    if not rows:
        return []

    # Check if rows are already dict-like (e.g., psycopg dict_row)
    if isinstance(rows[0], dict):
        return [dict(row) for row in rows]

    # Tuple-like rows, zip with columns
    return [dict(zip(columns, row, strict=True)) for row in rows]


class Engine:
    """Synchronous query execution engine.

    Args:
        connection_manager: Pool-backed connection manager.
        entities: Registry of entity plans.
        aggregation: Eager aggregation settings.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        entities: EntityRegistry,
        aggregation: AggregationConfig | None = None,
    ) -> None:
        self._connection_manager = connection_manager
        self._entities = entities
        self._paramstyle = connection_manager.adapter.paramstyle
        self._batches = BatchRegistry()
        self._interceptor = AggregationInterceptor(self, aggregation)

    @classmethod
    def from_config(
        cls,
        config: ConnectionConfig,
        entities: EntityRegistry,
        aggregation: AggregationConfig | None = None,
    ) -> Engine:
        """Create an Engine from a ConnectionConfig and EntityRegistry."""
        connection_manager = ConnectionManager(config)
        return cls(connection_manager, entities, aggregation)

    @property
    def entities(self) -> EntityRegistry:
        return self._entities

    @property
    def adapter(self) -> Any:
        return self._connection_manager.adapter

    @property
    def aggregation_config(self) -> AggregationConfig:
        return self._interceptor.config

    # --- Building ---

    def query(self, entity_class: type) -> Relation:
        """Start a relation over the table of *entity_class*."""
        plan = self._entities.get(entity_class)
        return Relation(plan.table, primary_key=plan.key_column, plan=plan, engine=self)

    def related(self, owner: Any, name: str) -> Association:
        """Accessor for aggregates over relationship *name* of *owner*.

        Raises:
            RelationshipConfigurationError: If *name* is not a collection relationship.
        """
        descriptor = self._entities.relationship(type(owner), name)
        if not descriptor.collection:
            raise RelationshipConfigurationError(
                name, "aggregates require a has_many relationship"
            )
        relation = self.query(descriptor.target_class)
        links = descriptor.links
        # walk back from the target table towards the owner
        for i in range(len(links) - 1, 0, -1):
            child, parent = links[i], links[i - 1]
            relation = relation.join(
                Join(
                    parent.table,
                    f"{child.table}.{child.column}",
                    f"{parent.table}.{child.parent_column}",
                )
            )
        return Association(owner, descriptor, relation, self._interceptor)

    # --- Executing ---

    def _run(self, sql: str, params: dict[str, Any] | None, *, commit: bool = False) -> Any:
        sql = normalize_params(sql, self._paramstyle)
        logger.debug("Executing %s %r", sql, params)
        adapter = self._connection_manager.adapter
        with self._connection_manager.get_connection() as conn:
            try:
                cursor = adapter.execute(conn, sql, params)
                if commit:
                    conn.commit()
                    return int(cursor.rowcount)
                return _rows_to_dicts(cursor)
            except Exception as e:
                conn.rollback()
                raise QueryExecutionError(sql, str(e)) from e

    def fetch_all(self, relation: Relation) -> Any:
        """Fetch all rows of *relation*.

        Returns row dicts when the relation has no entity plan, entity
        instances otherwise. With eager aggregations enabled the instances
        come back as a tagged Batch.
        """
        sql, params = relation.compile_select()
        rows = self._run(sql, params)
        if relation.plan is None:
            return rows

        records = EntityMapper(relation.plan).map_many(rows)
        if relation.eager_aggregations_enabled:
            return self._batches.tag(records)
        return records

    def calculate(
        self,
        relation: Relation,
        function: AggregateFunction,
        column: str | None = None,
        distinct: bool = False,
    ) -> Any:
        """Compute one aggregate over *relation*. Returns the raw database value."""
        sql, params = relation.compile_aggregate(function, column, distinct)
        rows = self._run(sql, params)
        return rows[0]["value"] if rows else None

    def calculate_grouped(
        self,
        relation: Relation,
        function: AggregateFunction,
        group_by: str,
        column: str | None = None,
        distinct: bool = False,
    ) -> dict[Any, Any]:
        """Compute an aggregate per value of *group_by*.

        Groups with no rows are absent from the result.
        """
        sql, params = relation.compile_aggregate(function, column, distinct, group_by=group_by)
        rows = self._run(sql, params)
        return {row["group_key"]: row["value"] for row in rows}

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Execute a write or DDL statement. Returns affected row count."""
        return self._run(sql, params, commit=True)

    def close(self) -> None:
        self._connection_manager.close_pool()
