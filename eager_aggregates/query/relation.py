"""Immutable relational query builder.

A Relation describes rows of one table, optionally joined to others and
filtered by tagged predicates. Every builder method returns a new Relation,
so partially built relations can be shared freely between threads.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from eager_aggregates.core.enums import AggregateFunction
from eager_aggregates.core.exceptions import (
    AggregateArgumentError,
    QueryError,
    ScopeNotFoundError,
)
from eager_aggregates.core.params import Bindings
from eager_aggregates.core.sanitizer import validate_identifier
from eager_aggregates.query.predicates import Comparison, Predicate, RawPredicate

if TYPE_CHECKING:
    from eager_aggregates.core.engine import Engine
    from eager_aggregates.mapping.plan import EntityPlan


@dataclass(frozen=True)
class Join:
    """``JOIN <table> ON <left> = <right>`` with qualified column names."""

    table: str
    left: str
    right: str

    def __post_init__(self) -> None:
        validate_identifier(self.table)
        validate_identifier(self.left)
        validate_identifier(self.right)

    def to_sql(self) -> str:
        return f"JOIN {self.table} ON {self.left} = {self.right}"


class Relation:
    """Query over a single target table.

    Args:
        table: Target table name.
        primary_key: Primary key column of the target table.
        plan: EntityPlan used to map rows and resolve named scopes.
        engine: Engine used by ``all()`` and the aggregate methods.
    """

    def __init__(
        self,
        table: str,
        *,
        primary_key: str = "id",
        plan: EntityPlan | None = None,
        engine: Engine | None = None,
        predicates: tuple[Predicate, ...] = (),
        joins: tuple[Join, ...] = (),
        eager_aggregations: bool = False,
    ) -> None:
        if "." in table:
            raise QueryError(f"Table name must not be qualified: {table!r}")
        self.table = validate_identifier(table)
        self.primary_key = validate_identifier(primary_key)
        self.plan = plan
        self.engine = engine
        self.predicates = predicates
        self.joins = joins
        self._eager_aggregations = eager_aggregations

    def _spawn(self, **changes: Any) -> Relation:
        values: dict[str, Any] = {
            "primary_key": self.primary_key,
            "plan": self.plan,
            "engine": self.engine,
            "predicates": self.predicates,
            "joins": self.joins,
            "eager_aggregations": self._eager_aggregations,
        }
        values.update(changes)
        return Relation(self.table, **values)

    def __repr__(self) -> str:
        return (
            f"Relation({self.table!r}, predicates={len(self.predicates)}, "
            f"joins={len(self.joins)}, eager_aggregations={self._eager_aggregations})"
        )

    # --- Building ---

    def qualify(self, column: str) -> str:
        """Prefix *column* with the target table unless already qualified."""
        validate_identifier(column)
        if "." in column:
            return column
        return f"{self.table}.{column}"

    def where(self, *predicates: Predicate, **conditions: Any) -> Relation:
        """Add predicates. Keyword conditions become equality comparisons."""
        added: list[Predicate] = []
        for predicate in predicates:
            if isinstance(predicate, Comparison):
                predicate = dataclasses.replace(predicate, target=self.qualify(predicate.target))
            elif not isinstance(predicate, Predicate):
                raise AggregateArgumentError(
                    f"Expected a Predicate, got {type(predicate).__name__}"
                )
            added.append(predicate)
        for column, value in conditions.items():
            added.append(Comparison.equals(self.qualify(column), value))
        return self._spawn(predicates=self.predicates + tuple(added))

    def where_raw(self, sql: str, **params: Any) -> Relation:
        """Add a raw SQL fragment, e.g. ``where_raw("score > :min", min=50)``."""
        return self._spawn(predicates=self.predicates + (RawPredicate.of(sql, **params),))

    def join(self, *joins: Join) -> Relation:
        new_joins = self.joins + tuple(j for j in joins if j not in self.joins)
        return self._spawn(joins=new_joins)

    def merge(self, other: Relation) -> Relation:
        """Combine predicates and joins of *other* into this relation."""
        if other.table != self.table:
            raise QueryError(f"Cannot merge relation on '{other.table}' into '{self.table}'")
        predicates = self.predicates + tuple(
            p for p in other.predicates if p not in self.predicates
        )
        merged = self.join(*other.joins)
        return merged._spawn(
            predicates=predicates,
            eager_aggregations=self._eager_aggregations or other._eager_aggregations,
        )

    def unscope(self, column: str) -> Relation:
        """Drop every predicate that constrains *column*."""
        target = self.qualify(column)
        return self._spawn(predicates=tuple(p for p in self.predicates if p.column != target))

    def scope(self, name: str) -> Relation:
        """Apply a named scope declared on the target entity."""
        scopes = self.plan.scopes if self.plan is not None else {}
        if name not in scopes:
            raise ScopeNotFoundError(self.table, name)
        return scopes[name](self)

    def eager_aggregations(self) -> Relation:
        """Opt in: owners loaded by this relation batch their aggregates."""
        return self._spawn(eager_aggregations=True)

    @property
    def eager_aggregations_enabled(self) -> bool:
        return self._eager_aggregations

    # --- Compiling ---

    def _from_where(self, bindings: Bindings) -> str:
        parts = [f"FROM {self.table}"]
        parts.extend(j.to_sql() for j in self.joins)
        if self.predicates:
            parts.append("WHERE " + " AND ".join(p.to_sql(bindings) for p in self.predicates))
        return " ".join(parts)

    def compile_select(self) -> tuple[str, dict[str, Any]]:
        """Compile ``SELECT`` of the target columns."""
        if self.plan is not None and self.plan.field_map:
            columns = ", ".join(
                f"{self.table}.{col} AS {col}" for col in self.plan.field_map.values()
            )
        else:
            columns = f"{self.table}.*"
        bindings = Bindings()
        sql = f"SELECT {columns} {self._from_where(bindings)}"
        return sql, bindings.params

    def aggregate_expression(
        self,
        function: AggregateFunction,
        column: str | None = None,
        distinct: bool = False,
    ) -> str:
        """Render ``FN(col)`` following the column and distinct rules of each function."""
        if column is None:
            if function.requires_column:
                raise AggregateArgumentError(f"{function.value}() requires a column")
            if not distinct:
                return "COUNT(*)"
            column = self.primary_key
        target = self.qualify(column)
        if distinct:
            return f"{function.sql_name}(DISTINCT {target})"
        return f"{function.sql_name}({target})"

    def compile_aggregate(
        self,
        function: AggregateFunction,
        column: str | None = None,
        distinct: bool = False,
        group_by: str | None = None,
    ) -> tuple[str, dict[str, Any]]:
        """Compile an aggregate, grouped by *group_by* when given.

        Grouped statements select ``group_key`` and ``value`` columns.
        """
        expression = self.aggregate_expression(function, column, distinct)
        bindings = Bindings()
        if group_by is None:
            sql = f"SELECT {expression} AS value {self._from_where(bindings)}"
        else:
            group = self.qualify(group_by)
            sql = (
                f"SELECT {group} AS group_key, {expression} AS value "
                f"{self._from_where(bindings)} GROUP BY {group}"
            )
        return sql, bindings.params

    # --- Executing ---

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise QueryError(f"Relation on '{self.table}' is not bound to an engine")
        return self.engine

    def all(self) -> Any:
        """Load matching rows; see ``Engine.fetch_all``."""
        return self._require_engine().fetch_all(self)

    def calculate(
        self,
        operation: str | AggregateFunction,
        column: str | None = None,
        *,
        distinct: bool = False,
    ) -> Any:
        function = AggregateFunction.parse(operation)
        return self._require_engine().calculate(self, function, column, distinct)

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
