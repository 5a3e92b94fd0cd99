"""Entity mapping DSL builder.

Provides a fluent builder for declaring an entity's table, fields,
relationships and named scopes.

Example:
    user_plan = (
        entity(User)
        .key("id")
        .auto_fields()
        .has_many("posts", Post)
        .has_many("categories", Category, through="posts")
        .build()
    )
"""

from __future__ import annotations

import dataclasses
import inspect
from typing import Callable

from eager_aggregates.core.exceptions import InvalidIdentifierError, PlanCompilationError
from eager_aggregates.core.sanitizer import validate_identifier
from eager_aggregates.mapping.plan import (
    BELONGS_TO,
    HAS_MANY,
    EntityPlan,
    RelationshipPlan,
)
from eager_aggregates.query.relation import Relation


def _get_field_names(cls: type) -> list[str]:
    """Extract field names from a class (dataclass, Pydantic, or plain)."""
    # Pydantic model
    if hasattr(cls, "model_fields"):
        return list(cls.model_fields.keys())

    # Dataclass
    if dataclasses.is_dataclass(cls):
        return [f.name for f in dataclasses.fields(cls) if f.init]

    # Plain class - use __init__ parameters
    variadic = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    try:
        sig = inspect.signature(cls.__init__)  # type: ignore[misc]
        return [
            name
            for name, param in sig.parameters.items()
            if name != "self" and param.kind not in variadic
        ]
    except (ValueError, TypeError):
        return []


def entity(entity_class: type, table: str | None = None) -> EntityMappingBuilder:
    """Entry point for the entity mapping DSL.

    Args:
        entity_class: The mapped class.
        table: Table name. Defaults to lowercase class name + "s".

    Returns:
        A builder for chaining mapping declarations.
    """
    if table is None:
        table = entity_class.__name__.lower() + "s"
    return EntityMappingBuilder(entity_class, table)


class EntityMappingBuilder:
    """Fluent builder for entity mapping definitions."""

    def __init__(self, entity_class: type, table: str) -> None:
        self._entity_class = entity_class
        self._table = table
        self._key_field: str | None = None
        self._field_map: dict[str, str] = {}
        self._auto_fields_enabled = False
        self._relationships: list[RelationshipPlan] = []
        self._scopes: dict[str, Callable[[Relation], Relation]] = {}

    def key(self, field_name: str) -> EntityMappingBuilder:
        """Set the primary key field."""
        self._key_field = field_name
        return self

    def auto_fields(self) -> EntityMappingBuilder:
        """Auto-map all fields of the class by attribute name."""
        self._auto_fields_enabled = True
        return self

    def field(self, attr_name: str, column_name: str | None = None) -> EntityMappingBuilder:
        """Explicitly map a single field."""
        self._field_map[attr_name] = column_name or attr_name
        return self

    def has_many(
        self,
        name: str,
        target_class: type,
        foreign_key: str | None = None,
        *,
        through: str | None = None,
        source: str | None = None,
    ) -> EntityMappingBuilder:
        """Declare a one-to-many relationship, or a many-to-many one via *through*.

        *foreign_key* is the column on the target table pointing at this
        entity; it defaults to ``<entity name>_id``. For a through
        relationship, *source* names the relationship on the through target
        that leads to *target_class* (defaults to *name*).
        """
        if through is None:
            foreign_key = foreign_key or self._entity_class.__name__.lower() + "_id"
        elif foreign_key is not None:
            raise PlanCompilationError(
                f"Relationship '{name}': foreign_key cannot be combined with through"
            )
        self._relationships.append(
            RelationshipPlan(
                name=name,
                kind=HAS_MANY,
                target_class=target_class,
                foreign_key=foreign_key,
                through=through,
                source=source,
            )
        )
        return self

    def belongs_to(
        self,
        name: str,
        target_class: type,
        foreign_key: str | None = None,
    ) -> EntityMappingBuilder:
        """Declare the inverse side; usable as a hop inside a through chain."""
        self._relationships.append(
            RelationshipPlan(
                name=name,
                kind=BELONGS_TO,
                target_class=target_class,
                foreign_key=foreign_key or name + "_id",
            )
        )
        return self

    def scope(self, name: str, fn: Callable[[Relation], Relation]) -> EntityMappingBuilder:
        """Declare a named scope.

        Example: ``.scope("published", lambda r: r.where(published=True))``.
        """
        if name in self._scopes:
            raise PlanCompilationError(f"Duplicate scope '{name}'")
        self._scopes[name] = fn
        return self

    def build(self) -> EntityPlan:
        """Compile and validate the mapping into an EntityPlan."""
        if self._key_field is None:
            raise PlanCompilationError("Entity must have a key field set via .key()")

        relationship_names = [rel.name for rel in self._relationships]
        field_map = dict(self._field_map)
        if self._auto_fields_enabled:
            for name in _get_field_names(self._entity_class):
                if name not in field_map and name not in relationship_names:
                    field_map[name] = name

        if self._key_field not in field_map:
            field_map[self._key_field] = self._key_field

        try:
            validate_identifier(self._table)
            for column in field_map.values():
                validate_identifier(column)
            for rel in self._relationships:
                if rel.foreign_key is not None:
                    validate_identifier(rel.foreign_key)
        except InvalidIdentifierError as e:
            raise PlanCompilationError(str(e)) from e

        relationships: dict[str, RelationshipPlan] = {}
        for rel in self._relationships:
            if rel.name in relationships:
                raise PlanCompilationError(
                    f"Duplicate relationship '{rel.name}' on {self._entity_class.__name__}"
                )
            if rel.name in self._scopes:
                raise PlanCompilationError(
                    f"'{rel.name}' is declared both as a relationship and a scope"
                )
            relationships[rel.name] = rel

        return EntityPlan(
            target_class=self._entity_class,
            table=self._table,
            key_field=self._key_field,
            field_map=field_map,
            relationships=relationships,
            scopes=dict(self._scopes),
        )
