"""Mapping layer - entity plans and row-to-entity mapping."""

from __future__ import annotations

from eager_aggregates.mapping.builder import EntityMappingBuilder, entity
from eager_aggregates.mapping.model import EntityMapper
from eager_aggregates.mapping.plan import (
    EntityPlan,
    Link,
    RelationshipDescriptor,
    RelationshipPlan,
)

__all__ = [
    "EntityMapper",
    "EntityMappingBuilder",
    "entity",
    "EntityPlan",
    "RelationshipPlan",
    "RelationshipDescriptor",
    "Link",
]
