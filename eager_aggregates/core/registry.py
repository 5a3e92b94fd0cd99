"""Entity Registry - holds entity plans and resolves relationships.

Relationships are declared per entity by name; the registry turns them into
RelationshipDescriptors whose link chain goes from the owner's table to the
target table. A through relationship is resolved by composing the chain of
the relationship it goes through with the chain of its source relationship
on the intermediate entity:

    User.posts                   -> posts.user_id = users.id
    Post.categorizations         -> categorizations.post_id = posts.id
    Categorization.category      -> categories.id = categorizations.category_id
    Post.categories (through categorizations, source category)
    User.categories (through posts) -> all three hops
"""

from __future__ import annotations

from eager_aggregates.core.exceptions import (
    DuplicateEntityError,
    EntityNotFoundError,
    RelationshipConfigurationError,
    RelationshipNotFoundError,
)
from eager_aggregates.mapping.plan import (
    BELONGS_TO,
    EntityPlan,
    Link,
    RelationshipDescriptor,
)


class EntityRegistry:
    """Registry of entity plans keyed by entity class.

    Register every plan at startup, then treat the registry as read-only.
    Resolved relationship descriptors are memoized.

    Args:
        plans: Entity plans to register.

    Raises:
        DuplicateEntityError: If a class or table is registered twice.
    """

    def __init__(self, *plans: EntityPlan) -> None:
        self._plans: dict[type, EntityPlan] = {}
        self._tables: dict[str, type] = {}
        self._descriptors: dict[tuple[type, str], RelationshipDescriptor] = {}
        for plan in plans:
            self.register(plan)

    def register(self, plan: EntityPlan) -> None:
        cls = plan.target_class
        if cls in self._plans or plan.table in self._tables:
            raise DuplicateEntityError(cls.__name__, plan.table)
        self._plans[cls] = plan
        self._tables[plan.table] = cls

    def get(self, entity_class: type) -> EntityPlan:
        """Look up the plan of *entity_class*.

        Raises:
            EntityNotFoundError: If the class is not registered.
        """
        try:
            return self._plans[entity_class]
        except KeyError:
            raise EntityNotFoundError(entity_class.__name__) from None

    def has(self, entity_class: type) -> bool:
        """Check if an entity class is registered."""
        return entity_class in self._plans

    @property
    def entity_names(self) -> list[str]:
        """List all registered entity class names, sorted alphabetically."""
        return sorted(cls.__name__ for cls in self._plans)

    def __len__(self) -> int:
        """Number of registered entities."""
        return len(self._plans)

    def relationship(self, owner_class: type, name: str) -> RelationshipDescriptor:
        """Resolve relationship *name* declared on *owner_class*.

        Raises:
            EntityNotFoundError: If the owner or a target is not registered.
            RelationshipNotFoundError: If the owner declares no such relationship.
            RelationshipConfigurationError: If a through chain cannot be resolved.
        """
        cache_key = (owner_class, name)
        descriptor = self._descriptors.get(cache_key)
        if descriptor is None:
            descriptor = self._resolve(owner_class, name, ())
            self._descriptors[cache_key] = descriptor
        return descriptor

    def _resolve(
        self,
        owner_class: type,
        name: str,
        seen: tuple[tuple[type, str], ...],
    ) -> RelationshipDescriptor:
        plan = self.get(owner_class)
        rel = plan.relationships.get(name)
        if rel is None:
            raise RelationshipNotFoundError(owner_class.__name__, name)
        marker = (owner_class, name)
        if marker in seen:
            raise RelationshipConfigurationError(name, "circular through chain")
        target_plan = self.get(rel.target_class)

        if rel.through is None:
            if rel.kind == BELONGS_TO:
                owner_attrs = {col: attr for attr, col in plan.field_map.items()}
                return RelationshipDescriptor(
                    name=name,
                    target_class=rel.target_class,
                    target_table=target_plan.table,
                    owner_key=owner_attrs.get(rel.foreign_key, rel.foreign_key),
                    links=(Link(target_plan.table, target_plan.key_column, rel.foreign_key),),
                    collection=False,
                )
            return RelationshipDescriptor(
                name=name,
                target_class=rel.target_class,
                target_table=target_plan.table,
                owner_key=plan.key_field,
                links=(Link(target_plan.table, rel.foreign_key, plan.key_column),),
            )

        seen = seen + (marker,)
        try:
            through = self._resolve(owner_class, rel.through, seen)
        except RelationshipNotFoundError as e:
            raise RelationshipConfigurationError(
                name, f"through relationship '{rel.through}' is not declared"
            ) from e

        source_name = rel.source or name
        try:
            source = self._resolve(through.target_class, source_name, seen)
        except RelationshipNotFoundError as e:
            raise RelationshipConfigurationError(
                name,
                f"source relationship '{source_name}' is not declared on "
                f"{through.target_class.__name__}",
            ) from e
        if source.target_class is not rel.target_class:
            raise RelationshipConfigurationError(
                name,
                f"source relationship '{source_name}' leads to "
                f"{source.target_class.__name__}, not {rel.target_class.__name__}",
            )

        return RelationshipDescriptor(
            name=name,
            target_class=rel.target_class,
            target_table=target_plan.table,
            owner_key=through.owner_key,
            links=through.links + source.links,
        )
