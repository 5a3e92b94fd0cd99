"""Entity mapping plan data classes.

Frozen dataclasses representing compiled, validated entity plans and the
relationship metadata resolved from them by the EntityRegistry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from eager_aggregates.core.exceptions import RelationshipConfigurationError

if TYPE_CHECKING:
    from eager_aggregates.query.relation import Relation

HAS_MANY = "has_many"
BELONGS_TO = "belongs_to"


@dataclass(frozen=True)
class RelationshipPlan:
    """A relationship as declared on its owner entity."""

    name: str
    kind: str
    target_class: type
    foreign_key: str | None = None
    through: str | None = None
    source: str | None = None


@dataclass(frozen=True)
class EntityPlan:
    """Compiled, validated mapping plan for one entity class."""

    target_class: type
    table: str
    key_field: str
    field_map: dict[str, str]  # attribute_name -> column_name
    relationships: dict[str, RelationshipPlan] = field(default_factory=dict)
    scopes: dict[str, Callable[[Relation], Relation]] = field(default_factory=dict)

    @property
    def key_column(self) -> str:
        return self.field_map.get(self.key_field, self.key_field)


@dataclass(frozen=True)
class Link:
    """One hop of a relationship: ``<table>.<column> = <previous>.<parent_column>``.

    For the first hop the previous table is the owner's table.
    """

    table: str
    column: str
    parent_column: str


@dataclass(frozen=True)
class RelationshipDescriptor:
    """Resolved relationship: the full chain of hops from owner to target."""

    name: str
    target_class: type
    target_table: str
    owner_key: str  # attribute on the owner holding the value the first hop matches
    links: tuple[Link, ...]
    collection: bool = True

    @property
    def is_through(self) -> bool:
        return len(self.links) > 1

    def grouping_column(self) -> str:
        """Qualified column tying a target row back to its owner.

        Raises:
            RelationshipConfigurationError: If the chain is empty or does not
                end at the target table.
        """
        if not self.links:
            raise RelationshipConfigurationError(self.name, "relationship has no links")
        if self.links[-1].table != self.target_table:
            raise RelationshipConfigurationError(
                self.name,
                f"link chain ends at '{self.links[-1].table}', "
                f"expected target table '{self.target_table}'",
            )
        first = self.links[0]
        return f"{first.table}.{first.column}"

    def owner_value(self, owner: Any) -> Any:
        return getattr(owner, self.owner_key, None)
