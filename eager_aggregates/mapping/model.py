"""Row-to-entity mapper.

Supports dataclasses, Pydantic models, and plain classes. Column names are
translated to attribute names with the plan's field map.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from eager_aggregates.core.exceptions import ColumnMismatchError
from eager_aggregates.mapping.plan import EntityPlan

T = TypeVar("T")


def _is_pydantic_model(cls: type) -> bool:
    """Check if a class is a Pydantic BaseModel."""
    try:
        from pydantic import BaseModel

        return issubclass(cls, BaseModel)
    except ImportError:
        return False


class EntityMapper(Generic[T]):
    """Maps row dicts to instances of an entity plan's class.

    Detection order:
    1. Pydantic BaseModel -> model_validate(fields)
    2. dataclass or plain class -> target_class(**fields)

    Owners that take part in eager aggregation must accept new instance
    attributes: dataclasses and plain classes do; slotted classes must list
    ``aggregation_cache`` and ``batch_ref`` in ``__slots__``.
    """

    def __init__(self, plan: EntityPlan) -> None:
        self._plan = plan
        self._target_class: type[T] = plan.target_class
        self._is_pydantic = _is_pydantic_model(plan.target_class)

    def _extract_fields(self, row: dict[str, Any]) -> dict[str, Any]:
        missing = [col for col in self._plan.field_map.values() if col not in row]
        if missing:
            raise ColumnMismatchError(self._target_class.__name__, missing)
        return {attr: row[col] for attr, col in self._plan.field_map.items()}

    def map_one(self, row: dict[str, Any]) -> T:
        """Map a single row to a target_class instance."""
        fields = self._extract_fields(row)

        if self._is_pydantic:
            validate = self._target_class.model_validate  # type: ignore[attr-defined]
            try:
                return validate(fields)  # type: ignore[no-any-return]
            except Exception as e:
                raise ColumnMismatchError(self._target_class.__name__, [str(e)]) from e

        try:
            return self._target_class(**fields)
        except TypeError as e:
            raise ColumnMismatchError(self._target_class.__name__, [str(e)]) from e

    def map_many(self, rows: list[dict[str, Any]]) -> list[T]:
        """Map all rows via map_one."""
        return [self.map_one(row) for row in rows]
