"""Database backend and aggregate function enumerations."""

from __future__ import annotations

from enum import Enum
from typing import Any

from eager_aggregates.core.exceptions import UnsupportedAggregateError


class DatabaseBackend(Enum):
    """Supported database backends."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


_SQL_NAMES = {
    "count": "COUNT",
    "sum": "SUM",
    "average": "AVG",
    "maximum": "MAX",
    "minimum": "MIN",
}


class AggregateFunction(Enum):
    """The aggregate functions that can be batched."""

    COUNT = "count"
    SUM = "sum"
    AVERAGE = "average"
    MAXIMUM = "maximum"
    MINIMUM = "minimum"

    @property
    def sql_name(self) -> str:
        return _SQL_NAMES[self.value]

    @property
    def requires_column(self) -> bool:
        return self is not AggregateFunction.COUNT

    def default(self, default_sum: Any = 0) -> Any:
        """Value used for an owner with no matching rows."""
        if self is AggregateFunction.COUNT:
            return 0
        if self is AggregateFunction.SUM:
            return default_sum
        return None

    @classmethod
    def parse(cls, operation: str | AggregateFunction) -> AggregateFunction:
        """Resolve a function name, raising UnsupportedAggregateError if unknown."""
        if isinstance(operation, AggregateFunction):
            return operation
        try:
            return cls(str(operation).lower())
        except ValueError:
            raise UnsupportedAggregateError(str(operation)) from None

    @classmethod
    def is_supported(cls, operation: str | AggregateFunction) -> bool:
        if isinstance(operation, AggregateFunction):
            return True
        return str(operation).lower() in _SQL_NAMES
