"""Aggregation configuration.

AggregationConfig is passed to the planner and the interceptor when the
Engine is built. There is no process-wide mutable configuration.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_LOGGER_NAME = "eager_aggregates.aggregation"


class AggregationConfig(BaseModel):
    """Settings for eager aggregation.

    Attributes:
        default_sum: Value of ``sum`` for an owner with no matching rows.
        logger: Receives DEBUG trace lines for cache hits, misses and
            batch fetches. Diagnostic only.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    default_sum: Any = 0
    logger: logging.Logger = Field(
        default_factory=lambda: logging.getLogger(DEFAULT_LOGGER_NAME)
    )
