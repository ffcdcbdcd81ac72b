"""Route filtering configuration domain model."""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RouteFilteringConfig(BaseModel):
    """Live configuration of the busy/quiet classification and distance filter."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    busy_route_threshold: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Routes with more valid vehicles than this are classified as busy",
    )
    distance_filter_threshold: float = Field(
        default=2000.0,
        ge=0,
        le=50_000,
        description="Maximum distance in meters from a target station for vehicles on busy routes",
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable observer notifications for every filtering decision",
    )

    def merged_with(self, changes: Mapping[str, Any]) -> "RouteFilteringConfig":
        """Return a new validated config with the given changes applied.

        Raises:
            pydantic.ValidationError: If the merged values are invalid or a key is unknown.
        """
        return RouteFilteringConfig.model_validate({**self.model_dump(), **dict(changes)})
