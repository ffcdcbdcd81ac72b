"""Vehicle filtering domain models."""

from collections.abc import Mapping
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict

from vehicle_tracking.domain.models.route_activity import (
    RouteActivitySnapshot,
    RouteClassification,
)
from vehicle_tracking.domain.models.station import Station
from vehicle_tracking.domain.models.vehicle import Vehicle


@dataclass(frozen=True)
class FilteringContext:
    """Inputs of one filtering pass besides the vehicles themselves."""

    target_stations: tuple[Station, ...] = ()
    busy_route_threshold: int = 5
    distance_filter_threshold: float = 2000.0  # meters
    debug_mode: bool = False
    require_route_association: bool = (
        False  # If True, vehicles whose route serves none of the target stations are excluded
    )


@dataclass(frozen=True)
class FilteringDecision:
    """Why a single vehicle was included in or excluded from the display set."""

    vehicle_id: str
    route_id: str
    included: bool
    reason: str
    distance_filter_applied: bool
    distance_to_nearest_station: float | None = None
    route_classification: RouteClassification | None = None


class FilteringPerformanceMetrics(BaseModel):
    """Timing and counts of one filtering pass."""

    model_config = ConfigDict(frozen=True)

    filtering_time_ms: float = 0.0
    total_vehicles_processed: int = 0
    vehicles_filtered: int = 0


@dataclass(frozen=True)
class FilteringMetadata:
    """Per-vehicle decisions plus the route activity they were based on."""

    filtering_decisions: Mapping[str, FilteringDecision]
    route_activity_snapshot: RouteActivitySnapshot | None = None
    performance_metrics: FilteringPerformanceMetrics = field(
        default_factory=FilteringPerformanceMetrics
    )


@dataclass(frozen=True)
class UserFeedback:
    """Human-readable explanation of what the filter did."""

    total_routes: int
    busy_routes: int
    quiet_routes: int
    distance_filtered_vehicles: int
    route_status_messages: Mapping[str, str]
    empty_state_message: str | None = None


@dataclass(frozen=True)
class FilteringResult:
    """Vehicles to render along with the reasoning behind the selection."""

    filtered_vehicles: list[Vehicle]
    metadata: FilteringMetadata
    user_feedback: UserFeedback
