"""Route activity domain models."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class RouteClassification(StrEnum):
    """Activity level of a route."""

    BUSY = "busy"
    QUIET = "quiet"


@dataclass(frozen=True)
class VehicleDataQuality:
    """Data quality assessment of a single vehicle record."""

    is_position_valid: bool
    is_timestamp_recent: bool
    has_required_fields: bool
    staleness_score: float  # 1.0 = fresh, 0.0 = at or beyond the stale threshold

    @property
    def is_valid(self) -> bool:
        """Whether the record is trustworthy enough to count or display."""
        return self.is_position_valid and self.is_timestamp_recent and self.has_required_fields


@dataclass(frozen=True)
class RouteActivityInfo:
    """Activity of one route in one analysis pass."""

    route_id: str
    vehicle_count: int
    valid_vehicle_count: int
    classification: RouteClassification
    last_updated: datetime


@dataclass(frozen=True)
class RouteActivitySnapshot:
    """Immutable result of the last route activity analysis."""

    timestamp: datetime
    route_activities: Mapping[str, RouteActivityInfo]
    total_vehicles: int
    busy_routes: tuple[str, ...] = field(default_factory=tuple)
    quiet_routes: tuple[str, ...] = field(default_factory=tuple)


class RouteAnalysisPerformanceMetrics(BaseModel):
    """Counters of the most recent route activity analysis (not cumulative)."""

    model_config = ConfigDict(frozen=True)

    analysis_time_ms: float = 0.0
    vehicles_processed: int = 0
    valid_vehicles: int = 0
    invalid_vehicles: int = 0
    routes_analyzed: int = 0
    cache_hit_rate: float = 0.0
