"""Real-time configuration update domain models."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from vehicle_tracking.domain.models.filtering import FilteringResult
from vehicle_tracking.domain.models.route_activity import (
    RouteActivityInfo,
    RouteClassification,
)


@dataclass(frozen=True)
class RouteTransition:
    """A route whose classification changed because of a configuration update."""

    route_id: str
    previous_classification: RouteClassification
    new_classification: RouteClassification
    previous_vehicle_count: int
    new_vehicle_count: int
    timestamp: datetime
    config_change: Mapping[str, Any] = field(default_factory=dict)


class RealTimePerformanceMetrics(BaseModel):
    """Timings of the most recent configuration update (not cumulative)."""

    model_config = ConfigDict(frozen=True)

    config_update_time_ms: float = 0.0
    route_recalculation_time_ms: float = 0.0
    filtering_update_time_ms: float = 0.0
    total_update_time_ms: float = 0.0
    routes_recalculated: int = 0
    vehicles_reprocessed: int = 0
    transitions_detected: int = 0
    circuit_breaker_triggered: bool = False
    last_update_timestamp: datetime | None = None


class CircuitBreakerState(BaseModel):
    """Read-only view of the configuration circuit breaker."""

    model_config = ConfigDict(frozen=True)

    is_open: bool = False
    failure_count: int = 0
    consecutive_successes: int = 0
    last_failure_time: datetime | None = None
    next_retry_time: datetime | None = None


@dataclass(frozen=True)
class ConfigurationUpdateResult:
    """Outcome of applying a configuration change to the live data."""

    success: bool
    performance_metrics: RealTimePerformanceMetrics
    route_transitions: list[RouteTransition] = field(default_factory=list)
    updated_route_activity: Mapping[str, RouteActivityInfo] = field(default_factory=dict)
    filtering_result: FilteringResult | None = None
    error: str | None = None
