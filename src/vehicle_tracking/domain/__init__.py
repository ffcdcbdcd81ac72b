"""Domain layer - models, contracts and pure helpers."""

from vehicle_tracking.domain.contracts import Clock, FilteringObserver
from vehicle_tracking.domain.models import (
    FilteringResult,
    RouteClassification,
    Station,
    StopTime,
    Vehicle,
)

__all__ = [
    "Clock",
    "FilteringObserver",
    "FilteringResult",
    "RouteClassification",
    "Station",
    "StopTime",
    "Vehicle",
]
