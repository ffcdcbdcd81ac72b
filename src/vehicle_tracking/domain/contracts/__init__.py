"""Contracts (protocols) for capabilities injected into the analysis services."""

from vehicle_tracking.domain.contracts.clock import Clock
from vehicle_tracking.domain.contracts.filtering_observer import FilteringObserver

__all__ = ["Clock", "FilteringObserver"]
