"""Adapters layer - host-side boundary code."""

from vehicle_tracking.adapters.clock import FixedClock, SystemClock
from vehicle_tracking.adapters.config import AppConfig
from vehicle_tracking.adapters.logging_observer import LoggingFilteringObserver
from vehicle_tracking.adapters.parsing import ParsedSnapshot, PayloadParser

__all__ = [
    "AppConfig",
    "FixedClock",
    "LoggingFilteringObserver",
    "ParsedSnapshot",
    "PayloadParser",
    "SystemClock",
]
