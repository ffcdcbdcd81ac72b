"""Domain models for live vehicle tracking."""

from vehicle_tracking.domain.models.configuration_update import (
    CircuitBreakerState,
    ConfigurationUpdateResult,
    RealTimePerformanceMetrics,
    RouteTransition,
)
from vehicle_tracking.domain.models.direction import (
    ConfidenceLevel,
    DirectionAnalysis,
    DirectionStatus,
    StopSequenceEntry,
)
from vehicle_tracking.domain.models.filtering import (
    FilteringContext,
    FilteringDecision,
    FilteringMetadata,
    FilteringPerformanceMetrics,
    FilteringResult,
    UserFeedback,
)
from vehicle_tracking.domain.models.route_activity import (
    RouteActivityInfo,
    RouteActivitySnapshot,
    RouteAnalysisPerformanceMetrics,
    RouteClassification,
    VehicleDataQuality,
)
from vehicle_tracking.domain.models.route_filtering_config import RouteFilteringConfig
from vehicle_tracking.domain.models.station import Coordinates, Station
from vehicle_tracking.domain.models.station_analysis import (
    NearestStation,
    VehicleStationAnalysis,
    VehicleStationAnalysisResult,
    VehicleStationAnalysisStats,
    VehicleStationStatus,
)
from vehicle_tracking.domain.models.stop_time import StopTime
from vehicle_tracking.domain.models.vehicle import InvalidVehicle, Vehicle, VehiclePosition

__all__ = [
    "CircuitBreakerState",
    "ConfidenceLevel",
    "ConfigurationUpdateResult",
    "Coordinates",
    "DirectionAnalysis",
    "DirectionStatus",
    "FilteringContext",
    "FilteringDecision",
    "FilteringMetadata",
    "FilteringPerformanceMetrics",
    "FilteringResult",
    "InvalidVehicle",
    "NearestStation",
    "RealTimePerformanceMetrics",
    "RouteActivityInfo",
    "RouteActivitySnapshot",
    "RouteAnalysisPerformanceMetrics",
    "RouteClassification",
    "RouteFilteringConfig",
    "RouteTransition",
    "Station",
    "StopSequenceEntry",
    "StopTime",
    "UserFeedback",
    "Vehicle",
    "VehicleDataQuality",
    "VehiclePosition",
    "VehicleStationAnalysis",
    "VehicleStationAnalysisResult",
    "VehicleStationAnalysisStats",
    "VehicleStationStatus",
]
