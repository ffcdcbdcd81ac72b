"""Application services for live vehicle tracking."""

from vehicle_tracking.application.services.circuit_breaker import CircuitBreaker
from vehicle_tracking.application.services.direction_analysis_service import (
    DirectionAnalysisService,
)
from vehicle_tracking.application.services.intelligent_vehicle_filter import (
    IntelligentVehicleFilter,
)
from vehicle_tracking.application.services.realtime_configuration_manager import (
    RealTimeConfigurationManager,
)
from vehicle_tracking.application.services.route_activity_analyzer import RouteActivityAnalyzer
from vehicle_tracking.application.services.tracking_pipeline import VehicleTrackingPipeline
from vehicle_tracking.application.services.vehicle_data_validator import VehicleDataValidator
from vehicle_tracking.application.services.vehicle_station_analyzer import VehicleStationAnalyzer

__all__ = [
    "CircuitBreaker",
    "DirectionAnalysisService",
    "IntelligentVehicleFilter",
    "RealTimeConfigurationManager",
    "RouteActivityAnalyzer",
    "VehicleDataValidator",
    "VehicleStationAnalyzer",
    "VehicleTrackingPipeline",
]
