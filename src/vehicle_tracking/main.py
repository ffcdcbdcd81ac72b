"""Composition root for the vehicle tracking core."""

import logging
import sys
from collections.abc import Sequence

from vehicle_tracking.adapters.clock import SystemClock
from vehicle_tracking.adapters.config import AppConfig
from vehicle_tracking.adapters.logging_observer import LoggingFilteringObserver
from vehicle_tracking.application.services import (
    CircuitBreaker,
    DirectionAnalysisService,
    IntelligentVehicleFilter,
    RealTimeConfigurationManager,
    RouteActivityAnalyzer,
    VehicleDataValidator,
    VehicleStationAnalyzer,
    VehicleTrackingPipeline,
)
from vehicle_tracking.domain.contracts import Clock, FilteringObserver
from vehicle_tracking.domain.models import Station

logger = logging.getLogger(__name__)


def configure_logging(config: AppConfig) -> None:
    """Configure root logging for command line use."""
    logging.basicConfig(
        level=config.get_log_level(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def create_pipeline(
    config: AppConfig,
    clock: Clock | None = None,
    observer: FilteringObserver | None = None,
    target_stations: Sequence[Station] = (),
) -> VehicleTrackingPipeline:
    """Wire all services from the application configuration.

    Args:
        config: Application configuration.
        clock: Clock to use; the system clock by default.
        observer: Filtering observer; decisions are logged when omitted and debug mode is on.
        target_stations: Stations distance filtering is measured against.

    Returns:
        A ready to use pipeline.
    """
    clock = clock or SystemClock()
    if observer is None and config.debug_mode:
        observer = LoggingFilteringObserver()

    validator = VehicleDataValidator(
        clock,
        stale_data_threshold=config.get_stale_data_threshold(),
        position_accuracy_threshold_meters=config.position_accuracy_threshold_meters,
    )
    analyzer = RouteActivityAnalyzer(
        validator, clock, busy_route_threshold=config.busy_route_threshold
    )
    vehicle_filter = IntelligentVehicleFilter(clock, observer=observer)
    circuit_breaker = CircuitBreaker(
        clock,
        failure_threshold=config.circuit_breaker_failure_threshold,
        recovery_timeout=config.get_recovery_timeout(),
    )
    manager = RealTimeConfigurationManager(
        analyzer,
        vehicle_filter,
        clock,
        config=config.to_route_filtering_config(),
        circuit_breaker=circuit_breaker,
        target_stations=target_stations,
        update_time_warning_ms=config.update_time_warning_ms,
        require_route_association=config.require_route_association,
    )
    direction_service = DirectionAnalysisService(
        clock,
        config.get_timezone(),
        minutes_per_stop=config.minutes_per_stop,
        recent_arrival_window_minutes=config.recent_arrival_window_minutes,
        at_station_threshold_meters=config.at_station_threshold_meters,
    )
    station_analyzer = VehicleStationAnalyzer(
        at_station_threshold=config.at_station_threshold_meters,
        require_stopped_for_at_station=config.require_stopped_for_at_station,
    )

    logger.info(
        f"Vehicle tracking pipeline created (busy threshold {config.busy_route_threshold}, "
        f"distance threshold {config.distance_filter_threshold:.0f}m, timezone {config.timezone})"
    )
    return VehicleTrackingPipeline(manager, direction_service, station_analyzer)
