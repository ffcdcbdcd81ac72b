"""Route activity analysis service."""

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from types import MappingProxyType

from vehicle_tracking.application.services.vehicle_data_validator import VehicleDataValidator
from vehicle_tracking.domain.contracts.clock import Clock
from vehicle_tracking.domain.models.route_activity import (
    RouteActivityInfo,
    RouteActivitySnapshot,
    RouteAnalysisPerformanceMetrics,
    RouteClassification,
    VehicleDataQuality,
)
from vehicle_tracking.domain.models.vehicle import InvalidVehicle, Vehicle

logger = logging.getLogger(__name__)

DEFAULT_BUSY_ROUTE_THRESHOLD = 5
HIGH_INVALID_RATIO = 0.5


@dataclass(frozen=True)
class RouteActivityAnalysis:
    """Result of a route activity computation that has not been committed yet."""

    route_activities: dict[str, RouteActivityInfo]
    snapshot: RouteActivitySnapshot
    performance_metrics: RouteAnalysisPerformanceMetrics


class RouteActivityAnalyzer:
    """Groups valid vehicles by route and classifies each route as busy or quiet.

    Keeps the last computed snapshot and the counters of the last pass. The snapshot
    is replaced atomically, so readers never block and never see a partial result.
    """

    def __init__(
        self,
        validator: VehicleDataValidator,
        clock: Clock,
        busy_route_threshold: int = DEFAULT_BUSY_ROUTE_THRESHOLD,
    ) -> None:
        """Initialize the analyzer.

        Args:
            validator: Validator used to exclude stale or malformed vehicles.
            clock: Source of the current time.
            busy_route_threshold: Default threshold when a pass does not provide one.
        """
        self._validator = validator
        self._clock = clock
        self.busy_route_threshold = busy_route_threshold
        self._snapshot: RouteActivitySnapshot | None = None
        self._performance_metrics = RouteAnalysisPerformanceMetrics()
        self._commit_lock = threading.Lock()

    def analyze_route_activity(
        self,
        vehicles: Iterable[Vehicle | InvalidVehicle],
        busy_route_threshold: int | None = None,
    ) -> dict[str, RouteActivityInfo]:
        """Analyze route activity and store the result as the current snapshot.

        Args:
            vehicles: Vehicles of the current tick.
            busy_route_threshold: Threshold for this pass; defaults to the analyzer's own.

        Returns:
            Map of route id to activity information. Empty for empty input.
        """
        analysis = self.compute_route_activity(vehicles, busy_route_threshold)
        self.commit(analysis)
        return dict(analysis.route_activities)

    def compute_route_activity(
        self,
        vehicles: Iterable[Vehicle | InvalidVehicle],
        busy_route_threshold: int | None = None,
    ) -> RouteActivityAnalysis:
        """Compute route activity without touching the stored snapshot or counters.

        Used by callers that must decide whether to keep the result only after
        further processing succeeded.
        """
        start = self._clock.monotonic()
        threshold = self.busy_route_threshold if busy_route_threshold is None else busy_route_threshold
        vehicle_list = list(vehicles)

        if not vehicle_list:
            logger.debug("No vehicle data provided for route activity analysis")

        valid_vehicles = self._validator.filter_valid_vehicles(vehicle_list)
        invalid_count = len(vehicle_list) - len(valid_vehicles)
        if vehicle_list and invalid_count / len(vehicle_list) > HIGH_INVALID_RATIO:
            logger.warning(
                f"High percentage of invalid vehicles detected: {invalid_count} of "
                f"{len(vehicle_list)} ({invalid_count / len(vehicle_list) * 100:.1f}%)"
            )

        route_counts: dict[str, int] = {}
        for vehicle in valid_vehicles:
            route_counts[vehicle.route_id] = route_counts.get(vehicle.route_id, 0) + 1

        now = self._clock.now()
        route_activities: dict[str, RouteActivityInfo] = {}
        busy_routes: list[str] = []
        quiet_routes: list[str] = []
        for route_id, count in route_counts.items():
            classification = self.classify_route(route_id, count, threshold)
            route_activities[route_id] = RouteActivityInfo(
                route_id=route_id,
                vehicle_count=count,
                valid_vehicle_count=count,
                classification=classification,
                last_updated=now,
            )
            if classification is RouteClassification.BUSY:
                busy_routes.append(route_id)
            else:
                quiet_routes.append(route_id)

        snapshot = RouteActivitySnapshot(
            timestamp=now,
            route_activities=MappingProxyType(dict(route_activities)),
            total_vehicles=len(valid_vehicles),
            busy_routes=tuple(busy_routes),
            quiet_routes=tuple(quiet_routes),
        )
        analysis_time_ms = (self._clock.monotonic() - start) * 1000
        metrics = RouteAnalysisPerformanceMetrics(
            analysis_time_ms=max(0.0, analysis_time_ms),
            vehicles_processed=len(vehicle_list),
            valid_vehicles=len(valid_vehicles),
            invalid_vehicles=invalid_count,
            routes_analyzed=len(route_activities),
            cache_hit_rate=0.0,
        )

        logger.debug(
            f"Route activity analysis completed: {len(route_activities)} routes "
            f"({len(busy_routes)} busy, {len(quiet_routes)} quiet), "
            f"{len(valid_vehicles)} valid / {invalid_count} invalid vehicles, "
            f"threshold={threshold}, {metrics.analysis_time_ms:.2f}ms"
        )
        return RouteActivityAnalysis(
            route_activities=route_activities,
            snapshot=snapshot,
            performance_metrics=metrics,
        )

    def commit(self, analysis: RouteActivityAnalysis) -> None:
        """Make a computed analysis the current snapshot and counters."""
        with self._commit_lock:
            self._snapshot = analysis.snapshot
            self._performance_metrics = analysis.performance_metrics

    def classify_route(self, route_id: str, vehicle_count: int, threshold: int) -> RouteClassification:
        """Classify a route as busy (count > threshold) or quiet."""
        classification = (
            RouteClassification.BUSY if vehicle_count > threshold else RouteClassification.QUIET
        )
        logger.debug(
            f"Route {route_id} classified as {classification.value} "
            f"({vehicle_count} vehicles, threshold {threshold})"
        )
        return classification

    def get_route_vehicle_count(
        self, route_id: str, vehicles: Iterable[Vehicle | InvalidVehicle]
    ) -> int:
        """Count valid vehicles on a route."""
        return self._validator.get_route_vehicle_count(route_id, vehicles)

    def validate_vehicle_data(self, vehicle: Vehicle | InvalidVehicle | None) -> VehicleDataQuality:
        """Assess the data quality of one vehicle."""
        return self._validator.validate_vehicle_data(vehicle)

    def filter_valid_vehicles(self, vehicles: Iterable[Vehicle | InvalidVehicle]) -> list[Vehicle]:
        """Keep only vehicles passing all quality checks."""
        return self._validator.filter_valid_vehicles(vehicles)

    def get_route_activity_snapshot(self) -> RouteActivitySnapshot | None:
        """Return the last committed snapshot, or None before any analysis."""
        return self._snapshot

    def get_performance_metrics(self) -> RouteAnalysisPerformanceMetrics:
        """Return the counters of the last committed analysis."""
        return self._performance_metrics

    def clear_cache(self) -> None:
        """Forget the stored snapshot."""
        with self._commit_lock:
            self._snapshot = None
        logger.debug("Route activity snapshot cleared")
