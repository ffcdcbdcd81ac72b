"""Live filtering configuration with atomic recalculation."""

import logging
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime
from types import MappingProxyType
from typing import Any

from vehicle_tracking.application.services.circuit_breaker import CircuitBreaker
from vehicle_tracking.application.services.intelligent_vehicle_filter import (
    IntelligentVehicleFilter,
)
from vehicle_tracking.application.services.route_activity_analyzer import RouteActivityAnalyzer
from vehicle_tracking.domain.contracts.clock import Clock
from vehicle_tracking.domain.errors import CircuitOpenError, ConfigurationUpdateError
from vehicle_tracking.domain.models.configuration_update import (
    CircuitBreakerState,
    ConfigurationUpdateResult,
    RealTimePerformanceMetrics,
    RouteTransition,
)
from vehicle_tracking.domain.models.filtering import FilteringContext, FilteringResult
from vehicle_tracking.domain.models.route_activity import RouteActivityInfo, RouteActivitySnapshot
from vehicle_tracking.domain.models.route_filtering_config import RouteFilteringConfig
from vehicle_tracking.domain.models.station import Station
from vehicle_tracking.domain.models.vehicle import InvalidVehicle, Vehicle

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_TIME_WARNING_MS = 100.0

RouteTransitionCallback = Callable[[RouteTransition], None]


class RealTimeConfigurationManager:
    """Owns the live filtering configuration and applies changes to it atomically.

    Every configuration update recomputes route activity and filtering for the
    given vehicles. The new configuration, route activity snapshot and filtering
    result only become visible once all of them were computed; a failing update
    leaves the previous state untouched and counts towards the circuit breaker.

    Configuration updates and tick processing share one lock. Readers get
    immutable snapshots and never wait for it.
    """

    def __init__(
        self,
        analyzer: RouteActivityAnalyzer,
        vehicle_filter: IntelligentVehicleFilter,
        clock: Clock,
        config: RouteFilteringConfig | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        target_stations: Sequence[Station] = (),
        update_time_warning_ms: float = DEFAULT_UPDATE_TIME_WARNING_MS,
        require_route_association: bool = False,
    ) -> None:
        """Initialize the manager.

        Args:
            analyzer: Route activity analyzer whose snapshot this manager keeps current.
            vehicle_filter: Filter applied after every analysis.
            clock: Source of the current time and of durations.
            config: Initial configuration; defaults are used when omitted.
            circuit_breaker: Breaker guarding updates; a default one is created when omitted.
            target_stations: Stations distance filtering is measured against.
            update_time_warning_ms: Update duration above which a warning is logged.
            require_route_association: Exclude vehicles whose route serves none of the
                target stations.
        """
        self._analyzer = analyzer
        self._filter = vehicle_filter
        self._clock = clock
        self._config = config or RouteFilteringConfig()
        self._circuit_breaker = circuit_breaker or CircuitBreaker(clock)
        self._target_stations: tuple[Station, ...] = tuple(target_stations)
        self.update_time_warning_ms = update_time_warning_ms
        self.require_route_association = require_route_association

        self._lock = threading.Lock()
        self._performance_metrics = RealTimePerformanceMetrics()
        self._current_vehicles: tuple[Vehicle | InvalidVehicle, ...] = ()
        self._last_filtering_result: FilteringResult | None = None
        self._transition_callbacks: tuple[RouteTransitionCallback, ...] = ()

    def apply_configuration_update(
        self,
        partial_config: Mapping[str, Any],
        current_vehicles: Iterable[Vehicle | InvalidVehicle] | None = None,
    ) -> ConfigurationUpdateResult:
        """Merge a configuration change and recompute route activity and filtering.

        Args:
            partial_config: Fields of RouteFilteringConfig to change.
            current_vehicles: Vehicles to recompute for. Defaults to the last batch
                processed by this manager.

        Returns:
            The outcome. Never raises; failures are reported with success=False.
        """
        with self._lock:
            result = self._apply_locked(partial_config, current_vehicles)

        if result.success:
            self._notify_transitions(result.route_transitions)
        return result

    def process_vehicles(
        self, vehicles: Iterable[Vehicle | InvalidVehicle]
    ) -> FilteringResult:
        """Analyze and filter one tick's vehicles under the live configuration.

        Returns:
            The filtering result, which also becomes the latest result of the manager.
        """
        with self._lock:
            vehicle_list = tuple(vehicles)
            config = self._config
            analysis = self._analyzer.compute_route_activity(
                vehicle_list, config.busy_route_threshold
            )
            filtering_result = self._filter.filter_vehicles(
                self._analyzer.filter_valid_vehicles(vehicle_list),
                analysis.route_activities,
                self._filtering_context(config),
                analysis.snapshot,
            )
            self._analyzer.commit(analysis)
            self._current_vehicles = vehicle_list
            self._last_filtering_result = filtering_result
        return filtering_result

    def detect_route_transitions(
        self,
        previous: Mapping[str, RouteActivityInfo],
        current: Mapping[str, RouteActivityInfo],
        config_change: Mapping[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> list[RouteTransition]:
        """List routes present in both analyses whose classification changed."""
        timestamp = timestamp or self._clock.now()
        change = MappingProxyType(dict(config_change or {}))
        transitions = []
        for route_id, new_activity in current.items():
            old_activity = previous.get(route_id)
            if old_activity is None or old_activity.classification == new_activity.classification:
                continue
            transitions.append(
                RouteTransition(
                    route_id=route_id,
                    previous_classification=old_activity.classification,
                    new_classification=new_activity.classification,
                    previous_vehicle_count=old_activity.vehicle_count,
                    new_vehicle_count=new_activity.vehicle_count,
                    timestamp=timestamp,
                    config_change=change,
                )
            )
        return transitions

    def on_route_transition(self, callback: RouteTransitionCallback) -> Callable[[], None]:
        """Register a callback invoked once per transition of each successful update.

        Returns:
            A function that removes the callback again.
        """
        with self._lock:
            self._transition_callbacks = (*self._transition_callbacks, callback)

        def unsubscribe() -> None:
            with self._lock:
                self._transition_callbacks = tuple(
                    registered for registered in self._transition_callbacks if registered is not callback
                )

        return unsubscribe

    def set_target_stations(self, stations: Sequence[Station]) -> None:
        """Replace the stations used for distance filtering from the next pass on."""
        with self._lock:
            self._target_stations = tuple(stations)

    def reset_circuit_breaker(self) -> None:
        """Close the circuit breaker regardless of its state."""
        with self._lock:
            self._circuit_breaker.reset()

    def get_config(self) -> RouteFilteringConfig:
        return self._config

    def get_performance_metrics(self) -> RealTimePerformanceMetrics:
        return self._performance_metrics

    def get_circuit_breaker_state(self) -> CircuitBreakerState:
        return self._circuit_breaker.state

    def get_route_activity_snapshot(self) -> RouteActivitySnapshot | None:
        return self._analyzer.get_route_activity_snapshot()

    def get_last_filtering_result(self) -> FilteringResult | None:
        return self._last_filtering_result

    def _apply_locked(
        self,
        partial_config: Mapping[str, Any],
        current_vehicles: Iterable[Vehicle | InvalidVehicle] | None,
    ) -> ConfigurationUpdateResult:
        start = self._clock.monotonic()

        if not self._circuit_breaker.allow_request():
            error = CircuitOpenError(
                f"Circuit breaker is open after {self._circuit_breaker.state.failure_count} "
                "failures, configuration update rejected"
            )
            logger.warning(str(error))
            return ConfigurationUpdateResult(
                success=False,
                performance_metrics=RealTimePerformanceMetrics(circuit_breaker_triggered=True),
                error=str(error),
            )

        try:
            previous_config = self._config
            new_config = previous_config.merged_with(partial_config)
            config_done = self._clock.monotonic()

            vehicle_list = (
                self._current_vehicles if current_vehicles is None else tuple(current_vehicles)
            )
            # Both passes use the same vehicles so transitions come from the config change only
            previous_analysis = self._analyzer.compute_route_activity(
                vehicle_list, previous_config.busy_route_threshold
            )
            new_analysis = self._analyzer.compute_route_activity(
                vehicle_list, new_config.busy_route_threshold
            )
            recalculation_done = self._clock.monotonic()

            filtering_result = self._filter.filter_vehicles(
                self._analyzer.filter_valid_vehicles(vehicle_list),
                new_analysis.route_activities,
                self._filtering_context(new_config),
                new_analysis.snapshot,
            )
            filtering_done = self._clock.monotonic()

            timestamp = self._clock.now()
            transitions = self.detect_route_transitions(
                previous_analysis.route_activities,
                new_analysis.route_activities,
                config_change=partial_config,
                timestamp=timestamp,
            )
        except Exception as e:
            self._circuit_breaker.record_failure()
            error = ConfigurationUpdateError(f"Configuration update failed: {e}")
            logger.exception(str(error))
            return ConfigurationUpdateResult(
                success=False,
                performance_metrics=RealTimePerformanceMetrics(
                    circuit_breaker_triggered=self._circuit_breaker.state.is_open
                ),
                error=str(error),
            )

        end = self._clock.monotonic()
        metrics = RealTimePerformanceMetrics(
            config_update_time_ms=max(0.0, (config_done - start) * 1000),
            route_recalculation_time_ms=max(0.0, (recalculation_done - config_done) * 1000),
            filtering_update_time_ms=max(0.0, (filtering_done - recalculation_done) * 1000),
            total_update_time_ms=max(0.0, (end - start) * 1000),
            routes_recalculated=len(new_analysis.route_activities),
            vehicles_reprocessed=len(vehicle_list),
            transitions_detected=len(transitions),
            circuit_breaker_triggered=False,
            last_update_timestamp=timestamp,
        )

        self._config = new_config
        self._analyzer.commit(new_analysis)
        self._current_vehicles = vehicle_list
        self._last_filtering_result = filtering_result
        self._performance_metrics = metrics
        self._circuit_breaker.record_success()

        logger.info(
            f"Configuration updated ({dict(partial_config)}): {metrics.routes_recalculated} routes "
            f"recalculated, {len(transitions)} transitions, {metrics.total_update_time_ms:.2f}ms"
        )
        if metrics.total_update_time_ms > self.update_time_warning_ms:
            logger.warning(
                f"Configuration update took {metrics.total_update_time_ms:.2f}ms, "
                f"above the {self.update_time_warning_ms:.0f}ms target"
            )

        return ConfigurationUpdateResult(
            success=True,
            performance_metrics=metrics,
            route_transitions=transitions,
            updated_route_activity=MappingProxyType(dict(new_analysis.route_activities)),
            filtering_result=filtering_result,
        )

    def _filtering_context(self, config: RouteFilteringConfig) -> FilteringContext:
        return FilteringContext(
            target_stations=self._target_stations,
            busy_route_threshold=config.busy_route_threshold,
            distance_filter_threshold=config.distance_filter_threshold,
            debug_mode=config.debug_mode,
            require_route_association=self.require_route_association,
        )

    def _notify_transitions(self, transitions: list[RouteTransition]) -> None:
        callbacks = self._transition_callbacks
        for transition in transitions:
            logger.info(
                f"Route {transition.route_id} changed from "
                f"{transition.previous_classification.value} to {transition.new_classification.value}"
            )
            for callback in callbacks:
                try:
                    callback(transition)
                except Exception:
                    logger.exception(f"Route transition callback failed for route {transition.route_id}")
