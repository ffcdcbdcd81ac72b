"""Tests for the real-time configuration manager."""

import logging
import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from tests.factories import (
    CENTER_LATITUDE,
    NOW,
    FixedClock,
    make_route_vehicles,
    make_station,
    make_vehicle,
)
from vehicle_tracking.application.services import (
    CircuitBreaker,
    IntelligentVehicleFilter,
    RealTimeConfigurationManager,
    RouteActivityAnalyzer,
    VehicleDataValidator,
)
from vehicle_tracking.domain.models import (
    RouteActivityInfo,
    RouteClassification,
    RouteFilteringConfig,
    RouteTransition,
    Vehicle,
)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def analyzer(clock: FixedClock) -> RouteActivityAnalyzer:
    return RouteActivityAnalyzer(VehicleDataValidator(clock), clock)


@pytest.fixture
def manager(clock: FixedClock, analyzer: RouteActivityAnalyzer) -> RealTimeConfigurationManager:
    return RealTimeConfigurationManager(
        analyzer,
        IntelligentVehicleFilter(clock),
        clock,
        target_stations=[make_station("s1")],
    )


@pytest.fixture
def vehicles() -> list[Vehicle]:
    return make_route_vehicles("24", 4)


def failing_manager(clock: FixedClock) -> tuple[RealTimeConfigurationManager, MagicMock, MagicMock]:
    """Manager whose analyzer always raises."""
    analyzer = MagicMock(spec=RouteActivityAnalyzer)
    analyzer.compute_route_activity.side_effect = RuntimeError("analysis exploded")
    vehicle_filter = MagicMock(spec=IntelligentVehicleFilter)
    manager = RealTimeConfigurationManager(
        analyzer, vehicle_filter, clock, circuit_breaker=CircuitBreaker(clock, failure_threshold=3)
    )
    return manager, analyzer, vehicle_filter


class TestApplyConfigurationUpdate:
    """Tests for successful configuration updates."""

    def test_threshold_change_reports_transition(
        self, manager: RealTimeConfigurationManager, vehicles: list[Vehicle]
    ) -> None:
        """Given 4 vehicles on a route at threshold 10, when lowering it to 1, then the route becomes busy."""
        assert manager.apply_configuration_update({"busy_route_threshold": 10}, vehicles).success

        result = manager.apply_configuration_update({"busy_route_threshold": 1}, vehicles)

        assert result.success is True
        assert result.error is None
        assert len(result.route_transitions) == 1
        transition = result.route_transitions[0]
        assert transition.route_id == "24"
        assert transition.previous_classification is RouteClassification.QUIET
        assert transition.new_classification is RouteClassification.BUSY
        assert transition.previous_vehicle_count == 4
        assert transition.new_vehicle_count == 4
        assert dict(transition.config_change) == {"busy_route_threshold": 1}
        assert result.updated_route_activity["24"].classification is RouteClassification.BUSY

    def test_unchanged_classification_has_no_transitions(
        self, manager: RealTimeConfigurationManager, vehicles: list[Vehicle]
    ) -> None:
        result = manager.apply_configuration_update({"distance_filter_threshold": 500.0}, vehicles)

        assert result.success is True
        assert result.route_transitions == []

    def test_updates_live_config(
        self, manager: RealTimeConfigurationManager, vehicles: list[Vehicle]
    ) -> None:
        manager.apply_configuration_update({"busy_route_threshold": 2}, vehicles)

        assert manager.get_config() == RouteFilteringConfig(busy_route_threshold=2)
        snapshot = manager.get_route_activity_snapshot()
        assert snapshot is not None
        assert snapshot.route_activities["24"].classification is RouteClassification.BUSY

    def test_performance_metrics(
        self, manager: RealTimeConfigurationManager, vehicles: list[Vehicle], clock: FixedClock
    ) -> None:
        result = manager.apply_configuration_update({"busy_route_threshold": 1}, vehicles)

        metrics = result.performance_metrics
        assert metrics.vehicles_reprocessed == 4
        assert metrics.routes_recalculated == 1
        assert metrics.transitions_detected == 1
        assert metrics.circuit_breaker_triggered is False
        assert metrics.last_update_timestamp == clock.now()
        assert metrics.total_update_time_ms >= 0
        assert manager.get_performance_metrics() == metrics

    def test_filtering_result_uses_new_config(
        self, manager: RealTimeConfigurationManager
    ) -> None:
        """Given a busy route, when raising the threshold, then far vehicles are shown again."""
        vehicles = [
            *make_route_vehicles("24", 3),
            make_vehicle("far", "24", latitude=CENTER_LATITUDE + 0.05),
        ]

        busy = manager.apply_configuration_update({"busy_route_threshold": 1}, vehicles)
        quiet = manager.apply_configuration_update({"busy_route_threshold": 10}, vehicles)

        assert busy.filtering_result is not None
        assert quiet.filtering_result is not None
        assert "far" not in {v.id for v in busy.filtering_result.filtered_vehicles}
        assert "far" in {v.id for v in quiet.filtering_result.filtered_vehicles}

    def test_defaults_to_last_processed_vehicles(
        self, manager: RealTimeConfigurationManager, vehicles: list[Vehicle]
    ) -> None:
        manager.process_vehicles(vehicles)

        result = manager.apply_configuration_update({"busy_route_threshold": 1})

        assert result.performance_metrics.vehicles_reprocessed == 4
        assert len(result.route_transitions) == 1

    def test_slow_update_logs_warning(
        self,
        analyzer: RouteActivityAnalyzer,
        vehicles: list[Vehicle],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        clock = MagicMock()
        clock.now.return_value = FixedClock().now()
        clock.monotonic.side_effect = [0.0, 0.05, 0.1, 0.15, 0.2]
        manager = RealTimeConfigurationManager(
            analyzer, IntelligentVehicleFilter(FixedClock()), clock, update_time_warning_ms=100
        )

        with caplog.at_level(logging.WARNING):
            result = manager.apply_configuration_update({"debug_mode": True}, vehicles)

        assert result.success is True
        assert result.performance_metrics.total_update_time_ms == pytest.approx(200)
        assert "above the 100ms target" in caplog.text


class TestFailures:
    """Tests for failed updates and the circuit breaker."""

    def test_invalid_config_fails_without_changing_state(
        self, manager: RealTimeConfigurationManager, vehicles: list[Vehicle]
    ) -> None:
        """Given an out of range value, when updating, then nothing changes and the error is reported."""
        manager.apply_configuration_update({"busy_route_threshold": 2}, vehicles)
        snapshot_before = manager.get_route_activity_snapshot()
        metrics_before = manager.get_performance_metrics()

        result = manager.apply_configuration_update({"busy_route_threshold": -5}, vehicles)

        assert result.success is False
        assert result.error is not None
        assert result.route_transitions == []
        assert manager.get_config().busy_route_threshold == 2
        assert manager.get_route_activity_snapshot() is snapshot_before
        assert manager.get_performance_metrics() == metrics_before
        assert manager.get_circuit_breaker_state().failure_count == 1

    def test_unknown_key_fails(
        self, manager: RealTimeConfigurationManager, vehicles: list[Vehicle]
    ) -> None:
        result = manager.apply_configuration_update({"max_vehicles": 3}, vehicles)

        assert result.success is False

    def test_exception_never_escapes(self, clock: FixedClock, vehicles: list[Vehicle]) -> None:
        manager, _, _ = failing_manager(clock)

        result = manager.apply_configuration_update({"busy_route_threshold": 1}, vehicles)

        assert result.success is False
        assert result.error is not None
        assert "analysis exploded" in result.error

    def test_breaker_opens_and_fails_fast(self, clock: FixedClock, vehicles: list[Vehicle]) -> None:
        """Given 3 failures, when updating again, then the analyzer and filter are not invoked."""
        manager, analyzer, vehicle_filter = failing_manager(clock)
        for _ in range(3):
            manager.apply_configuration_update({"busy_route_threshold": 1}, vehicles)
        assert manager.get_circuit_breaker_state().is_open is True
        analyzer.reset_mock()
        vehicle_filter.reset_mock()

        result = manager.apply_configuration_update({"busy_route_threshold": 1}, vehicles)

        assert result.success is False
        assert result.performance_metrics.circuit_breaker_triggered is True
        assert result.error is not None
        assert "Circuit breaker is open" in result.error
        analyzer.compute_route_activity.assert_not_called()
        vehicle_filter.filter_vehicles.assert_not_called()
        assert manager.get_config() == RouteFilteringConfig()

    def test_reset_allows_updates_again(
        self, clock: FixedClock, analyzer: RouteActivityAnalyzer, vehicles: list[Vehicle]
    ) -> None:
        manager = RealTimeConfigurationManager(analyzer, IntelligentVehicleFilter(clock), clock)
        for _ in range(3):
            manager.apply_configuration_update({"busy_route_threshold": 500}, vehicles)
        assert manager.get_circuit_breaker_state().is_open is True

        manager.reset_circuit_breaker()
        result = manager.apply_configuration_update({"busy_route_threshold": 1}, vehicles)

        assert result.success is True
        state = manager.get_circuit_breaker_state()
        assert state.is_open is False
        assert state.failure_count == 0
        assert state.consecutive_successes == 1

    def test_trial_update_after_recovery_timeout(
        self, clock: FixedClock, analyzer: RouteActivityAnalyzer, vehicles: list[Vehicle]
    ) -> None:
        manager = RealTimeConfigurationManager(analyzer, IntelligentVehicleFilter(clock), clock)
        for _ in range(3):
            manager.apply_configuration_update({"busy_route_threshold": 500}, vehicles)

        clock.advance(timedelta(seconds=31))
        result = manager.apply_configuration_update({"busy_route_threshold": 1}, vehicles)

        assert result.success is True
        assert manager.get_circuit_breaker_state().is_open is False


class TestRouteTransitionCallbacks:
    """Tests for transition subscriptions."""

    def test_callback_invoked_per_transition(
        self, manager: RealTimeConfigurationManager, vehicles: list[Vehicle]
    ) -> None:
        received: list[RouteTransition] = []
        manager.on_route_transition(received.append)
        manager.apply_configuration_update({"busy_route_threshold": 10}, vehicles)

        manager.apply_configuration_update({"busy_route_threshold": 1}, vehicles)

        assert [t.route_id for t in received] == ["24"]

    def test_unsubscribe(
        self, manager: RealTimeConfigurationManager, vehicles: list[Vehicle]
    ) -> None:
        callback = MagicMock()
        unsubscribe = manager.on_route_transition(callback)

        unsubscribe()
        manager.apply_configuration_update({"busy_route_threshold": 1}, vehicles)

        callback.assert_not_called()

    def test_failing_callback_does_not_fail_update(
        self,
        manager: RealTimeConfigurationManager,
        vehicles: list[Vehicle],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        manager.on_route_transition(MagicMock(side_effect=RuntimeError("listener broke")))
        other = MagicMock()
        manager.on_route_transition(other)

        with caplog.at_level(logging.ERROR):
            result = manager.apply_configuration_update({"busy_route_threshold": 1}, vehicles)

        assert result.success is True
        other.assert_called_once()
        assert "Route transition callback failed" in caplog.text


class TestProcessVehicles:
    """Tests for tick processing."""

    def test_process_vehicles_uses_live_config(
        self, manager: RealTimeConfigurationManager, vehicles: list[Vehicle]
    ) -> None:
        manager.apply_configuration_update({"busy_route_threshold": 1}, [])

        result = manager.process_vehicles(vehicles)

        snapshot = result.metadata.route_activity_snapshot
        assert snapshot is not None
        assert snapshot.route_activities["24"].classification is RouteClassification.BUSY
        assert manager.get_last_filtering_result() is result

    def test_stale_vehicles_are_not_shown(
        self, manager: RealTimeConfigurationManager
    ) -> None:
        stale = make_vehicle("old", "99", age=timedelta(hours=1))

        result = manager.process_vehicles([stale, make_vehicle("new", "24")])

        assert [v.id for v in result.filtered_vehicles] == ["new"]

    def test_concurrent_updates_are_serialized(
        self, manager: RealTimeConfigurationManager, vehicles: list[Vehicle]
    ) -> None:
        """Given many threads updating, then every update succeeds and the final state is consistent."""
        results = []

        def update(threshold: int) -> None:
            results.append(
                manager.apply_configuration_update({"busy_route_threshold": threshold}, vehicles)
            )

        threads = [threading.Thread(target=update, args=(i % 10,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert all(r.success for r in results)
        snapshot = manager.get_route_activity_snapshot()
        assert snapshot is not None
        expected = (
            RouteClassification.BUSY
            if 4 > manager.get_config().busy_route_threshold
            else RouteClassification.QUIET
        )
        assert snapshot.route_activities["24"].classification is expected


def _activity(route_id: str, count: int, classification: RouteClassification) -> RouteActivityInfo:
    return RouteActivityInfo(
        route_id=route_id,
        vehicle_count=count,
        valid_vehicle_count=count,
        classification=classification,
        last_updated=NOW,
    )


def test_detect_route_transitions_ignores_new_and_removed_routes(
    manager: RealTimeConfigurationManager,
) -> None:
    """Given routes that change, appear and disappear, then only the changed route is a transition."""
    previous = {
        "24": _activity("24", 4, RouteClassification.QUIET),
        "35": _activity("35", 2, RouteClassification.QUIET),
        "gone": _activity("gone", 9, RouteClassification.BUSY),
    }
    current = {
        "24": _activity("24", 4, RouteClassification.BUSY),
        "35": _activity("35", 2, RouteClassification.QUIET),
        "new": _activity("new", 9, RouteClassification.BUSY),
    }

    transitions = manager.detect_route_transitions(
        previous, current, config_change={"busy_route_threshold": 3}
    )

    assert len(transitions) == 1
    assert transitions[0].route_id == "24"
    assert transitions[0].previous_classification is RouteClassification.QUIET
    assert transitions[0].new_classification is RouteClassification.BUSY
    assert transitions[0].timestamp == NOW
    assert transitions[0].config_change == {"busy_route_threshold": 3}
