"""Tests for domain models."""

import dataclasses

import pytest
from pydantic import ValidationError

from tests.factories import NOW, make_vehicle
from vehicle_tracking.domain.models import (
    ConfidenceLevel,
    DirectionAnalysis,
    DirectionStatus,
    InvalidVehicle,
    RouteClassification,
    RouteFilteringConfig,
    VehicleDataQuality,
)


def test_vehicle_is_immutable() -> None:
    """Given a vehicle, when assigning a field, then FrozenInstanceError is raised."""
    vehicle = make_vehicle()

    with pytest.raises(dataclasses.FrozenInstanceError):
        vehicle.route_id = "35"  # type: ignore[misc]


def test_vehicle_defaults() -> None:
    """Given only required fields, when creating a Vehicle, then optional fields have defaults."""
    vehicle = make_vehicle()

    assert vehicle.trip_id is None
    assert vehicle.speed is None
    assert vehicle.is_wheelchair_accessible is False
    assert vehicle.timestamp < NOW


def test_invalid_vehicle_keeps_problems() -> None:
    """Given parse problems, when creating an InvalidVehicle, then they are kept."""
    invalid = InvalidVehicle(id="7", route_id=None, problems=["missing route id"])

    assert invalid.problems == ["missing route id"]


def test_data_quality_is_valid_only_when_all_checks_pass() -> None:
    """Given quality flags, when reading is_valid, then it requires every check."""
    good = VehicleDataQuality(True, True, True, 0.9)
    stale = VehicleDataQuality(True, False, True, 0.0)

    assert good.is_valid is True
    assert stale.is_valid is False


def test_route_classification_values() -> None:
    """Given the classification enum, then values are lowercase strings."""
    assert RouteClassification.BUSY == "busy"
    assert RouteClassification.QUIET.value == "quiet"


def test_unknown_direction_analysis() -> None:
    """Given no usable input, when building the unknown result, then it is low confidence."""
    analysis = DirectionAnalysis.unknown()

    assert analysis.direction is DirectionStatus.UNKNOWN
    assert analysis.estimated_minutes == 0
    assert analysis.confidence is ConfidenceLevel.LOW
    assert analysis.stop_sequence is None


class TestRouteFilteringConfig:
    """Tests for RouteFilteringConfig."""

    def test_defaults(self) -> None:
        config = RouteFilteringConfig()

        assert config.busy_route_threshold == 5
        assert config.distance_filter_threshold == 2000.0
        assert config.debug_mode is False

    def test_merged_with_applies_partial_changes(self) -> None:
        """Given a partial change, when merging, then only the given field changes."""
        config = RouteFilteringConfig().merged_with({"busy_route_threshold": 10})

        assert config.busy_route_threshold == 10
        assert config.distance_filter_threshold == 2000.0

    def test_merged_with_does_not_modify_original(self) -> None:
        original = RouteFilteringConfig()

        original.merged_with({"debug_mode": True})

        assert original.debug_mode is False

    @pytest.mark.parametrize(
        "changes",
        [
            {"busy_route_threshold": -1},
            {"busy_route_threshold": 101},
            {"distance_filter_threshold": 50_001},
            {"unknown_setting": 1},
        ],
    )
    def test_merged_with_rejects_invalid_values(self, changes: dict[str, object]) -> None:
        """Given an out of range or unknown field, when merging, then ValidationError is raised."""
        with pytest.raises(ValidationError):
            RouteFilteringConfig().merged_with(changes)

    def test_is_frozen(self) -> None:
        config = RouteFilteringConfig()

        with pytest.raises(ValidationError):
            config.busy_route_threshold = 3  # type: ignore[misc]
