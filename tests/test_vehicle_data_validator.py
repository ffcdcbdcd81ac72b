"""Tests for vehicle data validation."""

import math
from datetime import datetime, timedelta

import pytest

from tests.factories import FixedClock, make_vehicle
from vehicle_tracking.application.services import VehicleDataValidator
from vehicle_tracking.domain.models import InvalidVehicle, VehiclePosition


@pytest.fixture
def validator() -> VehicleDataValidator:
    return VehicleDataValidator(FixedClock())


def test_fresh_vehicle_is_valid(validator: VehicleDataValidator) -> None:
    """Given a vehicle reported 30s ago, when validating, then every check passes."""
    quality = validator.validate_vehicle_data(make_vehicle())

    assert quality.is_position_valid is True
    assert quality.is_timestamp_recent is True
    assert quality.has_required_fields is True
    assert quality.staleness_score == pytest.approx(0.9)
    assert quality.is_valid is True


def test_stale_vehicle_is_invalid(validator: VehicleDataValidator) -> None:
    """Given a vehicle reported 6 minutes ago, when validating, then it is stale."""
    quality = validator.validate_vehicle_data(make_vehicle(age=timedelta(minutes=6)))

    assert quality.is_timestamp_recent is False
    assert quality.staleness_score == 0.0
    assert quality.is_valid is False


def test_vehicle_at_exact_threshold_is_recent(validator: VehicleDataValidator) -> None:
    quality = validator.validate_vehicle_data(make_vehicle(age=timedelta(minutes=5)))

    assert quality.is_timestamp_recent is True
    assert quality.staleness_score == 0.0


def test_future_timestamp_has_full_staleness_score(validator: VehicleDataValidator) -> None:
    quality = validator.validate_vehicle_data(make_vehicle(age=timedelta(minutes=-2)))

    assert quality.staleness_score == 1.0


@pytest.mark.parametrize(
    "position",
    [
        None,
        VehiclePosition(math.nan, 23.59),
        VehiclePosition(46.77, math.inf),
        VehiclePosition(123.0, 23.59),
        VehiclePosition(46.77, 23.59, accuracy=1500.0),
    ],
)
def test_unusable_position_is_invalid(
    validator: VehicleDataValidator, position: VehiclePosition | None
) -> None:
    """Given a missing, non-finite, out of range or inaccurate position, then it is invalid."""
    quality = validator.validate_vehicle_data(make_vehicle(position=position))

    assert quality.is_position_valid is False
    assert quality.is_valid is False


def test_accurate_position_is_valid(validator: VehicleDataValidator) -> None:
    vehicle = make_vehicle(position=VehiclePosition(46.77, 23.59, accuracy=25.0))

    assert validator.is_valid(vehicle) is True


@pytest.mark.parametrize("field", ["id", "route_id", "label"])
def test_missing_required_field_is_invalid(validator: VehicleDataValidator, field: str) -> None:
    vehicle = make_vehicle(**{field: " "})

    assert validator.validate_vehicle_data(vehicle).has_required_fields is False


def test_naive_timestamp_is_not_recent(validator: VehicleDataValidator) -> None:
    """Given a naive timestamp, when validating, then it fails instead of raising."""
    vehicle = make_vehicle(timestamp=datetime(2026, 3, 10, 8, 0))

    quality = validator.validate_vehicle_data(vehicle)

    assert quality.is_timestamp_recent is False


@pytest.mark.parametrize("record", [None, InvalidVehicle(id="x", route_id="24"), {"id": "x"}])
def test_non_vehicle_input_fails_every_check(
    validator: VehicleDataValidator, record: object
) -> None:
    quality = validator.validate_vehicle_data(record)  # type: ignore[arg-type]

    assert quality.is_position_valid is False
    assert quality.is_timestamp_recent is False
    assert quality.has_required_fields is False
    assert quality.staleness_score == 0.0


def test_filter_valid_vehicles_is_idempotent(validator: VehicleDataValidator) -> None:
    """Given a mixed list, when filtering twice, then the result does not change."""
    vehicles = [
        make_vehicle("a"),
        make_vehicle("b", age=timedelta(hours=1)),
        InvalidVehicle(id="c", route_id="24"),
        make_vehicle("d", position=None),
        make_vehicle("e"),
    ]

    once = validator.filter_valid_vehicles(vehicles)
    twice = validator.filter_valid_vehicles(once)

    assert [v.id for v in once] == ["a", "e"]
    assert twice == once


def test_get_route_vehicle_count(validator: VehicleDataValidator) -> None:
    vehicles = [
        make_vehicle("a", "24"),
        make_vehicle("b", "24"),
        make_vehicle("c", "24", age=timedelta(hours=1)),
        make_vehicle("d", "35"),
    ]

    assert validator.get_route_vehicle_count("24", vehicles) == 2
    assert validator.get_route_vehicle_count("99", vehicles) == 0


def test_rejects_non_positive_stale_threshold() -> None:
    with pytest.raises(ValueError, match="must be positive"):
        VehicleDataValidator(FixedClock(), stale_data_threshold=timedelta(0))
