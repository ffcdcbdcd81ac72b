"""Vehicle data quality validation."""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

from vehicle_tracking.domain.contracts.clock import Clock
from vehicle_tracking.domain.geo import is_valid_coordinate
from vehicle_tracking.domain.models.route_activity import VehicleDataQuality
from vehicle_tracking.domain.models.vehicle import InvalidVehicle, Vehicle

logger = logging.getLogger(__name__)

DEFAULT_STALE_DATA_THRESHOLD = timedelta(minutes=5)
DEFAULT_POSITION_ACCURACY_THRESHOLD_METERS = 1000.0

_INVALID_QUALITY = VehicleDataQuality(
    is_position_valid=False,
    is_timestamp_recent=False,
    has_required_fields=False,
    staleness_score=0.0,
)


class VehicleDataValidator:
    """Judges whether vehicle records are trustworthy enough to count or display.

    All methods are total: malformed records fail the relevant check instead of raising.
    """

    def __init__(
        self,
        clock: Clock,
        stale_data_threshold: timedelta = DEFAULT_STALE_DATA_THRESHOLD,
        position_accuracy_threshold_meters: float | None = DEFAULT_POSITION_ACCURACY_THRESHOLD_METERS,
    ) -> None:
        """Initialize the validator.

        Args:
            clock: Source of the current time.
            stale_data_threshold: Age after which a position report is considered stale.
            position_accuracy_threshold_meters: Reported accuracy radius above which the
                position is rejected. None disables the check.
        """
        if stale_data_threshold <= timedelta(0):
            raise ValueError("stale_data_threshold must be positive")
        self._clock = clock
        self.stale_data_threshold = stale_data_threshold
        self.position_accuracy_threshold_meters = position_accuracy_threshold_meters

    def validate_vehicle_data(self, vehicle: Vehicle | InvalidVehicle | None) -> VehicleDataQuality:
        """Assess the data quality of one vehicle record.

        Args:
            vehicle: Parsed vehicle, or the invalid variant produced at the boundary.

        Returns:
            Quality assessment; invalid variants fail every check.
        """
        if not isinstance(vehicle, Vehicle):
            return _INVALID_QUALITY

        age_seconds = self._age_seconds(vehicle.timestamp)
        threshold_seconds = self.stale_data_threshold.total_seconds()

        if age_seconds is None:
            is_timestamp_recent = False
            staleness_score = 0.0
        else:
            is_timestamp_recent = age_seconds <= threshold_seconds
            staleness_score = min(1.0, max(0.0, 1.0 - age_seconds / threshold_seconds))

        return VehicleDataQuality(
            is_position_valid=self._is_position_valid(vehicle),
            is_timestamp_recent=is_timestamp_recent,
            has_required_fields=self._has_required_fields(vehicle),
            staleness_score=staleness_score,
        )

    def is_valid(self, vehicle: Vehicle | InvalidVehicle | None) -> bool:
        """Check whether a vehicle passes all quality checks."""
        return self.validate_vehicle_data(vehicle).is_valid

    def filter_valid_vehicles(self, vehicles: Iterable[Vehicle | InvalidVehicle]) -> list[Vehicle]:
        """Keep only vehicles passing all quality checks, preserving order.

        Args:
            vehicles: Vehicles to filter.

        Returns:
            The valid vehicles. Applying this again yields the same list.
        """
        vehicle_list = list(vehicles)
        valid_vehicles: list[Vehicle] = [
            v for v in vehicle_list if isinstance(v, Vehicle) and self.is_valid(v)
        ]

        invalid_count = len(vehicle_list) - len(valid_vehicles)
        if invalid_count > 0:
            logger.debug(
                f"Filtered out {invalid_count} invalid vehicles "
                f"({invalid_count / len(vehicle_list) * 100:.1f}% of {len(vehicle_list)})"
            )
        return valid_vehicles

    def get_route_vehicle_count(
        self, route_id: str, vehicles: Iterable[Vehicle | InvalidVehicle]
    ) -> int:
        """Count valid vehicles on a route.

        Args:
            route_id: Route identifier.
            vehicles: Vehicles to count.

        Returns:
            Number of valid vehicles whose route matches; 0 for unknown routes.
        """
        return sum(1 for v in self.filter_valid_vehicles(vehicles) if v.route_id == route_id)

    def _age_seconds(self, timestamp: object) -> float | None:
        """Age of a timestamp relative to now, or None if it is unusable."""
        if not isinstance(timestamp, datetime):
            return None
        now = self._clock.now()
        try:
            return (now - timestamp).total_seconds()
        except TypeError:
            # Naive timestamps cannot be compared against the aware clock
            logger.debug(f"Cannot compare timestamp {timestamp!r} with current time {now!r}")
            return None

    def _is_position_valid(self, vehicle: Vehicle) -> bool:
        position = vehicle.position
        if position is None:
            return False
        if not is_valid_coordinate(position.latitude, position.longitude):
            return False
        return not (
            self.position_accuracy_threshold_meters is not None
            and position.accuracy is not None
            and position.accuracy > self.position_accuracy_threshold_meters
        )

    @staticmethod
    def _has_required_fields(vehicle: Vehicle) -> bool:
        return bool(
            isinstance(vehicle.id, str)
            and vehicle.id.strip()
            and isinstance(vehicle.route_id, str)
            and vehicle.route_id.strip()
            and isinstance(vehicle.label, str)
            and vehicle.label.strip()
            and vehicle.position is not None
        )
