"""Vehicle domain models."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class VehiclePosition:
    """Reported GPS position of a vehicle."""

    latitude: float
    longitude: float
    accuracy: float | None = None  # Reported accuracy radius in meters, if the feed provides one


@dataclass(frozen=True)
class Vehicle:
    """A single live vehicle as reported in one polling tick."""

    id: str
    route_id: str
    label: str
    position: VehiclePosition | None
    timestamp: datetime
    trip_id: str | None = None
    speed: float | None = None  # km/h
    bearing: float | None = None  # degrees
    is_wheelchair_accessible: bool = False
    is_bike_accessible: bool = False


@dataclass(frozen=True)
class InvalidVehicle:
    """A vehicle record that could not be parsed into a Vehicle.

    Kept so that counts and filtering decisions still account for every input record.
    """

    id: str | None
    route_id: str | None
    problems: list[str] = field(default_factory=list)
