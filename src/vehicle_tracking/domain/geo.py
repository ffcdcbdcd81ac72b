"""Great-circle distance helpers."""

import math
from collections.abc import Iterable

from vehicle_tracking.domain.models.station import Coordinates, Station
from vehicle_tracking.domain.models.vehicle import VehiclePosition

EARTH_RADIUS_METERS = 6_371_000.0


def is_valid_coordinate(latitude: object, longitude: object) -> bool:
    """Check that a latitude/longitude pair is finite and within range."""
    if isinstance(latitude, bool) or isinstance(longitude, bool):
        return False
    if not isinstance(latitude, int | float) or not isinstance(longitude, int | float):
        return False
    if not math.isfinite(latitude) or not math.isfinite(longitude):
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def haversine_distance(
    origin: Coordinates | VehiclePosition, destination: Coordinates | VehiclePosition
) -> float:
    """Return the great-circle distance between two points in meters.

    Returns infinity when either point is not a valid coordinate, so invalid
    positions are never considered close to anything.
    """
    if not is_valid_coordinate(origin.latitude, origin.longitude) or not is_valid_coordinate(
        destination.latitude, destination.longitude
    ):
        return math.inf

    phi1 = math.radians(origin.latitude)
    phi2 = math.radians(destination.latitude)
    delta_phi = math.radians(destination.latitude - origin.latitude)
    delta_lambda = math.radians(destination.longitude - origin.longitude)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def find_nearest_station(
    position: VehiclePosition | None, stations: Iterable[Station]
) -> tuple[Station | None, float]:
    """Find the closest station to a position.

    Returns:
        Tuple of (station, distance in meters). The station is None and the
        distance is infinity when there are no stations or the position is unusable.
    """
    nearest: Station | None = None
    min_distance = math.inf
    if position is None:
        return nearest, min_distance

    for station in stations:
        distance = haversine_distance(position, station.coordinates)
        if distance < min_distance:
            min_distance = distance
            nearest = station
    return nearest, min_distance
