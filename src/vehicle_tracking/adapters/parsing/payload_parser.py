"""Parser for host vehicle, station and stop time payloads."""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from vehicle_tracking.domain.errors import PayloadParseError
from vehicle_tracking.domain.models.station import Coordinates, Station
from vehicle_tracking.domain.models.stop_time import StopTime
from vehicle_tracking.domain.models.vehicle import InvalidVehicle, Vehicle, VehiclePosition

logger = logging.getLogger(__name__)

# Epoch values above this are taken as milliseconds
EPOCH_MILLISECONDS_CUTOFF = 1e11


@dataclass(frozen=True)
class ParsedSnapshot:
    """Everything parsed from one snapshot payload."""

    vehicles: list[Vehicle | InvalidVehicle] = field(default_factory=list)
    stations: list[Station] = field(default_factory=list)
    stop_times: list[StopTime] = field(default_factory=list)


def _get(raw: Mapping[str, Any], *keys: str) -> Any:
    """Return the value of the first key present in raw (camelCase or snake_case)."""
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _to_float(value: Any) -> float | None:
    """Convert numbers and numeric strings to float; None for anything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _to_id(value: Any) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str | int):
        text = str(value).strip()
        return text or None
    return None


class PayloadParser:
    """Parses raw host payloads into domain models."""

    @staticmethod
    def parse_vehicle(raw: Any) -> Vehicle | InvalidVehicle:
        """Parse a vehicle record.

        Never raises: records that cannot be parsed become InvalidVehicle carrying
        the problems found.
        """
        try:
            return PayloadParser.parse_vehicle_strict(raw)
        except PayloadParseError as e:
            vehicle_id = route_id = None
            if isinstance(raw, Mapping):
                vehicle_id = _to_id(_get(raw, "id", "vehicleId", "vehicle_id"))
                route_id = _to_id(_get(raw, "routeId", "route_id"))
            logger.debug(f"Invalid vehicle record {vehicle_id}: {', '.join(e.problems)}")
            return InvalidVehicle(id=vehicle_id, route_id=route_id, problems=list(e.problems))

    @staticmethod
    def parse_vehicle_strict(raw: Any) -> Vehicle:
        """Parse a vehicle record.

        Raises:
            PayloadParseError: With every problem found in the record.
        """
        if not isinstance(raw, Mapping):
            raise PayloadParseError("vehicle record is not a mapping")

        problems = []
        vehicle_id = _to_id(_get(raw, "id", "vehicleId", "vehicle_id"))
        if vehicle_id is None:
            problems.append("missing id")
        route_id = _to_id(_get(raw, "routeId", "route_id"))
        if route_id is None:
            problems.append("missing route id")

        position = None
        try:
            position = PayloadParser._parse_position(raw)
        except PayloadParseError as e:
            problems.extend(e.problems)

        timestamp = PayloadParser._parse_timestamp(_get(raw, "timestamp"))
        if timestamp is None:
            problems.append("missing or unparsable timestamp")

        if problems or vehicle_id is None or route_id is None or timestamp is None:
            raise PayloadParseError(f"invalid vehicle record: {', '.join(problems)}", problems)

        label = _get(raw, "label")
        return Vehicle(
            id=vehicle_id,
            route_id=route_id,
            label=str(label) if label is not None else "",
            position=position,
            timestamp=timestamp,
            trip_id=_to_id(_get(raw, "tripId", "trip_id")),
            speed=_to_float(_get(raw, "speed")),
            bearing=_to_float(_get(raw, "bearing")),
            is_wheelchair_accessible=bool(
                _get(raw, "isWheelchairAccessible", "is_wheelchair_accessible")
            ),
            is_bike_accessible=bool(_get(raw, "isBikeAccessible", "is_bike_accessible")),
        )

    @staticmethod
    def parse_vehicles(raw_vehicles: Any) -> list[Vehicle | InvalidVehicle]:
        """Parse a list of vehicle records, keeping invalid ones as InvalidVehicle."""
        if not isinstance(raw_vehicles, list):
            logger.warning("Vehicle payload is not a list, ignoring it")
            return []
        return [PayloadParser.parse_vehicle(raw) for raw in raw_vehicles]

    @staticmethod
    def parse_station(raw: Any) -> Station | None:
        """Parse a station record, returning None if it is unusable."""
        if not isinstance(raw, Mapping):
            return None
        station_id = _to_id(_get(raw, "id", "stationId", "station_id", "stopId", "stop_id"))
        if station_id is None:
            return None

        coordinates = _get(raw, "coordinates", "position")
        source = coordinates if isinstance(coordinates, Mapping) else raw
        latitude = _to_float(_get(source, "latitude", "lat"))
        longitude = _to_float(_get(source, "longitude", "lon", "lng"))
        if (
            latitude is None
            or longitude is None
            or not math.isfinite(latitude)
            or not math.isfinite(longitude)
            or not -90 <= latitude <= 90
            or not -180 <= longitude <= 180
        ):
            return None

        route_ids = _get(raw, "routeIds", "route_ids") or []
        name = _get(raw, "name")
        return Station(
            id=station_id,
            name=str(name) if name else station_id,
            coordinates=Coordinates(latitude=latitude, longitude=longitude),
            route_ids=frozenset(
                rid for rid in (_to_id(value) for value in route_ids) if rid is not None
            )
            if isinstance(route_ids, list)
            else frozenset(),
            is_favorite=bool(_get(raw, "isFavorite", "is_favorite")),
        )

    @staticmethod
    def parse_stations(raw_stations: Any) -> list[Station]:
        """Parse a list of station records, skipping unusable ones."""
        if not isinstance(raw_stations, list):
            return []
        stations = []
        for raw in raw_stations:
            station = PayloadParser.parse_station(raw)
            if station is None:
                logger.debug(f"Skipping unusable station record: {raw!r}")
                continue
            stations.append(station)
        return stations

    @staticmethod
    def parse_stop_time(raw: Any) -> StopTime | None:
        """Parse a stop time record, returning None if it is unusable."""
        if not isinstance(raw, Mapping):
            return None
        trip_id = _to_id(_get(raw, "tripId", "trip_id"))
        stop_id = _to_id(_get(raw, "stopId", "stop_id"))
        sequence = _get(raw, "stopSequence", "stop_sequence", "sequence")
        if isinstance(sequence, str) and sequence.strip().isdigit():
            sequence = int(sequence)
        if trip_id is None or stop_id is None or isinstance(sequence, bool):
            return None
        if not isinstance(sequence, int):
            return None

        arrival_time = _get(raw, "arrivalTime", "arrival_time")
        departure_time = _get(raw, "departureTime", "departure_time")
        return StopTime(
            trip_id=trip_id,
            stop_id=stop_id,
            sequence=sequence,
            arrival_time=arrival_time if isinstance(arrival_time, str) else None,
            departure_time=departure_time if isinstance(departure_time, str) else None,
        )

    @staticmethod
    def parse_stop_times(raw_stop_times: Any) -> list[StopTime]:
        """Parse a list of stop time records, skipping unusable ones."""
        if not isinstance(raw_stop_times, list):
            return []
        stop_times = []
        for raw in raw_stop_times:
            stop_time = PayloadParser.parse_stop_time(raw)
            if stop_time is None:
                logger.debug(f"Skipping unusable stop time record: {raw!r}")
                continue
            stop_times.append(stop_time)
        return stop_times

    @staticmethod
    def parse_snapshot(data: Any) -> ParsedSnapshot:
        """Parse a snapshot payload with vehicles, stations and stop_times lists.

        Raises:
            PayloadParseError: If the payload is not a mapping.
        """
        if not isinstance(data, Mapping):
            raise PayloadParseError("snapshot payload must be a JSON object")
        return ParsedSnapshot(
            vehicles=PayloadParser.parse_vehicles(data.get("vehicles", [])),
            stations=PayloadParser.parse_stations(data.get("stations", [])),
            stop_times=PayloadParser.parse_stop_times(
                _get(data, "stop_times", "stopTimes") or []
            ),
        )

    @staticmethod
    def _parse_position(raw: Mapping[str, Any]) -> VehiclePosition | None:
        """Parse a nested position or flat latitude/longitude.

        Non-finite coordinates are kept so validation can reject them later.
        """
        nested = _get(raw, "position")
        if nested is not None and not isinstance(nested, Mapping):
            raise PayloadParseError("position is not a mapping")
        source = nested if nested is not None else raw

        raw_latitude = _get(source, "latitude", "lat")
        raw_longitude = _get(source, "longitude", "lon", "lng")
        if raw_latitude is None and raw_longitude is None:
            return None

        latitude = _to_float(raw_latitude)
        longitude = _to_float(raw_longitude)
        if latitude is None or longitude is None:
            raise PayloadParseError("position coordinates are not numeric")
        return VehiclePosition(
            latitude=latitude,
            longitude=longitude,
            accuracy=_to_float(_get(source, "accuracy")),
        )

    @staticmethod
    def _parse_timestamp(value: Any) -> datetime | None:
        """Parse an ISO 8601 string, epoch seconds or milliseconds, or a datetime."""
        if isinstance(value, datetime):
            return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
        if isinstance(value, bool):
            return None
        if isinstance(value, int | float):
            if not math.isfinite(value):
                return None
            seconds = value / 1000 if value > EPOCH_MILLISECONDS_CUTOFF else value
            try:
                return datetime.fromtimestamp(seconds, tz=UTC)
            except (OverflowError, OSError, ValueError):
                return None
        if isinstance(value, str) and value:
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                return None
            return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
        return None
