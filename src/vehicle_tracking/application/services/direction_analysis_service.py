"""Direction and arrival estimation service."""

import logging
import math
import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, tzinfo

from vehicle_tracking.domain.contracts.clock import Clock
from vehicle_tracking.domain.geo import haversine_distance, is_valid_coordinate
from vehicle_tracking.domain.models.direction import (
    ConfidenceLevel,
    DirectionAnalysis,
    DirectionStatus,
    StopSequenceEntry,
)
from vehicle_tracking.domain.models.station import Coordinates, Station
from vehicle_tracking.domain.models.stop_time import StopTime
from vehicle_tracking.domain.models.vehicle import Vehicle, VehiclePosition

logger = logging.getLogger(__name__)

DEFAULT_MINUTES_PER_STOP = 2.0
DEFAULT_RECENT_ARRIVAL_WINDOW_MINUTES = 10.0
DEFAULT_AT_STATION_THRESHOLD_METERS = 100.0

HIGH_CONFIDENCE_MAX_STOPS_AWAY = 3
MEDIUM_CONFIDENCE_MAX_STOPS_PAST = 2

# A trip stop this close to the vehicle is its current stop regardless of the schedule
CURRENT_STOP_RADIUS_METERS = 500.0

_TIME_PATTERN = re.compile(r"^\s*(\d{1,2}):([0-5]\d)(?::([0-5]\d))?\s*$")


def parse_schedule_offset(value: object) -> timedelta | None:
    """Parse an "HH:MM" or "HH:MM:SS" time of day into an offset from midnight.

    Hours may exceed 23 for trips running past midnight.

    Returns:
        Offset from the start of the service day, or None if the value is not a time.
    """
    if not isinstance(value, str):
        return None
    match = _TIME_PATTERN.match(value)
    if match is None:
        return None
    hours, minutes, seconds = match.groups()
    return timedelta(hours=int(hours), minutes=int(minutes), seconds=int(seconds or 0))


class DirectionAnalysisService:
    """Estimates whether a vehicle is arriving at or departing from a station.

    The estimate compares the scheduled time of the station's stop in the vehicle's
    trip with the current time. Malformed input never raises; it yields an unknown
    direction with low confidence.
    """

    def __init__(
        self,
        clock: Clock,
        timezone: tzinfo,
        minutes_per_stop: float = DEFAULT_MINUTES_PER_STOP,
        recent_arrival_window_minutes: float = DEFAULT_RECENT_ARRIVAL_WINDOW_MINUTES,
        at_station_threshold_meters: float = DEFAULT_AT_STATION_THRESHOLD_METERS,
    ) -> None:
        """Initialize the service.

        Args:
            clock: Source of the current time.
            timezone: Timezone the schedule times are expressed in.
            minutes_per_stop: Average travel time between consecutive stops.
            recent_arrival_window_minutes: How long after its scheduled time a vehicle
                is still considered to be at the stop.
            at_station_threshold_meters: Distance within which a vehicle is considered
                to be at the station regardless of the schedule.
        """
        if minutes_per_stop <= 0:
            raise ValueError("minutes_per_stop must be positive")
        self._clock = clock
        self._timezone = timezone
        self.minutes_per_stop = minutes_per_stop
        self.recent_arrival_window_minutes = recent_arrival_window_minutes
        self.at_station_threshold_meters = at_station_threshold_meters

    def analyze(
        self,
        vehicle: Vehicle | None,
        station: Station | None,
        stop_times: Iterable[StopTime] | None,
        station_names: Mapping[str, str] | None = None,
        stations: Iterable[Station] | None = None,
    ) -> DirectionAnalysis:
        """Estimate the direction of a vehicle relative to a station.

        Args:
            vehicle: The vehicle, which must carry a trip id and a usable position.
            station: The station the user is interested in.
            stop_times: Stop times of any trips; only those of the vehicle's trip are used.
            station_names: Optional stop id to display name mapping for the stop sequence.
            stations: Optional known stops; a trip stop near the vehicle's position
                is marked current instead of the schedule estimate.

        Returns:
            Direction, estimated minutes until arrival and confidence. Unknown with low
            confidence whenever the inputs do not allow an estimate.
        """
        try:
            return self._analyze(vehicle, station, stop_times, station_names or {}, stations or ())
        except (TypeError, ValueError, AttributeError, OverflowError) as e:
            logger.warning(f"Direction analysis failed, returning unknown direction: {e}")
            return DirectionAnalysis.unknown()

    def _analyze(
        self,
        vehicle: Vehicle | None,
        station: Station | None,
        stop_times: Iterable[StopTime] | None,
        station_names: Mapping[str, str],
        stations: Iterable[Station],
    ) -> DirectionAnalysis:
        if not isinstance(vehicle, Vehicle) or not isinstance(station, Station):
            logger.debug("Direction analysis skipped: missing vehicle or station")
            return DirectionAnalysis.unknown()
        if not isinstance(vehicle.trip_id, str) or not vehicle.trip_id or not station.id:
            logger.debug(f"Direction analysis skipped for vehicle {vehicle.id}: no trip or station id")
            return DirectionAnalysis.unknown()
        position = vehicle.position
        if position is None or not is_valid_coordinate(position.latitude, position.longitude):
            logger.debug(f"Direction analysis skipped for vehicle {vehicle.id}: unusable position")
            return DirectionAnalysis.unknown()
        if not is_valid_coordinate(station.coordinates.latitude, station.coordinates.longitude):
            logger.debug(f"Direction analysis skipped: station {station.id} has unusable coordinates")
            return DirectionAnalysis.unknown()
        if stop_times is None:
            return DirectionAnalysis.unknown()

        trip_stops = self._trip_stops(vehicle.trip_id, stop_times)
        if not trip_stops:
            logger.debug(f"No stop times found for trip {vehicle.trip_id}")
            return DirectionAnalysis.unknown()

        target = next((stop for stop in trip_stops if stop.stop_id == station.id), None)
        if target is None:
            logger.debug(f"Station {station.id} is not served by trip {vehicle.trip_id}")
            return DirectionAnalysis.unknown()

        target_offset = self._stop_offset(target)
        if target_offset is None:
            logger.debug(f"Unparsable schedule for stop {target.stop_id} on trip {vehicle.trip_id}")
            return DirectionAnalysis.unknown()

        now = self._clock.now().astimezone(self._timezone)
        service_day = self._service_day(now, target_offset)
        diff_minutes = (service_day + target_offset - now).total_seconds() / 60
        if not math.isfinite(diff_minutes):
            return DirectionAnalysis.unknown()

        distance = haversine_distance(position, station.coordinates)
        at_stop = distance <= self.at_station_threshold_meters or (
            -self.recent_arrival_window_minutes < diff_minutes <= 0
        )

        if at_stop:
            direction = DirectionStatus.ARRIVING
            estimated_minutes = 0
            current_sequence = target.sequence
            confidence = ConfidenceLevel.HIGH
        elif diff_minutes > 0:
            stops_away = math.ceil(diff_minutes / self.minutes_per_stop)
            direction = DirectionStatus.ARRIVING
            estimated_minutes = max(0, round(diff_minutes))
            current_sequence = target.sequence - stops_away
            confidence = (
                ConfidenceLevel.HIGH
                if stops_away <= HIGH_CONFIDENCE_MAX_STOPS_AWAY
                else ConfidenceLevel.MEDIUM
            )
        else:
            stops_past = math.ceil(-diff_minutes / self.minutes_per_stop)
            direction = DirectionStatus.DEPARTING
            estimated_minutes = 0
            current_sequence = target.sequence + stops_past
            confidence = (
                ConfidenceLevel.MEDIUM
                if stops_past <= MEDIUM_CONFIDENCE_MAX_STOPS_PAST
                else ConfidenceLevel.LOW
            )

        nearby_sequence = self._nearby_stop_sequence(trip_stops, position, station, stations)
        if nearby_sequence is not None:
            current_sequence = nearby_sequence
        stop_sequence = self._build_stop_sequence(
            trip_stops, current_sequence, service_day, station, station_names
        )
        logger.debug(
            f"Vehicle {vehicle.id} is {direction.value} at {station.id} "
            f"({diff_minutes:.1f} min from schedule, {distance:.0f}m away, confidence {confidence.value})"
        )
        return DirectionAnalysis(
            direction=direction,
            estimated_minutes=estimated_minutes,
            confidence=confidence,
            stop_sequence=stop_sequence,
        )

    def _trip_stops(self, trip_id: str, stop_times: Iterable[StopTime]) -> list[StopTime]:
        """Stops of one trip, strictly ordered by sequence."""
        by_sequence: dict[int, StopTime] = {}
        for stop in stop_times:
            if not isinstance(stop, StopTime) or stop.trip_id != trip_id:
                continue
            sequence = stop.sequence
            if isinstance(sequence, bool) or not isinstance(sequence, int) or sequence <= 0:
                continue
            by_sequence.setdefault(sequence, stop)
        return [by_sequence[sequence] for sequence in sorted(by_sequence)]

    def _stop_offset(self, stop: StopTime) -> timedelta | None:
        offset = parse_schedule_offset(stop.arrival_time)
        if offset is None:
            offset = parse_schedule_offset(stop.departure_time)
        return offset

    def _nearby_stop_sequence(
        self,
        trip_stops: list[StopTime],
        position: VehiclePosition,
        station: Station,
        stations: Iterable[Station],
    ) -> int | None:
        """Sequence of the trip stop nearest to the vehicle, if one is close enough."""
        coordinates: dict[str, Coordinates] = {
            known.id: known.coordinates for known in stations if isinstance(known, Station)
        }
        coordinates.setdefault(station.id, station.coordinates)

        nearest_sequence = None
        nearest_distance = CURRENT_STOP_RADIUS_METERS
        for stop in trip_stops:
            stop_coordinates = coordinates.get(stop.stop_id)
            if stop_coordinates is None:
                continue
            distance = haversine_distance(position, stop_coordinates)
            if distance <= nearest_distance:
                nearest_sequence, nearest_distance = stop.sequence, distance
        return nearest_sequence

    def _service_day(self, now: datetime, target_offset: timedelta) -> datetime:
        """Start of the service day that puts the target stop closest to now."""
        today = datetime(now.year, now.month, now.day, tzinfo=self._timezone)
        candidates = [today + timedelta(days=days) for days in (-1, 0, 1)]
        return min(candidates, key=lambda day: abs(day + target_offset - now))

    def _build_stop_sequence(
        self,
        trip_stops: list[StopTime],
        current_sequence: int,
        service_day: datetime,
        station: Station,
        station_names: Mapping[str, str],
    ) -> tuple[StopSequenceEntry, ...]:
        first_sequence = trip_stops[0].sequence
        last_sequence = trip_stops[-1].sequence
        current_sequence = min(max(current_sequence, first_sequence), last_sequence)
        # Sequences may have gaps, the current stop is the last one not after the estimate
        current_stop = max(
            (stop for stop in trip_stops if stop.sequence <= current_sequence),
            key=lambda stop: stop.sequence,
        )

        entries = []
        for stop in trip_stops:
            offset = self._stop_offset(stop)
            if stop.stop_id in station_names:
                stop_name = station_names[stop.stop_id]
            elif stop.stop_id == station.id:
                stop_name = station.name
            else:
                stop_name = f"Stop {stop.stop_id}"
            entries.append(
                StopSequenceEntry(
                    stop_id=stop.stop_id,
                    stop_name=stop_name,
                    sequence=stop.sequence,
                    is_current=stop is current_stop,
                    is_destination=stop.sequence == last_sequence,
                    scheduled_time=None if offset is None else service_day + offset,
                )
            )
        return tuple(entries)
