"""Vehicle-to-station proximity analysis."""

import logging
import math
from collections.abc import Iterable, Sequence

from vehicle_tracking.domain.geo import find_nearest_station, is_valid_coordinate
from vehicle_tracking.domain.models.station import Station
from vehicle_tracking.domain.models.station_analysis import (
    NearestStation,
    VehicleStationAnalysis,
    VehicleStationAnalysisResult,
    VehicleStationAnalysisStats,
    VehicleStationStatus,
)
from vehicle_tracking.domain.models.vehicle import InvalidVehicle, Vehicle

logger = logging.getLogger(__name__)

DEFAULT_AT_STATION_THRESHOLD_METERS = 100.0


class VehicleStationAnalyzer:
    """Classifies vehicles as at, close to, or between stations."""

    def __init__(
        self,
        at_station_threshold: float = DEFAULT_AT_STATION_THRESHOLD_METERS,
        require_stopped_for_at_station: bool = True,
    ) -> None:
        """Initialize the analyzer.

        Args:
            at_station_threshold: Distance in meters within which a vehicle is near a station.
            require_stopped_for_at_station: If True, a moving vehicle near a station is only
                close to it, not at it.
        """
        self.at_station_threshold = at_station_threshold
        self.require_stopped_for_at_station = require_stopped_for_at_station

    def analyze(
        self,
        vehicles: Iterable[Vehicle | InvalidVehicle],
        stations: Sequence[Station],
    ) -> VehicleStationAnalysisResult:
        """Analyze every vehicle with a usable position against the stations."""
        usable = [
            vehicle
            for vehicle in vehicles
            if isinstance(vehicle, Vehicle)
            and vehicle.position is not None
            and is_valid_coordinate(vehicle.position.latitude, vehicle.position.longitude)
        ]
        if not usable:
            return VehicleStationAnalysisResult(
                analyzed_vehicles=[], analysis_stats=VehicleStationAnalysisStats()
            )

        if not stations:
            logger.debug("No stations available, all vehicles are between stations")
            return VehicleStationAnalysisResult(
                analyzed_vehicles=[
                    VehicleStationAnalysis(
                        vehicle=vehicle,
                        nearest_station=None,
                        station_status=VehicleStationStatus.BETWEEN_STATIONS,
                    )
                    for vehicle in usable
                ],
                analysis_stats=VehicleStationAnalysisStats(
                    total_vehicles=len(usable),
                    vehicles_between_stations=len(usable),
                    average_distance_to_nearest_station=math.inf,
                ),
            )

        analyzed = []
        total_distance = 0.0
        status_counts = dict.fromkeys(VehicleStationStatus, 0)
        for vehicle in usable:
            station, distance = find_nearest_station(vehicle.position, stations)
            nearest = None if station is None else NearestStation(station=station, distance=distance)
            status = self._classify(vehicle, nearest)
            status_counts[status] += 1
            if nearest is not None:
                total_distance += nearest.distance
            analyzed.append(
                VehicleStationAnalysis(vehicle=vehicle, nearest_station=nearest, station_status=status)
            )

        stats = VehicleStationAnalysisStats(
            total_vehicles=len(usable),
            vehicles_at_stations=status_counts[VehicleStationStatus.AT_STATION],
            vehicles_close_to_stations=status_counts[VehicleStationStatus.CLOSE_TO_STATION],
            vehicles_between_stations=status_counts[VehicleStationStatus.BETWEEN_STATIONS],
            average_distance_to_nearest_station=float(round(total_distance / len(usable))),
        )
        logger.debug(
            f"Vehicle-station analysis completed: {stats.vehicles_at_stations} at, "
            f"{stats.vehicles_close_to_stations} close to, "
            f"{stats.vehicles_between_stations} between stations"
        )
        return VehicleStationAnalysisResult(analyzed_vehicles=analyzed, analysis_stats=stats)

    def _classify(self, vehicle: Vehicle, nearest: NearestStation | None) -> VehicleStationStatus:
        if nearest is None or nearest.distance > self.at_station_threshold:
            return VehicleStationStatus.BETWEEN_STATIONS
        if not self.require_stopped_for_at_station:
            return VehicleStationStatus.AT_STATION
        is_stopped = vehicle.speed is None or vehicle.speed == 0
        return VehicleStationStatus.AT_STATION if is_stopped else VehicleStationStatus.CLOSE_TO_STATION
