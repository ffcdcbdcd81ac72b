"""Vehicle-to-station analysis domain models."""

from dataclasses import dataclass
from enum import StrEnum

from vehicle_tracking.domain.models.station import Station
from vehicle_tracking.domain.models.vehicle import Vehicle


class VehicleStationStatus(StrEnum):
    """Where a vehicle is relative to the nearest station."""

    AT_STATION = "at_station"  # Close to a station and stopped
    CLOSE_TO_STATION = "close_to_station"  # Close to a station but moving
    BETWEEN_STATIONS = "between_stations"  # Not close to any station


@dataclass(frozen=True)
class NearestStation:
    """The closest station to a vehicle and its distance in meters."""

    station: Station
    distance: float


@dataclass(frozen=True)
class VehicleStationAnalysis:
    """A vehicle annotated with its station status."""

    vehicle: Vehicle
    nearest_station: NearestStation | None
    station_status: VehicleStationStatus

    @property
    def is_at_station(self) -> bool:
        return self.station_status is VehicleStationStatus.AT_STATION

    @property
    def is_close_to_station(self) -> bool:
        return self.station_status is VehicleStationStatus.CLOSE_TO_STATION

    @property
    def is_between_stations(self) -> bool:
        return self.station_status is VehicleStationStatus.BETWEEN_STATIONS


@dataclass(frozen=True)
class VehicleStationAnalysisStats:
    """Aggregate counts of a vehicle-station analysis."""

    total_vehicles: int = 0
    vehicles_at_stations: int = 0
    vehicles_close_to_stations: int = 0
    vehicles_between_stations: int = 0
    average_distance_to_nearest_station: float = 0.0


@dataclass(frozen=True)
class VehicleStationAnalysisResult:
    """All analyzed vehicles plus aggregate statistics."""

    analyzed_vehicles: list[VehicleStationAnalysis]
    analysis_stats: VehicleStationAnalysisStats
