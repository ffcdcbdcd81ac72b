"""Per-tick vehicle processing with latest-wins batching."""

import logging
import threading
from collections.abc import Iterable, Mapping, Sequence

from vehicle_tracking.application.services.direction_analysis_service import (
    DirectionAnalysisService,
)
from vehicle_tracking.application.services.realtime_configuration_manager import (
    RealTimeConfigurationManager,
)
from vehicle_tracking.application.services.vehicle_station_analyzer import VehicleStationAnalyzer
from vehicle_tracking.domain.models.direction import DirectionAnalysis
from vehicle_tracking.domain.models.filtering import FilteringResult
from vehicle_tracking.domain.models.station import Station
from vehicle_tracking.domain.models.station_analysis import VehicleStationAnalysisResult
from vehicle_tracking.domain.models.stop_time import StopTime
from vehicle_tracking.domain.models.vehicle import InvalidVehicle, Vehicle

logger = logging.getLogger(__name__)


class VehicleTrackingPipeline:
    """Entry point for the host's polling loop.

    The host submits each tick's vehicles; only the newest unprocessed batch is
    kept, older ones are dropped when a newer one arrives before processing.
    Batches are processed one at a time in submission order, so a result is never
    replaced by the result of an older batch.
    """

    def __init__(
        self,
        configuration_manager: RealTimeConfigurationManager,
        direction_service: DirectionAnalysisService,
        station_analyzer: VehicleStationAnalyzer,
    ) -> None:
        self.configuration_manager = configuration_manager
        self._direction_service = direction_service
        self._station_analyzer = station_analyzer
        # (batch number, vehicles) of the newest unprocessed batch
        self._pending: tuple[int, tuple[Vehicle | InvalidVehicle, ...]] | None = None
        self._pending_lock = threading.Lock()
        self._submitted = 0
        self._dropped_batches = 0

        # Held while a batch is taken from the slot and processed
        self._processing_lock = threading.Lock()
        self._last_processed = 0
        self._last_result: FilteringResult | None = None

    @property
    def dropped_batches(self) -> int:
        """Number of batches replaced before they were processed."""
        return self._dropped_batches

    @property
    def has_pending_batch(self) -> bool:
        return self._pending is not None

    def submit_batch(self, vehicles: Iterable[Vehicle | InvalidVehicle]) -> int:
        """Queue a batch, replacing any batch that has not been processed yet.

        Returns:
            The batch number, increasing with every submission.
        """
        batch = tuple(vehicles)
        with self._pending_lock:
            self._submitted += 1
            if self._pending is not None:
                self._dropped_batches += 1
                logger.debug(f"Dropping unprocessed batch of {len(self._pending[1])} vehicles")
            self._pending = (self._submitted, batch)
            return self._submitted

    def process_pending(self) -> FilteringResult | None:
        """Analyze and filter the newest pending batch.

        Returns:
            The filtering result, or None when no batch is pending.
        """
        with self._processing_lock:
            return self._process_next()

    def process_tick(self, vehicles: Iterable[Vehicle | InvalidVehicle]) -> FilteringResult:
        """Submit a batch and process it right away.

        If another thread already processed this batch, or a newer one replaced it,
        the result of that pass is returned.
        """
        batch = tuple(vehicles)
        number = self.submit_batch(batch)
        with self._processing_lock:
            if self._last_result is not None and self._last_processed >= number:
                return self._last_result
            result = self._process_next()
            if result is None:
                # The pass that took this batch ended without a result
                result = self._process(number, batch)
            return result

    def _process_next(self) -> FilteringResult | None:
        with self._pending_lock:
            pending, self._pending = self._pending, None
        if pending is None:
            return None
        return self._process(*pending)

    def _process(
        self, number: int, batch: tuple[Vehicle | InvalidVehicle, ...]
    ) -> FilteringResult:
        result = self.configuration_manager.process_vehicles(batch)
        self._last_processed = max(self._last_processed, number)
        self._last_result = result
        return result

    def set_target_stations(self, stations: Sequence[Station]) -> None:
        self.configuration_manager.set_target_stations(stations)

    def analyze_direction(
        self,
        vehicle: Vehicle | None,
        station: Station | None,
        stop_times: Iterable[StopTime] | None,
        station_names: Mapping[str, str] | None = None,
        stations: Iterable[Station] | None = None,
    ) -> DirectionAnalysis:
        """Estimate the direction of one vehicle relative to one station."""
        return self._direction_service.analyze(vehicle, station, stop_times, station_names, stations)

    def analyze_stations(
        self,
        vehicles: Iterable[Vehicle | InvalidVehicle],
        stations: Sequence[Station],
    ) -> VehicleStationAnalysisResult:
        """Classify vehicles as at, close to, or between stations."""
        return self._station_analyzer.analyze(vehicles, stations)
