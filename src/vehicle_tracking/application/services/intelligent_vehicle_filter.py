"""Intelligent vehicle filtering service."""

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from types import MappingProxyType

from vehicle_tracking.domain.contracts.clock import Clock
from vehicle_tracking.domain.contracts.filtering_observer import FilteringObserver
from vehicle_tracking.domain.geo import find_nearest_station
from vehicle_tracking.domain.models.filtering import (
    FilteringContext,
    FilteringDecision,
    FilteringMetadata,
    FilteringPerformanceMetrics,
    FilteringResult,
    UserFeedback,
)
from vehicle_tracking.domain.models.route_activity import (
    RouteActivityInfo,
    RouteActivitySnapshot,
    RouteClassification,
)
from vehicle_tracking.domain.models.station import Station
from vehicle_tracking.domain.models.vehicle import InvalidVehicle, Vehicle

logger = logging.getLogger(__name__)

NO_ACTIVITY_REASON = "No route activity data - showing vehicle"
QUIET_ROUTE_REASON = "Quiet route - showing all vehicles"
SPARSE_ROUTE_REASON = "Busy route with 0-1 vehicles on route - showing vehicle"
NO_TARGET_STATIONS_REASON = "Busy route but no target stations - distance filter skipped"
NOT_SERVING_REASON = "Route does not serve any target stations"
INVALID_VEHICLE_REASON = "Invalid vehicle data"

NO_ACTIVE_VEHICLES_MESSAGE = "No vehicles are currently active on any routes."
NO_MATCHING_VEHICLES_MESSAGE = "No vehicles match the current filtering criteria."


class IntelligentVehicleFilter:
    """Decides which vehicles to display based on route activity.

    Vehicles on quiet routes are always shown. On busy routes only vehicles close
    to one of the target stations are shown, unless the route has a single vehicle.
    """

    def __init__(self, clock: Clock, observer: FilteringObserver | None = None) -> None:
        """Initialize the filter.

        Args:
            clock: Used to time the filtering pass.
            observer: Optional receiver of debug notifications.
        """
        self._clock = clock
        self._observer = observer

    def filter_vehicles(
        self,
        vehicles: Iterable[Vehicle | InvalidVehicle],
        route_activity: Mapping[str, RouteActivityInfo],
        context: FilteringContext,
        route_activity_snapshot: RouteActivitySnapshot | None = None,
    ) -> FilteringResult:
        """Apply the route activity policy to every vehicle.

        Args:
            vehicles: Vehicles of the current tick.
            route_activity: Route activity computed for the same vehicles.
            context: Target stations, thresholds and debug flag.
            route_activity_snapshot: Snapshot to attach to the result metadata.

        Returns:
            Included vehicles, one decision per vehicle id and user feedback.
        """
        start = self._clock.monotonic()
        vehicle_list = list(vehicles)

        served_routes = self._served_routes(context)
        if not context.target_stations and any(
            activity.classification is RouteClassification.BUSY for activity in route_activity.values()
        ):
            logger.warning("No target stations configured; distance filtering is skipped for busy routes")

        decisions: dict[str, FilteringDecision] = {}
        filtered_vehicles: list[Vehicle] = []
        for index, vehicle in enumerate(vehicle_list):
            decision = self._decide(vehicle, index, route_activity, context, served_routes)
            key = decision.vehicle_id
            if key in decisions:
                # Repeated ids still get one decision per input record
                key = f"{key}#{index}"
            decisions[key] = decision
            if decision.included and isinstance(vehicle, Vehicle):
                filtered_vehicles.append(vehicle)
            logger.debug(
                f"Vehicle {decision.vehicle_id} on route {decision.route_id}: "
                f"{'included' if decision.included else 'excluded'} ({decision.reason})"
            )
            if context.debug_mode:
                self._notify_decision(decision)

        user_feedback = self.generate_user_feedback(
            route_activity, filtered_vehicles, vehicle_list, decisions.values()
        )
        filtering_time_ms = max(0.0, (self._clock.monotonic() - start) * 1000)
        result = FilteringResult(
            filtered_vehicles=filtered_vehicles,
            metadata=FilteringMetadata(
                filtering_decisions=MappingProxyType(decisions),
                route_activity_snapshot=route_activity_snapshot,
                performance_metrics=FilteringPerformanceMetrics(
                    filtering_time_ms=filtering_time_ms,
                    total_vehicles_processed=len(vehicle_list),
                    vehicles_filtered=len(vehicle_list) - len(filtered_vehicles),
                ),
            ),
            user_feedback=user_feedback,
        )

        logger.debug(
            f"Filtering completed: {len(filtered_vehicles)} of {len(vehicle_list)} vehicles shown, "
            f"{user_feedback.distance_filtered_vehicles} filtered by distance, {filtering_time_ms:.2f}ms"
        )
        if context.debug_mode:
            self._notify_completed(result)
        return result

    def should_apply_distance_filter(
        self, route_id: str, route_activity: Mapping[str, RouteActivityInfo]
    ) -> bool:
        """Check whether a route is busy enough for distance filtering.

        This ignores the vehicle count exception of filter_vehicles; use that for the
        full policy.
        """
        activity = route_activity.get(route_id)
        return activity is not None and activity.classification is RouteClassification.BUSY

    def filter_by_distance(
        self,
        vehicles: Iterable[Vehicle],
        stations: Sequence[Station],
        threshold_meters: float,
    ) -> list[Vehicle]:
        """Keep vehicles within threshold_meters of their nearest station.

        Without stations the input is returned unchanged.
        """
        vehicle_list = list(vehicles)
        if not stations:
            logger.debug("No stations provided for distance filtering, keeping all vehicles")
            return vehicle_list

        kept = []
        for vehicle in vehicle_list:
            position = vehicle.position if isinstance(vehicle, Vehicle) else None
            _, distance = find_nearest_station(position, stations)
            if distance <= threshold_meters:
                kept.append(vehicle)
        return kept

    def generate_user_feedback(
        self,
        route_activity: Mapping[str, RouteActivityInfo],
        filtered_vehicles: Sequence[Vehicle],
        original_vehicles: Sequence[Vehicle | InvalidVehicle],
        decisions: Iterable[FilteringDecision] | None = None,
    ) -> UserFeedback:
        """Summarize a filtering pass for display.

        Args:
            route_activity: Route activity the pass was based on.
            filtered_vehicles: Vehicles that were included.
            original_vehicles: Vehicles the pass started from.
            decisions: Decisions of the pass. Without them every vehicle that was
                not included is attributed to distance filtering.

        Returns:
            Route counts, per-route status messages and an empty state message when
            nothing is shown.
        """
        decision_list = None if decisions is None else list(decisions)
        distance_filtered_routes = (
            None
            if decision_list is None
            else {decision.route_id for decision in decision_list if decision.distance_filter_applied}
        )

        busy_routes = 0
        quiet_routes = 0
        route_status_messages: dict[str, str] = {}
        for route_id, activity in route_activity.items():
            if activity.classification is RouteClassification.BUSY:
                busy_routes += 1
                applied = distance_filtered_routes is None or route_id in distance_filtered_routes
                route_status_messages[route_id] = (
                    f"Route {route_id}: Busy ({activity.vehicle_count} vehicles) - "
                    + ("Distance filtering applied" if applied else "All vehicles shown")
                )
            else:
                quiet_routes += 1
                route_status_messages[route_id] = (
                    f"Route {route_id}: Quiet ({activity.vehicle_count} vehicles) - "
                    "All vehicles shown"
                )

        if decision_list is None:
            distance_filtered = max(0, len(original_vehicles) - len(filtered_vehicles))
        else:
            distance_filtered = sum(
                1
                for decision in decision_list
                if decision.distance_filter_applied and not decision.included
            )

        empty_state_message = None
        if not filtered_vehicles:
            if not original_vehicles:
                empty_state_message = NO_ACTIVE_VEHICLES_MESSAGE
            elif busy_routes > 0 and distance_filtered > 0:
                empty_state_message = (
                    f"{distance_filtered} vehicles were filtered due to distance on busy routes. "
                    "Try adjusting your distance threshold or location."
                )
            else:
                empty_state_message = NO_MATCHING_VEHICLES_MESSAGE

        return UserFeedback(
            total_routes=len(route_activity),
            busy_routes=busy_routes,
            quiet_routes=quiet_routes,
            distance_filtered_vehicles=distance_filtered,
            route_status_messages=MappingProxyType(route_status_messages),
            empty_state_message=empty_state_message,
        )

    def _decide(
        self,
        vehicle: Vehicle | InvalidVehicle,
        index: int,
        route_activity: Mapping[str, RouteActivityInfo],
        context: FilteringContext,
        served_routes: frozenset[str],
    ) -> FilteringDecision:
        if not isinstance(vehicle, Vehicle):
            vehicle_id = getattr(vehicle, "id", None)
            route_id = getattr(vehicle, "route_id", None)
            return FilteringDecision(
                vehicle_id=str(vehicle_id) if vehicle_id else f"invalid-{index}",
                route_id=str(route_id) if route_id else "",
                included=False,
                reason=INVALID_VEHICLE_REASON,
                distance_filter_applied=False,
            )

        if served_routes and vehicle.route_id not in served_routes:
            return FilteringDecision(
                vehicle_id=vehicle.id,
                route_id=vehicle.route_id,
                included=False,
                reason=NOT_SERVING_REASON,
                distance_filter_applied=False,
            )

        activity = route_activity.get(vehicle.route_id)
        if activity is None:
            return FilteringDecision(
                vehicle_id=vehicle.id,
                route_id=vehicle.route_id,
                included=True,
                reason=NO_ACTIVITY_REASON,
                distance_filter_applied=False,
            )

        if activity.classification is RouteClassification.QUIET:
            return FilteringDecision(
                vehicle_id=vehicle.id,
                route_id=vehicle.route_id,
                included=True,
                reason=QUIET_ROUTE_REASON,
                distance_filter_applied=False,
                route_classification=activity.classification,
            )

        # A lone vehicle on a busy route stays visible
        if activity.valid_vehicle_count <= 1:
            return FilteringDecision(
                vehicle_id=vehicle.id,
                route_id=vehicle.route_id,
                included=True,
                reason=SPARSE_ROUTE_REASON,
                distance_filter_applied=False,
                route_classification=activity.classification,
            )

        if not context.target_stations:
            return FilteringDecision(
                vehicle_id=vehicle.id,
                route_id=vehicle.route_id,
                included=True,
                reason=NO_TARGET_STATIONS_REASON,
                distance_filter_applied=False,
                route_classification=activity.classification,
            )

        nearest, distance = find_nearest_station(vehicle.position, context.target_stations)
        threshold = context.distance_filter_threshold
        included = distance <= threshold
        if included and nearest is not None:
            reason = f"Within {threshold:.0f}m of {nearest.name} ({distance:.0f}m)"
        elif math.isinf(distance):
            reason = f"No usable position - treated as beyond {threshold:.0f}m threshold"
        else:
            reason = f"Distance {distance:.0f}m beyond {threshold:.0f}m threshold"
        return FilteringDecision(
            vehicle_id=vehicle.id,
            route_id=vehicle.route_id,
            included=included,
            reason=reason,
            distance_filter_applied=True,
            distance_to_nearest_station=None if math.isinf(distance) else distance,
            route_classification=activity.classification,
        )

    def _served_routes(self, context: FilteringContext) -> frozenset[str]:
        """Routes serving the target stations, or empty when the check does not apply."""
        if not context.require_route_association or not context.target_stations:
            return frozenset()
        served: set[str] = set()
        for station in context.target_stations:
            served.update(station.route_ids)
        if not served:
            logger.debug("Target stations carry no route information, skipping route association check")
        return frozenset(served)

    def _notify_decision(self, decision: FilteringDecision) -> None:
        if self._observer is None:
            return
        try:
            self._observer.on_filtering_decision(decision)
        except Exception:
            logger.exception(f"Filtering observer failed for vehicle {decision.vehicle_id}")

    def _notify_completed(self, result: FilteringResult) -> None:
        if self._observer is None:
            return
        try:
            self._observer.on_filtering_completed(result)
        except Exception:
            logger.exception("Filtering observer failed on completed pass")
