"""Filtering observer that writes decisions to the log."""

import logging

from vehicle_tracking.domain.models.filtering import FilteringDecision, FilteringResult

logger = logging.getLogger(__name__)


class LoggingFilteringObserver:
    """Logs every filtering decision and a summary of each pass.

    Used when debug mode is enabled to trace why vehicles are shown or hidden.
    """

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def on_filtering_decision(self, decision: FilteringDecision) -> None:
        distance = (
            f", {decision.distance_to_nearest_station:.0f}m to nearest station"
            if decision.distance_to_nearest_station is not None
            else ""
        )
        logger.log(
            self.level,
            f"[filter] vehicle={decision.vehicle_id} route={decision.route_id} "
            f"included={decision.included} reason='{decision.reason}'{distance}",
        )

    def on_filtering_completed(self, result: FilteringResult) -> None:
        feedback = result.user_feedback
        metrics = result.metadata.performance_metrics
        logger.log(
            self.level,
            f"[filter] pass completed: {len(result.filtered_vehicles)} of "
            f"{metrics.total_vehicles_processed} vehicles shown, {feedback.busy_routes} busy / "
            f"{feedback.quiet_routes} quiet routes, {metrics.filtering_time_ms:.2f}ms",
        )
        if feedback.empty_state_message:
            logger.log(self.level, f"[filter] {feedback.empty_state_message}")
