"""Protocol for observing filtering decisions."""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from vehicle_tracking.domain.models.filtering import FilteringDecision, FilteringResult


class FilteringObserver(Protocol):
    """Receives debug notifications from the vehicle filter.

    Notifications are only sent when debug mode is enabled. Observers cannot
    influence which vehicles are included.
    """

    def on_filtering_decision(self, decision: "FilteringDecision") -> None:
        """Called once per vehicle after its decision was made.

        Args:
            decision: The decision for the vehicle.
        """
        ...

    def on_filtering_completed(self, result: "FilteringResult") -> None:
        """Called once per pass with the complete result.

        Args:
            result: The filtering result of the pass.
        """
        ...
