"""Clock contract (protocol)."""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from datetime import datetime


class Clock(Protocol):
    """Protocol for obtaining the current time."""

    def now(self) -> "datetime":
        """Return the current time as a timezone-aware datetime."""
        ...

    def monotonic(self) -> float:
        """Return a monotonic timestamp in seconds, used for measuring durations."""
        ...
