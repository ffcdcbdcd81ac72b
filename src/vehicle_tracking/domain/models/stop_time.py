"""Stop time domain model."""

from dataclasses import dataclass


@dataclass(frozen=True)
class StopTime:
    """One stop in a trip's ordered stop plan."""

    trip_id: str
    stop_id: str
    sequence: int
    arrival_time: str | None = None  # Local time of day, "HH:MM[:SS]" (hours may exceed 23)
    departure_time: str | None = None
