"""Direction and arrival analysis domain models."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class DirectionStatus(StrEnum):
    """Movement of a vehicle relative to a station."""

    ARRIVING = "arriving"
    DEPARTING = "departing"
    UNKNOWN = "unknown"


class ConfidenceLevel(StrEnum):
    """How much the direction estimate can be trusted."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class StopSequenceEntry:
    """One stop of the vehicle's trip, annotated for display."""

    stop_id: str
    stop_name: str
    sequence: int
    is_current: bool
    is_destination: bool
    scheduled_time: datetime | None = None


@dataclass(frozen=True)
class DirectionAnalysis:
    """Whether a vehicle is arriving at or departing from a station."""

    direction: DirectionStatus
    estimated_minutes: int
    confidence: ConfidenceLevel
    stop_sequence: tuple[StopSequenceEntry, ...] | None = None

    @classmethod
    def unknown(cls) -> "DirectionAnalysis":
        """Result used whenever the inputs do not allow an estimate."""
        return cls(
            direction=DirectionStatus.UNKNOWN,
            estimated_minutes=0,
            confidence=ConfidenceLevel.LOW,
        )
