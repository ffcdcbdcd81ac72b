"""Exceptions raised inside the vehicle tracking core."""


class VehicleTrackingError(Exception):
    """Base class for all vehicle tracking errors."""


class ConfigurationUpdateError(VehicleTrackingError):
    """A configuration change could not be merged or applied to the live data."""


class CircuitOpenError(VehicleTrackingError):
    """Configuration updates are temporarily rejected by the circuit breaker."""


class PayloadParseError(VehicleTrackingError):
    """A raw host payload could not be converted into a domain model."""

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        super().__init__(message)
        self.problems = problems or [message]
