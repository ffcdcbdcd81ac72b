"""12-factor configuration adapter using environment variables and TOML config."""

import logging
import tomllib
from datetime import timedelta
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vehicle_tracking.domain.models.route_filtering_config import RouteFilteringConfig

# TOML section -> fields it may set
TOML_SECTIONS: dict[str, tuple[str, ...]] = {
    "filtering": (
        "busy_route_threshold",
        "distance_filter_threshold",
        "debug_mode",
        "require_route_association",
    ),
    "validation": ("stale_data_threshold_seconds", "position_accuracy_threshold_meters"),
    "direction": (
        "at_station_threshold_meters",
        "require_stopped_for_at_station",
        "minutes_per_stop",
        "recent_arrival_window_minutes",
        "timezone",
    ),
    "circuit_breaker": (
        "circuit_breaker_failure_threshold",
        "circuit_breaker_recovery_timeout_seconds",
        "update_time_warning_ms",
    ),
}


class AppConfig(BaseSettings):
    """Application configuration following 12-factor principles."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    # Route filtering
    busy_route_threshold: int = Field(
        default=5, ge=0, le=100, description="Routes with more vehicles than this are busy"
    )
    distance_filter_threshold: float = Field(
        default=2000.0,
        ge=0,
        le=50_000,
        description="Maximum distance in meters from a target station on busy routes",
    )
    debug_mode: bool = Field(default=False, description="Log every filtering decision")
    require_route_association: bool = Field(
        default=False,
        description="Hide vehicles whose route serves none of the target stations",
    )

    # Data validation
    stale_data_threshold_seconds: float = Field(
        default=300.0, description="Age in seconds after which a vehicle position is stale"
    )
    position_accuracy_threshold_meters: float = Field(
        default=1000.0, gt=0, description="Reported GPS accuracy above which a position is rejected"
    )

    # Direction and station analysis
    at_station_threshold_meters: float = Field(
        default=100.0, ge=0, description="Distance in meters within which a vehicle is at a station"
    )
    require_stopped_for_at_station: bool = Field(
        default=True, description="Only stopped vehicles count as being at a station"
    )
    minutes_per_stop: float = Field(
        default=2.0, gt=0, description="Average travel time between consecutive stops"
    )
    recent_arrival_window_minutes: float = Field(
        default=10.0,
        ge=0,
        description="Minutes after its scheduled time a vehicle is still considered at the stop",
    )
    timezone: str = Field(
        default="Europe/Bucharest",
        description="Timezone of the schedule times (IANA timezone name, e.g., 'Europe/Bucharest')",
    )

    # Circuit breaker
    circuit_breaker_failure_threshold: int = Field(
        default=3, ge=1, description="Consecutive failed updates that open the circuit breaker"
    )
    circuit_breaker_recovery_timeout_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Seconds before a trial update is allowed (0 disables automatic half-open attempts)",
    )
    update_time_warning_ms: float = Field(
        default=100.0, ge=0, description="Configuration update duration that triggers a warning"
    )

    log_level: str = Field(default="INFO", description="Logging level")

    # TOML config file path
    config_file: str | None = Field(
        default=None,
        description="Path to TOML configuration file overriding environment settings",
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate timezone is a known IANA timezone name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard logging levels."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError("log_level must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return level

    @field_validator("stale_data_threshold_seconds")
    @classmethod
    def validate_stale_data_threshold(cls, v: float) -> float:
        """Validate the staleness threshold is positive."""
        if v <= 0:
            raise ValueError("stale_data_threshold_seconds must be positive")
        return v

    def load_toml_overrides(self) -> dict[str, Any]:
        """Load the TOML file and apply its sections over the current settings.

        Does nothing when config_file is not set.

        Returns:
            The parsed TOML data.

        Raises:
            FileNotFoundError: If config_file is set but does not exist.
            pydantic.ValidationError: If a value in the file is invalid.
        """
        if not self.config_file:
            return {}

        config_path = Path(self.config_file)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)

        for section, fields in TOML_SECTIONS.items():
            values = toml_data.get(section, {})
            if not isinstance(values, dict):
                raise ValueError(f"TOML config '{section}' must be a table")
            for field_name in fields:
                if field_name in values:
                    setattr(self, field_name, values[field_name])

        if "log_level" in toml_data:
            self.log_level = toml_data["log_level"]

        return toml_data

    def to_route_filtering_config(self) -> RouteFilteringConfig:
        """Build the initial live filtering configuration."""
        return RouteFilteringConfig(
            busy_route_threshold=self.busy_route_threshold,
            distance_filter_threshold=self.distance_filter_threshold,
            debug_mode=self.debug_mode,
        )

    def get_timezone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def get_stale_data_threshold(self) -> timedelta:
        return timedelta(seconds=self.stale_data_threshold_seconds)

    def get_recovery_timeout(self) -> timedelta | None:
        """Recovery timeout of the circuit breaker, None when half-open attempts are disabled."""
        if self.circuit_breaker_recovery_timeout_seconds == 0:
            return None
        return timedelta(seconds=self.circuit_breaker_recovery_timeout_seconds)

    def get_log_level(self) -> int:
        return logging.getLevelNamesMapping()[self.log_level]
