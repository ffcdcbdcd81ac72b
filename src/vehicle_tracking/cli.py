"""Offline inspection CLI over recorded vehicle snapshots."""

import argparse
import json
import math
import sys
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from vehicle_tracking.adapters.clock import FixedClock, SystemClock
from vehicle_tracking.adapters.config import AppConfig
from vehicle_tracking.adapters.parsing import ParsedSnapshot, PayloadParser
from vehicle_tracking.domain.errors import PayloadParseError
from vehicle_tracking.domain.models import (
    DirectionAnalysis,
    FilteringResult,
    RouteActivityInfo,
    RouteTransition,
    Station,
    Vehicle,
    VehicleStationAnalysisResult,
)
from vehicle_tracking.main import configure_logging, create_pipeline


def load_snapshot(path: str) -> ParsedSnapshot:
    """Read and parse a JSON snapshot file.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        PayloadParseError: If the JSON is not a snapshot object.
    """
    snapshot_path = Path(path)
    if not snapshot_path.is_file():
        raise FileNotFoundError(f"Snapshot file not found: {snapshot_path}")
    with open(snapshot_path, encoding="utf-8") as f:
        data = json.load(f)
    return PayloadParser.parse_snapshot(data)


def _route_activity_to_dict(activity: RouteActivityInfo) -> dict[str, Any]:
    return {
        "vehicle_count": activity.vehicle_count,
        "valid_vehicle_count": activity.valid_vehicle_count,
        "classification": activity.classification.value,
    }


def _transition_to_dict(transition: RouteTransition) -> dict[str, Any]:
    return {
        "route_id": transition.route_id,
        "previous_classification": transition.previous_classification.value,
        "new_classification": transition.new_classification.value,
        "previous_vehicle_count": transition.previous_vehicle_count,
        "new_vehicle_count": transition.new_vehicle_count,
    }


def filtering_result_to_dict(result: FilteringResult) -> dict[str, Any]:
    """Convert a filtering result into JSON-serializable data."""
    snapshot = result.metadata.route_activity_snapshot
    feedback = result.user_feedback
    return {
        "route_activity": {
            route_id: _route_activity_to_dict(activity)
            for route_id, activity in (snapshot.route_activities.items() if snapshot else [])
        },
        "filtered_vehicle_ids": [vehicle.id for vehicle in result.filtered_vehicles],
        "user_feedback": {
            "total_routes": feedback.total_routes,
            "busy_routes": feedback.busy_routes,
            "quiet_routes": feedback.quiet_routes,
            "distance_filtered_vehicles": feedback.distance_filtered_vehicles,
            "route_status_messages": dict(feedback.route_status_messages),
            "empty_state_message": feedback.empty_state_message,
        },
        "decisions": [
            {
                "vehicle_id": decision.vehicle_id,
                "route_id": decision.route_id,
                "included": decision.included,
                "reason": decision.reason,
                "distance_filter_applied": decision.distance_filter_applied,
                "distance_to_nearest_station": decision.distance_to_nearest_station,
            }
            for decision in result.metadata.filtering_decisions.values()
        ],
    }


def direction_analysis_to_dict(analysis: DirectionAnalysis) -> dict[str, Any]:
    """Convert a direction analysis into JSON-serializable data."""
    return {
        "direction": analysis.direction.value,
        "estimated_minutes": analysis.estimated_minutes,
        "confidence": analysis.confidence.value,
        "stop_sequence": [
            {
                "stop_id": entry.stop_id,
                "stop_name": entry.stop_name,
                "sequence": entry.sequence,
                "is_current": entry.is_current,
                "is_destination": entry.is_destination,
                "scheduled_time": entry.scheduled_time.isoformat() if entry.scheduled_time else None,
            }
            for entry in analysis.stop_sequence or ()
        ],
    }


def _finite_or_none(value: float | None) -> float | None:
    """JSON has no infinity or NaN; such values are written as null."""
    if value is None or not math.isfinite(value):
        return None
    return value


def station_analysis_to_dict(result: VehicleStationAnalysisResult) -> dict[str, Any]:
    """Convert a vehicle-station analysis into JSON-serializable data."""
    stats = result.analysis_stats
    return {
        "vehicles": [
            {
                "vehicle_id": analysis.vehicle.id,
                "route_id": analysis.vehicle.route_id,
                "station_status": analysis.station_status.value,
                "nearest_station_id": (
                    analysis.nearest_station.station.id if analysis.nearest_station else None
                ),
                "distance": (
                    round(analysis.nearest_station.distance, 1) if analysis.nearest_station else None
                ),
            }
            for analysis in result.analyzed_vehicles
        ],
        "stats": {
            "total_vehicles": stats.total_vehicles,
            "vehicles_at_stations": stats.vehicles_at_stations,
            "vehicles_close_to_stations": stats.vehicles_close_to_stations,
            "vehicles_between_stations": stats.vehicles_between_stations,
            "average_distance_to_nearest_station": _finite_or_none(
                stats.average_distance_to_nearest_station
            ),
        },
    }


def _select_target_stations(stations: list[Station], station_ids: list[str] | None) -> list[Station]:
    """Stations named on the command line, or the favorite ones when none are named."""
    if station_ids:
        wanted = set(station_ids)
        return [station for station in stations if station.id in wanted]
    return [station for station in stations if station.is_favorite]


def _find_vehicle(snapshot: ParsedSnapshot, vehicle_id: str) -> Vehicle | None:
    return next(
        (v for v in snapshot.vehicles if isinstance(v, Vehicle) and v.id == vehicle_id), None
    )


def run_filter(args: argparse.Namespace, config: AppConfig, snapshot: ParsedSnapshot) -> dict[str, Any]:
    """Classify routes and filter the snapshot's vehicles."""
    pipeline = create_pipeline(
        config,
        clock=_clock_for(args),
        target_stations=_select_target_stations(snapshot.stations, args.target_station),
    )
    result = pipeline.process_tick(snapshot.vehicles)

    changes: dict[str, Any] = {}
    if args.threshold is not None:
        changes["busy_route_threshold"] = args.threshold
    if args.distance is not None:
        changes["distance_filter_threshold"] = args.distance
    if not changes:
        return filtering_result_to_dict(result)

    update = pipeline.configuration_manager.apply_configuration_update(changes)
    if not update.success or update.filtering_result is None:
        raise ValueError(update.error or "configuration update failed")
    output = filtering_result_to_dict(update.filtering_result)
    output["route_transitions"] = [_transition_to_dict(t) for t in update.route_transitions]
    return output


def run_direction(
    args: argparse.Namespace, config: AppConfig, snapshot: ParsedSnapshot
) -> dict[str, Any]:
    """Estimate the direction of one vehicle relative to one station."""
    pipeline = create_pipeline(config, clock=_clock_for(args))
    station = next((s for s in snapshot.stations if s.id == args.station), None)
    analysis = pipeline.analyze_direction(
        _find_vehicle(snapshot, args.vehicle),
        station,
        snapshot.stop_times,
        station_names={s.id: s.name for s in snapshot.stations},
        stations=snapshot.stations,
    )
    return {"vehicle_id": args.vehicle, "station_id": args.station, **direction_analysis_to_dict(analysis)}


def run_stations(
    args: argparse.Namespace, config: AppConfig, snapshot: ParsedSnapshot
) -> dict[str, Any]:
    """Classify the snapshot's vehicles relative to its stations."""
    pipeline = create_pipeline(config, clock=_clock_for(args))
    return station_analysis_to_dict(pipeline.analyze_stations(snapshot.vehicles, snapshot.stations))


def _clock_for(args: argparse.Namespace) -> FixedClock | SystemClock:
    if args.at is None:
        return SystemClock()
    return FixedClock(args.at)


def _parse_instant(value: str) -> datetime:
    try:
        instant = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid ISO 8601 timestamp: {value}") from e
    if instant.tzinfo is None:
        raise argparse.ArgumentTypeError("timestamp must include a UTC offset")
    return instant


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vehicle-tracking",
        description="Inspect route activity, filtering and directions for a vehicle snapshot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Classify routes and filter vehicles around two stations
  vehicle-tracking filter snapshot.json --target-station 101 --target-station 102

  # Same, as if the busy threshold were 10
  vehicle-tracking filter snapshot.json --threshold 10

  # Is vehicle 42 arriving at or departing from station 101?
  vehicle-tracking direction snapshot.json --vehicle 42 --station 101

  # Which vehicles are at a station right now?
  vehicle-tracking stations snapshot.json --at 2026-01-15T08:30:00+02:00
        """,
    )
    parser.add_argument("--config", help="Path to a TOML configuration file")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("snapshot", help="JSON file with vehicles, stations and stop_times")
    common.add_argument(
        "--at",
        type=_parse_instant,
        help="Evaluate the snapshot at this ISO 8601 instant instead of now",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    filter_parser = subparsers.add_parser(
        "filter", parents=[common], help="Classify routes and filter vehicles"
    )
    filter_parser.add_argument("--threshold", type=int, help="Busy route threshold override")
    filter_parser.add_argument(
        "--distance", type=float, help="Distance filter threshold override in meters"
    )
    filter_parser.add_argument(
        "--target-station",
        action="append",
        help="Station id to measure distances against (repeatable); defaults to favorites",
    )

    direction_parser = subparsers.add_parser(
        "direction", parents=[common], help="Estimate a vehicle's direction at a station"
    )
    direction_parser.add_argument("--vehicle", required=True, help="Vehicle id")
    direction_parser.add_argument("--station", required=True, help="Station id")

    subparsers.add_parser(
        "stations", parents=[common], help="Classify vehicles as at, close to, or between stations"
    )
    return parser


COMMANDS = {
    "filter": run_filter,
    "direction": run_direction,
    "stations": run_stations,
}


def main(argv: Sequence[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config = AppConfig(config_file=args.config) if args.config else AppConfig()
        config.load_toml_overrides()
    except (FileNotFoundError, ValueError, ValidationError) as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)
    configure_logging(config)

    try:
        snapshot = load_snapshot(args.snapshot)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: {args.snapshot} is not valid JSON: {e}", file=sys.stderr)
        sys.exit(1)
    except PayloadParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        output = COMMANDS[args.command](args, config, snapshot)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(output, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
