"""Parsers for host payloads."""

from vehicle_tracking.adapters.parsing.payload_parser import ParsedSnapshot, PayloadParser

__all__ = ["ParsedSnapshot", "PayloadParser"]
