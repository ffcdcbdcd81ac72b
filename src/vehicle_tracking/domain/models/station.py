"""Station domain model."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Coordinates:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class Station:
    """Represents a public transport station supplied by the host."""

    id: str
    name: str
    coordinates: Coordinates
    route_ids: frozenset[str] = field(default_factory=frozenset)
    is_favorite: bool = False
