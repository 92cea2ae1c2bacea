"""Dataclasses describing GPX inputs, catalog points and proximity results."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple


LatLon = Tuple[float, float]

_DIGITS_RE = re.compile(r"\d+")


def extract_label(name: Optional[str]) -> Optional[str]:
    """Return the first run of digits in ``name`` or ``None``."""

    if not name:
        return None
    match = _DIGITS_RE.search(name)
    return match.group(0) if match else None


@dataclass(frozen=True, slots=True)
class TrackPoint:
    """Single recorded trajectory sample."""

    lat: float
    lng: float

    def as_latlon(self) -> LatLon:
        return self.lat, self.lng


@dataclass(frozen=True, slots=True)
class Waypoint:
    """Named point of interest embedded in a GPX file."""

    lat: float
    lng: float
    name: str = "Waypoint"

    def as_latlon(self) -> LatLon:
        return self.lat, self.lng


@dataclass(frozen=True, slots=True)
class GeoCoordinate:
    """Geographic (WGS84) longitude/latitude pair."""

    lng: float
    lat: float


@dataclass(slots=True)
class CatalogPoint:
    """External point-of-interest record with a raw coordinate pair."""

    geom_point: Optional[List[Any]]
    geom_type: Optional[str] = None
    name: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CatalogPoint":
        """Build a catalog point from a raw JSON record."""

        geom_point = record.get("geom_point")
        name = record.get("name")
        return cls(
            geom_point=list(geom_point) if geom_point is not None else None,
            geom_type=record.get("geom_type"),
            name=str(name) if name is not None else None,
            properties=dict(record),
        )

    @property
    def is_eligible(self) -> bool:
        """True when the record carries a point geometry."""

        return self.geom_type == "Point" or self.geom_point is not None


@dataclass(slots=True)
class ConvertedPoint:
    """Catalog point reprojected to WGS84 with its distance to the track."""

    point: CatalogPoint
    converted: GeoCoordinate
    min_distance_to_track: float

    @property
    def name(self) -> Optional[str]:
        return self.point.name

    @property
    def label(self) -> str:
        """Marker label: the number embedded in the name, else ``?``."""

        return extract_label(self.point.name) or "?"

    def to_record(self) -> Dict[str, Any]:
        """Return a JSON-friendly record suitable for caching."""

        record = dict(self.point.properties)
        record["geom_point"] = self.point.geom_point
        record["geom_type"] = self.point.geom_type
        record["name"] = self.point.name
        record["converted"] = {"lat": self.converted.lat, "lng": self.converted.lng}
        record["minDistanceToTrack"] = self.min_distance_to_track
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ConvertedPoint":
        """Rebuild a converted point from :meth:`to_record` output."""

        raw = dict(record)
        converted = raw.pop("converted")
        distance = raw.pop("minDistanceToTrack", 0.0)
        return cls(
            point=CatalogPoint.from_record(raw),
            converted=GeoCoordinate(
                lng=float(converted["lng"]), lat=float(converted["lat"])
            ),
            min_distance_to_track=float(distance),
        )


ProximityResult = List[ConvertedPoint]


class ParseErrorKind(enum.Enum):
    """Why a GPX document could not be used."""

    MALFORMED = "malformed"
    EMPTY = "empty"


@dataclass(slots=True)
class ParseResult:
    """Outcome of parsing GPX text.

    ``source`` is the text that was actually parsed, after the GPX 1.0
    compatibility rewrite.
    """

    track_points: List[TrackPoint] = field(default_factory=list)
    waypoints: List[Waypoint] = field(default_factory=list)
    valid: bool = True
    error: Optional[ParseErrorKind] = None
    detail: Optional[str] = None
    source: str = ""


@dataclass(slots=True)
class Bounds:
    """Axis-aligned lat/lng bounding box."""

    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_points(cls, points: Iterable[LatLon]) -> "Bounds":
        """Return the bounds covering ``points``.

        Raises:
            ValueError: If ``points`` is empty.
        """

        iterator = iter(points)
        try:
            lat, lng = next(iterator)
        except StopIteration as exc:
            raise ValueError("Cannot compute bounds of an empty point set") from exc
        bounds = cls(south=lat, west=lng, north=lat, east=lng)
        for lat, lng in iterator:
            bounds.extend((lat, lng))
        return bounds

    def extend(self, point: LatLon) -> "Bounds":
        lat, lng = point
        self.south = min(self.south, lat)
        self.north = max(self.north, lat)
        self.west = min(self.west, lng)
        self.east = max(self.east, lng)
        return self

    def as_corners(self) -> List[List[float]]:
        """Return ``[[south, west], [north, east]]`` as folium expects."""

        return [[self.south, self.west], [self.north, self.east]]


def track_latlons(points: Sequence[TrackPoint]) -> List[LatLon]:
    return [point.as_latlon() for point in points]


__all__ = [
    "LatLon",
    "TrackPoint",
    "Waypoint",
    "GeoCoordinate",
    "CatalogPoint",
    "ConvertedPoint",
    "ProximityResult",
    "ParseErrorKind",
    "ParseResult",
    "Bounds",
    "extract_label",
    "track_latlons",
]
