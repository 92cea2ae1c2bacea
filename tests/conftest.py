"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable GPX documents, tracks and
catalog builders shared by the parser, proximity and processor tests.
"""
from __future__ import annotations

import math
import os
import sys
from typing import Any, Dict, List, Sequence, Tuple

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from gpx_poi.models import CatalogPoint, TrackPoint

_METRES_PER_DEGREE_LAT = 111_194.93


# --- Factory helpers -------------------------------------------------
def offset(origin: Tuple[float, float], north_m: float, east_m: float) -> Tuple[float, float]:
    """Return ``(lat, lng)`` displaced from ``origin`` by metres north/east."""

    lat, lng = origin
    d_lat = north_m / _METRES_PER_DEGREE_LAT
    d_lng = east_m / (_METRES_PER_DEGREE_LAT * math.cos(math.radians(lat)))
    return lat + d_lat, lng + d_lng


def make_catalog_point(name: str, lat: float, lng: float, **extra: Any) -> CatalogPoint:
    record: Dict[str, Any] = {"name": name, "geom_type": "Point", "geom_point": [lng, lat]}
    record.update(extra)
    return CatalogPoint.from_record(record)


def gpx_document(
    *,
    track: Sequence[Tuple[float, float]] = (),
    waypoints: Sequence[Tuple[float, float, str | None]] = (),
    version: str = "1.1",
    creator: str = "pytest",
    namespace: str = "http://www.topografix.com/GPX/1/1",
) -> str:
    """Build a small GPX document."""

    parts: List[str] = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<gpx version="{version}" creator="{creator}" xmlns="{namespace}">',
    ]
    for lat, lng, name in waypoints:
        name_el = f"<name>{name}</name>" if name is not None else ""
        parts.append(f'<wpt lat="{lat}" lon="{lng}">{name_el}</wpt>')
    if track:
        parts.append("<trk><name>Route</name><trkseg>")
        for lat, lng in track:
            parts.append(f'<trkpt lat="{lat}" lon="{lng}"><ele>1.0</ele></trkpt>')
        parts.append("</trkseg></trk>")
    parts.append("</gpx>")
    return "\n".join(parts)


GPX_10_LINE = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.0" creator="pytest" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" xmlns="http://www.topografix.com/GPX/1/0" xsi:schemaLocation="http://www.topografix.com/GPX/1/0 http://www.topografix.com/GPX/1/0/gpx.xsd">
  <trk>
    <trkseg>
      <trkpt lat="52.0000" lon="4.9000"></trkpt>
      <trkpt lat="52.0010" lon="4.9000"></trkpt>
      <trkpt lat="52.0020" lon="4.9000"></trkpt>
    </trkseg>
  </trk>
</gpx>
"""


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def track_origin() -> Tuple[float, float]:
    return 52.0, 4.9


@pytest.fixture
def single_point_track(track_origin: Tuple[float, float]) -> List[TrackPoint]:
    return [TrackPoint(lat=track_origin[0], lng=track_origin[1])]


@pytest.fixture
def line_track() -> List[TrackPoint]:
    """Three points heading north roughly 111 m apart."""

    return [
        TrackPoint(lat=52.0000, lng=4.9000),
        TrackPoint(lat=52.0010, lng=4.9000),
        TrackPoint(lat=52.0020, lng=4.9000),
    ]


@pytest.fixture
def gpx_10_line() -> str:
    return GPX_10_LINE


@pytest.fixture
def make_gpx():
    return gpx_document


@pytest.fixture
def make_point():
    return make_catalog_point


@pytest.fixture
def offset_from():
    return offset
