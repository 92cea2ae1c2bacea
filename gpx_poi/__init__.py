"""Find catalog points of interest near a GPX track."""

from .coordinates import CoordinateConverter, distance_meters
from .errors import ConversionFailedError, GpxPoiError
from .gpx import GpxParser, parse_gpx, requires_fallback
from .models import CatalogPoint, ConvertedPoint, TrackPoint, Waypoint
from .processor import GpxProcessor, LoadState
from .proximity import PointFilter, filter_by_proximity

__all__ = [
    "CatalogPoint",
    "ConversionFailedError",
    "ConvertedPoint",
    "CoordinateConverter",
    "GpxParser",
    "GpxPoiError",
    "GpxProcessor",
    "LoadState",
    "PointFilter",
    "TrackPoint",
    "Waypoint",
    "distance_meters",
    "filter_by_proximity",
    "parse_gpx",
    "requires_fallback",
]
