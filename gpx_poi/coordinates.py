"""Coordinate reference system classification and distance helpers.

Catalog records arrive with a bare ``[x, y]`` pair whose reference system is
not declared. :class:`CoordinateConverter` guesses the system from the
numeric range of the pair using an ordered rule table (first match wins) and
reprojects it to WGS84 longitude/latitude with :mod:`pyproj`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from threading import RLock
from typing import Callable, Dict, List, Optional, Sequence

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

from .config import (
    EARTH_RADIUS_M,
    EPSG_28992,
    EPSG_3857,
    EPSG_4326,
    RD_X_RANGE,
    RD_Y_RANGE,
)
from .errors import ConversionFailedError
from .models import GeoCoordinate

_LOG = logging.getLogger(__name__)

Predicate = Callable[[float, float], bool]
Transform = Callable[[float, float], GeoCoordinate]

_PROJECTIONS: Dict[str, str] = {
    "EPSG:28992": EPSG_28992,
    "EPSG:4326": EPSG_4326,
    "EPSG:3857": EPSG_3857,
}
_TRANSFORMERS: Dict[str, Transformer] = {}
_TRANSFORMERS_LOCK = RLock()


def register_projections() -> None:
    """Build the WGS84 transformers for every known source system.

    Safe to call repeatedly; transformers are only built once per process.
    """

    with _TRANSFORMERS_LOCK:
        if len(_TRANSFORMERS) == len(_PROJECTIONS) - 1:
            return
        target = CRS.from_proj4(_PROJECTIONS["EPSG:4326"])
        for code, definition in _PROJECTIONS.items():
            if code == "EPSG:4326" or code in _TRANSFORMERS:
                continue
            _TRANSFORMERS[code] = Transformer.from_crs(
                CRS.from_proj4(definition), target, always_xy=True
            )
            _LOG.debug("Registered %s -> EPSG:4326 transformer", code)


def _transformer(code: str) -> Transformer:
    register_projections()
    return _TRANSFORMERS[code]


def _reproject(code: str) -> Transform:
    def transform(x: float, y: float) -> GeoCoordinate:
        lng, lat = _transformer(code).transform(x, y, errcheck=True)
        return GeoCoordinate(lng=float(lng), lat=float(lat))

    return transform


def _identity(x: float, y: float) -> GeoCoordinate:
    return GeoCoordinate(lng=x, lat=y)


def _in_range(value: float, bounds: Sequence[float]) -> bool:
    low, high = bounds
    return low <= value <= high


def _looks_geographic(x: float, y: float) -> bool:
    return -180 <= x <= 180 and -90 <= y <= 90


def _looks_rd(x: float, y: float) -> bool:
    return _in_range(x, RD_X_RANGE) and _in_range(y, RD_Y_RANGE)


def _looks_web_mercator(x: float, y: float) -> bool:
    return abs(x) > 180 and abs(y) > 90


def _always(x: float, y: float) -> bool:
    return True


@dataclass(frozen=True, slots=True)
class CoordinateRule:
    """One entry of the classification table."""

    name: str
    predicate: Predicate
    transform: Transform


DEFAULT_RULES: tuple[CoordinateRule, ...] = (
    CoordinateRule("wgs84", _looks_geographic, _identity),
    CoordinateRule("rd_new", _looks_rd, _reproject("EPSG:28992")),
    CoordinateRule("web_mercator", _looks_web_mercator, _reproject("EPSG:3857")),
    # Last resort: treat anything else as RD New.
    CoordinateRule("rd_new_fallback", _always, _reproject("EPSG:28992")),
)


class CoordinateConverter:
    """Classify raw coordinate pairs and reproject them to WGS84."""

    def __init__(self, rules: Optional[Sequence[CoordinateRule]] = None) -> None:
        register_projections()
        self._rules: List[CoordinateRule] = list(rules or DEFAULT_RULES)

    @property
    def rules(self) -> List[CoordinateRule]:
        return list(self._rules)

    def register_rule(self, rule: CoordinateRule, index: Optional[int] = None) -> None:
        """Add a rule; by default it is tried just before the catch-all."""

        if index is None:
            index = max(len(self._rules) - 1, 0)
        self._rules.insert(index, rule)

    def classify(self, x: float, y: float) -> str:
        """Return the name of the first rule matching ``(x, y)``."""

        return self._match(x, y).name

    def classify_and_convert(self, x: float, y: float) -> GeoCoordinate:
        """Return the WGS84 coordinate for a raw pair.

        Raises:
            ConversionFailedError: If the reprojection fails or yields a
                non-finite coordinate.
        """

        rule = self._match(x, y)
        try:
            result = rule.transform(x, y)
        except (ProjError, CRSError, ValueError, TypeError) as exc:
            raise ConversionFailedError(
                f"Unable to convert ({x}, {y}) using {rule.name}"
            ) from exc
        if not (math.isfinite(result.lng) and math.isfinite(result.lat)):
            raise ConversionFailedError(
                f"Conversion of ({x}, {y}) using {rule.name} is not finite"
            )
        return result

    def _match(self, x: float, y: float) -> CoordinateRule:
        for rule in self._rules:
            if rule.predicate(x, y):
                return rule
        raise ConversionFailedError(f"No coordinate rule matches ({x}, {y})")


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the Haversine great-circle distance in metres."""

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) * math.sin(d_lat / 2)
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2)
        * math.sin(d_lon / 2)
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c



__all__ = [
    "CoordinateConverter",
    "CoordinateRule",
    "DEFAULT_RULES",
    "distance_meters",
    "register_projections",
]
