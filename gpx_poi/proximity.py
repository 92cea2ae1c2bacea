"""Select catalog points near a GPX track and drop near-duplicates."""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .config import PROXIMITY_MAX_DISTANCE_M, PROXIMITY_MIN_SEPARATION_M
from .coordinates import CoordinateConverter, distance_meters
from .errors import ConversionFailedError
from .models import CatalogPoint, ConvertedPoint, ProximityResult, TrackPoint

_LOG = logging.getLogger(__name__)


def _coerce_pair(geom_point: Optional[Sequence[Any]]) -> Optional[Tuple[float, float]]:
    """Return a numeric ``(x, y)`` pair or ``None`` when unusable.

    Zero components are rejected along with missing ones.
    """

    if geom_point is None or len(geom_point) < 2:
        return None
    try:
        x = float(geom_point[0])
        y = float(geom_point[1])
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    if x == 0 or y == 0:
        return None
    return x, y


class PointFilter:
    """Two-pass proximity filter over catalog points."""

    def __init__(self, converter: Optional[CoordinateConverter] = None) -> None:
        self.converter = converter or CoordinateConverter()

    def filter_by_proximity(
        self,
        catalog: Iterable[CatalogPoint],
        track: Sequence[TrackPoint],
        max_distance: float = PROXIMITY_MAX_DISTANCE_M,
        min_separation: float = PROXIMITY_MIN_SEPARATION_M,
    ) -> ProximityResult:
        """Return catalog points within ``max_distance`` of the track.

        Survivors closer than ``min_separation`` to each other are reduced
        with :meth:`remove_duplicate_points`.
        """

        with_distance = self.calculate_point_distances(catalog, track, max_distance)
        return self.remove_duplicate_points(with_distance, min_separation)

    def calculate_point_distances(
        self,
        catalog: Iterable[CatalogPoint],
        track: Sequence[TrackPoint],
        max_distance: float = PROXIMITY_MAX_DISTANCE_M,
    ) -> ProximityResult:
        """Convert each catalog point and keep those close enough to the track."""

        if not track:
            return []
        results: ProximityResult = []
        for point in catalog:
            pair = _coerce_pair(point.geom_point)
            if pair is None:
                continue
            try:
                converted = self.converter.classify_and_convert(*pair)
            except ConversionFailedError as exc:
                _LOG.warning(
                    "Failed to convert coordinates for point %r: %s", point.name, exc
                )
                continue
            min_distance = min(
                distance_meters(converted.lat, converted.lng, tp.lat, tp.lng)
                for tp in track
            )
            if min_distance <= max_distance:
                results.append(
                    ConvertedPoint(
                        point=point,
                        converted=converted,
                        min_distance_to_track=min_distance,
                    )
                )
        return results

    def remove_duplicate_points(
        self,
        points: Sequence[ConvertedPoint],
        min_separation: float = PROXIMITY_MIN_SEPARATION_M,
    ) -> ProximityResult:
        """Greedy, order-dependent deduplication of clustered points.

        A candidate conflicting with accepted points replaces the first of
        them that lies within ``min_separation`` and is further from the
        track; otherwise it is discarded. The result is not a globally
        optimal clustering.
        """

        accepted: ProximityResult = []
        for candidate in points:
            too_close = any(
                self._separation(candidate, existing) < min_separation
                for existing in accepted
            )
            if not too_close:
                accepted.append(candidate)
                continue
            for index, existing in enumerate(accepted):
                if (
                    self._separation(candidate, existing) < min_separation
                    and candidate.min_distance_to_track < existing.min_distance_to_track
                ):
                    accepted[index] = candidate
                    break
        return accepted

    @staticmethod
    def _separation(first: ConvertedPoint, second: ConvertedPoint) -> float:
        return distance_meters(
            first.converted.lat,
            first.converted.lng,
            second.converted.lat,
            second.converted.lng,
        )


def filter_by_proximity(
    catalog: Iterable[CatalogPoint],
    track: Sequence[TrackPoint],
    max_distance: float = PROXIMITY_MAX_DISTANCE_M,
    min_separation: float = PROXIMITY_MIN_SEPARATION_M,
) -> List[ConvertedPoint]:
    """Module-level convenience wrapper around :class:`PointFilter`."""

    return PointFilter().filter_by_proximity(
        catalog, track, max_distance=max_distance, min_separation=min_separation
    )


__all__ = ["PointFilter", "filter_by_proximity"]
