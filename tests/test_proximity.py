"""Tests for the two-pass proximity filter."""

from __future__ import annotations

import logging
from typing import List

import pytest

from gpx_poi.coordinates import CoordinateConverter, CoordinateRule, distance_meters
from gpx_poi.models import CatalogPoint, GeoCoordinate, TrackPoint
from gpx_poi.proximity import PointFilter, filter_by_proximity


@pytest.fixture
def point_filter() -> PointFilter:
    return PointFilter()


def _names(points) -> List[str]:
    return [p.name for p in points]


def test_closer_duplicate_replaces_earlier_point(
    point_filter, single_point_track, track_origin, make_point, offset_from
) -> None:
    far = make_point("POI 1", *offset_from(track_origin, 8.0, 0.0))
    near = make_point("POI 2", *offset_from(track_origin, 4.0, 0.0))

    result = point_filter.filter_by_proximity([far, near], single_point_track)

    assert _names(result) == ["POI 2"]
    assert result[0].min_distance_to_track == pytest.approx(4.0, abs=0.05)
    assert result[0].label == "2"


def test_farther_duplicate_is_discarded(
    point_filter, single_point_track, track_origin, make_point, offset_from
) -> None:
    near = make_point("near", *offset_from(track_origin, 4.0, 0.0))
    far = make_point("far", *offset_from(track_origin, 8.0, 0.0))

    result = point_filter.filter_by_proximity([near, far], single_point_track)

    assert _names(result) == ["near"]


def test_threshold_excludes_points_beyond_max_distance(
    point_filter, single_point_track, track_origin, make_point, offset_from
) -> None:
    inside = make_point("inside", *offset_from(track_origin, 45.0, 0.0))
    outside = make_point("outside", *offset_from(track_origin, 0.0, 60.0))

    result = point_filter.filter_by_proximity([inside, outside], single_point_track)

    assert _names(result) == ["inside"]
    assert all(r.min_distance_to_track <= 50.0 for r in result)


def test_point_exactly_at_max_distance_is_kept(point_filter, line_track, make_point) -> None:
    point = make_point("Edge 5", 52.0013, 4.9004)
    exact = min(distance_meters(52.0013, 4.9004, tp.lat, tp.lng) for tp in line_track)

    kept = point_filter.calculate_point_distances([point], line_track, exact)
    assert [p.name for p in kept] == ["Edge 5"]
    assert kept[0].min_distance_to_track == exact

    below = point_filter.calculate_point_distances(
        [point], line_track, exact - 1e-9
    )
    assert below == []


def test_thresholds_are_overridable(
    point_filter, single_point_track, track_origin, make_point, offset_from
) -> None:
    a = make_point("a", *offset_from(track_origin, 30.0, 0.0))
    b = make_point("b", *offset_from(track_origin, 70.0, 0.0))

    result = point_filter.filter_by_proximity(
        [a, b], single_point_track, max_distance=100.0, min_separation=50.0
    )
    assert _names(result) == ["a"]

    result = point_filter.filter_by_proximity(
        [a, b], single_point_track, max_distance=100.0, min_separation=10.0
    )
    assert _names(result) == ["a", "b"]


def test_replacement_uses_first_conflicting_match(
    point_filter, single_point_track, track_origin, make_point, offset_from
) -> None:
    """A candidate near two accepted points only replaces the first of them.

    The resulting pair sits closer than the minimum separation; that is the
    documented outcome of the single greedy pass.
    """

    left = make_point("left", *offset_from(track_origin, 20.0, -13.0))
    right = make_point("right", *offset_from(track_origin, 20.0, 13.0))
    middle = make_point("middle", *offset_from(track_origin, 10.0, 0.0))

    result = point_filter.filter_by_proximity(
        [left, right, middle], single_point_track
    )

    assert _names(result) == ["middle", "right"]
    gap = distance_meters(
        result[0].converted.lat,
        result[0].converted.lng,
        result[1].converted.lat,
        result[1].converted.lng,
    )
    assert gap < 25.0


def test_accepted_points_respect_separation_without_conflicts(
    point_filter, line_track, make_point
) -> None:
    catalog = [
        make_point(f"P{idx}", 52.0 + idx * 0.0003, 4.9001) for idx in range(5)
    ]
    result = point_filter.filter_by_proximity(catalog, line_track)

    assert len(result) == 5
    for i, first in enumerate(result):
        for second in result[i + 1 :]:
            assert (
                distance_meters(
                    first.converted.lat,
                    first.converted.lng,
                    second.converted.lat,
                    second.converted.lng,
                )
                >= 25.0
            )


def test_empty_inputs_return_empty(point_filter, single_point_track, make_point) -> None:
    assert point_filter.filter_by_proximity([], single_point_track) == []
    assert point_filter.filter_by_proximity([make_point("a", 52.0, 4.9)], []) == []


@pytest.mark.parametrize(
    "geom_point",
    [None, [], [4.9], [0, 52.0], [4.9, 0], ["x", 52.0], [float("nan"), 52.0]],
)
def test_unusable_coordinate_pairs_are_skipped(
    point_filter, single_point_track, geom_point
) -> None:
    point = CatalogPoint(geom_point=geom_point, geom_type="Point", name="bad")
    assert point_filter.filter_by_proximity([point], single_point_track) == []


def test_string_coordinates_are_accepted(point_filter, single_point_track) -> None:
    point = CatalogPoint(geom_point=["4.9", "52.0"], geom_type="Point", name="str")
    result = point_filter.filter_by_proximity([point], single_point_track)
    assert _names(result) == ["str"]


def test_conversion_failure_drops_point_and_continues(
    single_point_track, make_point, caplog: pytest.LogCaptureFixture
) -> None:
    def explode(x: float, y: float) -> GeoCoordinate:
        raise ValueError("invalid parameters")

    converter = CoordinateConverter()
    converter.register_rule(
        CoordinateRule("explode", lambda x, y: x == 999.0, explode), index=0
    )
    point_filter = PointFilter(converter)
    bad = CatalogPoint(geom_point=[999.0, 999.0], geom_type="Point", name="bad")
    good = make_point("good", 52.0, 4.9)

    with caplog.at_level(logging.WARNING, logger="gpx_poi.proximity"):
        result = point_filter.filter_by_proximity([bad, good], single_point_track)

    assert _names(result) == ["good"]
    assert "Failed to convert coordinates" in caplog.text


def test_rd_catalog_points_are_converted() -> None:
    converter = CoordinateConverter()
    origin = converter.classify_and_convert(155000.0, 463000.0)
    track = [TrackPoint(lat=origin.lat, lng=origin.lng)]
    point = CatalogPoint(geom_point=[155000, 463000], geom_type="Point", name="RD 12")

    result = PointFilter(converter).filter_by_proximity([point], track)

    assert len(result) == 1
    assert result[0].min_distance_to_track == pytest.approx(0.0, abs=1e-6)
    assert result[0].label == "12"


def test_filter_is_deterministic(line_track, make_point) -> None:
    catalog = [
        make_point(f"P{idx}", 52.0 + idx * 0.0001, 4.9001 + (idx % 2) * 0.0001)
        for idx in range(12)
    ]
    first = filter_by_proximity(catalog, line_track)
    second = filter_by_proximity(catalog, line_track)
    assert [p.to_record() for p in first] == [p.to_record() for p in second]
