"""Map rendering collaborators.

Two drawing paths exist. The library path hands the GPX text to ``gpxpy``
and reports the outcome as a :class:`Loaded` or :class:`Errored` value
instead of raising; a :class:`Loaded` result is only drawn when the caller
passes it to ``draw_library_result``. The fallback path only uses plain
polyline and marker primitives fed with points the tolerant parser already
extracted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple, Union

import folium
import gpxpy
import gpxpy.gpx

from .config import (
    MAP_DEFAULT_VIEW,
    MAP_DEFAULT_ZOOM,
    MAP_TILES,
    POLYLINE_COLOR,
    POLYLINE_OPACITY,
    POLYLINE_WEIGHT,
)
from .errors import RenderLibraryError
from .markers import MarkerLayer, create_start_end_markers
from .models import Bounds, LatLon, TrackPoint, track_latlons

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Loaded:
    """The library parsed the document; nothing is drawn yet."""

    bounds: Bounds
    paths: Tuple[Tuple[LatLon, ...], ...] = ()


@dataclass(frozen=True, slots=True)
class Errored:
    """The library could not render the document."""

    cause: BaseException


RenderOutcome = Union[Loaded, Errored]


class MapRenderer(Protocol):
    """Drawing surface used by :class:`gpx_poi.processor.GpxProcessor`."""

    markers: MarkerLayer

    def clear(self) -> None: ...

    async def load_gpx(self, gpx_text: str) -> RenderOutcome: ...

    def draw_library_result(self, result: Loaded) -> None: ...

    def draw_track(self, track_points: Sequence[TrackPoint]) -> Bounds: ...

    def fit_bounds(self, bounds: Bounds) -> None: ...


def _polyline(points: Sequence[LatLon], tooltip: str) -> folium.PolyLine:
    return folium.PolyLine(
        list(points),
        color=POLYLINE_COLOR,
        weight=POLYLINE_WEIGHT,
        opacity=POLYLINE_OPACITY,
        tooltip=tooltip,
    )


def _library_paths(document: gpxpy.gpx.GPX) -> List[List[LatLon]]:
    paths: List[List[LatLon]] = []
    for track in document.tracks:
        for segment in track.segments:
            points = [(p.latitude, p.longitude) for p in segment.points]
            if points:
                paths.append(points)
    for route in document.routes:
        points = [(p.latitude, p.longitude) for p in route.points]
        if points:
            paths.append(points)
    return paths


class FoliumMapRenderer:
    """Render GPX layers and markers onto a :class:`folium.Map`."""

    def __init__(
        self,
        *,
        location: Sequence[float] = MAP_DEFAULT_VIEW,
        zoom_start: int = MAP_DEFAULT_ZOOM,
    ) -> None:
        self._location = list(location)
        self._zoom_start = zoom_start
        self.markers = MarkerLayer()
        self.bounds: Optional[Bounds] = None
        self.map = self._new_map()
        self.markers.attach(self.map)

    def _new_map(self) -> folium.Map:
        folium_map = folium.Map(
            location=self._location,
            zoom_start=self._zoom_start,
            tiles=MAP_TILES,
            control_scale=True,
        )
        self._layer = folium.FeatureGroup(name="GPX")
        self._layer.add_to(folium_map)
        return folium_map

    def clear(self) -> None:
        """Remove the GPX layer and every marker."""

        self.map = self._new_map()
        self.bounds = None
        self.markers.clear(self.map)

    async def load_gpx(self, gpx_text: str) -> RenderOutcome:
        """Parse ``gpx_text`` with ``gpxpy`` without touching the map.

        The caller draws the result with :meth:`draw_library_result` once it
        knows the load is still current.
        """

        try:
            document = await asyncio.to_thread(gpxpy.parse, gpx_text)
            paths = _library_paths(document)
            corners: List[LatLon] = [pt for path in paths for pt in path]
            corners.extend((w.latitude, w.longitude) for w in document.waypoints)
            if not corners:
                raise RenderLibraryError("GPX library found nothing to draw")
            bounds = Bounds.from_points(corners)
        except Exception as exc:
            _LOG.error("GPX loading error: %s", exc)
            return Errored(cause=exc)
        return Loaded(bounds=bounds, paths=tuple(tuple(path) for path in paths))

    def draw_library_result(self, result: Loaded) -> None:
        """Draw the tracks and routes of a :class:`Loaded` result and fit to it."""

        for path in result.paths:
            _polyline(path, "GPX track").add_to(self._layer)
            ends = [TrackPoint(*path[0]), TrackPoint(*path[-1])]
            for marker in create_start_end_markers(ends if len(path) > 1 else []):
                marker.add_to(self._layer)
        self.fit_bounds(result.bounds)

    def draw_track(self, track_points: Sequence[TrackPoint]) -> Bounds:
        """Draw a plain polyline through ``track_points``.

        Raises:
            ValueError: If ``track_points`` is empty.
        """

        latlons = track_latlons(track_points)
        bounds = Bounds.from_points(latlons)
        _polyline(latlons, "GPX track").add_to(self._layer)
        return bounds

    def fit_bounds(self, bounds: Bounds) -> None:
        self.bounds = bounds
        self.map.fit_bounds(bounds.as_corners())

    def save(self, path: Union[str, Path]) -> Path:
        """Write the current map to an HTML file."""

        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.map.save(str(output_path))
        _LOG.info("Map written to %s", output_path)
        return output_path


__all__ = [
    "Errored",
    "FoliumMapRenderer",
    "Loaded",
    "MapRenderer",
    "RenderOutcome",
]
