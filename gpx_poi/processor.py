"""Orchestrate a single GPX load from raw text to markers on the map.

Each call to :meth:`GpxProcessor.process_gpx_content` walks the states in
:class:`LoadState`::

    IDLE -> PARSING -> FALLBACK_RENDER | LIBRARY_RENDER -> PROXIMITY_CHECK -> DONE
                    \\-> FAILED

The library render path recovers into the fallback path when the library
reports an error. Loads are not serialised against each other; every load
takes a new sequence number and a load whose number is no longer the latest
stops at its next suspension point without drawing anything.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

from .config import (
    PROXIMITY_MAX_DISTANCE_M,
    PROXIMITY_MIN_SEPARATION_M,
    STATUS_ERROR_MS,
    STATUS_LONG_MS,
    STATUS_SHORT_MS,
)
from .errors import FallbackRenderError
from .gpx.parser import GpxParser
from .markers import create_point_marker, create_start_end_markers, create_waypoint_marker
from .models import (
    Bounds,
    CatalogPoint,
    ConvertedPoint,
    ParseErrorKind,
    TrackPoint,
    Waypoint,
)
from .proximity import PointFilter
from .rendering import Errored, Loaded, MapRenderer, RenderOutcome
from .ui import StatusReporter

_LOG = logging.getLogger(__name__)

UNKNOWN_FILENAME = "unknown"


class LoadState(enum.Enum):
    IDLE = "idle"
    PARSING = "parsing"
    FALLBACK_RENDER = "fallback_render"
    LIBRARY_RENDER = "library_render"
    PROXIMITY_CHECK = "proximity_check"
    DONE = "done"
    FAILED = "failed"


class ProximityCache(Protocol):
    async def aload_cached_proximity_result(
        self, filename: str
    ) -> Optional[List[ConvertedPoint]]: ...

    async def asave_proximity_result(
        self, filename: str, points: Sequence[ConvertedPoint]
    ) -> None: ...


@dataclass(slots=True)
class LoadOutcome:
    """What one load operation did."""

    sequence: int
    state: LoadState = LoadState.IDLE
    track_points: List[TrackPoint] = field(default_factory=list)
    waypoints: List[Waypoint] = field(default_factory=list)
    proximity: List[ConvertedPoint] = field(default_factory=list)
    used_fallback: bool = False
    from_cache: bool = False
    stale: bool = False
    error: Optional[Exception] = None


def build_status_message(
    track_points: Sequence[TrackPoint],
    waypoints: Sequence[Waypoint],
    filename: Optional[str],
    is_fallback: bool,
) -> str:
    fallback_text = " (fallback)" if is_fallback else ""
    waypoints_text = " - showing waypoints" if waypoints else ""
    counts = f"{len(track_points)} track points, {len(waypoints)} waypoints{waypoints_text}"
    if filename:
        return f"GPX loaded{fallback_text}: {filename} ({counts})"
    return f"GPX loaded{fallback_text} with {counts}"


class GpxProcessor:
    """Sequence parsing, rendering and proximity filtering for GPX loads."""

    def __init__(
        self,
        renderer: MapRenderer,
        storage: Optional[ProximityCache],
        ui: StatusReporter,
        point_filter: Optional[PointFilter] = None,
        *,
        parser: Optional[GpxParser] = None,
        max_distance: float = PROXIMITY_MAX_DISTANCE_M,
        min_separation: float = PROXIMITY_MIN_SEPARATION_M,
    ) -> None:
        self.renderer = renderer
        self.storage = storage
        self.ui = ui
        self.point_filter = point_filter or PointFilter()
        self.parser = parser or GpxParser()
        self.max_distance = max_distance
        self.min_separation = min_separation
        self._sequence = 0

    @property
    def current_sequence(self) -> int:
        return self._sequence

    def _is_stale(self, outcome: LoadOutcome) -> bool:
        if outcome.sequence != self._sequence:
            _LOG.info(
                "Discarding stale GPX load #%d (current #%d)",
                outcome.sequence,
                self._sequence,
            )
            outcome.stale = True
            return True
        return False

    async def process_gpx_content(
        self,
        gpx_text: str,
        filename: Optional[str] = None,
        catalog: Optional[Sequence[CatalogPoint]] = None,
    ) -> LoadOutcome:
        """Parse, draw and, when needed, proximity-filter one GPX document."""

        self._sequence += 1
        outcome = LoadOutcome(sequence=self._sequence)
        self.renderer.clear()

        outcome.state = LoadState.PARSING
        parsed = self.parser.parse(gpx_text)
        if not parsed.valid:
            if parsed.error is ParseErrorKind.MALFORMED:
                self.ui.show_status("Error: Invalid GPX file format", STATUS_ERROR_MS)
            else:
                self.ui.show_status(
                    "Error: No track points or waypoints found in GPX file",
                    STATUS_LONG_MS,
                )
            outcome.state = LoadState.FAILED
            return outcome
        outcome.track_points = parsed.track_points
        outcome.waypoints = parsed.waypoints

        # The producer signature is matched on the text as received.
        if self.parser.requires_fallback(gpx_text, parsed.track_points, parsed.waypoints):
            return await self._render_fallback(outcome, filename, catalog)

        outcome.state = LoadState.LIBRARY_RENDER
        result: RenderOutcome
        try:
            result = await self.renderer.load_gpx(parsed.source)
        except Exception as exc:
            _LOG.error("Error creating GPX layer: %s", exc)
            result = Errored(cause=exc)
        if self._is_stale(outcome):
            return outcome
        if isinstance(result, Loaded):
            try:
                self.renderer.draw_library_result(result)
            except Exception as exc:
                _LOG.error("Error drawing GPX layer: %s", exc)
                result = Errored(cause=exc)
        if isinstance(result, Errored):
            self.ui.show_status(
                "GPX library failed, using fallback method...", STATUS_SHORT_MS
            )
            self.renderer.clear()
            return await self._render_fallback(outcome, filename, catalog)

        self.ui.show_status(
            build_status_message(outcome.track_points, outcome.waypoints, filename, False)
        )
        self.ui.update_gpx_button_states(True)
        if outcome.waypoints:
            self._display_waypoints(outcome.waypoints)
        elif catalog and outcome.track_points:
            await self._check_proximity(outcome, filename, catalog)
            if outcome.stale:
                return outcome
        outcome.state = LoadState.DONE
        return outcome

    async def _render_fallback(
        self,
        outcome: LoadOutcome,
        filename: Optional[str],
        catalog: Optional[Sequence[CatalogPoint]],
    ) -> LoadOutcome:
        outcome.state = LoadState.FALLBACK_RENDER
        outcome.used_fallback = True
        try:
            bounds: Optional[Bounds] = None
            if outcome.track_points:
                bounds = self.renderer.draw_track(outcome.track_points)
                for marker in create_start_end_markers(outcome.track_points):
                    self.renderer.markers.add(marker)
            if outcome.waypoints:
                _LOG.info("Displaying %d GPX waypoints (fallback)", len(outcome.waypoints))
                self._display_waypoints(outcome.waypoints)
                if bounds is None:
                    bounds = Bounds.from_points(w.as_latlon() for w in outcome.waypoints)
            if bounds is not None:
                self.renderer.fit_bounds(bounds)
        except Exception as exc:
            _LOG.error("Fallback parsing also failed: %s", exc, exc_info=True)
            self.ui.show_status(
                "Error: Could not load GPX file with any method", STATUS_LONG_MS
            )
            self.ui.update_gpx_button_states(False)
            outcome.error = FallbackRenderError(str(exc))
            outcome.state = LoadState.FAILED
            return outcome

        self.ui.show_status(
            build_status_message(outcome.track_points, outcome.waypoints, filename, True)
        )
        self.ui.update_gpx_button_states(True)
        if not outcome.waypoints and catalog and outcome.track_points:
            await self._check_proximity(outcome, filename, catalog)
            if outcome.stale:
                return outcome
        outcome.state = LoadState.DONE
        return outcome

    async def _check_proximity(
        self,
        outcome: LoadOutcome,
        filename: Optional[str],
        catalog: Sequence[CatalogPoint],
    ) -> None:
        outcome.state = LoadState.PROXIMITY_CHECK
        cached: Optional[List[ConvertedPoint]] = None
        if self.storage is not None:
            cached = await self.storage.aload_cached_proximity_result(
                filename or UNKNOWN_FILENAME
            )
            if self._is_stale(outcome):
                return
        if cached:
            _LOG.info("Using %d cached waypoints", len(cached))
            outcome.proximity = cached
            outcome.from_cache = True
            self._display_points(cached)
            return

        nearby = self.point_filter.filter_by_proximity(
            catalog,
            outcome.track_points,
            max_distance=self.max_distance,
            min_separation=self.min_separation,
        )
        _LOG.info(
            "Found %d points within %.0fm of GPX route", len(nearby), self.max_distance
        )
        if nearby and filename and self.storage is not None:
            await self.storage.asave_proximity_result(filename, nearby)
            if self._is_stale(outcome):
                return
        outcome.proximity = nearby
        self._display_points(nearby)

    def _display_waypoints(self, waypoints: Sequence[Waypoint]) -> None:
        for index, waypoint in enumerate(waypoints):
            self.renderer.markers.add(create_waypoint_marker(waypoint, index))

    def _display_points(self, points: Sequence[ConvertedPoint]) -> None:
        for point in points:
            self.renderer.markers.add(create_point_marker(point))


__all__ = [
    "GpxProcessor",
    "LoadOutcome",
    "LoadState",
    "ProximityCache",
    "build_status_message",
]
