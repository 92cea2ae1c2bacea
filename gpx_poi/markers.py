"""Marker construction and the per-session marker layer."""

from __future__ import annotations

from typing import List, Optional, Sequence

import folium

from .config import MARKER_COLOR
from .models import ConvertedPoint, TrackPoint, Waypoint, extract_label

_GOOGLE_MAPS_URL = "https://maps.google.com/?q={lat},{lng}"


def _numbered_icon(label: str) -> folium.DivIcon:
    """Return a teardrop pin showing ``label``."""

    html = (
        f'<div style="background: {MARKER_COLOR}; color: white; width: 60px; '
        "height: 60px; border-radius: 50% 50% 50% 0; transform: rotate(-45deg); "
        "display: flex; align-items: center; justify-content: center; "
        "font-weight: bold; font-size: 24px; box-shadow: 0 4px 10px rgba(0,0,0,0.3); "
        'border: 4px solid white;">'
        f'<span style="transform: rotate(45deg);">{label}</span></div>'
    )
    return folium.DivIcon(
        html=html,
        icon_size=(60, 60),
        icon_anchor=(30, 60),
        class_name="custom-numbered-icon",
    )


def _maps_popup(title: str, lat: float, lng: float) -> folium.Popup:
    url = _GOOGLE_MAPS_URL.format(lat=lat, lng=lng)
    return folium.Popup(
        html=f'<strong>{title}</strong><br><a href="{url}" target="_blank">Open in Google Maps</a>',
        max_width=300,
    )


def create_waypoint_marker(waypoint: Waypoint, index: int) -> folium.Marker:
    """Numbered marker for a GPX waypoint; falls back to ``index + 1``."""

    label = extract_label(waypoint.name) or str(index + 1)
    return folium.Marker(
        location=[waypoint.lat, waypoint.lng],
        icon=_numbered_icon(label),
        tooltip=waypoint.name,
        popup=_maps_popup(waypoint.name, waypoint.lat, waypoint.lng),
    )


def create_point_marker(point: ConvertedPoint) -> folium.Marker:
    """Numbered marker for a catalog point near the track."""

    lat, lng = point.converted.lat, point.converted.lng
    title = point.name or point.label
    return folium.Marker(
        location=[lat, lng],
        icon=_numbered_icon(point.label),
        tooltip=f"{title} ({point.min_distance_to_track:.0f} m from track)",
        popup=_maps_popup(title, lat, lng),
    )


def create_start_end_markers(track_points: Sequence[TrackPoint]) -> List[folium.Marker]:
    """Start and end markers; empty unless the track has two or more points."""

    if len(track_points) < 2:
        return []
    start, end = track_points[0], track_points[-1]
    return [
        folium.Marker(location=[start.lat, start.lng], popup="Start", tooltip="Start"),
        folium.Marker(location=[end.lat, end.lng], popup="End", tooltip="End"),
    ]


class MarkerLayer:
    """Markers currently displayed for one session.

    The layer is owned by whichever load most recently reached ``DONE``.
    Clearing and re-adding are separate steps, so two interleaved loads can
    leave a mix of markers behind; the processor discards stale loads to
    avoid that.
    """

    def __init__(self) -> None:
        self._markers: List[folium.Marker] = []
        self._group = folium.FeatureGroup(name="Waypoints")

    @property
    def markers(self) -> List[folium.Marker]:
        return list(self._markers)

    @property
    def group(self) -> folium.FeatureGroup:
        return self._group

    def attach(self, folium_map: folium.Map) -> None:
        self._group.add_to(folium_map)

    def add(self, marker: folium.Marker) -> None:
        marker.add_to(self._group)
        self._markers.append(marker)

    def clear(self, folium_map: Optional[folium.Map] = None) -> None:
        """Drop every marker; re-attach an empty group to ``folium_map``."""

        self._markers = []
        self._group = folium.FeatureGroup(name="Waypoints")
        if folium_map is not None:
            self.attach(folium_map)

    def __len__(self) -> int:
        return len(self._markers)


__all__ = [
    "MarkerLayer",
    "create_point_marker",
    "create_start_end_markers",
    "create_waypoint_marker",
]
