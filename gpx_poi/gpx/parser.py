"""Tolerant GPX parsing and fallback detection.

The parser extracts track points and waypoints from GPX text without relying
on a full GPX object model, so documents that a strict GPX library rejects
can still be drawn. :func:`requires_fallback` decides when the strict library
path should be skipped entirely.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Iterator, List, Optional, Sequence
from xml.etree.ElementTree import Element

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET

from ..config import (
    GPX_10_NAMESPACE,
    GPX_11_NAMESPACE,
    GPX_BROKEN_CREATOR,
    GPX_DEFAULT_WAYPOINT_NAME,
)
from ..errors import GpxEmptyError, GpxFormatError
from ..models import ParseErrorKind, ParseResult, TrackPoint, Waypoint

_LOG = logging.getLogger(__name__)

_VERSION_10 = 'version="1.0"'
_VERSION_11 = 'version="1.1"'
_XMLNS_10 = f'xmlns="{GPX_10_NAMESPACE}"'
_XMLNS_11 = f'xmlns="{GPX_11_NAMESPACE}"'
_SCHEMA_10 = (
    f'xsi:schemaLocation="{GPX_10_NAMESPACE} {GPX_10_NAMESPACE}/gpx.xsd"'
)
_SCHEMA_11 = (
    f'xsi:schemaLocation="{GPX_11_NAMESPACE} {GPX_11_NAMESPACE}/gpx.xsd"'
)
_BROKEN_CREATOR = f'creator="{GPX_BROKEN_CREATOR}"'
_PROLOG_RE = re.compile(r"\s*<\?xml[^>]*\?>")


def _split_prolog(gpx_text: str) -> tuple[str, str]:
    """Split off the XML declaration, whose own ``version`` is not GPX's."""

    match = _PROLOG_RE.match(gpx_text)
    prolog = match.group(0) if match else ""
    return prolog, gpx_text[len(prolog) :]


def fix_version_compatibility(gpx_text: str) -> str:
    """Rewrite GPX 1.0 version/namespace tokens to their 1.1 equivalents.

    Only applies when both the 1.0 version attribute and the 1.0 default
    namespace are present; the first exact occurrence of each token after
    the XML declaration is replaced. The declaration itself is left alone.
    """

    prolog, body = _split_prolog(gpx_text)
    if _VERSION_10 in body and _XMLNS_10 in body:
        body = (
            body.replace(_VERSION_10, _VERSION_11, 1)
            .replace(_XMLNS_10, _XMLNS_11, 1)
            .replace(_SCHEMA_10, _SCHEMA_11, 1)
        )
        return prolog + body
    return gpx_text


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _iter_named(root: Element, name: str) -> Iterator[Element]:
    for element in root.iter():
        if _local_name(element.tag) == name:
            yield element


def _parse_coordinate(value: Optional[str], limit: float) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value.strip())
    except ValueError:
        return None
    if not math.isfinite(number) or abs(number) > limit:
        return None
    return number


def _parse_latlon(element: Element) -> Optional[tuple[float, float]]:
    lat = _parse_coordinate(element.get("lat"), 90.0)
    lng = _parse_coordinate(element.get("lon"), 180.0)
    if lat is None or lng is None:
        return None
    return lat, lng


def _waypoint_name(element: Element) -> str:
    for child in element.iter():
        if child is not element and _local_name(child.tag) == "name":
            return "".join(child.itertext())
    return GPX_DEFAULT_WAYPOINT_NAME


def _fromstring(gpx_text: str) -> Element:
    return ET.fromstring(gpx_text)


class GpxParser:
    """Extract track points and waypoints from GPX text."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._log = logger or _LOG

    def parse(self, gpx_text: str) -> ParseResult:
        """Parse GPX text into track points and waypoints.

        Syntax errors yield ``valid=False`` with :attr:`ParseErrorKind.MALFORMED`;
        a well-formed document without usable points yields ``valid=False``
        with :attr:`ParseErrorKind.EMPTY`.
        """

        text = fix_version_compatibility(gpx_text)
        try:
            root = _fromstring(text)
        except (ET.ParseError, DefusedXmlException) as exc:
            self._log.error("XML parsing error: %s", exc)
            return ParseResult(
                valid=False,
                error=ParseErrorKind.MALFORMED,
                detail=str(exc),
                source=text,
            )

        track_points: List[TrackPoint] = []
        for element in _iter_named(root, "trkpt"):
            latlon = _parse_latlon(element)
            if latlon is not None:
                track_points.append(TrackPoint(lat=latlon[0], lng=latlon[1]))

        waypoints: List[Waypoint] = []
        for element in _iter_named(root, "wpt"):
            latlon = _parse_latlon(element)
            if latlon is not None:
                waypoints.append(
                    Waypoint(lat=latlon[0], lng=latlon[1], name=_waypoint_name(element))
                )

        self._log.info(
            "Extracted %d track points and %d waypoints from GPX",
            len(track_points),
            len(waypoints),
        )
        if not track_points and not waypoints:
            return ParseResult(
                valid=False,
                error=ParseErrorKind.EMPTY,
                detail="No track points or waypoints found",
                source=text,
            )
        return ParseResult(track_points=track_points, waypoints=waypoints, source=text)

    def parse_strict(self, gpx_text: str) -> ParseResult:
        """Parse GPX text, raising instead of returning an invalid result.

        Raises:
            GpxFormatError: If the text is not well-formed XML.
            GpxEmptyError: If no usable track points or waypoints were found.
        """

        result = self.parse(gpx_text)
        if result.error is ParseErrorKind.MALFORMED:
            raise GpxFormatError(result.detail or "Invalid GPX file format")
        if result.error is ParseErrorKind.EMPTY:
            raise GpxEmptyError(result.detail or "No usable GPX data")
        return result

    def requires_fallback(
        self,
        gpx_text: str,
        track_points: Sequence[TrackPoint],
        waypoints: Sequence[Waypoint],
    ) -> bool:
        """Return True when the simplified rendering path must be used."""

        try:
            root: Optional[Element] = _fromstring(gpx_text)
        except (ET.ParseError, DefusedXmlException):
            root = None

        if root is None:
            has_root = False
            has_segments = has_routes = False
        else:
            has_root = any(True for _ in _iter_named(root, "gpx"))
            has_segments = any(True for _ in _iter_named(root, "trkseg"))
            has_routes = any(True for _ in _iter_named(root, "rte"))

        if (
            not has_root
            or (not has_segments and not has_routes and not waypoints)
            or (has_segments and not track_points)
        ):
            self._log.info(
                "GPX structure issues detected, using fallback method immediately"
            )
            return True

        # Plain text match; an XML declaration's version="1.0" also counts.
        if _BROKEN_CREATOR in gpx_text and _VERSION_10 in gpx_text:
            self._log.info("Known incompatible GPX producer %s", GPX_BROKEN_CREATOR)
            return True
        return False


_DEFAULT_PARSER = GpxParser()


def parse_gpx(gpx_text: str) -> ParseResult:
    return _DEFAULT_PARSER.parse(gpx_text)


def requires_fallback(
    gpx_text: str,
    track_points: Sequence[TrackPoint],
    waypoints: Sequence[Waypoint],
) -> bool:
    return _DEFAULT_PARSER.requires_fallback(gpx_text, track_points, waypoints)


__all__ = [
    "GpxParser",
    "fix_version_compatibility",
    "parse_gpx",
    "requires_fallback",
]
