"""GPX parsing and fallback detection."""

from .parser import GpxParser, fix_version_compatibility, parse_gpx, requires_fallback

__all__ = [
    "GpxParser",
    "fix_version_compatibility",
    "parse_gpx",
    "requires_fallback",
]
