"""Central error types used across the application."""

from __future__ import annotations


class GpxPoiError(RuntimeError):
    """Base error for GPX and point-of-interest processing failures."""


class GpxFormatError(GpxPoiError):
    """Raised when GPX text is not well-formed XML."""


class GpxEmptyError(GpxPoiError):
    """Raised when a GPX document holds no usable track points or waypoints."""


class ConversionFailedError(GpxPoiError):
    """Raised when a coordinate pair cannot be reprojected to WGS84."""


class RenderLibraryError(GpxPoiError):
    """Raised when the full-featured GPX renderer cannot handle a document."""


class FallbackRenderError(GpxPoiError):
    """Raised when the simplified polyline/marker rendering also fails."""


class CatalogError(GpxPoiError):
    """Raised when the point-of-interest catalog cannot be loaded."""


class StorageError(GpxPoiError):
    """Raised when stored GPX data or backups cannot be read or written."""


__all__ = [
    "GpxPoiError",
    "GpxFormatError",
    "GpxEmptyError",
    "ConversionFailedError",
    "RenderLibraryError",
    "FallbackRenderError",
    "CatalogError",
    "StorageError",
]
