"""Central configuration for the GPX point-of-interest viewer.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Most values can be overridden through environment
variables (optionally via a local `.env`).
"""

from __future__ import annotations

import importlib
import os


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env variables when python-dotenv is available.
_load_dotenv = None
try:
    _dotenv_mod = importlib.import_module("dotenv")
    _load_dotenv = getattr(_dotenv_mod, "load_dotenv", None)
except Exception:
    _load_dotenv = None

if callable(_load_dotenv):
    # Load .env from the current directory or any parent folder.
    _load_dotenv()


# ---------------------------------------------------------------------------
# Proximity filtering
# ---------------------------------------------------------------------------
# Catalog points further than this (metres) from every track point are dropped.
PROXIMITY_MAX_DISTANCE_M = _env_float("PROXIMITY_MAX_DISTANCE_M", 50.0)

# Accepted points closer than this (metres) to each other are deduplicated.
PROXIMITY_MIN_SEPARATION_M = _env_float("PROXIMITY_MIN_SEPARATION_M", 25.0)

# Mean Earth radius used by the Haversine distance.
EARTH_RADIUS_M = 6_371_000.0


# ---------------------------------------------------------------------------
# Coordinate reference systems
# ---------------------------------------------------------------------------
# Fixed definitions, not user-configurable.
EPSG_28992 = (
    "+proj=sterea +lat_0=52.15616055555555 +lon_0=5.38763888888889 "
    "+k=0.9999079 +x_0=155000 +y_0=463000 +ellps=bessel "
    "+towgs84=565.417,50.3319,465.552,-0.398957,0.343988,-1.8774,4.0725 "
    "+units=m +no_defs"
)
EPSG_4326 = "+proj=longlat +datum=WGS84 +no_defs"
EPSG_3857 = (
    "+proj=merc +a=6378137 +b=6378137 +lat_ts=0.0 +lon_0=0.0 +x_0=0.0 +y_0=0 "
    "+k=1.0 +units=m +nadgrids=@null +wktext +no_defs"
)

# Numeric range of the Dutch national grid used to recognise RD coordinates.
RD_X_RANGE = (0.0, 300_000.0)
RD_Y_RANGE = (300_000.0, 700_000.0)


# ---------------------------------------------------------------------------
# GPX handling
# ---------------------------------------------------------------------------
GPX_10_NAMESPACE = "http://www.topografix.com/GPX/1/0"
GPX_11_NAMESPACE = "http://www.topografix.com/GPX/1/1"

# Producer whose GPX 1.0 output breaks the full-featured renderer.
GPX_BROKEN_CREATOR = "routemaker.nl"

# Name given to waypoints without a <name> child.
GPX_DEFAULT_WAYPOINT_NAME = "Waypoint"


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
# Directory (absolute or relative) holding stored GPX files and cached
# proximity results.
STORAGE_DIR = os.getenv("GPX_POI_STORAGE_DIR", "gpx_poi_data")

STORAGE_LAST_GPX_KEY = "last_gpx"
STORAGE_GPX_PREFIX = "gpx_"
STORAGE_WAYPOINT_SUFFIX = "_wp"

# Stored GPX files older than this many days are pruned on start-up. Set to 0
# to keep everything.
STORAGE_RETENTION_DAYS = _env_int("GPX_POI_STORAGE_RETENTION_DAYS", 0)

BACKUP_VERSION = "1.0"


# ---------------------------------------------------------------------------
# Catalog source
# ---------------------------------------------------------------------------
# Path or http(s) URL of the POI catalog JSON.
CATALOG_SOURCE = os.getenv("GPX_POI_CATALOG", "fk.json")

# Request timeout in seconds when the catalog is fetched over HTTP.
CATALOG_REQUEST_TIMEOUT = _env_int("GPX_POI_CATALOG_TIMEOUT", 15)

# In-memory catalog cache: number of sources kept and their lifetime.
CATALOG_CACHE_SIZE = _env_int("GPX_POI_CATALOG_CACHE_SIZE", 4)
CATALOG_CACHE_TTL_SECONDS = _env_int("GPX_POI_CATALOG_CACHE_TTL", 3600)


# ---------------------------------------------------------------------------
# Map output
# ---------------------------------------------------------------------------
MAP_DEFAULT_VIEW = (52.3676, 4.9041)
MAP_DEFAULT_ZOOM = 8
MAP_TILES = "OpenStreetMap"

POLYLINE_COLOR = "blue"
POLYLINE_WEIGHT = 4
POLYLINE_OPACITY = 0.8

MARKER_COLOR = "#ff4444"

# Default output for the CLI map rendering.
MAP_OUTPUT_FILE = os.getenv("GPX_POI_MAP_OUTPUT", "gpx_map.html")

# Open the rendered map in a browser after `load` when True.
MAP_OPEN_BROWSER = _env_bool("GPX_POI_OPEN_BROWSER", False)


# ---------------------------------------------------------------------------
# Status messages
# ---------------------------------------------------------------------------
# Display durations (milliseconds) handed to the UI collaborator.
STATUS_SHORT_MS = 2000
STATUS_ERROR_MS = 3000
STATUS_LONG_MS = 5000
