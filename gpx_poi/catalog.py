"""Load the point-of-interest catalog from a local file or an HTTP endpoint.

The catalog is a JSON object whose ``result`` array holds raw records. Only
records with a point geometry are kept; they are loaded once per session
and treated as immutable afterwards.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any, Iterable, List, Union

import requests
from cachetools import TTLCache

from .config import (
    CATALOG_CACHE_SIZE,
    CATALOG_CACHE_TTL_SECONDS,
    CATALOG_REQUEST_TIMEOUT,
)
from .errors import CatalogError
from .models import CatalogPoint

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Module-level TTL+LRU cache so repeated loads in one session reuse the catalog.
_catalog_cache: TTLCache[str, List[CatalogPoint]] = TTLCache(
    maxsize=max(1, CATALOG_CACHE_SIZE), ttl=max(1, CATALOG_CACHE_TTL_SECONDS)
)
_catalog_cache_lock = RLock()


def _is_url(source: PathLike) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


def _fetch_json(url: str) -> Any:
    LOGGER.debug("GET %s", url)
    response = requests.get(url, timeout=CATALOG_REQUEST_TIMEOUT)
    response.raise_for_status()
    return response.json()


def _read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def points_from_payload(payload: Any) -> List[CatalogPoint]:
    """Return eligible catalog points from a decoded catalog document.

    Raises:
        CatalogError: If the document has no ``result`` list.
    """

    records = payload.get("result") if isinstance(payload, dict) else None
    if not isinstance(records, list):
        raise CatalogError("Catalog document has no 'result' list")
    return filter_point_records(records)


def filter_point_records(records: Iterable[Any]) -> List[CatalogPoint]:
    points: List[CatalogPoint] = []
    for record in records:
        if not isinstance(record, dict):
            continue
        point = CatalogPoint.from_record(record)
        if point.is_eligible:
            points.append(point)
    return points


def clear_catalog_cache() -> None:
    with _catalog_cache_lock:
        _catalog_cache.clear()


def load_catalog(source: PathLike, *, use_cache: bool = True) -> List[CatalogPoint]:
    """Load catalog points from ``source`` (path or http(s) URL).

    Raises:
        CatalogError: If the source cannot be read or decoded.
    """

    cache_key = str(source)
    if use_cache:
        with _catalog_cache_lock:
            cached = _catalog_cache.get(cache_key)
        if cached is not None:
            return list(cached)

    try:
        if _is_url(source):
            payload = _fetch_json(str(source))
        else:
            payload = _read_json(Path(source))
    except (OSError, ValueError, requests.RequestException) as exc:
        raise CatalogError(f"Unable to load catalog from {source}: {exc}") from exc
    points = points_from_payload(payload)
    LOGGER.info("Loaded %d catalog points from %s", len(points), source)
    if use_cache:
        with _catalog_cache_lock:
            _catalog_cache[cache_key] = points
    return list(points)


__all__ = [
    "clear_catalog_cache",
    "filter_point_records",
    "load_catalog",
    "points_from_payload",
]
