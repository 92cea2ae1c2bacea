"""Persistent storage for GPX files and cached proximity results.

Records are JSON documents on disk, one file per key. A key is either a
stored GPX file (``gpx_<filename>``), its cached proximity result
(``gpx_<filename>_wp``) or the reference to the most recently loaded file
(``last_gpx``). File names are derived from a sha256 of the key so any GPX
file name can be stored safely.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import threading
import time
from datetime import datetime, timedelta, timezone
from hashlib import sha256
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .config import (
    BACKUP_VERSION,
    STORAGE_DIR,
    STORAGE_GPX_PREFIX,
    STORAGE_LAST_GPX_KEY,
    STORAGE_WAYPOINT_SUFFIX,
)
from .errors import StorageError
from .models import ConvertedPoint

_LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]

_NON_ALPHA_RE = re.compile(r"[^a-zA-Z\s-]")
_SEPARATOR_RE = re.compile(r"[\s-]+")


def display_name(filename: str) -> str:
    """Return a human-friendly name for a stored GPX file."""

    clean = filename.replace(".gpx", "", 1)
    clean = _NON_ALPHA_RE.sub("", clean)
    clean = _SEPARATOR_RE.sub(" ", clean).strip()
    if not clean:
        return "GPX File"
    return clean[0].upper() + clean[1:]


def gpx_key(filename: str) -> str:
    return f"{STORAGE_GPX_PREFIX}{filename}"


def waypoint_key(filename: str) -> str:
    return f"{STORAGE_GPX_PREFIX}{filename}{STORAGE_WAYPOINT_SUFFIX}"


class StorageManager:
    """Disk-backed key/value store for GPX data."""

    def __init__(self, base_dir: Optional[PathLike] = None) -> None:
        base = Path(base_dir if base_dir is not None else STORAGE_DIR)
        self._base_dir = base if base.is_absolute() else Path.cwd() / base
        self._lock = threading.Lock()
        self._base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    # ------------------------------------------------------------------
    # Low-level record access
    # ------------------------------------------------------------------
    def _file_path(self, key: str) -> Path:
        digest = sha256(key.encode("utf-8")).hexdigest()
        return self._base_dir / f"{digest}.json"

    def _read(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._file_path(key)
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.error("Failed reading storage file %s: %s", path, exc)
            return None

    def _write(self, key: str, payload: Dict[str, Any]) -> None:
        path = self._file_path(key)
        record = dict(payload, key=key)
        temp_path = path.with_suffix(".tmp")
        with self._lock:
            try:
                with temp_path.open("w", encoding="utf-8") as handle:
                    json.dump(record, handle, ensure_ascii=True, indent=2)
                temp_path.replace(path)
            except OSError as exc:
                raise StorageError(f"Unable to write {key}: {exc}") from exc

    def _remove(self, key: str) -> bool:
        try:
            self._file_path(key).unlink()
        except FileNotFoundError:
            return False
        return True

    def _iter_records(self) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        for path in sorted(self._base_dir.glob("*.json")):
            try:
                with path.open("r", encoding="utf-8") as handle:
                    record = json.load(handle)
            except (OSError, json.JSONDecodeError) as exc:
                _LOGGER.warning("Skipping unreadable storage file %s: %s", path, exc)
                continue
            if isinstance(record, dict) and isinstance(record.get("key"), str):
                records.append(record)
        return records

    # ------------------------------------------------------------------
    # GPX files
    # ------------------------------------------------------------------
    def save_gpx(self, content: str, filename: str) -> None:
        """Store GPX text and mark it as the most recently loaded file."""

        self._write(
            gpx_key(filename),
            {
                "kind": "gpx",
                "content": content,
                "filename": filename,
                "timestamp": time.time(),
            },
        )
        self._write(STORAGE_LAST_GPX_KEY, {"kind": "meta", "value": filename})
        _LOGGER.info("GPX saved with key: %s", gpx_key(filename))

    def get_current_gpx_filename(self) -> Optional[str]:
        record = self._read(STORAGE_LAST_GPX_KEY)
        return record.get("value") if record else None

    def load_gpx(self) -> Optional[Dict[str, Any]]:
        """Return the most recently loaded GPX record, if any."""

        filename = self.get_current_gpx_filename()
        if not filename:
            return None
        return self.load_gpx_by_filename(filename)

    def load_gpx_by_filename(self, filename: str) -> Optional[Dict[str, Any]]:
        record = self._read(gpx_key(filename))
        if record is None or record.get("kind") != "gpx":
            return None
        return record

    def set_current_gpx_filename(self, filename: str) -> None:
        self._write(STORAGE_LAST_GPX_KEY, {"kind": "meta", "value": filename})

    def get_all_stored_gpx_files(self) -> List[Dict[str, Any]]:
        """List stored GPX files, newest first."""

        files = [
            {
                "filename": record["filename"],
                "timestamp": record.get("timestamp") or 0,
                "displayName": display_name(record["filename"]),
            }
            for record in self._iter_records()
            if record.get("kind") == "gpx" and record.get("filename")
        ]
        files.sort(key=lambda item: item["timestamp"], reverse=True)
        return files

    def delete_gpx_file(self, filename: str) -> bool:
        """Remove a stored GPX file together with its cached proximity result."""

        removed = self._remove(gpx_key(filename))
        self._remove(waypoint_key(filename))
        if self.get_current_gpx_filename() == filename:
            self._remove(STORAGE_LAST_GPX_KEY)
        _LOGGER.info("Deleted GPX file: %s", filename)
        return removed

    def clear_gpx(self) -> Optional[str]:
        """Forget the current GPX file and its cached proximity result."""

        current = self.get_current_gpx_filename()
        self._remove(STORAGE_LAST_GPX_KEY)
        if current:
            self._remove(waypoint_key(current))
            _LOGGER.info("Cleared cached waypoints for %s", current)
        return current

    def clear_all_data(self) -> int:
        """Delete every stored GPX file, cached result and the last reference."""

        removed = 0
        for record in self._iter_records():
            key = record["key"]
            if key == STORAGE_LAST_GPX_KEY or key.startswith(STORAGE_GPX_PREFIX):
                removed += int(self._remove(key))
        _LOGGER.info("Cleared all stored GPX data (%d records)", removed)
        return removed

    def cleanup(self, max_age_days: int) -> int:
        """Delete stored GPX files older than ``max_age_days``; 0 disables."""

        if max_age_days <= 0:
            return 0
        cutoff = datetime.now(timezone.utc) - timedelta(days=max_age_days)
        deleted = 0
        for record in self._iter_records():
            if record.get("kind") != "gpx":
                continue
            stamp = datetime.fromtimestamp(
                float(record.get("timestamp") or 0), tz=timezone.utc
            )
            if stamp < cutoff and self.delete_gpx_file(record["filename"]):
                deleted += 1
        _LOGGER.info("Storage cleanup deleted=%s cutoff=%s", deleted, cutoff)
        return deleted

    # ------------------------------------------------------------------
    # Proximity results
    # ------------------------------------------------------------------
    def save_proximity_result(
        self, filename: str, points: Sequence[ConvertedPoint]
    ) -> None:
        self._write(
            waypoint_key(filename),
            {
                "kind": "waypoints",
                "waypoints": [point.to_record() for point in points],
                "filename": filename,
                "timestamp": time.time(),
            },
        )
        _LOGGER.info("Waypoints saved with key: %s", waypoint_key(filename))

    def load_cached_proximity_result(
        self, filename: str
    ) -> Optional[List[ConvertedPoint]]:
        record = self._read(waypoint_key(filename))
        if record is None or record.get("kind") != "waypoints":
            return None
        try:
            points = [ConvertedPoint.from_record(raw) for raw in record["waypoints"]]
        except (KeyError, TypeError, ValueError) as exc:
            _LOGGER.warning("Discarding corrupt cached waypoints for %s: %s", filename, exc)
            return None
        _LOGGER.info("Loaded %d cached waypoints for %s", len(points), filename)
        return points

    async def aload_cached_proximity_result(
        self, filename: str
    ) -> Optional[List[ConvertedPoint]]:
        return await asyncio.to_thread(self.load_cached_proximity_result, filename)

    async def asave_proximity_result(
        self, filename: str, points: Sequence[ConvertedPoint]
    ) -> None:
        await asyncio.to_thread(self.save_proximity_result, filename, list(points))

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------
    def create_backup(self, path: PathLike) -> Path:
        """Export every stored record into one JSON document."""

        gpx_files: Dict[str, Any] = {}
        waypoints: Dict[str, Any] = {}
        for record in self._iter_records():
            if record.get("kind") == "gpx":
                gpx_files[record["key"]] = record
            elif record.get("kind") == "waypoints":
                waypoints[record["key"]] = record
        backup = {
            "version": BACKUP_VERSION,
            "timestamp": time.time(),
            "exportedAt": datetime.now(timezone.utc).isoformat(),
            "data": {
                "lastGpx": self.get_current_gpx_filename(),
                "gpxFiles": gpx_files,
                "waypoints": waypoints,
            },
        }
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as handle:
            json.dump(backup, handle, ensure_ascii=True, indent=2)
        _LOGGER.info(
            "Backup written to %s (gpx=%d waypoints=%d)",
            output_path,
            len(gpx_files),
            len(waypoints),
        )
        return output_path

    def restore_backup(self, path: PathLike) -> int:
        """Import records from :meth:`create_backup` output.

        Raises:
            StorageError: If the file cannot be read, has another version or
                holds entries that are not objects. Nothing is changed then.
        """

        try:
            with Path(path).open("r", encoding="utf-8") as handle:
                backup = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Unable to read backup {path}: {exc}") from exc
        if not isinstance(backup, dict) or backup.get("version") != BACKUP_VERSION:
            raise StorageError("Backup version mismatch")
        data = backup.get("data") or {}
        if not isinstance(data, dict):
            raise StorageError("Backup has no data section")
        records: List[tuple[str, Dict[str, Any]]] = []
        for section in ("gpxFiles", "waypoints"):
            entries = data.get(section) or {}
            if not isinstance(entries, dict):
                raise StorageError(f"Backup section {section!r} is not an object")
            for key, record in entries.items():
                if not isinstance(record, dict):
                    raise StorageError(f"Backup entry {key!r} is not an object")
                records.append((key, {k: v for k, v in record.items() if k != "key"}))

        # A restore replaces whatever is stored.
        self.clear_all_data()
        restored = 0
        for key, payload in records:
            self._write(key, payload)
            restored += 1
        if data.get("lastGpx"):
            self.set_current_gpx_filename(data["lastGpx"])
        _LOGGER.info("Restored %d records from %s", restored, path)
        return restored


__all__ = ["StorageManager", "display_name", "gpx_key", "waypoint_key"]
