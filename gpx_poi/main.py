"""Command line entry point for the GPX point-of-interest viewer."""

from __future__ import annotations

import argparse
import asyncio
import logging
import webbrowser
from pathlib import Path
from typing import List, Optional, Sequence

from .catalog import load_catalog
from .config import (
    CATALOG_SOURCE,
    MAP_OPEN_BROWSER,
    MAP_OUTPUT_FILE,
    PROXIMITY_MAX_DISTANCE_M,
    PROXIMITY_MIN_SEPARATION_M,
    STORAGE_DIR,
    STORAGE_RETENTION_DAYS,
)
from .errors import CatalogError, GpxPoiError, StorageError
from .gpx.parser import GpxParser
from .models import CatalogPoint
from .processor import GpxProcessor, LoadOutcome, LoadState
from .rendering import FoliumMapRenderer
from .storage import StorageManager
from .ui import LoggingStatusReporter


def _setup_logging(level: str = "INFO") -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=getattr(logging, level),
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Show catalog points of interest near a GPX track"
    )
    parser.add_argument(
        "--storage-dir",
        type=Path,
        default=Path(STORAGE_DIR),
        help=f"Directory for stored GPX files (default: {STORAGE_DIR})",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def _add_render_options(cmd: argparse.ArgumentParser) -> None:
        cmd.add_argument(
            "--catalog",
            default=CATALOG_SOURCE,
            help=f"Catalog JSON path or URL (default: {CATALOG_SOURCE})",
        )
        cmd.add_argument("--output", type=Path, default=Path(MAP_OUTPUT_FILE))
        cmd.add_argument(
            "--max-distance",
            type=float,
            default=PROXIMITY_MAX_DISTANCE_M,
            help="Maximum distance (metres) from the track",
        )
        cmd.add_argument(
            "--min-separation",
            type=float,
            default=PROXIMITY_MIN_SEPARATION_M,
            help="Minimum distance (metres) between reported points",
        )
        cmd.add_argument("--open", action="store_true", default=MAP_OPEN_BROWSER)

    load = sub.add_parser("load", help="Load a GPX file and render the map")
    load.add_argument("gpx", type=Path)
    _add_render_options(load)

    reload_cmd = sub.add_parser("reload", help="Render a previously stored GPX file")
    reload_cmd.add_argument("filename", nargs="?")
    _add_render_options(reload_cmd)

    inspect = sub.add_parser("inspect", help="Parse a GPX file and report its contents")
    inspect.add_argument("gpx", type=Path)

    sub.add_parser("list", help="List stored GPX files")
    delete = sub.add_parser("delete", help="Delete a stored GPX file")
    delete.add_argument("filename")
    clear = sub.add_parser("clear", help="Forget the current GPX file and its cached points")
    clear.add_argument(
        "--all",
        action="store_true",
        dest="clear_all",
        help="Delete every stored GPX file and cached result",
    )
    backup = sub.add_parser("backup", help="Export stored GPX data to a JSON file")
    backup.add_argument("path", type=Path)
    restore = sub.add_parser("restore", help="Import a JSON backup")
    restore.add_argument("path", type=Path)
    return parser


def _load_catalog_or_none(source: str) -> Optional[List[CatalogPoint]]:
    try:
        return load_catalog(source)
    except CatalogError as exc:
        logging.error("Error loading catalog: %s", exc)
        return None


def _render(
    args: argparse.Namespace,
    storage: StorageManager,
    gpx_text: str,
    filename: str,
) -> int:
    catalog = _load_catalog_or_none(args.catalog)
    renderer = FoliumMapRenderer()
    ui = LoggingStatusReporter()
    processor = GpxProcessor(
        renderer,
        storage,
        ui,
        max_distance=args.max_distance,
        min_separation=args.min_separation,
    )
    outcome: LoadOutcome = asyncio.run(
        processor.process_gpx_content(gpx_text, filename, catalog)
    )
    if outcome.state is not LoadState.DONE:
        return 1
    output = renderer.save(args.output)
    logging.info(
        "Rendered %d track points, %d waypoints, %d nearby points%s",
        len(outcome.track_points),
        len(outcome.waypoints),
        len(outcome.proximity),
        " (cached)" if outcome.from_cache else "",
    )
    if args.open:
        webbrowser.open(output.resolve().as_uri())
    return 0


def _cmd_load(args: argparse.Namespace, storage: StorageManager) -> int:
    try:
        gpx_text = args.gpx.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logging.error("Failed to read GPX file '%s': %s", args.gpx, exc)
        return 1
    logging.info("Loading GPX file...")
    storage.save_gpx(gpx_text, args.gpx.name)
    return _render(args, storage, gpx_text, args.gpx.name)


def _cmd_reload(args: argparse.Namespace, storage: StorageManager) -> int:
    if args.filename:
        record = storage.load_gpx_by_filename(args.filename)
    else:
        record = storage.load_gpx()
    if record is None:
        logging.error("Error: Could not load %s", args.filename or "last GPX file")
        return 1
    storage.set_current_gpx_filename(record["filename"])
    logging.info("Loading %s...", record["filename"])
    return _render(args, storage, record["content"], record["filename"])


def _cmd_inspect(args: argparse.Namespace) -> int:
    parser = GpxParser()
    try:
        gpx_text = args.gpx.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logging.error("Failed to read GPX file '%s': %s", args.gpx, exc)
        return 1
    try:
        result = parser.parse_strict(gpx_text)
    except GpxPoiError as exc:
        logging.error("%s: %s", args.gpx, exc)
        return 1
    fallback = parser.requires_fallback(gpx_text, result.track_points, result.waypoints)
    print(f"track points: {len(result.track_points)}")
    print(f"waypoints:    {len(result.waypoints)}")
    print(f"fallback:     {'yes' if fallback else 'no'}")
    return 0


def _cmd_list(storage: StorageManager) -> int:
    current = storage.get_current_gpx_filename()
    for item in storage.get_all_stored_gpx_files():
        marker = "*" if item["filename"] == current else " "
        print(f"{marker} {item['displayName']:<30} {item['filename']}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point used via ``python -m gpx_poi.main`` or ``run.py``."""

    args = _build_parser().parse_args(argv)
    _setup_logging(args.log_level)

    if args.command == "inspect":
        return _cmd_inspect(args)

    storage = StorageManager(args.storage_dir)
    storage.cleanup(STORAGE_RETENTION_DAYS)
    try:
        if args.command == "load":
            return _cmd_load(args, storage)
        if args.command == "reload":
            return _cmd_reload(args, storage)
        if args.command == "list":
            return _cmd_list(storage)
        if args.command == "delete":
            if not storage.delete_gpx_file(args.filename):
                logging.error("Error: Could not delete %s", args.filename)
                return 1
            logging.info("Deleted %s", args.filename)
            return 0
        if args.command == "clear":
            if args.clear_all:
                storage.clear_all_data()
                logging.info("All stored GPX data cleared")
            else:
                storage.clear_gpx()
                logging.info("GPX and waypoints cleared")
            return 0
        if args.command == "backup":
            storage.create_backup(args.path)
            return 0
        if args.command == "restore":
            storage.restore_backup(args.path)
            return 0
    except StorageError as exc:
        logging.error("%s", exc)
        return 1
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
