#!/usr/bin/env python3
"""Convenience runner for the GPX point-of-interest viewer.

Usage:
    python run.py load route.gpx --catalog fk.json
"""
from gpx_poi.main import main

if __name__ == "__main__":
    raise SystemExit(main())
