"""Tests for loading the point-of-interest catalog."""

from __future__ import annotations

import json

import pytest
import requests

from gpx_poi import catalog as catalog_mod
from gpx_poi.catalog import (
    clear_catalog_cache,
    filter_point_records,
    load_catalog,
    points_from_payload,
)
from gpx_poi.errors import CatalogError

PAYLOAD = {
    "result": [
        {"name": "Fort 1", "geom_type": "Point", "geom_point": [155000, 463000]},
        {"name": "Area 2", "geom_type": "Polygon", "geom_point": None},
        {"name": "Loose 3", "geom_point": [4.9, 52.0]},
        "not a record",
    ]
}


class DummyResponse:
    def __init__(self, payload, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_catalog_cache()
    yield
    clear_catalog_cache()


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "fk.json"
    path.write_text(json.dumps(PAYLOAD), encoding="utf-8")
    return path


def test_only_point_records_are_kept() -> None:
    points = points_from_payload(PAYLOAD)
    assert [p.name for p in points] == ["Fort 1", "Loose 3"]
    assert points[0].properties["geom_type"] == "Point"


def test_filter_point_records_skips_non_dicts() -> None:
    assert filter_point_records([1, None, {"geom_type": "Point"}])[0].geom_point is None


@pytest.mark.parametrize("payload", [[], {}, {"result": {}}, None])
def test_payload_without_result_list(payload) -> None:
    with pytest.raises(CatalogError):
        points_from_payload(payload)


def test_load_from_file_is_cached(catalog_file) -> None:
    first = load_catalog(str(catalog_file))
    catalog_file.write_text(json.dumps({"result": []}), encoding="utf-8")

    assert [p.name for p in load_catalog(str(catalog_file))] == ["Fort 1", "Loose 3"]
    assert load_catalog(str(catalog_file), use_cache=False) == []
    assert len(first) == 2


def test_returned_list_is_a_copy(catalog_file) -> None:
    first = load_catalog(catalog_file)
    first.clear()
    assert len(load_catalog(catalog_file)) == 2


def test_load_from_url(monkeypatch) -> None:
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return DummyResponse(PAYLOAD)

    monkeypatch.setattr(catalog_mod.requests, "get", fake_get)

    url = "https://example.org/fk.json"
    assert len(load_catalog(url)) == 2
    assert len(load_catalog(url)) == 2
    assert calls == [(url, catalog_mod.CATALOG_REQUEST_TIMEOUT)]


def test_http_error_becomes_catalog_error(monkeypatch) -> None:
    monkeypatch.setattr(
        catalog_mod.requests, "get", lambda url, timeout: DummyResponse({}, 503)
    )
    with pytest.raises(CatalogError, match="503"):
        load_catalog("http://example.org/fk.json")


def test_connection_error_becomes_catalog_error(monkeypatch) -> None:
    def boom(url, timeout):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(catalog_mod.requests, "get", boom)
    with pytest.raises(CatalogError):
        load_catalog("http://example.org/fk.json")


def test_missing_or_invalid_file(tmp_path) -> None:
    with pytest.raises(CatalogError):
        load_catalog(tmp_path / "missing.json")
    bad = tmp_path / "bad.json"
    bad.write_text("{nope", encoding="utf-8")
    with pytest.raises(CatalogError):
        load_catalog(bad)
