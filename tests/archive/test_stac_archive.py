"""Tests for the STAC API archive."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import requests

from landchange.archive.base import ArchiveEntry
from landchange.archive.stac import (
    _MAX_BACKOFF,
    _MAX_RETRIES,
    StacArchive,
    _geometry_bounds,
)
from landchange.exceptions import ArchiveError, SchemaMismatchError
from landchange.grid import Grid
from landchange.period import Period
from landchange.raster import Raster

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_URL = "https://example.com/stac/v1"


@pytest.fixture
def archive() -> StacArchive:
    """Create a StacArchive with a mocked session."""
    return StacArchive(
        "NDVI",
        url=_URL,
        collection="annual-ndvi",
        band_assets={"NDVI": "ndvi"},
        session=MagicMock(spec=requests.Session),
    )


def _item(year: int, href: str = "https://example.com/ndvi.tif", **extra: Any) -> dict[str, Any]:
    item: dict[str, Any] = {
        "id": f"ndvi-{year}",
        "collection": "annual-ndvi",
        "bbox": [97.0, 25.0, 98.0, 26.0],
        "properties": {"datetime": f"{year}-01-01T00:00:00Z"},
        "assets": {"ndvi": {"href": href}},
    }
    item.update(extra)
    return item


def _response(status: int = 200, body: Any = None) -> MagicMock:
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status
    resp.json.return_value = body if body is not None else {}
    return resp


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestStacSearch:
    """Verify STAC item search."""

    def test_search_posts_query(self, archive: StacArchive, grid: Grid) -> None:
        archive._session.request.return_value = _response(
            body={"features": [_item(1986), _item(1987)], "links": []}
        )
        entries = archive.search(grid.bounds, Period(1986, 1990).window)

        assert [e.year for e in entries] == [1986, 1987]
        method, url = archive._session.request.call_args.args
        body = archive._session.request.call_args.kwargs["json"]
        assert (method, url) == ("post", f"{_URL}/search")
        assert body["collections"] == ["annual-ndvi"]
        assert body["datetime"] == "1986-01-01T00:00:00Z/1990-12-31T23:59:59Z"

    def test_entries_carry_assets(self, archive: StacArchive, grid: Grid) -> None:
        archive._session.request.return_value = _response(body={"features": [_item(1986)]})
        (entry,) = archive.search(grid.bounds, Period(1986, 1986).window)
        assert entry.bands == ("NDVI",)
        assert entry.assets == {"NDVI": "https://example.com/ndvi.tif"}
        assert entry.entry_id == "ndvi-1986"

    def test_items_outside_window_dropped(self, archive: StacArchive, grid: Grid) -> None:
        archive._session.request.return_value = _response(
            body={"features": [_item(1985), _item(1986), _item(1991)]}
        )
        entries = archive.search(grid.bounds, Period(1986, 1990).window)
        assert [e.year for e in entries] == [1986]

    def test_follows_next_links(self, archive: StacArchive, grid: Grid) -> None:
        first = _response(
            body={
                "features": [_item(1986)],
                "links": [{"rel": "next", "href": f"{_URL}/search?page=2", "method": "GET"}],
            }
        )
        second = _response(body={"features": [_item(1987)], "links": []})
        archive._session.request.side_effect = [first, second]

        entries = archive.search(grid.bounds, Period(1986, 1990).window)

        assert [e.year for e in entries] == [1986, 1987]
        assert archive._session.request.call_args.args == ("get", f"{_URL}/search?page=2")

    def test_empty_search(self, archive: StacArchive, grid: Grid) -> None:
        archive._session.request.return_value = _response(body={"features": []})
        assert archive.search(grid.bounds, Period(1986, 1990).window) == []

    def test_invalid_json(self, archive: StacArchive, grid: Grid) -> None:
        resp = _response()
        resp.json.side_effect = ValueError("Expecting value")
        archive._session.request.return_value = resp
        with pytest.raises(ArchiveError, match="invalid JSON"):
            archive.search(grid.bounds, Period(1986, 1990).window)

    def test_client_error_not_retried(self, archive: StacArchive, grid: Grid) -> None:
        archive._session.request.return_value = _response(status=404)
        with pytest.raises(ArchiveError, match="HTTP 404"):
            archive.search(grid.bounds, Period(1986, 1990).window)
        assert archive._session.request.call_count == 1


@pytest.mark.unit
class TestParseStacItem:
    """Verify conversion of STAC items into archive entries."""

    def test_start_datetime_fallback(self, archive: StacArchive) -> None:
        item = _item(1986)
        item["properties"] = {"datetime": None, "start_datetime": "1986-01-01T00:00:00Z"}
        entry = archive._parse_item(item)
        assert entry is not None
        assert entry.year == 1986

    def test_missing_datetime_skipped(self, archive: StacArchive) -> None:
        assert archive._parse_item(_item(1986, properties={})) is None

    def test_geometry_used_without_bbox(self, archive: StacArchive) -> None:
        item = _item(1986)
        del item["bbox"]
        item["geometry"] = {
            "type": "Polygon",
            "coordinates": [[[97.0, 25.0], [97.0, 26.0], [98.0, 26.0], [97.0, 25.0]]],
        }
        entry = archive._parse_item(item)
        assert entry is not None
        assert entry.bounds == (97.0, 25.0, 98.0, 26.0)

    def test_unmapped_assets_skipped(self, archive: StacArchive) -> None:
        assert archive._parse_item(_item(1986, assets={"nbr": {"href": "x.tif"}})) is None

    def test_geometry_bounds_empty(self) -> None:
        assert _geometry_bounds({}) is None


# ---------------------------------------------------------------------------
# Retry logic
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestStacRetryLogic:
    """Test retry and backoff logic."""

    def test_compute_backoff_increases_exponentially(self, archive: StacArchive) -> None:
        assert archive._compute_backoff(0) < 2.0
        assert archive._compute_backoff(1) < 3.0
        assert archive._compute_backoff(2) < 5.0

    def test_compute_backoff_respects_max(self, archive: StacArchive) -> None:
        assert archive._compute_backoff(100) <= _MAX_BACKOFF * 1.1

    def test_exhausts_retries(self, archive: StacArchive) -> None:
        archive._session.request.return_value = _response(status=503)
        with patch("time.sleep"), pytest.raises(ArchiveError) as exc_info:
            archive._retry_request("get", _URL)
        assert "after retries" in str(exc_info.value)
        assert archive._session.request.call_count == _MAX_RETRIES

    def test_no_sleep_after_last_attempt(self, archive: StacArchive) -> None:
        archive._session.request.return_value = _response(status=503)
        with patch("time.sleep") as sleep, pytest.raises(ArchiveError):
            archive._retry_request("get", _URL)
        assert sleep.call_count == _MAX_RETRIES - 1

    def test_succeeds_after_transient_failure(self, archive: StacArchive) -> None:
        archive._session.request.side_effect = [_response(status=500), _response(status=200)]
        with patch("time.sleep"):
            resp = archive._retry_request("get", _URL)
        assert resp.status_code == 200

    def test_connection_errors_retried(
        self,
        archive: StacArchive,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        archive._session.request.side_effect = requests.ConnectionError("refused")
        with (
            patch("time.sleep"),
            caplog.at_level(logging.WARNING, logger="landchange.archive.stac"),
            pytest.raises(ArchiveError, match="refused"),
        ):
            archive._retry_request("get", _URL)
        assert "retrying" in caplog.text


# ---------------------------------------------------------------------------
# Status and reads
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestStacStatus:
    """Verify check_status never raises."""

    def test_available(self, archive: StacArchive) -> None:
        archive._session.get.return_value = _response(status=200)
        assert archive.check_status().available
        assert archive._session.get.call_args.args == (f"{_URL}/collections/annual-ndvi",)

    def test_http_error(self, archive: StacArchive) -> None:
        archive._session.get.return_value = _response(status=500)
        status = archive.check_status()
        assert not status.available
        assert "500" in status.message

    def test_unreachable(self, archive: StacArchive) -> None:
        archive._session.get.side_effect = requests.ConnectionError("down")
        assert not archive.check_status().available


@pytest.mark.integration
class TestStacRead:
    """Verify asset reads through rasterio."""

    def test_reads_local_asset(
        self,
        archive: StacArchive,
        tmp_path: Path,
        make_raster: Callable[..., Raster],
        grid: Grid,
    ) -> None:
        path = make_raster(0.75, 1986).to_geotiff(tmp_path / "ndvi.tif")
        nearest = StacArchive(
            "NDVI",
            url=_URL,
            collection="annual-ndvi",
            band_assets={"NDVI": "ndvi"},
            session=archive._session,
            resampling="nearest",
        )
        entry = nearest._parse_item(_item(1986, href=str(path)))
        assert entry is not None
        raster = nearest.read(entry, grid)
        assert raster.bands == ("NDVI",)
        np.testing.assert_allclose(raster.data, 0.75)

    def test_unmapped_band(self, archive: StacArchive, grid: Grid) -> None:
        entry = ArchiveEntry("NDVI", "x", Period(1986, 1986).start, (0, 0, 1, 1), ("NDVI",))
        with pytest.raises(SchemaMismatchError, match="'NBR'"):
            archive.read(entry, grid, bands=["NBR"])

    def test_unreadable_asset(self, archive: StacArchive, tmp_path: Path, grid: Grid) -> None:
        entry = archive._parse_item(_item(1986, href=str(tmp_path / "missing.tif")))
        assert entry is not None
        with pytest.raises(ArchiveError, match="Cannot read asset"):
            archive.read(entry, grid)
