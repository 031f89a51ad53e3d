"""Tests for the GeoTIFF directory archive."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import numpy as np
import pytest
import rasterio

from landchange.archive.geotiff import GeoTiffArchive, _parse_timestamp
from landchange.exceptions import ArchiveError, SchemaMismatchError
from landchange.grid import Grid
from landchange.period import Period
from landchange.raster import Raster


@pytest.fixture
def ndvi_dir(tmp_path: Path, make_raster: Callable[..., Raster]) -> Path:
    """Write annual NDVI GeoTIFFs for 1986-1990 with TIME_START tags."""
    root = tmp_path / "ndvi"
    root.mkdir()
    for i, year in enumerate(range(1986, 1991)):
        make_raster(0.5 + 0.25 * i, year).to_geotiff(root / f"ndvi_composite_{i}.tif")
    return root


def _write_untagged(path: Path, grid: Grid, value: float = 0.5) -> None:
    """Write a single-band GeoTIFF without band description or time tag."""
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=grid.height,
        width=grid.width,
        count=1,
        dtype="float32",
        crs=grid.crs,
        transform=grid.transform,
    ) as dst:
        dst.write(np.full((1, *grid.shape), value, dtype="float32"))


@pytest.mark.unit
class TestParseTimestamp:
    """Verify acquisition time resolution."""

    def test_tag_wins_over_file_name(self) -> None:
        ts = _parse_timestamp(Path("ndvi_2001.tif"), {"TIME_START": "1999-01-01T00:00:00+00:00"})
        assert ts is not None
        assert ts.year == 1999

    def test_year_from_file_name(self) -> None:
        ts = _parse_timestamp(Path("LANDSAT_NDVI_2003.tif"), {})
        assert ts is not None
        assert (ts.year, ts.month, ts.day) == (2003, 1, 1)

    def test_longer_numbers_are_not_years(self) -> None:
        assert _parse_timestamp(Path("tile_120034.tif"), {}) is None

    def test_malformed_tag_falls_back_to_name(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="landchange.archive.geotiff"):
            ts = _parse_timestamp(Path("ndvi_1995.tif"), {"TIME_START": "not a date"})
        assert ts is not None
        assert ts.year == 1995
        assert "malformed" in caplog.text


@pytest.mark.integration
class TestGeoTiffArchive:
    """Verify catalog scans and reads of real files."""

    def test_search_by_period(self, ndvi_dir: Path, grid: Grid) -> None:
        archive = GeoTiffArchive("NDVI", ndvi_dir)
        entries = archive.search(grid.bounds, Period(1987, 1988).window)
        assert [e.year for e in entries] == [1987, 1988]
        assert entries[0].bands == ("NDVI",)

    def test_read(self, ndvi_dir: Path, grid: Grid) -> None:
        archive = GeoTiffArchive("NDVI", ndvi_dir, resampling="nearest")
        (entry,) = archive.search(grid.bounds, Period(1988, 1988).window)
        raster = archive.read(entry, grid)
        assert raster.bands == ("NDVI",)
        assert raster.year == 1988
        np.testing.assert_allclose(raster.data, 1.0)

    def test_band_override_for_undescribed_files(self, tmp_path: Path, grid: Grid) -> None:
        _write_untagged(tmp_path / "ndwi_2001.tif", grid)
        archive = GeoTiffArchive("NDWI", tmp_path, bands=["NDWI"], resampling="nearest")
        (entry,) = archive.search(grid.bounds, Period(2001, 2001).window)
        assert entry.bands == ("NDWI",)
        np.testing.assert_allclose(archive.read(entry, grid).band("NDWI"), 0.5)

    def test_default_band_names(self, tmp_path: Path, grid: Grid) -> None:
        _write_untagged(tmp_path / "sr_2001.tif", grid)
        (entry,) = GeoTiffArchive("SR", tmp_path).search(grid.bounds, Period(2001, 2001).window)
        assert entry.bands == ("B1",)

    def test_files_without_year_are_skipped(
        self,
        tmp_path: Path,
        grid: Grid,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        _write_untagged(tmp_path / "mosaic.tif", grid)
        (tmp_path / "notes.txt").write_text("ignored")
        archive = GeoTiffArchive("NDVI", tmp_path)
        with caplog.at_level(logging.WARNING, logger="landchange.archive.geotiff"):
            assert archive.search(grid.bounds, Period(1900, 2099).window) == []
        assert "mosaic.tif" in caplog.text

    def test_missing_band_raises(self, ndvi_dir: Path, grid: Grid) -> None:
        archive = GeoTiffArchive("NDVI", ndvi_dir)
        (entry,) = archive.search(grid.bounds, Period(1986, 1986).window)
        with pytest.raises(SchemaMismatchError, match="'NBR'"):
            archive.read(entry, grid, bands=["NBR"])

    def test_missing_directory(self, tmp_path: Path, grid: Grid) -> None:
        archive = GeoTiffArchive("NDVI", tmp_path / "absent")
        assert not archive.check_status().available
        with pytest.raises(ArchiveError, match="Cannot open archive"):
            archive.search(grid.bounds, Period(1986, 1990).window)

    def test_unreadable_file(self, tmp_path: Path, grid: Grid) -> None:
        (tmp_path / "broken_1990.tif").write_bytes(b"not a tiff")
        archive = GeoTiffArchive("NDVI", tmp_path)
        with pytest.raises(ArchiveError, match="GeoTIFF header"):
            archive.search(grid.bounds, Period(1986, 1990).window)

    def test_catalog_scanned_once(self, ndvi_dir: Path, grid: Grid) -> None:
        archive = GeoTiffArchive("NDVI", ndvi_dir)
        archive.search(grid.bounds, Period(1986, 1990).window)
        for path in ndvi_dir.iterdir():
            path.unlink()
        assert len(archive.search(grid.bounds, Period(1986, 1990).window)) == 5
