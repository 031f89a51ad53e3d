"""Tests for the in-memory raster archive."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import numpy as np
import pytest

from landchange.archive.memory import InMemoryArchive
from landchange.grid import Grid
from landchange.period import Period
from landchange.raster import Raster


@pytest.mark.unit
class TestInMemorySearch:
    """Verify catalog search over held rasters."""

    def test_search_by_window(self, make_raster: Callable[..., Raster], grid: Grid) -> None:
        archive = InMemoryArchive("NDVI", [make_raster(0.5, y) for y in (1986, 1990, 2000)])
        entries = archive.search(grid.bounds, Period(1986, 1990).window)
        assert [e.year for e in entries] == [1986, 1990]
        assert entries[0].bands == ("NDVI",)
        assert entries[0].archive == "NDVI"

    def test_search_sorted_by_time(self, make_raster: Callable[..., Raster], grid: Grid) -> None:
        archive = InMemoryArchive("NDVI", [make_raster(0.5, y) for y in (2000, 1986)])
        entries = archive.search(grid.bounds, Period(1980, 2025).window)
        assert [e.year for e in entries] == [1986, 2000]

    def test_search_outside_bounds(self, make_raster: Callable[..., Raster]) -> None:
        archive = InMemoryArchive("NDVI", [make_raster(0.5, 1986)])
        assert archive.search((0.0, 0.0, 1.0, 1.0), Period(1986, 1986).window) == []

    def test_len(self, make_raster: Callable[..., Raster]) -> None:
        assert len(InMemoryArchive("NDVI", [make_raster(0.5, 1986)])) == 1


@pytest.mark.unit
class TestInMemoryRead:
    """Verify reads onto a target grid."""

    def test_same_grid_returns_raster(
        self,
        make_raster: Callable[..., Raster],
        grid: Grid,
    ) -> None:
        raster = make_raster(0.5, 1986)
        archive = InMemoryArchive("NDVI", [raster])
        (entry,) = archive.search(grid.bounds, Period(1986, 1986).window)
        assert archive.read(entry, grid) is raster

    def test_band_selection(self, grid: Grid) -> None:
        data = np.stack([np.full(grid.shape, 0.1), np.full(grid.shape, 0.2)])
        raster = Raster(data, ("nir", "red"), datetime(1986, 1, 1, tzinfo=timezone.utc), grid)
        archive = InMemoryArchive("SR", [raster])
        (entry,) = archive.search(grid.bounds, Period(1986, 1986).window)
        read = archive.read(entry, grid, bands=["red"])
        assert read.bands == ("red",)
        np.testing.assert_allclose(read.data, 0.2)

    def test_resamples_onto_other_grid(self, grid: Grid) -> None:
        fine = Grid.for_bounds(grid.bounds, resolution=0.005)
        raster = Raster.constant(0.5, "NDVI", datetime(1986, 1, 1), fine)
        archive = InMemoryArchive("NDVI", [raster], resampling="average")
        (entry,) = archive.search(grid.bounds, Period(1986, 1986).window)
        read = archive.read(entry, grid)
        assert read.grid == grid
        assert read.data.shape == (1, *grid.shape)
        np.testing.assert_allclose(read.data, 0.5)
        assert read.timestamp == raster.timestamp
