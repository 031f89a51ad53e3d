"""Shared test fixtures for the landchange test suite."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timezone

import numpy as np
import pytest

from landchange.aoi import AreaOfInterest, area_of_interest
from landchange.archive import ArchiveCatalog
from landchange.archive.memory import InMemoryArchive
from landchange.collection import RasterCollection
from landchange.grid import Grid
from landchange.period import Period
from landchange.query import query
from landchange.raster import Raster

# 0.01 degree pixels: a 10 x 10 grid over the test AOI.
SCALE = 1113.2
RING = [(97.3, 25.5), (97.3, 25.6), (97.4, 25.6), (97.4, 25.5)]


def utc(year: int, month: int = 1, day: int = 1) -> datetime:
    """Return an aware UTC datetime."""
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture
def scale() -> float:
    """Return the test sampling scale in metres."""
    return SCALE


@pytest.fixture
def aoi() -> AreaOfInterest:
    """Return a 0.1 x 0.1 degree square AOI near Myitsone."""
    return area_of_interest(RING)


@pytest.fixture
def grid(aoi: AreaOfInterest) -> Grid:
    """Return the AOI grid at the test scale."""
    return Grid.for_aoi(aoi, SCALE)


@pytest.fixture
def make_raster(grid: Grid) -> Callable[..., Raster]:
    """Return a factory for annual rasters on the test grid.

    ``value`` is either a scalar or a ``(height, width)`` array.
    """

    def _make(
        value: float | np.ndarray,
        year: int,
        band: str = "NDVI",
    ) -> Raster:
        data = np.broadcast_to(np.asarray(value, dtype=np.float64), grid.shape).copy()
        return Raster(data=data, bands=(band,), timestamp=utc(year), grid=grid)

    return _make


@pytest.fixture
def make_collection(
    aoi: AreaOfInterest,
) -> Callable[..., RasterCollection]:
    """Return a factory querying an in-memory archive over the test AOI."""

    def _make(
        rasters: Sequence[Raster],
        period: Period | None = None,
        name: str = "NDVI",
    ) -> RasterCollection:
        catalog = ArchiveCatalog([InMemoryArchive(name, rasters)])
        return query(catalog, name, aoi, period or Period(1986, 2025), scale=SCALE)

    return _make
