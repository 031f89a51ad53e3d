"""Tests for period aggregation and empty-period fallback."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

import numpy as np
import pytest

from landchange._types import Aggregated, EmptyPeriod
from landchange.analysis.aggregate import (
    aggregate,
    composite,
    first_or_zero,
    nanmean_stack,
    reduce_first,
    reduce_period,
    resolve,
)
from landchange.analysis.change import diff
from landchange.collection import RasterCollection
from landchange.exceptions import SchemaMismatchError
from landchange.grid import Grid
from landchange.period import Period
from landchange.raster import Raster

BASELINE = Period(1986, 1990)


@pytest.fixture
def baseline(
    make_raster: Callable[..., Raster],
    make_collection: Callable[..., RasterCollection],
) -> RasterCollection:
    """Return NDVI 0.50, 0.51, ... 0.54 for 1986-1990."""
    rasters = [make_raster(0.5 + 0.01 * i, 1986 + i) for i in range(5)]
    return make_collection(rasters, BASELINE)


@pytest.mark.unit
class TestNanMeanStack:
    """Verify the NaN-skipping mean kernel."""

    def test_skips_nan(self) -> None:
        stack = np.array([[[1.0, np.nan]], [[3.0, 4.0]]])
        np.testing.assert_allclose(nanmean_stack(stack), [[2.0, 4.0]])

    def test_all_nan_stays_nan(self) -> None:
        stack = np.full((3, 1, 1), np.nan)
        assert np.isnan(nanmean_stack(stack)).all()


@pytest.mark.unit
class TestReducePeriod:
    """Verify the period mean."""

    def test_mean_of_members(self, baseline: RasterCollection) -> None:
        reduced = reduce_period(baseline, "NDVI", BASELINE.start)
        assert isinstance(reduced, Aggregated)
        assert reduced.member_count == 5
        np.testing.assert_allclose(reduced.raster.data, 0.52)

    def test_stamped_with_period_start(self, baseline: RasterCollection) -> None:
        reduced = reduce_period(baseline, "NDVI", BASELINE.start)
        assert isinstance(reduced, Aggregated)
        assert reduced.raster.timestamp == datetime(1986, 1, 1, tzinfo=timezone.utc)
        assert reduced.raster.bands == ("NDVI",)

    def test_empty_period(
        self,
        make_collection: Callable[..., RasterCollection],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.INFO, logger="landchange.analysis.aggregate"):
            reduced = reduce_period(make_collection([], BASELINE), "NDVI", BASELINE.start)
        assert isinstance(reduced, EmptyPeriod)
        assert reduced.is_empty
        assert reduced.band == "NDVI"
        assert reduced.fallback_timestamp == BASELINE.start
        assert "period is empty" in caplog.text

    def test_masked_pixel_skipped(
        self,
        make_raster: Callable[..., Raster],
        make_collection: Callable[..., RasterCollection],
        grid: Grid,
    ) -> None:
        cloudy = np.full(grid.shape, 0.6)
        cloudy[0, 0] = np.nan
        rasters = [make_raster(cloudy, 1986), make_raster(0.8, 1987)]
        reduced = reduce_period(make_collection(rasters, BASELINE), "NDVI", BASELINE.start)
        assert isinstance(reduced, Aggregated)
        assert reduced.raster.data[0, 0, 0] == pytest.approx(0.8)
        assert reduced.raster.data[0, 1, 1] == pytest.approx(0.7)

    def test_pixel_masked_everywhere_stays_masked(
        self,
        make_raster: Callable[..., Raster],
        make_collection: Callable[..., RasterCollection],
        grid: Grid,
    ) -> None:
        cloudy = np.full(grid.shape, 0.6)
        cloudy[2, 3] = np.nan
        rasters = [make_raster(cloudy, 1986), make_raster(cloudy, 1987)]
        reduced = reduce_period(make_collection(rasters, BASELINE), "NDVI", BASELINE.start)
        assert isinstance(reduced, Aggregated)
        assert np.isnan(reduced.raster.data[0, 2, 3])

    def test_missing_band(self, baseline: RasterCollection) -> None:
        with pytest.raises(SchemaMismatchError, match="'NBR'"):
            reduce_period(baseline, "NBR", BASELINE.start)


@pytest.mark.unit
class TestReduceFirst:
    """Verify single-year selection."""

    def test_picks_earliest(
        self,
        make_raster: Callable[..., Raster],
        make_collection: Callable[..., RasterCollection],
    ) -> None:
        year = Period.single(2000)
        june = make_raster(0.7, 2000).with_timestamp(datetime(2000, 6, 1, tzinfo=timezone.utc))
        january = make_raster(0.6, 2000)
        reduced = reduce_first(make_collection([june, january], year), "NDVI", year.start)
        assert isinstance(reduced, Aggregated)
        np.testing.assert_allclose(reduced.raster.data, 0.6)

    def test_empty_year(self, make_collection: Callable[..., RasterCollection]) -> None:
        year = Period.single(1999)
        reduced = reduce_first(make_collection([], year), "NDVI", year.start)
        assert isinstance(reduced, EmptyPeriod)


@pytest.mark.unit
class TestResolve:
    """Verify fallback resolution."""

    def test_aggregated_passes_through(self, make_raster: Callable[..., Raster], grid: Grid) -> None:
        raster = make_raster(0.5, 1986)
        assert resolve(Aggregated(raster), grid) is raster

    def test_zero_fallback(self, grid: Grid) -> None:
        empty = EmptyPeriod("NDVI", datetime(1999, 1, 1, tzinfo=timezone.utc))
        raster = resolve(empty, grid)
        assert raster.bands == ("NDVI",)
        assert raster.grid == grid
        assert raster.timestamp == datetime(1999, 1, 1, tzinfo=timezone.utc)
        assert np.all(raster.data == 0.0)
        assert raster.metadata["member_count"] == 0

    def test_masked_fallback(self, grid: Grid) -> None:
        empty = EmptyPeriod("NDVI", datetime(1999, 1, 1, tzinfo=timezone.utc))
        raster = resolve(empty, grid, fill="masked")
        assert np.isnan(raster.data).all()


@pytest.mark.unit
class TestAggregateAndFirstOrZero:
    """Verify the combined reduce-and-resolve helpers."""

    def test_aggregate_mean(self, baseline: RasterCollection) -> None:
        np.testing.assert_allclose(aggregate(baseline, "NDVI", BASELINE.start).data, 0.52)

    def test_missing_year_gives_zero(
        self,
        make_raster: Callable[..., Raster],
        make_collection: Callable[..., RasterCollection],
    ) -> None:
        year = Period.single(1999)
        rasters = [make_raster(0.5, 1998), make_raster(0.6, 2000)]
        raster = first_or_zero(make_collection(rasters, year), "NDVI", year.start)
        assert np.all(raster.data == 0.0)
        assert raster.timestamp == datetime(1999, 1, 1, tzinfo=timezone.utc)

    def test_first_or_zero_present_year(
        self,
        make_raster: Callable[..., Raster],
        make_collection: Callable[..., RasterCollection],
    ) -> None:
        year = Period.single(2000)
        rasters = [make_raster(0.5, 1999), make_raster(0.6, 2000)]
        raster = first_or_zero(make_collection(rasters, year), "NDVI", year.start)
        np.testing.assert_allclose(raster.data, 0.6)

    def test_missing_year_difference_is_present_year(
        self,
        make_raster: Callable[..., Raster],
        make_collection: Callable[..., RasterCollection],
        grid: Grid,
    ) -> None:
        values = np.linspace(0.1, 0.8, grid.pixel_count).reshape(grid.shape)
        collection = make_collection([make_raster(0.5, 1998), make_raster(values, 2000)])
        missing, present = Period.single(1999), Period.single(2000)
        before = first_or_zero(collection.filter_period(missing), "NDVI", missing.start)
        after = first_or_zero(collection.filter_period(present), "NDVI", present.start)
        change = diff(after, before, "dNDVI_1999_2000")
        np.testing.assert_allclose(change.band("dNDVI_1999_2000"), values)

    def test_aggregate_empty_masked(self, make_collection: Callable[..., RasterCollection]) -> None:
        raster = aggregate(make_collection([], BASELINE), "NDVI", BASELINE.start, fill="masked")
        assert np.isnan(raster.data).all()


@pytest.mark.unit
class TestComposite:
    """Verify multi-band composites without fallback."""

    def test_per_band_mean(
        self,
        make_collection: Callable[..., RasterCollection],
        grid: Grid,
    ) -> None:
        def _sr(year: int, nir: float, red: float) -> Raster:
            data = np.stack([np.full(grid.shape, nir), np.full(grid.shape, red)])
            return Raster(data, ("nir", "red"), datetime(year, 1, 1, tzinfo=timezone.utc), grid)

        collection = make_collection([_sr(1986, 0.3, 0.1), _sr(1987, 0.5, 0.3)], BASELINE, name="SR")
        result = composite(collection, timestamp=BASELINE.start)
        assert result is not None
        assert result.bands == ("nir", "red")
        np.testing.assert_allclose(result.band("nir"), 0.4)
        np.testing.assert_allclose(result.band("red"), 0.2)
        assert result.timestamp == BASELINE.start

    def test_default_timestamp_is_earliest_member(
        self,
        make_raster: Callable[..., Raster],
        make_collection: Callable[..., RasterCollection],
    ) -> None:
        collection = make_collection([make_raster(0.5, 1988), make_raster(0.5, 1987)], BASELINE)
        result = composite(collection)
        assert result is not None
        assert result.year == 1987

    def test_empty_collection(self, make_collection: Callable[..., RasterCollection]) -> None:
        assert composite(make_collection([], BASELINE)) is None
