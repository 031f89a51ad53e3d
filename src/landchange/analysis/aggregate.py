"""Period aggregation with an explicit empty-period state.

Reducing a period yields a ``PeriodComposite``: ``Aggregated`` when the
archive held at least one raster, ``EmptyPeriod`` otherwise.
``resolve()`` turns either into a raster; an empty period becomes an
all-zero raster stamped with the period start, so downstream arithmetic
never sees a missing operand. A true zero observation and a zero
fallback are indistinguishable once resolved; callers that care inspect
the composite before resolving it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal

import numpy as np

from landchange._types import Aggregated, EmptyPeriod, PeriodComposite, PixelArray
from landchange.collection import RasterCollection
from landchange.grid import Grid
from landchange.period import as_utc
from landchange.raster import Raster

logger = logging.getLogger(__name__)

FillPolicy = Literal["zero", "masked"]
"""How an empty period is resolved: zeros, or every pixel masked."""


def nanmean_stack(stack: PixelArray) -> PixelArray:
    """Mean over axis 0, skipping NaN; all-NaN positions stay NaN."""
    valid = ~np.isnan(stack)
    count = valid.sum(axis=0)
    total = np.where(valid, stack, 0.0).sum(axis=0)
    with np.errstate(invalid="ignore", divide="ignore"):
        mean: PixelArray = np.where(count > 0, total / count, np.nan)
    return mean


def reduce_period(
    collection: RasterCollection,
    band: str,
    fallback_timestamp: datetime,
) -> PeriodComposite:
    """Average *band* over every raster of *collection*.

    Masked pixels are skipped per pixel; a pixel masked in every member
    stays masked.

    Args:
        collection: Rasters of one period.
        band: Band to aggregate.
        fallback_timestamp: Timestamp of the result (the period start).

    Returns:
        ``Aggregated`` with the mean composite, or ``EmptyPeriod`` when
        *collection* is empty.

    Raises:
        SchemaMismatchError: If a member lacks *band*.
    """
    members = collection.select(band)
    if members.is_empty:
        logger.info(
            "No %s rasters in %s from %s; period is empty",
            band,
            collection.archive.name,
            as_utc(fallback_timestamp).date().isoformat(),
        )
        return EmptyPeriod(band=band, fallback_timestamp=as_utc(fallback_timestamp))

    rasters = members.load()
    stack = np.stack([raster.band(band) for raster in rasters])
    mean = nanmean_stack(stack)
    composite = Raster(
        data=mean,
        bands=(band,),
        timestamp=fallback_timestamp,
        grid=members.grid,
        metadata={"member_count": len(rasters)},
    )
    logger.debug("Aggregated %d %s rasters", len(rasters), band)
    return Aggregated(raster=composite, member_count=len(rasters))


def reduce_first(
    collection: RasterCollection,
    band: str,
    fallback_timestamp: datetime,
) -> PeriodComposite:
    """Pick the earliest raster of *collection* for *band*.

    Meant for one-year windows, where the archive holds at most one
    annual composite.
    """
    members = collection.select(band)
    first = members.first()
    if first is None:
        logger.info(
            "No %s raster in %s for %s; year is empty",
            band,
            collection.archive.name,
            as_utc(fallback_timestamp).date().isoformat(),
        )
        return EmptyPeriod(band=band, fallback_timestamp=as_utc(fallback_timestamp))
    return Aggregated(raster=first.select(band), member_count=1)


def resolve(
    composite: PeriodComposite,
    grid: Grid,
    fill: FillPolicy = "zero",
) -> Raster:
    """Turn a period composite into a raster.

    Args:
        composite: Result of ``reduce_period`` or ``reduce_first``.
        grid: Grid of the fallback raster.
        fill: ``"zero"`` fills an empty period with zeros; ``"masked"``
            masks every pixel instead.

    Returns:
        The aggregated raster, or a fallback raster for an empty period.

    Example:
        >>> empty = EmptyPeriod("NDVI", datetime(1999, 1, 1))
        >>> resolve(empty, grid).data.max()  # doctest: +SKIP
        0.0
    """
    if isinstance(composite, Aggregated):
        return composite.raster
    value = 0.0 if fill == "zero" else np.nan
    raster = Raster.constant(value, composite.band, composite.fallback_timestamp, grid)
    return Raster(
        data=raster.data,
        bands=raster.bands,
        timestamp=raster.timestamp,
        grid=grid,
        metadata={"member_count": 0, "fallback": fill},
    )


def aggregate(
    collection: RasterCollection,
    band: str,
    fallback_timestamp: datetime,
    fill: FillPolicy = "zero",
) -> Raster:
    """Mean composite of *band*, or a fallback raster for an empty period.

    Example:
        >>> baseline = ndvi.filter_period(Period(1986, 1990))  # doctest: +SKIP
        >>> aggregate(baseline, "NDVI", Period(1986, 1990).start)  # doctest: +SKIP
        Raster(bands=['NDVI'], timestamp=1986-01-01, shape=(1443, 1541))
    """
    return resolve(reduce_period(collection, band, fallback_timestamp), collection.grid, fill)


def first_or_zero(
    collection: RasterCollection,
    band: str,
    fallback_timestamp: datetime,
    fill: FillPolicy = "zero",
) -> Raster:
    """Earliest raster of *band*, or a fallback raster for an empty window."""
    return resolve(reduce_first(collection, band, fallback_timestamp), collection.grid, fill)


def composite(
    collection: RasterCollection,
    timestamp: datetime | None = None,
) -> Raster | None:
    """Per-band mean over every raster of *collection*, without fallback.

    Args:
        collection: Rasters to combine (e.g. surface reflectance).
        timestamp: Timestamp of the result; defaults to the earliest
            member timestamp.

    Returns:
        Multi-band mean composite, or ``None`` for an empty collection.
    """
    rasters = collection.load()
    if not rasters:
        return None
    bands = rasters[0].bands
    stack = np.stack([raster.select(*bands).data for raster in rasters])
    return Raster(
        data=nanmean_stack(stack),
        bands=bands,
        timestamp=timestamp if timestamp is not None else rasters[0].timestamp,
        grid=collection.grid,
        metadata={"member_count": len(rasters)},
    )
