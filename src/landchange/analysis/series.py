"""Regional time series: one reduced value per raster over the AOI."""

from __future__ import annotations

import logging
from collections.abc import Callable

import numpy as np

from landchange._types import PixelArray
from landchange.aoi import AreaOfInterest
from landchange.collection import RasterCollection
from landchange.exceptions import ConfigurationError
from landchange.grid import Grid
from landchange.results import TimeSeries

logger = logging.getLogger(__name__)

Reducer = Callable[[PixelArray], float]

_REDUCERS: dict[str, Reducer] = {
    "mean": lambda values: float(np.mean(values)),
    "median": lambda values: float(np.median(values)),
    "min": lambda values: float(np.min(values)),
    "max": lambda values: float(np.max(values)),
    "sum": lambda values: float(np.sum(values)),
    "std": lambda values: float(np.std(values)),
    "count": lambda values: float(values.size),
}


def get_reducers() -> list[str]:
    """Return the names of the available regional reducers."""
    return sorted(_REDUCERS)


def get_reducer(name: str) -> Reducer:
    """Look up a regional reducer by name.

    Raises:
        ConfigurationError: If *name* is not a known reducer.
    """
    try:
        return _REDUCERS[name]
    except KeyError:
        raise ConfigurationError(
            what=f"Unknown reducer: {name!r}",
            cause=f"Available reducers: {', '.join(get_reducers())}",
            fix="Pick one of the available reducer names",
        ) from None


def series(
    collection: RasterCollection,
    band: str,
    aoi: AreaOfInterest,
    reducer: str = "mean",
    scale: float | None = None,
) -> TimeSeries:
    """Reduce *band* over *aoi* for every raster of *collection*.

    Only pixels inside the AOI polygon (see ``AreaOfInterest.mask``)
    that are not masked take part. Rasters with no such pixel are left out of
    the series.

    Args:
        collection: Rasters to sample.
        band: Band to reduce.
        aoi: Reduction region.
        reducer: Reducer name (``mean``, ``median``, ``min``, ``max``,
            ``sum``, ``std`` or ``count``).
        scale: Sampling resolution in metres; ``None`` keeps the grid
            of *collection*.

    Returns:
        ``TimeSeries`` ordered by timestamp; empty for an empty
        collection.

    Raises:
        ConfigurationError: If *reducer* is unknown.
        SchemaMismatchError: If a member lacks *band*.

    Example:
        >>> ts = series(ndvi, "NDVI", aoi, scale=90)  # doctest: +SKIP
        >>> ts.to_dataframe().head(2)  # doctest: +SKIP
    """
    reduce = get_reducer(reducer)
    members = collection.select(band)
    if scale is not None:
        members = members.on_grid(Grid.for_aoi(aoi, scale, crs=members.grid.crs))
    resolution = scale if scale is not None else members.grid.scale

    points = []
    if not members.is_empty:
        inside = aoi.mask(members.grid)
        for raster in members.load():
            values = raster.band(band)[inside]
            values = values[~np.isnan(values)]
            if values.size == 0:
                logger.debug(
                    "Skipping %s raster %s: no valid pixel in AOI",
                    band,
                    raster.timestamp.date().isoformat(),
                )
                continue
            points.append((raster.timestamp, reduce(values)))

    logger.debug("Extracted %d %s %s points", len(points), reducer, band)
    return TimeSeries(
        band=band,
        reducer=reducer,
        scale=resolution,
        points=tuple(points),
    )
