"""Per-pixel linear trend of an index over time."""

from __future__ import annotations

import logging

import numpy as np
import numpy.typing as npt

from landchange._types import PixelArray
from landchange.collection import RasterCollection
from landchange.period import year_window
from landchange.raster import Raster

logger = logging.getLogger(__name__)

# Below this spread of t the slope is undefined (a single distinct year).
_MIN_T_SPREAD: float = 1e-12


def linear_fit(
    t: npt.ArrayLike,
    stack: PixelArray,
) -> tuple[PixelArray, PixelArray]:
    """Least-squares fit of ``stack = intercept + slope * t`` per pixel.

    Each pixel is fitted on its own valid (non-NaN) samples. The fit is
    centred on the per-pixel mean of *t*, so shifting *t* by a constant
    changes the intercept and leaves the slope untouched.

    Args:
        t: Time coordinate per sample, shape ``(n,)``.
        stack: Samples with shape ``(n, height, width)``.

    Returns:
        ``(slope, intercept)`` arrays of shape ``(height, width)``.
        Pixels with fewer than two distinct valid ``t`` are NaN in both.

    Example:
        >>> stack = np.array([[[0.5]], [[0.51]], [[0.52]]])
        >>> slope, _ = linear_fit([0, 1, 2], stack)
        >>> round(float(slope[0, 0]), 6)
        0.01
    """
    times = np.asarray(t, dtype=np.float64)
    stack = np.asarray(stack, dtype=np.float64)
    if stack.ndim != 3 or times.shape != (stack.shape[0],):
        msg = f"Expected t of shape (n,) and stack (n, h, w), got {times.shape} and {stack.shape}"
        raise ValueError(msg)

    valid = ~np.isnan(stack)
    tt = np.broadcast_to(times[:, np.newaxis, np.newaxis], stack.shape)
    n = valid.sum(axis=0)

    with np.errstate(invalid="ignore", divide="ignore"):
        t_mean = np.where(valid, tt, 0.0).sum(axis=0) / n
        y_mean = np.where(valid, stack, 0.0).sum(axis=0) / n
        dt = np.where(valid, tt - t_mean, 0.0)
        dy = np.where(valid, stack - y_mean, 0.0)
        sxx = (dt * dt).sum(axis=0)
        sxy = (dt * dy).sum(axis=0)

        defined = (n >= 2) & (sxx > _MIN_T_SPREAD)
        slope: PixelArray = np.where(defined, sxy / sxx, np.nan)
        intercept: PixelArray = np.where(defined, y_mean - slope * t_mean, np.nan)
    return slope, intercept


def trend(collection: RasterCollection, band: str, reference_year: int) -> Raster:
    """Fit a per-pixel linear trend of *band* against acquisition year.

    Each raster contributes one sample at ``t = year - reference_year``.

    Args:
        collection: Annual rasters of the analysis range.
        band: Band to fit (e.g. ``"NDVI"``).
        reference_year: Year with ``t = 0``; stamps the output.

    Returns:
        Single-band raster ``"<band>_slope_per_year"`` holding the slope
        in index units per year; NaN where the trend is undefined.

    Raises:
        SchemaMismatchError: If a member lacks *band*.

    Example:
        >>> slope = trend(ndvi, "NDVI", reference_year=1986)  # doctest: +SKIP
        >>> slope.bands  # doctest: +SKIP
        ('NDVI_slope_per_year',)
    """
    rasters = collection.select(band).load()
    output_band = f"{band}_slope_per_year"
    timestamp = year_window(reference_year)[0]
    if len(rasters) < 2:
        logger.info(
            "Trend of %s undefined: %d raster(s) in %s",
            band,
            len(rasters),
            collection.archive.name,
        )
        return Raster.constant(np.nan, output_band, timestamp, collection.grid)

    t = [raster.year - reference_year for raster in rasters]
    stack = np.stack([raster.band(band) for raster in rasters])
    slope, _ = linear_fit(t, stack)
    logger.debug("Fitted %s trend over %d rasters", band, len(rasters))
    return Raster(
        data=slope,
        bands=(output_band,),
        timestamp=timestamp,
        grid=collection.grid,
        metadata={"sample_count": len(rasters), "reference_year": reference_year},
    )
