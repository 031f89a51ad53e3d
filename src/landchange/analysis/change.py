"""Pixel-wise change between two composites."""

from __future__ import annotations

from landchange.exceptions import SchemaMismatchError
from landchange.raster import Raster


def diff(compare: Raster, baseline: Raster, output_band: str) -> Raster:
    """Return ``compare - baseline`` re-banded to *output_band*.

    Zero-fallback inputs need no special handling: two empty periods
    give a zero difference, not a masked one. A pixel masked in either
    input is masked in the result.

    Args:
        compare: Single-band composite of the later period.
        baseline: Single-band composite of the reference period, with
            the same band name and grid as *compare*.
        output_band: Band name of the difference (e.g. ``"dNDVI"``).

    Returns:
        Difference raster stamped with the *compare* timestamp.

    Raises:
        SchemaMismatchError: If either input is multi-band, the band
            names differ, or the grids differ.

    Example:
        >>> d = diff(compare_ndvi, baseline_ndvi, "dNDVI")  # doctest: +SKIP
        >>> d.bands  # doctest: +SKIP
        ('dNDVI',)
    """
    compare_band = compare.single_band()
    baseline_band = baseline.single_band()
    if compare_band != baseline_band:
        raise SchemaMismatchError(
            what="Cannot difference rasters with different bands",
            cause=f"Compare band {compare_band!r}, baseline band {baseline_band!r}",
            fix="Aggregate both periods from the same index archive",
        )
    if compare.grid != baseline.grid:
        raise SchemaMismatchError(
            what=f"Cannot difference {compare_band} rasters on different grids",
            cause=f"Compare grid {compare.grid.shape}, baseline grid {baseline.grid.shape}",
            fix="Query both periods with the same AOI and scale",
        )
    return Raster(
        data=compare.data - baseline.data,
        bands=(output_band,),
        timestamp=compare.timestamp,
        grid=compare.grid,
        metadata={"compare": compare_band, "baseline_timestamp": baseline.timestamp.isoformat()},
    )
