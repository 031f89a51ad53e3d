"""Archive over rasters already held in memory."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from rasterio.warp import transform_bounds

from landchange._types import Bounds, DateWindow
from landchange.archive.base import (
    ArchiveEntry,
    RasterArchive,
    filter_entries,
    warp_array,
)

if TYPE_CHECKING:
    from landchange.grid import Grid
    from landchange.raster import Raster

logger = logging.getLogger(__name__)


def _wgs84_bounds(raster: Raster) -> Bounds:
    bounds = raster.grid.bounds
    if raster.grid.crs == "EPSG:4326":
        return bounds
    west, south, east, north = transform_bounds(raster.grid.crs, "EPSG:4326", *bounds)
    return (west, south, east, north)


class InMemoryArchive(RasterArchive):
    """Archive backed by a fixed set of ``Raster`` objects.

    Useful for synthetic data, notebooks and tests. Entries are
    identified by their position in the original sequence.

    Args:
        name: Logical archive name.
        rasters: Archive members; each keeps its own timestamp and grid.
        resampling: Resampling used when a raster is read onto a
            different grid.

    Example:
        >>> archive = InMemoryArchive("NDVI", [ndvi_1986, ndvi_1987])  # doctest: +SKIP
        >>> len(archive)  # doctest: +SKIP
        2
    """

    _kind = "memory"

    def __init__(
        self,
        name: str,
        rasters: Iterable[Raster],
        resampling: str = "bilinear",
    ) -> None:
        super().__init__(name, resampling=resampling)
        self._rasters: tuple[Raster, ...] = tuple(rasters)
        self._entries: tuple[ArchiveEntry, ...] = tuple(
            ArchiveEntry(
                archive=name,
                entry_id=f"{name}/{index}",
                timestamp=raster.timestamp,
                bounds=_wgs84_bounds(raster),
                bands=raster.bands,
                metadata={"index": index},
            )
            for index, raster in enumerate(self._rasters)
        )

    def __len__(self) -> int:
        return len(self._rasters)

    def search(self, bounds: Bounds, window: DateWindow) -> list[ArchiveEntry]:
        """Filter the in-memory catalog; never raises on missing data."""
        entries = filter_entries(self._entries, bounds, window)
        logger.debug(
            "Archive %s: %d of %d rasters match", self.name, len(entries), len(self)
        )
        return entries

    def read(
        self,
        entry: ArchiveEntry,
        grid: Grid,
        bands: Sequence[str] | None = None,
    ) -> Raster:
        """Return the stored raster, selected to *bands* and aligned to *grid*."""
        raster = self._rasters[int(entry.metadata["index"])]
        if bands is not None:
            raster = raster.select(*bands)
        if raster.grid == grid:
            return raster
        logger.debug("Resampling %s onto target grid %s", entry.entry_id, grid.shape)
        data = warp_array(
            raster.data,
            src_transform=raster.grid.transform,
            src_crs=raster.grid.crs,
            grid=grid,
            resampling=self._resampling,
        )
        return type(raster)(
            data=data,
            bands=raster.bands,
            timestamp=raster.timestamp,
            grid=grid,
            metadata=dict(raster.metadata),
        )
