"""Archive interface contract and shared types.

Defines the ``RasterArchive`` abstract base class and the catalog types
used across all archive implementations. Searching a catalog and
reading pixels are separate steps so that building a collection never
touches pixel data.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

import numpy as np
import rasterio
from rasterio.enums import Resampling
from rasterio.warp import reproject

from landchange._types import Bounds, DateWindow, PixelArray
from landchange.grid import bounds_intersect

if TYPE_CHECKING:
    from rasterio.io import DatasetReader

    from landchange.grid import Grid
    from landchange.raster import Raster


@dataclass(frozen=True)
class ArchiveEntry:
    """One raster known to an archive catalog.

    Args:
        archive: Logical name of the archive holding the entry.
        entry_id: Archive-specific unique identifier.
        timestamp: Acquisition timestamp (UTC).
        bounds: WGS84 footprint ``(minx, miny, maxx, maxy)``.
        bands: Band names the raster provides, in storage order.
        location: File path or URL of the raster, if any.
        assets: Per-band URLs for sources that store bands separately.
        metadata: Additional archive-specific properties.

    Example:
        >>> from datetime import datetime, timezone
        >>> entry = ArchiveEntry(
        ...     archive="NDVI",
        ...     entry_id="ndvi_1986",
        ...     timestamp=datetime(1986, 1, 1, tzinfo=timezone.utc),
        ...     bounds=(97.3, 25.4, 97.8, 25.9),
        ...     bands=("NDVI",),
        ... )
        >>> entry.year
        1986
    """

    archive: str
    entry_id: str
    timestamp: datetime
    bounds: Bounds
    bands: tuple[str, ...] = ()
    location: str = ""
    assets: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def year(self) -> int:
        """Calendar year of the acquisition timestamp."""
        return self.timestamp.year

    def in_window(self, window: DateWindow) -> bool:
        """Return whether the timestamp falls in the half-open *window*."""
        start, end = window
        return start <= self.timestamp < end


@dataclass
class ArchiveStatus:
    """Operational status of a raster archive.

    Args:
        available: ``True`` if the archive can be searched and read.
        message: Human-readable status message (empty when healthy).
    """

    available: bool = False
    message: str = ""


class RasterArchive(ABC):
    """Abstract base class for raster archives keyed by logical name.

    All archives (in-memory, GeoTIFF directory, STAC API) implement this
    contract to provide a uniform interface for catalog search and
    on-demand pixel reads.

    Args:
        name: Logical archive name (e.g. ``"LANDSAT/COMPOSITES/C02/T1_L2_ANNUAL_NDVI"``).
        resampling: Resampling used when source pixels do not line up
            with the target grid.
    """

    _kind: str = ""

    def __init__(self, name: str, resampling: str = "bilinear") -> None:
        self._name = name
        self._resampling = Resampling[resampling]

    @property
    def name(self) -> str:
        """Logical archive name used by queries."""
        return self._name

    @property
    def kind(self) -> str:
        """Archive type identifier used in the archive registry."""
        return self._kind

    @abstractmethod
    def search(self, bounds: Bounds, window: DateWindow) -> list[ArchiveEntry]:
        """Return entries intersecting *bounds* with a timestamp in *window*.

        Returns an empty list when nothing matches. Never reads pixels.

        Args:
            bounds: WGS84 bounding box ``(minx, miny, maxx, maxy)``.
            window: Half-open UTC interval ``[start, end)``.

        Returns:
            Matching entries, possibly empty.
        """
        ...

    @abstractmethod
    def read(
        self,
        entry: ArchiveEntry,
        grid: Grid,
        bands: Sequence[str] | None = None,
    ) -> Raster:
        """Read *entry* onto *grid*.

        Args:
            entry: Catalog entry returned by ``search()``.
            grid: Target pixel grid; source pixels are resampled onto it.
            bands: Bands to read, or ``None`` for all of them.

        Returns:
            Raster stamped with the entry timestamp.

        Raises:
            SchemaMismatchError: If a requested band is not provided.
            ArchiveError: If the source cannot be read.
        """
        ...

    def check_status(self) -> ArchiveStatus:
        """Check archive availability. Never raises."""
        return ArchiveStatus(available=True)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r})"


def filter_entries(
    entries: Sequence[ArchiveEntry],
    bounds: Bounds,
    window: DateWindow,
) -> list[ArchiveEntry]:
    """Return *entries* intersecting *bounds* and inside *window*, oldest first."""
    matched = [
        entry
        for entry in entries
        if bounds_intersect(entry.bounds, bounds) and entry.in_window(window)
    ]
    return sorted(matched, key=lambda entry: entry.timestamp)


def warp_array(
    array: PixelArray,
    src_transform: Any,
    src_crs: str,
    grid: Grid,
    resampling: Resampling = Resampling.bilinear,
) -> PixelArray:
    """Resample a ``(bands, height, width)`` array onto *grid*.

    NaN is treated as nodata on both sides; pixels of *grid* outside
    the source footprint come back as NaN.
    """
    destination = np.full((array.shape[0], *grid.shape), np.nan, dtype=np.float64)
    reproject(
        source=np.asarray(array, dtype=np.float64),
        destination=destination,
        src_transform=src_transform,
        src_crs=src_crs,
        src_nodata=np.nan,
        dst_transform=grid.transform,
        dst_crs=grid.crs,
        dst_nodata=np.nan,
        resampling=resampling,
    )
    return destination


def warp_dataset(
    dataset: DatasetReader,
    indexes: Sequence[int],
    grid: Grid,
    resampling: Resampling = Resampling.bilinear,
) -> PixelArray:
    """Resample bands *indexes* (1-based) of an open dataset onto *grid*.

    Only the part of the source covering *grid* is read by GDAL.
    Source nodata values become NaN.
    """
    destination = np.full((len(indexes), *grid.shape), np.nan, dtype=np.float32)
    reproject(
        source=rasterio.band(dataset, list(indexes)),
        destination=destination,
        src_nodata=dataset.nodata,
        dst_transform=grid.transform,
        dst_crs=grid.crs,
        dst_nodata=np.nan,
        resampling=resampling,
    )
    return destination.astype(np.float64)
