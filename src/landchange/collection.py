"""Lazy, immutable views over raster archive entries.

A ``RasterCollection`` pairs catalog entries with the archive that can
read them and the grid they will be read onto. Filtering, band
selection and re-gridding return new views and never read pixels;
``load()`` and ``first()`` are the only materializing calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from datetime import datetime

from landchange._types import Bounds
from landchange.aoi import AreaOfInterest
from landchange.archive.base import ArchiveEntry, RasterArchive
from landchange.exceptions import SchemaMismatchError
from landchange.grid import Grid, bounds_intersect
from landchange.period import Period, as_utc
from landchange.raster import Raster

logger = logging.getLogger(__name__)


class RasterCollection:
    """Unordered set of archive rasters sharing a band schema.

    Args:
        archive: Archive that reads the entries.
        entries: Catalog entries in the view.
        grid: Grid every raster is read onto.
        bands: Bands to read, or ``None`` for every band of an entry.

    Example:
        >>> ndvi = query(catalog, "NDVI", aoi, Period(1986, 2025))  # doctest: +SKIP
        >>> baseline = ndvi.filter_period(Period(1986, 1990))  # doctest: +SKIP
        >>> baseline.size  # doctest: +SKIP
        5
    """

    __slots__ = ("_archive", "_entries", "_grid", "_bands")

    def __init__(
        self,
        archive: RasterArchive,
        entries: Sequence[ArchiveEntry],
        grid: Grid,
        bands: Sequence[str] | None = None,
    ) -> None:
        self._archive = archive
        self._entries: tuple[ArchiveEntry, ...] = tuple(entries)
        self._grid = grid
        self._bands: tuple[str, ...] | None = tuple(bands) if bands else None

    def _view(
        self,
        entries: Sequence[ArchiveEntry] | None = None,
        grid: Grid | None = None,
        bands: Sequence[str] | None = None,
    ) -> RasterCollection:
        return RasterCollection(
            archive=self._archive,
            entries=self._entries if entries is None else entries,
            grid=self._grid if grid is None else grid,
            bands=self._bands if bands is None else bands,
        )

    # ── Read-only properties ─────────────────────────────────────

    @property
    def archive(self) -> RasterArchive:
        """Archive the entries come from."""
        return self._archive

    @property
    def entries(self) -> tuple[ArchiveEntry, ...]:
        """Catalog entries in the view."""
        return self._entries

    @property
    def grid(self) -> Grid:
        """Target grid for reads."""
        return self._grid

    @property
    def bands(self) -> tuple[str, ...] | None:
        """Selected bands, or ``None`` when every band is read."""
        return self._bands

    @property
    def size(self) -> int:
        """Number of rasters in the view."""
        return len(self._entries)

    @property
    def is_empty(self) -> bool:
        """``True`` when the view holds no raster."""
        return not self._entries

    @property
    def timestamps(self) -> list[datetime]:
        """Acquisition timestamps in ascending order."""
        return sorted(entry.timestamp for entry in self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ArchiveEntry]:
        return iter(self._entries)

    # ── Views ────────────────────────────────────────────────────

    def filter_bounds(self, region: AreaOfInterest | Bounds) -> RasterCollection:
        """Keep entries whose footprint intersects *region*."""
        bounds = region.bounds if isinstance(region, AreaOfInterest) else region
        kept = [e for e in self._entries if bounds_intersect(e.bounds, bounds)]
        return self._view(entries=kept)

    def filter_date(self, start: datetime, end: datetime) -> RasterCollection:
        """Keep entries with ``start <= timestamp < end``."""
        window = (as_utc(start), as_utc(end))
        return self._view(entries=[e for e in self._entries if e.in_window(window)])

    def filter_period(self, period: Period) -> RasterCollection:
        """Keep entries acquired inside *period*."""
        return self.filter_date(*period.window)

    def select(self, *bands: str) -> RasterCollection:
        """Restrict reads to *bands*.

        Raises:
            SchemaMismatchError: If an entry does not provide a band.
        """
        for entry in self._entries:
            missing = [band for band in bands if band not in entry.bands]
            if missing:
                raise SchemaMismatchError(
                    what=f"Band {missing[0]!r} not found in {entry.entry_id}",
                    cause=f"Entry provides bands: {', '.join(entry.bands) or 'none'}",
                    fix=f"Query an archive that provides {missing[0]!r}",
                )
        return self._view(bands=bands)

    def on_grid(self, grid: Grid) -> RasterCollection:
        """Read the entries onto *grid* instead."""
        return self._view(grid=grid)

    def sorted(self) -> RasterCollection:
        """Return the view ordered by acquisition time."""
        return self._view(entries=sorted(self._entries, key=lambda e: e.timestamp))

    # ── Materialization ──────────────────────────────────────────

    def read(self, entry: ArchiveEntry) -> Raster:
        """Read one *entry* with the view's band selection and grid."""
        return self._archive.read(entry, self._grid, bands=self._bands)

    def load(self) -> list[Raster]:
        """Read every raster, oldest first."""
        if self._entries:
            logger.debug(
                "Loading %d rasters from archive %s", self.size, self._archive.name
            )
        return [self.read(entry) for entry in self.sorted()]

    def first(self) -> Raster | None:
        """Read the earliest raster, or return ``None`` for an empty view."""
        if not self._entries:
            return None
        return self.read(min(self._entries, key=lambda e: e.timestamp))

    def __repr__(self) -> str:
        return (
            f"RasterCollection(archive={self._archive.name!r}, "
            f"size={self.size}, bands={list(self._bands) if self._bands else 'all'})"
        )
