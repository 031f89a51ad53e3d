"""Archive over a directory of GeoTIFF files.

Each file is one archive member. The acquisition time comes from a
``TIME_START`` dataset tag (as written by ``Raster.to_geotiff``) or,
failing that, from a four-digit year in the file name, which maps to
Jan 1 of that year. Band names come from the band descriptions.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import rasterio
from rasterio.errors import RasterioIOError
from rasterio.warp import transform_bounds

from landchange._types import Bounds, DateWindow
from landchange.archive.base import (
    ArchiveEntry,
    ArchiveStatus,
    RasterArchive,
    filter_entries,
    warp_dataset,
)
from landchange.exceptions import ArchiveError, SchemaMismatchError
from landchange.grid import Grid
from landchange.period import as_utc
from landchange.raster import _TIME_START_TAG, Raster

logger = logging.getLogger(__name__)

_YEAR_PATTERN = re.compile(r"(?<!\d)((?:19|20)\d{2})(?!\d)")
_SUFFIXES = frozenset({".tif", ".tiff"})


def _parse_timestamp(path: Path, tags: dict[str, str]) -> datetime | None:
    """Return the acquisition time of *path*, or ``None`` if unknown."""
    tag = tags.get(_TIME_START_TAG)
    if tag:
        try:
            return as_utc(datetime.fromisoformat(tag))
        except ValueError:
            logger.warning("Ignoring malformed %s tag %r in %s", _TIME_START_TAG, tag, path)
    match = _YEAR_PATTERN.search(path.stem)
    if match is None:
        return None
    return as_utc(datetime(int(match.group(1)), 1, 1))


class GeoTiffArchive(RasterArchive):
    """Archive backed by the GeoTIFF files of one directory.

    The catalog is built from file headers on the first search and
    reused afterwards; pixels are only read by ``read()``.

    Args:
        name: Logical archive name.
        root: Directory holding ``*.tif`` / ``*.tiff`` files.
        bands: Band names to use when files carry no band descriptions.
        resampling: Resampling used to align files with the target grid.

    Example:
        >>> archive = GeoTiffArchive("NDVI", "data/ndvi")  # doctest: +SKIP
        >>> archive.search(aoi.bounds, Period(1986, 1990).window)  # doctest: +SKIP
        [...]
    """

    _kind = "geotiff"

    def __init__(
        self,
        name: str,
        root: str | Path,
        bands: Sequence[str] | None = None,
        resampling: str = "bilinear",
    ) -> None:
        super().__init__(name, resampling=resampling)
        self._root = Path(root).expanduser()
        self._bands = tuple(bands) if bands else None
        self._catalog: list[ArchiveEntry] | None = None

    @property
    def root(self) -> Path:
        """Directory scanned for GeoTIFF files."""
        return self._root

    def _scan(self) -> list[ArchiveEntry]:
        if self._catalog is not None:
            return self._catalog
        if not self._root.is_dir():
            raise ArchiveError(
                what=f"Cannot open archive {self.name!r}",
                cause=f"Directory not found: {self._root}",
                fix="Point the archive at an existing directory of GeoTIFF files",
            )
        entries: list[ArchiveEntry] = []
        for path in sorted(self._root.iterdir()):
            if path.suffix.lower() not in _SUFFIXES:
                continue
            entry = self._describe(path)
            if entry is not None:
                entries.append(entry)
        logger.debug("Archive %s: catalogued %d GeoTIFF files", self.name, len(entries))
        self._catalog = entries
        return entries

    def _describe(self, path: Path) -> ArchiveEntry | None:
        try:
            with rasterio.open(path) as src:
                tags = src.tags()
                descriptions = src.descriptions
                count = src.count
                crs = src.crs
                native_bounds = tuple(src.bounds)
        except RasterioIOError as exc:
            raise ArchiveError(
                what=f"Cannot read GeoTIFF header in archive {self.name!r}",
                cause=str(exc),
                fix=f"Check or remove {path}",
            ) from exc

        timestamp = _parse_timestamp(path, tags)
        if timestamp is None:
            logger.warning("Skipping %s: no %s tag and no year in file name", path, _TIME_START_TAG)
            return None

        if self._bands is not None:
            bands = self._bands[:count]
        elif all(descriptions):
            bands = tuple(str(d) for d in descriptions)
        else:
            bands = tuple(f"B{index}" for index in range(1, count + 1))

        if crs is None or crs.to_string() == "EPSG:4326":
            bounds = native_bounds
        else:
            bounds = transform_bounds(crs, "EPSG:4326", *native_bounds)

        return ArchiveEntry(
            archive=self.name,
            entry_id=path.stem,
            timestamp=timestamp,
            bounds=(bounds[0], bounds[1], bounds[2], bounds[3]),
            bands=bands,
            location=str(path),
        )

    def search(self, bounds: Bounds, window: DateWindow) -> list[ArchiveEntry]:
        """Filter the directory catalog; never raises on missing data."""
        return filter_entries(self._scan(), bounds, window)

    def read(
        self,
        entry: ArchiveEntry,
        grid: Grid,
        bands: Sequence[str] | None = None,
    ) -> Raster:
        """Read *entry* from disk and resample it onto *grid*."""
        names = tuple(bands) if bands is not None else entry.bands
        missing = [name for name in names if name not in entry.bands]
        if missing:
            raise SchemaMismatchError(
                what=f"Band {missing[0]!r} not found in {entry.location}",
                cause=f"File provides bands: {', '.join(entry.bands)}",
                fix=f"Query an archive that provides {missing[0]!r}",
            )
        indexes = [entry.bands.index(name) + 1 for name in names]
        try:
            with rasterio.open(entry.location) as src:
                data = warp_dataset(src, indexes, grid, resampling=self._resampling)
        except RasterioIOError as exc:
            raise ArchiveError(
                what=f"Cannot read {entry.location}",
                cause=str(exc),
                fix="Check that the file exists and is a valid GeoTIFF",
            ) from exc
        logger.debug("Read %s bands %s", entry.entry_id, ", ".join(names))
        return Raster(
            data=data,
            bands=names,
            timestamp=entry.timestamp,
            grid=grid,
            metadata={"source": entry.location},
        )

    def check_status(self) -> ArchiveStatus:
        """Report whether the archive directory exists."""
        if self._root.is_dir():
            return ArchiveStatus(available=True)
        return ArchiveStatus(available=False, message=f"Directory not found: {self._root}")
