"""Banded, timestamped raster on a shared pixel grid.

Numpy arrays are the canonical pixel representation. NaN
marks a masked (no-data) pixel; every operation returns a new raster.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

from landchange._types import PixelArray
from landchange.exceptions import SchemaMismatchError
from landchange.grid import Grid
from landchange.period import as_utc

if TYPE_CHECKING:
    from landchange.aoi import AreaOfInterest

_TIME_START_TAG = "TIME_START"


@dataclass(frozen=True, eq=False)
class Raster:
    """A georeferenced pixel array with named bands and one timestamp.

    Args:
        data: Pixel array with shape ``(bands, height, width)``.
        bands: Band names, one per leading axis entry.
        timestamp: Representative acquisition time (stored as UTC).
        grid: Pixel grid the array is aligned to.
        metadata: Free-form properties carried through operations.

    Raises:
        SchemaMismatchError: If the array shape disagrees with *bands*
            or *grid*.

    Example:
        >>> from datetime import datetime, timezone
        >>> grid = Grid.for_bounds((0.0, 0.0, 1.0, 1.0), resolution=0.5)
        >>> r = Raster.constant(0.5, "NDVI", datetime(1986, 1, 1, tzinfo=timezone.utc), grid)
        >>> r.bands, r.data.shape
        (('NDVI',), (1, 2, 2))
    """

    data: PixelArray
    bands: tuple[str, ...]
    timestamp: datetime
    grid: Grid
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        data = np.asarray(self.data, dtype=np.float64)
        if data.ndim == 2:
            data = data[np.newaxis, :, :]
        if data.ndim != 3:
            raise SchemaMismatchError(
                what="Raster data must be 2D or 3D",
                cause=f"Got array with {data.ndim} dimensions",
                fix="Pass data shaped (height, width) or (bands, height, width)",
            )
        bands = tuple(self.bands)
        if data.shape[0] != len(bands):
            raise SchemaMismatchError(
                what="Raster band names do not match data",
                cause=f"{data.shape[0]} band(s) in data, names: {', '.join(bands)}",
                fix="Pass one band name per leading array axis",
            )
        if data.shape[1:] != self.grid.shape:
            raise SchemaMismatchError(
                what="Raster data does not fit its grid",
                cause=f"Data shape {data.shape[1:]}, grid shape {self.grid.shape}",
                fix="Resample the data onto the grid before building the raster",
            )
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "bands", bands)
        object.__setattr__(self, "timestamp", as_utc(self.timestamp))

    # ── Constructors ─────────────────────────────────────────────

    @classmethod
    def constant(
        cls,
        value: float,
        band: str,
        timestamp: datetime,
        grid: Grid,
    ) -> Raster:
        """Return a single-band raster filled with *value*."""
        data = np.full((1, *grid.shape), value, dtype=np.float64)
        return cls(data=data, bands=(band,), timestamp=timestamp, grid=grid)

    @classmethod
    def zeros(cls, band: str, timestamp: datetime, grid: Grid) -> Raster:
        """Return a single-band all-zero raster."""
        return cls.constant(0.0, band, timestamp, grid)

    # ── Read-only views ──────────────────────────────────────────

    @property
    def year(self) -> int:
        """Calendar year of the timestamp (UTC)."""
        return self.timestamp.year

    @property
    def valid(self) -> npt.NDArray[np.bool_]:
        """Boolean array, ``True`` where a pixel is not masked."""
        valid: npt.NDArray[np.bool_] = ~np.isnan(self.data)
        return valid

    def has_band(self, name: str) -> bool:
        """Return whether the raster carries band *name*."""
        return name in self.bands

    def band(self, name: str) -> PixelArray:
        """Return the 2D pixel array of band *name*.

        Raises:
            SchemaMismatchError: If the band is missing.
        """
        return self.data[self._band_index(name)]

    def single_band(self) -> str:
        """Return the name of the only band.

        Raises:
            SchemaMismatchError: If the raster has more than one band.
        """
        if len(self.bands) != 1:
            raise SchemaMismatchError(
                what="Expected a single-band raster",
                cause=f"Raster carries bands: {', '.join(self.bands)}",
                fix="Select one band before this operation",
            )
        return self.bands[0]

    def _band_index(self, name: str) -> int:
        try:
            return self.bands.index(name)
        except ValueError:
            raise SchemaMismatchError(
                what=f"Band {name!r} not found",
                cause=f"Raster carries bands: {', '.join(self.bands) or 'none'}",
                fix=f"Query an archive that provides {name!r}",
            ) from None

    # ── Derivations ──────────────────────────────────────────────

    def _replace(self, **changes: Any) -> Raster:
        fields: dict[str, Any] = {
            "data": self.data,
            "bands": self.bands,
            "timestamp": self.timestamp,
            "grid": self.grid,
            "metadata": dict(self.metadata),
        }
        fields.update(changes)
        return Raster(**fields)

    def select(self, *names: str) -> Raster:
        """Return a raster holding only bands *names*, in that order.

        Raises:
            SchemaMismatchError: If any band is missing.
        """
        indices = [self._band_index(name) for name in names]
        return self._replace(data=self.data[indices], bands=names)

    def rename(self, *names: str) -> Raster:
        """Return the raster with its bands renamed to *names*.

        Raises:
            SchemaMismatchError: If the number of names differs from
                the number of bands.
        """
        if len(names) != len(self.bands):
            raise SchemaMismatchError(
                what="Cannot rename raster bands",
                cause=f"{len(self.bands)} band(s), {len(names)} new name(s)",
                fix="Pass exactly one new name per band",
            )
        return self._replace(bands=names)

    def with_timestamp(self, timestamp: datetime) -> Raster:
        """Return the raster stamped with *timestamp*."""
        return self._replace(timestamp=timestamp)

    def clip(self, aoi: AreaOfInterest) -> Raster:
        """Mask every pixel outside *aoi* (see ``AreaOfInterest.mask``)."""
        inside = aoi.mask(self.grid)
        clipped = np.where(inside[np.newaxis, :, :], self.data, np.nan)
        return self._replace(data=clipped)

    def unmask(self, value: float = 0.0) -> Raster:
        """Return the raster with masked pixels filled with *value*."""
        return self._replace(data=np.nan_to_num(self.data, nan=value))

    # ── Export ───────────────────────────────────────────────────

    def to_geotiff(
        self,
        path: str | Path,
        dtype: str = "float32",
        nodata: float | None = None,
    ) -> Path:
        """Write the raster to a GeoTIFF file.

        Band names are stored as band descriptions and the timestamp as
        a ``TIME_START`` dataset tag, which is what ``GeoTiffArchive``
        reads back.

        Args:
            path: Output file path (will be created/overwritten).
            dtype: Output sample type.
            nodata: Optional nodata value recorded in the file.

        Returns:
            Path object pointing to the written file.

        Example:
            >>> raster.to_geotiff("dNDVI.tif")  # doctest: +SKIP
        """
        import rasterio

        path = Path(path)
        count, height, width = self.data.shape
        with rasterio.open(
            path,
            "w",
            driver="GTiff",
            height=height,
            width=width,
            count=count,
            dtype=dtype,
            crs=self.grid.crs,
            transform=self.grid.transform,
            nodata=nodata,
        ) as dst:
            dst.write(self.data.astype(dtype))
            for index, name in enumerate(self.bands, start=1):
                dst.set_band_description(index, name)
            dst.update_tags(**{_TIME_START_TAG: self.timestamp.isoformat()})
        return path

    def __repr__(self) -> str:
        return (
            f"Raster(bands={list(self.bands)}, "
            f"timestamp={self.timestamp.date().isoformat()}, "
            f"shape={self.grid.shape})"
        )
