"""Export requests for difference and trend rasters.

An ``ExportRequest`` captures what the analysis hands to storage: a
named, AOI-scoped raster with masked pixels filled with zero, the
sampling scale and a pixel ceiling. ``write()`` renders it as a
GeoTIFF with rasterio.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from landchange.aoi import AreaOfInterest
from landchange.exceptions import ExportError
from landchange.period import Period
from landchange.raster import Raster

logger = logging.getLogger(__name__)

_FILE_EXTENSIONS: dict[str, str] = {"GeoTIFF": ".tif"}
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def difference_description(prefix: str, band: str, baseline: Period, compare: Period) -> str:
    """Name of a period difference export.

    Example:
        >>> difference_description("Myitsone", "dNDVI", Period(1986, 1990), Period(2020, 2025))
        'Myitsone_dNDVI_1986_1990_vs_2020_2025'
    """
    return f"{prefix}_{band}_{baseline.label}_vs_{compare.label}"


def trend_description(prefix: str, band: str, years: Period) -> str:
    """Name of a trend export.

    Example:
        >>> trend_description("Myitsone", "NDVI", Period(1986, 2025))
        'Myitsone_NDVI_slope_1986_2025'
    """
    return f"{prefix}_{band}_slope_{years.label}"


@dataclass(frozen=True)
class ExportRequest:
    """A raster ready to be written to storage.

    Attributes:
        description: Export name, also the output file stem.
        raster: Raster to write; masked pixels are already zero.
        region: AOI the raster is scoped to.
        scale: Sampling resolution in metres.
        max_pixels: Largest pixel count the export may write.
        file_format: Output format; only ``"GeoTIFF"`` is supported.

    Example:
        >>> request = ExportRequest.for_raster(  # doctest: +SKIP
        ...     "Myitsone_dNDVI_1986_1990_vs_2020_2025", dndvi, aoi, scale=30
        ... )
        >>> request.write("exports")  # doctest: +SKIP
        PosixPath('exports/Myitsone_dNDVI_1986_1990_vs_2020_2025.tif')
    """

    description: str
    raster: Raster
    region: AreaOfInterest
    scale: float
    max_pixels: float = 1e13
    file_format: str = "GeoTIFF"

    @classmethod
    def for_raster(
        cls,
        description: str,
        raster: Raster,
        region: AreaOfInterest,
        scale: float,
        max_pixels: float = 1e13,
        file_format: str = "GeoTIFF",
    ) -> ExportRequest:
        """Build a request, filling masked pixels of *raster* with zero."""
        return cls(
            description=description,
            raster=raster.unmask(0.0),
            region=region,
            scale=scale,
            max_pixels=max_pixels,
            file_format=file_format,
        )

    @property
    def pixel_count(self) -> int:
        """Pixels the export writes across all bands."""
        return self.raster.grid.pixel_count * len(self.raster.bands)

    @property
    def filename(self) -> str:
        """Output file name derived from the description."""
        extension = _FILE_EXTENSIONS.get(self.file_format, "")
        return f"{_UNSAFE_CHARS.sub('_', self.description)}{extension}"

    def write(self, directory: str | Path) -> Path:
        """Write the raster under *directory* as ``<description>.tif``.

        Args:
            directory: Output directory; created when missing.

        Returns:
            Path of the written file.

        Raises:
            ExportError: If the format is unsupported or the raster
                exceeds ``max_pixels``.
        """
        if self.file_format not in _FILE_EXTENSIONS:
            raise ExportError(
                what=f"Cannot export {self.description}",
                cause=f"Unsupported file format {self.file_format!r}",
                fix=f"Use one of: {', '.join(_FILE_EXTENSIONS)}",
            )
        if self.pixel_count > self.max_pixels:
            raise ExportError(
                what=f"Cannot export {self.description}",
                cause=f"{self.pixel_count} pixels exceed the ceiling of {self.max_pixels:.0f}",
                fix="Raise max_pixels or export at a coarser scale",
            )
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = self.raster.to_geotiff(out_dir / self.filename)
        logger.info("Exported %s (%d pixels) to %s", self.description, self.pixel_count, path)
        return path

    def __repr__(self) -> str:
        return (
            f"ExportRequest(description={self.description!r}, "
            f"scale={self.scale:g}, shape={self.raster.grid.shape})"
        )
