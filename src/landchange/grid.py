"""Common pixel grid shared by every raster in a computation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rasterio.crs import CRS
from rasterio.transform import Affine, array_bounds, from_origin
from rasterio.warp import transform_bounds

from landchange._types import Bounds
from landchange.exceptions import ConfigurationError

if TYPE_CHECKING:
    from landchange.aoi import AreaOfInterest

# Length of one degree of latitude, used to express a metric sampling
# scale on a geographic grid.
_METERS_PER_DEGREE: float = 111_320.0
_DEFAULT_CRS = "EPSG:4326"


def bounds_intersect(a: Bounds, b: Bounds) -> bool:
    """Return whether two ``(minx, miny, maxx, maxy)`` boxes overlap."""
    return not (a[2] < b[0] or a[0] > b[2] or a[3] < b[1] or a[1] > b[3])


@dataclass(frozen=True)
class Grid:
    """Affine pixel grid: transform, size and CRS.

    Args:
        transform: Affine transform mapping pixel to CRS coordinates.
        width: Number of columns.
        height: Number of rows.
        crs: Coordinate reference system (e.g. ``"EPSG:4326"``).

    Example:
        >>> grid = Grid.for_bounds((97.3, 25.4, 97.7, 25.8), resolution=0.1)
        >>> grid.shape
        (4, 4)
    """

    transform: Affine
    width: int
    height: int
    crs: str = _DEFAULT_CRS

    @classmethod
    def for_bounds(
        cls,
        bounds: Bounds,
        resolution: float,
        crs: str = _DEFAULT_CRS,
    ) -> Grid:
        """Build a north-up grid covering *bounds* with square pixels.

        Args:
            bounds: ``(minx, miny, maxx, maxy)`` in *crs* units.
            resolution: Pixel size in *crs* units.
            crs: Coordinate reference system of *bounds*.

        Returns:
            Grid anchored at the upper-left corner of *bounds*.

        Raises:
            ConfigurationError: If *resolution* is not positive or the
                bounds are inverted.
        """
        if resolution <= 0:
            raise ConfigurationError(
                what=f"Invalid grid resolution: {resolution}",
                cause="Pixel size must be greater than zero",
                fix="Use a positive sampling scale",
            )
        minx, miny, maxx, maxy = bounds
        if maxx < minx or maxy < miny:
            raise ConfigurationError(
                what=f"Invalid grid bounds: {bounds}",
                cause="Maximum coordinate is smaller than minimum",
                fix="Pass bounds as (minx, miny, maxx, maxy)",
            )
        # Round before ceil so float noise does not add a column.
        width = max(math.ceil(round((maxx - minx) / resolution, 6)), 1)
        height = max(math.ceil(round((maxy - miny) / resolution, 6)), 1)
        transform = from_origin(minx, maxy, resolution, resolution)
        return cls(transform=transform, width=width, height=height, crs=crs)

    @classmethod
    def for_aoi(
        cls,
        aoi: AreaOfInterest,
        scale: float,
        crs: str = _DEFAULT_CRS,
    ) -> Grid:
        """Build the grid covering *aoi* at a sampling *scale* in metres.

        For a geographic *crs* the metric scale is converted to degrees
        using the length of one degree of latitude.

        Args:
            aoi: Area of interest (WGS84).
            scale: Pixel size in metres.
            crs: Target coordinate reference system.

        Returns:
            Grid covering the AOI bounding box.
        """
        target = CRS.from_user_input(crs)
        bounds = aoi.bounds
        if target.is_geographic:
            resolution = scale / _METERS_PER_DEGREE
            if target != CRS.from_user_input(_DEFAULT_CRS):
                bounds = transform_bounds(_DEFAULT_CRS, target, *bounds)
        else:
            resolution = scale
            bounds = transform_bounds(_DEFAULT_CRS, target, *bounds)
        return cls.for_bounds(bounds, resolution, crs=crs)

    @property
    def shape(self) -> tuple[int, int]:
        """``(height, width)`` in pixels."""
        return (self.height, self.width)

    @property
    def pixel_count(self) -> int:
        """Total number of pixels."""
        return self.width * self.height

    @property
    def resolution(self) -> tuple[float, float]:
        """``(x, y)`` pixel size in CRS units."""
        return (abs(self.transform.a), abs(self.transform.e))

    @property
    def scale(self) -> float:
        """Pixel width in metres; geographic grids convert from degrees."""
        width = abs(self.transform.a)
        if CRS.from_user_input(self.crs).is_geographic:
            return width * _METERS_PER_DEGREE
        return width

    @property
    def bounds(self) -> Bounds:
        """Outer bounds ``(minx, miny, maxx, maxy)`` of the grid."""
        west, south, east, north = array_bounds(
            self.height, self.width, self.transform
        )
        return (west, south, east, north)
