"""Area of interest: the fixed polygon every analysis is scoped to.

Implements WGS84 ring validation and the two roles the AOI plays in the
pipeline: a spatial filter for archive entries and a clip/reduction
region for rasters.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
from rasterio.features import geometry_mask
from rasterio.warp import transform_geom

from landchange._types import Bounds
from landchange.exceptions import ConfigurationError
from landchange.grid import bounds_intersect

if TYPE_CHECKING:
    from landchange.grid import Grid

_MIN_LAT = -90.0
_MAX_LAT = 90.0
_MIN_LON = -180.0
_MAX_LON = 180.0
_MIN_VERTICES = 3


def area_of_interest(ring: Iterable[Sequence[float]]) -> AreaOfInterest:
    """Create an area of interest from a ``(lon, lat)`` vertex ring.

    The ring is closed automatically when its last vertex differs from
    the first.

    Args:
        ring: Ordered polygon vertices as ``(longitude, latitude)`` pairs.

    Returns:
        An immutable ``AreaOfInterest``.

    Raises:
        ConfigurationError: If a vertex is outside WGS84 bounds, is not
            a coordinate pair, or the ring has fewer than three
            distinct vertices.

    Example:
        >>> aoi = area_of_interest([
        ...     (97.317581, 25.495967),
        ...     (97.317581, 25.88579),
        ...     (97.733002, 25.88579),
        ...     (97.733002, 25.495967),
        ... ])
        >>> len(aoi.ring)
        5
    """
    vertices: list[tuple[float, float]] = []
    for vertex in ring:
        if len(vertex) != 2:
            raise ConfigurationError(
                what=f"Invalid AOI vertex: {tuple(vertex)!r}",
                cause="Each vertex must be a (longitude, latitude) pair",
                fix="Pass the ring as [(lon, lat), (lon, lat), ...]",
            )
        lon, lat = float(vertex[0]), float(vertex[1])
        if not (_MIN_LON <= lon <= _MAX_LON):
            raise ConfigurationError(
                what=f"Invalid AOI longitude: {lon}",
                cause=f"Longitude must be between {_MIN_LON} and {_MAX_LON}",
                fix="Check that vertices are (longitude, latitude), not (lat, lon)",
            )
        if not (_MIN_LAT <= lat <= _MAX_LAT):
            raise ConfigurationError(
                what=f"Invalid AOI latitude: {lat}",
                cause=f"Latitude must be between {_MIN_LAT} and {_MAX_LAT}",
                fix="Check that vertices are (longitude, latitude), not (lat, lon)",
            )
        vertices.append((lon, lat))

    if len(set(vertices)) < _MIN_VERTICES:
        raise ConfigurationError(
            what="Invalid AOI ring",
            cause=f"Found {len(set(vertices))} distinct vertices, need at least 3",
            fix="Pass a polygon ring with three or more distinct vertices",
        )

    if vertices[0] != vertices[-1]:
        vertices.append(vertices[0])

    return AreaOfInterest(tuple(vertices))


class AreaOfInterest:
    """An immutable WGS84 polygon.

    Use the ``area_of_interest()`` factory for ring validation.

    Args:
        ring: Closed, validated ring of ``(lon, lat)`` vertices.

    Example:
        >>> aoi = AreaOfInterest.from_bounds(97.3, 25.4, 97.7, 25.8)
        >>> aoi.bounds
        (97.3, 25.4, 97.7, 25.8)
    """

    __slots__ = ("_ring", "_bounds", "_hash")

    def __init__(self, ring: tuple[tuple[float, float], ...]) -> None:
        self._ring = ring
        lons = [v[0] for v in ring]
        lats = [v[1] for v in ring]
        self._bounds: Bounds = (min(lons), min(lats), max(lons), max(lats))
        canonical = ";".join(f"{lon:.10f},{lat:.10f}" for lon, lat in ring)
        self._hash = hashlib.sha256(canonical.encode()).hexdigest()

    @classmethod
    def from_bounds(
        cls,
        minx: float,
        miny: float,
        maxx: float,
        maxy: float,
    ) -> AreaOfInterest:
        """Create a rectangular AOI from a WGS84 bounding box."""
        return area_of_interest(
            [(minx, miny), (minx, maxy), (maxx, maxy), (maxx, miny)]
        )

    @property
    def ring(self) -> tuple[tuple[float, float], ...]:
        """Closed vertex ring as ``(lon, lat)`` pairs."""
        return self._ring

    @property
    def bounds(self) -> Bounds:
        """Bounding box ``(minx, miny, maxx, maxy)`` in WGS84 degrees."""
        return self._bounds

    @property
    def digest(self) -> str:
        """Deterministic SHA-256 hex digest of the ring."""
        return self._hash

    @property
    def geojson(self) -> dict[str, Any]:
        """GeoJSON Polygon mapping of the ring."""
        return {
            "type": "Polygon",
            "coordinates": [[list(vertex) for vertex in self._ring]],
        }

    def intersects(self, bounds: Bounds) -> bool:
        """Return whether *bounds* overlaps the AOI bounding box.

        Args:
            bounds: ``(minx, miny, maxx, maxy)`` in WGS84 degrees.
        """
        return bounds_intersect(self._bounds, bounds)

    def mask(self, grid: Grid) -> npt.NDArray[np.bool_]:
        """Rasterize the AOI onto *grid*.

        A pixel is inside when its centre falls inside the polygon. An AOI
        smaller than a pixel covers no centre; it then takes every pixel
        the polygon touches.

        Args:
            grid: Target pixel grid.

        Returns:
            Boolean array of shape ``grid.shape``; ``True`` inside the AOI.
        """
        geometry = self.geojson
        if grid.crs != "EPSG:4326":
            geometry = transform_geom("EPSG:4326", grid.crs, geometry)
        inside: npt.NDArray[np.bool_] = geometry_mask(
            [geometry],
            out_shape=grid.shape,
            transform=grid.transform,
            invert=True,
        )
        if not inside.any():
            inside = geometry_mask(
                [geometry],
                out_shape=grid.shape,
                transform=grid.transform,
                all_touched=True,
                invert=True,
            )
        return inside

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AreaOfInterest):
            return NotImplemented
        return self._ring == other._ring

    def __hash__(self) -> int:
        return hash(self._ring)

    def __repr__(self) -> str:
        minx, miny, maxx, maxy = self._bounds
        return (
            f"AreaOfInterest(bounds=({minx:.4f}, {miny:.4f}, "
            f"{maxx:.4f}, {maxy:.4f}), vertices={len(self._ring) - 1})"
        )
