"""Collection query: archive entries filtered by AOI and period."""

from __future__ import annotations

import logging

from landchange._types import DateWindow
from landchange.aoi import AreaOfInterest
from landchange.archive import ArchiveCatalog
from landchange.collection import RasterCollection
from landchange.grid import Grid
from landchange.period import Period, as_utc

logger = logging.getLogger(__name__)

DEFAULT_SCALE: float = 30.0
"""Default sampling resolution in metres."""


def query(
    catalog: ArchiveCatalog,
    archive_name: str,
    aoi: AreaOfInterest,
    period: Period | DateWindow,
    scale: float = DEFAULT_SCALE,
    crs: str = "EPSG:4326",
) -> RasterCollection:
    """Filter archive *archive_name* to rasters over *aoi* within *period*.

    Only the archive catalog is consulted; no pixel is read. An empty
    collection is a normal outcome and is returned, not raised.

    Args:
        catalog: Archives addressable by logical name.
        archive_name: Logical name of the archive to query.
        aoi: Area of interest; entries must intersect its bounds.
        period: Inclusive year range, or an explicit half-open
            ``(start, end)`` window.
        scale: Sampling resolution in metres for the collection grid.
        crs: CRS of the collection grid.

    Returns:
        Lazy ``RasterCollection`` on the AOI grid.

    Raises:
        ConfigurationError: If *archive_name* is not in *catalog*.

    Example:
        >>> ndvi = query(catalog, "NDVI", aoi, Period(1986, 1990))  # doctest: +SKIP
        >>> ndvi.size  # doctest: +SKIP
        5
    """
    archive = catalog.get(archive_name)
    if isinstance(period, Period):
        window = period.window
    else:
        window = (as_utc(period[0]), as_utc(period[1]))

    entries = archive.search(aoi.bounds, window)
    if not entries:
        logger.info(
            "No rasters in archive %s for %s to %s",
            archive_name,
            window[0].date().isoformat(),
            window[1].date().isoformat(),
        )
    grid = Grid.for_aoi(aoi, scale, crs=crs)
    return RasterCollection(archive=archive, entries=entries, grid=grid)
