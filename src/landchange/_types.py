"""Internal shared types for cross-boundary data contracts.

These types define the data shapes passed between archive, collection
and analysis components. They are internal (prefixed ``_``) and NOT
re-exported from ``landchange.__init__``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Union

import numpy as np
import numpy.typing as npt

if TYPE_CHECKING:
    from landchange.raster import Raster

Bounds = tuple[float, float, float, float]
"""Bounding box ``(minx, miny, maxx, maxy)``."""

DateWindow = tuple[datetime, datetime]
"""Half-open UTC interval ``[start, end)``."""

PixelArray = npt.NDArray[np.floating[Any]]
"""Float pixel array; NaN marks a masked pixel."""


@dataclass(frozen=True)
class Aggregated:
    """A period reduced from at least one archive raster.

    Args:
        raster: Single-band composite for the period.
        member_count: Number of archive rasters that went into it.

    Example:
        >>> composite = Aggregated(raster=ndvi_mean, member_count=5)  # doctest: +SKIP
        >>> composite.is_empty
        False
    """

    raster: Raster
    member_count: int = 1

    @property
    def is_empty(self) -> bool:
        """Always ``False``: the composite holds real observations."""
        return False


@dataclass(frozen=True)
class EmptyPeriod:
    """A period for which the archive held no raster.

    Resolved into a fallback raster by ``analysis.aggregate.resolve``.

    Args:
        band: Band the fallback raster will carry.
        fallback_timestamp: Timestamp stamped on the fallback raster
            (the period start).

    Example:
        >>> from datetime import datetime, timezone
        >>> empty = EmptyPeriod("NDVI", datetime(1999, 1, 1, tzinfo=timezone.utc))
        >>> empty.is_empty
        True
    """

    band: str
    fallback_timestamp: datetime

    @property
    def is_empty(self) -> bool:
        """Always ``True``: no observation backs this period."""
        return True


PeriodComposite = Union[Aggregated, EmptyPeriod]
"""Result of reducing a period before fallback resolution."""
