"""landchange: multi-decade land-cover change analysis over annual raster archives.

Example:
    >>> import landchange as lc
    >>>
    >>> catalog = lc.ArchiveCatalog([
    ...     lc.build_archive("geotiff", lc.config.LANDSAT_ANNUAL_NDVI, root="data/ndvi"),
    ... ])
    >>> cfg = lc.AnalysisConfig(index_archives={"NDVI": lc.config.LANDSAT_ANNUAL_NDVI},
    ...                         reflectance_archive=None)
    >>> result = lc.run_change_analysis(catalog, cfg)
    >>> for request in result.exports:
    ...     request.write("exports")
"""

from landchange import config
from landchange.__about__ import __version__
from landchange._pipeline import run_change_analysis
from landchange._types import Aggregated, EmptyPeriod
from landchange.analysis import (
    aggregate,
    composite,
    diff,
    first_or_zero,
    linear_fit,
    reduce_first,
    reduce_period,
    resolve,
    series,
    trend,
)
from landchange.aoi import AreaOfInterest, area_of_interest
from landchange.archive import ArchiveCatalog, RasterArchive, build_archive
from landchange.collection import RasterCollection
from landchange.config import AnalysisConfig, load_config
from landchange.exceptions import (
    ArchiveError,
    ConfigurationError,
    ExportError,
    InvalidRangeError,
    LandChangeError,
    SchemaMismatchError,
)
from landchange.export import ExportRequest
from landchange.grid import Grid
from landchange.period import Period, period_window, year_window
from landchange.query import query
from landchange.raster import Raster
from landchange.results import ChangeAnalysisResult, TimeSeries

__all__ = [
    # Version
    "__version__",
    # Pipeline
    "run_change_analysis",
    # Configuration
    "AnalysisConfig",
    "config",
    "load_config",
    # Periods and geometry
    "AreaOfInterest",
    "Grid",
    "Period",
    "area_of_interest",
    "period_window",
    "year_window",
    # Archives and collections
    "ArchiveCatalog",
    "RasterArchive",
    "RasterCollection",
    "build_archive",
    "query",
    # Rasters and analysis
    "Aggregated",
    "EmptyPeriod",
    "Raster",
    "aggregate",
    "composite",
    "diff",
    "first_or_zero",
    "linear_fit",
    "reduce_first",
    "reduce_period",
    "resolve",
    "series",
    "trend",
    # Results
    "ChangeAnalysisResult",
    "ExportRequest",
    "TimeSeries",
    # Exceptions
    "ArchiveError",
    "ConfigurationError",
    "ExportError",
    "InvalidRangeError",
    "LandChangeError",
    "SchemaMismatchError",
]
