"""Change analysis orchestration.

``run_change_analysis`` wires the archive queries, period aggregation,
differencing, trend fitting, regional series and export requests for
one AOI. Every archive is queried once over the full analysis range;
periods are metadata filters on that collection, so pixels are read
only when a period is reduced.
"""

from __future__ import annotations

import logging

from landchange.analysis.aggregate import composite, reduce_first, reduce_period, resolve
from landchange.analysis.change import diff
from landchange.analysis.series import series
from landchange.analysis.trend import trend
from landchange.aoi import AreaOfInterest
from landchange.archive import ArchiveCatalog
from landchange.collection import RasterCollection
from landchange.config import AnalysisConfig
from landchange.export import ExportRequest, difference_description, trend_description
from landchange.period import Period
from landchange.query import query
from landchange.raster import Raster
from landchange.results import ChangeAnalysisResult, ResultMetadata

logger = logging.getLogger(__name__)


# ── Period helpers ─────────────────────────────────────────────────


def _period_raster(
    collection: RasterCollection,
    band: str,
    period: Period,
    role: str,
    config: AnalysisConfig,
    result: ChangeAnalysisResult,
    aoi: AreaOfInterest,
    first: bool = False,
) -> Raster:
    """Reduce *band* over *period*, recording availability on *result*.

    Periods average every member raster; with *first* the earliest
    raster of the period is taken instead.
    """
    members = collection.filter_period(period)
    if first:
        reduced = reduce_first(members, band, period.start)
    else:
        reduced = reduce_period(members, band, period.start)

    count = 0 if reduced.is_empty else reduced.member_count
    result.metadata.member_counts[f"{period.label}/{band}"] = count
    if reduced.is_empty:
        filler = "zeros" if config.fallback == "zero" else "masked pixels"
        result.warnings.append(
            f"No {band} rasters for {role} {period}; filled with {filler}"
        )
    return resolve(reduced, collection.grid, config.fallback).clip(aoi)


def _reflectance(
    collection: RasterCollection,
    period: Period,
    role: str,
    result: ChangeAnalysisResult,
    aoi: AreaOfInterest,
) -> Raster | None:
    combined = composite(collection.filter_period(period), timestamp=period.start)
    if combined is None:
        result.warnings.append(f"No reflectance composites for {role} {period}")
        return None
    return combined.clip(aoi)


# ── Pipeline ───────────────────────────────────────────────────────


def run_change_analysis(
    catalog: ArchiveCatalog,
    config: AnalysisConfig,
    aoi: AreaOfInterest | None = None,
) -> ChangeAnalysisResult:
    """Run the full change analysis described by *config*.

    Produces, for every configured index band, the AOI-clipped
    difference between the comparison and baseline period means and the
    regional time series; plus the long-term trend of the trend band,
    the optional single-year comparison, the reflectance composites and
    one export request per difference and trend raster.

    Empty periods never abort the run: they resolve to the configured
    fallback and add a warning to the result.

    Args:
        catalog: Archives addressable by the names used in *config*.
        config: Analysis parameters.
        aoi: Area of interest; defaults to the ring in *config*.

    Returns:
        ``ChangeAnalysisResult`` with rasters, series, exports and
        warnings.

    Raises:
        ConfigurationError: If a configured archive is not in *catalog*.
        SchemaMismatchError: If an archive lacks the configured band.
        ArchiveError: If an archive read fails.

    Example:
        >>> result = run_change_analysis(catalog, AnalysisConfig())  # doctest: +SKIP
        >>> result.differences["dNDVI"].bands  # doctest: +SKIP
        ('dNDVI',)
    """
    region = aoi if aoi is not None else config.area_of_interest()
    years = config.years
    baseline = config.baseline_period
    compare = config.compare_period
    grid_crs = config.crs

    result = ChangeAnalysisResult(
        metadata=ResultMetadata(
            aoi_bounds=dict(zip(("minx", "miny", "maxx", "maxy"), region.bounds)),
            baseline=str(baseline),
            compare=str(compare),
            analysis_years=str(years),
            crs=grid_crs,
            scale_m=config.export_scale,
            fallback=config.fallback,
        ),
    )
    logger.info(
        "Running change analysis %s vs %s over %s",
        baseline,
        compare,
        region,
    )

    collections: dict[str, RasterCollection] = {}
    for band, archive_name in config.index_archives.items():
        collection = query(
            catalog, archive_name, region, years, scale=config.export_scale, crs=grid_crs
        )
        collections[band] = collection
        if collection.is_empty:
            result.warnings.append(f"Archive {archive_name} has no rasters for {years}")

        baseline_raster = _period_raster(
            collection, band, baseline, "baseline", config, result, region
        )
        compare_raster = _period_raster(
            collection, band, compare, "compare", config, result, region
        )
        result.differences[f"d{band}"] = diff(compare_raster, baseline_raster, f"d{band}")

        result.series[band] = series(
            collection,
            band,
            region,
            reducer=config.series_reducer,
            scale=config.series_scale,
        )

    trend_band = config.trend_band
    trend_collection = collections[trend_band]
    if config.quick_compare is not None:
        from_year, to_year = config.quick_compare
        from_raster, to_raster = (
            _period_raster(
                trend_collection,
                trend_band,
                Period.single(year),
                "year",
                config,
                result,
                region,
                first=True,
            )
            for year in (from_year, to_year)
        )
        result.quick_difference = diff(
            to_raster, from_raster, f"d{trend_band}_{from_year}_{to_year}"
        )

    result.trend = trend(trend_collection, trend_band, reference_year=years.start_year).clip(
        region
    )

    if config.reflectance_archive is not None:
        reflectance = query(
            catalog,
            config.reflectance_archive,
            region,
            years,
            scale=config.export_scale,
            crs=grid_crs,
        )
        result.reflectance["baseline"] = _reflectance(
            reflectance, baseline, "baseline", result, region
        )
        result.reflectance["compare"] = _reflectance(
            reflectance, compare, "compare", result, region
        )

    prefix = config.description_prefix
    for band, raster in result.differences.items():
        result.exports.append(
            ExportRequest.for_raster(
                difference_description(prefix, band, baseline, compare),
                raster,
                region,
                scale=config.export_scale,
                max_pixels=config.max_pixels,
                file_format=config.file_format,
            )
        )
    result.exports.append(
        ExportRequest.for_raster(
            trend_description(prefix, trend_band, years),
            result.trend,
            region,
            scale=config.export_scale,
            max_pixels=config.max_pixels,
            file_format=config.file_format,
        )
    )

    for warning in result.warnings:
        logger.info(warning)
    return result
