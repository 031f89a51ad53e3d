"""Result object model for analysis outputs."""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
from pydantic import BaseModel, Field

from landchange.raster import Raster

if TYPE_CHECKING:
    import pandas as pd

    from landchange.export import ExportRequest

# ── Change interpretation thresholds (index units) ─────────────────
_STABLE_THRESHOLD: float = 0.02  # |mean change| below this is "stable"
_SIGNIFICANT_CHANGE_THRESHOLD: float = 0.15  # |mean change| above this is "significant"


def _interpret_change(delta: float) -> str:
    """Return plain-language interpretation of a mean index change.

    Args:
        delta: Mean of a difference raster (compare - baseline).

    Returns:
        Human-readable interpretation string.

    Example:
        >>> _interpret_change(-0.20)
        'significant decrease'
        >>> _interpret_change(0.01)
        'stable'
    """
    if math.isnan(delta):
        return "no data"
    if abs(delta) < _STABLE_THRESHOLD:
        return "stable"
    if delta > _SIGNIFICANT_CHANGE_THRESHOLD:
        return "significant increase"
    if delta > 0:
        return "increase"
    if delta < -_SIGNIFICANT_CHANGE_THRESHOLD:
        return "significant decrease"
    return "decrease"


def _raster_mean(raster: Raster) -> float:
    valid = raster.data[~np.isnan(raster.data)]
    if valid.size == 0:
        return float("nan")
    return float(valid.mean())


@dataclass(frozen=True)
class TimeSeries:
    """Regional reduction of one band over time.

    Attributes:
        band: Band the values were reduced from.
        reducer: Reducer name (e.g. ``"mean"``).
        scale: Sampling resolution of the reduction, in metres.
        points: ``(timestamp, value)`` pairs in ascending time order.

    Example:
        >>> from datetime import datetime, timezone
        >>> ts = TimeSeries("NDVI", "mean", 90.0, ((datetime(1986, 1, 1, tzinfo=timezone.utc), 0.61),))
        >>> ts.values
        [0.61]
    """

    band: str
    reducer: str
    scale: float
    points: tuple[tuple[datetime, float], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", tuple(sorted(self.points, key=lambda p: p[0])))

    @property
    def timestamps(self) -> list[datetime]:
        """Point timestamps in ascending order."""
        return [timestamp for timestamp, _ in self.points]

    @property
    def values(self) -> list[float]:
        """Point values in timestamp order."""
        return [value for _, value in self.points]

    @property
    def is_empty(self) -> bool:
        """``True`` when no raster contributed a value."""
        return not self.points

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[tuple[datetime, float]]:
        return iter(self.points)

    def __repr__(self) -> str:
        """Return summary representation without the raw points."""
        if not self.points:
            return f"TimeSeries(band={self.band!r}, reducer={self.reducer!r}, points=0)"
        first = self.points[0][0].year
        last = self.points[-1][0].year
        return (
            f"TimeSeries(band={self.band!r}, reducer={self.reducer!r}, "
            f"points={len(self.points)}, years={first}-{last})"
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Export the series to a pandas DataFrame.

        Returns:
            DataFrame with ``timestamp``, ``year`` and ``<band>`` columns,
            one row per point.

        Example:
            >>> ts.to_dataframe().columns.tolist()  # doctest: +SKIP
            ['timestamp', 'year', 'NDVI']
        """
        import pandas as pd

        rows: list[dict[str, Any]] = [
            {"timestamp": timestamp, "year": timestamp.year, self.band: value}
            for timestamp, value in self.points
        ]
        return pd.DataFrame(rows, columns=["timestamp", "year", self.band])

    def to_csv(self, path: str | Path) -> Path:
        """Write the series to a CSV file.

        Args:
            path: Output file path (will be created/overwritten).

        Returns:
            Path object pointing to the written file.
        """
        path = Path(path)
        self.to_dataframe().to_csv(path, index=False)
        return path


class ResultMetadata(BaseModel):
    """Metadata for a change analysis run.

    Uses Pydantic (not dataclass) for JSON serialization alongside the
    configuration model.

    Attributes:
        aoi_bounds: AOI bounding box ``{"minx", "miny", "maxx", "maxy"}``.
        baseline: Baseline period label (e.g. ``"1986-1990"``).
        compare: Comparison period label.
        analysis_years: Full analysis range label.
        crs: Coordinate reference system of the output grid.
        scale_m: Sampling resolution of the change rasters in metres.
        fallback: Empty-period fill policy (``"zero"`` or ``"masked"``).
        member_counts: Number of archive rasters per period and band,
            keyed ``"<period>/<band>"``.

    Example:
        >>> meta = ResultMetadata(baseline="1986-1990", compare="2020-2025")
        >>> meta.fallback
        'zero'
    """

    aoi_bounds: dict[str, float] = Field(default_factory=dict)
    baseline: str = ""
    compare: str = ""
    analysis_years: str = ""
    crs: str = ""
    scale_m: float | None = None
    fallback: str = "zero"
    member_counts: dict[str, int] = Field(default_factory=dict)


@dataclass
class ChangeAnalysisResult:
    """Outputs of a full change analysis over one AOI.

    Dataclass (not Pydantic) because rasters are the primary payload.

    Attributes:
        differences: Difference raster per index band, keyed by output
            band (``"dNDVI"``, ``"dNBR"``, ``"dNDWI"``), clipped to the AOI.
        quick_difference: Single-year difference of the trend band, or
            ``None`` when not requested.
        trend: Slope raster of the trend band, clipped to the AOI.
        series: Regional time series per index band.
        reflectance: Baseline and comparison reflectance composites
            (``None`` for an empty period), keyed ``"baseline"`` and
            ``"compare"``.
        exports: Export requests for the difference and trend rasters.
        metadata: Run metadata.
        warnings: Human-readable data availability warnings.
    """

    differences: dict[str, Raster] = field(default_factory=dict)
    quick_difference: Raster | None = None
    trend: Raster | None = None
    series: dict[str, TimeSeries] = field(default_factory=dict)
    reflectance: dict[str, Raster | None] = field(default_factory=dict)
    exports: list[ExportRequest] = field(default_factory=list)
    metadata: ResultMetadata = field(default_factory=ResultMetadata)
    warnings: list[str] = field(default_factory=list)

    def mean_change(self, band: str) -> float:
        """Return the AOI mean of difference raster *band* (NaN if none)."""
        raster = self.differences.get(band)
        return float("nan") if raster is None else _raster_mean(raster)

    def __repr__(self) -> str:
        """Return narrative summary for interactive display.

        Shows both periods, the mean change per index with an
        interpretation, and warnings. Does NOT show raw arrays.
        """
        lines: list[str] = [f"{type(self).__name__}("]
        if self.metadata.baseline and self.metadata.compare:
            lines.append(
                f"  periods: {self.metadata.baseline} → {self.metadata.compare}"
            )
        for band in self.differences:
            delta = self.mean_change(band)
            if math.isnan(delta):
                lines.append(f"  {band}: N/A (no data)")
            else:
                lines.append(f"  {band}: {delta:+.3f} ({_interpret_change(delta)})")
        if self.trend is not None:
            slope = _raster_mean(self.trend)
            slope_str = "N/A" if math.isnan(slope) else f"{slope:+.4f}/yr"
            lines.append(f"  {self.trend.single_band()}: {slope_str}")
        for band, ts in self.series.items():
            lines.append(f"  series {band}: {len(ts)} points")
        for w in self.warnings:
            lines.append(f"  ⚠ {w}")
        lines.append(")")
        return "\n".join(lines)

    def to_dataframe(self) -> pd.DataFrame:
        """Export the per-band summary to a pandas DataFrame.

        Returns:
            DataFrame with one row per difference raster: band, periods,
            AOI mean change and interpretation.
        """
        import pandas as pd

        rows: list[dict[str, Any]] = []
        for band in self.differences:
            delta = self.mean_change(band)
            rows.append(
                {
                    "band": band,
                    "baseline": self.metadata.baseline,
                    "compare": self.metadata.compare,
                    "mean_change": delta,
                    "interpretation": _interpret_change(delta),
                    "crs": self.metadata.crs,
                }
            )
        return pd.DataFrame(
            rows,
            columns=["band", "baseline", "compare", "mean_change", "interpretation", "crs"],
        )

    def series_dataframe(self) -> pd.DataFrame:
        """Join every time series on timestamp into one wide DataFrame."""
        import pandas as pd

        frames = [
            ts.to_dataframe().set_index(["timestamp", "year"])
            for ts in self.series.values()
        ]
        if not frames:
            return pd.DataFrame(columns=["timestamp", "year"])
        return pd.concat(frames, axis=1).sort_index().reset_index()
