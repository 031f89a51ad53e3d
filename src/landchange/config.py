"""Analysis configuration.

``AnalysisConfig`` is an immutable pydantic model passed explicitly to
the pipeline; there is no module-level default that callers mutate.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from landchange.aoi import AreaOfInterest, area_of_interest
from landchange.exceptions import ConfigurationError
from landchange.period import Period

logger = logging.getLogger(__name__)

LANDSAT_ANNUAL_SR = "LANDSAT/COMPOSITES/C02/T1_L2_ANNUAL"
LANDSAT_ANNUAL_NDVI = "LANDSAT/COMPOSITES/C02/T1_L2_ANNUAL_NDVI"
LANDSAT_ANNUAL_NBR = "LANDSAT/COMPOSITES/C02/T1_L2_ANNUAL_NBR"
LANDSAT_ANNUAL_NDWI = "LANDSAT/COMPOSITES/C02/T1_L2_ANNUAL_NDWI"

# Myitsone confluence, Kachin State.
MYITSONE_RING: tuple[tuple[float, float], ...] = (
    (97.317581, 25.495967),
    (97.317581, 25.88579),
    (97.733002, 25.88579),
    (97.733002, 25.495967),
)

_DEFAULT_INDEX_ARCHIVES: dict[str, str] = {
    "NDVI": LANDSAT_ANNUAL_NDVI,
    "NBR": LANDSAT_ANNUAL_NBR,
    "NDWI": LANDSAT_ANNUAL_NDWI,
}

# Display ranges carried through for downstream renderers.
_DEFAULT_VISUALIZATION: dict[str, dict[str, Any]] = {
    "NDVI": {"min": 0.0, "max": 1.0, "palette": ["#8B0000", "#FEE08B", "#1A9850"]},
    "NBR": {"min": -1.0, "max": 1.0, "palette": ["#8B0000", "#FEE08B", "#1A9850"]},
    "NDWI": {"min": -1.0, "max": 1.0, "palette": ["#8B0000", "#FEE08B", "#2B83BA"]},
    "difference": {"min": -0.3, "max": 0.3, "palette": ["#762A83", "#F7F7F7", "#1B7837"]},
    "slope": {"min": -0.01, "max": 0.01, "palette": ["#762A83", "#F7F7F7", "#1B7837"]},
    "false_color": {"bands": ["swir1", "nir", "green"], "min": 0.0, "max": 0.4},
}


class AnalysisConfig(BaseModel):
    """Parameters of one change analysis run.

    Year pairs are inclusive ``(start, end)`` ranges. Periods are
    validated on construction, so an invalid range raises
    ``InvalidRangeError`` before any archive is queried.

    Args:
        start_year: First year of the trend and series range.
        end_year: Last year of the trend and series range.
        baseline: Reference period for change detection.
        compare: Comparison period for change detection.
        quick_compare: ``(from_year, to_year)`` single-year comparison
            of the trend band, or ``None`` to skip it.
        index_archives: Archive name per index band.
        reflectance_archive: Archive of surface reflectance composites,
            or ``None`` to skip reflectance composites.
        trend_band: Index band fitted for the long-term trend.
        export_scale: Sampling resolution of change rasters, metres.
        series_scale: Sampling resolution of regional series, metres.
        series_reducer: Regional reducer of the series.
        max_pixels: Pixel ceiling per export.
        file_format: Export file format.
        description_prefix: Prefix of every export description.
        fallback: ``"zero"`` fills empty periods with zeros; ``"masked"``
            masks them instead.
        crs: CRS of the analysis grid.
        aoi: AOI ring of ``(lon, lat)`` vertices.
        visualization: Opaque display ranges per layer.

    Example:
        >>> cfg = AnalysisConfig(baseline=(1990, 1995))
        >>> cfg.baseline_period.label
        '1990_1995'
    """

    model_config = ConfigDict(frozen=True, validate_default=True, extra="forbid")

    start_year: int = 1986
    end_year: int = 2025
    baseline: tuple[int, int] = (1986, 1990)
    compare: tuple[int, int] = (2020, 2025)
    quick_compare: tuple[int, int] | None = (2000, 2025)
    index_archives: dict[str, str] = _DEFAULT_INDEX_ARCHIVES
    reflectance_archive: str | None = LANDSAT_ANNUAL_SR
    trend_band: str = "NDVI"
    export_scale: float = 30.0
    series_scale: float = 90.0
    series_reducer: str = "mean"
    max_pixels: float = 1e13
    file_format: Literal["GeoTIFF"] = "GeoTIFF"
    description_prefix: str = "Myitsone"
    fallback: Literal["zero", "masked"] = "zero"
    crs: str = "EPSG:4326"
    aoi: tuple[tuple[float, float], ...] = MYITSONE_RING
    visualization: dict[str, dict[str, Any]] = _DEFAULT_VISUALIZATION

    @field_validator("export_scale", "series_scale", "max_pixels")
    @classmethod
    def _validate_positive(cls, v: float) -> float:
        """Ensure scales and pixel ceiling are positive."""
        if v <= 0:
            msg = "must be greater than 0"
            raise ValueError(msg)
        return v

    @field_validator("index_archives")
    @classmethod
    def _validate_index_archives(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure at least one index band is configured."""
        if not v:
            msg = "index_archives must map at least one band to an archive"
            raise ValueError(msg)
        return v

    @field_validator("crs")
    @classmethod
    def _validate_crs(cls, v: str) -> str:
        """Ensure CRS matches EPSG format."""
        if not re.match(r"^EPSG:\d+$", v):
            msg = "crs must match 'EPSG:<number>' format"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def _validate_periods(self) -> AnalysisConfig:
        """Build every period once so invalid ranges fail here."""
        Period(self.start_year, self.end_year)
        Period(*self.baseline)
        Period(*self.compare)
        if self.trend_band not in self.index_archives:
            msg = f"trend_band {self.trend_band!r} is not in index_archives"
            raise ValueError(msg)
        return self

    @property
    def years(self) -> Period:
        """Full analysis range."""
        return Period(self.start_year, self.end_year)

    @property
    def baseline_period(self) -> Period:
        """Baseline period."""
        return Period(*self.baseline)

    @property
    def compare_period(self) -> Period:
        """Comparison period."""
        return Period(*self.compare)

    def area_of_interest(self) -> AreaOfInterest:
        """Return the validated AOI of the run.

        Raises:
            ConfigurationError: If the ring is not a valid WGS84 polygon.
        """
        return area_of_interest(self.aoi)


def load_config(path: str | Path) -> AnalysisConfig:
    """Load an ``AnalysisConfig`` from a JSON file.

    Missing keys keep their defaults.

    Args:
        path: Path to a JSON object of ``AnalysisConfig`` fields.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If the file cannot be read or is not a JSON
            object.
        InvalidRangeError: If a configured period ends before it starts.
        ValidationError: If a field fails pydantic validation.
    """
    resolved = Path(path).expanduser()
    try:
        text = resolved.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigurationError(
            what="Cannot read analysis configuration",
            cause=f"File not found: {resolved}",
            fix="Pass the path of an existing JSON configuration file",
        ) from None
    except PermissionError:
        raise ConfigurationError(
            what="Cannot read analysis configuration",
            cause=f"Permission denied: {resolved}",
            fix=f"Check file permissions on {resolved}",
        ) from None

    try:
        parsed: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            what="Invalid analysis configuration format",
            cause=f"JSON parse error in {resolved}: {exc}",
            fix='Ensure the file contains a JSON object, e.g. {"baseline": [1986, 1990]}',
        ) from None

    if not isinstance(parsed, dict):
        raise ConfigurationError(
            what="Invalid analysis configuration format",
            cause=f"Expected a JSON object in {resolved}, got {type(parsed).__name__}",
            fix='Ensure the file contains a JSON object, e.g. {"baseline": [1986, 1990]}',
        )

    logger.debug("Loaded analysis configuration from %s", resolved)
    return AnalysisConfig(**parsed)
