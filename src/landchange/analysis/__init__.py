"""Raster analysis: period aggregation, change, trend and regional series."""

from landchange.analysis.aggregate import (
    aggregate,
    composite,
    first_or_zero,
    reduce_first,
    reduce_period,
    resolve,
)
from landchange.analysis.change import diff
from landchange.analysis.series import get_reducers, series
from landchange.analysis.trend import linear_fit, trend

__all__ = [
    "aggregate",
    "composite",
    "diff",
    "first_or_zero",
    "get_reducers",
    "linear_fit",
    "reduce_first",
    "reduce_period",
    "resolve",
    "series",
    "trend",
]
