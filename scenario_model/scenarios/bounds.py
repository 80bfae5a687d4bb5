# scenario_model/scenarios/bounds.py
"""
Keeps scenario inputs within real limits.

Every value is clamped, never rejected: negatives go to 0, proportion-like
metrics are capped at 100, and every metric is held inside the range it has
historically taken.
"""

import logging

import pandas as pd

from scenario_model.exceptions import MissingColumnsError
from scenario_model.schema.columns import METRIC, VALUE, is_proportion_metric, validate_columns_exist

from .tables import year_columns

logger = logging.getLogger(__name__)

MIN_VAL = "min_val"
MAX_VAL = "max_val"


def historic_ranges(historic_data: pd.DataFrame) -> pd.DataFrame:
    """Observed [min, max] of every metric, ignoring missing values."""
    missing = validate_columns_exist(historic_data.columns, [METRIC, VALUE])
    if missing:
        raise MissingColumnsError(missing, "historic_data")
    return (
        historic_data.groupby(METRIC)[VALUE]
        .agg(**{MIN_VAL: "min", MAX_VAL: "max"})
        .reset_index()
    )


def _clamp_to_proportion(values: pd.DataFrame, proportion_rows: pd.Series) -> pd.DataFrame:
    values = values.mask(values < 0, 0.0)
    if proportion_rows.any():
        capped = values.loc[proportion_rows]
        values.loc[proportion_rows] = capped.mask(capped > 100, 100.0)
    return values


def enforce(table: pd.DataFrame, ranges: pd.DataFrame) -> pd.DataFrame:
    """
    Clamp every year column of a wide scenario table.

    Rules, applied per metric row:
      1. negative values become 0;
      2. metrics matching ``proportion|prevalence|%`` are capped at 100;
      3. values are held within the metric's historic [min, max].

    Rule 3 can tighten rules 1-2 but never widen them. Metrics without a
    historic range are only subject to rules 1-2. Missing values stay missing.

    Args:
        table: Wide scenario table with a ``metric`` column and integer year columns.
        ranges: Output of :func:`historic_ranges`.

    Returns:
        New table of the same shape.
    """
    if METRIC not in table.columns:
        raise MissingColumnsError([METRIC], "scenario inputs")

    years = year_columns(table)
    out = table.copy()
    if not years or out.empty:
        return out

    bounds = ranges.set_index(METRIC)
    min_val = out[METRIC].map(bounds[MIN_VAL]).astype(float)
    max_val = out[METRIC].map(bounds[MAX_VAL]).astype(float)
    proportion_rows = out[METRIC].map(is_proportion_metric).astype(bool)

    values = out[years].astype(float)
    values = _clamp_to_proportion(values, proportion_rows)
    values = values.mask(values.gt(max_val, axis=0), max_val, axis=0)
    values = values.mask(values.lt(min_val, axis=0), min_val, axis=0)
    # a historic bound outside [0, 100] must not widen rules 1-2
    values = _clamp_to_proportion(values, proportion_rows)

    unbounded = out.loc[min_val.isna() & max_val.isna(), METRIC].tolist()
    if unbounded:
        logger.debug(f"No historic range for metrics {unbounded}; applied only non-negative/proportion limits")

    out[years] = values
    return out
