# scenario_model/scenarios/tables.py
"""
Helpers for wide scenario tables.

A scenario table has one row per (domain, metric) and one column per year.
Year columns are always integer labels; conversion to and from long-form
records happens only at component boundaries.
"""

import logging
from typing import Dict, List

import numpy as np
import pandas as pd

from scenario_model.exceptions import InvalidParameterError, MissingColumnsError
from scenario_model.schema.columns import (
    DOMAIN,
    METRIC,
    SCENARIO_KEY_COLUMNS,
    VALUE,
    YEAR,
    validate_columns_exist,
)

logger = logging.getLogger(__name__)

# Named scenario variants held in session state
LAST_KNOWN = "last_known"
PERCENT = "percent"
LINEAR = "linear"
CUSTOM = "custom"
SCENARIO_NAMES = (LAST_KNOWN, PERCENT, LINEAR, CUSTOM)

# Generator strategy behind each template scenario
SCENARIO_STRATEGIES: Dict[str, str] = {
    LAST_KNOWN: "last_known_year",
    PERCENT: "percent_change",
    LINEAR: "linear",
}

# Human-readable labels used in ``value_type``
SCENARIO_LABELS: Dict[str, str] = {
    LAST_KNOWN: "last known value",
    PERCENT: "percent change",
    LINEAR: "linear extrapolation",
}


def _is_year_label(column) -> bool:
    return isinstance(column, (int, np.integer)) and not isinstance(column, bool)


def year_columns(table: pd.DataFrame) -> List[int]:
    """Sorted integer year columns of a wide scenario table."""
    return sorted(int(c) for c in table.columns if _is_year_label(c))


def key_columns(table: pd.DataFrame) -> List[str]:
    return [c for c in SCENARIO_KEY_COLUMNS if c in table.columns]


def scenario_to_long(table: pd.DataFrame) -> pd.DataFrame:
    """Wide scenario table -> long records of (domain, metric, year, value)."""
    if METRIC not in table.columns:
        raise MissingColumnsError([METRIC], "scenario table")
    keys = key_columns(table)
    years = year_columns(table)
    long = table[keys + years].melt(id_vars=keys, var_name=YEAR, value_name=VALUE)
    long[YEAR] = long[YEAR].astype(int)
    long[VALUE] = long[VALUE].astype(float)
    return long.sort_values(keys + [YEAR], kind="mergesort").reset_index(drop=True)


def scenario_from_long(long: pd.DataFrame) -> pd.DataFrame:
    """Long records of (domain, metric, year, value) -> wide scenario table."""
    missing = validate_columns_exist(long.columns, [METRIC, YEAR, VALUE])
    if missing:
        raise MissingColumnsError(missing, "long scenario data")
    keys = [c for c in SCENARIO_KEY_COLUMNS if c in long.columns]
    ordered = long.sort_values(keys + [YEAR], kind="mergesort")
    wide = ordered.pivot(index=keys, columns=YEAR, values=VALUE).reset_index()
    wide.columns.name = None
    wide = wide.rename(columns=lambda c: int(c) if _is_year_label(c) else c)
    return wide[keys + year_columns(wide)]


def year_values(table: pd.DataFrame, metric: str) -> Dict[int, float]:
    """Explicit ordered mapping year -> value for one metric row."""
    rows = table[table[METRIC] == metric]
    if rows.empty:
        raise InvalidParameterError(f"Metric {metric!r} not in scenario table")
    row = rows.iloc[0]
    return {year: float(row[year]) for year in year_columns(table)}


def coerce_year_columns(table: pd.DataFrame) -> pd.DataFrame:
    """
    Normalise an externally supplied scenario table.

    Column names are lower-cased, digit-only headers (``"2025"``) become integer
    year columns and their values are parsed as numbers after removing
    thousands separators.
    """
    renamed = {}
    for col in table.columns:
        if _is_year_label(col):
            renamed[col] = int(col)
        elif isinstance(col, str) and col.strip().isdigit():
            renamed[col] = int(col.strip())
        else:
            renamed[col] = str(col).strip().lower()
    out = table.rename(columns=renamed)

    for year in year_columns(out):
        column = out[year]
        if column.dtype == object:
            column = column.astype(str).str.replace(",", "", regex=False)
        out[year] = pd.to_numeric(column, errors="coerce").astype(float)

    if METRIC not in out.columns:
        raise MissingColumnsError([METRIC], "imported scenario table")
    return out
