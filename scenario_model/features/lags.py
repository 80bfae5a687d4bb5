# scenario_model/features/lags.py
"""
Lagged copies of every metric column, computed within each organization's own
time ordering.
"""

import logging
from typing import List, Sequence

import pandas as pd

from scenario_model.exceptions import InvalidParameterError, MissingColumnsError
from scenario_model.schema.columns import (
    FRAME_ID_COLUMNS,
    LAG_SORT_ORDER,
    ORG,
    YEAR,
    is_lag_column,
    lag_column,
    validate_columns_exist,
)

logger = logging.getLogger(__name__)

DEFAULT_LAG_DEPTH = 2


def lag_source_columns(data: pd.DataFrame, id_columns: Sequence[str] = FRAME_ID_COLUMNS) -> List:
    """Columns that receive lagged copies: everything except identity and existing lag columns."""
    return [c for c in data.columns if c not in id_columns and not is_lag_column(c)]


def create_lag_variables(
    data: pd.DataFrame,
    lagged_years: int = DEFAULT_LAG_DEPTH,
    id_columns: Sequence[str] = FRAME_ID_COLUMNS,
) -> pd.DataFrame:
    """
    Add ``lag_k_<col>`` for k = 1..lagged_years to every value column.

    Rows are partitioned by organization and ordered by year (then quarter and
    month when present). The first k rows of each partition have a missing
    ``lag_k`` value; values never cross organizations. Lag columns already in
    ``data`` are recomputed rather than lagged again.

    Args:
        data: Row-per-(organization, year) table.
        lagged_years: Lag depth K.
        id_columns: Identity columns that are never lagged.

    Returns:
        New DataFrame ordered by organization then time, with the lag columns
        appended after the original columns.
    """
    if lagged_years < 1:
        raise InvalidParameterError(f"lagged_years must be at least 1, got {lagged_years}")

    missing = validate_columns_exist(data.columns, [ORG, YEAR])
    if missing:
        raise MissingColumnsError(missing, "lag input data")

    lag_vars = lag_source_columns(data, id_columns)
    stale = [lag_column(col, k) for col in lag_vars for k in range(1, lagged_years + 1)]
    base = data.drop(columns=[c for c in stale if c in data.columns])

    sort_cols = [ORG] + [c for c in LAG_SORT_ORDER if c != ORG and c in base.columns]
    base = base.sort_values(sort_cols, kind="mergesort").reset_index(drop=True)

    if not lag_vars:
        return base

    grouped = base.groupby(ORG, sort=False)[lag_vars]
    shifted = {k: grouped.shift(k) for k in range(1, lagged_years + 1)}
    lagged = {
        lag_column(col, k): shifted[k][col]
        for col in lag_vars
        for k in range(1, lagged_years + 1)
    }

    logger.debug(
        f"Created {len(lagged)} lag columns for {len(lag_vars)} variables "
        f"across {base[ORG].nunique()} organizations"
    )
    return pd.concat([base, pd.DataFrame(lagged, index=base.index)], axis=1)
