# scenario_model/ml/importance.py
"""
Ranks scenario inputs by how much the performance models rely on them and
splits a scenario table into the rows worth showing and the rest.
"""

import logging
from typing import Iterable, Mapping, Optional, Tuple

import pandas as pd

from scenario_model.exceptions import InvalidParameterError, MissingColumnsError
from scenario_model.schema.columns import METRIC, strip_lag_prefix

logger = logging.getLogger(__name__)

TABLE_OPTIONS = ("all", "important", "top_n")
DEFAULT_TOP_N = 15


def important_variables(
    permutation_importance: Mapping[str, pd.DataFrame],
    performance_metrics: Iterable[str],
    top_n: Optional[int] = None,
) -> list:
    """
    Predictor variables ordered by importance across the selected models.

    A lagged predictor counts towards its unlagged variable. For each model the
    maximum importance per variable is kept, then the mean across models gives
    the ranking. A model's own target is never listed as its predictor.

    Args:
        permutation_importance: metric -> table of Variable, Importance, StDev.
        performance_metrics: Modelled metrics whose predictors are ranked.
        top_n: Optionally keep only the first ``top_n`` variables.

    Raises:
        InvalidParameterError: A performance metric has no associated model.
    """
    performance_metrics = list(performance_metrics)
    unknown = [m for m in performance_metrics if m not in permutation_importance]
    if unknown:
        raise InvalidParameterError(
            f"not all the inputs for performance_metrics have associated models: {unknown}"
        )
    if not performance_metrics:
        return []

    tables = [
        permutation_importance[metric].assign(**{METRIC: metric})
        for metric in performance_metrics
    ]
    combined = pd.concat(tables, ignore_index=True)
    combined["Variable"] = combined["Variable"].astype(str).map(strip_lag_prefix)
    combined = combined[combined[METRIC] != combined["Variable"]]

    per_model = combined.groupby([METRIC, "Variable"], sort=False)["Importance"].max()
    ranking = (
        per_model.groupby(level="Variable", sort=False)
        .mean()
        .sort_values(ascending=False, kind="mergesort")
    )
    if top_n is not None:
        ranking = ranking.head(top_n)
    return ranking.index.tolist()


def create_scenario_table(custom_table: pd.DataFrame, important_vars: list, table_type: str) -> pd.DataFrame:
    """
    Display or stored part of a scenario table.

    ``display`` keeps the important metrics in importance order; ``stored``
    keeps everything else in its original order.
    """
    if table_type not in ("display", "stored"):
        raise InvalidParameterError(f"table_type must be 'display' or 'stored', got {table_type!r}")
    if METRIC not in custom_table.columns:
        raise MissingColumnsError([METRIC], "custom_table")

    is_important = custom_table[METRIC].isin(important_vars)
    if table_type == "stored":
        return custom_table[~is_important].reset_index(drop=True)

    rank = {var: i for i, var in enumerate(important_vars)}
    display = custom_table[is_important]
    order = display[METRIC].map(rank).sort_values(kind="mergesort").index
    return display.loc[order].reset_index(drop=True)


def curate_custom_table(
    input_table: pd.DataFrame,
    permutation_importance: Mapping[str, pd.DataFrame],
    performance_metrics: Iterable[str],
    table_option: str = "all",
    top_n: int = DEFAULT_TOP_N,
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """
    Split a scenario table for editing.

    Returns:
        (display, stored, combined) where combined is display followed by stored.
    """
    if table_option not in TABLE_OPTIONS:
        raise InvalidParameterError(
            f"table_option must be one of {list(TABLE_OPTIONS)}, got {table_option!r}"
        )

    if table_option == "all":
        display = input_table.reset_index(drop=True)
        stored = input_table.head(0)
    else:
        important_vars = important_variables(permutation_importance, performance_metrics)
        important = create_scenario_table(input_table, important_vars, "display")
        remaining = create_scenario_table(input_table, important_vars, "stored")
        if table_option == "important":
            display, stored = important, remaining
        else:
            display = important.head(top_n)
            stored = pd.concat([important.iloc[top_n:], remaining], ignore_index=True)

    logger.debug(f"Curated custom table ({table_option}): {len(display)} displayed, {len(stored)} stored")
    combined = pd.concat([display, stored], ignore_index=True)
    return display, stored, combined
