# scenario_model/projections/forecaster.py
"""
Iterative, year-by-year forecasting of performance metrics for one scenario.

Performance models use lagged values of performance metrics as predictors, so
a year can only be predicted once every earlier year has been. Each iteration
predicts one year, carries those predictions forward into the lag columns of
the following years and hands an updated snapshot of the working frame to the
next iteration.

QuickStart:

```python
from scenario_model.projections.forecaster import forecast

predictions = forecast(scenario_table, "QAB", models, store, cutover_year=2023)
```
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from scenario_model.data.readers import HistoricDataStore
from scenario_model.exceptions import InvalidParameterError, MissingColumnsError
from scenario_model.features.lags import DEFAULT_LAG_DEPTH, create_lag_variables
from scenario_model.ml.models import FittedModel
from scenario_model.ml.prediction import predict_all
from scenario_model.scenarios.tables import scenario_to_long, year_columns
from scenario_model.schema.columns import (
    FRAME_ID_COLUMNS,
    INPUT_DOMAINS,
    METRIC,
    MONTH,
    NHS_REGION,
    ORG,
    PREDICTION_OUTPUT_COLUMNS,
    QUARTER,
    VALUE,
    YEAR,
    Domain,
    validate_columns_exist,
)

logger = logging.getLogger("scenario_model.forecast")

DEFAULT_CUTOVER_YEAR = 2023
DEFAULT_EXTENSION_YEARS = 3

REQUIRED_SCENARIO_NAMES = [ORG, YEAR, NHS_REGION, QUARTER, MONTH]
REQUIRED_PREDICTION_NAMES = [ORG, YEAR]


@dataclass(frozen=True)
class ForecastStep:
    """Snapshot after one forecast year has been resolved."""

    year: int
    predictions: pd.DataFrame
    working: pd.DataFrame
    filled: int


def _wide_by_metric(long: pd.DataFrame) -> pd.DataFrame:
    """Long (org, year, metric, value) -> one row per (org, year), one column per metric."""
    if long.empty:
        return pd.DataFrame(columns=[ORG, YEAR])
    wide = long.pivot(index=[ORG, YEAR], columns=METRIC, values=VALUE).reset_index()
    wide.columns.name = None
    return wide


def performance_frame(store: HistoricDataStore, organization: str) -> pd.DataFrame:
    """Observed performance metrics, one row per (org, year)."""
    observed = store.fetch(organization, domain_type=Domain.PERFORMANCE.value)
    return _wide_by_metric(observed[[ORG, YEAR, METRIC, VALUE]])


def scenario_history(
    scenario_table: pd.DataFrame,
    organization: str,
    store: Optional[HistoricDataStore] = None,
) -> pd.DataFrame:
    """
    Long demand/capacity history for a scenario.

    Scenario values cover the scenario's own years. Observed values of the
    same metrics fill the years before the scenario starts so lag features of
    the first scenario years have something to draw on.
    """
    scenario_long = scenario_to_long(scenario_table)[[METRIC, YEAR, VALUE]]
    scenario_long[ORG] = organization

    if store is None or scenario_long.empty:
        return scenario_long

    first_year = int(scenario_long[YEAR].min())
    observed = store.fetch(organization, domain=INPUT_DOMAINS)
    earlier = observed[
        (observed[YEAR] < first_year) & observed[METRIC].isin(scenario_long[METRIC].unique())
    ][[METRIC, YEAR, VALUE, ORG]]
    return pd.concat([earlier, scenario_long], ignore_index=True)


def build_working_frame(
    history: pd.DataFrame,
    performance: pd.DataFrame,
    targets: List[str],
    cutover_year: int,
    lag_depth: int = DEFAULT_LAG_DEPTH,
) -> pd.DataFrame:
    """
    Join scenario inputs with observed performance, add lag columns and keep
    the years from ``cutover_year`` onwards.
    """
    inputs = _wide_by_metric(history)
    working = inputs.merge(performance, on=[ORG, YEAR], how="left") if not performance.empty else inputs
    for target in targets:
        if target not in working.columns:
            working[target] = np.nan

    working = create_lag_variables(working, lagged_years=lag_depth)
    working = working[working[YEAR] >= cutover_year].reset_index(drop=True)

    position = working.columns.get_loc(YEAR) + 1
    working.insert(position, NHS_REGION, pd.Series([None] * len(working), dtype=object))
    working.insert(position + 1, QUARTER, pd.Series(np.nan, index=working.index))
    working.insert(position + 2, MONTH, pd.Series(np.nan, index=working.index))
    return working


def update_scenario_performance_data_with_predictions(
    scenario_data: pd.DataFrame,
    prediction_data: pd.DataFrame,
) -> Tuple[pd.DataFrame, int]:
    """
    Fill missing cells of the working frame from a prediction frame.

    Only cells that are missing in ``scenario_data`` receive a value; observed,
    user-edited and previously predicted values are preserved. Prediction rows
    or columns with no counterpart in ``scenario_data`` are ignored, which
    happens for the lagged years past the scenario's horizon.

    Returns:
        (new frame of identical shape, number of cells filled)

    Raises:
        MissingColumnsError: Either frame lacks its identity columns.
    """
    missing = validate_columns_exist(scenario_data.columns, REQUIRED_SCENARIO_NAMES)
    if missing:
        raise MissingColumnsError(missing, "scenario_data")
    missing = validate_columns_exist(prediction_data.columns, REQUIRED_PREDICTION_NAMES)
    if missing:
        raise MissingColumnsError(missing, "prediction_data")

    updated = scenario_data.copy()
    keys = pd.MultiIndex.from_frame(updated[[ORG, YEAR]])
    incoming_frame = prediction_data.set_index([ORG, YEAR])

    filled = 0
    for column in incoming_frame.columns:
        if column in FRAME_ID_COLUMNS or column not in updated.columns:
            continue
        incoming = incoming_frame[column].reindex(keys).to_numpy(dtype=float)
        fill = updated[column].isna().to_numpy() & ~np.isnan(incoming)
        if fill.any():
            updated.loc[fill, column] = incoming[fill]
            filled += int(fill.sum())
    return updated, filled


def _extend_predictions(year_predictions: pd.DataFrame, year: int, extension_years: int, lag_depth: int) -> pd.DataFrame:
    """
    Spread one year's predictions over ``year .. year + extension_years`` and
    lag them, so the following years' lag columns can be filled.
    """
    orgs = year_predictions[ORG].unique()
    metrics = year_predictions[METRIC].unique()
    grid = pd.MultiIndex.from_product(
        [range(year, year + extension_years + 1), orgs, metrics], names=[YEAR, ORG, METRIC]
    ).to_frame(index=False)
    completed = grid.merge(year_predictions[[YEAR, ORG, METRIC, VALUE]], on=[YEAR, ORG, METRIC], how="left")
    return create_lag_variables(_wide_by_metric(completed), lagged_years=lag_depth)


def prediction_years(working: pd.DataFrame, performance: pd.DataFrame) -> List[int]:
    """Scenario years with no observed performance data, ascending."""
    observed = set(performance[YEAR].astype(int)) if YEAR in performance.columns else set()
    return sorted(int(y) for y in set(working[YEAR].astype(int)) - observed)


def iterate_forecast(
    scenario_table: pd.DataFrame,
    organization: str,
    models: Mapping[str, FittedModel],
    store: HistoricDataStore,
    cutover_year: int = DEFAULT_CUTOVER_YEAR,
    lag_depth: int = DEFAULT_LAG_DEPTH,
    extension_years: int = DEFAULT_EXTENSION_YEARS,
) -> Iterator[ForecastStep]:
    """
    Resolve the scenario one year at a time, strictly ascending.

    Yields a ForecastStep per predicted year; each step's working frame is a
    new snapshot and earlier snapshots are never modified.
    """
    if extension_years < lag_depth:
        raise InvalidParameterError(
            f"extension_years ({extension_years}) must be at least lag_depth ({lag_depth})"
        )
    targets = sorted(models)

    years = year_columns(scenario_table)
    if years and not years[0] <= cutover_year <= years[-1]:
        logger.warning(
            f"Cutover year {cutover_year} lies outside the {organization} scenario years "
            f"{years[0]}-{years[-1]}; no performance values will be predicted before it"
        )

    performance = performance_frame(store, organization)
    history = scenario_history(scenario_table, organization, store)
    working = build_working_frame(history, performance, targets, cutover_year, lag_depth)

    for yr in prediction_years(working, performance):
        rows = working[working[YEAR] <= yr]
        predictions = predict_all(models, rows)
        year_predictions = predictions[predictions[YEAR] == yr].reset_index(drop=True)

        extended = _extend_predictions(year_predictions, yr, extension_years, lag_depth)
        working, filled = update_scenario_performance_data_with_predictions(working, extended)

        logger.info(
            f"[{organization} {yr}] predicted {year_predictions[VALUE].notna().sum()} of "
            f"{len(targets)} metrics, filled {filled} cells"
        )
        yield ForecastStep(year=yr, predictions=year_predictions, working=working, filled=filled)


def working_to_predictions(working: pd.DataFrame, targets: List[str]) -> pd.DataFrame:
    """Long-form values of the modelled performance metrics."""
    present = [t for t in targets if t in working.columns]
    if not present:
        return pd.DataFrame(columns=PREDICTION_OUTPUT_COLUMNS)
    long = working[[ORG, YEAR] + present].melt(id_vars=[ORG, YEAR], var_name=METRIC, value_name=VALUE)
    long = long.dropna(subset=[VALUE])
    long[YEAR] = long[YEAR].astype(int)
    long[VALUE] = long[VALUE].astype(float)
    return long[PREDICTION_OUTPUT_COLUMNS].sort_values([METRIC, ORG, YEAR], kind="mergesort").reset_index(drop=True)


def forecast(
    scenario_table: pd.DataFrame,
    organization: str,
    models: Mapping[str, FittedModel],
    store: HistoricDataStore,
    cutover_year: int = DEFAULT_CUTOVER_YEAR,
    lag_depth: int = DEFAULT_LAG_DEPTH,
    extension_years: int = DEFAULT_EXTENSION_YEARS,
) -> pd.DataFrame:
    """
    Performance metric values under a scenario, observed or predicted.

    Args:
        scenario_table: Wide demand/capacity scenario table.
        organization: Organization code the scenario belongs to.
        models: metric -> FittedModel for every modelled performance metric.
        store: Historic metric store providing observed performance data.
        cutover_year: First year whose performance values come from models.
        lag_depth: Number of lagged years exposed to the models.
        extension_years: Years a prediction is carried into lag slots.

    Returns:
        DataFrame of ``metric``, ``year``, ``org``, ``value`` for the modelled
        metrics, from ``cutover_year`` to the end of the scenario.
    """
    targets = sorted(models)
    steps = iterate_forecast(
        scenario_table,
        organization,
        models,
        store,
        cutover_year=cutover_year,
        lag_depth=lag_depth,
        extension_years=extension_years,
    )

    final_step = None
    for final_step in steps:
        pass

    if final_step is None:
        # nothing to predict; every scenario year already has observed data
        performance = performance_frame(store, organization)
        history = scenario_history(scenario_table, organization, store)
        working = build_working_frame(history, performance, targets, cutover_year, lag_depth)
    else:
        working = final_step.working

    return working_to_predictions(working, targets)
