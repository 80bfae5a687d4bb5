# scenario_model/projections/reconciliation.py
"""
Combines back-fit predictions for observed years with per-scenario forecasts
into one long table ready for charting.

Each row of the result carries a ``value_type`` of the form
``Prediction - <scenario label>``; the back-fit series is repeated once per
scenario label so every scenario's line starts from the model fit over the
observed period.
"""

import logging
from typing import Iterable, Mapping, Optional

import pandas as pd

from scenario_model.data.readers import HistoricDataStore
from scenario_model.exceptions import InvalidParameterError, MissingColumnsError
from scenario_model.features.lags import DEFAULT_LAG_DEPTH, create_lag_variables
from scenario_model.ml.models import FittedModel
from scenario_model.ml.prediction import predict_all
from scenario_model.scenarios.tables import CUSTOM, SCENARIO_LABELS, SCENARIO_NAMES
from scenario_model.schema.columns import (
    METRIC,
    MONTH,
    NHS_REGION,
    ORG,
    PREDICTION_OUTPUT_COLUMNS,
    QUARTER,
    RECONCILED_OUTPUT_COLUMNS,
    VALUE,
    VALUE_TYPE,
    YEAR,
    validate_columns_exist,
)

from .forecaster import DEFAULT_CUTOVER_YEAR, DEFAULT_EXTENSION_YEARS, forecast

logger = logging.getLogger(__name__)

PREDICTION_PREFIX = "Prediction"
LABEL_SEPARATOR = " - "
DEFAULT_CUSTOM_NAME = "custom scenario"
DEFAULT_OBSERVED_SCALE = 100.0


def validate_custom_name(custom_name: str) -> str:
    """
    Reject custom scenario names that would make ``value_type`` ambiguous.

    Raises:
        InvalidParameterError: The name is empty, contains a hyphen or repeats
            a template scenario's label.
    """
    name = str(custom_name).strip()
    if not name:
        raise InvalidParameterError("The custom scenario name cannot be empty")
    if "-" in name:
        raise InvalidParameterError("A hyphen cannot be used in the scenario name. Please rename the scenario.")
    if name.lower() in {label.lower() for label in SCENARIO_LABELS.values()}:
        raise InvalidParameterError(f"{name!r} is already the name of a template scenario")
    return name


def scenario_label(scenario: str, custom_name: str = DEFAULT_CUSTOM_NAME) -> str:
    if scenario == CUSTOM:
        return validate_custom_name(custom_name)
    if scenario not in SCENARIO_LABELS:
        raise InvalidParameterError(f"Unknown scenario {scenario!r}; expected one of {list(SCENARIO_NAMES)}")
    return SCENARIO_LABELS[scenario]


def value_type_label(scenario: str, custom_name: str = DEFAULT_CUSTOM_NAME) -> str:
    """``Prediction - <label>`` for a named scenario."""
    return f"{PREDICTION_PREFIX}{LABEL_SEPARATOR}{scenario_label(scenario, custom_name)}"


def observed_pairs(store: HistoricDataStore, organization: str) -> pd.DataFrame:
    """Distinct (year, metric) pairs with observed data for an organization."""
    observed = store.fetch(organization)
    return observed[[YEAR, METRIC]].drop_duplicates().reset_index(drop=True)


def observed_period_predictions(
    store: HistoricDataStore,
    organization: str,
    models: Mapping[str, FittedModel],
    scale: float = DEFAULT_OBSERVED_SCALE,
    lag_depth: int = DEFAULT_LAG_DEPTH,
) -> pd.DataFrame:
    """
    Model fit over the observed period.

    Every observed year of the organization's data, across all domains, is
    lagged and passed through every model. Predictions are multiplied by
    ``scale`` and kept only where the (year, metric) pair is itself observed.

    Returns:
        DataFrame of ``metric``, ``year``, ``org``, ``value``.
    """
    observed = store.fetch(organization)
    if observed.empty or not models:
        return pd.DataFrame(columns=PREDICTION_OUTPUT_COLUMNS)

    inputs = observed.pivot(index=[ORG, YEAR], columns=METRIC, values=VALUE).reset_index()
    inputs.columns.name = None
    for target in models:
        if target not in inputs.columns:
            inputs[target] = float("nan")
    inputs = create_lag_variables(inputs, lagged_years=lag_depth)
    inputs[QUARTER] = float("nan")
    inputs[MONTH] = float("nan")
    inputs[NHS_REGION] = None

    predictions = predict_all(models, inputs)
    predictions[VALUE] = predictions[VALUE] * scale
    predictions = predictions.dropna(subset=[VALUE])

    predictions = predictions.merge(observed_pairs(store, organization), on=[YEAR, METRIC], how="inner")
    logger.debug(f"{len(predictions)} back-fit predictions for {organization} over the observed period")
    return predictions[PREDICTION_OUTPUT_COLUMNS].reset_index(drop=True)


def _anti_join(predictions: pd.DataFrame, pairs: pd.DataFrame) -> pd.DataFrame:
    marked = predictions.merge(pairs.assign(_observed=True), on=[YEAR, METRIC], how="left")
    return marked[marked["_observed"].isna()].drop(columns="_observed")


def future_scenario_predictions(
    scenarios: Mapping[str, pd.DataFrame],
    display: Iterable[str],
    organization: str,
    models: Mapping[str, FittedModel],
    store: HistoricDataStore,
    custom_name: str = DEFAULT_CUSTOM_NAME,
    cutover_year: int = DEFAULT_CUTOVER_YEAR,
    lag_depth: int = DEFAULT_LAG_DEPTH,
    extension_years: int = DEFAULT_EXTENSION_YEARS,
) -> pd.DataFrame:
    """
    Forecast each displayed scenario and drop (year, metric) pairs that are
    already observed.

    Scenarios are processed in their canonical order regardless of the order
    of ``display``.
    """
    display = set(display)
    unknown = display - set(SCENARIO_NAMES)
    if unknown:
        raise InvalidParameterError(f"Unknown scenarios {sorted(unknown)}; expected any of {list(SCENARIO_NAMES)}")

    frames = []
    for name in SCENARIO_NAMES:
        if name not in display:
            continue
        if name not in scenarios:
            raise InvalidParameterError(f"No {name!r} scenario table to forecast")
        label = value_type_label(name, custom_name)
        predicted = forecast(
            scenarios[name],
            organization,
            models,
            store,
            cutover_year=cutover_year,
            lag_depth=lag_depth,
            extension_years=extension_years,
        )
        frames.append(predicted.assign(**{VALUE_TYPE: label}))

    if not frames:
        return pd.DataFrame(columns=RECONCILED_OUTPUT_COLUMNS)

    future = pd.concat(frames, ignore_index=True)
    future = _anti_join(future, observed_pairs(store, organization))
    return future[RECONCILED_OUTPUT_COLUMNS].reset_index(drop=True)


def reconcile_predictions(observed_predictions: pd.DataFrame, future_predictions: pd.DataFrame) -> pd.DataFrame:
    """
    Stack back-fit predictions, repeated once per scenario label, on top of
    the future predictions.
    """
    missing = validate_columns_exist(observed_predictions.columns, PREDICTION_OUTPUT_COLUMNS)
    if missing:
        raise MissingColumnsError(missing, "observed_predictions")
    missing = validate_columns_exist(future_predictions.columns, RECONCILED_OUTPUT_COLUMNS)
    if missing:
        raise MissingColumnsError(missing, "future_predictions")

    labels = future_predictions[[VALUE_TYPE]].drop_duplicates()
    backfit = observed_predictions[PREDICTION_OUTPUT_COLUMNS].merge(labels, how="cross")
    combined = pd.concat(
        [backfit[RECONCILED_OUTPUT_COLUMNS], future_predictions[RECONCILED_OUTPUT_COLUMNS]],
        ignore_index=True,
    )
    if combined.duplicated(subset=[VALUE_TYPE, METRIC, YEAR, ORG]).any():
        logger.warning("Reconciled predictions contain duplicate (value_type, metric, year, org) rows")
    return combined


def remove_scenario_predictions(predictions: Optional[pd.DataFrame], value_type: str) -> Optional[pd.DataFrame]:
    """
    Drop one scenario's rows. Returns None once no prediction rows remain.
    """
    if predictions is None:
        return None
    kept = predictions[predictions[VALUE_TYPE].str.lower() != value_type.lower()].reset_index(drop=True)
    if not kept[VALUE_TYPE].str.startswith(PREDICTION_PREFIX).any():
        return None
    return kept


def update_predictions(
    scenarios: Mapping[str, pd.DataFrame],
    display: Iterable[str],
    organization: str,
    models: Mapping[str, FittedModel],
    store: HistoricDataStore,
    custom_name: str = DEFAULT_CUSTOM_NAME,
    cutover_year: int = DEFAULT_CUTOVER_YEAR,
    lag_depth: int = DEFAULT_LAG_DEPTH,
    extension_years: int = DEFAULT_EXTENSION_YEARS,
    scale: float = DEFAULT_OBSERVED_SCALE,
) -> pd.DataFrame:
    """Reconciled predictions for every displayed scenario."""
    future = future_scenario_predictions(
        scenarios,
        display,
        organization,
        models,
        store,
        custom_name=custom_name,
        cutover_year=cutover_year,
        lag_depth=lag_depth,
        extension_years=extension_years,
    )
    backfit = observed_period_predictions(store, organization, models, scale=scale, lag_depth=lag_depth)
    reconciled = reconcile_predictions(backfit, future)
    logger.info(
        f"Reconciled {len(reconciled)} prediction rows for {organization} "
        f"across {future[VALUE_TYPE].nunique()} scenarios"
    )
    return reconciled
