# scenario_model/ml/prediction.py
"""
Applies fitted per-metric models to input rows.

Level models are called directly on the rows. Difference models are called on
year-over-year differences of the features, and their output is added to the
previous year's level of the target metric.
"""

import inspect
import logging
from typing import Mapping

import numpy as np
import pandas as pd

from scenario_model.exceptions import MissingColumnsError
from scenario_model.schema.columns import (
    METRIC,
    NON_DIFFERENCED_COLUMNS,
    ORG,
    PREDICTION_OUTPUT_COLUMNS,
    VALUE,
    YEAR,
    lag_column,
    validate_columns_exist,
)

from .models import PENALIZED_LINEAR, FittedModel, engine_family, model_features, resolve_penalty

logger = logging.getLogger(__name__)


def difference_features(input_rows: pd.DataFrame) -> pd.DataFrame:
    """
    Row-wise difference of every non-identity numeric column from the
    preceding row of the same organization, ordered by year.

    The first row of each organization differences against zero, so it keeps
    its own value. The result is aligned to ``input_rows``' index.
    """
    ordered = input_rows.sort_values([ORG, YEAR], kind="mergesort")
    value_cols = [
        c
        for c in ordered.select_dtypes(include="number").columns
        if c not in NON_DIFFERENCED_COLUMNS
    ]
    previous = ordered.groupby(ORG, sort=False)[value_cols].shift(1, fill_value=0)
    differenced = ordered.copy()
    differenced[value_cols] = ordered[value_cols] - previous
    return differenced.loc[input_rows.index]


def previous_level(input_rows: pd.DataFrame, target: str) -> pd.Series:
    """
    The target's value in the preceding year of the same organization.

    Where the preceding row is not part of ``input_rows`` the target's one-year
    lag column stands in for it.
    """
    ordered = input_rows.sort_values([ORG, YEAR], kind="mergesort")
    previous = ordered.groupby(ORG, sort=False)[target].shift(1).loc[input_rows.index]
    lagged = lag_column(target, 1)
    if lagged in input_rows.columns:
        previous = previous.fillna(input_rows[lagged])
    return previous


def _call_estimator(model: FittedModel, family: str, X: pd.DataFrame) -> np.ndarray:
    predict_fn = model.estimator.predict
    if family == PENALIZED_LINEAR:
        penalty = resolve_penalty(model)
        # wrappers that keep a whole regularization path take the penalty at predict time
        if "penalty" in inspect.signature(predict_fn).parameters:
            return np.asarray(predict_fn(X, penalty=penalty), dtype=float).ravel()
        logger.debug(f"Predicting {model.target!r} at fitted penalty {penalty}")
    return np.asarray(predict_fn(X), dtype=float).ravel()


def predict(model: FittedModel, input_rows: pd.DataFrame) -> pd.DataFrame:
    """
    Predict one target metric for every input row.

    Args:
        model: Fitted model for a single target metric.
        input_rows: Row-per-(org, year) frame holding the model's features and,
            for difference models, the target metric's levels.

    Returns:
        DataFrame of ``metric``, ``year``, ``org``, ``value`` in input row order.
        Rows with incomplete features get a missing prediction.

    Raises:
        UnrecognizedEngineError: The model's engine kind is unsupported.
        MissingColumnsError: Identity, feature or target columns are absent.
    """
    family = engine_family(model.engine)

    missing = validate_columns_exist(input_rows.columns, [ORG, YEAR])
    if missing:
        raise MissingColumnsError(missing, "input_data")

    rows = input_rows.reset_index(drop=True)
    features = list(model_features(model))

    if model.is_difference:
        if model.target not in rows.columns:
            raise MissingColumnsError([model.target], "input_data")
        base_level = previous_level(rows, model.target)
        design = difference_features(rows)
    else:
        base_level = None
        design = rows

    missing = validate_columns_exist(design.columns, features)
    if missing:
        raise MissingColumnsError(missing, f"input_data for model {model.target!r}")

    X = design[features]
    complete = X.notna().all(axis=1).to_numpy()
    raw = np.full(len(rows), np.nan)
    if complete.any():
        raw[complete] = _call_estimator(model, family, X.loc[complete])
    if not complete.all():
        logger.debug(f"{int((~complete).sum())} rows with incomplete features left unpredicted for {model.target!r}")

    value = raw if base_level is None else raw + base_level.to_numpy(dtype=float)

    return pd.DataFrame(
        {
            METRIC: model.target,
            YEAR: rows[YEAR].to_numpy(),
            ORG: rows[ORG].to_numpy(),
            VALUE: value,
        },
        columns=PREDICTION_OUTPUT_COLUMNS,
    )


def predict_all(models: Mapping[str, FittedModel], input_rows: pd.DataFrame) -> pd.DataFrame:
    """Long-form predictions of every modelled metric for every input row."""
    if not models:
        return pd.DataFrame(columns=PREDICTION_OUTPUT_COLUMNS)
    frames = [predict(models[target], input_rows) for target in sorted(models)]
    return pd.concat(frames, ignore_index=True)
