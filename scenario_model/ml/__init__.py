"""Fitted model artifacts, prediction and predictor importance."""

from .importance import create_scenario_table, curate_custom_table, important_variables
from .models import (
    DIFFERENCE,
    LEVEL,
    PENALIZED_LINEAR,
    RANDOM_FOREST,
    FittedModel,
    build_fitted_model,
    build_model_collection,
    derive_model_kind,
    engine_family,
    load_model_collection,
    permutation_importance_tables,
    save_model_collection,
)
from .prediction import difference_features, predict, predict_all

__all__ = [
    "create_scenario_table",
    "curate_custom_table",
    "important_variables",
    "DIFFERENCE",
    "LEVEL",
    "PENALIZED_LINEAR",
    "RANDOM_FOREST",
    "FittedModel",
    "build_fitted_model",
    "build_model_collection",
    "derive_model_kind",
    "engine_family",
    "load_model_collection",
    "permutation_importance_tables",
    "save_model_collection",
    "difference_features",
    "predict",
    "predict_all",
]
