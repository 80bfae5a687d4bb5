"""
Tests for loading fitted model collections and tagging their kind and engine.
"""
from dataclasses import replace

import joblib
import numpy as np
import pandas as pd
import pytest
from sklearn.ensemble import RandomForestRegressor

from scenario_model.exceptions import ModelConfigurationError, UnrecognizedEngineError
from scenario_model.ml.models import (
    DIFFERENCE,
    LEVEL,
    PENALIZED_LINEAR,
    RANDOM_FOREST,
    FittedModel,
    build_fitted_model,
    derive_model_kind,
    engine_family,
    load_model_collection,
    model_features,
    save_model_collection,
)

WAITS = "Proportion of 4hr waits"


@pytest.mark.parametrize("engine,family", [
    ("glmnet", PENALIZED_LINEAR),
    ("elasticnet", PENALIZED_LINEAR),
    ("Lasso", PENALIZED_LINEAR),
    ("random_forest", RANDOM_FOREST),
    ("randomforestregressor", RANDOM_FOREST),
    ("ranger", RANDOM_FOREST),
])
def test_engine_family(engine, family):
    assert engine_family(engine) == family


def test_unknown_engine_family():
    with pytest.raises(UnrecognizedEngineError):
        engine_family("gradientboostingregressor")


def test_derive_model_kind():
    assert derive_model_kind(pd.DataFrame({"a": [1.0, 2.0], "b": [0.0, 3.0]})) == LEVEL
    assert derive_model_kind(pd.DataFrame({"a": [1.0, -0.5], "b": [0.0, 3.0]})) == DIFFERENCE
    # non-numeric predictors never decide the kind
    assert derive_model_kind(pd.DataFrame({"org": ["-A"], "a": [1.0]})) == LEVEL


def test_kind_derived_once_at_load(elasticnet_model):
    entry = {
        "wf": elasticnet_model.estimator,
        "perm_imp": None,
        "training_predictors": pd.DataFrame({"x": [1.0, -2.0]}),
    }
    model = build_fitted_model(WAITS, entry)
    assert model.kind == DIFFERENCE
    assert model.is_difference
    assert model.engine == "elasticnet"


def test_explicit_kind_wins(elasticnet_model):
    entry = {
        "wf": elasticnet_model.estimator,
        "kind": LEVEL,
        "training_predictors": pd.DataFrame({"x": [-1.0]}),
    }
    assert build_fitted_model(WAITS, entry).kind == LEVEL


def test_kind_cannot_be_resolved(elasticnet_model):
    with pytest.raises(ModelConfigurationError):
        build_fitted_model(WAITS, {"wf": elasticnet_model.estimator})


def test_invalid_kind_rejected(elasticnet_model):
    with pytest.raises(ModelConfigurationError):
        FittedModel(target=WAITS, estimator=elasticnet_model.estimator, engine="glmnet", kind="ratio")


def test_entry_without_estimator():
    with pytest.raises(ModelConfigurationError):
        build_fitted_model(WAITS, {"perm_imp": None, "kind": LEVEL})


def test_features_from_estimator(random_forest_model):
    assert model_features(random_forest_model) == (
        "Emergency admissions",
        "Bed occupancy",
        f"lag_1_{WAITS}",
    )


def test_features_unknown():
    estimator = RandomForestRegressor(n_estimators=2).fit(np.array([[1.0], [2.0]]), [1.0, 2.0])
    model = FittedModel(target=WAITS, estimator=estimator, engine="random_forest", kind=LEVEL)
    with pytest.raises(ModelConfigurationError):
        model_features(model)


def test_save_and_load_collection(tmp_path, elasticnet_model, random_forest_model):
    path = save_model_collection(
        {WAITS: elasticnet_model, "Discharge delays": replace(random_forest_model, kind=DIFFERENCE)},
        tmp_path / "models" / "collection.joblib",
    )
    models = load_model_collection(path)

    assert sorted(models) == ["Discharge delays", WAITS]
    assert models[WAITS].kind == LEVEL
    assert models["Discharge delays"].kind == DIFFERENCE
    assert engine_family(models["Discharge delays"].engine) == RANDOM_FOREST
    pd.testing.assert_frame_equal(
        models[WAITS].permutation_importance, elasticnet_model.permutation_importance
    )


def test_load_raw_collection_derives_kind(tmp_path, elasticnet_model):
    path = tmp_path / "raw.joblib"
    joblib.dump(
        {
            WAITS: {
                "wf": elasticnet_model.estimator,
                "perm_imp": elasticnet_model.permutation_importance,
                "training_predictors": pd.DataFrame({"x": [0.5, 1.5]}),
            }
        },
        path,
    )
    models = load_model_collection(path)
    assert models[WAITS].kind == LEVEL


def test_missing_artifact(tmp_path):
    with pytest.raises(ModelConfigurationError):
        load_model_collection(tmp_path / "absent.joblib")


def test_artifact_is_not_a_mapping(tmp_path):
    path = tmp_path / "list.joblib"
    joblib.dump([1, 2, 3], path)
    with pytest.raises(ModelConfigurationError):
        load_model_collection(path)


def test_importance_table_requires_columns(elasticnet_model):
    entry = {"wf": elasticnet_model.estimator, "kind": LEVEL, "perm_imp": pd.DataFrame({"Variable": ["x"]})}
    with pytest.raises(ModelConfigurationError):
        build_fitted_model(WAITS, entry)
