import os
import sys

import numpy as np
import pandas as pd
import pytest
from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import ElasticNet

# Ensure project root is on sys.path before imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from scenario_model.data.readers import HistoricDataStore  # noqa: E402
from scenario_model.ml.models import DIFFERENCE, LEVEL, FittedModel  # noqa: E402

ADMISSIONS = "Emergency admissions"
BEDS = "Bed occupancy"
WAITS = "Proportion of 4hr waits"
DELAYS = "Discharge delays"


# Define pytest markers for test categories
def pytest_configure(config):
    """
    Register custom markers to avoid pytest warnings.
    """
    config.addinivalue_line("markers", "unit: mark a test as a unit test")
    config.addinivalue_line("markers", "integration: mark a test as an integration test")
    config.addinivalue_line("markers", "slow: mark a test as a slow test")
    config.addinivalue_line("markers", "config: mark a test as a config test")
    config.addinivalue_line("markers", "state: mark a test as a session state test")


class LinearCombination:
    """Deterministic estimator: intercept plus a weighted sum of named columns."""

    def __init__(self, weights, intercept=0.0):
        self.weights = dict(weights)
        self.intercept = intercept
        self.feature_names_in_ = np.array(list(self.weights), dtype=object)

    def predict(self, X):
        total = np.full(len(X), float(self.intercept))
        for column, weight in self.weights.items():
            total += weight * X[column].to_numpy(dtype=float)
        return total


def _rows(org, domain, metric, values):
    return [
        {"org": org, "domain": domain, "metric": metric, "year": year, "value": value}
        for year, value in values.items()
    ]


@pytest.fixture
def metric_data():
    """Long-form history for two organizations, 2018-2022."""
    rows = []
    rows += _rows("QAB", "Demand", ADMISSIONS, {2018: 100, 2019: 110, 2020: 120, 2021: 130, 2022: 140})
    rows += _rows("QAB", "Capacity", BEDS, {2021: 90, 2022: 92})
    rows += _rows("QAB", "Performance", WAITS, {2018: 70, 2019: 72, 2020: 74, 2021: 76, 2022: 78})
    rows += _rows("QXY", "Demand", ADMISSIONS, {2018: 50, 2019: 55, 2020: 60, 2021: 65, 2022: 70})
    rows += _rows("QXY", "Capacity", BEDS, {2020: 80, 2021: 81, 2022: 82})
    rows += _rows("QXY", "Performance", WAITS, {2019: 60, 2020: 61, 2021: 62, 2022: 63})
    return pd.DataFrame(rows)


@pytest.fixture
def store(metric_data):
    return HistoricDataStore(metric_data)


@pytest.fixture
def bed_occupancy_store():
    """The single-metric QAB example: Bed occupancy observed at 90 then 92."""
    return HistoricDataStore(pd.DataFrame(_rows("QAB", "Capacity", BEDS, {2021: 90, 2022: 92})))


@pytest.fixture
def importance_table():
    return pd.DataFrame(
        {
            "Variable": [f"lag_1_{WAITS}", BEDS, ADMISSIONS],
            "Importance": [0.9, 0.5, 0.2],
            "StDev": [0.01, 0.02, 0.03],
        }
    )


@pytest.fixture
def level_model(importance_table):
    """Waits = last year's waits + 1, flagged as a penalized-linear model."""
    return FittedModel(
        target=WAITS,
        estimator=LinearCombination({f"lag_1_{WAITS}": 1.0}, intercept=1.0),
        engine="glmnet",
        kind=LEVEL,
        penalty=0.01,
        permutation_importance=importance_table,
    )


@pytest.fixture
def training_frame():
    """Small synthetic training set with lagged performance predictors."""
    rng = np.random.default_rng(42)
    admissions = rng.uniform(50, 150, size=40)
    beds = rng.uniform(75, 95, size=40)
    lag_waits = rng.uniform(55, 80, size=40)
    waits = 0.9 * lag_waits + 0.05 * beds - 0.01 * admissions + 5
    return pd.DataFrame(
        {
            ADMISSIONS: admissions,
            BEDS: beds,
            f"lag_1_{WAITS}": lag_waits,
            WAITS: waits,
        }
    )


@pytest.fixture
def elasticnet_model(training_frame, importance_table):
    features = [ADMISSIONS, BEDS, f"lag_1_{WAITS}"]
    estimator = ElasticNet(alpha=0.01, max_iter=10000).fit(training_frame[features], training_frame[WAITS])
    return FittedModel(
        target=WAITS,
        estimator=estimator,
        engine="elasticnet",
        kind=LEVEL,
        permutation_importance=importance_table,
    )


@pytest.fixture
def random_forest_model(training_frame, importance_table):
    features = [ADMISSIONS, BEDS, f"lag_1_{WAITS}"]
    estimator = RandomForestRegressor(n_estimators=10, random_state=0).fit(
        training_frame[features], training_frame[WAITS]
    )
    return FittedModel(
        target=WAITS,
        estimator=estimator,
        engine="random_forest",
        kind=LEVEL,
        permutation_importance=importance_table,
    )


@pytest.fixture
def difference_model():
    """Year-over-year change in waits equals half the change in admissions."""
    return FittedModel(
        target=WAITS,
        estimator=LinearCombination({ADMISSIONS: 0.5}),
        engine="random_forest",
        kind=DIFFERENCE,
    )


@pytest.fixture
def level_models(level_model):
    return {WAITS: level_model}
