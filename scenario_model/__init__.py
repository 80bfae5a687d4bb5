"""
Scenario-driven forecasting of health-system performance metrics.

The three primary entry points are :func:`generate_scenario`,
:func:`forecast` and :func:`enforce`.
"""

from .exceptions import (
    ConfigLoadError,
    DataReadError,
    InvalidParameterError,
    MissingColumnsError,
    ModelConfigurationError,
    ScenarioModelError,
    UnrecognizedEngineError,
)
from .data.readers import HistoricDataStore
from .ml.models import load_model_collection
from .projections.forecaster import forecast
from .scenarios.bounds import enforce
from .scenarios.generator import generate_scenario

__version__ = "0.1.0"

__all__ = [
    "ConfigLoadError",
    "DataReadError",
    "InvalidParameterError",
    "MissingColumnsError",
    "ModelConfigurationError",
    "ScenarioModelError",
    "UnrecognizedEngineError",
    "HistoricDataStore",
    "load_model_collection",
    "forecast",
    "enforce",
    "generate_scenario",
]
