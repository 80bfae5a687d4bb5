"""Iterative forecasting of performance metrics and reconciliation of its output."""

from .forecaster import (
    DEFAULT_CUTOVER_YEAR,
    ForecastStep,
    forecast,
    iterate_forecast,
    update_scenario_performance_data_with_predictions,
)
from .reconciliation import (
    future_scenario_predictions,
    observed_period_predictions,
    reconcile_predictions,
    remove_scenario_predictions,
    update_predictions,
    validate_custom_name,
    value_type_label,
)
from .reporting import save_results

__all__ = [
    "DEFAULT_CUTOVER_YEAR",
    "ForecastStep",
    "forecast",
    "iterate_forecast",
    "update_scenario_performance_data_with_predictions",
    "future_scenario_predictions",
    "observed_period_predictions",
    "reconcile_predictions",
    "remove_scenario_predictions",
    "update_predictions",
    "validate_custom_name",
    "value_type_label",
    "save_results",
]
