"""Scenario tables: template generation, bounds enforcement and table helpers."""

from .bounds import enforce, historic_ranges
from .generator import (
    LAST_KNOWN_YEAR,
    LINEAR_TREND,
    PERCENT_CHANGE,
    STRATEGIES,
    build_scenario,
    generate_scenario,
    reset_scenarios,
)
from .tables import (
    SCENARIO_LABELS,
    SCENARIO_NAMES,
    coerce_year_columns,
    scenario_from_long,
    scenario_to_long,
    year_columns,
    year_values,
)

__all__ = [
    "enforce",
    "historic_ranges",
    "LAST_KNOWN_YEAR",
    "LINEAR_TREND",
    "PERCENT_CHANGE",
    "STRATEGIES",
    "build_scenario",
    "generate_scenario",
    "reset_scenarios",
    "SCENARIO_LABELS",
    "SCENARIO_NAMES",
    "coerce_year_columns",
    "scenario_from_long",
    "scenario_to_long",
    "year_columns",
    "year_values",
]
