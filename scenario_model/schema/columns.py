"""
Centralized column definitions for all data schemas.

This module defines the column names used throughout the scenario model so the
historic store, scenario tables, lagged frames and prediction tables agree on a
single column contract.
"""

import re
from enum import Enum
from typing import Iterable, List


class MetricColumns(str, Enum):
    """Column definitions for long-form historic metric data."""

    ORG = "org"
    DOMAIN = "domain"
    DOMAIN_TYPE = "domain_type"
    METRIC = "metric"
    YEAR = "year"
    VALUE = "value"


class FrameColumns(str, Enum):
    """Identity columns of a lagged, row-per-(organization, year) frame."""

    ORG = "org"
    YEAR = "year"
    NHS_REGION = "nhs_region"
    QUARTER = "quarter"
    MONTH = "month"
    PANDEMIC_ONWARDS = "pandemic_onwards"


class PredictionColumns(str, Enum):
    """Column definitions for prediction and reconciled output tables."""

    VALUE_TYPE = "value_type"
    METRIC = "metric"
    YEAR = "year"
    ORG = "org"
    VALUE = "value"


class Domain(str, Enum):
    """Categories a metric can belong to."""

    DEMAND = "Demand"
    CAPACITY = "Capacity"
    PERFORMANCE = "Performance"


# Plain string constants for the most common lookups
ORG = MetricColumns.ORG.value
DOMAIN = MetricColumns.DOMAIN.value
DOMAIN_TYPE = MetricColumns.DOMAIN_TYPE.value
METRIC = MetricColumns.METRIC.value
YEAR = MetricColumns.YEAR.value
VALUE = MetricColumns.VALUE.value
VALUE_TYPE = PredictionColumns.VALUE_TYPE.value
NHS_REGION = FrameColumns.NHS_REGION.value
QUARTER = FrameColumns.QUARTER.value
MONTH = FrameColumns.MONTH.value
PANDEMIC_ONWARDS = FrameColumns.PANDEMIC_ONWARDS.value

INPUT_DOMAINS: List[str] = [Domain.DEMAND.value, Domain.CAPACITY.value]

# Long-form historic data contract
REQUIRED_METRIC_COLUMNS: List[str] = [ORG, DOMAIN, METRIC, YEAR, VALUE]

# Columns of a lagged frame that identify a row and are never lagged
FRAME_ID_COLUMNS: List[str] = [ORG, YEAR, NHS_REGION, QUARTER, MONTH]

# Columns never differenced when a difference-style model builds its features
NON_DIFFERENCED_COLUMNS: List[str] = [YEAR, QUARTER, MONTH, ORG, NHS_REGION, PANDEMIC_ONWARDS]

# Order in which a lagged frame is sorted before shifting
LAG_SORT_ORDER: List[str] = [YEAR, QUARTER, MONTH, ORG]

# Identity columns of a wide scenario table
SCENARIO_KEY_COLUMNS: List[str] = [DOMAIN, METRIC]

PREDICTION_OUTPUT_COLUMNS: List[str] = [METRIC, YEAR, ORG, VALUE]
RECONCILED_OUTPUT_COLUMNS: List[str] = [VALUE_TYPE, METRIC, YEAR, ORG, VALUE]

LAG_PREFIX_PATTERN = re.compile(r"^lag_\d+_")

# Metrics whose values are percentages and cannot exceed 100
PROPORTION_PATTERN = re.compile(r"proportion|prevalence|%", re.IGNORECASE)


def lag_column(column: str, k: int) -> str:
    """Name of the k-year lag of ``column``."""
    return f"lag_{k}_{column}"


def is_lag_column(column) -> bool:
    return isinstance(column, str) and bool(LAG_PREFIX_PATTERN.match(column))


def strip_lag_prefix(column: str) -> str:
    """Map ``lag_2_Bed occupancy`` back to ``Bed occupancy``."""
    return LAG_PREFIX_PATTERN.sub("", column)


def is_proportion_metric(metric: str) -> bool:
    return bool(PROPORTION_PATTERN.search(str(metric)))


def validate_columns_exist(df_columns: Iterable, required_columns: Iterable) -> List[str]:
    """Validate that required columns exist in a DataFrame.

    Args:
        df_columns: Columns in the DataFrame
        required_columns: Required column names

    Returns:
        List of missing column names, in the order they were required
    """
    present = set(df_columns)
    return [col for col in required_columns if col not in present]
