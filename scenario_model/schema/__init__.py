"""
Unified schema definitions for the scenario model.

Example Usage:
    >>> from scenario_model.schema import MetricColumns, Domain
    >>> MetricColumns.YEAR.value
    'year'
"""

from .columns import (
    Domain,
    FrameColumns,
    MetricColumns,
    PredictionColumns,
    validate_columns_exist,
)

__all__ = [
    "Domain",
    "FrameColumns",
    "MetricColumns",
    "PredictionColumns",
    "validate_columns_exist",
]
