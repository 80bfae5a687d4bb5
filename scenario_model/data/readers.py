# scenario_model/data/readers.py
"""
Functions for reading historic metric data and serving it per organization.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

import pandas as pd

from scenario_model.exceptions import DataReadError
from scenario_model.schema.columns import (
    DOMAIN,
    DOMAIN_TYPE,
    METRIC,
    ORG,
    REQUIRED_METRIC_COLUMNS,
    VALUE,
    YEAR,
    validate_columns_exist,
)

logger = logging.getLogger(__name__)

DomainFilter = Union[str, Iterable[str], None]


def _as_list(values: DomainFilter) -> Optional[list]:
    if values is None:
        return None
    if isinstance(values, str):
        return [values]
    return list(values)


def standardize_metric_frame(df: pd.DataFrame) -> pd.DataFrame:
    """
    Enforces the long-form column contract on historic metric data.

    Column names are lower-cased, ``year`` becomes an integer and ``value`` a
    float. Duplicate (org, metric, year) rows are rejected because a metric has
    at most one value per organization and year.

    Raises:
        DataReadError: If required columns are missing or keys are duplicated.
    """
    df = df.rename(columns=lambda c: str(c).strip().lower())

    missing = validate_columns_exist(df.columns, REQUIRED_METRIC_COLUMNS)
    if missing:
        raise DataReadError(f"Historic data is missing required columns: {missing}")

    df = df.copy()
    df[ORG] = df[ORG].astype(str)
    df[METRIC] = df[METRIC].astype(str)
    df[YEAR] = pd.to_numeric(df[YEAR], errors="coerce")
    if df[YEAR].isna().any():
        raise DataReadError("Historic data contains rows without a valid year")
    df[YEAR] = df[YEAR].astype(int)
    df[VALUE] = pd.to_numeric(df[VALUE], errors="coerce").astype(float)

    duplicated = df.duplicated(subset=[ORG, METRIC, YEAR], keep=False)
    if duplicated.any():
        examples = df.loc[duplicated, [ORG, METRIC, YEAR]].drop_duplicates().head(5)
        raise DataReadError(
            "Historic data holds more than one value per (org, metric, year): "
            f"{examples.to_dict(orient='records')}"
        )
    return df.reset_index(drop=True)


def read_metric_data(file_path: Union[Path, str]) -> pd.DataFrame:
    """
    Reads long-form historic metric data from a CSV or Parquet file.

    Args:
        file_path: Path pointing to the metric file.

    Returns:
        A DataFrame with at least ``org``, ``domain``, ``metric``, ``year`` and ``value``.

    Raises:
        DataReadError: If the file cannot be found, read, or validated.
    """
    if not isinstance(file_path, Path):
        file_path = Path(file_path)

    logger.info(f"Attempting to read historic metric data from: {file_path}")

    if not file_path.exists():
        logger.error(f"Historic data file not found: {file_path}")
        raise DataReadError(f"Historic data file not found: {file_path}")

    file_suffix = file_path.suffix.lower()
    try:
        if file_suffix == ".parquet":
            df = pd.read_parquet(file_path)
        elif file_suffix == ".csv":
            df = pd.read_csv(file_path, thousands=",")
        else:
            raise DataReadError(f"Unsupported historic data format: {file_suffix}")
    except DataReadError:
        raise
    except (OSError, ValueError) as e:
        logger.exception(f"Failed to read historic data from {file_path}")
        raise DataReadError(f"Failed to read historic data from {file_path}: {e}") from e

    df = standardize_metric_frame(df)
    logger.info(
        f"Loaded {len(df)} rows covering {df[ORG].nunique()} organizations "
        f"and {df[METRIC].nunique()} metrics from {file_path}"
    )
    return df


class HistoricDataStore:
    """
    Read-only, in-memory store of long-form historic metric data.

    The store is loaded once per session; ``fetch`` always returns copies so
    callers can never mutate the loaded series.
    """

    def __init__(self, data: pd.DataFrame):
        self._data = standardize_metric_frame(data)

    @classmethod
    def from_file(cls, file_path: Union[Path, str]) -> "HistoricDataStore":
        return cls(read_metric_data(file_path))

    @property
    def organizations(self) -> list:
        return sorted(self._data[ORG].unique().tolist())

    def fetch(
        self,
        org: str,
        domain: DomainFilter = None,
        domain_type: DomainFilter = None,
    ) -> pd.DataFrame:
        """
        Returns every observed row for one organization.

        Args:
            org: Organization code (e.g. "QAB").
            domain: Optional domain name or names to keep.
            domain_type: Optional domain type or types to keep. Filters the
                ``domain_type`` column when the data has one, else ``domain``.
        """
        frame = self._data[self._data[ORG] == org]

        domains = _as_list(domain)
        if domains is not None:
            frame = frame[frame[DOMAIN].isin(domains)]

        domain_types = _as_list(domain_type)
        if domain_types is not None:
            column = DOMAIN_TYPE if DOMAIN_TYPE in frame.columns else DOMAIN
            frame = frame[frame[column].isin(domain_types)]

        if frame.empty:
            logger.warning(
                f"No historic data for org={org!r} domain={domains} domain_type={domain_types}"
            )
        return frame.sort_values([METRIC, YEAR]).reset_index(drop=True)
