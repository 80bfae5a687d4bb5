# scenario_model/scenarios/generator.py
"""
Template scenarios for demand and capacity inputs.

## QuickStart

```python
from scenario_model.data import HistoricDataStore
from scenario_model.scenarios import generate_scenario

store = HistoricDataStore.from_file("data/ics_metrics.csv")
table = generate_scenario(store, "QAB", horizon=5, strategy="percent_change", percent=2)
```

Three strategies are supported:

- ``last_known_year``: every metric holds flat at its last observed value.
- ``percent_change``: the last observed value compounds by ``percent`` each year.
- ``linear``: an ordinary least-squares trend through the most recent
  ``linear_years`` observations fills every unobserved year.

Each strategy returns a wide table (``domain``, ``metric`` and one integer
column per year) that has been passed through the bounds enforcer.
"""

import logging
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression

from scenario_model.data.readers import HistoricDataStore
from scenario_model.exceptions import InvalidParameterError
from scenario_model.schema.columns import DOMAIN, INPUT_DOMAINS, METRIC, VALUE, YEAR

from .bounds import enforce, historic_ranges
from .tables import CUSTOM, LAST_KNOWN, LINEAR, PERCENT, SCENARIO_STRATEGIES, scenario_from_long

logger = logging.getLogger(__name__)

LAST_KNOWN_YEAR = "last_known_year"
PERCENT_CHANGE = "percent_change"
LINEAR_TREND = "linear"
STRATEGIES = (LAST_KNOWN_YEAR, PERCENT_CHANGE, LINEAR_TREND)

GROUP_KEYS = [METRIC, DOMAIN]


def resolve_strategy(strategy: str) -> str:
    """Accept a strategy name or the name of the template scenario that uses it."""
    resolved = SCENARIO_STRATEGIES.get(strategy, strategy)
    if resolved not in STRATEGIES:
        raise InvalidParameterError(
            f"Unknown scenario strategy {strategy!r}; expected one of {list(STRATEGIES)}"
        )
    return resolved


def validate_parameters(
    strategy: str,
    horizon: int,
    percent: Optional[float] = None,
    linear_years: Optional[int] = None,
) -> str:
    """Reject missing or invalid strategy parameters before any computation starts."""
    strategy = resolve_strategy(strategy)
    if horizon is None or int(horizon) != horizon or horizon < 1:
        raise InvalidParameterError(f"horizon must be a positive whole number of years, got {horizon!r}")
    if strategy == PERCENT_CHANGE:
        if percent is None:
            raise InvalidParameterError("percent must not be missing when percent_change is applied")
        if not np.isfinite(percent):
            raise InvalidParameterError(f"percent must be a finite number, got {percent!r}")
    if strategy == LINEAR_TREND:
        if linear_years is None:
            raise InvalidParameterError("linear_years must not be missing when linear is applied")
        if int(linear_years) != linear_years or linear_years < 1:
            raise InvalidParameterError(f"linear_years must be a positive whole number, got {linear_years!r}")
    return strategy


def anchor_years(historic_data: pd.DataFrame) -> Tuple[int, int]:
    """
    Earliest and latest of every metric's own last-observed year.

    The earliest is the anchor year: metrics with shorter history start
    extrapolating from it.
    """
    end_years = historic_data.groupby(METRIC)[YEAR].max()
    return int(end_years.min()), int(end_years.max())


def _complete_years(frame: pd.DataFrame, start: int, end: int) -> pd.DataFrame:
    """One row per (metric, domain, year) for every year in [start, end]."""
    keys = frame[GROUP_KEYS].drop_duplicates()
    grid = keys.merge(pd.DataFrame({YEAR: np.arange(start, end + 1)}), how="cross")
    out = grid.merge(frame[GROUP_KEYS + [YEAR, VALUE]], on=GROUP_KEYS + [YEAR], how="left")
    return out.sort_values(GROUP_KEYS + [YEAR], kind="mergesort").reset_index(drop=True)


def last_known_values(historic_data: pd.DataFrame, horizon: int) -> pd.DataFrame:
    """Flat carry-forward of each metric's last observed value."""
    earliest_end_year, _ = anchor_years(historic_data)
    window = historic_data[historic_data[YEAR] >= earliest_end_year]
    out = _complete_years(window, earliest_end_year, int(window[YEAR].max()) + horizon)
    out[VALUE] = out.groupby(GROUP_KEYS)[VALUE].ffill()
    return out


def percent_change_values(historic_data: pd.DataFrame, horizon: int, percent: float) -> pd.DataFrame:
    """Compound ``percent`` per year onto the last real observation."""
    earliest_end_year, _ = anchor_years(historic_data)
    factor = 1 + (percent / 100)
    window = historic_data[historic_data[YEAR] >= earliest_end_year]
    out = _complete_years(window, earliest_end_year, int(window[YEAR].max()) + horizon)
    # generated years since the metric's most recent observation
    observed_run = out[VALUE].notna().astype(int).groupby([out[METRIC], out[DOMAIN]]).cumsum()
    steps = out[VALUE].isna().astype(int).groupby([out[METRIC], out[DOMAIN], observed_run]).cumsum()
    out[VALUE] = out.groupby(GROUP_KEYS)[VALUE].ffill() * (factor ** steps)
    return out


def _fit_trend(group: pd.DataFrame, end: int) -> pd.DataFrame:
    observed = group.dropna(subset=[VALUE])
    years = np.arange(int(group[YEAR].min()), end + 1)
    completed = pd.DataFrame({YEAR: years}).merge(group[[YEAR, VALUE]], on=YEAR, how="left")

    fit = LinearRegression().fit(observed[[YEAR]].to_numpy(dtype=float), observed[VALUE].to_numpy())
    prediction = fit.predict(completed[[YEAR]].to_numpy(dtype=float))
    completed[VALUE] = completed[VALUE].where(completed[VALUE].notna(), prediction)
    return completed


def linear_values(historic_data: pd.DataFrame, horizon: int, linear_years: int) -> pd.DataFrame:
    """
    Least-squares trend through each metric's most recent ``linear_years`` points.

    The trend window counts back from the metric's own latest year. Years with
    an observation keep it; every other year up to the latest end year plus
    ``horizon`` takes the fitted value.
    """
    earliest_end_year, latest_end_year = anchor_years(historic_data)
    own_end = historic_data.groupby(GROUP_KEYS)[YEAR].transform("max")
    window = historic_data[historic_data[YEAR] >= own_end - (linear_years - 1)]

    pieces = []
    for (metric, domain), group in window.groupby(GROUP_KEYS, sort=True):
        completed = _fit_trend(group, latest_end_year + horizon)
        completed[METRIC] = metric
        completed[DOMAIN] = domain
        pieces.append(completed)

    out = pd.concat(pieces, ignore_index=True)
    out = out[out[YEAR] >= earliest_end_year]
    return out[GROUP_KEYS + [YEAR, VALUE]].reset_index(drop=True)


def build_scenario(
    historic_data: pd.DataFrame,
    horizon: int,
    strategy: str,
    percent: Optional[float] = None,
    linear_years: Optional[int] = None,
    enforce_bounds: bool = True,
) -> pd.DataFrame:
    """
    Build a wide scenario table from long historic demand/capacity data.

    Args:
        historic_data: Long-form rows with ``domain``, ``metric``, ``year``, ``value``.
        horizon: Number of years to project past the latest observed year.
        strategy: ``last_known_year``, ``percent_change`` or ``linear``.
        percent: Year on year change for ``percent_change`` (1 = 1%).
        linear_years: Trend window for ``linear``.
        enforce_bounds: Pass the result through the bounds enforcer.

    Raises:
        InvalidParameterError: If a parameter the strategy needs is missing.
    """
    strategy = validate_parameters(strategy, horizon, percent, linear_years)
    horizon = int(horizon)

    historic_data = historic_data.dropna(subset=[VALUE])
    if historic_data.empty:
        raise InvalidParameterError("No historic demand or capacity data to build a scenario from")

    earliest_end_year, latest_end_year = anchor_years(historic_data)
    logger.info(
        f"Building {strategy} scenario: anchor year {earliest_end_year}, "
        f"latest end year {latest_end_year}, horizon {horizon}"
    )

    if strategy == LAST_KNOWN_YEAR:
        long_metric_data = last_known_values(historic_data, horizon)
    elif strategy == PERCENT_CHANGE:
        long_metric_data = percent_change_values(historic_data, horizon, float(percent))
    else:
        long_metric_data = linear_values(historic_data, horizon, int(linear_years))

    wide_metric_data = scenario_from_long(long_metric_data.sort_values([DOMAIN, METRIC, YEAR]))
    if enforce_bounds:
        wide_metric_data = enforce(wide_metric_data, historic_ranges(historic_data))
    return wide_metric_data


def generate_scenario(
    store: HistoricDataStore,
    organization: str,
    horizon: int,
    strategy: str,
    percent: Optional[float] = None,
    linear_years: Optional[int] = None,
    enforce_bounds: bool = True,
) -> pd.DataFrame:
    """Template scenario of demand and capacity inputs for one organization."""
    validate_parameters(strategy, horizon, percent, linear_years)
    historic_data = store.fetch(organization, domain=INPUT_DOMAINS)
    return build_scenario(
        historic_data[[DOMAIN, METRIC, YEAR, VALUE]],
        horizon=horizon,
        strategy=strategy,
        percent=percent,
        linear_years=linear_years,
        enforce_bounds=enforce_bounds,
    )


def reset_scenarios(
    store: HistoricDataStore,
    organization: str,
    horizon: int,
    percent: float,
    linear_years: int,
) -> Dict[str, pd.DataFrame]:
    """
    Reset every scenario to its template for the selected organization.

    The custom scenario starts as a copy of the last known value scenario.
    """
    last_known = generate_scenario(store, organization, horizon, LAST_KNOWN_YEAR)
    return {
        LAST_KNOWN: last_known,
        PERCENT: generate_scenario(store, organization, horizon, PERCENT_CHANGE, percent=percent),
        LINEAR: generate_scenario(store, organization, horizon, LINEAR_TREND, linear_years=linear_years),
        CUSTOM: last_known.copy(),
    }
