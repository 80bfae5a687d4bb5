# scenario_model/state/session.py
"""
Per-session scenario state and the events that change it.

The state is an immutable snapshot. Every user action is an event object;
``apply_event(state, event, context)`` returns the next state and never
modifies the one it was given. Read-only collaborators (historic store,
fitted models, settings) travel separately in a ``SessionContext``.

QuickStart:

```python
state = ScenarioState.from_config(config)
state = apply_event(state, SelectOrganization("QAB"), context)
state = apply_event(state, EditCustomCell("Bed occupancy", 2024, 95.0), context)
state = apply_event(state, AddCustomPrediction("winter plan"), context)
```
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import pandas as pd

from scenario_model.config.models import MainConfig
from scenario_model.data.readers import HistoricDataStore
from scenario_model.exceptions import InvalidParameterError
from scenario_model.ml.importance import DEFAULT_TOP_N, TABLE_OPTIONS, curate_custom_table
from scenario_model.ml.models import FittedModel, permutation_importance_tables
from scenario_model.projections.reconciliation import (
    DEFAULT_CUSTOM_NAME,
    remove_scenario_predictions,
    update_predictions,
    validate_custom_name,
    value_type_label,
)
from scenario_model.scenarios.bounds import enforce, historic_ranges
from scenario_model.scenarios.generator import (
    LINEAR_TREND,
    PERCENT_CHANGE,
    generate_scenario,
    reset_scenarios,
)
from scenario_model.scenarios.tables import (
    CUSTOM,
    LAST_KNOWN,
    LINEAR,
    PERCENT,
    SCENARIO_NAMES,
    coerce_year_columns,
    key_columns,
    year_columns,
)
from scenario_model.schema.columns import DOMAIN, INPUT_DOMAINS, METRIC

logger = logging.getLogger(__name__)

TEMPLATE_SCENARIOS = (LAST_KNOWN, PERCENT, LINEAR)


@dataclass(frozen=True, eq=False)
class ScenarioState:
    """Everything a session knows about its scenarios."""

    organization: Optional[str] = None
    horizon: int = 5
    percent: float = 0.0
    linear_years: int = 5
    custom_name: str = DEFAULT_CUSTOM_NAME
    table_option: str = "all"
    top_n: int = DEFAULT_TOP_N
    scenarios: Mapping[str, pd.DataFrame] = field(default_factory=dict)
    custom_display: Optional[pd.DataFrame] = None
    custom_stored: Optional[pd.DataFrame] = None
    display: Tuple[str, ...] = ()
    predictions: Optional[pd.DataFrame] = None

    @classmethod
    def from_config(cls, config: MainConfig) -> "ScenarioState":
        params = config.scenarios
        return cls(
            horizon=config.global_parameters.horizon,
            percent=params.percent,
            linear_years=params.linear_years,
            custom_name=params.custom_name,
            table_option=params.table_option,
            top_n=params.top_n,
            display=_ordered_display(params.display),
        )

    def scenario(self, name: str) -> pd.DataFrame:
        if name not in self.scenarios:
            raise InvalidParameterError(f"No {name!r} scenario; select an organization first")
        return self.scenarios[name]


@dataclass
class SessionContext:
    """Read-only collaborators shared by every event of a session."""

    store: HistoricDataStore
    models: Mapping[str, FittedModel]
    settings: MainConfig = field(default_factory=MainConfig)
    performance_metrics: Optional[Tuple[str, ...]] = None

    @property
    def importance_metrics(self) -> Tuple[str, ...]:
        """Modelled metrics whose predictors decide the custom table's order."""
        if self.performance_metrics is not None:
            return tuple(self.performance_metrics)
        return tuple(sorted(self.models))


# --- Events ---


@dataclass(frozen=True)
class SelectOrganization:
    organization: str


@dataclass(frozen=True)
class ChangeHorizon:
    horizon: int


@dataclass(frozen=True)
class ChangePercent:
    percent: float


@dataclass(frozen=True)
class ChangeLinearYears:
    linear_years: int


@dataclass(frozen=True)
class ChangeTableOption:
    table_option: str
    top_n: Optional[int] = None


@dataclass(frozen=True)
class ApplyTemplateToCustom:
    template: str


@dataclass(frozen=True)
class EditCustomCell:
    metric: str
    year: int
    value: float


@dataclass(frozen=True, eq=False)
class ImportCustomScenario:
    table: pd.DataFrame


@dataclass(frozen=True)
class ToggleScenarioDisplay:
    scenario: str
    show: bool


@dataclass(frozen=True)
class AddCustomPrediction:
    custom_name: Optional[str] = None


@dataclass(frozen=True)
class RemoveCustomPrediction:
    pass


# --- Helpers ---


def _ordered_display(names) -> Tuple[str, ...]:
    names = set(names)
    unknown = names - set(SCENARIO_NAMES)
    if unknown:
        raise InvalidParameterError(f"Unknown scenarios {sorted(unknown)}; expected any of {list(SCENARIO_NAMES)}")
    return tuple(name for name in SCENARIO_NAMES if name in names)


def _require_organization(state: ScenarioState) -> str:
    if state.organization is None:
        raise InvalidParameterError("No organization selected")
    return state.organization


def _with_custom(state: ScenarioState, context: SessionContext, table: pd.DataFrame) -> ScenarioState:
    """Store a new custom table, split into its displayed and stored parts."""
    display, stored, combined = curate_custom_table(
        table,
        permutation_importance_tables(context.models),
        context.importance_metrics,
        table_option=state.table_option,
        top_n=state.top_n,
    )
    scenarios = dict(state.scenarios)
    scenarios[CUSTOM] = combined
    return replace(state, scenarios=scenarios, custom_display=display, custom_stored=stored)


def _with_template(state: ScenarioState, name: str, table: pd.DataFrame) -> ScenarioState:
    scenarios = dict(state.scenarios)
    scenarios[name] = table
    return replace(state, scenarios=scenarios)


def _refresh_predictions(state: ScenarioState, context: SessionContext) -> ScenarioState:
    """Re-forecast every displayed scenario."""
    if not state.display or state.organization is None:
        return replace(state, predictions=None)
    params = context.settings.global_parameters
    predictions = update_predictions(
        state.scenarios,
        state.display,
        state.organization,
        context.models,
        context.store,
        custom_name=state.custom_name,
        cutover_year=params.cutover_year,
        lag_depth=params.lag_depth,
        extension_years=params.extension_years,
        scale=params.observed_prediction_scale,
    )
    return replace(state, predictions=predictions)


def _refresh_if_displayed(state: ScenarioState, context: SessionContext, name: str) -> ScenarioState:
    if name in state.display:
        return _refresh_predictions(state, context)
    return state


def _drop_predictions(state: ScenarioState, name: str) -> ScenarioState:
    label = value_type_label(name, state.custom_name)
    return replace(state, predictions=remove_scenario_predictions(state.predictions, label))


# --- Reducers ---


def _select_organization(state: ScenarioState, event: SelectOrganization, context: SessionContext) -> ScenarioState:
    if event.organization not in context.store.organizations:
        raise InvalidParameterError(f"Unknown organization {event.organization!r}")
    scenarios = reset_scenarios(
        context.store,
        event.organization,
        horizon=state.horizon,
        percent=state.percent,
        linear_years=state.linear_years,
    )
    state = replace(state, organization=event.organization, scenarios=scenarios, predictions=None)
    state = _with_custom(state, context, scenarios[CUSTOM])
    return _refresh_predictions(state, context)


def _change_horizon(state: ScenarioState, event: ChangeHorizon, context: SessionContext) -> ScenarioState:
    organization = _require_organization(state)
    scenarios = reset_scenarios(
        context.store,
        organization,
        horizon=event.horizon,
        percent=state.percent,
        linear_years=state.linear_years,
    )
    state = replace(state, horizon=int(event.horizon), scenarios=scenarios)
    state = _with_custom(state, context, scenarios[CUSTOM])
    return _refresh_predictions(state, context)


def _change_percent(state: ScenarioState, event: ChangePercent, context: SessionContext) -> ScenarioState:
    organization = _require_organization(state)
    table = generate_scenario(context.store, organization, state.horizon, PERCENT_CHANGE, percent=event.percent)
    state = replace(_with_template(state, PERCENT, table), percent=float(event.percent))
    return _refresh_if_displayed(state, context, PERCENT)


def _change_linear_years(state: ScenarioState, event: ChangeLinearYears, context: SessionContext) -> ScenarioState:
    if event.linear_years is None or event.linear_years < 2:
        raise InvalidParameterError(f"linear_years must be at least 2, got {event.linear_years!r}")
    organization = _require_organization(state)
    table = generate_scenario(
        context.store, organization, state.horizon, LINEAR_TREND, linear_years=event.linear_years
    )
    state = replace(_with_template(state, LINEAR, table), linear_years=int(event.linear_years))
    return _refresh_if_displayed(state, context, LINEAR)


def _change_table_option(state: ScenarioState, event: ChangeTableOption, context: SessionContext) -> ScenarioState:
    if event.table_option not in TABLE_OPTIONS:
        raise InvalidParameterError(
            f"table_option must be one of {list(TABLE_OPTIONS)}, got {event.table_option!r}"
        )
    top_n = state.top_n if event.top_n is None else int(event.top_n)
    state = replace(state, table_option=event.table_option, top_n=top_n)
    if CUSTOM not in state.scenarios:
        return state
    return _with_custom(state, context, state.scenarios[CUSTOM])


def _apply_template(state: ScenarioState, event: ApplyTemplateToCustom, context: SessionContext) -> ScenarioState:
    if event.template not in TEMPLATE_SCENARIOS:
        raise InvalidParameterError(
            f"Template must be one of {list(TEMPLATE_SCENARIOS)}, got {event.template!r}"
        )
    state = _with_custom(state, context, state.scenario(event.template).copy())
    return _refresh_if_displayed(state, context, CUSTOM)


def _edit_custom_cell(state: ScenarioState, event: EditCustomCell, context: SessionContext) -> ScenarioState:
    custom = state.scenario(CUSTOM)
    rows = custom.index[custom[METRIC] == event.metric]
    if rows.empty:
        raise InvalidParameterError(f"Metric {event.metric!r} is not in the custom scenario")
    if event.year not in year_columns(custom):
        raise InvalidParameterError(f"Year {event.year!r} is not in the custom scenario")

    # user overrides are taken as entered, without bounds enforcement
    edited = custom.copy()
    edited.loc[rows, int(event.year)] = float(event.value)
    return _with_custom(state, context, edited)


def _import_custom(state: ScenarioState, event: ImportCustomScenario, context: SessionContext) -> ScenarioState:
    organization = _require_organization(state)
    imported = coerce_year_columns(event.table)

    if DOMAIN not in imported.columns and CUSTOM in state.scenarios:
        domains = state.scenarios[CUSTOM].set_index(METRIC)[DOMAIN]
        imported.insert(0, DOMAIN, imported[METRIC].map(domains))
    imported = imported[key_columns(imported) + year_columns(imported)]

    historic = context.store.fetch(organization, domain=INPUT_DOMAINS)
    bounded = enforce(imported, historic_ranges(historic))
    logger.info(f"Imported custom scenario for {organization}: {len(bounded)} metrics")
    return _with_custom(state, context, bounded.reset_index(drop=True))


def _toggle_display(state: ScenarioState, event: ToggleScenarioDisplay, context: SessionContext) -> ScenarioState:
    current = set(state.display)
    if event.show:
        display = _ordered_display(current | {event.scenario})
        return _refresh_predictions(replace(state, display=display), context)
    display = _ordered_display(current - {event.scenario})
    return _drop_predictions(replace(state, display=display), event.scenario)


def _add_custom_prediction(state: ScenarioState, event: AddCustomPrediction, context: SessionContext) -> ScenarioState:
    custom_name = validate_custom_name(event.custom_name or state.custom_name)
    if CUSTOM not in state.scenarios:
        raise InvalidParameterError("No custom scenario to forecast; select an organization first")
    if CUSTOM in state.display:
        state = _drop_predictions(state, CUSTOM)
    state = replace(state, custom_name=custom_name, display=_ordered_display(set(state.display) | {CUSTOM}))
    return _refresh_predictions(state, context)


def _remove_custom_prediction(state: ScenarioState, event: RemoveCustomPrediction, context: SessionContext) -> ScenarioState:
    display = _ordered_display(set(state.display) - {CUSTOM})
    return _drop_predictions(replace(state, display=display), CUSTOM)


_HANDLERS: Dict[type, Callable[[ScenarioState, Any, SessionContext], ScenarioState]] = {
    SelectOrganization: _select_organization,
    ChangeHorizon: _change_horizon,
    ChangePercent: _change_percent,
    ChangeLinearYears: _change_linear_years,
    ChangeTableOption: _change_table_option,
    ApplyTemplateToCustom: _apply_template,
    EditCustomCell: _edit_custom_cell,
    ImportCustomScenario: _import_custom,
    ToggleScenarioDisplay: _toggle_display,
    AddCustomPrediction: _add_custom_prediction,
    RemoveCustomPrediction: _remove_custom_prediction,
}


def apply_event(state: ScenarioState, event: Any, context: SessionContext) -> ScenarioState:
    """
    Return the state that results from one user action.

    Raises:
        InvalidParameterError: The event is unsupported or its values invalid.
        ScenarioModelError: Any fatal condition raised while regenerating or
            forecasting; the given state is left as it was.
    """
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise InvalidParameterError(f"Unsupported session event {type(event).__name__}")
    logger.debug(f"Applying {event!r} to session for {state.organization}")
    return handler(state, event, context)
