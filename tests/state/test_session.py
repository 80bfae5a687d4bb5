"""
Tests for session events: each event returns a new state and leaves the
previous one untouched.
"""
import pandas as pd
import pytest

from scenario_model.config.models import MainConfig
from scenario_model.exceptions import InvalidParameterError
from scenario_model.scenarios.tables import year_values
from scenario_model.state.session import (
    AddCustomPrediction,
    ApplyTemplateToCustom,
    ChangeHorizon,
    ChangeLinearYears,
    ChangePercent,
    ChangeTableOption,
    EditCustomCell,
    ImportCustomScenario,
    RemoveCustomPrediction,
    ScenarioState,
    SelectOrganization,
    SessionContext,
    ToggleScenarioDisplay,
    apply_event,
)

pytestmark = pytest.mark.state

ADMISSIONS = "Emergency admissions"
BEDS = "Bed occupancy"
LAST_KNOWN_LABEL = "Prediction - last known value"
PERCENT_LABEL = "Prediction - percent change"


@pytest.fixture
def context(store, level_models):
    return SessionContext(store=store, models=level_models)


@pytest.fixture
def initial_state():
    return ScenarioState(horizon=2, display=("last_known",))


@pytest.fixture
def session(initial_state, context):
    return apply_event(initial_state, SelectOrganization("QAB"), context)


def _labels(state):
    return state.predictions["value_type"].unique().tolist()


def test_state_from_config():
    state = ScenarioState.from_config(MainConfig())
    assert state.organization is None
    assert state.display == ("last_known",)
    assert state.custom_name == "custom scenario"


def test_select_organization(initial_state, session):
    assert session.organization == "QAB"
    assert sorted(session.scenarios) == ["custom", "last_known", "linear", "percent"]
    assert list(session.scenarios["last_known"].columns[-3:]) == [2022, 2023, 2024]
    assert _labels(session) == [LAST_KNOWN_LABEL]
    assert initial_state.organization is None
    assert initial_state.predictions is None


def test_select_unknown_organization(initial_state, context):
    with pytest.raises(InvalidParameterError):
        apply_event(initial_state, SelectOrganization("ZZZ"), context)


def test_events_need_an_organization(initial_state, context):
    with pytest.raises(InvalidParameterError):
        apply_event(initial_state, ChangePercent(5.0), context)
    with pytest.raises(InvalidParameterError):
        apply_event(initial_state, EditCustomCell(BEDS, 2023, 91.0), context)


def test_change_horizon_resets_scenarios(session, context):
    longer = apply_event(session, ChangeHorizon(3), context)
    for table in longer.scenarios.values():
        assert table.columns[-1] == 2025
    assert longer.predictions["year"].max() == 2025
    assert session.scenarios["last_known"].columns[-1] == 2024


def test_change_percent_hidden_scenario_keeps_predictions(session, context):
    changed = apply_event(session, ChangePercent(-5.0), context)
    values = year_values(changed.scenarios["percent"], ADMISSIONS)
    assert values[2023] == pytest.approx(133.0)
    assert values[2024] == pytest.approx(126.35)
    assert changed.percent == -5.0
    assert changed.predictions is session.predictions


def test_change_percent_displayed_scenario_refreshes(session, context):
    shown = apply_event(session, ToggleScenarioDisplay("percent", True), context)
    changed = apply_event(shown, ChangePercent(-5.0), context)
    assert changed.predictions is not shown.predictions
    assert _labels(changed) == [LAST_KNOWN_LABEL, PERCENT_LABEL]


def test_change_linear_years(session, context):
    changed = apply_event(session, ChangeLinearYears(2), context)
    assert changed.linear_years == 2
    # trend through 2021 and 2022 reaches 150, held at the historic max
    assert year_values(changed.scenarios["linear"], ADMISSIONS)[2023] == pytest.approx(140.0)
    assert session.linear_years == 5


def test_linear_years_below_two(session, context):
    with pytest.raises(InvalidParameterError):
        apply_event(session, ChangeLinearYears(1), context)


def test_edit_custom_cell_is_not_bounded(session, context):
    edited = apply_event(session, EditCustomCell(BEDS, 2024, 500.0), context)
    assert year_values(edited.scenarios["custom"], BEDS)[2024] == 500.0
    assert year_values(session.scenarios["custom"], BEDS)[2024] == 92.0


@pytest.mark.parametrize("metric,year", [(BEDS, 2040), ("Ambulance handovers", 2023)])
def test_edit_custom_cell_invalid(session, context, metric, year):
    with pytest.raises(InvalidParameterError):
        apply_event(session, EditCustomCell(metric, year, 1.0), context)


def test_import_custom_scenario_is_bounded(session, context):
    imported = pd.DataFrame(
        {
            "Metric": [ADMISSIONS, BEDS],
            "2023": ["1,000", "95"],
            "2024": ["120", "-4"],
        }
    )
    state = apply_event(session, ImportCustomScenario(imported), context)
    custom = state.scenarios["custom"]
    assert year_values(custom, ADMISSIONS) == {2023: 140.0, 2024: 120.0}
    assert year_values(custom, BEDS) == {2023: 92.0, 2024: 90.0}
    assert set(custom["domain"]) == {"Demand", "Capacity"}


def test_apply_template_to_custom(session, context):
    changed = apply_event(session, ChangePercent(-5.0), context)
    copied = apply_event(changed, ApplyTemplateToCustom("percent"), context)
    assert year_values(copied.scenarios["custom"], ADMISSIONS) == year_values(
        changed.scenarios["percent"], ADMISSIONS
    )


def test_apply_unknown_template(session, context):
    with pytest.raises(InvalidParameterError):
        apply_event(session, ApplyTemplateToCustom("custom"), context)


def test_change_table_option(session, context):
    curated = apply_event(session, ChangeTableOption("top_n", top_n=1), context)
    assert curated.custom_display["metric"].tolist() == [BEDS]
    assert curated.custom_stored["metric"].tolist() == [ADMISSIONS]
    assert sorted(curated.scenarios["custom"]["metric"]) == [BEDS, ADMISSIONS]


def test_invalid_table_option(session, context):
    with pytest.raises(InvalidParameterError):
        apply_event(session, ChangeTableOption("everything"), context)


def test_toggle_display(session, context):
    shown = apply_event(session, ToggleScenarioDisplay("percent", True), context)
    assert shown.display == ("last_known", "percent")
    assert _labels(shown) == [LAST_KNOWN_LABEL, PERCENT_LABEL]

    hidden = apply_event(shown, ToggleScenarioDisplay("last_known", False), context)
    assert hidden.display == ("percent",)
    assert _labels(hidden) == [PERCENT_LABEL]

    empty = apply_event(hidden, ToggleScenarioDisplay("percent", False), context)
    assert empty.display == ()
    assert empty.predictions is None


def test_add_and_remove_custom_prediction(session, context):
    added = apply_event(session, AddCustomPrediction("winter plan"), context)
    assert added.custom_name == "winter plan"
    assert "custom" in added.display
    assert "Prediction - winter plan" in _labels(added)

    removed = apply_event(added, RemoveCustomPrediction(), context)
    assert "custom" not in removed.display
    assert _labels(removed) == [LAST_KNOWN_LABEL]


def test_custom_name_with_hyphen(session, context):
    with pytest.raises(InvalidParameterError):
        apply_event(session, AddCustomPrediction("winter-plan"), context)


def test_unsupported_event(session, context):
    with pytest.raises(InvalidParameterError):
        apply_event(session, object(), context)
