import pandas as pd
import pytest

from scenario_model.exceptions import InvalidParameterError
from scenario_model.ml.importance import create_scenario_table, curate_custom_table, important_variables

ADMISSIONS = "Emergency admissions"
BEDS = "Bed occupancy"
WAITS = "Proportion of 4hr waits"
DELAYS = "Discharge delays"


@pytest.fixture
def permutation_importance():
    return {
        WAITS: pd.DataFrame(
            {
                "Variable": [f"lag_1_{WAITS}", BEDS, ADMISSIONS],
                "Importance": [0.9, 0.5, 0.2],
                "StDev": [0.01, 0.02, 0.03],
            }
        ),
        DELAYS: pd.DataFrame(
            {
                "Variable": [f"lag_2_{BEDS}", BEDS, ADMISSIONS, WAITS],
                "Importance": [0.8, 0.1, 0.4, 0.25],
                "StDev": [0.01, 0.01, 0.01, 0.01],
            }
        ),
    }


@pytest.fixture
def scenario_table():
    return pd.DataFrame(
        {
            "domain": ["Demand", "Demand", "Capacity"],
            "metric": ["Referrals", ADMISSIONS, BEDS],
            2023: [1.0, 2.0, 3.0],
        }
    )


def test_ranking_across_models(permutation_importance):
    # beds: mean(0.5, 0.8); admissions: mean(0.2, 0.4); waits only in the delays model
    ranking = important_variables(permutation_importance, [WAITS, DELAYS])
    assert ranking == [BEDS, ADMISSIONS, WAITS]


def test_own_target_is_not_a_predictor(permutation_importance):
    assert important_variables(permutation_importance, [WAITS]) == [BEDS, ADMISSIONS]


def test_top_n(permutation_importance):
    assert important_variables(permutation_importance, [WAITS, DELAYS], top_n=2) == [BEDS, ADMISSIONS]


def test_unknown_performance_metric(permutation_importance):
    with pytest.raises(InvalidParameterError):
        important_variables(permutation_importance, ["Cancelled operations"])


def test_display_and_stored_split(scenario_table):
    display = create_scenario_table(scenario_table, [BEDS, ADMISSIONS], "display")
    stored = create_scenario_table(scenario_table, [BEDS, ADMISSIONS], "stored")
    assert display["metric"].tolist() == [BEDS, ADMISSIONS]
    assert stored["metric"].tolist() == ["Referrals"]


def test_invalid_table_type(scenario_table):
    with pytest.raises(InvalidParameterError):
        create_scenario_table(scenario_table, [], "hidden")


@pytest.mark.parametrize("option,top_n,shown,hidden", [
    ("all", 15, ["Referrals", ADMISSIONS, BEDS], []),
    ("important", 15, [BEDS, ADMISSIONS], ["Referrals"]),
    ("top_n", 1, [BEDS], [ADMISSIONS, "Referrals"]),
])
def test_curate_custom_table(scenario_table, permutation_importance, option, top_n, shown, hidden):
    display, stored, combined = curate_custom_table(
        scenario_table, permutation_importance, [WAITS], table_option=option, top_n=top_n
    )
    assert display["metric"].tolist() == shown
    assert stored["metric"].tolist() == hidden
    assert combined["metric"].tolist() == shown + hidden


def test_invalid_table_option(scenario_table, permutation_importance):
    with pytest.raises(InvalidParameterError):
        curate_custom_table(scenario_table, permutation_importance, [WAITS], table_option="some")
