"""Immutable per-session scenario state and its event reducers."""

from .session import (
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

__all__ = [
    "AddCustomPrediction",
    "ApplyTemplateToCustom",
    "ChangeHorizon",
    "ChangeLinearYears",
    "ChangePercent",
    "ChangeTableOption",
    "EditCustomCell",
    "ImportCustomScenario",
    "RemoveCustomPrediction",
    "ScenarioState",
    "SelectOrganization",
    "SessionContext",
    "ToggleScenarioDisplay",
    "apply_event",
]
