# scenario_model/config/models.py
"""
Pydantic models for validating the structure and types of the configuration
loaded from YAML files (e.g., config/default.yaml).
"""

import logging
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

# --- Low-level Reusable Models ---


class GlobalParameters(BaseModel):
    """Settings shared by every scenario of a session."""

    cutover_year: int = Field(
        2023,
        description="First year whose performance values are derived from models rather than trusted as observed",
    )
    horizon: int = Field(5, ge=1, description="Number of years beyond the anchor year to forecast")
    lag_depth: int = Field(2, ge=1, description="Number of prior years exposed as lagged predictors")
    extension_years: int = Field(
        3,
        ge=1,
        description="Years past the forecast year the working table is extended so later lag columns can be filled",
    )
    observed_prediction_scale: float = Field(
        100.0,
        gt=0.0,
        description="Multiplier applied to back-fit predictions for observed years",
    )
    log_level: str = Field("INFO")

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @model_validator(mode="after")
    def check_extension_covers_lags(self) -> "GlobalParameters":
        if self.extension_years < self.lag_depth:
            raise ValueError(
                f"extension_years ({self.extension_years}) must be at least lag_depth ({self.lag_depth})"
            )
        return self


class ScenarioParameters(BaseModel):
    """Controlling parameters of the template and custom scenarios."""

    percent: float = Field(0.0, description="Year on year percentage change (1 = 1%), may be negative")
    linear_years: int = Field(5, ge=2, description="Number of recent years a linear trend is fitted through")
    table_option: Literal["all", "important", "top_n"] = "all"
    top_n: int = Field(15, ge=1)
    custom_name: str = Field("custom scenario", min_length=1)
    display: List[Literal["last_known", "percent", "linear", "custom"]] = Field(
        default_factory=lambda: ["last_known"],
        description="Scenarios forecast and reconciled by a batch run",
    )

    @field_validator("custom_name")
    @classmethod
    def check_custom_name(cls, value: str) -> str:
        if "-" in value:
            raise ValueError("A hyphen cannot be used in the scenario name")
        return value


class DataSources(BaseModel):
    historic_data: Optional[str] = Field(None, description="CSV or Parquet file of long-form metric data")
    models: Optional[str] = Field(None, description="joblib file holding the fitted model collection")
    output_dir: str = Field("output", description="Directory results are written to")


class MainConfig(BaseModel):
    """The root model for the entire configuration file."""

    global_parameters: GlobalParameters = Field(default_factory=GlobalParameters)
    scenarios: ScenarioParameters = Field(default_factory=ScenarioParameters)
    data: DataSources = Field(default_factory=DataSources)

    @model_validator(mode="after")
    def check_linear_window(self) -> "MainConfig":
        if self.scenarios.linear_years > 50:
            logger.warning(
                "linear_years=%d is unusually long for annual data", self.scenarios.linear_years
            )
        return self
