# scenario_model/exceptions.py
"""
Custom exception classes for scenario generation and forecasting.

Every fatal condition raised by the core derives from ScenarioModelError so the
invoking layer can surface it as a single user-visible message.
"""


class ScenarioModelError(Exception):
    """Base exception for all scenario-model errors."""

    pass


class InvalidParameterError(ScenarioModelError, ValueError):
    """Raised when a strategy or session parameter is missing or invalid."""

    pass


class ModelConfigurationError(ScenarioModelError):
    """Raised when a fitted model artifact is corrupted or incompatible."""

    pass


class UnrecognizedEngineError(ModelConfigurationError):
    """Raised when a model's engine kind is neither penalized-linear nor random forest."""

    pass


class MissingColumnsError(ScenarioModelError, KeyError):
    """Raised when a table lacks identity or feature columns an operation needs."""

    def __init__(self, missing, table_name: str = "data"):
        self.missing = sorted(str(c) for c in missing)
        self.table_name = table_name
        super().__init__(f"{', '.join(self.missing)} fields are missing from {table_name}")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return self.args[0]


class DataReadError(ScenarioModelError):
    """Raised when historic metric data cannot be found, read or validated."""

    pass


class ConfigLoadError(ScenarioModelError):
    """Raised for errors during config loading."""

    pass
