from .lags import DEFAULT_LAG_DEPTH, create_lag_variables, lag_source_columns

__all__ = ["DEFAULT_LAG_DEPTH", "create_lag_variables", "lag_source_columns"]
