from .readers import HistoricDataStore, read_metric_data, standardize_metric_frame

__all__ = ["HistoricDataStore", "read_metric_data", "standardize_metric_frame"]
