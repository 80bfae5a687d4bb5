from .loaders import load_config, load_yaml_config, parse_config
from .models import DataSources, GlobalParameters, MainConfig, ScenarioParameters

__all__ = [
    "load_config",
    "load_yaml_config",
    "parse_config",
    "DataSources",
    "GlobalParameters",
    "MainConfig",
    "ScenarioParameters",
]
