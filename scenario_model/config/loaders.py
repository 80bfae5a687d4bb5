import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from cerberus import Validator
from pydantic import ValidationError

from scenario_model.exceptions import ConfigLoadError

from .models import MainConfig

# Configure logger for this module
logger = logging.getLogger(__name__)

# Structural schema checked before the pydantic models see the data
CONFIG_SCHEMA: Dict[str, Any] = {
    "global_parameters": {
        "type": "dict",
        "required": False,
        "schema": {
            "cutover_year": {"type": "integer"},
            "horizon": {"type": "integer", "min": 1},
            "lag_depth": {"type": "integer", "min": 1},
            "extension_years": {"type": "integer", "min": 1},
            "observed_prediction_scale": {"type": "number"},
            "log_level": {"type": "string"},
        },
    },
    "scenarios": {
        "type": "dict",
        "required": False,
        "schema": {
            "percent": {"type": "number"},
            "linear_years": {"type": "integer"},
            "table_option": {"type": "string", "allowed": ["all", "important", "top_n"]},
            "top_n": {"type": "integer", "min": 1},
            "custom_name": {"type": "string"},
            "display": {
                "type": "list",
                "schema": {"type": "string", "allowed": ["last_known", "percent", "linear", "custom"]},
            },
        },
    },
    "data": {
        "type": "dict",
        "required": False,
        "schema": {
            "historic_data": {"type": "string", "nullable": True},
            "models": {"type": "string", "nullable": True},
            "output_dir": {"type": "string"},
        },
    },
}


def load_yaml_config(config_path: Union[Path, str]) -> Optional[Dict[str, Any]]:
    """
    Loads configuration data from a YAML file.

    Args:
        config_path: Path pointing to the YAML configuration file.

    Returns:
        A dictionary containing the loaded configuration.

    Raises:
        ConfigLoadError: If the file cannot be found or parsed.
    """
    if not isinstance(config_path, Path):
        config_path = Path(config_path)

    logger.info(f"Attempting to load configuration from: {config_path}")

    if not config_path.is_file():
        logger.error(f"Configuration file not found at path: {config_path}")
        raise ConfigLoadError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.exception(f"Error parsing YAML configuration file {config_path}: {e}")
        raise ConfigLoadError(f"Error parsing YAML file {config_path}") from e
    except OSError as e:
        logger.exception(f"Could not read configuration file {config_path}: {e}")
        raise ConfigLoadError(f"Could not read configuration file {config_path}") from e

    if config_data is None:
        config_data = {}
    if not isinstance(config_data, dict):
        logger.error(f"Configuration file {config_path} did not parse into a dictionary.")
        raise ConfigLoadError(
            f"Invalid configuration format in {config_path}: Expected a dictionary."
        )

    logger.info(f"Successfully loaded configuration from {config_path}")
    return config_data


def parse_config(config_data: Dict[str, Any]) -> MainConfig:
    """
    Validates a raw configuration dictionary against the schema and builds MainConfig.

    Raises:
        ConfigLoadError: On schema or model validation errors.
    """
    v = Validator(CONFIG_SCHEMA)
    if not v.validate(config_data):
        raise ConfigLoadError(f"Config validation failed: {v.errors}")

    try:
        config = MainConfig(**config_data)
    except ValidationError as e:
        raise ConfigLoadError(f"Config validation failed: {e}") from e

    logger.debug(f"Configuration parsed: {config}")
    return config


def load_config(config_path: Union[Path, str, None] = None) -> MainConfig:
    """Load and validate a YAML settings file; ``None`` gives the defaults."""
    if config_path is None:
        return MainConfig()
    return parse_config(load_yaml_config(config_path))


# Expose for import
__all__ = [
    "CONFIG_SCHEMA",
    "load_yaml_config",
    "parse_config",
    "load_config",
    "ConfigLoadError",
]
