from pathlib import Path

import pytest
import yaml

from scenario_model.config.loaders import load_config, load_yaml_config, parse_config
from scenario_model.config.models import MainConfig
from scenario_model.exceptions import ConfigLoadError

pytestmark = pytest.mark.config

DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config" / "default.yaml"


def _write(tmp_path, data, name="settings.yaml"):
    f = tmp_path / name
    f.write_text(yaml.safe_dump(data))
    return f


def test_defaults_without_file():
    config = load_config(None)
    assert config.global_parameters.cutover_year == 2023
    assert config.global_parameters.lag_depth == 2
    assert config.global_parameters.extension_years == 3
    assert config.scenarios.display == ["last_known"]


def test_shipped_default_config_loads():
    config = load_config(DEFAULT_CONFIG)
    assert isinstance(config, MainConfig)
    assert config.scenarios.display == ["last_known", "percent", "linear"]
    assert config.global_parameters.observed_prediction_scale == 100.0


def test_partial_config_keeps_defaults(tmp_path):
    f = _write(tmp_path, {"global_parameters": {"horizon": 3, "extension_years": 4, "log_level": "debug"}})
    config = load_config(f)
    assert config.global_parameters.horizon == 3
    assert config.global_parameters.extension_years == 4
    assert config.global_parameters.log_level == "DEBUG"
    assert config.scenarios.linear_years == 5


def test_empty_file_gives_defaults(tmp_path):
    f = tmp_path / "empty.yaml"
    f.write_text("")
    assert load_yaml_config(f) == {}
    assert load_config(f).global_parameters.horizon == 5


def test_missing_file(tmp_path):
    with pytest.raises(ConfigLoadError):
        load_config(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path):
    f = tmp_path / "broken.yaml"
    f.write_text("global_parameters: [unclosed\n")
    with pytest.raises(ConfigLoadError):
        load_yaml_config(f)


def test_top_level_must_be_mapping(tmp_path):
    f = tmp_path / "list.yaml"
    f.write_text("- a\n- b\n")
    with pytest.raises(ConfigLoadError):
        load_yaml_config(f)


@pytest.mark.parametrize("data", [
    {"scenarios": {"table_option": "some"}},
    {"scenarios": {"display": ["optimistic"]}},
    {"global_parameters": {"horizon": 0}},
    {"unknown_section": {}},
])
def test_schema_errors(data):
    with pytest.raises(ConfigLoadError):
        parse_config(data)


@pytest.mark.parametrize("data", [
    {"scenarios": {"linear_years": 1}},
    {"scenarios": {"custom_name": "winter-plan"}},
    {"global_parameters": {"log_level": "LOUD"}},
    {"global_parameters": {"lag_depth": 2, "extension_years": 1}},
])
def test_model_errors(data):
    with pytest.raises(ConfigLoadError):
        parse_config(data)
