# scenario_model/projections/reporting.py
"""
Writes reconciled predictions and scenario tables to disk.
"""

import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import pandas as pd
import yaml

from scenario_model.scenarios.tables import scenario_to_long
from scenario_model.schema.columns import RECONCILED_OUTPUT_COLUMNS

logger = logging.getLogger(__name__)

PREDICTIONS_FILE = "predictions.csv"


def save_results(
    predictions: Optional[pd.DataFrame],
    scenarios: Mapping[str, pd.DataFrame],
    output_dir: Union[str, Path],
    config_to_save=None,
) -> Dict[str, Path]:
    """
    Save reconciled predictions and every scenario table as CSV.

    Scenario tables are written in long form (``domain``, ``metric``,
    ``year``, ``value``) so year labels never end up as column headers.
    When a config model is passed it is dumped next to the results.

    Returns:
        Mapping of output name to the file written.
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    logger.info(f"Saving results to {output_path}...")

    written: Dict[str, Path] = {}

    if predictions is None:
        logger.warning("No predictions to save; writing an empty predictions file")
        predictions = pd.DataFrame(columns=RECONCILED_OUTPUT_COLUMNS)
    predictions_path = output_path / PREDICTIONS_FILE
    predictions.to_csv(predictions_path, index=False)
    written["predictions"] = predictions_path
    logger.info(f"Predictions saved to {predictions_path} ({len(predictions)} rows)")

    for name, table in scenarios.items():
        scenario_path = output_path / f"scenario_{name}.csv"
        scenario_to_long(table).to_csv(scenario_path, index=False)
        written[name] = scenario_path
        logger.debug(f"Scenario {name!r} saved to {scenario_path}")

    if config_to_save is not None:
        config_path = output_path / "config_used.yaml"
        with open(config_path, "w") as f:
            yaml.safe_dump(config_to_save.model_dump(), f, sort_keys=False)
        written["config"] = config_path
        logger.info(f"Configuration saved to {config_path}")

    return written
