# scenario_model/projections/cli.py
# Command-line interface entry point (argparse)
import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd

from logging_config import DEBUG_LOGGER, DEFAULT_LOG_DIR, PERFORMANCE_LOGGER, setup_logging
from scenario_model.config.loaders import load_config
from scenario_model.config.models import MainConfig
from scenario_model.data.readers import HistoricDataStore
from scenario_model.exceptions import InvalidParameterError, ScenarioModelError
from scenario_model.ml.models import load_model_collection
from scenario_model.scenarios.generator import reset_scenarios

from .reconciliation import update_predictions
from .reporting import save_results

# Get logger for this module
logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Forecast performance metrics under demand and capacity scenarios.")

    # Required arguments
    parser.add_argument("--org", type=str, required=True, help="Organization code to forecast, e.g. QAB.")

    # Optional arguments
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to the YAML configuration file. Built-in defaults are used if omitted.",
    )
    parser.add_argument("--data", type=str, default=None, help="Historic metric data file. Overrides config.")
    parser.add_argument("--models", type=str, default=None, help="joblib model collection. Overrides config.")
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Directory to save output files. Overrides config if provided.",
    )
    parser.add_argument("--horizon", type=int, default=None, help="Years to forecast. Overrides config.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--log-dir",
        type=str,
        default=str(DEFAULT_LOG_DIR),
        help=f"Directory to store log files (default: {DEFAULT_LOG_DIR})",
    )
    return parser.parse_args(argv)


def initialize_logging(debug: bool = False, log_dir: Path = DEFAULT_LOG_DIR) -> None:
    setup_logging(log_dir=log_dir, debug=debug)

    logger.info("Starting scenario model run")
    logger.info(f"Command line arguments: {sys.argv}")
    logger.info(f"Pandas version: {pd.__version__}")
    logger.info(f"NumPy version: {np.__version__}")
    if debug:
        debug_logger = logging.getLogger(DEBUG_LOGGER)
        debug_logger.debug("Debug logging enabled")


def run_scenarios(args: argparse.Namespace, config: MainConfig) -> Path:
    """
    Build the template scenarios for one organization, forecast the displayed
    ones, reconcile them with the back-fit and save everything.

    Raises:
        ScenarioModelError: On any invalid input, data or model artifact.
    """
    perf_logger = logging.getLogger(PERFORMANCE_LOGGER)
    params = config.global_parameters
    scenario_params = config.scenarios

    data_path = args.data or config.data.historic_data
    model_path = args.models or config.data.models
    if not data_path:
        raise InvalidParameterError("No historic data file given (--data or data.historic_data)")
    if not model_path:
        raise InvalidParameterError("No model collection given (--models or data.models)")
    horizon = args.horizon if args.horizon is not None else params.horizon
    output_path = Path(args.output_dir or config.data.output_dir) / args.org

    store = HistoricDataStore.from_file(data_path)
    models = load_model_collection(model_path)

    start_time = time.time()
    scenarios = reset_scenarios(
        store,
        args.org,
        horizon=horizon,
        percent=scenario_params.percent,
        linear_years=scenario_params.linear_years,
    )
    perf_logger.info(f"Template scenarios for {args.org} built in {time.time() - start_time:.2f} seconds")

    start_time = time.time()
    predictions = update_predictions(
        scenarios,
        scenario_params.display,
        args.org,
        models,
        store,
        custom_name=scenario_params.custom_name,
        cutover_year=params.cutover_year,
        lag_depth=params.lag_depth,
        extension_years=params.extension_years,
        scale=params.observed_prediction_scale,
    )
    perf_logger.info(
        f"Forecast of {len(scenario_params.display)} scenarios for {args.org} "
        f"completed in {time.time() - start_time:.2f} seconds"
    )

    save_results(predictions, scenarios, output_path, config_to_save=config)
    logger.info(f"Results for {args.org} saved to {output_path}")
    return output_path


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the scenario model CLI."""
    args = parse_arguments(argv)
    initialize_logging(debug=args.debug, log_dir=Path(args.log_dir))
    logger.info(f"Starting scenario run with arguments: {vars(args)}")

    try:
        config = load_config(args.config)
        logging.getLogger().setLevel(logging.DEBUG if args.debug else config.global_parameters.log_level)
        run_scenarios(args, config)
        return 0
    except ScenarioModelError as e:
        logger.error(f"Scenario run failed: {e}", exc_info=args.debug)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
