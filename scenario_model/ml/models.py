# scenario_model/ml/models.py

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import joblib
import numpy as np
import pandas as pd

from scenario_model.exceptions import ModelConfigurationError, UnrecognizedEngineError

logger = logging.getLogger(__name__)

# Model kinds
LEVEL = "level"
DIFFERENCE = "difference"
MODEL_KINDS = (LEVEL, DIFFERENCE)

# Engine families
PENALIZED_LINEAR = "glmnet"
RANDOM_FOREST = "random_forest"

_ENGINE_PATTERNS = (
    (PENALIZED_LINEAR, ("glm", "elasticnet", "lasso", "ridge")),
    (RANDOM_FOREST, ("random", "forest", "ranger")),
)

IMPORTANCE_COLUMNS = ["Variable", "Importance", "StDev"]


@dataclass(frozen=True, eq=False)
class FittedModel:
    """A pre-fitted predictive function bound to one target metric."""

    target: str
    estimator: Any
    engine: str
    kind: str
    features: Tuple[str, ...] = ()
    penalty: Optional[float] = None
    permutation_importance: pd.DataFrame = field(
        default_factory=lambda: pd.DataFrame(columns=IMPORTANCE_COLUMNS)
    )

    def __post_init__(self):
        if self.kind not in MODEL_KINDS:
            raise ModelConfigurationError(
                f"Model for {self.target!r} has unknown kind {self.kind!r}; expected one of {MODEL_KINDS}"
            )

    @property
    def is_difference(self) -> bool:
        return self.kind == DIFFERENCE


def final_estimator(estimator: Any) -> Any:
    """The last step of a scikit-learn pipeline, or the estimator itself."""
    steps = getattr(estimator, "steps", None)
    if steps:
        return steps[-1][1]
    return estimator


def describe_engine(estimator: Any) -> str:
    """Engine tag derived from the fitted estimator's class name."""
    return type(final_estimator(estimator)).__name__.lower()


def engine_family(engine: str) -> str:
    """
    Map an engine tag onto a supported engine family.

    Raises:
        UnrecognizedEngineError: The tag matches no supported family, which
            means the artifact is corrupted or incompatible.
    """
    tag = str(engine).lower()
    for family, patterns in _ENGINE_PATTERNS:
        if tag == family or any(p in tag for p in patterns):
            return family
    raise UnrecognizedEngineError(
        f"Unrecognized model engine {engine!r}; expected a penalized-linear or random forest model"
    )


def derive_model_kind(training_predictors: Any) -> str:
    """
    Classify a model from the predictor data it was trained on.

    Only a model trained on year-over-year deltas sees negative predictor
    values, so any negative value marks a difference model.
    """
    values = np.asarray(pd.DataFrame(training_predictors).select_dtypes("number"), dtype=float)
    return DIFFERENCE if bool((values < 0).any()) else LEVEL


def resolve_penalty(model: FittedModel) -> float:
    """
    Regularization strength a penalized-linear model predicts at.

    Uses the penalty stored on the artifact, else the fitted estimator's
    cross-validated ``alpha_`` or configured ``alpha``.
    """
    if model.penalty is not None:
        return float(model.penalty)
    estimator = final_estimator(model.estimator)
    for attr in ("alpha_", "alpha"):
        value = getattr(estimator, attr, None)
        if value is not None and np.isscalar(value):
            return float(value)
    raise ModelConfigurationError(
        f"Cannot resolve the regularization strength of the model for {model.target!r}"
    )


def model_features(model: FittedModel) -> Tuple[str, ...]:
    """Predictor columns the model expects, in training order."""
    if model.features:
        return tuple(model.features)
    names = getattr(model.estimator, "feature_names_in_", None)
    if names is None:
        names = getattr(final_estimator(model.estimator), "feature_names_in_", None)
    if names is None:
        raise ModelConfigurationError(
            f"Model for {model.target!r} does not record its predictor columns"
        )
    return tuple(str(n) for n in names)


def _importance_table(raw: Any) -> pd.DataFrame:
    if raw is None:
        return pd.DataFrame(columns=IMPORTANCE_COLUMNS)
    table = pd.DataFrame(raw).copy()
    missing = [c for c in IMPORTANCE_COLUMNS if c not in table.columns]
    if missing:
        raise ModelConfigurationError(f"Permutation importance table is missing columns {missing}")
    return table[IMPORTANCE_COLUMNS].reset_index(drop=True)


def build_fitted_model(target: str, entry: Union[Mapping[str, Any], Any]) -> FittedModel:
    """
    Build a FittedModel from one entry of a model collection.

    An entry is either a bare fitted estimator or a mapping with ``wf`` (the
    estimator), ``perm_imp`` and optional ``engine``, ``kind``, ``penalty``,
    ``features`` and ``training_predictors``. When ``kind`` is absent it is
    derived once from ``training_predictors``.
    """
    if not isinstance(entry, Mapping):
        entry = {"wf": entry}

    estimator = entry.get("wf")
    if estimator is None or not hasattr(estimator, "predict"):
        raise ModelConfigurationError(f"Model entry for {target!r} has no fitted estimator")

    engine = entry.get("engine") or describe_engine(estimator)

    kind = entry.get("kind")
    if kind is None:
        training_predictors = entry.get("training_predictors")
        if training_predictors is None:
            raise ModelConfigurationError(
                f"Model for {target!r} has no kind tag and no training predictors to derive it from"
            )
        kind = derive_model_kind(training_predictors)
        logger.info(f"Derived model kind {kind!r} for {target!r} from its training predictors")

    features = tuple(str(f) for f in entry.get("features") or ())
    penalty = entry.get("penalty")

    return FittedModel(
        target=target,
        estimator=estimator,
        engine=str(engine),
        kind=str(kind),
        features=features,
        penalty=None if penalty is None else float(penalty),
        permutation_importance=_importance_table(entry.get("perm_imp")),
    )


def build_model_collection(raw: Mapping[str, Any]) -> Dict[str, FittedModel]:
    if not isinstance(raw, Mapping):
        raise ModelConfigurationError(
            f"Expected a mapping of metric name to model, got {type(raw).__name__}"
        )
    models = {str(target): build_fitted_model(str(target), entry) for target, entry in raw.items()}
    for target, model in models.items():
        logger.debug(f"Model {target!r}: engine={model.engine} kind={model.kind}")
    return models


def load_model_collection(model_path: Union[str, Path]) -> Dict[str, FittedModel]:
    """
    Load the collection of fitted models from a joblib artifact.

    Raises:
        ModelConfigurationError: If the artifact is missing or unreadable.
    """
    model_path = Path(model_path)
    if not model_path.exists():
        logger.error("Model artifact not found: %s", model_path)
        raise ModelConfigurationError(f"Model artifact not found: {model_path}")

    try:
        raw = joblib.load(model_path)
    except (OSError, EOFError, ValueError, ImportError) as e:
        logger.error("Failed to load model artifact %s: %s", model_path, e)
        raise ModelConfigurationError(f"Failed to load model artifact {model_path}: {e}") from e

    models = build_model_collection(raw)
    logger.info("Loaded %d fitted models from %s", len(models), model_path)
    return models


def save_model_collection(models: Mapping[str, FittedModel], model_path: Union[str, Path]) -> Path:
    """Persist a model collection with explicit engine and kind tags."""
    model_path = Path(model_path)
    model_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        target: {
            "wf": model.estimator,
            "perm_imp": model.permutation_importance,
            "engine": model.engine,
            "kind": model.kind,
            "penalty": model.penalty,
            "features": list(model.features),
        }
        for target, model in models.items()
    }
    joblib.dump(payload, model_path)
    logger.info("Saved %d fitted models to %s", len(payload), model_path)
    return model_path


def permutation_importance_tables(models: Mapping[str, FittedModel]) -> Dict[str, pd.DataFrame]:
    return {target: model.permutation_importance for target, model in models.items()}
