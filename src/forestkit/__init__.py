"""forestkit: Randomized tree ensembles that keep learning from new batches of records."""

from loguru import logger

from forestkit.ensemble import EnsembleModel, EnsembleState, GradientBoosting, RandomForest
from forestkit.evaluation import ClassificationReport, CurveResult, RegressionReport
from forestkit.exceptions import ModelStateError, RowShapeError
from forestkit.logging import PACKAGE_NAME, enable_logging
from forestkit.tree import Hyperparameters

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the forestkit module by default

__all__ = [
    "ClassificationReport",
    "CurveResult",
    "EnsembleModel",
    "EnsembleState",
    "GradientBoosting",
    "Hyperparameters",
    "ModelStateError",
    "RandomForest",
    "RegressionReport",
    "RowShapeError",
    "enable_logging",
]
