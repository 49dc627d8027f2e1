"""Ensemble sub-package: random forest and gradient boosting models."""

from __future__ import annotations

from forestkit.ensemble.base import BaseEnsemble, EnsembleModel
from forestkit.ensemble.boosting import GradientBoosting, boost, grow_boosting
from forestkit.ensemble.forest import RandomForest, grow_forest
from forestkit.ensemble.state import EnsembleKind, EnsembleState

__all__ = [
    "BaseEnsemble",
    "EnsembleKind",
    "EnsembleModel",
    "EnsembleState",
    "GradientBoosting",
    "RandomForest",
    "boost",
    "grow_boosting",
    "grow_forest",
]
