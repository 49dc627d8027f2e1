"""Shared model façade for tree ensembles.

`BaseEnsemble` owns everything that does not depend on how trees are grown:
feature paths, the class list, the stored seed and hyperparameter overrides,
subject encoding, validation, ROC analysis, and state export. Subclasses
supply the growth cycle (`_grow`), the tree traversal (`vote`, `estimate`,
`predict`), importance, and their part of the serialized state.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar, Protocol, Self, runtime_checkable

import numpy as np
from loguru import logger

from forestkit.encoding import categoric, classify, encode, encode_matrix, numeric, tabulate
from forestkit.ensemble.state import EnsembleKind, EnsembleState
from forestkit.evaluation import (
    ClassificationReport,
    CurveFunction,
    CurveResult,
    RegressionReport,
    classification_report,
    regression_report,
    roc_curve_summary,
)
from forestkit.exceptions import ModelStateError, RowShapeError
from forestkit.logging import TRAINING_LEVEL
from forestkit.records import Subject, Subjects, as_subjects, get_path, set_path
from forestkit.rng import SeededRandom, generate_seed, normalize_seed
from forestkit.tree.models import Hyperparameters, resolve_hyperparameters


@runtime_checkable
class EnsembleModel(Protocol):
    """Operations every trained ensemble answers.

    `classes` is `None` for regression models; classification-only operations
    such as `auc` check it first.
    """

    classes: list[str] | None

    def train(self, subjects: Subjects) -> None:
        """Fortify and grow the model with new subjects."""
        ...

    def fit(self, X: Sequence[Sequence[Any]], Y: Sequence[Any]) -> None:  # noqa: N803
        """Fortify and grow the model with pre-extracted feature rows and outcomes."""
        ...

    def vote(self, subject: Subject) -> list[float]:
        """Return one raw leaf value per tree."""
        ...

    def estimate(self, subject: Subject) -> list[float]:
        """Return class scores (classification) or the feature sensitivity profile (regression)."""
        ...

    def predict(self, subject: Subject) -> Any:
        """Return the predicted class label or outcome value."""
        ...

    def validate(self, subjects: Subjects) -> ClassificationReport | RegressionReport:
        """Score the model against subjects with known outcomes."""
        ...

    def auc(self, subjects: Subjects, curve: CurveFunction = ...) -> list[CurveResult] | None:
        """Build one ROC curve per class."""
        ...

    def importance(self) -> dict[str, float]:
        """Return impurity-based importance per feature, highest first."""
        ...


class BaseEnsemble(ABC):
    """Common state and behaviour of `RandomForest` and `GradientBoosting`.

    Attributes:
        outcome (str): Dotted path of the outcome field.
        numericals (list[str]): Dotted paths of numerical features.
        categoricals (list[str]): Dotted paths of categorical features.
        classes (list[str] | None): Class labels in order of first appearance,
            or `None` for regression. Only ever appended to.
        hyperparameters (dict[str, Any]): Caller overrides as given; resolved
            against the defaults at every training call.
        seed (int): Seed replayed at the start of every training call.
        rng (SeededRandom): The model's generator, reseeded with `seed` before
            every training call.
    """

    kind: ClassVar[EnsembleKind]

    def __init__(
        self,
        outcome: str,
        numericals: Sequence[str],
        categoricals: Sequence[str] = (),
        *,
        classification: bool = False,
        hyperparameters: Mapping[str, Any] | None = None,
        seed: int | None = None,
    ) -> None:
        """Create an untrained model.

        Args:
            outcome (str): Dotted path of the outcome field.
            numericals (Sequence[str]): Dotted paths of numerical features.
            categoricals (Sequence[str]): Dotted paths of categorical features.
            classification (bool): Build a classifier (True) or a regressor (False).
            hyperparameters (Mapping[str, Any] | None): Overrides by long or
                short name; invalid entries fall back to the defaults.
            seed (int | None): Generator seed. A fresh one is drawn when omitted.
        """
        self.outcome = outcome
        self.numericals = list(numericals)
        self.categoricals = list(categoricals)
        self.classes: list[str] | None = [] if classification else None
        self.hyperparameters: dict[str, Any] = dict(hyperparameters or {})
        self.seed = normalize_seed(seed) if seed is not None else generate_seed()
        self.rng = SeededRandom(self.seed)

    @classmethod
    def from_subjects(
        cls,
        subjects: Subjects,
        outcome: str,
        numericals: Sequence[str],
        categoricals: Sequence[str] = (),
        *,
        classification: bool = False,
        hyperparameters: Mapping[str, Any] | None = None,
        seed: int | None = None,
    ) -> Self:
        """Create a model and train it on an initial batch of subjects.

        Args:
            subjects (Subjects): Training subjects, as mappings or a Polars DataFrame.
            outcome (str): Dotted path of the outcome field.
            numericals (Sequence[str]): Dotted paths of numerical features.
            categoricals (Sequence[str]): Dotted paths of categorical features.
            classification (bool): Build a classifier (True) or a regressor (False).
            hyperparameters (Mapping[str, Any] | None): Overrides by long or short name.
            seed (int | None): Generator seed. A fresh one is drawn when omitted.

        Returns:
            Self: The trained model.
        """
        model = cls(
            outcome,
            numericals,
            categoricals,
            classification=classification,
            hyperparameters=hyperparameters,
            seed=seed,
        )
        model.train(subjects)
        return model

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def classification(self) -> bool:
        """Whether this is a classification model."""
        return self.classes is not None

    @property
    def features(self) -> list[str]:
        """Feature paths in row order: numericals, then categoricals."""
        return self.numericals + self.categoricals

    @property
    def num_numerical(self) -> int:
        """Number of leading numerical columns in a row."""
        return len(self.numericals)

    @property
    def num_feature(self) -> int:
        """Number of feature columns in a row."""
        return len(self.numericals) + len(self.categoricals)

    @property
    def text(self) -> str:
        """Model formula and seed, e.g. `"[y = age + bmi] seed: 42"`."""
        return f"[{self.outcome} = {' + '.join(self.features)}] seed: {self.seed}"

    def __str__(self) -> str:
        """Return `text`."""
        return self.text

    @abstractmethod
    def default_hyperparameters(self) -> Hyperparameters:
        """Return the defaults for this model type and task."""

    def resolved_hyperparameters(self) -> Hyperparameters:
        """Resolve the stored overrides against `default_hyperparameters()`."""
        return resolve_hyperparameters(self.hyperparameters, self.default_hyperparameters())

    # -------------------------------------------------------------------------
    # Training
    # -------------------------------------------------------------------------

    def train(self, subjects: Subjects) -> None:
        """Fortify existing trees and grow new ones from a batch of subjects.

        Args:
            subjects (Subjects): Subjects carrying the feature and outcome fields.
        """
        records = as_subjects(subjects)
        rows = tabulate(
            records,
            self.numericals,
            self.categoricals,
            [lambda subject: self._outcome_code(get_path(subject, self.outcome))],
        )
        self._train_rows(rows)

    def fit(self, X: Sequence[Sequence[Any]], Y: Sequence[Any]) -> None:  # noqa: N803
        """Fortify and grow the model from pre-extracted feature rows.

        Args:
            X (Sequence[Sequence[Any]]): One row per subject, numerical feature
                values first, then categorical ones.
            Y (Sequence[Any]): One outcome (class label or number) per row.

        Raises:
            RowShapeError: If `X` and `Y` differ in length, or a row's width
                differs from the number of features.
        """
        if len(X) != len(Y):
            raise RowShapeError(expected=len(X), actual=len(Y), dimension="rows")
        for raw in X:
            if len(raw) != self.num_feature:
                raise RowShapeError(expected=self.num_feature, actual=len(raw), dimension="columns")
        features = encode_matrix(X, len(self.numericals), len(self.categoricals))
        outcomes = np.empty((len(Y), 1), dtype=object)
        for i, label in enumerate(Y):
            outcomes[i, 0] = self._outcome_code(label)
        self._train_rows(np.hstack([features, outcomes]))

    def _train_rows(self, rows: np.ndarray) -> None:
        hyperparameters = self.resolved_hyperparameters()
        logger.log(
            TRAINING_LEVEL,
            "Training {kind}",
            kind=self.kind,
            rows=len(rows),
            seed=self.seed,
            classes=len(self.classes) if self.classes is not None else None,
        )
        self.rng.reseed(self.seed)
        logger.debug("Generator reseeded", seed=self.seed)
        self._grow(rows, hyperparameters, self.rng)

    @abstractmethod
    def _grow(self, rows: np.ndarray, hyperparameters: Hyperparameters, rng: SeededRandom) -> None:
        """Run one fortify/grow cycle over `[features..., outcome]` rows."""

    def _outcome_code(self, value: Any) -> float:
        if self.classes is not None:
            return float(classify(value, self.classes))
        return numeric(value)

    # -------------------------------------------------------------------------
    # Inference helpers
    # -------------------------------------------------------------------------

    def encode(self, subject: Subject) -> np.ndarray:
        """Encode one subject into a feature row."""
        return encode(subject, self.numericals, self.categoricals)

    def _ablations(self, subject: Subject) -> list[np.ndarray]:
        """Return the subject's row followed by one row per feature with that feature blanked.

        Each blanked row encodes a copy of the subject whose feature path is
        set to `None`; `subject` itself is left untouched.
        """
        ablations = [self.encode(subject)]
        for path in self.features:
            blanked = copy.deepcopy(dict(subject))
            set_path(blanked, path, None)
            ablations.append(self.encode(blanked))
        return ablations

    def _rank(self, gains: Mapping[int, float]) -> dict[str, float]:
        features = self.features
        ranked = sorted(gains.items(), key=lambda item: item[1], reverse=True)
        return {features[index]: gain for index, gain in ranked}

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    @abstractmethod
    def predict(self, subject: Subject) -> Any:
        """Return the predicted class label or outcome value."""

    @abstractmethod
    def estimate(self, subject: Subject) -> list[float]:
        """Return class scores or the regression sensitivity profile."""

    def validate(self, subjects: Subjects) -> ClassificationReport | RegressionReport:
        """Compare predictions against the recorded outcomes.

        Args:
            subjects (Subjects): Subjects with known outcomes.

        Returns:
            ClassificationReport | RegressionReport: Accuracy and per-class
                figures for a classifier, R²/MAE/RMSE for a regressor.
        """
        records = as_subjects(subjects)
        pairs = [(self.predict(subject), get_path(subject, self.outcome)) for subject in records]
        if self.classification:
            return classification_report(pairs)
        return regression_report(pairs)

    def auc(self, subjects: Subjects, curve: CurveFunction = roc_curve_summary) -> list[CurveResult] | None:
        """Build one ROC curve per class from the model's class estimates.

        Args:
            subjects (Subjects): Subjects with known outcomes.
            curve (CurveFunction): Curve builder receiving `(score, indicator)`
                pairs and the class label.

        Returns:
            list[CurveResult] | None: One result per class, in class order, or
                `None` for a regression model.
        """
        if self.classes is None:
            return None
        records = as_subjects(subjects)
        expectations = [categoric(get_path(subject, self.outcome)) for subject in records]
        estimates = [self.estimate(subject) for subject in records]
        results = []
        for k, label in enumerate(self.classes):
            predictions = [
                (scores[k], 1 if expected == label else 0)
                for scores, expected in zip(estimates, expectations, strict=True)
            ]
            results.append(curve(predictions, label))
        return results

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def export_state(self) -> EnsembleState:
        """Export the model as data only.

        Returns:
            EnsembleState: Serializable state; restore it with `from_state`.
        """
        return EnsembleState(
            kind=self.kind,
            seed=self.seed,
            outcome=self.outcome,
            numericals=list(self.numericals),
            categoricals=list(self.categoricals),
            classes=list(self.classes) if self.classes is not None else None,
            hyperparameters=dict(self.hyperparameters),
            **self._export_trees(),
        )

    @classmethod
    def from_state(cls, state: EnsembleState) -> Self:
        """Restore a model that can keep training from exported state.

        Args:
            state (EnsembleState): State produced by `export_state`.

        Returns:
            Self: The restored model.

        Raises:
            ModelStateError: If the state was exported by a different model
                type or its trees do not match its classes.
        """
        if state.kind != cls.kind:
            raise ModelStateError(state.kind, f"expected kind {cls.kind!r}")
        model = cls(
            state.outcome,
            state.numericals,
            state.categoricals,
            classification=state.classification,
            hyperparameters=state.hyperparameters,
            seed=state.seed,
        )
        if state.classes is not None:
            model.classes = list(state.classes)
        model._restore_trees(state)
        logger.debug("Model restored", kind=state.kind, seed=state.seed)
        return model

    @abstractmethod
    def _export_trees(self) -> dict[str, Any]:
        """Return the tree fields of `EnsembleState` for this model type."""

    @abstractmethod
    def _restore_trees(self, state: EnsembleState) -> None:
        """Load the tree fields of `state`, rejecting layouts this model type cannot hold."""
