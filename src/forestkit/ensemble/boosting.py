"""Stochastic gradient boosting over randomized regression trees.

Boosting rows extend the feature columns with three working columns:

- `scaled` (index `num_feature`): the damped residual the next tree is fitted to.
- `accumulator` (index `num_feature + 1`): the undamped residual, reduced by
  every tree's prediction.
- `target` (index `num_feature + 2`): the class index or regression target.

Classification fits one sequence per class against a 0/1 indicator
(one-vs-rest); regression fits a single sequence against the target.
"""

from __future__ import annotations

from typing import Any, ClassVar

import numpy as np
from loguru import logger

from forestkit.ensemble.base import BaseEnsemble
from forestkit.ensemble.state import EnsembleKind, EnsembleState
from forestkit.exceptions import ModelStateError
from forestkit.records import Subject
from forestkit.rng import SeededRandom
from forestkit.tree.impurity import mse, partition
from forestkit.tree.induction import TreeContext, accumulate_gain, harvest, predict_tree, sprout
from forestkit.tree.models import Hyperparameters, Split, TreeNode

# ---------------------------------------------------------------------------
# Public interface -- Growth
# ---------------------------------------------------------------------------


def boost(
    trees: list[TreeNode],
    baselines: list[float],
    rows: np.ndarray,
    *,
    num_numerical: int,
    hyperparameters: Hyperparameters,
    rng: SeededRandom,
) -> None:
    """Run `max_tree` boosting rounds over one sequence.

    Each round draws `int(len(rows) * sampling_rate)` rows without
    replacement. An existing tree at that round is reused when its root test
    does not worsen on the sample; otherwise a tree is sprouted on the sample
    and, if it splits, replaces the existing one (or extends the sequence).
    Whichever tree is used then updates every row's residual columns.

    Args:
        trees (list[TreeNode]): The sequence, updated in place.
        baselines (list[float]): Residual impurity over all rows before each
            tree's round, aligned with `trees` and updated in place.
        rows (np.ndarray): Boosting rows; the working columns are updated in place.
        num_numerical (int): Number of leading numerical feature columns.
        hyperparameters (Hyperparameters): Resolved hyperparameters.
        rng (SeededRandom): Source of every random draw.
    """
    num_feature = rows.shape[1] - 3
    scaled = num_feature
    accumulator = num_feature + 1
    features = list(range(num_feature))
    context = TreeContext(
        num_numerical=num_numerical,
        outcome=scaled,
        classification=False,
        min_size=hyperparameters.min_size,
        max_depth=hyperparameters.max_depth,
        max_attempt=hyperparameters.max_attempt,
        rng=rng,
    )
    num_tree = len(trees)
    sample_size = int(len(rows) * hyperparameters.sampling_rate)

    for t in range(hyperparameters.max_tree):
        sample = rows[np.asarray(rng.sample_indices(len(rows), sample_size), dtype=np.intp)]
        baseline = mse(rows, scaled)
        position: int | None = t if t < num_tree else None

        tree = trees[t] if position is not None else None
        if isinstance(tree, Split):
            branch = partition(
                sample,
                tree.feature,
                tree.cutoff,
                num_numerical=num_numerical,
                outcome=scaled,
                classification=False,
            )
            if branch.impurity > tree.impurity:
                tree = None
        elif tree is not None:
            tree = None

        if tree is None:
            grown = sprout(sample, features, mse(sample, scaled), 0, context)
            if isinstance(grown, Split):
                tree = grown
                if position is None:
                    trees.append(grown)
                    baselines.append(baseline)
                    position = len(trees) - 1
                    logger.debug("Boosting tree appended", round=t)
                else:
                    trees[position] = grown
                    logger.debug("Boosting tree replaced", round=t)
            elif position is not None:
                tree = trees[position]
                logger.debug("Boosting tree kept", round=t)

        if tree is None or position is None:
            continue
        baselines[position] = baseline
        predictions = np.array([predict_tree(tree, row, num_numerical) for row in rows], dtype=np.float64)
        residuals = rows[:, accumulator].astype(np.float64) - predictions
        rows[:, accumulator] = residuals
        rows[:, scaled] = residuals * hyperparameters.learning_rate


def grow_boosting(
    sequences: list[list[TreeNode]],
    impurities: list[list[float]],
    rows: np.ndarray,
    *,
    num_numerical: int,
    num_class: int | None,
    hyperparameters: Hyperparameters,
    rng: SeededRandom,
) -> None:
    """Boost every sequence of a model with `[features..., outcome]` rows.

    Args:
        sequences (list[list[TreeNode]]): One sequence per class, or one for
            regression; extended in place when classes are new.
        impurities (list[list[float]]): Per-sequence round baselines, aligned
            with `sequences`.
        rows (np.ndarray): Rows laid out as `[features..., outcome]`; the
            outcome is a class index for classification.
        num_numerical (int): Number of leading numerical feature columns.
        num_class (int | None): Number of classes, or `None` for regression.
        hyperparameters (Hyperparameters): Resolved hyperparameters.
        rng (SeededRandom): Source of every random draw.
    """
    num_feature = rows.shape[1] - 1
    work = np.empty((len(rows), num_feature + 3), dtype=object)
    work[:, :num_feature] = rows[:, :num_feature]
    target = rows[:, num_feature].astype(np.float64)
    work[:, num_feature + 2] = target
    learning_rate = hyperparameters.learning_rate

    targets = [(target == k).astype(np.float64) for k in range(num_class)] if num_class is not None else [target]
    for k, initial in enumerate(targets):
        if k == len(sequences):
            sequences.append([])
            impurities.append([])
        work[:, num_feature + 1] = initial
        work[:, num_feature] = initial * learning_rate
        boost(
            sequences[k],
            impurities[k],
            work,
            num_numerical=num_numerical,
            hyperparameters=hyperparameters,
            rng=rng,
        )


# ---------------------------------------------------------------------------
# Public interface -- Model
# ---------------------------------------------------------------------------


class GradientBoosting(BaseEnsemble):
    """Sequential residual-fitting ensemble.

    Regression predicts the sum of the sequence's outputs. Classification sums
    each class's sequence into a score and predicts the class with the highest
    score; ties go to the earlier class.

    Attributes:
        sequences (list[list[TreeNode]]): One tree sequence per class, or one
            sequence for regression. Positions are stable across training.
        impurities (list[list[float]]): Residual impurity before each tree's
            round, aligned with `sequences`; the root baseline for `importance`.
    """

    kind: ClassVar[EnsembleKind] = "gradient_boosting"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        """Create an untrained model; see `BaseEnsemble.__init__` for arguments."""
        super().__init__(*args, **kwargs)
        self.sequences: list[list[TreeNode]] = []
        self.impurities: list[list[float]] = []

    def default_hyperparameters(self) -> Hyperparameters:
        """Return the boosting defaults, which differ between classification and regression."""
        if self.classification:
            return Hyperparameters(min_size=1, max_tree=25)
        return Hyperparameters(min_size=5, max_tree=50)

    def _grow(self, rows: np.ndarray, hyperparameters: Hyperparameters, rng: SeededRandom) -> None:
        grow_boosting(
            self.sequences,
            self.impurities,
            rows,
            num_numerical=self.num_numerical,
            num_class=len(self.classes) if self.classes is not None else None,
            hyperparameters=hyperparameters,
            rng=rng,
        )
        logger.info("Boosting grown", sequences=[len(sequence) for sequence in self.sequences])

    # -------------------------------------------------------------------------
    # Inference
    # -------------------------------------------------------------------------

    def vote(self, subject: Subject, sequence: int = 0) -> list[float]:
        """Return each tree's output in one sequence.

        Args:
            subject (Subject): The subject to score.
            sequence (int): Class index for classification; 0 for regression.

        Returns:
            list[float]: One output per tree; empty for an untrained sequence.
        """
        if sequence >= len(self.sequences):
            return []
        return harvest(self.encode(subject), self.num_numerical, self.sequences[sequence])

    def estimate(self, subject: Subject) -> list[float]:
        """Return per-class scores, or the regression sensitivity profile.

        Args:
            subject (Subject): The subject to score; never modified.

        Returns:
            list[float]: For classification, the summed outputs of each class's
                sequence. For regression, the prediction followed by the
                prediction with each feature in turn blanked out.
        """
        if self.classes is not None:
            row = self.encode(subject)
            scores = [sum(harvest(row, self.num_numerical, sequence)) for sequence in self.sequences]
            return scores + [0.0] * (len(self.classes) - len(scores))
        trees = self.sequences[0] if self.sequences else []
        return [sum(harvest(row, self.num_numerical, trees)) for row in self._ablations(subject)]

    def predict(self, subject: Subject) -> Any:
        """Return the highest-scoring class label, or the summed output for regression.

        Returns `None` for a classifier with no classes yet.
        """
        if self.classes is None:
            return float(sum(self.vote(subject)))
        scores = self.estimate(subject)
        if not scores:
            return None
        return self.classes[int(np.argmax(scores))]

    def importance(self) -> dict[str, float]:
        """Sum the impurity decrease of every split per feature, highest first.

        Each tree's root is measured against the residual impurity recorded
        before its round.

        Returns:
            dict[str, float]: Feature path to total impurity decrease.
        """
        gains: dict[int, float] = {}
        for sequence, baselines in zip(self.sequences, self.impurities, strict=True):
            for tree, baseline in zip(sequence, baselines, strict=True):
                accumulate_gain(tree, baseline, gains)
        return self._rank(gains)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def _export_trees(self) -> dict[str, Any]:
        return {
            "sequences": [[tree.model_copy(deep=True) for tree in sequence] for sequence in self.sequences],
            "impurities": [list(baselines) for baselines in self.impurities],
        }

    def _restore_trees(self, state: EnsembleState) -> None:
        if state.trees:
            raise ModelStateError(state.kind, "gradient boosting keeps its trees in sequences")
        limit = len(state.classes) if state.classes is not None else 1
        if len(state.sequences) > limit:
            raise ModelStateError(state.kind, f"{len(state.sequences)} sequences for at most {limit} targets")
        if [len(sequence) for sequence in state.sequences] != [len(baselines) for baselines in state.impurities]:
            raise ModelStateError(state.kind, "impurities do not line up with sequences")
        self.sequences = [[tree.model_copy(deep=True) for tree in sequence] for sequence in state.sequences]
        self.impurities = [list(baselines) for baselines in state.impurities]
