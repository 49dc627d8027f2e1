"""Random forest of extremely randomized trees with incremental retraining."""

from __future__ import annotations

import math
from typing import Any, ClassVar

import numpy as np
from loguru import logger

from forestkit.ensemble.base import BaseEnsemble
from forestkit.ensemble.state import EnsembleKind, EnsembleState
from forestkit.exceptions import ModelStateError
from forestkit.records import Subject
from forestkit.rng import SeededRandom
from forestkit.tree.impurity import impurity, mean, mode
from forestkit.tree.induction import TreeContext, accumulate_gain, fortify, harvest, sprout
from forestkit.tree.models import Hyperparameters, Split, TreeNode

# ---------------------------------------------------------------------------
# Public interface -- Growth
# ---------------------------------------------------------------------------


def grow_forest(
    trees: list[TreeNode],
    rows: np.ndarray,
    *,
    num_numerical: int,
    classification: bool,
    hyperparameters: Hyperparameters,
    rng: SeededRandom,
) -> float:
    """Fortify every existing tree with `rows`, then plant trees up to `max_tree`.

    Existing trees are fortified last-to-first over the full feature set.
    Each new tree is sprouted over `ceil(sampling_rate * num_feature)`
    features sampled without replacement; sprouts that yield only a leaf are
    discarded. Planting stops early after `max_attempt` consecutive discards.

    Args:
        trees (list[TreeNode]): The forest, updated in place.
        rows (np.ndarray): Rows laid out as `[features..., outcome]`.
        num_numerical (int): Number of leading numerical feature columns.
        classification (bool): Gini/mode (True) or MSE/mean (False).
        hyperparameters (Hyperparameters): Resolved hyperparameters.
        rng (SeededRandom): Source of every random draw.

    Returns:
        float: Impurity of the whole row set, the baseline every tree root
            was measured against.
    """
    num_feature = rows.shape[1] - 1
    outcome = num_feature
    features = list(range(num_feature))
    baseline = impurity(rows, outcome, classification)
    context = TreeContext(
        num_numerical=num_numerical,
        outcome=outcome,
        classification=classification,
        min_size=hyperparameters.min_size,
        max_depth=hyperparameters.max_depth,
        max_attempt=hyperparameters.max_attempt,
        rng=rng,
    )

    for t in range(len(trees) - 1, -1, -1):
        trees[t] = fortify(trees[t], rows, features, baseline, 0, context)
        logger.debug("Tree fortified", index=t)

    sample_size = math.ceil(num_feature * hyperparameters.sampling_rate)
    discarded = 0
    while len(trees) < hyperparameters.max_tree and discarded < hyperparameters.max_attempt:
        columns = rng.sample_indices(num_feature, sample_size)
        tree = sprout(rows, columns, baseline, 0, context)
        if isinstance(tree, Split):
            trees.append(tree)
            discarded = 0
            logger.debug("Tree sprouted", index=len(trees) - 1, features=columns)
        else:
            discarded += 1
    if len(trees) < hyperparameters.max_tree:
        logger.debug("Planting stopped early", trees=len(trees), max_tree=hyperparameters.max_tree)
    return baseline


# ---------------------------------------------------------------------------
# Public interface -- Model
# ---------------------------------------------------------------------------


class RandomForest(BaseEnsemble):
    """Bagging-style ensemble of independent randomized trees.

    Classification predicts the majority vote; regression predicts the mean
    vote. Calling `train` again fortifies the existing trees with the new
    subjects and plants any trees still missing, replaying the stored seed.

    Attributes:
        trees (list[TreeNode]): The forest. Positions are stable across training.
        impurity (float | None): Impurity of the last training set, or `None`
            before the first training call.

    Examples:
        >>> subjects = [{"x": x, "label": "A" if x < 5 else "B"} for x in (1, 2, 3, 8, 9, 10)]
        >>> model = RandomForest.from_subjects(
        ...     subjects, "label", ["x"], classification=True, hyperparameters={"depth": 1, "size": 0}, seed=42
        ... )
        >>> model.predict({"x": 4}), model.predict({"x": 7})
        ('A', 'B')
    """

    kind: ClassVar[EnsembleKind] = "random_forest"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        """Create an untrained forest; see `BaseEnsemble.__init__` for arguments."""
        super().__init__(*args, **kwargs)
        self.trees: list[TreeNode] = []
        self.impurity: float | None = None

    def default_hyperparameters(self) -> Hyperparameters:
        """Return the forest defaults: 200 trees, min size 1 (classification) or 3 (regression)."""
        return Hyperparameters(min_size=1 if self.classification else 3, max_tree=200)

    def _grow(self, rows: np.ndarray, hyperparameters: Hyperparameters, rng: SeededRandom) -> None:
        self.impurity = grow_forest(
            self.trees,
            rows,
            num_numerical=self.num_numerical,
            classification=self.classification,
            hyperparameters=hyperparameters,
            rng=rng,
        )
        logger.info("Forest grown", trees=len(self.trees), impurity=self.impurity)

    # -------------------------------------------------------------------------
    # Inference
    # -------------------------------------------------------------------------

    def vote(self, subject: Subject) -> list[float]:
        """Return each tree's leaf value for `subject` (class indices for classification)."""
        return harvest(self.encode(subject), self.num_numerical, self.trees)

    def estimate(self, subject: Subject) -> list[float]:
        """Return the class vote distribution, or the regression sensitivity profile.

        Args:
            subject (Subject): The subject to score; never modified.

        Returns:
            list[float]: For classification, the fraction of trees voting for
                each class. For regression, the mean vote followed by the mean
                vote with each feature in turn blanked out.
        """
        if self.classes is not None:
            estimates = [0.0] * len(self.classes)
            votes = [vote for vote in self.vote(subject) if not math.isnan(vote)]
            for vote in votes:
                estimates[int(vote)] += 1.0 / len(votes)
            return estimates
        return [mean(harvest(row, self.num_numerical, self.trees)) for row in self._ablations(subject)]

    def predict(self, subject: Subject) -> Any:
        """Return the majority class label, or the mean vote for regression.

        Returns `None` for an untrained classifier and `NaN` for an untrained
        regressor.
        """
        votes = self.vote(subject)
        if self.classes is None:
            return mean(votes)
        if not votes:
            return None
        return self.classes[int(mode(votes))]

    def importance(self) -> dict[str, float]:
        """Sum the impurity decrease of every split per feature, highest first.

        Returns:
            dict[str, float]: Feature path to total impurity decrease. Features
                never used in a split are absent.
        """
        if self.impurity is None:
            return {}
        gains: dict[int, float] = {}
        for tree in self.trees:
            accumulate_gain(tree, self.impurity, gains)
        return self._rank(gains)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def _export_trees(self) -> dict[str, Any]:
        return {
            "trees": [tree.model_copy(deep=True) for tree in self.trees],
            "impurity": self.impurity,
        }

    def _restore_trees(self, state: EnsembleState) -> None:
        if state.sequences:
            raise ModelStateError(state.kind, "a random forest has no boosting sequences")
        self.trees = [tree.model_copy(deep=True) for tree in state.trees]
        self.impurity = state.impurity