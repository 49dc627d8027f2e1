"""Tests for randomized tree induction, fortification, and traversal."""

from __future__ import annotations

import copy
import dataclasses
import math

import numpy as np
import pytest
from pytest_check import check

from forestkit.rng import SeededRandom
from forestkit.tree.impurity import gini, mse, partition
from forestkit.tree.induction import TreeContext, accumulate_gain, fortify, harvest, predict_tree, prune, sprout
from forestkit.tree.models import Leaf, Split, TreeNode


def _classification_rows() -> np.ndarray:
    return np.array([[float(x), 1.0 if x >= 10 else 0.0] for x in range(20)], dtype=object)


def _regression_rows() -> np.ndarray:
    return np.array([[float(x), float(x)] for x in range(20)], dtype=object)


def _context(
    *, classification: bool, seed: int = 7, min_size: int = 0, max_depth: int = 3, num_numerical: int = 1
) -> TreeContext:
    return TreeContext(
        num_numerical=num_numerical,
        outcome=1,
        classification=classification,
        min_size=min_size,
        max_depth=max_depth,
        max_attempt=10,
        rng=SeededRandom(seed),
    )


def _depth(node: TreeNode) -> int:
    if isinstance(node, Leaf):
        return 0
    return 1 + max(_depth(node.left), _depth(node.right))


def _categorical_rows() -> np.ndarray:
    codes = ["red", "blue", "green"]
    return np.array([[codes[i % 3], 1.0 if i % 3 == 0 else 0.0] for i in range(21)], dtype=object)


def _split_violations(
    node: TreeNode, rows: np.ndarray, node_impurity: float, classification: bool, num_numerical: int = 1
) -> list[str]:
    """Route `rows` through `node` and list every split that breaks the induction rules."""
    if isinstance(node, Leaf):
        return []
    branch = partition(
        rows, node.feature, node.cutoff, num_numerical=num_numerical, outcome=1, classification=classification
    )
    violations = []
    if len(branch.left) == 0 or len(branch.right) == 0:
        violations.append(f"empty branch at cutoff {node.cutoff}")
    if not node.impurity < node_impurity:
        violations.append(f"non-improving split at cutoff {node.cutoff}")
    violations += _split_violations(node.left, branch.left, branch.left_impurity, classification, num_numerical)
    violations += _split_violations(node.right, branch.right, branch.right_impurity, classification, num_numerical)
    return violations


class TestSprout:
    """Tests for `sprout`: randomized induction from scratch."""

    def test_same_seed_same_tree(self) -> None:
        """Two builds from the same seed and rows should be identical."""
        # Arrange
        rows = _regression_rows()

        # Act
        first = sprout(rows, [0], mse(rows, 1), 0, _context(classification=False))
        second = sprout(rows, [0], mse(rows, 1), 0, _context(classification=False))

        # Assert
        assert first == second

    @pytest.mark.parametrize("classification", [True, False], ids=["gini", "mse"])
    def test_splits_are_non_empty_and_improving(self, classification: bool) -> None:
        """Every split should leave both branches populated and strictly reduce impurity."""
        # Arrange
        rows = _classification_rows() if classification else _regression_rows()
        root_impurity = gini(rows, 1) if classification else mse(rows, 1)

        # Act
        tree = sprout(rows, [0], root_impurity, 0, _context(classification=classification))

        # Assert
        with check:
            assert isinstance(tree, Split)
        with check:
            assert _split_violations(tree, rows, root_impurity, classification) == []

    @pytest.mark.parametrize("seed", [1, 7, 23, 101])
    def test_categorical_split_routes_matching_code_left(self, seed: int) -> None:
        """A categorical split should send exactly the rows equal to its code left."""
        # Arrange
        rows = _categorical_rows()
        root_impurity = gini(rows, 1)
        context = _context(classification=True, seed=seed, max_depth=1, num_numerical=0)

        # Act
        tree = sprout(rows, [0], root_impurity, 0, context)

        # Assert
        assert isinstance(tree, Split)
        branch = partition(rows, 0, tree.cutoff, num_numerical=0, outcome=1, classification=True)
        with check:
            assert tree.cutoff in {"red", "blue", "green"}
        with check:
            assert len(branch.left) > 0 and len(branch.right) > 0
        with check:
            assert all(row[0] == tree.cutoff for row in branch.left)
        with check:
            assert all(row[0] != tree.cutoff for row in branch.right)
        with check:
            assert _split_violations(tree, rows, root_impurity, True, num_numerical=0) == []

    def test_max_depth_reached_but_not_exceeded(self) -> None:
        """A continuous outcome should be split all the way down to `max_depth`."""
        # Arrange
        rows = _regression_rows()

        # Act
        tree = sprout(rows, [0], mse(rows, 1), 0, _context(classification=False, max_depth=3))

        # Assert
        assert _depth(tree) == 3

    def test_pure_rows_become_a_leaf(self) -> None:
        """Rows with zero impurity should not be split."""
        # Arrange
        rows = np.array([[float(x), 1.0] for x in range(5)], dtype=object)

        # Act
        tree = sprout(rows, [0], gini(rows, 1), 0, _context(classification=True))

        # Assert
        assert tree == Leaf(value=1.0, impurity=0.0)

    def test_min_size_stops_splitting(self) -> None:
        """A node with no more than `min_size` rows should be a leaf."""
        # Arrange
        rows = _classification_rows()

        # Act
        tree = sprout(rows, [0], gini(rows, 1), 0, _context(classification=True, min_size=20))

        # Assert
        with check:
            assert isinstance(tree, Leaf)
        with check:
            assert tree.impurity == pytest.approx(0.5)

    def test_no_features_gives_leaf(self) -> None:
        """Without candidate features the rows are summarized."""
        # Arrange
        rows = _regression_rows()

        # Act
        tree = sprout(rows, [], mse(rows, 1), 0, _context(classification=False))

        # Assert
        assert tree == Leaf(value=9.5, impurity=mse(rows, 1))


class TestFortify:
    """Tests for `fortify`: updating an existing tree with new rows."""

    @pytest.mark.parametrize("classification", [True, False], ids=["gini", "mse"])
    def test_same_rows_leave_tree_unchanged(self, classification: bool) -> None:
        """Fortifying with the rows the tree was built from should change nothing."""
        # Arrange
        rows = _classification_rows() if classification else _regression_rows()
        root_impurity = gini(rows, 1) if classification else mse(rows, 1)
        tree = sprout(rows, [0], root_impurity, 0, _context(classification=classification))
        expected = copy.deepcopy(tree)

        # Act
        fortified = fortify(tree, rows, [0], root_impurity, 0, _context(classification=classification))

        # Assert
        assert fortified == expected

    def test_empty_rows_return_same_object(self) -> None:
        """No rows means no change at all."""
        # Arrange
        rows = _classification_rows()
        tree = sprout(rows, [0], gini(rows, 1), 0, _context(classification=True))

        # Act
        fortified = fortify(tree, rows[:0], [0], 0.0, 0, _context(classification=True))

        # Assert
        assert fortified is tree

    def test_smaller_max_depth_prunes(self) -> None:
        """Splits at or below a lowered `max_depth` should collapse to leaves."""
        # Arrange
        rows = _regression_rows()
        tree = sprout(rows, [0], mse(rows, 1), 0, _context(classification=False, max_depth=3))

        # Act
        fortified = fortify(tree, rows, [0], mse(rows, 1), 0, _context(classification=False, max_depth=1))

        # Assert
        assert _depth(fortified) <= 1

    def test_impure_leaf_is_regrown(self) -> None:
        """A pure leaf receiving mixed rows should be replaced by a split."""
        # Arrange
        rows = _classification_rows()
        leaf = Leaf(value=0.0, impurity=0.0)

        # Act
        fortified = fortify(leaf, rows, [0], gini(rows, 1), 0, _context(classification=True))

        # Assert
        assert isinstance(fortified, Split)

    def test_worse_split_is_grafted_under_new_root(self) -> None:
        """A split that no longer separates the rows should move under a fresh root."""
        # Arrange
        rows = _classification_rows()
        stale = Split(
            feature=0,
            cutoff=100.0,
            impurity=0.45,
            left=Leaf(value=0.0, impurity=0.45),
            right=Leaf(value=1.0, impurity=0.45),
        )

        # Act
        fortified = fortify(stale, rows, [0], gini(rows, 1), 0, _context(classification=True, max_depth=5))

        # Assert
        with check:
            assert isinstance(fortified, Split)
        with check:
            assert fortified is not stale
        with check:
            assert isinstance(fortified, Split) and (fortified.left is stale or fortified.right is stale)


class TestPrune:
    """Tests for `prune`."""

    def test_collapses_to_prediction_summary(self) -> None:
        """A pruned subtree should become the mean of its own predictions."""
        # Arrange
        tree = Split(
            feature=0,
            cutoff=2.0,
            impurity=0.0,
            left=Leaf(value=10.0, impurity=0.0),
            right=Leaf(value=20.0, impurity=0.0),
        )
        rows = np.array([[1.0, 0.0], [3.0, 0.0], [4.0, 0.0], [5.0, 0.0]], dtype=object)

        # Act
        pruned = prune(tree, rows, _context(classification=False))

        # Assert
        with check:
            assert pruned.value == pytest.approx(17.5)
        with check:
            assert pruned.impurity == pytest.approx(18.75)

    def test_too_few_rows_keeps_tree(self) -> None:
        """Nothing is pruned unless more than `min_size` rows arrive."""
        # Arrange
        tree = Split(
            feature=0, cutoff=2.0, impurity=0.0, left=Leaf(value=1.0, impurity=0.0), right=Leaf(value=2.0, impurity=0.0)
        )
        rows = np.array([[1.0, 0.0]], dtype=object)

        # Act
        pruned = prune(tree, rows, _context(classification=False, min_size=3))

        # Assert
        assert pruned is tree


class TestTraversal:
    """Tests for `predict_tree`, `harvest`, and `accumulate_gain`."""

    def test_numerical_test_and_nan(self) -> None:
        """Values below the cutoff go left; `NaN` goes right."""
        # Arrange
        tree = Split(
            feature=0, cutoff=5.0, impurity=0.0, left=Leaf(value=1.0, impurity=0.0), right=Leaf(value=2.0, impurity=0.0)
        )

        # Act & Assert
        with check:
            assert predict_tree(tree, [4.0], 1) == 1.0
        with check:
            assert predict_tree(tree, [5.0], 1) == 2.0
        with check:
            assert predict_tree(tree, [math.nan], 1) == 2.0

    def test_categorical_equality(self) -> None:
        """Categorical features go left only on an exact code match."""
        # Arrange
        tree = Split(
            feature=1,
            cutoff="red",
            impurity=0.0,
            left=Leaf(value=1.0, impurity=0.0),
            right=Leaf(value=0.0, impurity=0.0),
        )

        # Act & Assert
        with check:
            assert predict_tree(tree, [0.0, "red"], 1) == 1.0
        with check:
            assert predict_tree(tree, [0.0, "blue"], 1) == 0.0

    def test_harvest_one_vote_per_tree(self) -> None:
        """`harvest` should return each tree's leaf value in order."""
        # Arrange
        trees: list[TreeNode] = [
            Leaf(value=3.0, impurity=0.0),
            Split(feature=0, cutoff=1.0, impurity=0.0, left=Leaf(value=4.0, impurity=0.0), right=Leaf(value=5.0, impurity=0.0)),
        ]

        # Act
        votes = harvest([2.0], 1, trees)

        # Assert
        assert votes == [3.0, 5.0]

    def test_accumulate_gain_per_feature(self) -> None:
        """Each split should credit its feature with the impurity drop from its parent."""
        # Arrange
        tree = Split(
            feature=0,
            cutoff=1.0,
            impurity=0.2,
            left=Split(
                feature=1,
                cutoff="a",
                impurity=0.05,
                left=Leaf(value=0.0, impurity=0.0),
                right=Leaf(value=1.0, impurity=0.1),
            ),
            right=Leaf(value=1.0, impurity=0.0),
        )
        gains: dict[int, float] = {}

        # Act
        accumulate_gain(tree, 0.5, gains)

        # Assert
        with check:
            assert gains[0] == pytest.approx(0.3)
        with check:
            assert gains[1] == pytest.approx(0.15)
