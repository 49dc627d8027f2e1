"""Impurity measures, row partitioning, and leaf summaries.

Rows are 2-D numpy object arrays: numerical features, then categorical codes,
then outcome columns. Partitioning never mutates its input; both branches are
fresh arrays that keep the original row order.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable
from typing import NamedTuple

import numpy as np

from forestkit.tree.models import Cutoff, Leaf


class Partition(NamedTuple):
    """The outcome of routing a row set through one feature/cutoff test.

    Attributes:
        left (np.ndarray): Rows passing the test, in input order.
        right (np.ndarray): Remaining rows, in input order.
        left_impurity (float): Impurity of `left`.
        right_impurity (float): Impurity of `right`.
        impurity (float): Size-weighted mean of the two branch impurities;
            candidate splits are ranked by it, lower is better.
    """

    left: np.ndarray
    right: np.ndarray
    left_impurity: float
    right_impurity: float
    impurity: float


def gini_of(values: np.ndarray) -> float:
    """Gini impurity `1 - sum(p_k ** 2)` of a 1-D array of class indices; 0 when empty."""
    if len(values) == 0:
        return 0.0
    _, counts = np.unique(values, return_counts=True)
    proportions = counts / len(values)
    return float(1.0 - np.sum(proportions * proportions))


def mse_of(values: np.ndarray) -> float:
    """Population variance of a 1-D numeric array; 0 when empty."""
    if len(values) == 0:
        return 0.0
    return float(np.var(values))


def outcome_column(rows: np.ndarray, column: int) -> np.ndarray:
    """Return one column of `rows` as float64."""
    return rows[:, column].astype(np.float64)


def gini(rows: np.ndarray, column: int) -> float:
    """Gini impurity of the class-index column of `rows`.

    Examples:
        >>> rows = np.array([[1.0, 0], [2.0, 0], [3.0, 1], [4.0, 1]], dtype=object)
        >>> gini(rows, 1)
        0.5
    """
    return gini_of(outcome_column(rows, column))


def mse(rows: np.ndarray, column: int) -> float:
    """Mean squared deviation of the outcome column of `rows` from its mean.

    Examples:
        >>> rows = np.array([[1.0, 2.0], [2.0, 4.0]], dtype=object)
        >>> mse(rows, 1)
        1.0
    """
    return mse_of(outcome_column(rows, column))


def impurity(rows: np.ndarray, column: int, classification: bool) -> float:
    """Dispatch to `gini` for classification and `mse` for regression."""
    return gini(rows, column) if classification else mse(rows, column)


def goes_left(value: object, cutoff: Cutoff, numerical: bool) -> bool:
    """Evaluate a split test for a single feature value.

    `NaN` numerics always fail the test and so travel right.
    """
    if numerical:
        return float(value) < cutoff  # type: ignore[arg-type, operator]
    return value == cutoff


def partition(
    rows: np.ndarray,
    feature: int,
    cutoff: Cutoff,
    *,
    num_numerical: int,
    outcome: int,
    classification: bool,
) -> Partition:
    """Route `rows` through the test `(feature, cutoff)`.

    Args:
        rows (np.ndarray): The row set to split.
        feature (int): Column index of the tested feature.
        cutoff (Cutoff): Threshold (numerical) or code (categorical).
        num_numerical (int): Number of leading numerical feature columns; a
            feature index below it is compared with `<`, otherwise with `==`.
        outcome (int): Column index the impurity is measured on.
        classification (bool): Use Gini (True) or MSE (False).

    Returns:
        Partition: Both branches and their impurities. An empty `rows` yields
            two empty branches with zero impurity.
    """
    values = rows[:, feature]
    if feature < num_numerical:
        mask = values.astype(np.float64) < cutoff
    else:
        mask = np.asarray(values == cutoff, dtype=bool)
    left = rows[mask]
    right = rows[~mask]
    left_impurity = impurity(left, outcome, classification)
    right_impurity = impurity(right, outcome, classification)
    total = len(rows)
    weighted = (len(left) * left_impurity + len(right) * right_impurity) / total if total else 0.0
    return Partition(left, right, left_impurity, right_impurity, weighted)


def mode(values: Iterable[float]) -> float:
    """Most frequent value; ties go to the value seen first, and empty input gives `NaN`.

    Examples:
        >>> mode([2.0, 1.0, 1.0, 2.0])
        2.0
    """
    counts = Counter(values)
    if not counts:
        return math.nan
    value, _ = counts.most_common(1)[0]
    return float(value)


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean; empty input gives `NaN`."""
    array = np.fromiter(values, dtype=np.float64)
    if len(array) == 0:
        return math.nan
    return float(np.mean(array))


def summarize(rows: np.ndarray, outcome: int, classification: bool, node_impurity: float) -> Leaf:
    """Collapse a row set into a leaf.

    Args:
        rows (np.ndarray): The rows reaching the leaf.
        outcome (int): Column index of the outcome.
        classification (bool): Take the mode (True) or the mean (False).
        node_impurity (float): Impurity recorded on the leaf.

    Returns:
        Leaf: The summary leaf.
    """
    values = outcome_column(rows, outcome)
    value = mode(values.tolist()) if classification else mean(values)
    return Leaf(value=value, impurity=node_impurity)
