"""Randomized tree induction ("sprout"), incremental update ("fortify"), and traversal.

Induction follows the extremely randomized trees recipe: instead of scanning
every threshold, a bounded number of random features and random cutoffs are
tried per node and the best improving one is kept. All randomness comes from
the `SeededRandom` carried by the `TreeContext`, so a given seed and row set
always produce the same tree.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from forestkit.rng import SeededRandom
from forestkit.tree.impurity import (
    Partition,
    gini_of,
    mean,
    mode,
    mse_of,
    partition,
    summarize,
)
from forestkit.tree.impurity import goes_left as _goes_left
from forestkit.tree.models import Cutoff, Leaf, Split, TreeNode


@dataclass(frozen=True)
class TreeContext:
    """Row layout, stopping rules, and randomness shared by one build.

    Attributes:
        num_numerical (int): Number of leading numerical feature columns.
        outcome (int): Column index the trees are fitted to.
        classification (bool): Gini/mode (True) or MSE/mean (False).
        min_size (int): A node splits only when more than this many rows reach it.
        max_depth (int): Nodes at this depth become leaves.
        max_attempt (int): Feature draws per node, and cutoff draws per feature.
        rng (SeededRandom): Source of every random draw.
    """

    num_numerical: int
    outcome: int
    classification: bool
    min_size: int
    max_depth: int
    max_attempt: int
    rng: SeededRandom


class _Candidate(NamedTuple):
    feature: int
    cutoff: Cutoff
    branch: Partition


# ---------------------------------------------------------------------------
# Public interface -- Induction
# ---------------------------------------------------------------------------


def sprout(
    rows: np.ndarray,
    features: Sequence[int],
    node_impurity: float,
    depth: int,
    context: TreeContext,
) -> TreeNode:
    """Grow a tree over `rows` by randomized split search.

    A node is split while its impurity is positive, more than `min_size` rows
    reach it, and `depth < max_depth`. Otherwise, or when no improving split
    turns up within the attempt budget, the rows are summarized as a leaf.

    Args:
        rows (np.ndarray): The rows reaching this node.
        features (Sequence[int]): Candidate feature column indices.
        node_impurity (float): Impurity of `rows`; a split must beat it.
        depth (int): Depth of this node (root is 0).
        context (TreeContext): Layout, limits and random source.

    Returns:
        TreeNode: A `Split` subtree, or a `Leaf` carrying `node_impurity`.
    """
    if node_impurity > 0 and len(rows) > context.min_size and depth < context.max_depth and len(features):
        best = _search_split(rows, features, node_impurity, context)
        if best is not None:
            branch = best.branch
            return Split(
                feature=best.feature,
                cutoff=best.cutoff,
                impurity=branch.impurity,
                left=sprout(branch.left, features, branch.left_impurity, depth + 1, context),
                right=sprout(branch.right, features, branch.right_impurity, depth + 1, context),
            )
    return summarize(rows, context.outcome, context.classification, node_impurity)


def fortify(
    tree: TreeNode,
    rows: np.ndarray,
    features: Sequence[int],
    node_impurity: float,
    depth: int,
    context: TreeContext,
) -> TreeNode:
    """Adapt an existing tree to a new batch of rows.

    At a split, the new rows are routed through the existing test. When they
    are more heterogeneous under it than the stored impurity, a fresh
    one-level split is searched; if one beats the stored impurity it becomes
    the node and the old subtree is grafted under its purer branch. Both
    children are then fortified with their share of the rows. Splits reached
    at `max_depth` are pruned to a leaf.

    At a leaf with more than `min_size` rows, the leaf is re-grown when the
    rows are more impure than the leaf recorded, else re-summarized.

    Args:
        tree (TreeNode): The tree to update; split nodes are modified in place.
        rows (np.ndarray): New rows reaching this node. Empty means no change.
        features (Sequence[int]): Candidate feature column indices.
        node_impurity (float): Impurity of `rows` as computed by the parent.
        depth (int): Depth of this node.
        context (TreeContext): Layout, limits and random source.

    Returns:
        TreeNode: The updated subtree, which may be a different object.
    """
    if len(rows) == 0:
        return tree

    if isinstance(tree, Split):
        if depth >= context.max_depth:
            return prune(tree, rows, context)
        branch = _route(rows, tree.feature, tree.cutoff, context)
        if branch.impurity > tree.impurity:
            one_level = dataclasses.replace(context, max_depth=1)
            node = sprout(rows, features, tree.impurity, 0, one_level)
            if isinstance(node, Split):
                branch = _route(rows, node.feature, node.cutoff, context)
                if branch.left_impurity < branch.right_impurity:
                    node.left = tree
                else:
                    node.right = tree
                tree = node
        tree.left = fortify(tree.left, branch.left, features, branch.left_impurity, depth + 1, context)
        tree.right = fortify(tree.right, branch.right, features, branch.right_impurity, depth + 1, context)
        return tree

    if len(rows) > context.min_size:
        if node_impurity > tree.impurity and depth < context.max_depth:
            return sprout(rows, features, node_impurity, depth, context)
        return summarize(rows, context.outcome, context.classification, node_impurity)
    return tree


def prune(tree: TreeNode, rows: np.ndarray, context: TreeContext) -> TreeNode:
    """Collapse `tree` into a leaf summarizing its own predictions for `rows`.

    Nothing changes unless more than `min_size` rows arrive.
    """
    if len(rows) <= context.min_size:
        return tree
    predictions = np.array([predict_tree(tree, row, context.num_numerical) for row in rows], dtype=np.float64)
    if context.classification:
        return Leaf(value=mode(predictions.tolist()), impurity=gini_of(predictions))
    return Leaf(value=mean(predictions), impurity=mse_of(predictions))


# ---------------------------------------------------------------------------
# Public interface -- Traversal
# ---------------------------------------------------------------------------


def predict_tree(tree: TreeNode, row: Sequence[object], num_numerical: int) -> float:
    """Walk one tree for one row and return the leaf value."""
    node = tree
    while isinstance(node, Split):
        numerical = node.feature < num_numerical
        node = node.left if _goes_left(row[node.feature], node.cutoff, numerical) else node.right
    return node.value


def harvest(row: Sequence[object], num_numerical: int, trees: Sequence[TreeNode]) -> list[float]:
    """Collect one vote (leaf value) per tree for a single row."""
    return [predict_tree(tree, row, num_numerical) for tree in trees]


def accumulate_gain(node: TreeNode, parent_impurity: float, gains: dict[int, float]) -> None:
    """Add `parent_impurity - node.impurity` to `gains[feature]` for every split in `node`."""
    if isinstance(node, Leaf):
        return
    gains[node.feature] = gains.get(node.feature, 0.0) + parent_impurity - node.impurity
    accumulate_gain(node.left, node.impurity, gains)
    accumulate_gain(node.right, node.impurity, gains)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _route(rows: np.ndarray, feature: int, cutoff: Cutoff, context: TreeContext) -> Partition:
    return partition(
        rows,
        feature,
        cutoff,
        num_numerical=context.num_numerical,
        outcome=context.outcome,
        classification=context.classification,
    )


def _draw_cutoff(column: np.ndarray, numerical: bool, rng: SeededRandom) -> Cutoff:
    """Draw a random cutoff from a feature column.

    Numerical cutoffs are a random convex combination of two sampled values;
    categorical cutoffs are a sampled value.
    """
    num_row = len(column)
    if numerical:
        weight = rng.random()
        first = float(column[rng.randint(num_row)])
        second = float(column[rng.randint(num_row)])
        return first * weight + second * (1.0 - weight)
    return column[rng.randint(num_row)]


def _search_split(
    rows: np.ndarray,
    features: Sequence[int],
    node_impurity: float,
    context: TreeContext,
) -> _Candidate | None:
    """Return the best improving split found within the attempt budget, or None.

    Up to `max_attempt` features are drawn, each with up to `max_attempt`
    cutoffs. Feature draws stop as soon as the best split so far beats
    `node_impurity`. Splits leaving a branch empty are discarded, and ties keep
    the earlier candidate.
    """
    rng = context.rng
    best: _Candidate | None = None
    for _ in range(context.max_attempt):
        if best is not None and best.branch.impurity < node_impurity:
            break
        feature = features[rng.randint(len(features))]
        numerical = feature < context.num_numerical
        column = rows[:, feature]
        for _ in range(context.max_attempt):
            cutoff = _draw_cutoff(column, numerical, rng)
            if best is not None and best.feature == feature and best.cutoff == cutoff:
                continue
            branch = _route(rows, feature, cutoff, context)
            if len(branch.left) and len(branch.right) and (best is None or branch.impurity < best.branch.impurity):
                best = _Candidate(feature, cutoff, branch)
    if best is not None and best.branch.impurity < node_impurity:
        return best
    return None
