"""Tree sub-package: node models, impurity primitives, induction and fortification."""

from __future__ import annotations

from forestkit.tree.impurity import Partition, gini, mse, partition, summarize
from forestkit.tree.induction import (
    TreeContext,
    accumulate_gain,
    fortify,
    harvest,
    predict_tree,
    prune,
    sprout,
)
from forestkit.tree.models import (
    Cutoff,
    Hyperparameters,
    Leaf,
    Split,
    TreeNode,
    resolve_hyperparameters,
)

__all__ = [
    "Cutoff",
    "Hyperparameters",
    "Leaf",
    "Partition",
    "Split",
    "TreeContext",
    "TreeNode",
    "accumulate_gain",
    "fortify",
    "gini",
    "harvest",
    "mse",
    "partition",
    "predict_tree",
    "prune",
    "resolve_hyperparameters",
    "sprout",
    "summarize",
]
