"""Pydantic tree node models and hyperparameter resolution."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Final, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

# ---------------------------------------------------------------------------
# Public type aliases
# ---------------------------------------------------------------------------

type Cutoff = float | str

# Leaves can summarize zero rows, whose mean is NaN; keep it through JSON.
_NODE_CONFIG: Final[ConfigDict] = ConfigDict(ser_json_inf_nan="constants")

# ---------------------------------------------------------------------------
# Public models -- Tree nodes
# ---------------------------------------------------------------------------


class Leaf(BaseModel):
    """A terminal node summarizing the rows that reached it.

    Attributes:
        kind (Literal["leaf"]): Discriminator field; always `"leaf"`.
        value (float): Class index mode (classification) or outcome mean
            (regression) of the summarized rows.
        impurity (float): Impurity of the summarized row set.

    Examples:
        >>> Leaf(value=1.0, impurity=0.0)
        Leaf(kind='leaf', value=1.0, impurity=0.0)
    """

    model_config = _NODE_CONFIG

    kind: Literal["leaf"] = Field(default="leaf", description='Discriminator field. Always "leaf".')
    value: float = Field(description="Class index mode or outcome mean of the summarized rows.")
    impurity: float = Field(description="Gini or MSE impurity of the summarized rows.")


class Split(BaseModel):
    """A decision node routing rows by one feature.

    Rows go left when `row[feature] < cutoff` for numerical features, or when
    `row[feature] == cutoff` for categorical features; everything else,
    including `NaN`, goes right.

    Attributes:
        kind (Literal["split"]): Discriminator field; always `"split"`.
        feature (int): Column index of the tested feature.
        cutoff (float | str): Numeric threshold or categorical code.
        impurity (float): Weighted impurity of the split that created this
            node. Later fortification compares fresh rows against it.
        left (Leaf | Split): Subtree for rows satisfying the test.
        right (Leaf | Split): Subtree for the remaining rows.
    """

    model_config = _NODE_CONFIG

    kind: Literal["split"] = Field(default="split", description='Discriminator field. Always "split".')
    feature: int = Field(ge=0, description="Column index of the tested feature.")
    cutoff: float | str = Field(description="Numeric threshold or categorical code.")
    impurity: float = Field(description="Weighted impurity of the split that created this node.")
    left: Leaf | Split = Field(discriminator="kind", description="Subtree for rows satisfying the test.")
    right: Leaf | Split = Field(discriminator="kind", description="Subtree for the remaining rows.")


# Use this alias wherever a node of either kind is accepted.
TreeNode = Annotated[Leaf | Split, Field(discriminator="kind")]

# ---------------------------------------------------------------------------
# Public models -- Hyperparameters
# ---------------------------------------------------------------------------

_SHORT_NAMES: Final[dict[str, str]] = {
    "size": "min_size",
    "depth": "max_depth",
    "tree": "max_tree",
    "sampling": "sampling_rate",
    "learning": "learning_rate",
    "attempt": "max_attempt",
}


class Hyperparameters(BaseModel):
    """Fully resolved training hyperparameters.

    Attributes:
        min_size (int): A node splits only when more than this many rows reach it.
        max_depth (int): Maximum depth of any tree.
        max_tree (int): Forest size, or length of each boosting sequence.
        sampling_rate (float): Fraction of features (random forest) or rows
            (gradient boosting) sampled per tree.
        learning_rate (float): Damping applied to boosting residuals.
        max_attempt (int): Bound on both the feature draws and the cutoff draws
            per feature when searching for a split.
    """

    model_config = ConfigDict(frozen=True)

    min_size: int = Field(ge=0, description="Nodes split only when more than this many rows reach them.")
    max_depth: int = Field(default=5, ge=1, description="Maximum tree depth.")
    max_tree: int = Field(ge=1, description="Forest size or boosting sequence length.")
    sampling_rate: float = Field(
        default=0.75, gt=0.0, le=1.0, description="Fraction of features or rows sampled per tree."
    )
    learning_rate: float = Field(default=0.4, gt=0.0, le=1.0, description="Damping applied to boosting residuals.")
    max_attempt: int = Field(default=10, ge=1, description="Feature draws and cutoff draws per split search.")


def resolve_hyperparameters(
    overrides: Mapping[str, Any] | None,
    defaults: Hyperparameters,
) -> Hyperparameters:
    """Merge caller overrides onto defaults, silently dropping invalid values.

    Keys may use the long field names or the short names `size`, `depth`,
    `tree`, `sampling`, `learning` and `attempt`. An unknown key, or a value
    that fails the field's constraints, leaves the default in place.

    Args:
        overrides (Mapping[str, Any] | None): Caller-supplied hyperparameters.
        defaults (Hyperparameters): Values used for anything missing or invalid.

    Returns:
        Hyperparameters: The resolved hyperparameters.

    Examples:
        >>> defaults = Hyperparameters(min_size=1, max_tree=200)
        >>> resolved = resolve_hyperparameters({"depth": 3, "sampling": 7.5}, defaults)
        >>> resolved.max_depth, resolved.sampling_rate
        (3, 0.75)
    """
    resolved = defaults.model_dump()
    for key, value in (overrides or {}).items():
        name = _SHORT_NAMES.get(key, key)
        if name not in resolved:
            logger.debug("Ignoring unknown hyperparameter", name=key)
            continue
        candidate = {**resolved, name: value}
        try:
            Hyperparameters.model_validate(candidate)
        except ValidationError:
            logger.debug("Hyperparameter rejected; using default", name=name, value=value, default=resolved[name])
            continue
        resolved = candidate
    return Hyperparameters.model_validate(resolved)
