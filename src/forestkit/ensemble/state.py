"""Data-only serialized form of an ensemble model."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, JsonValue

from forestkit.tree.models import TreeNode

type EnsembleKind = Literal["random_forest", "gradient_boosting"]


class EnsembleState(BaseModel):
    """Everything needed to restore a model and keep training it.

    Callables are never stored; the restoring class supplies behaviour. The
    seed and tree structure round-trip exactly, including `NaN` leaf values.

    Attributes:
        kind (EnsembleKind): Which model class produced the state.
        seed (int): Generator seed replayed at every training call.
        outcome (str): Dotted path of the outcome field.
        numericals (list[str]): Dotted paths of numerical features.
        categoricals (list[str]): Dotted paths of categorical features.
        classes (list[str] | None): Ordered class labels, or `None` for regression.
        hyperparameters (dict[str, JsonValue]): Caller overrides as given,
            re-resolved against the model defaults on every training call.
        trees (list[TreeNode]): Random forest trees.
        sequences (list[list[TreeNode]]): Gradient boosting sequences, one per
            class (classification) or exactly one (regression).
        impurity (float | None): Random forest baseline impurity of the last
            training set.
        impurities (list[list[float]]): Gradient boosting residual impurity
            before each round, aligned with `sequences`.

    Examples:
        >>> state = EnsembleState(kind="random_forest", seed=7, outcome="y", numericals=["x"])
        >>> EnsembleState.model_validate_json(state.model_dump_json()) == state
        True
    """

    model_config = ConfigDict(ser_json_inf_nan="constants")

    kind: EnsembleKind = Field(description="Which model class produced the state.")
    seed: int = Field(ge=1, description="Generator seed replayed at every training call.")
    outcome: str = Field(description="Dotted path of the outcome field.")
    numericals: list[str] = Field(default_factory=list, description="Dotted paths of numerical features.")
    categoricals: list[str] = Field(default_factory=list, description="Dotted paths of categorical features.")
    classes: list[str] | None = Field(default=None, description="Ordered class labels, or null for regression.")
    hyperparameters: dict[str, JsonValue] = Field(
        default_factory=dict,
        description="Caller hyperparameter overrides as given.",
    )
    trees: list[TreeNode] = Field(default_factory=list, description="Random forest trees.")
    sequences: list[list[TreeNode]] = Field(
        default_factory=list,
        description="Gradient boosting sequences, one per class or one for regression.",
    )
    impurity: float | None = Field(default=None, description="Random forest baseline impurity.")
    impurities: list[list[float]] = Field(
        default_factory=list,
        description="Gradient boosting residual impurity before each round.",
    )

    @property
    def classification(self) -> bool:
        """Whether the state describes a classification model."""
        return self.classes is not None
