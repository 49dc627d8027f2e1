"""Custom exceptions for forestkit.

The tree engine itself never raises on degenerate data; these exceptions cover
the few places where a caller hands the models something they cannot use:

- RowShapeError: Pre-encoded rows or outcomes do not line up with the model.
- ModelStateError: Serialized state cannot be restored into the requested model.

Both subclass ValueError.
"""

from __future__ import annotations


class RowShapeError(ValueError):
    """Raised when pre-encoded rows do not match the model's feature layout.

    Attributes:
        expected (int): The expected count (rows or columns, see `dimension`).
        actual (int): The count that was supplied.
        dimension (str): Either `"rows"` or `"columns"`.

    Examples:
        >>> err = RowShapeError(expected=3, actual=2, dimension="columns")
        >>> str(err)
        'Expected 3 columns, got 2'
    """

    expected: int
    actual: int
    dimension: str

    def __init__(self, expected: int, actual: int, dimension: str) -> None:
        """Initialize RowShapeError.

        Args:
            expected (int): The expected count.
            actual (int): The supplied count.
            dimension (str): Either `"rows"` or `"columns"`.
        """
        super().__init__(f"Expected {expected} {dimension}, got {actual}")
        self.expected = expected
        self.actual = actual
        self.dimension = dimension


class ModelStateError(ValueError):
    """Raised when an `EnsembleState` cannot be restored into a model.

    Attributes:
        kind (str): The `kind` recorded in the state.
        reason (str): Why the state was rejected.
    """

    kind: str
    reason: str

    def __init__(self, kind: str, reason: str) -> None:
        """Initialize ModelStateError.

        Args:
            kind (str): The `kind` recorded in the rejected state.
            reason (str): Human-readable explanation.
        """
        super().__init__(f"Cannot restore {kind} state: {reason}")
        self.kind = kind
        self.reason = reason
