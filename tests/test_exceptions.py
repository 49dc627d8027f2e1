"""Tests for custom exceptions.

This module tests the caller-facing exception classes: their inheritance,
attribute storage, messages, and where the models raise them.
"""

from __future__ import annotations

import pytest
from pytest_check import check

from forestkit.ensemble.boosting import GradientBoosting
from forestkit.ensemble.forest import RandomForest
from forestkit.exceptions import ModelStateError, RowShapeError


class TestRowShapeError:
    """Tests for RowShapeError."""

    def test_is_value_error_with_attributes(self) -> None:
        """RowShapeError should be a ValueError that stores the mismatching counts."""
        # Act
        error = RowShapeError(expected=4, actual=3, dimension="columns")

        # Assert
        with check:
            assert isinstance(error, ValueError)
        with check:
            assert error.expected == 4
        with check:
            assert error.actual == 3
        with check:
            assert error.dimension == "columns"
        with check:
            assert str(error) == "Expected 4 columns, got 3"

    def test_fit_with_mismatched_outcome_count_raises(self) -> None:
        """fit should reject X and Y of different lengths."""
        # Arrange
        model = RandomForest("y", ["x"], seed=1)

        # Act & Assert
        with pytest.raises(RowShapeError, match="Expected 3 rows, got 2") as exc_info:
            model.fit([[1.0], [2.0], [3.0]], [1.0, 2.0])

        with check:
            assert exc_info.value.dimension == "rows"

    def test_fit_with_wrong_row_width_raises(self) -> None:
        """fit should reject rows whose width differs from the feature count."""
        # Arrange
        model = GradientBoosting("y", ["x", "z"], ["group"], seed=1)

        # Act & Assert
        with pytest.raises(RowShapeError, match="Expected 3 columns, got 2"):
            model.fit([[1.0, 2.0, "a"], [1.0, 2.0]], [1.0, 2.0])


class TestModelStateError:
    """Tests for ModelStateError."""

    def test_is_value_error_with_attributes(self) -> None:
        """ModelStateError should be a ValueError naming the rejected kind and reason."""
        # Act
        error = ModelStateError("random_forest", "expected kind 'gradient_boosting'")

        # Assert
        with check:
            assert isinstance(error, ValueError)
        with check:
            assert error.kind == "random_forest"
        with check:
            assert error.reason == "expected kind 'gradient_boosting'"
        with check:
            assert str(error) == "Cannot restore random_forest state: expected kind 'gradient_boosting'"

    def test_restoring_into_wrong_model_type_raises(self) -> None:
        """A forest state should not restore into a gradient boosting model."""
        # Arrange
        state = RandomForest("y", ["x"], seed=5).export_state()

        # Act & Assert
        with pytest.raises(ModelStateError, match="random_forest"):
            GradientBoosting.from_state(state)

    def test_catchable_as_value_error(self) -> None:
        """Callers catching ValueError should also catch ModelStateError."""
        # Arrange
        state = GradientBoosting("y", ["x"], seed=5).export_state()

        # Act & Assert
        with pytest.raises(ValueError):  # noqa: PT011
            RandomForest.from_state(state)
