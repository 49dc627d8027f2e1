"""Tests for value coercion, class indexing, and row extraction."""

from __future__ import annotations

import math

import numpy as np
import pytest
from pytest_check import check

from forestkit.encoding import (
    MISSING_CATEGORY,
    categoric,
    classify,
    encode,
    encode_matrix,
    numeric,
    tabulate,
)


class TestNumeric:
    """Tests for `numeric`: coerces raw values to floats."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(3, 3.0), ("2.5", 2.5), (True, 1.0), (["a", "b", "c"], 3.0), ((), 0.0)],
        ids=["int", "numeric-string", "bool", "list-length", "empty-tuple"],
    )
    def test_numeric_values(self, value: object, expected: float) -> None:
        """Numbers, parsable strings and arrays should map to a float."""
        # Act
        result = numeric(value)

        # Assert
        assert result == expected

    @pytest.mark.parametrize("value", [None, "n/a", {"nested": 1}], ids=["none", "text", "mapping"])
    def test_unparsable_values_become_nan(self, value: object) -> None:
        """Missing or unparsable values should become NaN rather than raising."""
        # Act
        result = numeric(value)

        # Assert
        assert math.isnan(result)


class TestCategoric:
    """Tests for `categoric`: coerces raw values to canonical codes."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("female", "female"),
            (2.0, "2"),
            (2, "2"),
            (2.5, "2.5"),
            (["smoker", "diabetic"], "diabetic,smoker"),
            (None, MISSING_CATEGORY),
            (math.nan, MISSING_CATEGORY),
            (np.float64("nan"), MISSING_CATEGORY),
        ],
        ids=["string", "integral-float", "int", "fractional-float", "sorted-array", "missing", "nan", "numpy-nan"],
    )
    def test_category_codes(self, value: object, expected: str) -> None:
        """Values should map to stable string codes; arrays are sorted and joined."""
        # Act
        result = categoric(value)

        # Assert
        assert result == expected

    def test_array_order_does_not_matter(self) -> None:
        """Two arrays with the same members in different order should share a code."""
        # Act & Assert
        assert categoric(["b", "a"]) == categoric(["a", "b"])


class TestClassify:
    """Tests for `classify`: class indexing that only grows by append."""

    def test_new_labels_appended_in_order(self) -> None:
        """Unseen labels should be appended and existing ones reused."""
        # Arrange
        classes: list[str] = []

        # Act
        indices = [classify(label, classes) for label in ["B", "A", "B", "C", 1, 1.0]]

        # Assert
        with check:
            assert indices == [0, 1, 0, 2, 3, 3]
        with check:
            assert classes == ["B", "A", "C", "1"]


class TestRowExtraction:
    """Tests for `encode`, `encode_matrix`, and `tabulate`."""

    def test_encode_orders_numericals_before_categoricals(self) -> None:
        """A row should hold numerical features first, then categorical codes."""
        # Arrange
        subject = {"age": 61, "labs": {"ast": "40"}, "sex": "F", "history": ["copd", "asthma"]}

        # Act
        row = encode(subject, ["age", "labs.ast"], ["sex", "history"])

        # Assert
        assert list(row) == [61.0, 40.0, "F", "asthma,copd"]

    def test_encode_tolerates_missing_fields(self) -> None:
        """Missing numerical and categorical fields should become NaN and the empty code."""
        # Act
        row = encode({}, ["age"], ["sex"])

        # Assert
        with check:
            assert math.isnan(row[0])
        with check:
            assert row[1] == MISSING_CATEGORY

    def test_encode_matrix_canonicalizes_columns(self) -> None:
        """Pre-extracted rows should be coerced column by column."""
        # Act
        rows = encode_matrix([["1.5", 2.0], [None, "x"]], num_numerical=1, num_categorical=1)

        # Assert
        with check:
            assert rows.shape == (2, 2)
        with check:
            assert rows[0, 0] == 1.5
        with check:
            assert rows[0, 1] == "2"
        with check:
            assert math.isnan(rows[1, 0])

    def test_tabulate_appends_extra_columns(self) -> None:
        """Extra column functions should be evaluated per subject and appended."""
        # Arrange
        subjects = [{"x": 1, "y": 10}, {"x": 2, "y": 20}]

        # Act
        rows = tabulate(subjects, ["x"], [], [lambda subject: subject["y"] / 10, lambda _: 0])

        # Assert
        with check:
            assert rows.shape == (2, 3)
        with check:
            assert rows[1].tolist() == [2.0, 2.0, 0]

    def test_tabulate_keeps_width_without_subjects(self) -> None:
        """An empty subject list should still produce the full row width."""
        # Act
        rows = tabulate([], ["x", "z"], ["g"], [lambda _: 0])

        # Assert
        with check:
            assert rows.shape == (0, 4)
        with check:
            assert rows.dtype == np.dtype(object)
