"""Feature encoding: subjects to fixed-width rows.

A row holds the numerical features first, then the categorical features, then
any extra columns a model appends (outcome, residuals, class index). Rows are
numpy object arrays so that categorical codes stay strings while numerical
features stay floats.

- Numerical values become floats; arrays stand in by their length, and missing
  or unparsable values become `NaN`.
- Categorical values become canonical strings; arrays are sorted and joined,
  and missing values become the empty string.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from typing import Any

import numpy as np

from forestkit.records import Subject, get_path

MISSING_CATEGORY: str = ""


def numeric(value: Any) -> float:
    """Coerce a raw subject value to a number.

    Args:
        value (Any): The raw value.

    Returns:
        float: The number, the length of an array value, or `NaN`.

    Examples:
        >>> numeric([1, 2, 3])
        3.0
        >>> numeric("2.5")
        2.5
        >>> numeric(None)
        nan
    """
    if value is None:
        return math.nan
    if isinstance(value, (list, tuple, set, frozenset)):
        return float(len(value))
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def categoric(value: Any) -> str:
    """Coerce a raw subject value to a canonical category code.

    Args:
        value (Any): The raw value.

    Returns:
        str: The category code. Integral floats drop their fractional part so
            that `1` and `1.0` share one code.

    Examples:
        >>> categoric(["smoker", "diabetic"])
        'diabetic,smoker'
        >>> categoric(2.0)
        '2'
        >>> categoric(None), categoric(float("nan"))
        ('', '')
    """
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return MISSING_CATEGORY
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(sorted(categoric(item) for item in value))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def classify(label: Any, classes: list[str]) -> int:
    """Return the index of `label` in `classes`, appending it when unseen.

    Args:
        label (Any): Raw outcome value; canonicalized with `categoric`.
        classes (list[str]): Ordered distinct class labels, extended in place.

    Returns:
        int: The class index.

    Examples:
        >>> classes = ["A"]
        >>> classify("B", classes), classes
        (1, ['A', 'B'])
    """
    code = categoric(label)
    try:
        return classes.index(code)
    except ValueError:
        classes.append(code)
        return len(classes) - 1


def encode(subject: Subject, numericals: Sequence[str], categoricals: Sequence[str]) -> np.ndarray:
    """Encode one subject into a feature row (no outcome columns).

    Args:
        subject (Subject): The record to encode.
        numericals (Sequence[str]): Paths of numerical features.
        categoricals (Sequence[str]): Paths of categorical features.

    Returns:
        np.ndarray: 1-D object array of length `len(numericals) + len(categoricals)`.
    """
    row = np.empty(len(numericals) + len(categoricals), dtype=object)
    for j, path in enumerate(numericals):
        row[j] = numeric(get_path(subject, path))
    offset = len(numericals)
    for j, path in enumerate(categoricals):
        row[offset + j] = categoric(get_path(subject, path))
    return row


def encode_matrix(matrix: Sequence[Sequence[Any]], num_numerical: int, num_categorical: int) -> np.ndarray:
    """Canonicalize pre-extracted feature rows the same way `encode` treats subjects.

    Args:
        matrix (Sequence[Sequence[Any]]): Rows of raw feature values, numerical
            columns first.
        num_numerical (int): Number of leading numerical columns.
        num_categorical (int): Number of trailing categorical columns.

    Returns:
        np.ndarray: 2-D object array of shape `(len(matrix), num_numerical + num_categorical)`.
    """
    width = num_numerical + num_categorical
    rows = np.empty((len(matrix), width), dtype=object)
    for i, raw in enumerate(matrix):
        for j in range(width):
            rows[i, j] = numeric(raw[j]) if j < num_numerical else categoric(raw[j])
    return rows


def tabulate(
    subjects: Sequence[Subject],
    numericals: Sequence[str],
    categoricals: Sequence[str] = (),
    extras: Sequence[Callable[[Subject], Any]] = (),
) -> np.ndarray:
    """Extract rows from subjects, appending one column per extra function.

    Args:
        subjects (Sequence[Subject]): The records to encode.
        numericals (Sequence[str]): Paths of numerical features.
        categoricals (Sequence[str]): Paths of categorical features.
        extras (Sequence[Callable[[Subject], Any]]): Functions computing the
            trailing columns (outcome, residual accumulators, class index).

    Returns:
        np.ndarray: 2-D object array of shape
            `(len(subjects), len(numericals) + len(categoricals) + len(extras))`.
            The width is preserved even when there are no subjects.
    """
    width = len(numericals) + len(categoricals)
    rows = np.empty((len(subjects), width + len(extras)), dtype=object)
    for i, subject in enumerate(subjects):
        rows[i, :width] = encode(subject, numericals, categoricals)
        for j, extra in enumerate(extras):
            rows[i, width + j] = extra(subject)
    return rows
