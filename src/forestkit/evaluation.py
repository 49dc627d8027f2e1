"""Model evaluation collaborators: accuracy, regression error, and ROC curves.

These functions only see `(prediction, expectation)` or `(score, indicator)`
pairs, so they work for any model. The ensembles call them from `validate` and
`auc`.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Sequence
from typing import Any, Final

import numpy as np
from pydantic import BaseModel, Field
from sklearn.metrics import (
    accuracy_score,
    confusion_matrix,
    mean_absolute_error,
    mean_squared_error,
    precision_recall_fscore_support,
    r2_score,
    roc_auc_score,
    roc_curve,
)

from forestkit.encoding import categoric, numeric

# Two-sided 95% normal quantile.
Z_95: Final[float] = 1.959963984540054

# ---------------------------------------------------------------------------
# Public models
# ---------------------------------------------------------------------------


class ClassReport(BaseModel):
    """One-vs-rest performance for a single class.

    Attributes:
        label (str): Class label.
        prevalence (float): Fraction of expectations equal to `label`.
        tpr (float): Sensitivity (recall).
        tnr (float): Specificity.
        ppv (float): Precision.
        npv (float): Negative predictive value.
        f1 (float): Harmonic mean of `ppv` and `tpr`.
    """

    label: str = Field(description="Class label.")
    prevalence: float = Field(description="Fraction of expectations equal to the label.")
    tpr: float = Field(description="Sensitivity (recall).")
    tnr: float = Field(description="Specificity.")
    ppv: float = Field(description="Precision.")
    npv: float = Field(description="Negative predictive value.")
    f1: float = Field(description="Harmonic mean of precision and recall.")

    def __str__(self) -> str:
        """Return a one-line summary, e.g. `"A (50.0%): tpr: 1.000 tnr: 0.900 ..."`."""
        return (
            f"{self.label} ({self.prevalence * 100:.1f}%): tpr: {self.tpr:.3f} tnr: {self.tnr:.3f}"
            f" ppv: {self.ppv:.3f} npv: {self.npv:.3f} f1: {self.f1:.3f}"
        )


class ClassificationReport(BaseModel):
    """Overall and per-class classification performance.

    Attributes:
        accuracy (float): Fraction of predictions equal to their expectation.
        balanced (float): Mean per-class sensitivity.
        f1 (float): Macro-averaged F1.
        classes (list[ClassReport]): One entry per label seen in either column,
            in order of first appearance.
    """

    accuracy: float = Field(description="Fraction of correct predictions.")
    balanced: float = Field(description="Mean per-class sensitivity.")
    f1: float = Field(description="Macro-averaged F1.")
    classes: list[ClassReport] = Field(description="Per-class one-vs-rest reports.")

    def __str__(self) -> str:
        """Return the headline figures followed by one line per class."""
        header = f"accuracy: {self.accuracy * 100:.1f}% balanced: {self.balanced * 100:.1f}% f1: {self.f1:.3f}"
        return "\n".join([header, *(str(report) for report in self.classes)])


class RegressionReport(BaseModel):
    """Regression error summary.

    Attributes:
        r2 (float): Coefficient of determination.
        mae (float): Mean absolute error.
        rmse (float): Root mean squared error.
    """

    r2: float = Field(description="Coefficient of determination.")
    mae: float = Field(description="Mean absolute error.")
    rmse: float = Field(description="Root mean squared error.")

    def __str__(self) -> str:
        """Return `"r2: ... mae: ... rmse: ..."`."""
        return f"r2: {self.r2:.3f} mae: {self.mae:.3f} rmse: {self.rmse:.3f}"


class CurveResult(BaseModel):
    """A nonparametric ROC curve and its summary statistics.

    Attributes:
        label (str): What the scores classify, usually a class label.
        auc (float): Area under the curve; `NaN` when one outcome is absent.
        ci (tuple[float, float]): 95% confidence interval of `auc` using the
            Hanley-McNeil standard error.
        z (float): `(auc - 0.5) / se`.
        p (float): Two-sided p-value of `z`.
        cutoff (float): Score threshold maximizing Youden's J.
        tpr (float): Sensitivity at `cutoff`.
        tnr (float): Specificity at `cutoff`.
        coordinates (list[tuple[float, float]]): `(fpr, tpr)` points of the curve.
    """

    label: str = Field(description="What the scores classify.")
    auc: float = Field(description="Area under the ROC curve.")
    ci: tuple[float, float] = Field(description="95% confidence interval of the AUC.")
    z: float = Field(description="Standardized distance of the AUC from 0.5.")
    p: float = Field(description="Two-sided p-value of z.")
    cutoff: float = Field(description="Score threshold maximizing Youden's J.")
    tpr: float = Field(description="Sensitivity at the cutoff.")
    tnr: float = Field(description="Specificity at the cutoff.")
    coordinates: list[tuple[float, float]] = Field(default_factory=list, description="(fpr, tpr) curve points.")

    def __str__(self) -> str:
        """Return a one-line summary of the curve."""
        return (
            f"{self.label}: {self.auc:.3f} (95% CI {self.ci[0]:.3f} - {self.ci[1]:.3f}) z: {self.z:+.3f}"
            f" p: {self.p:.3f} cutoff: {self.cutoff:.3f} tpr: {self.tpr:.3f} tnr: {self.tnr:.3f}"
        )


type CurveFunction = Callable[[Sequence[tuple[float, int]], str], CurveResult]

# ---------------------------------------------------------------------------
# Public interface -- Reports
# ---------------------------------------------------------------------------


def classification_report(pairs: Iterable[tuple[Any, Any]]) -> ClassificationReport:
    """Summarize `(prediction, expectation)` label pairs.

    Labels are canonicalized with `categoric`, so `1`, `1.0` and `"1"` agree.

    Args:
        pairs (Iterable[tuple[Any, Any]]): Predicted and expected labels.

    Returns:
        ClassificationReport: Accuracy, balanced accuracy, macro F1 and
            per-class reports.

    Raises:
        ValueError: If `pairs` is empty.

    Examples:
        >>> report = classification_report([("A", "A"), ("B", "A"), ("B", "B"), ("B", "B")])
        >>> report.accuracy
        0.75
        >>> [c.label for c in report.classes]
        ['A', 'B']
    """
    predicted, expected = _split_pairs(pairs, categoric)
    labels = list(dict.fromkeys(label for pair in zip(expected, predicted, strict=True) for label in pair))
    matrix = confusion_matrix(expected, predicted, labels=labels)
    ppv, tpr, f1, _ = precision_recall_fscore_support(
        expected, predicted, labels=labels, average=None, zero_division=0.0
    )

    total = len(expected)
    reports = []
    for k, label in enumerate(labels):
        tp = int(matrix[k, k])
        fn = int(matrix[k, :].sum()) - tp
        fp = int(matrix[:, k].sum()) - tp
        tn = total - tp - fn - fp
        reports.append(
            ClassReport(
                label=label,
                prevalence=(tp + fn) / total,
                tpr=float(tpr[k]),
                tnr=_ratio(tn, tn + fp),
                ppv=float(ppv[k]),
                npv=_ratio(tn, tn + fn),
                f1=float(f1[k]),
            )
        )
    return ClassificationReport(
        accuracy=float(accuracy_score(expected, predicted)),
        balanced=float(np.mean(tpr)),
        f1=float(np.mean(f1)),
        classes=reports,
    )


def regression_report(pairs: Iterable[tuple[Any, Any]]) -> RegressionReport:
    """Summarize `(prediction, expectation)` numeric pairs.

    Args:
        pairs (Iterable[tuple[Any, Any]]): Predicted and expected values;
            both are coerced with `numeric`.

    Returns:
        RegressionReport: R², MAE and RMSE.

    Raises:
        ValueError: If `pairs` is empty.

    Examples:
        >>> report = regression_report([(1.0, 1.0), (2.0, 2.0), (2.0, 3.0)])
        >>> round(report.mae, 4)
        0.3333
    """
    predicted, expected = _split_pairs(pairs, numeric)
    return RegressionReport(
        r2=float(r2_score(expected, predicted)),
        mae=float(mean_absolute_error(expected, predicted)),
        rmse=math.sqrt(mean_squared_error(expected, predicted)),
    )


# ---------------------------------------------------------------------------
# Public interface -- ROC
# ---------------------------------------------------------------------------


def roc_curve_summary(predictions: Sequence[tuple[float, int]], label: str) -> CurveResult:
    """Build a ROC curve from `(score, indicator)` pairs.

    Higher scores are taken to indicate the positive outcome. When the
    indicators contain only one outcome the curve is undefined and every
    statistic is `NaN`.

    Args:
        predictions (Sequence[tuple[float, int]]): Score and 0/1 outcome per subject.
        label (str): Name recorded on the result.

    Returns:
        CurveResult: AUC with confidence interval, significance, and the
            Youden-optimal operating point.

    Examples:
        >>> result = roc_curve_summary([(0.1, 0), (0.4, 0), (0.35, 1), (0.8, 1)], "B")
        >>> result.auc
        0.75
    """
    scores = np.array([float(score) for score, _ in predictions], dtype=np.float64)
    indicators = np.array([1 if indicator else 0 for _, indicator in predictions], dtype=np.int64)
    num_positive = int(indicators.sum())
    num_negative = len(indicators) - num_positive
    if num_positive == 0 or num_negative == 0:
        return CurveResult(
            label=label,
            auc=math.nan,
            ci=(math.nan, math.nan),
            z=math.nan,
            p=math.nan,
            cutoff=math.nan,
            tpr=math.nan,
            tnr=math.nan,
        )

    fpr, tpr, thresholds = roc_curve(indicators, scores, drop_intermediate=False)
    auc = float(roc_auc_score(indicators, scores))
    se = _hanley_mcneil_se(auc, num_positive, num_negative)
    if se > 0:
        z = (auc - 0.5) / se
    else:
        z = 0.0 if auc == 0.5 else math.copysign(math.inf, auc - 0.5)
    # The first point is the sentinel threshold above every score.
    best = 1 + int(np.argmax(tpr[1:] - fpr[1:]))
    return CurveResult(
        label=label,
        auc=auc,
        ci=(auc - Z_95 * se, auc + Z_95 * se),
        z=z,
        p=math.erfc(abs(z) / math.sqrt(2.0)),
        cutoff=float(thresholds[best]),
        tpr=float(tpr[best]),
        tnr=1.0 - float(fpr[best]),
        coordinates=[(float(x), float(y)) for x, y in zip(fpr, tpr, strict=True)],
    )


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _split_pairs[T](pairs: Iterable[tuple[Any, Any]], coerce: Callable[[Any], T]) -> tuple[list[T], list[T]]:
    predicted: list[T] = []
    expected: list[T] = []
    for prediction, expectation in pairs:
        predicted.append(coerce(prediction))
        expected.append(coerce(expectation))
    if not expected:
        raise ValueError("No predictions to evaluate")
    return predicted, expected


def _ratio(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator else 0.0


def _hanley_mcneil_se(auc: float, num_positive: int, num_negative: int) -> float:
    """Standard error of an AUC (Hanley and McNeil, 1982)."""
    q1 = auc / (2.0 - auc)
    q2 = 2.0 * auc * auc / (1.0 + auc)
    variance = (
        auc * (1.0 - auc) + (num_positive - 1) * (q1 - auc * auc) + (num_negative - 1) * (q2 - auc * auc)
    ) / (num_positive * num_negative)
    return math.sqrt(max(variance, 0.0))
