"""
Statistical correlation functions for daily metric pairs.

This module implements:
1. Pearson correlation with a two-tailed Student's t significance test
2. Point-biserial correlation for binary vs continuous metrics
3. Strength and confidence classification of a correlation result

Every result is finite: zero-variance series, empty groups and non-finite
input all collapse to the degenerate result r=0, p=1.
"""

import math
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Sequence

import numpy as np
from scipy import stats

logger = logging.getLogger(__name__)

# Upper bounds on |r| for each strength class, checked in order
STRENGTH_THRESHOLDS = (
    (0.1, "negligible"),
    (0.3, "weak"),
    (0.5, "moderate"),
    (0.7, "strong"),
)

# Inclusive upper bounds on the p-value for each confidence class
CONFIDENCE_THRESHOLDS = (
    (0.01, "strong"),
    (0.05, "moderate"),
    (0.1, "exploratory"),
)


@dataclass(frozen=True)
class CorrelationResult:
    """Correlation coefficient and significance for one pair of series."""
    r: float  # correlation coefficient, -1..1
    p_value: float  # two-tailed, 0..1
    n: int  # sample size
    strength: str
    confidence: str

    @property
    def direction(self) -> str:
        """Direction of correlation."""
        return "positive" if self.r > 0 else "negative"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def classify_strength(r: float) -> str:
    """Classify correlation strength from |r|."""
    abs_r = abs(r)
    for upper, label in STRENGTH_THRESHOLDS:
        if abs_r < upper:
            return label
    return "very strong"


def classify_confidence(p_value: float) -> str:
    """Classify statistical confidence from the p-value."""
    for upper, label in CONFIDENCE_THRESHOLDS:
        if p_value <= upper:
            return label
    return "none"


def _degenerate_result(n: int) -> CorrelationResult:
    return CorrelationResult(
        r=0.0,
        p_value=1.0,
        n=n,
        strength=classify_strength(0.0),
        confidence=classify_confidence(1.0),
    )


def correlation_p_value(r: float, n: int) -> float:
    """
    Two-tailed p-value for a correlation coefficient.

    Uses t = r * sqrt((n - 2) / (1 - r^2)) with n - 2 degrees of freedom and
    the survival function of Student's t-distribution.

    Args:
        r: Correlation coefficient
        n: Sample size

    Returns:
        p-value in [0, 1]
    """
    if n < 3 or not math.isfinite(r):
        return 1.0
    if abs(r) >= 1.0:
        return 0.0

    df = n - 2
    t = r * math.sqrt(df / (1.0 - r * r))
    p_value = 2.0 * stats.t.sf(abs(t), df)

    if not math.isfinite(p_value):
        return 1.0
    return float(min(1.0, max(0.0, p_value)))


def _build_result(r: float, n: int) -> CorrelationResult:
    if not math.isfinite(r):
        logger.debug(f"Non-finite correlation coefficient for n={n}, using degenerate result")
        return _degenerate_result(n)

    r = float(min(1.0, max(-1.0, r)))
    p_value = correlation_p_value(r, n)

    return CorrelationResult(
        r=r,
        p_value=p_value,
        n=n,
        strength=classify_strength(r),
        confidence=classify_confidence(p_value),
    )


def calculate_pearson_correlation(
    values_a: Sequence[float],
    values_b: Sequence[float]
) -> CorrelationResult:
    """
    Calculate Pearson correlation coefficient with significance testing.

    Args:
        values_a: First variable values
        values_b: Second variable values, same length as values_a

    Returns:
        CorrelationResult with r, p-value and classifications

    Raises:
        ValueError: if the two series differ in length
    """
    if len(values_a) != len(values_b):
        raise ValueError("Arrays must have equal length")

    x = np.asarray(values_a, dtype=float)
    y = np.asarray(values_b, dtype=float)
    n = len(x)

    # Need at least 3 points for a t-test with one degree of freedom
    if n < 3:
        return _degenerate_result(n)

    if not (np.isfinite(x).all() and np.isfinite(y).all()):
        return _degenerate_result(n)

    # No variance in one or both variables
    if np.ptp(x) == 0 or np.ptp(y) == 0:
        return _degenerate_result(n)

    dx = x - x.mean()
    dy = y - y.mean()
    denominator = math.sqrt(float(np.dot(dx, dx)) * float(np.dot(dy, dy)))

    if denominator == 0 or not math.isfinite(denominator):
        return _degenerate_result(n)

    return _build_result(float(np.dot(dx, dy)) / denominator, n)


def calculate_point_biserial_correlation(
    binary_values: Sequence[bool],
    continuous_values: Sequence[float]
) -> CorrelationResult:
    """
    Calculate point-biserial correlation between a binary and a continuous series.

    r_pb = (M1 - M0) / s_n * sqrt(p * q), where M1/M0 are the continuous means
    of the true/false groups, s_n the population standard deviation and p/q the
    group proportions. Equal to Pearson on the binary series coerced to {0, 1}.

    An empty true or false group yields r=0, p=1, n=0.

    Raises:
        ValueError: if the two series differ in length
    """
    if len(binary_values) != len(continuous_values):
        raise ValueError("Arrays must have equal length")

    flags = np.asarray([bool(v) for v in binary_values], dtype=bool)
    y = np.asarray(continuous_values, dtype=float)
    n = len(y)

    n_true = int(flags.sum())
    n_false = n - n_true
    if n_true == 0 or n_false == 0:
        return _degenerate_result(0)

    if n < 3 or not np.isfinite(y).all() or np.ptp(y) == 0:
        return _degenerate_result(n)

    mean_true = float(y[flags].mean())
    mean_false = float(y[~flags].mean())
    std = float(y.std())

    if std == 0 or not math.isfinite(std):
        return _degenerate_result(n)

    p = n_true / n
    q = n_false / n
    r = (mean_true - mean_false) / std * math.sqrt(p * q)

    return _build_result(r, n)


def is_significant(result: CorrelationResult, alpha: float = 0.05) -> bool:
    """Check if a correlation is statistically significant."""
    return result.p_value < alpha


def format_correlation(result: CorrelationResult) -> str:
    """Format a correlation for display."""
    return (
        f"{result.strength} {result.direction} correlation "
        f"(r={result.r:.3f}, p={result.p_value:.4f}, n={result.n})"
    )
