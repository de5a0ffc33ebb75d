"""
Distribution statistics shared by the market and the analysis layer.

All helpers accept possibly-empty input and return 0 rather than raising.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np


def gini_coefficient(values: Sequence[float]) -> float:
    """Gini coefficient Σ|xi - xj| / (2 n² mean), capped at 1.

    Computed from the ascending sort as Σ (2i - n - 1) x_i / (n² mean).
    Returns 0 for empty input or a non-positive mean.
    """
    if len(values) == 0:
        return 0.0
    arr = np.sort(np.asarray(values, dtype=float))
    mean = float(arr.mean())
    if mean <= 0:
        return 0.0
    n = len(arr)
    ranks = np.arange(1, n + 1)
    total = float(((2 * ranks - n - 1) * arr).sum())
    return min(1.0, total / (n * n * mean))


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of an ascending-sorted sequence."""
    n = len(sorted_values)
    if n == 0:
        return 0.0
    index = max(0, min(n - 1, math.ceil(p / 100 * n) - 1))
    return float(sorted_values[index])


def concentration_label(gini: float) -> str:
    if gini <= 0.3:
        return "low"
    if gini <= 0.5:
        return "medium"
    if gini <= 0.7:
        return "high"
    return "extreme"


def safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0
