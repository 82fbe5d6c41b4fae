"""TEDA (typicality and eccentricity data analytics) anomaly scoring."""

from __future__ import annotations

import math
from collections.abc import Sequence

from frdocker import config


def _div(a: float, b: float) -> float:
    """Divide with IEEE semantics instead of raising on zero."""
    if b != 0:
        return a / b
    if a == 0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)


def _threshold(k: float) -> float:
    return (config.TEDA_N_SIGMA**2 + 1.0) / (2.0 * k)


def calculate_with_history(
    data: Sequence[float], mean: Sequence[float], sigma: float, n: int
) -> tuple[float, float, list[float], float]:
    """Fold a new point into the running statistics.

    Returns (eccentricity, threshold, new mean, new variance). ``n`` counts
    the new point. The given mean is not modified.
    """
    k = float(n)
    new_mean = [((k - 1) * m + d) / k for m, d in zip(mean, data, strict=True)]
    sub = [d - m for d, m in zip(data, new_mean)]
    sq = sum(x * x for x in sub)
    new_sigma = sigma * (k - 1) / k + _div(1.0, k - 1) * sq
    ecc = (_div(sq, new_sigma) + 1.0) / (2.0 * k)
    return ecc, _threshold(k), new_mean, new_sigma


def calculate_with_sample(
    data: Sequence[Sequence[float]],
) -> tuple[list[float], float]:
    """Score every sample against the others; return eccentricities and threshold."""
    all_ecc: list[float] = []
    for idx, sample in enumerate(data):
        mean = list(sample)
        sigma = 0.0
        ecc = 0.0
        n = 1
        for other_idx, other in enumerate(data):
            if other_idx == idx:
                continue
            n += 1
            ecc, _, mean, sigma = calculate_with_history(other, mean, sigma, n)
        all_ecc.append(ecc)
    count = len(all_ecc)
    if count == 0:
        return [], math.nan
    return all_ecc, sum(all_ecc) / count + 1.0 / count