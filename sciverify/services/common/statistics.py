"""
Statistical helpers used by the adapters and the forensics verifier.

Gamma and incomplete gamma are implemented directly (Lanczos, g=7, and a
power series) so chi-squared tail probabilities need no scipy.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

_LANCZOS_G = 7
_LANCZOS_COEFFICIENTS = (
    0.99999999999980993,
    676.5203681218851,
    -1259.1392167224028,
    771.32342877765313,
    -176.61502916214059,
    12.507343278686905,
    -0.13857109526572012,
    9.9843695780195716e-6,
    1.5056327351493116e-7,
)


def gamma(z: float) -> float:
    """Lanczos approximation of the gamma function, with reflection below 0.5."""
    if z < 0.5:
        return math.pi / (math.sin(math.pi * z) * gamma(1 - z))

    z -= 1
    x = _LANCZOS_COEFFICIENTS[0]
    for i in range(1, _LANCZOS_G + 2):
        x += _LANCZOS_COEFFICIENTS[i] / (z + i)
    t = z + _LANCZOS_G + 0.5
    return math.sqrt(2 * math.pi) * t ** (z + 0.5) * math.exp(-t) * x


def lower_incomplete_gamma(s: float, x: float) -> float:
    """Lower incomplete gamma by series expansion (200 terms max, 1e-12 cutoff)."""
    if x <= 0:
        return 0.0

    total = 0.0
    term = 1.0 / s
    for n in range(200):
        total += term
        term *= x / (s + n + 1)
        if abs(term) < 1e-12:
            break
    return x**s * math.exp(-x) * total


def chi2_survival(x: float, df: float) -> float:
    """Chi-squared survival function, P(X >= x)."""
    if x <= 0:
        return 1.0
    if df <= 0:
        return 0.0
    return 1.0 - lower_incomplete_gamma(df / 2, x / 2) / gamma(df / 2)


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def std_dev(values: Sequence[float]) -> float:
    """Sample standard deviation (n - 1 denominator); 0 below two values."""
    if len(values) < 2:
        return 0.0
    return float(np.std(values, ddof=1))


def median(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.median(values))
