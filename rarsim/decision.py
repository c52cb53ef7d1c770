"""
Final analysis of a simulated trial: Z statistics against the control arm
and the resulting per-arm decisions.
"""

import numpy as np
from scipy.stats import norm

from .exceptions import NumericDegeneracyError
from .index_table import IndexTable
from .utils import argmax_random


def _z(difference: np.ndarray, variance: np.ndarray) -> np.ndarray:
    if np.any(~np.isfinite(variance)) or np.any(variance <= 0):
        raise NumericDegeneracyError(
            "Variance of a treatment-control difference is zero or undefined")
    return difference / np.sqrt(variance)


def binary_statistics(n: np.ndarray, s: np.ndarray, ztype: str = 'unpooled') -> np.ndarray:
    """
    Z statistics of each treatment arm against the control for binary data.

    Parameters
    ----------
    n : np.ndarray
        Prior-augmented number of patients per arm, control first
    s : np.ndarray
        Prior-augmented number of successes per arm
    ztype : str
        'unpooled': ``phat_k (1 - phat_k) / n_k`` per arm;
        'pooled': pooled proportion of the two arms compared

    Returns
    -------
    np.ndarray
        K-1 Z statistics
    """
    n = np.asarray(n, dtype=float)
    s = np.asarray(s, dtype=float)
    if np.any(n <= 0):
        raise NumericDegeneracyError("Every arm needs at least one patient")

    phat = s / n
    difference = phat[1:] - phat[0]

    if ztype == 'unpooled':
        sigma = phat * (1 - phat) / n
        variance = sigma[0] + sigma[1:]
    elif ztype == 'pooled':
        pooled = (s[0] + s[1:]) / (n[0] + n[1:])
        variance = pooled * (1 - pooled) * (1 / n[0] + 1 / n[1:])
    else:
        raise ValueError("ztype must be 'pooled' or 'unpooled'")

    return _z(difference, variance)


def continuous_statistics(means: np.ndarray, sd: np.ndarray, n: np.ndarray) -> np.ndarray:
    """Z statistics of each treatment arm against the control with known sd."""
    means = np.asarray(means, dtype=float)
    sd = np.asarray(sd, dtype=float)
    n = np.asarray(n, dtype=float)
    if np.any(n <= 0) or np.any(np.isnan(means)):
        raise NumericDegeneracyError("Every arm needs at least one patient")

    variance = sd[1:] ** 2 / n[1:] + sd[0] ** 2 / n[0]
    return _z(means[1:] - means[0], variance)


def decide_by_boundary(z: np.ndarray, stopbound: float, side: str) -> np.ndarray:
    """1 where Z crosses the boundary in the direction of ``side``."""
    z = np.asarray(z)
    if side == 'upper':
        return (z >= stopbound).astype(int)
    if side == 'lower':
        return (z <= stopbound).astype(int)
    raise ValueError("side must be 'upper' or 'lower'")


def decide_by_level(z: np.ndarray, alpha: float, side: str) -> np.ndarray:
    """
    One-sided Normal tests at the Bonferroni level ``alpha / (K - 1)``,
    K - 1 being the number of comparisons in ``z``.
    """
    z = np.asarray(z)
    level = alpha / len(z)
    p = norm.cdf(z)
    if side == 'lower':
        return (p <= level).astype(int)
    if side == 'upper':
        return (p >= 1 - level).astype(int)
    raise ValueError("side must be 'upper' or 'lower'")


def index_winner(table: IndexTable, alpha: np.ndarray, beta: np.ndarray,
                 rng: np.random.Generator) -> int:
    """1-based arm with the largest index value at its final posterior."""
    return argmax_random(np.asarray(table.value(alpha, beta)), rng) + 1
