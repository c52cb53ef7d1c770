"""
Utility functions used throughout the rarsim package.
"""

from typing import Optional, Sequence
import warnings

import numpy as np


def make_rng(seed: Optional[int] = None,
             rng: Optional[np.random.Generator] = None) -> np.random.Generator:
    """
    Return the random stream for one simulation call.

    Parameters
    ----------
    seed : int, optional
        Seed for a new generator
    rng : np.random.Generator, optional
        Existing generator; takes precedence over seed

    Returns
    -------
    np.random.Generator
    """
    if rng is not None:
        if seed is not None:
            warnings.warn("Both seed and rng supplied; seed is ignored")
        return rng
    return np.random.default_rng(seed)


def randomize_by_fixed_block(n: int, block: Sequence[int],
                             rng: np.random.Generator) -> np.ndarray:
    """
    Randomize treatments using fixed block randomization.

    Parameters
    ----------
    n : int
        Number of patients to randomize
    block : sequence of int
        Treatment assignments within each block
    rng : np.random.Generator
        Random stream

    Returns
    -------
    np.ndarray
        Treatment assignments for n patients
    """
    block = np.asarray(block)
    n_full_blocks, remainder = divmod(n, len(block))

    treatments = []
    for _ in range(n_full_blocks):
        treatments.extend(rng.permutation(block))

    if remainder > 0:
        treatments.extend(rng.permutation(block)[:remainder])

    return np.array(treatments, dtype=int)


def cut_points(probabilities: np.ndarray) -> np.ndarray:
    """
    Cumulative cut-points [0, p1, p1+p2, ..., 1] for inverse-CDF sampling.

    The last cut-point is pinned to 1 so rounding in the cumulative sum can
    never leave a uniform draw without an arm.
    """
    cuts = np.concatenate([[0.0], np.cumsum(probabilities)])
    cuts[-1] = 1.0
    return cuts


def draw_arm(cuts: np.ndarray, u: float) -> int:
    """0-based arm k with cuts[k] < u <= cuts[k+1]."""
    k = int(np.searchsorted(cuts[1:], u, side='left'))
    return min(k, len(cuts) - 2)


def argmax_random(values: np.ndarray, rng: np.random.Generator) -> int:
    """Index of the maximum, ties broken uniformly at random."""
    ties = np.flatnonzero(values == np.max(values))
    if len(ties) == 1:
        return int(ties[0])
    return int(rng.choice(ties))
