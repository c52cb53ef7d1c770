"""
Index tables for the forward-looking index allocation rules.

A table holds one index value per Beta posterior cell. Cells are addressed
the way the published Gittins index tables are: row ``n - s + 2`` and column
``s + 1`` (1-based), where ``s`` is the prior-augmented number of successes
and ``n`` the prior-augmented number of patients. With positive integer
priors every reachable cell has a valid address.
"""

from dataclasses import dataclass
from typing import Optional, Union
import numpy as np
import pandas as pd

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class IndexTable:
    """
    Precomputed index values keyed by posterior successes and failures.

    Attributes
    ----------
    values : np.ndarray
        2-D array of index values
    family : str
        Name of the index family (e.g. 'binary')
    discount : float, optional
        Discount factor the table was computed for
    """
    values: np.ndarray
    family: str = "custom"
    discount: Optional[float] = None

    def __post_init__(self):
        values = np.array(self.values, dtype=float)
        if values.ndim != 2:
            raise ConfigurationError("Index table must be two dimensional")
        values.setflags(write=False)
        object.__setattr__(self, 'values', values)

    @property
    def shape(self):
        return self.values.shape

    def lookup(self, row: int, col: int) -> float:
        """Index value at 1-based (row, col)."""
        if row < 1 or col < 1:
            raise IndexError(f"Invalid index cell ({row}, {col})")
        return float(self.values[row - 1, col - 1])

    def value(self, alpha: Union[int, np.ndarray],
              beta: Union[int, np.ndarray]) -> Union[float, np.ndarray]:
        """
        Index values for Beta(alpha, beta) posteriors.

        ``alpha`` is the prior-augmented success count and ``beta`` the
        prior-augmented failure count; equivalent to
        ``lookup(beta + 2, alpha + 1)``. Vectorised over arrays.
        """
        alpha = np.asarray(alpha, dtype=int)
        beta = np.asarray(beta, dtype=int)
        out = self.values[beta + 1, alpha]
        return float(out) if out.ndim == 0 else out

    def require(self, max_alpha: int, max_beta: int):
        """Check that every cell up to (max_alpha, max_beta) is present."""
        rows, cols = self.values.shape
        if max_beta + 2 > rows or max_alpha + 1 > cols:
            raise ConfigurationError(
                f"Index table of shape {self.values.shape} is too small; "
                f"at least ({max_beta + 2}, {max_alpha + 1}) is needed")

    @classmethod
    def from_csv(cls, path: str, family: str = "custom",
                 discount: Optional[float] = None) -> 'IndexTable':
        """Read a header-less table of index values."""
        df = pd.read_csv(path, header=None)
        return cls(values=df.to_numpy(dtype=float), family=family, discount=discount)

    @classmethod
    def myopic(cls, max_count: int) -> 'IndexTable':
        """
        Index table for discount factor 0.

        With no discounting of future patients the Gittins index reduces to
        the posterior mean ``alpha / (alpha + beta)``. Covers every posterior
        with ``alpha, beta <= max_count``.

        Parameters
        ----------
        max_count : int
            Largest prior-augmented success or failure count

        Returns
        -------
        IndexTable
        """
        if max_count < 1:
            raise ConfigurationError("max_count must be positive")

        alpha = np.arange(max_count + 1, dtype=float)[np.newaxis, :]
        beta = np.arange(-1, max_count + 1, dtype=float)[:, np.newaxis]
        total = alpha + beta
        with np.errstate(divide='ignore', invalid='ignore'):
            values = np.where(total > 0, alpha / total, np.nan)
        # beta = -1 is never addressed
        values[0, :] = np.nan

        return cls(values=values, family="binary", discount=0.0)
