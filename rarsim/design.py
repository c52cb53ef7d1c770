"""
Trial designs: the configuration of one simulated trial.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Sequence
import numpy as np

from .accrual import AccrualGenerator, PopulationAccrual
from .allocation import INDEX_RULES, IndexBlockRule, OptimalDesignRule, index_rule
from .delay import DelayModel, NoDelay
from .exceptions import ConfigurationError
from .index_table import IndexTable

ZTYPES = ('pooled', 'unpooled')
SIDES = ('upper', 'lower')


def default_accrual() -> AccrualGenerator:
    """Ten patients per time unit in a population of 50000, 90% enrolling."""
    return PopulationAccrual(pats=10, n_max=50000, enroll_rate=0.9)


def _is_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def _as_vector(values, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1:
        raise ConfigurationError(f"{name} must be a vector")
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{name} must be finite")
    return arr


@dataclass
class BinaryDesign:
    """
    Binary-endpoint trial allocated by a forward-looking index rule in blocks.

    Attributes
    ----------
    ptrue : sequence of float
        True success probability per arm, control first
    tsize : int
        Maximal sample size
    block : int
        Block size; allocation probabilities are recomputed once per block
    index_table : IndexTable
        Index values by posterior cell
    stopbound : float
        Cut-off for the Z statistics, usually simulated under the null
    accrual : AccrualGenerator
        Enrollment process
    delay : DelayModel
        Time from enrollment to observed response
    rule : str
        'FLGI PM', 'FLGI PD' or 'CFLGI'
    prior : np.ndarray, optional
        K x 2 Beta prior (successes, failures); Beta(1, 1) for every arm
        by default
    ztype : str
        'pooled' or 'unpooled' variance in the Z statistics
    side : str
        'upper' or 'lower' one-sided test
    n_runs : int
        Virtual runs per allocation computation
    """
    ptrue: Sequence[float]
    tsize: int
    block: int
    index_table: IndexTable
    stopbound: float
    accrual: AccrualGenerator = field(default_factory=default_accrual)
    delay: DelayModel = field(default_factory=NoDelay)
    rule: str = 'FLGI PM'
    prior: Optional[np.ndarray] = None
    ztype: str = 'unpooled'
    side: str = 'upper'
    n_runs: int = 100

    def __post_init__(self):
        self.ptrue = _as_vector(self.ptrue, "ptrue")
        if self.prior is None:
            self.prior = np.ones((len(self.ptrue), 2), dtype=int)
        self._validate()
        self.prior = np.asarray(self.prior, dtype=int)

    def _validate(self):
        """Validate design parameters."""
        n_arms = len(self.ptrue)
        if n_arms < 2:
            raise ConfigurationError("At least two arms are required")
        if np.any(self.ptrue < 0) or np.any(self.ptrue > 1):
            raise ConfigurationError("ptrue must be in [0, 1]")
        if not _is_int(self.tsize) or self.tsize <= 0:
            raise ConfigurationError("Invalid tsize")
        if not _is_int(self.block) or self.block <= 0:
            raise ConfigurationError("Invalid block")
        if self.block > self.tsize:
            raise ConfigurationError("block must not exceed tsize")
        if self.rule not in INDEX_RULES:
            raise ConfigurationError(
                f"Invalid rule {self.rule!r}; choose from {', '.join(INDEX_RULES)}")
        if self.ztype not in ZTYPES:
            raise ConfigurationError("ztype must be 'pooled' or 'unpooled'")
        if self.side not in SIDES:
            raise ConfigurationError("side must be 'upper' or 'lower'")
        if not _is_int(self.n_runs) or self.n_runs <= 0:
            raise ConfigurationError("Invalid n_runs")
        if not np.isfinite(self.stopbound):
            raise ConfigurationError("Invalid stopbound")

        prior = np.asarray(self.prior)
        if prior.shape != (n_arms, 2):
            raise ConfigurationError(
                f"prior must have shape ({n_arms}, 2), got {prior.shape}")
        if np.any(prior < 1) or np.any(prior != np.round(prior)):
            raise ConfigurationError("prior must hold positive integers")

        if self.accrual.capacity < self.tsize:
            raise ConfigurationError(
                f"Accrual can enroll at most {self.accrual.capacity} patients; "
                f"tsize={self.tsize} is unreachable")

        reach = self.tsize + self.block
        self.index_table.require(int(prior[:, 0].max()) + reach,
                                 int(prior[:, 1].max()) + reach)

    @property
    def n_arms(self) -> int:
        return len(self.ptrue)

    def allocation_rule(self) -> IndexBlockRule:
        return index_rule(self.rule, self.index_table, self.block, self.prior,
                          self.n_runs)

    def with_null(self) -> 'BinaryDesign':
        """Copy with every arm responding like the control."""
        return replace(self, ptrue=np.full(self.n_arms, self.ptrue[0]))


@dataclass
class ContinuousDesign:
    """
    Normal-endpoint trial with known variances allocated by the optimal
    design rule after an equal-randomization burn-in.

    Attributes
    ----------
    mean : sequence of float
        True mean response per arm, control first
    sd : sequence of float
        Known standard deviation per arm
    n1 : int
        Patients equally randomized before adaptation starts; about 10% of
        n2 is a common choice
    n2 : int
        Maximal sample size
    accrual : AccrualGenerator
        Enrollment process
    delay : DelayModel
        Time from enrollment to observed response
    alpha : float
        Overall one-sided type I error, split over the K-1 comparisons
    cc : float, optional
        Reference response in the allocation weights; the average of
        ``mean`` by default
    side : str
        'upper' or 'lower' one-sided test
    arm_labels : sequence, optional
        Arm labels used when printing outcomes and summaries, 1..K by default
    """
    mean: Sequence[float]
    sd: Sequence[float]
    n1: int
    n2: int
    accrual: AccrualGenerator = field(default_factory=default_accrual)
    delay: DelayModel = field(default_factory=NoDelay)
    alpha: float = 0.025
    cc: Optional[float] = None
    side: str = 'upper'
    arm_labels: Optional[Sequence] = None

    def __post_init__(self):
        self.mean = _as_vector(self.mean, "mean")
        self.sd = _as_vector(self.sd, "sd")
        if self.cc is None:
            self.cc = float(np.mean(self.mean))
        if self.arm_labels is None:
            self.arm_labels = list(range(1, len(self.mean) + 1))
        self._validate()

    def _validate(self):
        """Validate design parameters."""
        n_arms = len(self.mean)
        if n_arms < 2:
            raise ConfigurationError("At least two arms are required")
        if len(self.sd) != n_arms:
            raise ConfigurationError("mean and sd must have the same length")
        if len(self.arm_labels) != n_arms:
            raise ConfigurationError("arm_labels must have one label per arm")
        if len(set(self.arm_labels)) != n_arms:
            raise ConfigurationError("arm_labels must be unique")
        if np.any(self.sd <= 0):
            raise ConfigurationError("sd must be positive")
        if not _is_int(self.n1) or self.n1 < 1:
            raise ConfigurationError("Invalid n1")
        if not _is_int(self.n2) or self.n2 < self.n1:
            raise ConfigurationError("Invalid n2; must be >= n1")
        if not 0 < self.alpha < 1:
            raise ConfigurationError("Invalid alpha")
        if not np.isfinite(self.cc):
            raise ConfigurationError("Invalid cc")
        if self.side not in SIDES:
            raise ConfigurationError("side must be 'upper' or 'lower'")
        if self.accrual.capacity < self.n2:
            raise ConfigurationError(
                f"Accrual can enroll at most {self.accrual.capacity} patients; "
                f"n2={self.n2} is unreachable")

    @property
    def n_arms(self) -> int:
        return len(self.mean)

    def allocation_rule(self) -> OptimalDesignRule:
        return OptimalDesignRule(sd=self.sd, cc=self.cc)

    def with_null(self) -> 'ContinuousDesign':
        """Copy with every arm sharing the control mean."""
        return replace(self, mean=np.full(self.n_arms, self.mean[0]))
