"""
Response-adaptive allocation rules.

Every rule answers one question through :meth:`AllocationRule.propose`:
given the outcomes observable so far, how should the next patient(s) be
allocated. Index-block rules return a probability vector that is held fixed
for a whole block; the optimal-design rule draws the next patient's arm.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar, Dict, Type
import numpy as np
from scipy.stats import norm

from .exceptions import ConfigurationError, NumericDegeneracyError
from .index_table import IndexTable
from .tracker import CensoredArmStatistics
from .utils import cut_points, draw_arm


class AllocationRule(ABC):
    """Common interface of the allocation rules."""

    @abstractmethod
    def propose(self, statistics: CensoredArmStatistics, rng: np.random.Generator):
        """Allocation for the next patient(s) given the censored statistics."""


def forward_allocation(table: IndexTable,
                       alpha: np.ndarray,
                       beta: np.ndarray,
                       block: int,
                       n_runs: int,
                       rng: np.random.Generator,
                       sample_rates: bool = False) -> np.ndarray:
    """
    Allocation frequencies of the index policy over one future block.

    ``n_runs`` virtual blocks are played from the Beta(alpha, beta)
    posteriors. Each virtual patient goes to the arm with the largest index
    value (ties broken at random). Virtual responses are Bernoulli with the
    arm's posterior mean at the start of the block, or, with
    ``sample_rates``, with a success rate drawn from the posterior once per
    run. Only the index lookups follow the virtual responses.

    Parameters
    ----------
    table : IndexTable
        Index values by posterior cell
    alpha, beta : np.ndarray
        Current Beta posterior parameters per arm
    block : int
        Number of virtual patients per run
    n_runs : int
        Number of virtual runs
    rng : np.random.Generator
        Random stream
    sample_rates : bool
        Draw each run's success rates from the posterior instead of using
        the posterior means

    Returns
    -------
    np.ndarray
        Probability vector over arms
    """
    n_arms = len(alpha)
    a = np.tile(np.asarray(alpha, dtype=int), (n_runs, 1))
    b = np.tile(np.asarray(beta, dtype=int), (n_runs, 1))
    runs = np.arange(n_runs)
    if sample_rates:
        rates = rng.beta(a, b)
    else:
        rates = a / (a + b)

    counts = np.zeros(n_arms)
    for _ in range(block):
        index = table.value(a, b)
        best = index == index.max(axis=1, keepdims=True)
        arm = np.argmax(np.where(best, rng.uniform(size=best.shape), -1.0), axis=1)
        counts += np.bincount(arm, minlength=n_arms)

        success = rng.uniform(size=n_runs) <= rates[runs, arm]
        a[runs, arm] += success
        b[runs, arm] += ~success

    return counts / counts.sum()


@dataclass
class IndexBlockRule(AllocationRule):
    """
    Forward-looking index rule for binary endpoints, recomputed per block.

    Attributes
    ----------
    table : IndexTable
        Index values by posterior cell
    block : int
        Block size
    prior : np.ndarray
        K x 2 Beta prior (successes, failures)
    n_runs : int
        Virtual runs per allocation computation
    """
    table: IndexTable
    block: int
    prior: np.ndarray
    n_runs: int = 100
    tag: ClassVar[str] = ""

    def propose(self, statistics: CensoredArmStatistics,
                rng: np.random.Generator) -> np.ndarray:
        alpha, beta = statistics.beta_posterior(self.prior)
        return self.probabilities(alpha, beta, rng)

    @abstractmethod
    def probabilities(self, alpha: np.ndarray, beta: np.ndarray,
                      rng: np.random.Generator) -> np.ndarray:
        """Probability vector for the posteriors Beta(alpha, beta)."""


class FLGIPosteriorMean(IndexBlockRule):
    """Virtual responses drawn with the posterior means at the start of the block."""
    tag = 'FLGI PM'

    def probabilities(self, alpha, beta, rng):
        return forward_allocation(self.table, alpha, beta, self.block,
                                  self.n_runs, rng)


class FLGIPosteriorDistribution(IndexBlockRule):
    """Virtual responses drawn with success rates sampled from the posterior."""
    tag = 'FLGI PD'

    def probabilities(self, alpha, beta, rng):
        return forward_allocation(self.table, alpha, beta, self.block,
                                  self.n_runs, rng, sample_rates=True)


class ControlledFLGI(IndexBlockRule):
    """
    Controlled forward-looking index rule.

    The control arm keeps weight ``1/(K-1)``; the treatment arms share the
    rest according to the posterior-mean rule run on treatment arms only.
    """
    tag = 'CFLGI'

    def probabilities(self, alpha, beta, rng):
        n_arms = len(alpha)
        control = 1 / (n_arms - 1)
        treatment = forward_allocation(self.table, alpha[1:], beta[1:], self.block,
                                       self.n_runs, rng)
        probs = np.concatenate([[control], treatment])
        return probs / probs.sum()


INDEX_RULES: Dict[str, Type[IndexBlockRule]] = {
    rule.tag: rule for rule in (FLGIPosteriorMean, FLGIPosteriorDistribution, ControlledFLGI)
}


def index_rule(tag: str, table: IndexTable, block: int, prior: np.ndarray,
               n_runs: int = 100) -> IndexBlockRule:
    """Create the index-block rule named by ``tag``."""
    try:
        cls = INDEX_RULES[tag]
    except KeyError:
        raise ConfigurationError(
            f"Invalid rule {tag!r}; choose from {', '.join(INDEX_RULES)}") from None
    return cls(table=table, block=block, prior=np.asarray(prior), n_runs=n_runs)


@dataclass
class OptimalDesignRule(AllocationRule):
    """
    Generalized RSIHR optimal allocation for Normal endpoints with known
    variances.

    The target minimises ``sum_k n_k * Psi_k`` subject to
    ``sd_1^2/n_1 + sd_k^2/n_k <= C`` for every treatment arm k, where the
    weights use the tail probability of each arm's response beyond ``cc``.

    Attributes
    ----------
    sd : np.ndarray
        Known standard deviation per arm, control first
    cc : float
        Reference response value
    """
    sd: np.ndarray
    cc: float
    variances: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        self.sd = np.asarray(self.sd, dtype=float)
        self.variances = self.sd ** 2

    @property
    def n_arms(self) -> int:
        return len(self.sd)

    def probabilities(self, means: np.ndarray) -> np.ndarray:
        """Target allocation probabilities for the given arm means."""
        tail = norm.sf(self.cc, loc=means, scale=self.sd)
        if tail[0] == 0:
            raise NumericDegeneracyError(
                "Control arm has zero probability of exceeding cc")

        phi_control = self.variances[0] / tail[0]
        phi_treatment = self.variances[1:] * tail[1:]
        control = np.sqrt(phi_control) * np.sqrt(phi_treatment.sum())
        total = control + self.variances[1:].sum()
        return np.concatenate([[control], self.variances[1:]]) / total

    def needs_fallback(self, statistics: CensoredArmStatistics) -> bool:
        """True when nothing is observable yet or some arm has no observed mean."""
        return statistics.total_observed == 0 or bool((statistics.n_observed == 0).any())

    def propose(self, statistics: CensoredArmStatistics,
                rng: np.random.Generator) -> int:
        """Draw the 0-based arm of the next patient."""
        if self.needs_fallback(statistics):
            probs = np.full(self.n_arms, 1 / self.n_arms)
        else:
            probs = self.probabilities(statistics.means)
        return draw_arm(cut_points(probs), rng.uniform())
