"""
Simulation of response-adaptive randomized trials.

Each call simulates one trial from its own random stream. Draws are taken
in a fixed order: enrollment times, outcome delays, then allocations and
outcomes patient by patient in enrollment order, so a given seed always
reproduces the same trial.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union
import numpy as np

from .accrual import AccrualGenerator, enrollment_times
from .allocation import IndexBlockRule, OptimalDesignRule
from .decision import (
    binary_statistics, continuous_statistics, decide_by_boundary,
    decide_by_level, index_winner
)
from .delay import DelayModel
from .design import BinaryDesign, ContinuousDesign
from .results import OperatingCharacteristics, TrialOutcome
from .tracker import CensoredArmStatistics, PatientTable
from .utils import cut_points, draw_arm, make_rng, randomize_by_fixed_block


class Phase(Enum):
    BURN_IN = 'burn-in'
    ADAPTIVE = 'adaptive'
    COMPLETE = 'complete'


@dataclass
class TrialState:
    """
    State of one trial in progress.

    Attributes
    ----------
    patients : PatientTable
        Patient records, filled in enrollment order
    statistics : CensoredArmStatistics
        Per-arm statistics over the outcomes observable so far
    phase : Phase
        Current phase of the trial
    cut_points : np.ndarray, optional
        Cumulative allocation probabilities of the current block
    fallbacks : int
        Allocations made with equal probabilities for lack of data
    """
    patients: PatientTable
    statistics: CensoredArmStatistics
    phase: Phase
    cut_points: Optional[np.ndarray] = None
    fallbacks: int = 0


def _start_trial(accrual: AccrualGenerator, delay: DelayModel, size: int,
                 n_arms: int, phase: Phase, rng: np.random.Generator) -> TrialState:
    """Draw enrollment and observation times for every patient slot."""
    enroll = enrollment_times(accrual, size, rng)
    observed = delay.observe_times(enroll, rng)
    patients = PatientTable(enroll, observed)
    return TrialState(patients=patients,
                      statistics=CensoredArmStatistics(patients, n_arms),
                      phase=phase)


def _allocate_block(state: TrialState, design: BinaryDesign,
                    rule: Optional[IndexBlockRule], size: int,
                    rng: np.random.Generator) -> TrialState:
    """
    Allocate the next ``size`` patients with one probability vector.

    The vector is recomputed from the outcomes observable at the first
    patient's enrollment unless ``rule`` is None, in which case the
    previous block's vector is reused.
    """
    patients = state.patients
    start = patients.n_assigned

    if rule is not None:
        state.statistics.advance(patients.enroll_time[start])
        state.cut_points = cut_points(rule.propose(state.statistics, rng))

    for i in range(start, start + size):
        arm = draw_arm(state.cut_points, rng.uniform())
        outcome = 1.0 if rng.uniform() <= design.ptrue[arm] else 0.0
        patients.assign(i, arm, outcome)
    return state


def _allocate_patient(state: TrialState, design: ContinuousDesign,
                      rule: OptimalDesignRule, rng: np.random.Generator) -> TrialState:
    """Allocate the next patient from the outcomes observable at enrollment."""
    patients = state.patients
    i = patients.n_assigned

    statistics = state.statistics.advance(patients.enroll_time[i])
    if rule.needs_fallback(statistics):
        state.fallbacks += 1
    arm = rule.propose(statistics, rng)
    patients.assign(i, arm, rng.normal(design.mean[arm], design.sd[arm]))
    return state


def simulate_index_block_trial(design: BinaryDesign,
                               seed: Optional[int] = None,
                               rng: Optional[np.random.Generator] = None) -> TrialOutcome:
    """
    Simulate a binary-endpoint trial allocated by a forward-looking index rule.

    Patients are allocated in blocks of ``design.block``. Before each block
    the rule turns the Beta posteriors of the outcomes observable at that
    time into allocation probabilities. A final block shorter than
    ``design.block`` reuses the last probabilities.

    Parameters
    ----------
    design : BinaryDesign
        Trial configuration
    seed : int, optional
        Random seed for reproducibility
    rng : np.random.Generator, optional
        Random stream to draw from instead of a seeded one

    Returns
    -------
    TrialOutcome
    """
    rng = make_rng(seed, rng)
    rule = design.allocation_rule()
    state = _start_trial(design.accrual, design.delay, design.tsize, design.n_arms,
                         Phase.ADAPTIVE, rng)

    n_blocks, remainder = divmod(design.tsize, design.block)
    for _ in range(n_blocks):
        state = _allocate_block(state, design, rule, design.block, rng)
    if remainder:
        state = _allocate_block(state, design, None, remainder, rng)
    state.phase = Phase.COMPLETE

    return _binary_outcome(state, design, rng)


def _binary_outcome(state: TrialState, design: BinaryDesign,
                    rng: np.random.Generator) -> TrialOutcome:
    patients = state.patients
    counts = patients.arm_counts(design.n_arms)
    successes = np.rint(patients.arm_sums(design.n_arms)).astype(int)

    n = counts + design.prior.sum(axis=1)
    s = successes + design.prior[:, 0]
    z = binary_statistics(n, s, design.ztype)

    return TrialOutcome(
        decision=decide_by_boundary(z, design.stopbound, design.side),
        statistics=z,
        data=patients.to_frame(),
        n_per_arm=counts,
        index_winner=index_winner(design.index_table, s, n - s, rng),
    )


def simulate_optimal_design_trial(design: ContinuousDesign,
                                  seed: Optional[int] = None,
                                  rng: Optional[np.random.Generator] = None) -> TrialOutcome:
    """
    Simulate a Normal-endpoint trial allocated by the optimal design rule.

    The first ``design.n1`` patients are randomized in permuted blocks of
    one patient per arm. Each later patient is allocated from the means
    observable at their enrollment; until every arm has an observed outcome
    the allocation is equal across arms.

    Parameters
    ----------
    design : ContinuousDesign
        Trial configuration
    seed : int, optional
        Random seed for reproducibility
    rng : np.random.Generator, optional
        Random stream to draw from instead of a seeded one

    Returns
    -------
    TrialOutcome
    """
    rng = make_rng(seed, rng)
    rule = design.allocation_rule()
    state = _start_trial(design.accrual, design.delay, design.n2, design.n_arms,
                         Phase.BURN_IN, rng)

    arms = randomize_by_fixed_block(design.n1, range(design.n_arms), rng)
    outcomes = rng.normal(design.mean[arms], design.sd[arms])
    for i, (arm, outcome) in enumerate(zip(arms, outcomes)):
        state.patients.assign(i, arm, outcome)

    state.phase = Phase.ADAPTIVE
    for _ in range(design.n1, design.n2):
        state = _allocate_patient(state, design, rule, rng)
    state.phase = Phase.COMPLETE

    return _continuous_outcome(state, design)


def _continuous_outcome(state: TrialState, design: ContinuousDesign) -> TrialOutcome:
    patients = state.patients
    counts = patients.arm_counts(design.n_arms)
    means = patients.arm_sums(design.n_arms) / np.where(counts > 0, counts, np.nan)
    z = continuous_statistics(means, design.sd, counts)

    return TrialOutcome(
        decision=decide_by_level(z, design.alpha, design.side),
        statistics=z,
        data=patients.to_frame(),
        n_per_arm=counts,
        fallbacks=state.fallbacks,
        arm_labels=design.arm_labels,
    )


Simulator = Callable[..., TrialOutcome]


def simulate_trials(simulator: Simulator,
                    design: Union[BinaryDesign, ContinuousDesign],
                    n_sim: int = 1000,
                    seed: Optional[int] = None,
                    rng: Optional[np.random.Generator] = None) -> OperatingCharacteristics:
    """
    Simulate ``n_sim`` independent trials one after another.

    Parameters
    ----------
    simulator : Callable
        ``simulate_index_block_trial`` or ``simulate_optimal_design_trial``
    design : BinaryDesign or ContinuousDesign
        Trial configuration
    n_sim : int
        Number of trials
    seed : int, optional
        Random seed for reproducibility
    rng : np.random.Generator, optional
        Random stream shared by the trials

    Returns
    -------
    OperatingCharacteristics
    """
    if n_sim < 1:
        raise ValueError("Invalid n_sim argument")
    rng = make_rng(seed, rng)

    n_arms = design.n_arms
    decisions = np.zeros((n_sim, n_arms - 1), dtype=int)
    statistics = np.zeros((n_sim, n_arms - 1))
    counts = np.zeros((n_sim, n_arms), dtype=int)
    winners = np.zeros(n_arms, dtype=int)
    has_winner = False

    for i in range(n_sim):
        outcome = simulator(design, rng=rng)
        decisions[i] = outcome.decision
        statistics[i] = outcome.statistics
        counts[i] = outcome.n_per_arm
        if outcome.index_winner is not None:
            has_winner = True
            winners[outcome.index_winner - 1] += 1

    return OperatingCharacteristics(
        n_sim=n_sim,
        rejection_rate=decisions.mean(axis=0),
        any_rejection_rate=float(decisions.any(axis=1).mean()),
        mean_n_per_arm=counts.mean(axis=0),
        statistics=statistics,
        winner_frequency=winners / n_sim if has_winner else None,
        arm_labels=getattr(design, 'arm_labels', None),
    )


def null_stop_bound(design: BinaryDesign,
                    n_sim: int = 1000,
                    alpha: float = 0.025,
                    seed: Optional[int] = None,
                    rng: Optional[np.random.Generator] = None) -> float:
    """
    Simulated cut-off for the Z statistics of a binary design.

    Trials are simulated with every arm responding like the control. For
    ``side='upper'`` the bound is the ``1 - alpha`` quantile of the largest
    Z statistic per trial; for ``side='lower'`` the ``alpha`` quantile of
    the smallest.

    Returns
    -------
    float
    """
    if not 0 < alpha < 1:
        raise ValueError("Invalid alpha")
    oc = simulate_trials(simulate_index_block_trial, design.with_null(),
                         n_sim=n_sim, seed=seed, rng=rng)
    if design.side == 'upper':
        return float(np.quantile(oc.statistics.max(axis=1), 1 - alpha))
    return float(np.quantile(oc.statistics.min(axis=1), alpha))
