"""
Simulation of Response-Adaptive Randomized Clinical Trials

This Python package simulates multi-arm trials in which incoming patients are
allocated by rules that favour the arms doing best on the outcomes observed so
far. Enrollment is staggered and outcomes are observed with a delay, so each
allocation only uses the responses available at that time. Two rule families
are provided: forward-looking index rules for binary endpoints, recomputed per
block, and the optimal (generalized RSIHR) design for Normal endpoints with
known variances, recomputed per patient.
"""

__version__ = "1.0.0"

from .exceptions import ConfigurationError, NumericDegeneracyError
from .accrual import AccrualGenerator, PopulationAccrual, PoissonAccrual, enrollment_times
from .delay import (
    DelayModel, NoDelay, FixedDelay, NormalDelay, ExponentialDelay, CustomDelay
)
from .index_table import IndexTable
from .tracker import PatientTable, CensoredArmStatistics
from .allocation import (
    AllocationRule, IndexBlockRule, FLGIPosteriorMean, FLGIPosteriorDistribution,
    ControlledFLGI, OptimalDesignRule, index_rule, forward_allocation
)
from .design import BinaryDesign, ContinuousDesign
from .decision import (
    binary_statistics, continuous_statistics, decide_by_boundary,
    decide_by_level, index_winner
)
from .results import TrialOutcome, OperatingCharacteristics
from .simulation import (
    Phase, TrialState, simulate_index_block_trial, simulate_optimal_design_trial,
    simulate_trials, null_stop_bound
)

__all__ = [
    # Errors
    'ConfigurationError', 'NumericDegeneracyError',
    # Accrual and delays
    'AccrualGenerator', 'PopulationAccrual', 'PoissonAccrual', 'enrollment_times',
    'DelayModel', 'NoDelay', 'FixedDelay', 'NormalDelay', 'ExponentialDelay',
    'CustomDelay',
    # Index tables
    'IndexTable',
    # State
    'PatientTable', 'CensoredArmStatistics', 'Phase', 'TrialState',
    # Allocation rules
    'AllocationRule', 'IndexBlockRule', 'FLGIPosteriorMean',
    'FLGIPosteriorDistribution', 'ControlledFLGI', 'OptimalDesignRule',
    'index_rule', 'forward_allocation',
    # Designs
    'BinaryDesign', 'ContinuousDesign',
    # Decisions
    'binary_statistics', 'continuous_statistics', 'decide_by_boundary',
    'decide_by_level', 'index_winner',
    # Simulation and results
    'simulate_index_block_trial', 'simulate_optimal_design_trial',
    'simulate_trials', 'null_stop_bound', 'TrialOutcome',
    'OperatingCharacteristics',
]
