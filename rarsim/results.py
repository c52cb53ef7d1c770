"""
Results of simulated trials.
"""

from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np
import pandas as pd


def _render(values, labels=None) -> str:
    if labels is None:
        return ", ".join(str(v) for v in values)
    return ", ".join(f"{label}: {v}" for label, v in zip(labels, values))


@dataclass(frozen=True)
class TrialOutcome:
    """
    Outcome of one simulated trial.

    The arrays are stored read-only and ``data`` is built fresh for each
    outcome, so nothing is shared with the simulation that produced it.

    Attributes
    ----------
    decision : np.ndarray
        Per treatment arm, 1 if selected against the control, else 0
    statistics : np.ndarray
        Z statistic per treatment arm
    data : pd.DataFrame
        Patient dataset with columns id, enroll_time, outcome_time, arm
        and outcome
    n_per_arm : np.ndarray
        Patients allocated to each arm
    index_winner : int, optional
        Arm with the maximal index value at the end (binary trials)
    fallbacks : int
        Patients allocated with equal probabilities because some arm had
        no observable outcome (continuous trials)
    arm_labels : sequence, optional
        Labels of the arms, control first, used when printing
    """
    decision: np.ndarray
    statistics: np.ndarray
    data: pd.DataFrame
    n_per_arm: np.ndarray
    index_winner: Optional[int] = None
    fallbacks: int = 0
    arm_labels: Optional[Sequence] = None

    def __post_init__(self):
        for name in ('decision', 'statistics', 'n_per_arm'):
            values = np.array(getattr(self, name))
            values.setflags(write=False)
            object.__setattr__(self, name, values)
        if self.arm_labels is not None:
            object.__setattr__(self, 'arm_labels', tuple(self.arm_labels))

    def __str__(self) -> str:
        treatment = None if self.arm_labels is None else self.arm_labels[1:]
        text = "\nFinal Decision:\n " + _render(self.decision, treatment) + "\n"
        if self.index_winner is not None:
            text += f"\nArm With Maximal Index:\n {self.index_winner}\n"
        text += ("\nTest Statistics:\n "
                 + _render([f"{z:.2f}" for z in self.statistics], treatment) + "\n")
        text += ("\nAccumulated Number of Participants in Each Arm:\n "
                 + _render(self.n_per_arm, self.arm_labels))
        return text


@dataclass
class OperatingCharacteristics:
    """
    Summary over repeated simulated trials.

    Attributes
    ----------
    n_sim : int
        Number of simulated trials
    rejection_rate : np.ndarray
        Proportion of trials selecting each treatment arm
    any_rejection_rate : float
        Proportion of trials selecting at least one treatment arm
    mean_n_per_arm : np.ndarray
        Average number of patients per arm
    statistics : np.ndarray
        n_sim x (K-1) matrix of Z statistics
    winner_frequency : np.ndarray, optional
        Proportion of trials in which each arm had the maximal index
    arm_labels : sequence, optional
        Labels of the arms, control first; 1..K when not given
    """
    n_sim: int
    rejection_rate: np.ndarray
    any_rejection_rate: float
    mean_n_per_arm: np.ndarray
    statistics: np.ndarray
    winner_frequency: Optional[np.ndarray] = None
    arm_labels: Optional[Sequence] = None

    def summary_table(self) -> pd.DataFrame:
        """One row per arm; the control has no rejection rate."""
        rejection = np.concatenate([[np.nan], self.rejection_rate])
        arms = self.arm_labels
        if arms is None:
            arms = np.arange(1, len(self.mean_n_per_arm) + 1)
        table = pd.DataFrame({
            'arm': list(arms),
            'mean_n': self.mean_n_per_arm,
            'rejection_rate': rejection,
        })
        if self.winner_frequency is not None:
            table['winner_frequency'] = self.winner_frequency
        return table
