"""
Patient records and the censored per-arm statistics that drive allocation.
"""

from typing import Tuple
import numpy as np
import pandas as pd


class PatientTable:
    """
    Arena of patient records for one simulated trial.

    Enrollment and outcome-observation times are fixed at setup. Arm and
    outcome are written together, once per row, in enrollment order.

    Parameters
    ----------
    enroll_time : np.ndarray
        Enrollment times, ascending
    outcome_time : np.ndarray
        Outcome observation times, elementwise >= enroll_time
    """

    def __init__(self, enroll_time: np.ndarray, outcome_time: np.ndarray):
        enroll_time = np.asarray(enroll_time, dtype=float)
        outcome_time = np.asarray(outcome_time, dtype=float)
        if enroll_time.shape != outcome_time.shape or enroll_time.ndim != 1:
            raise ValueError("enroll_time and outcome_time must be 1-D and equal length")
        if np.any(np.diff(enroll_time) < 0):
            raise ValueError("enroll_time must be sorted")
        if np.any(outcome_time < enroll_time):
            raise ValueError("outcome_time must not precede enroll_time")

        self.enroll_time = enroll_time
        self.outcome_time = outcome_time
        self.arm = np.full(len(enroll_time), -1, dtype=int)
        self.outcome = np.full(len(enroll_time), np.nan)
        self.n_assigned = 0

    def __len__(self) -> int:
        return len(self.enroll_time)

    def assign(self, i: int, arm: int, outcome: float):
        """Record the 0-based arm and outcome of patient ``i``."""
        if i != self.n_assigned:
            raise ValueError(f"Patient {i} assigned out of enrollment order "
                             f"(next is {self.n_assigned})")
        self.arm[i] = arm
        self.outcome[i] = outcome
        self.n_assigned += 1

    @property
    def complete(self) -> bool:
        return self.n_assigned == len(self)

    def arm_counts(self, n_arms: int) -> np.ndarray:
        """Number of assigned patients per arm."""
        return np.bincount(self.arm[:self.n_assigned], minlength=n_arms)

    def arm_sums(self, n_arms: int) -> np.ndarray:
        """Sum of outcomes per arm over assigned patients."""
        return np.bincount(self.arm[:self.n_assigned],
                           weights=self.outcome[:self.n_assigned], minlength=n_arms)

    def to_frame(self) -> pd.DataFrame:
        """Patient dataset with 1-based arm codes; unassigned rows hold NA."""
        arm = pd.Series(self.arm + 1, dtype="Int64").mask(self.arm < 0)
        return pd.DataFrame({
            'id': np.arange(1, len(self) + 1),
            'enroll_time': self.enroll_time,
            'outcome_time': self.outcome_time,
            'arm': arm,
            'outcome': self.outcome,
        })


class CensoredArmStatistics:
    """
    Per-arm sufficient statistics over the outcomes observable at a clock time.

    Rows are indexed by outcome time; :meth:`advance` moves the observation
    frontier forward and adds each newly observable, assigned row once.
    Rows observable by time but not yet assigned are held back until a later
    call finds them assigned. The result equals a full rescan of the
    patient table restricted to ``outcome_time <= clock``.

    Parameters
    ----------
    patients : PatientTable
        Records of the trial in progress
    n_arms : int
        Number of arms
    """

    def __init__(self, patients: PatientTable, n_arms: int):
        self.patients = patients
        self.n_arms = n_arms
        self.clock = -np.inf
        self._order = np.argsort(patients.outcome_time, kind='stable')
        self._frontier = 0
        self._pending = []
        self.n_observed = np.zeros(n_arms, dtype=int)
        self.sums = np.zeros(n_arms)

    def advance(self, clock: float) -> 'CensoredArmStatistics':
        """Include every assigned outcome with ``outcome_time <= clock``."""
        if clock < self.clock:
            raise ValueError("The observation clock cannot move backwards")
        self.clock = clock

        patients = self.patients
        if self._pending:
            waiting = []
            for row in self._pending:
                if row < patients.n_assigned:
                    self._add(row)
                else:
                    waiting.append(row)
            self._pending = waiting

        order = self._order
        while (self._frontier < len(order)
               and patients.outcome_time[order[self._frontier]] <= clock):
            row = order[self._frontier]
            if row < patients.n_assigned:
                self._add(row)
            else:
                self._pending.append(row)
            self._frontier += 1
        return self

    def _add(self, row: int):
        k = self.patients.arm[row]
        self.n_observed[k] += 1
        self.sums[k] += self.patients.outcome[row]

    @property
    def total_observed(self) -> int:
        return int(self.n_observed.sum())

    @property
    def successes(self) -> np.ndarray:
        """Observed successes per arm (binary outcomes)."""
        return np.rint(self.sums).astype(int)

    @property
    def failures(self) -> np.ndarray:
        """Observed failures per arm (binary outcomes)."""
        return self.n_observed - self.successes

    @property
    def means(self) -> np.ndarray:
        """Observed mean per arm; NaN for arms without an observed outcome."""
        return np.where(self.n_observed > 0,
                        self.sums / np.maximum(self.n_observed, 1), np.nan)

    def beta_posterior(self, prior: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Beta posterior parameters per arm.

        Parameters
        ----------
        prior : np.ndarray
            K x 2 array of prior (successes, failures)

        Returns
        -------
        tuple of np.ndarray
            (alpha, beta), prior plus observed successes and failures
        """
        prior = np.asarray(prior, dtype=int)
        return prior[:, 0] + self.successes, prior[:, 1] + self.failures
