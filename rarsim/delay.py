"""
Outcome delay models: when does a patient's response become observable.
"""

from dataclasses import dataclass
from typing import Callable
import warnings

import numpy as np

from .exceptions import ConfigurationError


@dataclass
class DelayModel:
    """
    Time from enrollment to an observable outcome.

    Attributes
    ----------
    f : Callable
        Function taking (enroll_times, rng) and returning the delays, either
        one per enrollment time or a single value shared by all of them
    model : str
        Name of the delay distribution
    text : str
        Summary text describing the delay distribution
    """
    f: Callable[[np.ndarray, np.random.Generator], np.ndarray]
    model: str
    text: str

    def observe_times(self, enroll_times: np.ndarray,
                      rng: np.random.Generator) -> np.ndarray:
        """
        Outcome observation times for the given enrollment times.

        Parameters
        ----------
        enroll_times : np.ndarray
            Enrollment times
        rng : np.random.Generator
            Random stream

        Returns
        -------
        np.ndarray
            Observation times, elementwise >= enroll_times
        """
        enroll_times = np.asarray(enroll_times, dtype=float)
        delays = np.asarray(self.f(enroll_times, rng), dtype=float)

        if delays.ndim == 0:
            delays = np.full(enroll_times.shape, float(delays))
        if delays.shape != enroll_times.shape:
            raise ConfigurationError(
                f"Delay model returned {delays.size} delays for "
                f"{enroll_times.size} enrollment times")
        if np.isnan(delays).any():
            raise ConfigurationError("Delay model returned NaN delays")

        if (delays < 0).any():
            warnings.warn(f"{int((delays < 0).sum())} negative outcome delays "
                          "truncated to zero")
            delays = np.maximum(delays, 0.0)

        return enroll_times + delays

    def __str__(self) -> str:
        return f"Delay model: {self.model}\nModel Description:\n{self.text}"


def NoDelay() -> DelayModel:
    """Outcomes are observed at enrollment."""
    return FixedDelay(0.0)


def FixedDelay(time: float) -> DelayModel:
    """Every outcome is observed ``time`` units after enrollment."""
    if time < 0:
        raise ConfigurationError("Delay time must be non-negative")
    return DelayModel(f=lambda t, rng: time, model="Fixed delay",
                      text=f"outcomes observed {time} time units after enrollment.")


def NormalDelay(mean: float, sd: float) -> DelayModel:
    """
    Normally distributed delays, e.g. ``NormalDelay(30, 3)`` for a response
    assessed about a month after enrollment.
    """
    if sd < 0:
        raise ConfigurationError("Delay sd must be non-negative")

    def f(enroll_times: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        return rng.normal(mean, sd, len(enroll_times))

    return DelayModel(f=f, model="Normal delay",
                      text=f"delays follow N(mean={mean}, sd={sd}).")


def ExponentialDelay(mean: float) -> DelayModel:
    """Exponentially distributed delays with the given mean."""
    if not mean > 0:
        raise ConfigurationError("Delay mean must be positive")

    def f(enroll_times: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        return rng.exponential(mean, len(enroll_times))

    return DelayModel(f=f, model="Exponential delay",
                      text=f"delays are exponential with mean {mean}.")


def CustomDelay(func: Callable[[np.ndarray, np.random.Generator], np.ndarray],
                text: str = "user supplied delay distribution.") -> DelayModel:
    """
    Wrap a user supplied delay distribution.

    Parameters
    ----------
    func : Callable
        Called as ``func(enroll_times, rng)``; returns the delays
    text : str
        Description used when printing the model
    """
    if not callable(func):
        raise ConfigurationError("func must be callable")
    return DelayModel(f=func, model="Custom delay", text=text)
