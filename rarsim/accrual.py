"""
Accrual generation for adaptive-randomization trial simulations.
"""

from dataclasses import dataclass
from typing import Callable
import numpy as np

from .exceptions import ConfigurationError


@dataclass
class AccrualGenerator:
    """
    Class to generate subject recruitment.

    Attributes
    ----------
    f : Callable
        Function that takes a random generator and returns sorted
        enrollment times
    model : str
        Name of the accrual procedure
    text : str
        Summary text describing the accrual procedure
    capacity : int
        Largest number of enrollment times the generator can return
    """
    f: Callable[[np.random.Generator], np.ndarray]
    model: str
    text: str
    capacity: int

    def generate(self, rng: np.random.Generator) -> np.ndarray:
        """Generate sorted enrollment times."""
        return self.f(rng)

    def __str__(self) -> str:
        return f"Accrual model: {self.model}\nModel Description:\n{self.text}"


def PopulationAccrual(pats: float, n_max: int, enroll_rate: float) -> AccrualGenerator:
    """
    Create an accrual generator that thins a diseased population.

    Patients with the disease arrive as a Poisson process with ``pats``
    arrivals per time unit; ``n_max`` arrivals are simulated and each one
    enrolls in the trial independently with probability ``enroll_rate``.

    Parameters
    ----------
    pats : float
        Expected number of patients affected per time unit
    n_max : int
        Number of patients simulated in the population
    enroll_rate : float
        Probability that a patient in the population enrolls

    Returns
    -------
    AccrualGenerator
    """
    if not pats > 0:
        raise ConfigurationError("pats must be positive")
    if not isinstance(n_max, (int, np.integer)) or n_max <= 0:
        raise ConfigurationError("n_max must be a positive integer")
    if not 0 < enroll_rate <= 1:
        raise ConfigurationError("enroll_rate must be in (0, 1]")

    def f(rng: np.random.Generator) -> np.ndarray:
        arrivals = np.cumsum(rng.exponential(1 / pats, n_max))
        enrolled = rng.uniform(size=n_max) < enroll_rate
        return arrivals[enrolled]

    text = (f"a population of {n_max} patients arriving as a Poisson process "
            f"with rate={pats:.2f}, each enrolling with probability {enroll_rate:.2f}.")

    return AccrualGenerator(f=f, model="Population Poisson process", text=text,
                            capacity=int(n_max))


def PoissonAccrual(rate: float, n: int) -> AccrualGenerator:
    """
    Create a Poisson process accrual generator.

    Parameters
    ----------
    rate : float
        Rate of the Poisson process (subjects per time unit)
    n : int
        Number of subjects to generate

    Returns
    -------
    AccrualGenerator
    """
    if not rate > 0:
        raise ConfigurationError("rate must be positive")
    if not isinstance(n, (int, np.integer)) or n <= 0:
        raise ConfigurationError("n must be a positive integer")

    def f(rng: np.random.Generator) -> np.ndarray:
        return np.cumsum(rng.exponential(1 / rate, n))

    r_str = f"{rate:.4f}" if rate < 0.01 else f"{rate:.2f}"
    text = f"a Poisson process with rate={r_str}."

    return AccrualGenerator(f=f, model="Poisson process", text=text, capacity=int(n))


def enrollment_times(generator: AccrualGenerator, size: int,
                     rng: np.random.Generator) -> np.ndarray:
    """
    Draw enrollment times for the first ``size`` trial participants.

    Parameters
    ----------
    generator : AccrualGenerator
        Accrual procedure
    size : int
        Number of participants required
    rng : np.random.Generator
        Random stream

    Returns
    -------
    np.ndarray
        ``size`` enrollment times in ascending order
    """
    times = np.sort(np.asarray(generator.generate(rng), dtype=float))
    if len(times) < size:
        raise ConfigurationError(
            f"Accrual produced {len(times)} enrollments but {size} are required; "
            "increase n_max, pats or enroll_rate")
    return times[:size]
