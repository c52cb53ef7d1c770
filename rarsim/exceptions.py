"""
Exceptions raised by rarsim.
"""


class ConfigurationError(ValueError):
    """Invalid trial configuration, detected before any simulation step."""


class NumericDegeneracyError(ArithmeticError):
    """A test statistic or allocation target cannot be computed."""
