r"""
mctoken.exceptions
==================

Error kinds raised by the simulation and statistics engine.

All errors derive from :class:`SimulationError`, itself a :class:`ValueError`,
so callers that only care about "bad input or bad output" can catch one type.
"""

from __future__ import annotations

__all__ = [
    "SimulationError",
    "InvalidParameterError",
    "InsufficientSampleSizeError",
    "NonFiniteResultError",
]


class SimulationError(ValueError):
    """Base class for every error raised by :mod:`mctoken`."""


class InvalidParameterError(SimulationError):
    r"""
    Malformed distribution, path or statistics parameters.

    Examples include a triangular ``mode`` outside ``[min, max]``, a negative
    standard deviation, a non-positive trial count or a confidence level
    outside :math:`(0, 1)`.
    """


class InsufficientSampleSizeError(SimulationError):
    """A statistic needs more observations than the population holds."""


class NonFiniteResultError(SimulationError):
    """A computation would produce ``NaN`` or ``inf``."""
