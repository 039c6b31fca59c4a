r"""
mctoken.analysis
================

Post-hoc queries over a computed result or a cumulative series.
"""

from __future__ import annotations

from typing import Any, Union

import numpy as np

from .exceptions import InsufficientSampleSizeError, NonFiniteResultError
from .results import SimulationResult

__all__ = ["probability_of_achieving_target", "calculate_max_drawdown"]


def probability_of_achieving_target(
    result: Union[SimulationResult, Any],
    target_return: float,
) -> float:
    r"""
    Empirical :math:`\Pr(X \ge \text{target})`.

    Parameters
    ----------
    result : SimulationResult or array_like
        A result (its :attr:`~SimulationResult.values` are used) or a raw population.
    target_return : float
        Threshold; outcomes equal to it count as successes.

    Returns
    -------
    float
        Fraction of outcomes at or above ``target_return``, in ``[0, 1]``.

    Examples
    --------
    >>> probability_of_achieving_target([1, 2, 3, 4, 5], 3)
    0.6
    """
    values = result.values if isinstance(result, SimulationResult) else result
    arr = np.asarray(values, dtype=float).ravel()
    if arr.size == 0:
        raise InsufficientSampleSizeError("population is empty")
    return float(np.count_nonzero(arr >= target_return) / arr.size)


def calculate_max_drawdown(cumulative_series: Any) -> float:
    r"""
    Largest peak-to-trough decline relative to the running peak.

    With running peak :math:`M_t = \max_{s \le t} x_s` the drawdown at
    :math:`t` is :math:`(M_t - x_t)/M_t`; the result is its maximum.

    Parameters
    ----------
    cumulative_series : array_like
        Series in scan order, e.g. a cumulative cash-flow curve.

    Returns
    -------
    float
        Maximum drawdown, ``0.0`` for a monotonically non-decreasing series.

    Notes
    -----
    Steps whose running peak is ``<= 0`` are skipped: a zero peak has no
    defined relative drawdown, and a negative peak can only produce a
    negative one.

    Raises
    ------
    InsufficientSampleSizeError
        If the series is empty.
    NonFiniteResultError
        If the series contains ``NaN`` or ``inf``.

    Examples
    --------
    >>> round(calculate_max_drawdown([100, 120, 90, 110, 80]), 4)
    0.3333
    """
    arr = np.asarray(cumulative_series, dtype=float).ravel()
    if arr.size == 0:
        raise InsufficientSampleSizeError("series is empty")
    if not np.all(np.isfinite(arr)):
        raise NonFiniteResultError("series contains non-finite values")
    peaks = np.maximum.accumulate(arr)
    valid = peaks > 0
    if not valid.any():
        return 0.0
    drawdowns = (peaks[valid] - arr[valid]) / peaks[valid]
    return float(max(0.0, drawdowns.max()))
