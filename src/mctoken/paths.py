r"""
mctoken.paths
=============

Discrete-time Geometric Brownian Motion for token prices.

With annualised drift :math:`\mu`, volatility :math:`\sigma` and a step of
:math:`\Delta t = m/12` years (``m`` months), the path is

.. math::
   P_0 = P_\text{init},\qquad
   P_k = P_{k-1}\exp\!\Big(\big(\mu\Delta t - \tfrac{1}{2}\sigma^2\Delta t\big)
   + \sigma\sqrt{\Delta t}\,Z_k\Big),

with :math:`Z_k` drawn by Box–Muller from the supplied uniform source.
"""

from __future__ import annotations

import math

import numpy as np

from .distributions import standard_normals
from .exceptions import InvalidParameterError, NonFiniteResultError
from .rng import UniformSource

__all__ = ["simulate_token_price_fluctuations"]


def simulate_token_price_fluctuations(
    initial_price: float,
    annual_drift: float,
    annual_volatility: float,
    steps: int,
    step_length_in_months: float,
    rng: UniformSource,
) -> np.ndarray:
    r"""
    Simulate one GBM price path.

    Parameters
    ----------
    initial_price : float
        :math:`P_0`, strictly positive. Returned unchanged as the first point.
    annual_drift : float
        Annualised drift :math:`\mu`.
    annual_volatility : float
        Annualised volatility :math:`\sigma \ge 0`.
    steps : int
        Number of points in the returned path (including :math:`P_0`).
    step_length_in_months : float
        Length of one step in months.
    rng : UniformSource
        Uniform source; two draws per step after the first.

    Returns
    -------
    ndarray
        Array of shape ``(steps,)`` of strictly positive prices.

    Raises
    ------
    InvalidParameterError
        On a non-positive initial price, negative volatility, non-positive
        step length or a ``steps`` value below 1.
    NonFiniteResultError
        If the path overflows to ``inf`` or underflows to ``0``.
    """
    for name, value in (
        ("initial_price", initial_price),
        ("annual_drift", annual_drift),
        ("annual_volatility", annual_volatility),
        ("step_length_in_months", step_length_in_months),
    ):
        if not math.isfinite(value):
            raise InvalidParameterError(f"{name} must be finite, got {value!r}")
    if initial_price <= 0:
        raise InvalidParameterError(f"initial_price must be positive, got {initial_price}")
    if annual_volatility < 0:
        raise InvalidParameterError(f"annual_volatility must be non-negative, got {annual_volatility}")
    if step_length_in_months <= 0:
        raise InvalidParameterError(f"step_length_in_months must be positive, got {step_length_in_months}")
    if isinstance(steps, bool) or not isinstance(steps, (int, np.integer)) or steps < 1:
        raise InvalidParameterError(f"steps must be a positive integer, got {steps!r}")

    step_years = step_length_in_months / 12.0
    drift = annual_drift * step_years
    volatility = annual_volatility * math.sqrt(step_years)

    z = standard_normals(rng, int(steps) - 1)
    log_returns = (drift - 0.5 * volatility * volatility) + volatility * z
    log_path = np.concatenate([[math.log(initial_price)], math.log(initial_price) + np.cumsum(log_returns)])
    path = np.exp(log_path)
    path[0] = initial_price

    if not (np.all(np.isfinite(path)) and np.all(path > 0)):
        raise NonFiniteResultError("price path left the positive finite range")
    return path
