r"""
mctoken.distributions
=====================

Parametric samplers driven by an explicit uniform source.

Normal variates use the Box–Muller transform

.. math::
   Z = \sqrt{-2 \ln U_1}\,\cos(2\pi U_2),\qquad U_1, U_2 \sim \mathcal{U}[0, 1),

and triangular variates use inverse-CDF sampling. Each sample consumes its
uniforms in order (``u1, u2`` for a normal draw, one ``r`` for a triangular
draw), so a deterministic source gives deterministic output.

Notes
-----
:math:`\ln U_1` is undefined at :math:`U_1 = 0`, which a :math:`[0, 1)` source
can return. Such draws are rejected and ``u1`` is redrawn from the same
source. Rejection keeps the distribution exact because it only discards a
null event.
"""

from __future__ import annotations

import math

import numpy as np

from .exceptions import InvalidParameterError, NonFiniteResultError
from .rng import UniformSource, draw_uniforms

__all__ = [
    "standard_normals",
    "generate_normal_distribution",
    "generate_triangular_distribution",
]

_MAX_REDRAWS = 32  # attempts to replace u1 == 0 before giving up


def _check_count(count) -> int:
    if isinstance(count, bool) or not isinstance(count, (int, np.integer)):
        raise InvalidParameterError(f"count must be an integer, got {count!r}")
    if count < 0:
        raise InvalidParameterError(f"count must be non-negative, got {count}")
    return int(count)


def _check_finite(**params: float) -> None:
    for name, value in params.items():
        if not math.isfinite(value):
            raise InvalidParameterError(f"{name} must be finite, got {value!r}")


def _check_unit_interval(u: np.ndarray) -> None:
    if u.size and not (np.all(u >= 0.0) and np.all(u < 1.0)):
        raise InvalidParameterError("rng must return floats in [0, 1)")


def standard_normals(rng: UniformSource, count: int) -> np.ndarray:
    r"""
    Draw ``count`` standard-normal variates with Box–Muller.

    Parameters
    ----------
    rng : UniformSource
        Uniform source; two draws are consumed per variate.
    count : int
        Number of variates.

    Returns
    -------
    ndarray
        Array of shape ``(count,)``.

    Raises
    ------
    NonFiniteResultError
        If ``u1`` is still zero after repeated redraws (a broken source).
    """
    count = _check_count(count)
    u = draw_uniforms(rng, 2 * count).reshape(count, 2)
    _check_unit_interval(u)
    u1 = u[:, 0].copy()
    u2 = u[:, 1]

    rejected = u1 == 0.0
    attempts = 0
    while rejected.any():
        if attempts >= _MAX_REDRAWS:
            raise NonFiniteResultError(
                f"Box-Muller draw u1 stayed at 0 after {_MAX_REDRAWS} redraws; ln(0) is undefined"
            )
        redraw = draw_uniforms(rng, int(rejected.sum()))
        _check_unit_interval(redraw)
        u1[rejected] = redraw
        rejected = u1 == 0.0
        attempts += 1

    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


def generate_normal_distribution(
    mean: float,
    std: float,
    count: int,
    rng: UniformSource,
) -> np.ndarray:
    r"""
    Sample :math:`\mathcal{N}(\mu, \sigma^2)` via Box–Muller.

    Parameters
    ----------
    mean : float
        Location :math:`\mu`.
    std : float
        Scale :math:`\sigma \ge 0`. ``0`` returns ``mean`` for every draw.
    count : int
        Number of samples.
    rng : UniformSource
        Uniform source.

    Returns
    -------
    ndarray
        ``count`` samples :math:`Z\sigma + \mu`.

    Raises
    ------
    InvalidParameterError
        If ``std`` is negative, a parameter is non-finite, or ``count`` is not
        a non-negative integer.
    """
    _check_finite(mean=mean, std=std)
    if std < 0:
        raise InvalidParameterError(f"std must be non-negative, got {std}")
    z = standard_normals(rng, count)
    return z * std + mean


def generate_triangular_distribution(
    minimum: float,
    maximum: float,
    mode: float,
    count: int,
    rng: UniformSource,
) -> np.ndarray:
    r"""
    Sample a triangular distribution on ``[minimum, maximum]`` peaking at ``mode``.

    With :math:`F_c = (c - a)/(b - a)` and :math:`R \sim \mathcal{U}[0, 1)`,

    .. math::
       X =
       \begin{cases}
          a + \sqrt{R\,(b - a)(c - a)} & R < F_c,\\
          b - \sqrt{(1 - R)(b - a)(b - c)} & \text{otherwise.}
       \end{cases}

    Parameters
    ----------
    minimum, maximum, mode : float
        Support :math:`[a, b]` and mode :math:`c` with :math:`a \le c \le b`.
    count : int
        Number of samples.
    rng : UniformSource
        Uniform source; one draw per sample.

    Returns
    -------
    ndarray
        ``count`` samples, all inside ``[minimum, maximum]``.

    Raises
    ------
    InvalidParameterError
        If ``mode`` lies outside ``[minimum, maximum]`` or a parameter is
        non-finite.
    """
    _check_finite(minimum=minimum, maximum=maximum, mode=mode)
    if not minimum <= mode <= maximum:
        raise InvalidParameterError(
            f"triangular distribution requires min <= mode <= max, got "
            f"min={minimum}, mode={mode}, max={maximum}"
        )
    count = _check_count(count)
    r = draw_uniforms(rng, count)
    _check_unit_interval(r)

    span = maximum - minimum
    if span == 0:
        return np.full(count, float(minimum))

    mode_position = (mode - minimum) / span
    lower = minimum + np.sqrt(r * span * (mode - minimum))
    upper = maximum - np.sqrt((1.0 - r) * span * (maximum - mode))
    # guards against rounding just past the support edges
    return np.clip(np.where(r < mode_position, lower, upper), minimum, maximum)
