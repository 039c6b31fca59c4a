r"""
mctoken.finance
===============

Closed-form and iterative cash-flow metrics used by return functions.

Cash flows are **monthly**: flow :math:`t` occurs :math:`t/12` years after
the first one, so an annual rate :math:`r` discounts it by
:math:`(1 + r)^{t/12}`. All rates are decimal fractions (``0.1`` is 10%).
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from scipy.optimize import newton

from .exceptions import InvalidParameterError

__all__ = [
    "calculate_irr",
    "calculate_npv",
    "calculate_enhanced_npv",
    "calculate_mirr",
    "calculate_wacc",
    "calculate_discounted_payback_period",
    "calculate_payback_period",
    "calculate_moic",
]

IRR_TOLERANCE = 1e-6
IRR_MAX_ITERATIONS = 100


def _flows(cash_flows: Sequence[float]) -> np.ndarray:
    arr = np.asarray(cash_flows, dtype=float).ravel()
    if arr.size == 0:
        raise InvalidParameterError("cash_flows must not be empty")
    return arr


def _years(n: int) -> np.ndarray:
    return np.arange(n) / 12.0


def calculate_irr(cash_flows: Sequence[float], guess: float = 0.1) -> float:
    r"""
    Annualised internal rate of return of monthly cash flows.

    Solves :math:`\sum_t CF_t (1 + r)^{-t/12} = 0` with Newton's method
    (:func:`scipy.optimize.newton`, analytic derivative, tolerance
    ``1e-6``, at most 100 iterations).

    Parameters
    ----------
    cash_flows : sequence of float
        Monthly flows, typically a negative purchase followed by income.
    guess : float, default 0.1
        Starting rate.

    Returns
    -------
    float
        The rate as a fraction. If Newton does not converge the last iterate
        is returned; it can be ``NaN`` for flows without a real root.
    """
    cf = _flows(cash_flows)
    t = _years(cf.size)

    def npv(rate: float) -> float:
        return float(np.sum(cf / np.power(1.0 + rate, t)))

    def dnpv(rate: float) -> float:
        return float(-np.sum(t * cf / np.power(1.0 + rate, t + 1.0)))

    with np.errstate(invalid="ignore", divide="ignore", over="ignore"):
        rate = newton(npv, guess, fprime=dnpv, tol=IRR_TOLERANCE, maxiter=IRR_MAX_ITERATIONS, disp=False)
    return float(rate)


def calculate_npv(cash_flows: Sequence[float], discount_rate: float) -> float:
    """Net present value of monthly flows at an annual ``discount_rate``."""
    cf = _flows(cash_flows)
    return float(np.sum(cf / np.power(1.0 + discount_rate, _years(cf.size))))


def calculate_enhanced_npv(cash_flows: Sequence[float], discount_rates: Sequence[float]) -> float:
    r"""
    NPV with a per-period annual discount rate.

    Flow :math:`t` is discounted at ``discount_rates[t]``; periods past the
    end of ``discount_rates`` reuse its last rate.
    """
    cf = _flows(cash_flows)
    rates = np.asarray(discount_rates, dtype=float).ravel()
    if rates.size == 0:
        raise InvalidParameterError("discount_rates must not be empty")
    if rates.size < cf.size:
        rates = np.concatenate([rates, np.full(cf.size - rates.size, rates[-1])])
    return float(np.sum(cf / np.power(1.0 + rates[: cf.size], _years(cf.size))))


def calculate_mirr(cash_flows: Sequence[float], finance_rate: float, reinvest_rate: float) -> float:
    r"""
    Modified internal rate of return.

    .. math::
       \mathrm{MIRR} = \left(\frac{FV_+}{PV_-}\right)^{1/N} - 1,

    where :math:`PV_-` discounts outflows at ``finance_rate``, :math:`FV_+`
    compounds inflows to the last period at ``reinvest_rate`` and
    :math:`N = (n - 1)/12` years.

    Raises
    ------
    InvalidParameterError
        With fewer than two flows or no outflow.
    """
    cf = _flows(cash_flows)
    if cf.size < 2:
        raise InvalidParameterError("MIRR needs at least two cash flows")
    t = _years(cf.size)
    negative = np.where(cf < 0, -cf, 0.0)
    positive = np.where(cf > 0, cf, 0.0)
    pv_negative = float(np.sum(negative / np.power(1.0 + finance_rate, t)))
    if pv_negative == 0:
        raise InvalidParameterError("MIRR needs at least one negative cash flow")
    fv_positive = float(np.sum(positive * np.power(1.0 + reinvest_rate, t[::-1])))
    years = (cf.size - 1) / 12.0
    return (fv_positive / pv_negative) ** (1.0 / years) - 1.0


def calculate_wacc(
    equity_percentage: float,
    cost_of_equity: float,
    debt_percentage: float,
    cost_of_debt: float,
    tax_rate: float,
) -> float:
    """Weighted average cost of capital with tax-deductible debt."""
    return equity_percentage * cost_of_equity + debt_percentage * cost_of_debt * (1.0 - tax_rate)


def calculate_discounted_payback_period(cash_flows: Sequence[float], discount_rate: float) -> float:
    r"""
    Months until the cumulative discounted flow turns non-negative.

    The crossing month is linearly interpolated. Returns ``0`` when the first
    flow already pays back and ``-1`` when payback is never reached.
    """
    cf = _flows(cash_flows)
    discounted = cf / np.power(1.0 + discount_rate, _years(cf.size))
    cumulative = np.cumsum(discounted)
    reached = np.flatnonzero(cumulative >= 0)
    if reached.size == 0:
        return -1.0
    t = int(reached[0])
    if t == 0:
        return 0.0
    previous = cumulative[t] - discounted[t]
    return float(t - 1 + (-previous / discounted[t]))


def calculate_payback_period(cumulative_cash_flow: Sequence[float]) -> float:
    r"""
    Fractional month at which a cumulative cash-flow curve crosses zero.

    Returns ``-1`` if the curve never becomes non-negative, or if it starts
    non-negative (no investment to pay back).
    """
    cumulative = _flows(cumulative_cash_flow)
    reached = np.flatnonzero(cumulative >= 0)
    if reached.size == 0 or reached[0] == 0:
        return -1.0
    i = int(reached[0])
    previous, current = cumulative[i - 1], cumulative[i]
    return float(i - 1 + (-previous / (current - previous)))


def calculate_moic(total_return: float, initial_investment: float) -> float:
    """Multiple on invested capital."""
    if initial_investment == 0:
        raise InvalidParameterError("initial_investment must be non-zero")
    return total_return / initial_investment
