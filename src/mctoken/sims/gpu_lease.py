r"""
Fractionalized GPU server lease economics.

A server is bought by the operator for :attr:`ServerModel.hardware_cost` and
sold to token holders as ``tokens_per_box`` tokens for
:attr:`ServerModel.fractional_price`. Token holders receive a monthly lease
for ``months`` months plus an exit value (salvage of the hardware, or the
terminal simulated token price).

Operator economics over one year at utilization :math:`u` (percent):

.. math::
   H = \tfrac{u}{100}\cdot 8760,\qquad
   R = H_\text{inf}\cdot \text{TPS}\cdot\tfrac{\text{rate}_\text{inf}}{10^6}\cdot 3600
       + H_\text{rent}\cdot\text{rate}_\text{rent}\cdot\text{GPUs}
       + \tfrac{\text{fractional price}}{5},

with :math:`H_\text{inf}` the inference share of :math:`H`. Expenses are
colocation, other costs, lease payments and a five-year hardware
amortisation; :math:`\text{NOI} = R - E`.

With progressive NOI sharing enabled, token holders get an extra share of a
positive NOI on top of the lease, tiered by the operator's ROI
(:func:`progressive_share_percentage`).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Sequence

import numpy as np

from ..core import DEFAULT_NUM_SIMULATIONS, ReturnFunction, SimulationParameters
from ..exceptions import InvalidParameterError
from ..finance import calculate_irr, calculate_npv, calculate_payback_period

__all__ = [
    "ServerModel",
    "SERVER_MODELS",
    "get_server_model",
    "progressive_share_percentage",
    "LeaseScenario",
    "ScenarioMetrics",
    "SensitivityVariable",
    "ScenarioKind",
    "UTILIZATION_SCENARIOS",
    "SALVAGE_SCENARIOS",
    "TOKEN_PRICE_MULTIPLIERS",
    "ReturnMetric",
    "make_return_function",
]

HOURS_PER_YEAR = 8760
AMORTIZATION_YEARS = 5

# (minimum operator ROI in percent, share of NOI), highest tier first
_SHARE_TIERS = ((50.0, 0.35), (40.0, 0.30), (30.0, 0.25), (20.0, 0.20), (10.0, 0.15))
_BASE_SHARE = 0.10


@dataclass(frozen=True)
class ServerModel:
    """Hardware and pricing constants of one server configuration."""

    name: str
    inference_tps: float
    concurrent_requests: int
    gpus_per_server: int
    base_rental_rate: float
    inference_rate: float
    hardware_cost: float
    fractional_price: float
    colocation_cost: float
    other_expenses: float
    base_lease_year: float
    monthly_lease_per_token: float

    @property
    def total_tps(self) -> float:
        return self.inference_tps * self.concurrent_requests * self.gpus_per_server


SERVER_MODELS: dict[str, ServerModel] = {
    m.name: m
    for m in (
        ServerModel("RTX5090", 200, 4, 6, 0.4, 0.3, 32_500, 60_000, 6_000, 1_400, 16_800, 1.90),
        ServerModel("H100", 600, 16, 8, 1.6, 0.3, 225_000, 400_000, 18_000, 3_600, 152_000, 12.667),
        ServerModel("H200", 1200, 24, 8, 2.25, 0.3, 275_000, 500_000, 19_200, 4_200, 190_000, 15.833),
        ServerModel("GB72", 6000, 36, 10, 4.25, 0.3, 500_000, 825_000, 24_000, 6_000, 313_500, 26.125),
    )
}


def get_server_model(name: str) -> ServerModel:
    try:
        return SERVER_MODELS[name]
    except KeyError:
        raise InvalidParameterError(
            f"Unknown server model '{name}', expected one of {sorted(SERVER_MODELS)}"
        ) from None


def progressive_share_percentage(operator_roi: float) -> float:
    r"""
    Share of NOI paid to token holders for an operator ROI in percent.

    10% below an ROI of 10%, then 15/20/25/30/35% from 10/20/30/40/50%.

    Examples
    --------
    >>> progressive_share_percentage(35.0)
    0.25
    """
    for threshold, share in _SHARE_TIERS:
        if operator_roi >= threshold:
            return share
    return _BASE_SHARE


@dataclass(frozen=True)
class LeaseScenario:
    r"""
    Deterministic token-holder scenario around one server model.

    Attributes
    ----------
    model : ServerModel
        Server configuration.
    utilization_rate : float, default 60
        Utilization in percent.
    split_ratio : float, default 50
        Percent of utilized hours spent on inference (the rest is rental).
    tokens_per_box : int, default 1000
        Tokens issued per server.
    server_monthly_lease : float, optional
        Monthly lease paid for the whole server; defaults to
        ``model.base_lease_year / 12``.
    fractional_price : float, optional
        Sale price of the whole server; defaults to ``model.fractional_price``.
    salvage_rate : float, default 20
        Salvage value as a percent of the hardware cost.
    progressive_noi : bool, default False
        Enable progressive NOI sharing.
    months : int, default 60
        Holding horizon.
    inference_rate : float, optional
        Inference price in dollars per million tokens; defaults to
        ``model.inference_rate``.
    discount_rate : float, default 12
        Annual discount rate in percent used by :meth:`npv`.
    """

    model: ServerModel
    utilization_rate: float = 60.0
    split_ratio: float = 50.0
    tokens_per_box: int = 1000
    server_monthly_lease: Optional[float] = None
    fractional_price: Optional[float] = None
    salvage_rate: float = 20.0
    progressive_noi: bool = False
    months: int = 60
    inference_rate: Optional[float] = None
    discount_rate: float = 12.0

    def __post_init__(self) -> None:
        if self.server_monthly_lease is None:
            object.__setattr__(self, "server_monthly_lease", self.model.base_lease_year / 12.0)
        if self.fractional_price is None:
            object.__setattr__(self, "fractional_price", self.model.fractional_price)
        if self.inference_rate is None:
            object.__setattr__(self, "inference_rate", self.model.inference_rate)
        if self.tokens_per_box <= 0:
            raise InvalidParameterError("tokens_per_box must be positive")
        if self.fractional_price <= 0:
            raise InvalidParameterError("fractional_price must be positive")
        if self.server_monthly_lease < 0:
            raise InvalidParameterError("server_monthly_lease must be non-negative")
        if self.inference_rate < 0:
            raise InvalidParameterError("inference_rate must be non-negative")
        if self.months <= 0:
            raise InvalidParameterError("months must be positive")
        for name in ("utilization_rate", "split_ratio", "salvage_rate"):
            if not 0 <= getattr(self, name) <= 100:
                raise InvalidParameterError(f"{name} must be in [0, 100]")
        if self.discount_rate <= -100:
            raise InvalidParameterError("discount_rate must be greater than -100")

    def with_overrides(self, **changes) -> "LeaseScenario":
        return replace(self, **changes)

    # -- operator side -------------------------------------------------------

    @property
    def price_per_token(self) -> float:
        return self.fractional_price / self.tokens_per_box

    @property
    def per_token_monthly_lease(self) -> float:
        return self.server_monthly_lease / self.tokens_per_box

    @property
    def annual_lease_payments(self) -> float:
        return self.server_monthly_lease * 12.0

    @property
    def total_expenses(self) -> float:
        m = self.model
        return m.colocation_cost + m.other_expenses + self.annual_lease_payments + m.hardware_cost / AMORTIZATION_YEARS

    def total_revenue(self, utilization: float) -> float:
        m = self.model
        utilization_hours = utilization / 100.0 * HOURS_PER_YEAR
        inference_hours = self.split_ratio / 100.0 * utilization_hours
        rental_hours = utilization_hours - inference_hours
        inference_revenue = inference_hours * m.total_tps * (self.inference_rate / 1_000_000) * 3600
        rental_revenue = rental_hours * m.base_rental_rate * m.gpus_per_server
        return inference_revenue + rental_revenue + self.fractional_price / AMORTIZATION_YEARS

    def noi(self, utilization: float) -> float:
        return self.total_revenue(utilization) - self.total_expenses

    def operator_roi(self, utilization: float) -> float:
        return self.noi(utilization) / self.total_expenses * 100.0

    # -- token-holder side ---------------------------------------------------

    def salvage_value_per_token(self, salvage_rate: float) -> float:
        return salvage_rate / 100.0 * self.model.hardware_cost / self.tokens_per_box

    def effective_monthly_lease(self, utilization: float) -> float:
        r"""
        Per-token monthly payment: the lease, plus the NOI bonus when
        progressive sharing is on and NOI is positive.
        """
        if not self.progressive_noi:
            return self.per_token_monthly_lease
        noi = self.noi(utilization)
        bonus = noi * progressive_share_percentage(self.operator_roi(utilization)) if noi > 0 else 0.0
        return (self.annual_lease_payments + bonus) / 12.0 / self.tokens_per_box

    def exit_value(self, salvage_rate: float, price_path: Optional[Sequence[float]] = None) -> float:
        """Terminal simulated token price if a path is given, else the salvage value."""
        if price_path is not None and len(price_path) > 0:
            return float(price_path[-1])
        return self.salvage_value_per_token(salvage_rate)

    def cash_flows(
        self,
        utilization: Optional[float] = None,
        salvage_rate: Optional[float] = None,
        price_path: Optional[Sequence[float]] = None,
    ) -> np.ndarray:
        r"""
        Monthly per-token flows: ``-price``, then ``months`` lease payments,
        the last one including the exit value.
        """
        utilization = self.utilization_rate if utilization is None else utilization
        salvage_rate = self.salvage_rate if salvage_rate is None else salvage_rate
        flows = np.full(self.months + 1, self.effective_monthly_lease(utilization))
        flows[0] = -self.price_per_token
        flows[-1] += self.exit_value(salvage_rate, price_path)
        return flows

    def cumulative_cash_flow(self, utilization: Optional[float] = None) -> np.ndarray:
        return np.cumsum(self.cash_flows(utilization))

    def irr(
        self,
        utilization: Optional[float] = None,
        salvage_rate: Optional[float] = None,
        price_path: Optional[Sequence[float]] = None,
    ) -> float:
        """Annualised IRR in percent."""
        return calculate_irr(self.cash_flows(utilization, salvage_rate, price_path), 0.1) * 100.0

    def roi(
        self,
        utilization: Optional[float] = None,
        salvage_rate: Optional[float] = None,
        price_path: Optional[Sequence[float]] = None,
    ) -> float:
        """Simple holding-period ROI in percent."""
        utilization = self.utilization_rate if utilization is None else utilization
        salvage_rate = self.salvage_rate if salvage_rate is None else salvage_rate
        total_return = self.effective_monthly_lease(utilization) * self.months + self.exit_value(
            salvage_rate, price_path
        )
        return (total_return - self.price_per_token) / self.price_per_token * 100.0

    def npv(self, discount_rate: Optional[float] = None) -> float:
        """NPV of :meth:`cash_flows` at an annual fraction, default ``discount_rate / 100``."""
        rate = self.discount_rate / 100.0 if discount_rate is None else discount_rate
        return calculate_npv(self.cash_flows(), rate)

    def profitability_index(self) -> float:
        return self.npv() / self.price_per_token

    def payback_period(self) -> float:
        """Fractional month of breakeven, ``-1`` if never reached."""
        return calculate_payback_period(self.cumulative_cash_flow())

    @property
    def holding_years(self) -> float:
        return self.months / 12.0

    def cagr(self) -> float:
        r"""
        Compound annual growth rate in percent implied by :meth:`roi`.

        .. math::
           \mathrm{CAGR} = \big((1 + \mathrm{ROI}/100)^{1/Y} - 1\big)\cdot 100,
           \qquad Y = \text{months}/12.
        """
        return ((1.0 + self.roi() / 100.0) ** (1.0 / self.holding_years) - 1.0) * 100.0

    def annual_yield(self) -> float:
        """Simple (non-compounded) yearly yield in percent: :meth:`roi` spread over the holding years."""
        return self.roi() / self.holding_years

    def metrics(self) -> "ScenarioMetrics":
        """Token-holder and operator figures at this scenario's own inputs."""
        u = self.utilization_rate
        operator_roi = self.operator_roi(u)
        return ScenarioMetrics(
            irr=self.irr(),
            roi=self.roi(),
            npv=self.npv(),
            cagr=self.cagr(),
            monthly_lease=self.effective_monthly_lease(u),
            noi=self.noi(u),
            operator_roi=operator_roi,
            progressive_share=progressive_share_percentage(operator_roi),
            price_per_token=self.price_per_token,
            salvage_value_per_token=self.salvage_value_per_token(self.salvage_rate),
        )

    def sensitivity(
        self,
        variable: "SensitivityVariable | str",
        values: Optional[Sequence[float]] = None,
    ) -> dict[float, "ScenarioMetrics"]:
        r"""
        Re-derive :meth:`metrics` while one input varies.

        Parameters
        ----------
        variable : SensitivityVariable or str
            Input to vary: ``"utilization_rate"``, ``"split_ratio"``,
            ``"inference_rate"`` or ``"discount_rate"``.
        values : sequence of float, optional
            Values to try; defaults to :attr:`SensitivityVariable.default_values`.

        Returns
        -------
        dict[float, ScenarioMetrics]
            Metrics keyed by the tried value, in the order given.

        Raises
        ------
        InvalidParameterError
            For an unknown variable or a value the scenario rejects.

        Examples
        --------
        >>> sc = LeaseScenario(get_server_model("RTX5090"))
        >>> list(sc.sensitivity("discount_rate"))
        [5.0, 10.0, 15.0, 20.0, 25.0]
        """
        var = _resolve(SensitivityVariable, variable, "sensitivity variable")
        grid = var.default_values if values is None else values
        return {float(v): self.with_overrides(**{var.value: float(v)}).metrics() for v in grid}

    def scenario_analysis(
        self,
        kind: "ScenarioKind | str",
        values: Optional[Sequence[float]] = None,
    ) -> dict[float, "ScenarioMetrics"]:
        r"""
        Compare the scenario under a small grid of alternatives.

        ``"utilization"`` and ``"salvage"`` replace the rate (percent);
        ``"token_price"`` multiplies :attr:`fractional_price`. Default grids are
        40/60/80%, 10/20/30% and 0.8/1.0/1.2x.
        """
        kind = _resolve(ScenarioKind, kind, "scenario kind")
        grid = kind.default_values if values is None else values
        return {float(v): kind.apply(self, float(v)).metrics() for v in grid}

    def simulation_parameters(
        self,
        utilization_std: float,
        salvage_value_std: float,
        metric: "ReturnMetric | str" = "IRR",
        num_simulations: int = DEFAULT_NUM_SIMULATIONS,
        token_price_volatility: Optional[float] = None,
        token_price_drift: Optional[float] = None,
    ) -> SimulationParameters:
        r"""
        Build :class:`~mctoken.core.SimulationParameters` centred on this scenario.

        Utilization and salvage means are :attr:`utilization_rate` and
        :attr:`salvage_rate`; the return function reports ``metric``.
        """
        return SimulationParameters(
            utilization_mean=self.utilization_rate,
            utilization_std=utilization_std,
            salvage_value_mean=self.salvage_rate,
            salvage_value_std=salvage_value_std,
            calculate_return_fn=make_return_function(self, metric),
            months=self.months,
            num_simulations=num_simulations,
            progressive_noi=self.progressive_noi,
            price_per_token=self.price_per_token,
            monthly_lease_per_token=self.effective_monthly_lease(self.utilization_rate),
            salvage_value_per_token=self.salvage_value_per_token(self.salvage_rate),
            token_price_volatility=token_price_volatility,
            token_price_drift=token_price_drift,
        )


@dataclass(frozen=True)
class ScenarioMetrics:
    r"""
    Deterministic figures of one :class:`LeaseScenario`.

    Attributes
    ----------
    irr, roi, cagr : float
        Token-holder IRR, holding-period ROI and CAGR, in percent.
    npv : float
        Token-holder NPV at the scenario's discount rate.
    monthly_lease : float
        Effective per-token monthly payment.
    noi, operator_roi : float
        Operator's annual NOI and ROI in percent.
    progressive_share : float
        NOI share tier for ``operator_roi`` (a fraction, applied only when
        progressive sharing is on).
    price_per_token, salvage_value_per_token : float
        Entry price and salvage exit value per token.
    """

    irr: float
    roi: float
    npv: float
    cagr: float
    monthly_lease: float
    noi: float
    operator_roi: float
    progressive_share: float
    price_per_token: float
    salvage_value_per_token: float


class SensitivityVariable(str, Enum):
    """Scenario input varied by :meth:`LeaseScenario.sensitivity`; values are field names."""

    UTILIZATION_RATE = "utilization_rate"
    SPLIT_RATIO = "split_ratio"
    INFERENCE_RATE = "inference_rate"
    DISCOUNT_RATE = "discount_rate"

    @property
    def default_values(self) -> tuple[float, ...]:
        return _SENSITIVITY_GRIDS[self]


_SENSITIVITY_GRIDS: dict[SensitivityVariable, tuple[float, ...]] = {
    SensitivityVariable.UTILIZATION_RATE: (20.0, 40.0, 60.0, 80.0, 100.0),
    SensitivityVariable.SPLIT_RATIO: (0.0, 25.0, 50.0, 75.0, 100.0),
    SensitivityVariable.INFERENCE_RATE: (0.05, 0.10, 0.15, 0.20, 0.30, 0.40, 0.50),
    SensitivityVariable.DISCOUNT_RATE: (5.0, 10.0, 15.0, 20.0, 25.0),
}

UTILIZATION_SCENARIOS = (40.0, 60.0, 80.0)
SALVAGE_SCENARIOS = (10.0, 20.0, 30.0)
TOKEN_PRICE_MULTIPLIERS = (0.8, 1.0, 1.2)


class ScenarioKind(str, Enum):
    """Alternative grid compared by :meth:`LeaseScenario.scenario_analysis`."""

    UTILIZATION = "utilization"
    SALVAGE = "salvage"
    TOKEN_PRICE = "token_price"

    @property
    def default_values(self) -> tuple[float, ...]:
        return {
            ScenarioKind.UTILIZATION: UTILIZATION_SCENARIOS,
            ScenarioKind.SALVAGE: SALVAGE_SCENARIOS,
            ScenarioKind.TOKEN_PRICE: TOKEN_PRICE_MULTIPLIERS,
        }[self]

    def apply(self, scenario: LeaseScenario, value: float) -> LeaseScenario:
        if self is ScenarioKind.UTILIZATION:
            return scenario.with_overrides(utilization_rate=value)
        if self is ScenarioKind.SALVAGE:
            return scenario.with_overrides(salvage_rate=value)
        return scenario.with_overrides(fractional_price=scenario.fractional_price * value)


def _resolve(enum_cls, value, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidParameterError(
            f"Unknown {what}: {value!r}, expected one of {[m.value for m in enum_cls]}"
        ) from None


_Extractor = Callable[[LeaseScenario, float, float, Optional[Sequence[float]]], float]


class ReturnMetric(str, Enum):
    r"""
    Scalar outcome reported by a lease return function.

    Attributes
    ----------
    IRR : str
        Annualised IRR in percent.
    ROI : str
        Holding-period ROI in percent.
    MONTHLY_LEASE : str
        Effective per-token monthly payment.
    NOI : str
        Operator's annual net operating income.
    """

    IRR = "IRR"
    ROI = "ROI"
    MONTHLY_LEASE = "MonthlyLease"
    NOI = "NOI"

    @property
    def extractor(self) -> _Extractor:
        return _EXTRACTORS[self]


_EXTRACTORS: dict[ReturnMetric, _Extractor] = {
    ReturnMetric.IRR: lambda sc, u, s, path: sc.irr(u, s, path),
    ReturnMetric.ROI: lambda sc, u, s, path: sc.roi(u, s, path),
    ReturnMetric.MONTHLY_LEASE: lambda sc, u, s, path: sc.effective_monthly_lease(u),
    ReturnMetric.NOI: lambda sc, u, s, path: sc.noi(u),
}


def make_return_function(scenario: LeaseScenario, metric: "ReturnMetric | str" = ReturnMetric.IRR) -> ReturnFunction:
    r"""
    Bind ``scenario`` and ``metric`` into a return function for the simulator.

    The metric is resolved once here, not per trial.

    Raises
    ------
    InvalidParameterError
        If ``metric`` is not a :class:`ReturnMetric` value.
    """
    extract = _resolve(ReturnMetric, metric, "metric").extractor

    def calculate_return(
        utilization: float,
        salvage_rate: float,
        price_path: Optional[Sequence[float]] = None,
    ) -> float:
        return extract(scenario, utilization, salvage_rate, price_path)

    return calculate_return
