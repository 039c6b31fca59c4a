r"""

mctoken.core
============

Monte Carlo orchestration of token-holder returns.

This module provides:

* :class:`~mctoken.core.SimulationParameters` – validated scenario inputs.
* :class:`~mctoken.core.ReturnFunction` – the callback that turns sampled
  inputs into one scalar outcome.
* :class:`~mctoken.core.MonteCarloSimulation` – abstract base running trials
  and reducing them to a :class:`~mctoken.results.SimulationResult`.
* :class:`~mctoken.core.TokenHolderReturnSimulation` and
  :class:`~mctoken.core.TokenHolderPriceSimulation` – the two trial modes.
* :func:`simulate_token_holder_returns` and
  :func:`simulate_token_holder_returns_with_price_fluctuations` – one-call
  wrappers.

Reproducibility
---------------

Each run creates **one** :class:`~mctoken.rng.UniformRng` from the
simulation's seed string and draws every trial input from it in a fixed
order: utilization (two uniforms), salvage rate (two uniforms), then, in the
price mode, the price path (two uniforms per step). Trials run sequentially,
so re-running with the same parameters reproduces bit-identical values.
The two modes use different seeds.
"""

from __future__ import annotations

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Callable, Optional, Protocol, Sequence

import numpy as np

from .distributions import generate_normal_distribution
from .exceptions import InvalidParameterError, NonFiniteResultError
from .paths import simulate_token_price_fluctuations
from .results import SimulationResult
from .rng import UniformRng, create_rng
from .stats_engine import StatsContext, StatsEngine, calculate_statistics

logger = logging.getLogger(__name__)  # pragma: no cover
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


DEFAULT_NUM_SIMULATIONS = 1000
RETURNS_SEED = "token-holder-returns"
PRICE_FLUCTUATIONS_SEED = "token-holder-returns-price-fluctuations"


class ReturnFunction(Protocol):
    r"""
    Pure function mapping sampled inputs to one outcome.

    ``fn(utilization, salvage_rate) -> float`` in the plain mode and
    ``fn(utilization, salvage_rate, price_path) -> float`` when price
    fluctuations are simulated. Rates are percentages in ``[0, 100]``.
    """

    def __call__(
        self,
        utilization: float,
        salvage_rate: float,
        price_path: Optional[Sequence[float]] = None,
        /,
    ) -> float: ...


def _check_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise InvalidParameterError(f"{name} must be finite, got {value!r}")


def _check_positive_int(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
        raise InvalidParameterError(f"{name} must be a positive integer, got {value!r}")


@dataclass(frozen=True)
class SimulationParameters:
    r"""
    Inputs of one simulation request.

    Attributes
    ----------
    utilization_mean, utilization_std : float
        Normal distribution of the utilization rate (percent).
    salvage_value_mean, salvage_value_std : float
        Normal distribution of the salvage rate (percent of hardware cost).
    calculate_return_fn : ReturnFunction
        Outcome of one trial; treated as an opaque pure function.
    months : int, default 60
        Holding horizon in months. The price path has ``months + 1`` points.
    num_simulations : int, default 1000
        Number of trials.
    progressive_noi : bool, default False
        Informational flag forwarded from the scenario.
    price_per_token : float, optional
        Initial token price; required for the price-fluctuation mode.
    monthly_lease_per_token, salvage_value_per_token : float, optional
        Informational scenario values.
    token_price_volatility, token_price_drift : float, optional
        Annualised GBM parameters; ``None`` is read as ``0``.

    Raises
    ------
    InvalidParameterError
        On negative standard deviations, non-finite values, a non-positive
        horizon or trial count, or a non-callable return function.
    """

    utilization_mean: float
    utilization_std: float
    salvage_value_mean: float
    salvage_value_std: float
    calculate_return_fn: ReturnFunction
    months: int = 60
    num_simulations: int = DEFAULT_NUM_SIMULATIONS
    progressive_noi: bool = False
    price_per_token: Optional[float] = None
    monthly_lease_per_token: Optional[float] = None
    salvage_value_per_token: Optional[float] = None
    token_price_volatility: Optional[float] = None
    token_price_drift: Optional[float] = None

    def __post_init__(self) -> None:
        for name in ("utilization_mean", "utilization_std", "salvage_value_mean", "salvage_value_std"):
            _check_finite(name, getattr(self, name))
        if self.utilization_std < 0:
            raise InvalidParameterError("utilization_std must be non-negative")
        if self.salvage_value_std < 0:
            raise InvalidParameterError("salvage_value_std must be non-negative")
        if not callable(self.calculate_return_fn):
            raise InvalidParameterError("calculate_return_fn must be callable")
        _check_positive_int("months", self.months)
        _check_positive_int("num_simulations", self.num_simulations)
        for name in (
            "price_per_token",
            "monthly_lease_per_token",
            "salvage_value_per_token",
            "token_price_volatility",
            "token_price_drift",
        ):
            value = getattr(self, name)
            if value is not None:
                _check_finite(name, value)
        if self.price_per_token is not None and self.price_per_token <= 0:
            raise InvalidParameterError("price_per_token must be positive")
        if self.token_price_volatility is not None and self.token_price_volatility < 0:
            raise InvalidParameterError("token_price_volatility must be non-negative")

    def with_overrides(self, **changes) -> "SimulationParameters":
        """Return a validated copy with selected fields replaced."""
        return replace(self, **changes)


class MonteCarloSimulation(ABC):
    r"""
    Abstract base class for sequential, seeded Monte Carlo runs.

    Subclass this and implement :meth:`single_simulation`. :meth:`run` creates
    a fresh generator from :attr:`seed`, executes the trials in order and
    reduces the outcomes with :func:`~mctoken.stats_engine.calculate_statistics`.

    Quick example
    -------------
    >>> class Coin(MonteCarloSimulation):
    ...     def single_simulation(self, rng):
    ...         return 1.0 if rng() < 0.5 else -1.0
    ...
    >>> res = Coin("coin", seed="demo").run(1000)  # doctest: +SKIP
    """

    def __init__(self, name: str = "Simulation", seed: Optional[str] = None):
        self.name = name
        self.seed = seed

    @abstractmethod
    def single_simulation(self, rng: UniformRng) -> float:
        r"""
        Perform one trial drawing all randomness from ``rng``.

        Returns
        -------
        float
            The trial outcome.
        """

    def create_rng(self) -> UniformRng:
        """New generator for one run; never shared between runs."""
        return create_rng(self.seed)

    def run(
        self,
        n_simulations: int,
        *,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        stats_ctx: Optional[StatsContext] = None,
        stats_engine: Optional[StatsEngine] = None,
    ) -> SimulationResult:
        r"""
        Run the Monte Carlo simulation.

        Parameters
        ----------
        n_simulations : int
            Number of trials.
        progress_callback : callable, optional
            ``f(completed: int, total: int)`` called roughly every 1% of trials.
        stats_ctx : StatsContext, optional
            Percentile grid and histogram bin count for the reduction.
        stats_engine : StatsEngine, optional
            Custom engine (defaults to :data:`mctoken.stats_engine.DEFAULT_ENGINE`).

        Returns
        -------
        SimulationResult

        Raises
        ------
        InvalidParameterError
            If ``n_simulations`` is not a positive integer.
        NonFiniteResultError
            If a trial returns ``NaN`` or ``inf``.
        """
        _check_positive_int("n_simulations", n_simulations)
        t0 = time.time()
        logger.info(f"Computing {n_simulations} simulations sequentially...")
        rng = self.create_rng()
        results = self._run_sequential(int(n_simulations), rng, progress_callback)
        stats = calculate_statistics(results, stats_ctx, stats_engine)
        exec_time = time.time() - t0
        return replace(
            stats,
            execution_time=exec_time,
            metadata={"simulation_name": self.name, "seed": self.seed},
        )

    def _run_sequential(
        self,
        n_simulations: int,
        rng: UniformRng,
        progress_callback: Optional[Callable[[int, int], None]],
    ) -> np.ndarray:
        """Compute ``n_simulations`` trials in order, with optional progress."""
        results = np.empty(n_simulations, dtype=float)
        step = max(1, n_simulations // 100)
        for i in range(n_simulations):
            value = float(self.single_simulation(rng))
            if not math.isfinite(value):
                raise NonFiniteResultError(f"trial {i} of '{self.name}' produced a non-finite outcome: {value}")
            results[i] = value
            if progress_callback and (((i + 1) % step == 0) or (i + 1 == n_simulations)):
                progress_callback(i + 1, n_simulations)
        return results


class TokenHolderReturnSimulation(MonteCarloSimulation):
    r"""
    Token-holder outcome under uncertain utilization and salvage rates.

    Each trial draws

    .. math::
       U = \operatorname{clip}(\mathcal{N}(\mu_U, \sigma_U), 0, 100),\qquad
       S = \operatorname{clip}(\mathcal{N}(\mu_S, \sigma_S), 0, 100)

    and returns ``params.calculate_return_fn(U, S)``.
    """

    default_seed = RETURNS_SEED

    def __init__(
        self,
        params: SimulationParameters,
        name: str = "Token Holder Returns",
        seed: Optional[str] = None,
    ):
        super().__init__(name, seed if seed is not None else self.default_seed)
        self.params = params

    def draw_rates(self, rng: UniformRng) -> tuple[float, float]:
        """Draw one clamped ``(utilization, salvage_rate)`` pair."""
        p = self.params
        utilization = generate_normal_distribution(p.utilization_mean, p.utilization_std, 1, rng)[0]
        salvage_rate = generate_normal_distribution(p.salvage_value_mean, p.salvage_value_std, 1, rng)[0]
        return float(np.clip(utilization, 0.0, 100.0)), float(np.clip(salvage_rate, 0.0, 100.0))

    def single_simulation(self, rng: UniformRng) -> float:
        utilization, salvage_rate = self.draw_rates(rng)
        return self.params.calculate_return_fn(utilization, salvage_rate)


class TokenHolderPriceSimulation(TokenHolderReturnSimulation):
    r"""
    Like :class:`TokenHolderReturnSimulation`, plus a simulated token price path.

    After the rates, each trial draws a monthly GBM path of ``months + 1``
    prices starting at ``price_per_token`` (see
    :func:`~mctoken.paths.simulate_token_price_fluctuations`) from the same
    generator and returns ``params.calculate_return_fn(U, S, path)``.
    """

    default_seed = PRICE_FLUCTUATIONS_SEED

    def __init__(
        self,
        params: SimulationParameters,
        name: str = "Token Holder Returns (price fluctuations)",
        seed: Optional[str] = None,
    ):
        if params.price_per_token is None:
            raise InvalidParameterError("price_per_token is required to simulate price fluctuations")
        super().__init__(params, name, seed)

    def simulate_price_path(self, rng: UniformRng) -> np.ndarray:
        p = self.params
        return simulate_token_price_fluctuations(
            p.price_per_token,
            p.token_price_drift or 0.0,
            p.token_price_volatility or 0.0,
            p.months + 1,
            1.0,
            rng,
        )

    def single_simulation(self, rng: UniformRng) -> float:
        utilization, salvage_rate = self.draw_rates(rng)
        path = self.simulate_price_path(rng)
        return self.params.calculate_return_fn(utilization, salvage_rate, path)


def simulate_token_holder_returns(
    params: SimulationParameters,
    num_simulations: Optional[int] = None,
) -> SimulationResult:
    r"""
    Run :class:`TokenHolderReturnSimulation` with the fixed returns seed.

    Parameters
    ----------
    params : SimulationParameters
        Scenario inputs.
    num_simulations : int, optional
        Trial count; defaults to ``params.num_simulations``.
    """
    n = params.num_simulations if num_simulations is None else num_simulations
    return TokenHolderReturnSimulation(params).run(n)


def simulate_token_holder_returns_with_price_fluctuations(
    params: SimulationParameters,
    num_simulations: Optional[int] = None,
) -> SimulationResult:
    r"""
    Run :class:`TokenHolderPriceSimulation` with the fixed price-fluctuation seed.

    Parameters
    ----------
    params : SimulationParameters
        Scenario inputs; ``price_per_token`` must be set.
    num_simulations : int, optional
        Trial count; defaults to ``params.num_simulations``.
    """
    n = params.num_simulations if num_simulations is None else num_simulations
    return TokenHolderPriceSimulation(params).run(n)


__all__ = [
    "DEFAULT_NUM_SIMULATIONS",
    "RETURNS_SEED",
    "PRICE_FLUCTUATIONS_SEED",
    "ReturnFunction",
    "SimulationParameters",
    "MonteCarloSimulation",
    "TokenHolderReturnSimulation",
    "TokenHolderPriceSimulation",
    "simulate_token_holder_returns",
    "simulate_token_holder_returns_with_price_fluctuations",
]
