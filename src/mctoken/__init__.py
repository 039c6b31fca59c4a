"""mctoken package public API."""

from .analysis import calculate_max_drawdown, probability_of_achieving_target
from .core import (
    MonteCarloSimulation,
    SimulationParameters,
    TokenHolderPriceSimulation,
    TokenHolderReturnSimulation,
    simulate_token_holder_returns,
    simulate_token_holder_returns_with_price_fluctuations,
)
from .distributions import generate_normal_distribution, generate_triangular_distribution
from .exceptions import (
    InsufficientSampleSizeError,
    InvalidParameterError,
    NonFiniteResultError,
    SimulationError,
)
from .paths import simulate_token_price_fluctuations
from .results import Histogram, SimulationResult
from .rng import UniformRng, create_rng
from .sims import LeaseScenario, ReturnMetric, make_return_function
from .stats_engine import (
    DEFAULT_ENGINE,
    FnMetric,
    StatsContext,
    StatsEngine,
    calculate_expected_shortfall,
    calculate_histogram,
    calculate_percentiles,
    calculate_statistics,
    calculate_var,
)

__all__ = [
    "SimulationResult",
    "Histogram",
    "SimulationParameters",
    "MonteCarloSimulation",
    "TokenHolderReturnSimulation",
    "TokenHolderPriceSimulation",
    "simulate_token_holder_returns",
    "simulate_token_holder_returns_with_price_fluctuations",
    "UniformRng",
    "create_rng",
    "generate_normal_distribution",
    "generate_triangular_distribution",
    "simulate_token_price_fluctuations",
    "StatsEngine",
    "StatsContext",
    "FnMetric",
    "DEFAULT_ENGINE",
    "calculate_histogram",
    "calculate_var",
    "calculate_expected_shortfall",
    "calculate_percentiles",
    "calculate_statistics",
    "probability_of_achieving_target",
    "calculate_max_drawdown",
    "LeaseScenario",
    "ReturnMetric",
    "make_return_function",
    "SimulationError",
    "InvalidParameterError",
    "InsufficientSampleSizeError",
    "NonFiniteResultError",
]

__version__ = "0.1.0"
