import numpy as np
import pytest

from mctoken.core import MonteCarloSimulation
from mctoken.rng import create_rng
from mctoken.sims import LeaseScenario, get_server_model


class SequenceSource:
    """Plain ``() -> float`` source replaying fixed values, then repeating the last one."""
    def __init__(self, values):
        self.values = list(values)
        self.calls = 0

    def __call__(self):
        i = min(self.calls, len(self.values) - 1)
        self.calls += 1
        return self.values[i]


class UniformSim(MonteCarloSimulation):
    """A simple sim that draws one uniform per trial from the run generator."""
    def single_simulation(self, rng):
        return rng() - 0.5


class CountingSim(MonteCarloSimulation):
    """Deterministic simulation that returns incrementing integers."""
    def __init__(self):
        super().__init__("CountingSim", seed="counting")
        self.counter = 0

    def single_simulation(self, rng):
        self.counter += 1
        return float(self.counter)


@pytest.fixture
def sequence_source():
    """Factory for replaying uniform sources."""
    return SequenceSource


@pytest.fixture
def seeded_rng():
    return create_rng("test-seed")


@pytest.fixture
def sample_data():
    """Fixture providing a seeded normal sample for testing"""
    return np.random.default_rng(42).normal(5.0, 2.0, 1000)


@pytest.fixture
def uniform_simulation():
    return UniformSim(name="UniformSim", seed="uniform")


@pytest.fixture
def counting_simulation():
    return CountingSim()


@pytest.fixture
def baseline_scenario():
    """RTX5090 scenario with the dashboard defaults."""
    return LeaseScenario(model=get_server_model("RTX5090"))
