import math

import numpy as np
import pytest

from mctoken.exceptions import InvalidParameterError, NonFiniteResultError
from mctoken.paths import simulate_token_price_fluctuations
from mctoken.rng import create_rng


class TestTokenPricePaths:
    """Test GBM token price paths"""

    def test_length_and_start(self, seeded_rng):
        path = simulate_token_price_fluctuations(60.0, 0.05, 0.3, 61, 1.0, seeded_rng)
        assert path.shape == (61,)
        assert path[0] == 60.0

    def test_strictly_positive(self):
        """Even with extreme volatility prices stay positive"""
        rng = create_rng("gbm-positive")
        for _ in range(50):
            path = simulate_token_price_fluctuations(1.0, -0.5, 2.0, 121, 1.0, rng)
            assert np.all(path > 0)

    def test_zero_volatility_is_deterministic_drift(self, seeded_rng):
        """With sigma = 0 each monthly step multiplies by exp(mu / 12)"""
        path = simulate_token_price_fluctuations(100.0, 0.12, 0.0, 13, 1.0, seeded_rng)
        expected = 100.0 * np.exp(0.01 * np.arange(13))
        np.testing.assert_allclose(path, expected, rtol=1e-12)

    def test_step_length_scales_drift(self, seeded_rng):
        path = simulate_token_price_fluctuations(100.0, 0.12, 0.0, 3, 6.0, seeded_rng)
        assert path[1] == pytest.approx(100.0 * math.exp(0.06))

    def test_overflow_raises(self, seeded_rng):
        with np.errstate(over="ignore"):
            with pytest.raises(NonFiniteResultError):
                simulate_token_price_fluctuations(1e300, 500.0, 0.0, 24, 12.0, seeded_rng)

    def test_underflow_to_zero_raises(self, seeded_rng):
        """A price that decays to 0.0 is rejected rather than returned"""
        with np.errstate(under="ignore"):
            with pytest.raises(NonFiniteResultError):
                simulate_token_price_fluctuations(1.0, -1000.0, 0.0, 24, 12.0, seeded_rng)

    def test_single_step_consumes_no_randomness(self, sequence_source):
        src = sequence_source([0.3])
        path = simulate_token_price_fluctuations(42.0, 0.1, 0.5, 1, 1.0, src)
        np.testing.assert_array_equal(path, [42.0])
        assert src.calls == 0

    def test_log_return_uses_box_muller(self, sequence_source):
        """One step from (u1, u2) = (0.25, 0.5)"""
        src = sequence_source([0.25, 0.5])
        path = simulate_token_price_fluctuations(10.0, 0.24, 0.6, 2, 1.0, src)
        dt = 1.0 / 12.0
        drift, vol = 0.24 * dt, 0.6 * math.sqrt(dt)
        z = math.sqrt(-2.0 * math.log(0.25)) * math.cos(math.pi)
        assert path[1] == pytest.approx(10.0 * math.exp(drift - 0.5 * vol * vol + vol * z))

    def test_reproducible(self):
        a = simulate_token_price_fluctuations(5.0, 0.1, 0.4, 24, 1.0, create_rng("path"))
        b = simulate_token_price_fluctuations(5.0, 0.1, 0.4, 24, 1.0, create_rng("path"))
        np.testing.assert_array_equal(a, b)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"initial_price": 0.0},
            {"initial_price": -1.0},
            {"annual_volatility": -0.1},
            {"steps": 0},
            {"step_length_in_months": 0.0},
            {"annual_drift": float("nan")},
        ],
    )
    def test_invalid_parameters(self, kwargs, seeded_rng):
        params = {
            "initial_price": 1.0,
            "annual_drift": 0.0,
            "annual_volatility": 0.2,
            "steps": 10,
            "step_length_in_months": 1.0,
        }
        params.update(kwargs)
        with pytest.raises(InvalidParameterError):
            simulate_token_price_fluctuations(rng=seeded_rng, **params)
