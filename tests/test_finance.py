import numpy as np
import pytest

from mctoken.exceptions import InvalidParameterError
from mctoken.finance import (
    calculate_discounted_payback_period,
    calculate_enhanced_npv,
    calculate_irr,
    calculate_mirr,
    calculate_moic,
    calculate_npv,
    calculate_payback_period,
    calculate_wacc,
)


def _bullet(principal, payoff, months):
    flows = np.zeros(months + 1)
    flows[0] = -principal
    flows[-1] = payoff
    return flows


class TestIRR:
    """Test Newton IRR on monthly flows"""

    @pytest.mark.parametrize(
        ("payoff", "months", "expected"),
        [(110.0, 12, 0.10), (120.0, 12, 0.20), (121.0, 24, 0.10), (90.0, 12, -0.10)],
    )
    def test_bullet_flows(self, payoff, months, expected):
        assert calculate_irr(_bullet(100.0, payoff, months)) == pytest.approx(expected, abs=1e-6)

    def test_npv_is_zero_at_irr(self):
        flows = np.concatenate([[-60.0], np.full(60, 1.4)])
        flows[-1] += 6.5
        rate = calculate_irr(flows)
        assert calculate_npv(flows, rate) == pytest.approx(0.0, abs=1e-6)

    def test_empty_flows(self):
        with pytest.raises(InvalidParameterError):
            calculate_irr([])


class TestNPV:
    """Test discounting helpers"""

    def test_zero_rate_is_sum(self):
        assert calculate_npv([-100.0, 30.0, 40.0, 50.0], 0.0) == pytest.approx(20.0)

    def test_annual_rate_on_monthly_flows(self):
        assert calculate_npv(_bullet(0.0, 110.0, 12), 0.10) == pytest.approx(100.0)

    def test_enhanced_matches_flat_rate(self):
        flows = [-100.0, 20.0, 30.0, 40.0, 50.0]
        assert calculate_enhanced_npv(flows, [0.08]) == pytest.approx(calculate_npv(flows, 0.08))

    def test_enhanced_per_period_rates(self):
        flows = _bullet(0.0, 121.0, 24)
        rates = [0.0] * 24 + [0.10]
        assert calculate_enhanced_npv(flows, rates) == pytest.approx(100.0)

    def test_enhanced_requires_rates(self):
        with pytest.raises(InvalidParameterError):
            calculate_enhanced_npv([1.0], [])


class TestMIRR:
    """Test modified IRR"""

    def test_bullet(self):
        assert calculate_mirr(_bullet(100.0, 121.0, 24), 0.05, 0.08) == pytest.approx(0.10)

    def test_reinvestment_raises_mirr(self):
        flows = np.concatenate([[-100.0], np.full(24, 5.0)])
        assert calculate_mirr(flows, 0.05, 0.10) > calculate_mirr(flows, 0.05, 0.0)

    def test_requires_outflow(self):
        with pytest.raises(InvalidParameterError, match="negative"):
            calculate_mirr([10.0, 10.0], 0.05, 0.05)


class TestPaybackAndRatios:
    """Test payback periods, WACC and MOIC"""

    def test_wacc(self):
        assert calculate_wacc(0.6, 0.10, 0.4, 0.05, 0.25) == pytest.approx(0.075)

    @pytest.mark.parametrize(
        ("cumulative", "expected"),
        [([-100.0, -50.0, 0.0, 50.0], 2.0), ([-100.0, -40.0, 20.0], 1.0 + 40.0 / 60.0),
         ([-10.0, -5.0], -1.0), ([5.0, 10.0], -1.0)],
    )
    def test_payback_period(self, cumulative, expected):
        assert calculate_payback_period(cumulative) == pytest.approx(expected)

    def test_discounted_payback_zero_rate(self):
        assert calculate_discounted_payback_period([-100.0, 50.0, 50.0, 50.0], 0.0) == pytest.approx(2.0)

    def test_discounted_payback_not_reached(self):
        assert calculate_discounted_payback_period([-100.0, 10.0], 0.1) == -1.0

    def test_discounted_payback_immediate(self):
        assert calculate_discounted_payback_period([5.0, 1.0], 0.1) == 0.0

    def test_discounting_delays_payback(self):
        flows = [-100.0] + [10.0] * 24
        assert calculate_discounted_payback_period(flows, 0.2) > calculate_discounted_payback_period(flows, 0.0)

    def test_moic(self):
        assert calculate_moic(150.0, 100.0) == pytest.approx(1.5)
        with pytest.raises(InvalidParameterError):
            calculate_moic(1.0, 0.0)
