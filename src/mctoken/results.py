r"""
mctoken.results
===============

Immutable containers produced by a simulation run.

* :class:`Histogram` – bin edges plus per-bin counts.
* :class:`SimulationResult` – the outcome population and its summary statistics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

import numpy as np

__all__ = ["Histogram", "SimulationResult"]


def _frozen_array(values: Any, dtype=float) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class Histogram:
    r"""
    Equal-width histogram of a population.

    Attributes
    ----------
    bins : ndarray of float
        ``bin_count + 1`` non-decreasing bin edges.
    frequencies : ndarray of int
        ``bin_count`` counts; they sum to the population size.
    """

    bins: np.ndarray
    frequencies: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "bins", _frozen_array(self.bins))
        object.__setattr__(self, "frequencies", _frozen_array(self.frequencies, dtype=np.int64))

    @property
    def bin_count(self) -> int:
        return int(self.frequencies.size)

    def to_dict(self) -> dict[str, list]:
        return {"bins": self.bins.tolist(), "frequencies": self.frequencies.tolist()}


@dataclass(frozen=True, eq=False)
class SimulationResult:
    r"""
    Outcome of a Monte Carlo run.

    The object is never mutated after construction: :attr:`values` is a
    read-only array and :attr:`percentiles` a read-only mapping.

    Attributes
    ----------
    values : ndarray of float
        Trial outcomes in trial order.
    mean, median, min, max : float
        Summary statistics of :attr:`values`.
    std : float
        Population standard deviation (``ddof=0``).
    percentiles : mapping of str to float
        Nearest-rank percentiles keyed by label, e.g. ``{"p5": ..., "p95": ...}``.
    var_95, var_99 : float
        Value-at-Risk at 95% and 99% confidence (losses are positive).
    expected_shortfall_95 : float
        Mean loss in the 5% tail.
    histogram : Histogram
        Equal-width histogram of :attr:`values`.
    execution_time : float
        Wall-clock seconds spent producing the result (``0.0`` when the result
        was reduced from an existing population).
    metadata : mapping
        Freeform metadata such as ``"simulation_name"`` and ``"seed"``.
    """

    values: np.ndarray
    mean: float
    median: float
    min: float
    max: float
    std: float
    percentiles: Mapping[str, float]
    var_95: float
    var_99: float
    expected_shortfall_95: float
    histogram: Histogram
    execution_time: float = 0.0
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", _frozen_array(self.values))
        object.__setattr__(self, "percentiles", MappingProxyType(dict(self.percentiles)))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def n_simulations(self) -> int:
        return int(self.values.size)

    def to_dict(self) -> dict[str, Any]:
        """Plain-Python view of the result for exporters and dashboards."""
        return {
            "values": self.values.tolist(),
            "mean": self.mean,
            "median": self.median,
            "min": self.min,
            "max": self.max,
            "std": self.std,
            "percentiles": dict(self.percentiles),
            "var_95": self.var_95,
            "var_99": self.var_99,
            "expected_shortfall_95": self.expected_shortfall_95,
            "histogram": self.histogram.to_dict(),
            "n_simulations": self.n_simulations,
            "execution_time": self.execution_time,
            "metadata": dict(self.metadata),
        }

    def result_to_string(self) -> str:
        r"""
        Human-readable multi-line summary.

        Returns
        -------
        str
            Summary with the mean, spread, percentiles and tail-risk measures.
        """
        if simulation_name := self.metadata.get("simulation_name"):
            title = f"Results for simulation '{simulation_name}':"
        else:
            title = "Results for simulation:"
        lines = [
            "=" * 20 + " SIM RESULTS " + "=" * 20,
            title,
            f"  Number of simulations: {self.n_simulations}",
            f"  Execution time: {self.execution_time:.2f} seconds",
            f"  Mean: {self.mean:.5f}   Median: {self.median:.5f}",
            f"  Std Dev (population): {self.std:.5f}",
            f"  Range: [{self.min:.5f}, {self.max:.5f}]",
            "  Percentiles:",
        ]
        for label, value in self.percentiles.items():
            lines.append(f"    {label}: {value:.5f}")
        lines.extend(
            [
                f"  VaR 95%: {self.var_95:.5f}",
                f"  VaR 99%: {self.var_99:.5f}",
                f"  Expected Shortfall 95%: {self.expected_shortfall_95:.5f}",
            ]
        )
        if self.metadata:
            lines.append("Metadata:")
        for k, v in self.metadata.items():
            lines.append(f"    {k}: {v}")
        lines.append("=" * 20 + " END " + "=" * 20)
        return "\n".join(lines)
