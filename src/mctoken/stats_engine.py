r"""
mctoken.stats_engine
====================
Risk and performance statistics over a simulated population.

This module defines:

- :class:`StatsContext`: explicit configuration shared by all metrics.
- :class:`FnMetric`: a frozen adapter that names a metric function.
- :class:`StatsEngine`: an orchestrator that evaluates one or more metrics.
- :func:`calculate_statistics`: the single aggregation point producing a
  :class:`~mctoken.results.SimulationResult`.

Percentiles
-----------
Percentiles are **nearest-rank** order statistics: for a sorted sample
:math:`x_{(0)} \le \dots \le x_{(n-1)}` the :math:`p`-quantile is
:math:`x_{(\lfloor p (n-1) \rfloor)}`. Unlike :func:`numpy.percentile` there
is no linear interpolation, so small samples report an observed value.

Tail risk
---------
With :math:`k = \lfloor n (1 - c) \rfloor`,

.. math::
   \mathrm{VaR}_c = -x_{(k)}, \qquad
   \mathrm{ES}_c = -\frac{1}{k}\sum_{i < k} x_{(i)}.

The product :math:`n(1 - c)` is rounded to nine decimals before flooring so
that, e.g., :math:`5 \cdot (1 - 0.8)` gives :math:`k = 1` instead of the
:math:`0.999\ldots` produced by binary floating point.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Callable, Generic, Iterable, Optional, Protocol, Sequence, TypeVar

import numpy as np

from .exceptions import (
    InsufficientSampleSizeError,
    InvalidParameterError,
    NonFiniteResultError,
    SimulationError,
)
from .results import Histogram, SimulationResult

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


DEFAULT_PERCENTILES = (0.01, 0.05, 0.1, 0.25, 0.5, 0.75, 0.9, 0.95, 0.99)
DEFAULT_BIN_COUNT = 20


@dataclass(slots=True)
class StatsContext:
    r"""
    Shared configuration for statistic computations.

    Attributes
    ----------
    percentiles : tuple of float, default :data:`DEFAULT_PERCENTILES`
        Quantile levels in :math:`[0, 1]` for :func:`percentiles`.
    bin_count : int, default 20
        Number of histogram bins.
    ddof : int, default 0
        Degrees of freedom for :func:`std` (0 => population std).

    Examples
    --------
    >>> ctx = StatsContext().with_overrides(bin_count=10)
    >>> ctx.bin_count
    10
    """

    percentiles: tuple[float, ...] = DEFAULT_PERCENTILES
    bin_count: int = DEFAULT_BIN_COUNT
    ddof: int = 0

    def with_overrides(self, **changes) -> "StatsContext":
        """Return a copy with selected fields replaced."""
        return replace(self, **changes)

    def __post_init__(self) -> None:
        self.percentiles = tuple(float(p) for p in self.percentiles)
        if any(not 0.0 <= p <= 1.0 for p in self.percentiles):
            raise InvalidParameterError("percentiles must be in [0,1]")
        _check_bin_count(self.bin_count)
        if self.ddof < 0:
            raise InvalidParameterError("ddof must be >= 0")


class Metric(Protocol):
    r"""
    Protocol for metric callables used by :class:`StatsEngine`.

    ``metric(x: numpy.ndarray, ctx: StatsContext) -> Any``
    """

    name: str

    def __call__(self, x: np.ndarray, ctx: StatsContext, /) -> Any: ...


T = TypeVar("T")


@dataclass(frozen=True)
class FnMetric(Generic[T]):
    r"""
    Bind a ``name`` to a metric function ``fn(x, ctx) -> T``.

    Examples
    --------
    >>> m = FnMetric("mean", lambda a, ctx: float(np.mean(a)))
    >>> m(np.array([1, 2, 3]), StatsContext())
    2.0
    """

    name: str
    fn: Callable[[np.ndarray, StatsContext], T]
    doc: str = ""

    def __call__(self, x: np.ndarray, ctx: StatsContext) -> T:
        return self.fn(x, ctx)


def _check_bin_count(bin_count) -> None:
    if isinstance(bin_count, bool) or not isinstance(bin_count, (int, np.integer)) or bin_count < 1:
        raise InvalidParameterError(f"bin_count must be a positive integer, got {bin_count!r}")


def _check_confidence(confidence_level: float) -> None:
    if not 0.0 < confidence_level < 1.0:
        raise InvalidParameterError(f"confidence_level must be in (0,1), got {confidence_level}")


def _floor_index(x: float) -> int:
    return int(math.floor(round(x, 9)))


def _clean(values: Any) -> np.ndarray:
    r"""
    Coerce ``values`` to a finite, non-empty 1-D float array.

    Raises
    ------
    InsufficientSampleSizeError
        If the population is empty.
    NonFiniteResultError
        If any value is ``NaN`` or infinite.
    """
    arr = np.asarray(values, dtype=float).ravel()
    if arr.size == 0:
        raise InsufficientSampleSizeError("population is empty")
    finite = np.isfinite(arr)
    if not finite.all():
        bad = int(np.flatnonzero(~finite)[0])
        raise NonFiniteResultError(f"population contains a non-finite value at index {bad}: {arr[bad]}")
    return arr


def _tail_index(n: int, confidence_level: float) -> int:
    _check_confidence(confidence_level)
    return min(_floor_index(n * (1.0 - confidence_level)), n - 1)


def percentile_label(p: float) -> str:
    """Label ``p`` as ``"p" + 100·p``, e.g. ``0.05 -> "p5"``, ``0.025 -> "p2.5"``."""
    scaled = round(p * 100.0, 9)
    if float(scaled).is_integer():
        return f"p{int(scaled)}"
    return f"p{scaled:g}"


def calculate_histogram(values: Any, bin_count: int = DEFAULT_BIN_COUNT) -> Histogram:
    r"""
    Equal-width histogram from ``min(values)``.

    Parameters
    ----------
    values : array_like
        Population.
    bin_count : int, default 20
        Number of bins.

    Returns
    -------
    Histogram
        ``bin_count + 1`` edges and ``bin_count`` counts summing to ``len(values)``.

    Notes
    -----
    A degenerate population (``max == min``) uses a range of 1, so the edges
    run from ``min`` to ``min + 1``. Each value goes to bin
    :math:`\lfloor (x - \min) / w \rfloor` clamped to the last bin; the maximum
    is always counted in the last bin.

    Examples
    --------
    >>> calculate_histogram([1, 1, 1, 1], bin_count=4).frequencies.tolist()
    [0, 0, 0, 4]
    """
    _check_bin_count(bin_count)
    arr = _clean(values)
    lo = float(arr.min())
    hi = float(arr.max())
    value_range = hi - lo if hi > lo else 1.0
    bin_width = value_range / bin_count
    if not (math.isfinite(value_range) and bin_width > 0):
        raise NonFiniteResultError(
            f"histogram range [{lo}, {hi}] with {bin_count} bins has no finite positive bin width"
        )

    bins = lo + np.arange(bin_count + 1) * bin_width
    idx = np.floor((arr - lo) / bin_width).astype(np.int64)
    np.minimum(idx, bin_count - 1, out=idx)
    idx[arr == hi] = bin_count - 1
    frequencies = np.bincount(idx, minlength=bin_count)
    return Histogram(bins=bins, frequencies=frequencies)


def calculate_var(values: Any, confidence_level: float) -> float:
    r"""
    Historical Value-at-Risk.

    Parameters
    ----------
    values : array_like
        Outcomes; negative values are losses.
    confidence_level : float
        Confidence :math:`c \in (0, 1)`.

    Returns
    -------
    float
        :math:`-x_{(k)}` with :math:`k = \lfloor n(1-c) \rfloor`.

    Examples
    --------
    >>> calculate_var([-10, -5, 0, 5, 10], 0.8)
    5.0
    """
    arr = np.sort(_clean(values))
    return float(-arr[_tail_index(arr.size, confidence_level)])


def calculate_expected_shortfall(values: Any, confidence_level: float) -> float:
    r"""
    Expected Shortfall (conditional VaR): minus the mean of the ``k`` worst outcomes.

    Raises
    ------
    InsufficientSampleSizeError
        If :math:`k = \lfloor n(1-c) \rfloor` is zero, i.e. the tail is empty.
    """
    arr = np.sort(_clean(values))
    k = _tail_index(arr.size, confidence_level)
    if k == 0:
        raise InsufficientSampleSizeError(
            f"expected shortfall at {confidence_level} needs at least "
            f"{math.ceil(1.0 / (1.0 - confidence_level))} values, got {arr.size}"
        )
    return float(-np.mean(arr[:k]))


def calculate_percentiles(
    values: Any,
    percentiles: Iterable[float] = DEFAULT_PERCENTILES,
) -> dict[str, float]:
    r"""
    Nearest-rank percentiles.

    Parameters
    ----------
    values : array_like
        Population.
    percentiles : iterable of float
        Levels in :math:`[0, 1]`.

    Returns
    -------
    dict[str, float]
        ``{percentile_label(p): x_(floor(p (n-1)))}`` in request order.

    Examples
    --------
    >>> calculate_percentiles([4, 1, 3, 2, 5], [0.25, 0.5])
    {'p25': 2.0, 'p50': 3.0}
    """
    arr = np.sort(_clean(values))
    out: dict[str, float] = {}
    for p in percentiles:
        if not 0.0 <= p <= 1.0:
            raise InvalidParameterError(f"percentile must be in [0,1], got {p}")
        out[percentile_label(p)] = float(arr[_floor_index(p * (arr.size - 1))])
    return out


def mean(x: np.ndarray, ctx: StatsContext) -> float:
    return float(np.mean(x))


def median(x: np.ndarray, ctx: StatsContext) -> float:
    return float(np.median(x))


def std(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Standard deviation with ``ctx.ddof`` (population by default).

    Returns ``0.0`` when fewer than ``ddof + 1`` values are available.
    """
    if x.size <= ctx.ddof:
        return 0.0
    return float(np.std(x, ddof=ctx.ddof))


def minimum(x: np.ndarray, ctx: StatsContext) -> float:
    return float(np.min(x))


def maximum(x: np.ndarray, ctx: StatsContext) -> float:
    return float(np.max(x))


def percentiles(x: np.ndarray, ctx: StatsContext) -> dict[str, float]:
    return calculate_percentiles(x, ctx.percentiles)


def histogram(x: np.ndarray, ctx: StatsContext) -> Histogram:
    return calculate_histogram(x, ctx.bin_count)


def value_at_risk(confidence_level: float) -> Callable[[np.ndarray, StatsContext], float]:
    """Build a VaR metric function at a fixed confidence level."""
    _check_confidence(confidence_level)

    def _metric(x: np.ndarray, ctx: StatsContext) -> float:
        return calculate_var(x, confidence_level)

    return _metric


def expected_shortfall(confidence_level: float) -> Callable[[np.ndarray, StatsContext], float]:
    """Build an Expected Shortfall metric function at a fixed confidence level."""
    _check_confidence(confidence_level)

    def _metric(x: np.ndarray, ctx: StatsContext) -> float:
        return calculate_expected_shortfall(x, confidence_level)

    return _metric


class StatsEngine:
    r"""
    Evaluate a set of metrics over a population.

    Parameters
    ----------
    metrics : iterable of Metric
        Callables with a ``name`` and signature ``metric(x, ctx)``.

    Notes
    -----
    The population is validated once (non-empty, finite) before any metric
    runs. A failing metric aborts the whole computation; the engine never
    returns a partial mapping.

    Examples
    --------
    >>> eng = StatsEngine([FnMetric("mean", mean), FnMetric("max", maximum)])
    >>> eng.compute(np.array([1., 2., 3.]))
    {'mean': 2.0, 'max': 3.0}
    """

    def __init__(self, metrics: Iterable[Metric]):
        self._metrics = list(metrics)

    def available(self) -> tuple[str, ...]:
        return tuple(m.name for m in self._metrics)

    def compute(
        self,
        x: Any,
        ctx: Optional[StatsContext] = None,
        select: Sequence[str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        r"""
        Evaluate the registered metrics on ``x``.

        Parameters
        ----------
        x : array_like
            Sample values.
        ctx : StatsContext, optional
            Context. If ``None`` one is built from ``**kwargs``.
        select : sequence of str, optional
            Compute only the metrics with these names.

        Returns
        -------
        dict
            Mapping from metric name to computed value.

        Raises
        ------
        InvalidParameterError
            If ``select`` names a metric the engine does not have.
        """
        if ctx is None:
            ctx = StatsContext(**kwargs)
        arr = _clean(x)

        if select is None:
            metrics_to_compute = self._metrics
        else:
            unknown = set(select) - set(self.available())
            if unknown:
                raise InvalidParameterError(f"Unknown metrics: {sorted(unknown)}")
            metrics_to_compute = [m for m in self._metrics if m.name in set(select)]

        out: dict[str, Any] = {}
        for m in metrics_to_compute:
            logger.debug(f"Computing metric {m.name} over {arr.size} values")
            try:
                out[m.name] = m(arr, ctx)
            except SimulationError:
                raise
            except Exception:
                logger.exception(f"Error computing metric {m.name}")
                raise
        return out


def build_default_engine() -> StatsEngine:
    """Engine producing every field of :class:`~mctoken.results.SimulationResult`."""
    metrics: list[Metric] = [
        FnMetric[float]("mean", mean, "Sample mean"),
        FnMetric[float]("median", median, "Sample median"),
        FnMetric[float]("min", minimum, "Smallest outcome"),
        FnMetric[float]("max", maximum, "Largest outcome"),
        FnMetric[float]("std", std, "Population standard deviation"),
        FnMetric[dict[str, float]]("percentiles", percentiles, "Nearest-rank percentiles"),
        FnMetric[float]("var_95", value_at_risk(0.95), "Value-at-Risk at 95%"),
        FnMetric[float]("var_99", value_at_risk(0.99), "Value-at-Risk at 99%"),
        FnMetric[float]("expected_shortfall_95", expected_shortfall(0.95), "Expected Shortfall at 95%"),
        FnMetric[Histogram]("histogram", histogram, "Equal-width histogram"),
    ]
    return StatsEngine(metrics)


DEFAULT_ENGINE = build_default_engine()


def calculate_statistics(
    values: Any,
    ctx: Optional[StatsContext] = None,
    engine: Optional[StatsEngine] = None,
) -> SimulationResult:
    r"""
    Reduce a population to a :class:`~mctoken.results.SimulationResult`.

    Parameters
    ----------
    values : array_like
        Outcomes in trial order.
    ctx : StatsContext, optional
        Percentile grid, bin count and ddof. Defaults to :class:`StatsContext()`.
    engine : StatsEngine, optional
        Must provide every result field; defaults to :data:`DEFAULT_ENGINE`.

    Raises
    ------
    InsufficientSampleSizeError
        For an empty population or one too small for a 95% Expected
        Shortfall tail (fewer than 20 values).
    NonFiniteResultError
        If the population contains ``NaN`` or ``inf``, or a summary statistic
        overflows (e.g. the mean of values near the float limits).
    """
    arr = _clean(values)
    stats = (engine or DEFAULT_ENGINE).compute(arr, ctx or StatsContext())
    for name, value in stats.items():
        if isinstance(value, (float, np.floating)) and not math.isfinite(value):
            raise NonFiniteResultError(f"statistic '{name}' is not finite: {value}")
    return SimulationResult(values=arr, **stats)


__all__ = [
    "DEFAULT_PERCENTILES",
    "DEFAULT_BIN_COUNT",
    "StatsContext",
    "Metric",
    "FnMetric",
    "StatsEngine",
    "percentile_label",
    "calculate_histogram",
    "calculate_var",
    "calculate_expected_shortfall",
    "calculate_percentiles",
    "calculate_statistics",
    "mean",
    "median",
    "std",
    "minimum",
    "maximum",
    "percentiles",
    "histogram",
    "value_at_risk",
    "expected_shortfall",
    "build_default_engine",
    "DEFAULT_ENGINE",
]
