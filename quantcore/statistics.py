"""
quantcore/statistics.py
-----------------------
Statistics kernel: mean, covariance and standard deviation primitives
used by the optimizer and the indicator library, plus helpers that turn
price history into return series.

Design contract:
  - Pure functions, no state
  - Malformed input (empty, mismatched lengths) fails fast, never NaN
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from quantcore.exceptions import EmptyInputError, InsufficientDataError


def _as_array(series) -> np.ndarray:
    return np.asarray(series, dtype=float).ravel()


def mean(series: Sequence[float]) -> float:
    """
    Arithmetic mean.

    Raises
    ------
    EmptyInputError
        If *series* has no elements.
    """
    values = _as_array(series)
    if values.size == 0:
        raise EmptyInputError("Cannot compute the mean of an empty series.")
    return float(values.sum() / values.size)


def covariance(
    x: Sequence[float],
    y: Sequence[float],
    mean_x: Optional[float] = None,
    mean_y: Optional[float] = None,
) -> float:
    """
    Sample covariance with Bessel's correction::

        cov(x, y) = Σ (xᵢ - x̄)(yᵢ - ȳ) / (n - 1)

    Pre-computed means may be passed to avoid recomputing them when a
    whole covariance matrix is built.

    Raises
    ------
    InsufficientDataError
        If the series differ in length or hold fewer than two points.
    """
    xs = _as_array(x)
    ys = _as_array(y)

    if xs.size != ys.size:
        raise InsufficientDataError(
            f"Covariance needs equal-length series (got {xs.size} and {ys.size})."
        )
    if xs.size < 2:
        raise InsufficientDataError(
            f"Covariance needs at least 2 observations (got {xs.size})."
        )

    mx = mean(xs) if mean_x is None else mean_x
    my = mean(ys) if mean_y is None else mean_y
    return float(((xs - mx) * (ys - my)).sum() / (xs.size - 1))


def stddev(series: Sequence[float], ddof: int = 0) -> float:
    """
    Standard deviation.

    ``ddof=0`` (default) gives the population figure used by the Bollinger
    and volatility indicators; ``ddof=1`` gives the sample estimate.
    """
    values = _as_array(series)
    if values.size == 0:
        raise EmptyInputError("Cannot compute the standard deviation of an empty series.")
    if values.size <= ddof:
        raise InsufficientDataError(
            f"Standard deviation with ddof={ddof} needs more than {ddof} point(s)."
        )
    m = mean(values)
    variance = float(((values - m) ** 2).sum() / (values.size - ddof))
    return math.sqrt(variance)


def covariance_matrix(series_list: Sequence[Sequence[float]]) -> np.ndarray:
    """
    Full N×N sample covariance matrix.

    ``cov[i][j]`` is the covariance of series *i* and *j*; the diagonal holds
    the per-series variances. The matrix is filled symmetrically so it is
    exactly symmetric regardless of floating-point ordering.
    """
    if len(series_list) == 0:
        raise EmptyInputError("Cannot build a covariance matrix from zero series.")

    arrays = [_as_array(s) for s in series_list]
    means = [mean(a) for a in arrays]
    n = len(arrays)

    cov = np.zeros((n, n), dtype=float)
    for i in range(n):
        for j in range(i, n):
            value = covariance(arrays[i], arrays[j], means[i], means[j])
            cov[i, j] = value
            cov[j, i] = value
    return cov


# ---------------------------------------------------------------------------
# Price history → returns
# ---------------------------------------------------------------------------

def simple_returns(prices) -> List[float]:
    """
    Period-over-period fractional returns ``(pₜ - pₜ₋₁) / pₜ₋₁``.

    Accepts a list, ndarray or ``pd.Series`` (timestamps in the index are
    ignored; order is taken as chronological).

    Raises
    ------
    InsufficientDataError
        If fewer than two prices are supplied.
    ValueError
        If any price used as a divisor is zero or negative.
    """
    series = pd.Series(prices, dtype=float).dropna().reset_index(drop=True)
    if len(series) < 2:
        raise InsufficientDataError(
            f"At least 2 prices are required to compute returns (got {len(series)})."
        )
    if (series.iloc[:-1] <= 0).any():
        raise ValueError("Prices must be positive to compute returns.")

    return series.pct_change().dropna().tolist()


def returns_frame(prices: pd.DataFrame) -> pd.DataFrame:
    """
    Column-wise simple returns for a price DataFrame
    (index = timestamps, columns = symbols).

    Rows are sorted by index first so an unsorted feed still yields a
    chronological series. Rows with any missing price are dropped so every
    column keeps the same length, which the covariance matrix requires.
    """
    if prices.empty:
        raise EmptyInputError("Price frame is empty.")

    ordered = prices.sort_index().astype(float).dropna(how="any")
    if len(ordered) < 2:
        raise InsufficientDataError(
            f"At least 2 complete price rows are required (got {len(ordered)})."
        )
    if (ordered.iloc[:-1] <= 0).any().any():
        raise ValueError("Prices must be positive to compute returns.")

    return ordered.pct_change().iloc[1:]
