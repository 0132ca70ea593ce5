"""
quantcore/indicators.py
-----------------------
Technical indicator library.

Every indicator is a free function over an ordered price sequence (list,
tuple, ``np.ndarray`` or ``pd.Series``; oldest first). Functions that need
a minimum window return a documented neutral value on shorter input
instead of raising, so the signal engine stays usable on short histories:

=====================  ==========  ==============================
function               minimum     returned when shorter
=====================  ==========  ==============================
sma                    1           mean of available prices
ema                    period      last price
rsi                    period + 1  50
macd                   26          zero line, neutral crossover
bollinger_bands        1           bands over available prices
stochastic             period      50
cci                    period      0
adx                    period + 1  20
momentum               period      0
volatility             2           0
support_resistance     20          (min, max)
detect_patterns        10          []
=====================  ==========  ==============================

An empty sequence is malformed input and raises :class:`EmptyInputError`
wherever a value has to be read from it.

CCI and ADX are the simplified close-only variants: CCI uses the price
itself as the typical price, and ADX is a mean/max absolute-change ratio
rather than Wilder's directional-movement index.
"""

from __future__ import annotations

import math
from typing import Dict, List, Tuple

import numpy as np

from quantcore.constants import (
    ADX_PERIOD,
    BOLLINGER_PERIOD,
    BOLLINGER_STD_MULTIPLIER,
    CCI_PERIOD,
    MACD_FAST,
    MACD_SIGNAL,
    MACD_SLOW,
    MOMENTUM_PERIOD,
    MOVING_AVERAGE_PERIODS,
    PATTERN_TOLERANCE,
    PATTERN_WINDOW,
    RESISTANCE_PERCENTILE,
    RSI_PERIOD,
    STOCHASTIC_PERIOD,
    SUPPORT_PERCENTILE,
    SUPPORT_RESISTANCE_MIN_PRICES,
)
from quantcore.enums import MACDCrossover
from quantcore.exceptions import EmptyInputError
from quantcore.models import BollingerBands, IndicatorSnapshot, MACDResult
from quantcore.statistics import mean, stddev

NEUTRAL_RSI = 50.0
NEUTRAL_STOCHASTIC = 50.0
NEUTRAL_ADX = 20.0


def _prices(prices) -> np.ndarray:
    return np.asarray(prices, dtype=float).ravel()


def _require(values: np.ndarray, name: str) -> None:
    if values.size == 0:
        raise EmptyInputError(f"{name} needs at least one price.")


def _check_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"Indicator period must be at least 1 (got {period}).")


# ---------------------------------------------------------------------------
# Moving averages
# ---------------------------------------------------------------------------

def sma(prices, period: int) -> float:
    """Mean of the last *period* prices (all of them when fewer)."""
    _check_period(period)
    p = _prices(prices)
    _require(p, "SMA")
    return mean(p[-period:])


def ema(prices, period: int) -> float:
    """
    Exponential moving average.

    Seeded with the SMA of the first *period* prices, then smoothed forward
    with ``k = 2 / (period + 1)``. Returns the last price when fewer than
    *period* prices are available.
    """
    series = ema_series(prices, period)
    if not series:
        p = _prices(prices)
        _require(p, "EMA")
        return float(p[-1])
    return series[-1]


def ema_series(prices, period: int) -> List[float]:
    """
    EMA of every prefix from length *period* onward.

    ``ema_series(p, n)[j] == ema(p[:n + j], n)`` — each value is produced by
    the same seed-then-smooth recurrence as :func:`ema`, so the results are
    identical to recomputing every prefix from scratch.
    """
    _check_period(period)
    p = _prices(prices)
    if p.size < period:
        return []

    k = 2 / (period + 1)
    value = mean(p[:period])
    series = [value]
    for price in p[period:]:
        value = (price - value) * k + value
        series.append(float(value))
    return series


# ---------------------------------------------------------------------------
# Oscillators
# ---------------------------------------------------------------------------

def rsi(prices, period: int = RSI_PERIOD) -> float:
    """
    Relative Strength Index with Wilder smoothing.

    The first *period* gains/losses are averaged with a simple mean; every
    later one is folded in as ``avg = (avg · (period − 1) + new) / period``.

    Returns 100 when the average loss is zero, 50 with fewer than
    ``period + 1`` prices.
    """
    _check_period(period)
    p = _prices(prices)
    if p.size < period + 1:
        return NEUTRAL_RSI

    changes = np.diff(p)
    gains = np.where(changes > 0, changes, 0.0)
    losses = np.where(changes < 0, -changes, 0.0)

    avg_gain = float(gains[:period].sum() / period)
    avg_loss = float(losses[:period].sum() / period)

    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return float(100.0 - (100.0 / (1.0 + rs)))


def macd(prices) -> MACDResult:
    """
    MACD (12/26) with a 9-period signal line.

    The signal line is the 9-EMA of the MACD-line history, where each
    historical point is the MACD of the prefix ending at index 26 onward.
    The crossover compares the current histogram with the previous MACD
    point measured against the same signal line.
    """
    p = _prices(prices)
    if p.size < MACD_SLOW:
        return MACDResult(macd=0.0, signal_line=0.0, histogram=0.0)

    fast = ema_series(p, MACD_FAST)
    slow = ema_series(p, MACD_SLOW)
    macd_line = fast[-1] - slow[-1]

    # Prefix lengths MACD_SLOW + 1 .. n
    history = [
        fast[length - MACD_FAST] - slow[length - MACD_SLOW]
        for length in range(MACD_SLOW + 1, p.size + 1)
    ]

    signal_line = ema(history, MACD_SIGNAL) if len(history) >= MACD_SIGNAL else macd_line
    histogram = macd_line - signal_line

    crossover = MACDCrossover.NEUTRAL
    if len(history) >= 2:
        previous = history[-2] - signal_line
        if histogram > 0 and previous <= 0:
            crossover = MACDCrossover.BULLISH
        elif histogram < 0 and previous >= 0:
            crossover = MACDCrossover.BEARISH

    return MACDResult(
        macd=macd_line,
        signal_line=signal_line,
        histogram=histogram,
        crossover=crossover,
    )


def bollinger_bands(
    prices,
    period: int = BOLLINGER_PERIOD,
    std_multiplier: float = BOLLINGER_STD_MULTIPLIER,
) -> BollingerBands:
    """SMA ± *std_multiplier* population standard deviations of the window."""
    _check_period(period)
    p = _prices(prices)
    _require(p, "Bollinger Bands")

    window = p[-period:]
    middle = mean(window)
    width = stddev(window) * std_multiplier
    return BollingerBands(upper=middle + width, middle=middle, lower=middle - width)


def bollinger_position(price: float, bands: BollingerBands) -> float:
    """Where *price* sits inside the bands: 0 = lower, 1 = upper; 0.5 if flat."""
    if bands.width == 0:
        return 0.5
    return (price - bands.lower) / bands.width


def stochastic(prices, period: int = STOCHASTIC_PERIOD) -> float:
    """%K over the last *period* prices; 50 when short or flat."""
    _check_period(period)
    p = _prices(prices)
    if p.size < period:
        return NEUTRAL_STOCHASTIC

    window = p[-period:]
    lowest = float(window.min())
    highest = float(window.max())
    if highest == lowest:
        return NEUTRAL_STOCHASTIC
    return (float(p[-1]) - lowest) / (highest - lowest) * 100.0


def cci(prices, period: int = CCI_PERIOD) -> float:
    """
    Commodity Channel Index on closing prices::

        (last − SMA) / (0.015 · mean absolute deviation)

    0 when short or when the window has no deviation.
    """
    _check_period(period)
    p = _prices(prices)
    if p.size < period:
        return 0.0

    window = p[-period:]
    average = mean(window)
    mean_deviation = float(np.abs(window - average).sum() / period)
    if mean_deviation == 0:
        return 0.0
    return (float(window[-1]) - average) / (0.015 * mean_deviation)


def adx(prices, period: int = ADX_PERIOD) -> float:
    """
    Trend-strength proxy: mean absolute change over max absolute change of
    the last *period* moves, as a percentage capped at 100.

    20 when short; 0 when the window did not move at all.
    """
    _check_period(period)
    p = _prices(prices)
    if p.size < period + 1:
        return NEUTRAL_ADX

    recent = np.abs(np.diff(p))[-period:]
    largest = float(recent.max())
    if largest == 0:
        return 0.0
    average = float(recent.sum() / period)
    return min(100.0, average / largest * 100.0)


def momentum(prices, period: int = MOMENTUM_PERIOD) -> float:
    """Percent change from ``prices[-period]`` to the last price; 0 when short."""
    _check_period(period)
    p = _prices(prices)
    if p.size < period:
        return 0.0

    old = float(p[-period])
    if old == 0:
        return 0.0
    return (float(p[-1]) - old) / old * 100.0


def volatility(prices) -> float:
    """Population std of period-over-period percentage returns; 0 when short."""
    p = _prices(prices)
    if p.size < 2:
        return 0.0
    if np.any(p[:-1] == 0):
        raise ValueError("Volatility is undefined for a zero price.")

    returns = np.diff(p) / p[:-1] * 100.0
    return stddev(returns)


# ---------------------------------------------------------------------------
# Levels and patterns
# ---------------------------------------------------------------------------

def support_resistance(prices) -> Tuple[float, float]:
    """
    ``(support, resistance)`` as the 25th / 75th percentile of the sorted
    series; the plain min / max with fewer than 20 prices.
    """
    p = _prices(prices)
    _require(p, "Support/resistance")

    if p.size < SUPPORT_RESISTANCE_MIN_PRICES:
        return float(p.min()), float(p.max())

    ordered = np.sort(p)
    support = float(ordered[math.floor(p.size * SUPPORT_PERCENTILE)])
    resistance = float(ordered[math.floor(p.size * RESISTANCE_PERCENTILE)])
    return support, resistance


def detect_patterns(prices) -> List[str]:
    """
    Price-action patterns over the last 10 prices.

    * Double bottom / top — the two 5-price halves have minima / maxima
      within 3% of each other.
    * Higher lows / lower highs — every other price (indices 0, 2, 4, 6, 8)
      strictly rises / falls.

    Names carry ``(bullish)`` or ``(bearish)`` so the signal engine can
    score them.
    """
    p = _prices(prices)
    if p.size < PATTERN_WINDOW:
        return []

    recent = p[-PATTERN_WINDOW:]
    half = PATTERN_WINDOW // 2
    patterns: List[str] = []

    min1, min2 = float(recent[:half].min()), float(recent[half:].min())
    if min1 != 0 and abs(min1 - min2) / min1 < PATTERN_TOLERANCE:
        patterns.append("Double bottom (bullish)")

    max1, max2 = float(recent[:half].max()), float(recent[half:].max())
    if max1 != 0 and abs(max1 - max2) / max1 < PATTERN_TOLERANCE:
        patterns.append("Double top (bearish)")

    pivots = recent[::2]
    if all(b > a for a, b in zip(pivots, pivots[1:])):
        patterns.append("Higher lows (bullish)")
    if all(b < a for a, b in zip(pivots, pivots[1:])):
        patterns.append("Lower highs (bearish)")

    return patterns


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

def compute_snapshot(prices) -> IndicatorSnapshot:
    """Evaluate every indicator the signal engine reads on one series."""
    p = _prices(prices)
    _require(p, "Indicator snapshot")

    price = float(p[-1])
    bands = bollinger_bands(p)
    support, resistance = support_resistance(p)

    sma_values: Dict[int, float] = {n: sma(p, n) for n in MOVING_AVERAGE_PERIODS}
    ema_values: Dict[int, float] = {n: ema(p, n) for n in MOVING_AVERAGE_PERIODS}
    for n in (MACD_FAST, MACD_SLOW):
        ema_values[n] = ema(p, n)

    return IndicatorSnapshot(
        price=price,
        rsi=rsi(p),
        macd=macd(p),
        bollinger=bands,
        bollinger_position=bollinger_position(price, bands),
        stochastic=stochastic(p),
        adx=adx(p),
        cci=cci(p),
        momentum=momentum(p),
        volatility=volatility(p),
        support=support,
        resistance=resistance,
        sma=sma_values,
        ema=ema_values,
        patterns=tuple(detect_patterns(p)),
    )
