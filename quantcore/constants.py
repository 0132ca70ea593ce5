"""
quantcore/constants.py
----------------------
Indicator scoring tables shared by the indicator library and the signal
engine.

Placing these here keeps the signal engine's point arithmetic and the
explanatory reason strings aligned on a single source of truth.
"""

from __future__ import annotations

from quantcore.enums import SignalLabel


# ---------------------------------------------------------------------------
# Analysis windows
# ---------------------------------------------------------------------------

# Fewer prices than this and the aggregators report a neutral result.
MIN_ANALYSIS_PRICES: int = 50

RSI_PERIOD: int = 14
STOCHASTIC_PERIOD: int = 14
ADX_PERIOD: int = 14
CCI_PERIOD: int = 20
BOLLINGER_PERIOD: int = 20
BOLLINGER_STD_MULTIPLIER: float = 2.0
MOMENTUM_PERIOD: int = 10
MACD_FAST: int = 12
MACD_SLOW: int = 26
MACD_SIGNAL: int = 9

# Recent window used for the volatility confidence multiplier
VOLATILITY_WINDOW: int = 10

# Support / resistance percentiles and the short-series cut-off
SUPPORT_PERCENTILE: float = 0.25
RESISTANCE_PERCENTILE: float = 0.75
SUPPORT_RESISTANCE_MIN_PRICES: int = 20

# Pattern detectors look at the last PATTERN_WINDOW prices split in halves
PATTERN_WINDOW: int = 10
PATTERN_TOLERANCE: float = 0.03

# 12 moving averages voted on by the oscillator summary
MOVING_AVERAGE_PERIODS: tuple = (10, 20, 30, 50, 100, 200)


# ---------------------------------------------------------------------------
# Weighted recommendation: points per indicator category
# ---------------------------------------------------------------------------
# ``full``    awarded in the extreme zone (e.g. RSI < 30)
# ``partial`` awarded in the mild zone     (e.g. 30 <= RSI < 40)

RECOMMENDATION_WEIGHTS: dict[str, dict] = {
    "rsi":                {"full": 20, "partial": 10},
    "macd":               {"full": 20, "partial": 10},
    "bollinger":          {"full": 15, "partial": 8},
    "stochastic":         {"full": 15, "partial": 7},
    "moving_averages":    {"full": 15, "partial": 8},
    "ema_cross":          {"full": 10, "partial": 10},
    "support_resistance": {"full": 10, "partial": 10},
    "patterns":           {"full": 5,  "partial": 5},    # per detected pattern
    "momentum":           {"full": 5,  "partial": 5},
}

# Trend bands on ADX; above 50 and 25 amplify, below 20 dampens.
ADX_STRONG_TREND: float = 25.0
ADX_VERY_STRONG_TREND: float = 50.0
ADX_NO_TREND: float = 20.0
ADX_MULTIPLIERS: dict[str, float] = {
    "very_strong": 1.3,
    "strong":      1.15,
    "no_trend":    0.7,
}

# Recent volatility (std of % returns) → confidence multiplier
HIGH_VOLATILITY: float = 5.0
LOW_VOLATILITY: float = 2.0
HIGH_VOLATILITY_MULTIPLIER: float = 0.8
LOW_VOLATILITY_MULTIPLIER: float = 1.1

# Score bands for the final signal
STRONG_SIGNAL_SCORE: float = 40.0
SIGNAL_SCORE: float = 20.0
STRONG_CONFIDENCE_CAP: float = 95.0
CONFIDENCE_CAP: float = 80.0
STRONG_CONFIDENCE_BASE: float = 60.0
CONFIDENCE_BASE: float = 55.0
HOLD_CONFIDENCE_BASE: float = 50.0


# ---------------------------------------------------------------------------
# Oscillator summary: buy-vote ratio → label (first match wins)
# ---------------------------------------------------------------------------

SUMMARY_THRESHOLDS: tuple = (
    (0.75, SignalLabel.STRONG_BUY),
    (0.60, SignalLabel.BUY),
    (0.40, SignalLabel.NEUTRAL),
    (0.25, SignalLabel.SELL),
)
