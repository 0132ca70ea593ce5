"""
quantcore/signal_engine.py
--------------------------
Signal aggregator: turns an indicator snapshot into trading advice.

Two separately scored outputs
-----------------------------
* :func:`oscillator_summary` — vote count across six oscillators and twelve
  moving averages, classified by buy-vote ratio.
* :func:`recommend` — weighted point score per indicator category, scaled
  by trend strength, mapped to a graded :class:`Signal` with a confidence
  and the reasons behind it.

Design principles
-----------------
* **Deterministic** — same prices always produce the same signal.
* **Explainable** — every point added to the score carries a reason string;
  reasons are reported in order of absolute impact.
* **Graceful on short history** — fewer than ``MIN_ANALYSIS_PRICES`` prices
  yield a neutral result with zero confidence rather than an error.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import List, Optional, Tuple

import numpy as np

from quantcore.constants import (
    ADX_MULTIPLIERS,
    ADX_NO_TREND,
    ADX_STRONG_TREND,
    ADX_VERY_STRONG_TREND,
    CONFIDENCE_BASE,
    CONFIDENCE_CAP,
    HIGH_VOLATILITY,
    HIGH_VOLATILITY_MULTIPLIER,
    HOLD_CONFIDENCE_BASE,
    LOW_VOLATILITY,
    LOW_VOLATILITY_MULTIPLIER,
    MIN_ANALYSIS_PRICES,
    MOVING_AVERAGE_PERIODS,
    RECOMMENDATION_WEIGHTS,
    SIGNAL_SCORE,
    STRONG_CONFIDENCE_BASE,
    STRONG_CONFIDENCE_CAP,
    STRONG_SIGNAL_SCORE,
    SUMMARY_THRESHOLDS,
    VOLATILITY_WINDOW,
)
from quantcore.enums import MACDCrossover, SignalLabel, TrendStrength
from quantcore.indicators import compute_snapshot, volatility
from quantcore.models import IndicatorSnapshot, OscillatorSummary, Signal, VoteTally

logger = logging.getLogger(__name__)

# (points, reason); positive points are bullish
Contribution = Tuple[float, str]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ===========================================================================
# Oscillator summary
# ===========================================================================

def oscillator_summary(prices) -> OscillatorSummary:
    """
    Tally buy / sell / neutral votes and classify by buy ratio.

    RSI and Stochastic cast two votes in their extreme zones and one in
    their mild zones; MACD, Bollinger position, CCI and Momentum cast one.
    Each of the 12 moving averages (SMA and EMA at 10/20/30/50/100/200)
    votes buy when price is above it, sell when below.

    Classification by ``buy_votes / all_votes``::

        >= 0.75 STRONG BUY, >= 0.6 BUY, >= 0.4 NEUTRAL, >= 0.25 SELL,
        else STRONG SELL
    """
    p = np.asarray(prices, dtype=float).ravel()
    if p.size < MIN_ANALYSIS_PRICES:
        return OscillatorSummary(
            summary=SignalLabel.NEUTRAL,
            oscillators=VoteTally(),
            moving_averages=VoteTally(),
        )

    snap = compute_snapshot(p)
    oscillators = _oscillator_votes(snap)
    moving_averages = _moving_average_votes(snap)

    total = oscillators.total + moving_averages.total
    buy_ratio = (oscillators.buy + moving_averages.buy) / total if total else 0.0

    summary = SignalLabel.STRONG_SELL
    for threshold, label in SUMMARY_THRESHOLDS:
        if buy_ratio >= threshold:
            summary = label
            break

    return OscillatorSummary(
        summary=summary,
        oscillators=oscillators,
        moving_averages=moving_averages,
        buy_ratio=buy_ratio,
    )


def _graded_vote(value: float, strong_low: float, mild_low: float,
                 strong_high: float, mild_high: float) -> Tuple[int, int, int]:
    if value < strong_low:
        return 2, 0, 0
    if value < mild_low:
        return 1, 0, 0
    if value > strong_high:
        return 0, 2, 0
    if value > mild_high:
        return 0, 1, 0
    return 0, 0, 1


def _oscillator_votes(snap: IndicatorSnapshot) -> VoteTally:
    buy = sell = neutral = 0

    for b, s, n in (
        _graded_vote(snap.rsi, 30, 40, 70, 60),
        _graded_vote(snap.stochastic, 20, 40, 80, 60),
    ):
        buy, sell, neutral = buy + b, sell + s, neutral + n

    single_votes = (
        (snap.macd.histogram > 0, snap.macd.histogram < 0),
        (snap.bollinger_position < 0.2, snap.bollinger_position > 0.8),
        (snap.cci < -100, snap.cci > 100),
        (snap.momentum > 2, snap.momentum < -2),
    )
    for is_buy, is_sell in single_votes:
        if is_buy:
            buy += 1
        elif is_sell:
            sell += 1
        else:
            neutral += 1

    return VoteTally(buy=buy, sell=sell, neutral=neutral)


def _moving_average_votes(snap: IndicatorSnapshot) -> VoteTally:
    buy = sell = neutral = 0
    averages = [snap.sma[n] for n in MOVING_AVERAGE_PERIODS]
    averages += [snap.ema[n] for n in MOVING_AVERAGE_PERIODS]

    for average in averages:
        if snap.price > average:
            buy += 1
        elif snap.price < average:
            sell += 1
        else:
            neutral += 1
    return VoteTally(buy=buy, sell=sell, neutral=neutral)


# ===========================================================================
# Weighted recommendation
# ===========================================================================

def recommend(prices) -> Signal:
    """
    Weighted multi-indicator recommendation.

    Scoring (points, bullish positive)
    ----------------------------------
    ==================  =====  ==========================================
    category            full   graded rule
    ==================  =====  ==========================================
    RSI                 20     <30 full, <40 half, >70 −full, >60 −half
    MACD                20     crossover full, histogram sign half
    Bollinger           15     position <0.1 / <0.3 / >0.9 / >0.7
    Stochastic          15     <20 / <40 / >80 / >60
    Moving averages     15     price vs SMA20 vs SMA50
    EMA cross           10     EMA12 above / below EMA26
    Support/resistance  10     within 2% of support / resistance
    Patterns            5      per detected pattern
    Momentum            5      beyond ±5%
    ==================  =====  ==========================================

    The total is scaled by ADX (>50 ×1.3, >25 ×1.15, <20 ×0.7). A window
    with no directional movement has ADX 0, so a flat series is reported
    as "no clear trend" and its score is dampened ×0.7 like any weak
    trend. Confidence is scaled by the volatility of the last 10 prices
    (>5 ×0.8, <2 ×1.1).

    Mapping::

        score >=  40  STRONG BUY   confidence min(95, (60 + score/2) · v)
        score >=  20  BUY          confidence min(80, (55 + score/2) · v)
        score <= −40  STRONG SELL  (mirror)
        score <= −20  SELL         (mirror)
        otherwise     HOLD         confidence (50 − |score|) · v
    """
    p = np.asarray(prices, dtype=float).ravel()
    if p.size < MIN_ANALYSIS_PRICES:
        return Signal(
            label=SignalLabel.HOLD,
            confidence=0,
            score=0.0,
            reasons=(),
            summary="Insufficient data for analysis",
        )

    snap = compute_snapshot(p)
    contributions = _score_contributions(snap)

    raw_score = sum(points for points, _ in contributions)
    trend, multiplier = _trend_strength(snap.adx)
    score = raw_score * multiplier

    reasons = _rank_reasons(contributions)

    vol_multiplier = _volatility_multiplier(volatility(p[-VOLATILITY_WINDOW:]))
    label, confidence, summary = _classify(score, trend, reasons, vol_multiplier)

    logger.debug(
        "Recommendation score=%.2f (raw %.2f, adx %.1f) → %s @ %d%%",
        score, raw_score, snap.adx, label.value, confidence,
    )

    return Signal(
        label=label,
        confidence=confidence,
        score=score,
        reasons=reasons,
        summary=summary,
        trend=trend,
        snapshot=snap,
    )


def analyze(prices) -> Signal:
    """:func:`recommend` with the :func:`oscillator_summary` attached."""
    return replace(recommend(prices), oscillators=oscillator_summary(prices))


# ------------------------------------------------------------------ #
#  Category scorers
# ------------------------------------------------------------------ #

def _score_contributions(snap: IndicatorSnapshot) -> List[Contribution]:
    contributions: List[Contribution] = []
    for scorer in (
        _score_rsi,
        _score_macd,
        _score_bollinger,
        _score_stochastic,
        _score_moving_averages,
        _score_ema_cross,
        _score_support_resistance,
    ):
        result = scorer(snap)
        if result is not None:
            contributions.append(result)

    contributions.extend(_score_patterns(snap))

    momentum_result = _score_momentum(snap)
    if momentum_result is not None:
        contributions.append(momentum_result)
    return contributions


def _rank_reasons(contributions: List[Contribution]) -> Tuple[str, ...]:
    """Reasons by absolute impact, highest first; ties keep category order."""
    ordered = sorted(contributions, key=lambda c: abs(c[0]), reverse=True)
    return tuple(reason for _, reason in ordered)


def _weights(category: str) -> Tuple[float, float]:
    entry = RECOMMENDATION_WEIGHTS[category]
    return entry["full"], entry["partial"]


def _score_rsi(snap: IndicatorSnapshot) -> Optional[Contribution]:
    full, half = _weights("rsi")
    if snap.rsi < 30:
        return full, "RSI oversold (strong buy)"
    if snap.rsi < 40:
        return half, "RSI approaching oversold"
    if snap.rsi > 70:
        return -full, "RSI overbought (strong sell)"
    if snap.rsi > 60:
        return -half, "RSI approaching overbought"
    return None


def _score_macd(snap: IndicatorSnapshot) -> Optional[Contribution]:
    full, half = _weights("macd")
    histogram = snap.macd.histogram
    crossover = snap.macd.crossover
    if histogram > 0 and crossover is MACDCrossover.BULLISH:
        return full, "MACD bullish crossover"
    if histogram > 0:
        return half, "MACD positive momentum"
    if histogram < 0 and crossover is MACDCrossover.BEARISH:
        return -full, "MACD bearish crossover"
    if histogram < 0:
        return -half, "MACD negative momentum"
    return None


def _score_bollinger(snap: IndicatorSnapshot) -> Optional[Contribution]:
    full, half = _weights("bollinger")
    position = snap.bollinger_position
    if position < 0.1:
        return full, "Price at lower Bollinger Band"
    if position < 0.3:
        return half, "Price near lower band"
    if position > 0.9:
        return -full, "Price at upper Bollinger Band"
    if position > 0.7:
        return -half, "Price near upper band"
    return None


def _score_stochastic(snap: IndicatorSnapshot) -> Optional[Contribution]:
    full, half = _weights("stochastic")
    if snap.stochastic < 20:
        return full, "Stochastic oversold"
    if snap.stochastic < 40:
        return half, "Stochastic low"
    if snap.stochastic > 80:
        return -full, "Stochastic overbought"
    if snap.stochastic > 60:
        return -half, "Stochastic high"
    return None


def _score_moving_averages(snap: IndicatorSnapshot) -> Optional[Contribution]:
    full, half = _weights("moving_averages")
    price, sma20, sma50 = snap.price, snap.sma[20], snap.sma[50]
    if price > sma20 and sma20 > sma50:
        return full, "Strong uptrend (price > SMA20 > SMA50)"
    if price > sma20:
        return half, "Short-term bullish"
    if price < sma20 and sma20 < sma50:
        return -full, "Strong downtrend (price < SMA20 < SMA50)"
    if price < sma20:
        return -half, "Short-term bearish"
    return None


def _score_ema_cross(snap: IndicatorSnapshot) -> Contribution:
    full, _ = _weights("ema_cross")
    if snap.ema[12] > snap.ema[26]:
        return full, "EMA12 above EMA26 (bullish)"
    return -full, "EMA12 below EMA26 (bearish)"


def _score_support_resistance(snap: IndicatorSnapshot) -> Optional[Contribution]:
    full, _ = _weights("support_resistance")
    if snap.support > 0 and (snap.price - snap.support) / snap.support * 100 < 2:
        return full, "Price near support (bounce expected)"
    if snap.price > 0 and (snap.resistance - snap.price) / snap.price * 100 < 2:
        return -full, "Price near resistance (rejection expected)"
    return None


def _score_patterns(snap: IndicatorSnapshot) -> List[Contribution]:
    points, _ = _weights("patterns")
    scored: List[Contribution] = []
    for pattern in snap.patterns:
        if "bullish" in pattern:
            scored.append((points, pattern))
        elif "bearish" in pattern:
            scored.append((-points, pattern))
    return scored


def _score_momentum(snap: IndicatorSnapshot) -> Optional[Contribution]:
    points, _ = _weights("momentum")
    if snap.momentum > 5:
        return points, "Strong positive momentum"
    if snap.momentum < -5:
        return -points, "Strong negative momentum"
    return None


# ------------------------------------------------------------------ #
#  Modifiers and classification
# ------------------------------------------------------------------ #

def _trend_strength(adx_value: float) -> Tuple[TrendStrength, float]:
    if adx_value > ADX_VERY_STRONG_TREND:
        return TrendStrength.VERY_STRONG, ADX_MULTIPLIERS["very_strong"]
    if adx_value > ADX_STRONG_TREND:
        return TrendStrength.STRONG, ADX_MULTIPLIERS["strong"]
    if adx_value < ADX_NO_TREND:
        return TrendStrength.NO_TREND, ADX_MULTIPLIERS["no_trend"]
    return TrendStrength.WEAK, 1.0


def _volatility_multiplier(recent_volatility: float) -> float:
    if recent_volatility > HIGH_VOLATILITY:
        return HIGH_VOLATILITY_MULTIPLIER
    if recent_volatility < LOW_VOLATILITY:
        return LOW_VOLATILITY_MULTIPLIER
    return 1.0


def _classify(
    score: float,
    trend: TrendStrength,
    reasons: Tuple[str, ...],
    vol_multiplier: float,
) -> Tuple[SignalLabel, int, str]:
    shown = _round_half_up(score)
    magnitude = abs(score)

    if score >= STRONG_SIGNAL_SCORE:
        confidence = min(STRONG_CONFIDENCE_CAP, (STRONG_CONFIDENCE_BASE + score * 0.5) * vol_multiplier)
        summary = f"Strong buy ({trend.value} trend, score: {shown}): {', '.join(reasons[:3])}"
        label = SignalLabel.STRONG_BUY
    elif score >= SIGNAL_SCORE:
        confidence = min(CONFIDENCE_CAP, (CONFIDENCE_BASE + score * 0.5) * vol_multiplier)
        summary = f"Buy signal (score: {shown}): {', '.join(reasons[:2])}"
        label = SignalLabel.BUY
    elif score <= -STRONG_SIGNAL_SCORE:
        confidence = min(STRONG_CONFIDENCE_CAP, (STRONG_CONFIDENCE_BASE + magnitude * 0.5) * vol_multiplier)
        summary = f"Strong sell ({trend.value} trend, score: {shown}): {', '.join(reasons[:3])}"
        label = SignalLabel.STRONG_SELL
    elif score <= -SIGNAL_SCORE:
        confidence = min(CONFIDENCE_CAP, (CONFIDENCE_BASE + magnitude * 0.5) * vol_multiplier)
        summary = f"Sell signal (score: {shown}): {', '.join(reasons[:2])}"
        label = SignalLabel.SELL
    else:
        confidence = (HOLD_CONFIDENCE_BASE - magnitude) * vol_multiplier
        summary = f"Neutral (score: {shown}): {reasons[0] if reasons else 'Mixed signals'}"
        label = SignalLabel.HOLD

    return label, max(0, min(100, _round_half_up(confidence))), summary
