from enum import Enum


class Action(Enum):
    """Trade direction emitted by the rebalancers and the signal engine."""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class SignalLabel(Enum):
    """Graded recommendation, strongest buy to strongest sell."""
    STRONG_BUY = "STRONG BUY"
    BUY = "BUY"
    NEUTRAL = "NEUTRAL"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG SELL"

    @property
    def action(self) -> Action:
        """Collapse the grade to a plain BUY / SELL / HOLD."""
        if self in (SignalLabel.STRONG_BUY, SignalLabel.BUY):
            return Action.BUY
        if self in (SignalLabel.STRONG_SELL, SignalLabel.SELL):
            return Action.SELL
        return Action.HOLD


class MACDCrossover(Enum):
    """Histogram sign change between the last two MACD points."""
    BULLISH = "bullish_crossover"
    BEARISH = "bearish_crossover"
    NEUTRAL = "neutral"


class TrendStrength(Enum):
    """ADX-derived trend classification."""
    VERY_STRONG = "very strong"   # ADX > 50
    STRONG = "strong"             # ADX > 25
    WEAK = "weak"                 # 20 <= ADX <= 25
    NO_TREND = "no clear trend"   # ADX < 20
