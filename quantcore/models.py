"""
quantcore/models.py
-------------------
Immutable value objects passed between the engines.

Nothing here is persisted or cached: every object is built by the call
that returns it and owned by the caller afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from quantcore.enums import Action, MACDCrossover, SignalLabel, TrendStrength
from quantcore.exceptions import DegenerateOptimizationError


# ---------------------------------------------------------------------------
# Optimizer input / output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AssetSeries:
    """One asset's chronological return series plus its current weight."""
    symbol: str
    returns: Tuple[float, ...]
    current_weight: float = 0.0
    target_weight: Optional[float] = None

    def __post_init__(self):
        # Accept any iterable (list, ndarray, Series) but store a tuple
        object.__setattr__(self, "returns", tuple(float(r) for r in self.returns))


@dataclass(frozen=True)
class OptimizationOutcome:
    """
    Result of a mean-variance optimisation.

    ``sharpe_ratio`` is ``None`` when the optimised portfolio has zero
    risk; use :meth:`require_sharpe` where an undefined ratio is an error.
    """
    weights: Dict[str, float]
    expected_return: float
    risk: float
    sharpe_ratio: Optional[float]
    iterations: int = 0
    converged: bool = False

    def require_sharpe(self) -> float:
        if self.sharpe_ratio is None:
            raise DegenerateOptimizationError(
                "Portfolio risk is zero; the Sharpe Ratio is undefined."
            )
        return self.sharpe_ratio


# ---------------------------------------------------------------------------
# Positions and rebalancing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Position:
    """A holding in the book. ``current_price`` is ``None`` until quoted."""
    symbol: str
    quantity: float
    avg_buy_price: float
    current_price: Optional[float] = None
    current_weight: float = 0.0

    @property
    def price(self) -> float:
        """Live price when known, otherwise the average buy price."""
        return self.current_price or self.avg_buy_price or 0.0

    @property
    def market_value(self) -> float:
        return self.quantity * self.price

    def with_weight(self, weight: float) -> "Position":
        return replace(self, current_weight=weight)


@dataclass(frozen=True)
class RebalanceAction:
    """One line of a portfolio-wide rebalance."""
    symbol: str
    current_weight: float
    target_weight: float
    action: Action
    magnitude: float              # weight points, always >= 0
    dollar_amount: float = 0.0
    shares: float = 0.0
    price: float = 0.0


@dataclass(frozen=True)
class RebalanceDecision:
    """Single-position advice from a rebalancing heuristic."""
    action: Action
    shares: float
    amount: float                 # notional traded
    label: str                    # e.g. "40%", "$200", "0%"
    reason: str


# ---------------------------------------------------------------------------
# Indicators and signals
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MACDResult:
    macd: float
    signal_line: float
    histogram: float
    crossover: MACDCrossover = MACDCrossover.NEUTRAL


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float

    @property
    def width(self) -> float:
        return self.upper - self.lower


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Every indicator the aggregators read, computed from one price series."""
    price: float
    rsi: float
    macd: MACDResult
    bollinger: BollingerBands
    bollinger_position: float
    stochastic: float
    adx: float
    cci: float
    momentum: float
    volatility: float
    support: float
    resistance: float
    sma: Dict[int, float] = field(default_factory=dict)
    ema: Dict[int, float] = field(default_factory=dict)
    patterns: Tuple[str, ...] = ()


@dataclass(frozen=True)
class VoteTally:
    buy: int = 0
    sell: int = 0
    neutral: int = 0

    @property
    def total(self) -> int:
        return self.buy + self.sell + self.neutral


@dataclass(frozen=True)
class OscillatorSummary:
    summary: SignalLabel
    oscillators: VoteTally
    moving_averages: VoteTally
    buy_ratio: float = 0.0


@dataclass(frozen=True)
class Signal:
    """
    Graded trading recommendation.

    ``reasons`` lists every contributing indicator message ordered by
    absolute impact on the score; ``summary`` quotes the leading ones.
    """
    label: SignalLabel
    confidence: int
    score: float
    reasons: Tuple[str, ...]
    summary: str
    trend: Optional[TrendStrength] = None
    snapshot: Optional[IndicatorSnapshot] = None
    oscillators: Optional[OscillatorSummary] = None

    @property
    def action(self) -> Action:
        return self.label.action

    def top_reasons(self, count: int) -> List[str]:
        return list(self.reasons[:count])
