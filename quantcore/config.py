"""
quantcore/config.py
-------------------
Shared financial configuration constants.

Keeping these separate from quantcore/constants.py (which holds indicator
scoring tables) gives this file ownership of the tunable portfolio
parameters: optimizer limits, rebalancing thresholds and the notional
amounts used by the heuristics.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Dict, Optional

# ---------------------------------------------------------------------------
# Risk-free rate
# ---------------------------------------------------------------------------
# Per-period risk-free rate used as the Sharpe Ratio baseline. Callers pass
# their own value when their return series use a different periodicity.

RISK_FREE_RATE: float = 0.02

# ---------------------------------------------------------------------------
# Optimizer limits
# ---------------------------------------------------------------------------

MAX_WEIGHT: float = 0.15              # 15% max per asset
LEARNING_RATE: float = 0.01
MAX_ITERATIONS: int = 1000
CONVERGENCE_TOLERANCE: float = 1e-6   # L1 change in weights between steps

# Upper bound on cap-then-redistribute passes inside one projection.
# Each pass pins at least one more asset to the cap, so n passes suffice;
# the guard only matters for pathological inputs.
MAX_REDISTRIBUTION_PASSES: int = 100

# ---------------------------------------------------------------------------
# Rebalancing
# ---------------------------------------------------------------------------

REBALANCE_THRESHOLD: float = 0.10     # 10% relative deviation from target
WEIGHT_SUM_TOLERANCE: float = 1e-3    # target weights must sum to 1 ± this

# Value averaging: deviations smaller than this share of the initial
# investment are left alone.
VALUE_AVERAGING_TOLERANCE: float = 0.02
TARGET_MONTHLY_GROWTH: float = 0.01

# Threshold rebalancing tiers (percent move from average buy price)
THRESHOLD_SELL_LARGE_PCT: float = 20.0
THRESHOLD_SELL_SMALL_PCT: float = 10.0
THRESHOLD_SELL_LARGE_FRACTION: float = 0.40
THRESHOLD_SELL_SMALL_FRACTION: float = 0.20
THRESHOLD_BUY_LARGE: float = 200.0    # notional bought after a 20% drop
THRESHOLD_BUY_SMALL: float = 100.0    # notional bought after a 10% drop

CURRENCY_SYMBOL: str = "$"


@dataclass(frozen=True)
class OptimizerConfig:
    """
    Immutable parameter set for :class:`quantcore.optimizer.MeanVarianceOptimizer`.

    Defaults mirror the module constants above; tests and callers override
    individual fields without touching global state::

        OptimizerConfig(max_weight=1.0)
        OptimizerConfig.from_dict({"learning_rate": 0.05})
    """

    max_weight: float = MAX_WEIGHT
    learning_rate: float = LEARNING_RATE
    max_iterations: int = MAX_ITERATIONS
    tolerance: float = CONVERGENCE_TOLERANCE
    max_redistribution_passes: int = MAX_REDISTRIBUTION_PASSES

    def __post_init__(self):
        if not 0.0 < self.max_weight <= 1.0:
            raise ValueError(
                f"max_weight must be in (0, 1], got {self.max_weight!r}."
            )
        if self.learning_rate <= 0.0:
            raise ValueError(
                f"learning_rate must be positive, got {self.learning_rate!r}."
            )
        if self.max_iterations < 1:
            raise ValueError(
                f"max_iterations must be at least 1, got {self.max_iterations!r}."
            )
        if self.tolerance < 0.0:
            raise ValueError(
                f"tolerance must be non-negative, got {self.tolerance!r}."
            )
        if self.max_redistribution_passes < 1:
            raise ValueError(
                "max_redistribution_passes must be at least 1, "
                f"got {self.max_redistribution_passes!r}."
            )

    @classmethod
    def from_dict(cls, overrides: Optional[Dict]) -> "OptimizerConfig":
        """Build a config from a partial mapping; unknown keys are rejected."""
        if not overrides:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(
                f"Unknown optimizer setting(s): {unknown}. "
                f"Valid options: {sorted(known)}"
            )
        return cls(**overrides)


DEFAULT_OPTIMIZER_CONFIG = OptimizerConfig()
