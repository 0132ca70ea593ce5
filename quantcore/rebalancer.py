"""
quantcore/rebalancer.py
-----------------------
Portfolio-wide deviation rebalancer and position valuation helpers.

Design contract:
  - Pure functions: identical inputs always produce identical actions
  - Never mutates the caller's positions (Position is frozen; helpers
    return new objects)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence

from quantcore.config import REBALANCE_THRESHOLD, WEIGHT_SUM_TOLERANCE
from quantcore.enums import Action
from quantcore.exceptions import InvalidWeightError
from quantcore.models import Position, RebalanceAction

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Valuation
# ---------------------------------------------------------------------------

def portfolio_value(positions: Sequence[Position]) -> float:
    """Total market value; positions without a live price use their cost."""
    return float(sum(p.market_value for p in positions))


def with_current_weights(positions: Sequence[Position]) -> List[Position]:
    """
    Return copies of *positions* with ``current_weight`` set to each
    holding's share of total market value (0 for an empty-valued book).
    """
    total = portfolio_value(positions)
    return [
        p.with_weight(p.market_value / total if total > 0 else 0.0)
        for p in positions
    ]


def merge_lot(position: Position, quantity: float, price: float) -> Position:
    """
    Add a purchase lot to an existing holding.

    The average buy price becomes the quantity-weighted cost of both lots::

        avg = (q₀·p₀ + q₁·p₁) / (q₀ + q₁)
    """
    if quantity <= 0:
        raise ValueError(f"Lot quantity must be positive (got {quantity}).")
    if price <= 0:
        raise ValueError(f"Lot price must be positive (got {price}).")

    total_quantity = position.quantity + quantity
    total_cost = position.quantity * position.avg_buy_price + quantity * price
    return replace(position, quantity=total_quantity, avg_buy_price=total_cost / total_quantity)


# ---------------------------------------------------------------------------
# Target validation
# ---------------------------------------------------------------------------

def validate_target_weights(
    target_weights: Mapping[str, float],
    tolerance: float = WEIGHT_SUM_TOLERANCE,
) -> Dict[str, float]:
    """
    Check that every target lies in [0, 1] and that they sum to 1.

    Raises
    ------
    InvalidWeightError
        On an out-of-range weight or a sum outside ``1 ± tolerance``.
    """
    weights = {symbol: float(w) for symbol, w in target_weights.items()}
    for symbol, w in weights.items():
        if not 0.0 <= w <= 1.0:
            raise InvalidWeightError(
                f"Target weight for {symbol!r} must be in [0, 1] (got {w})."
            )

    total = sum(weights.values())
    if weights and abs(total - 1.0) > tolerance:
        raise InvalidWeightError(
            f"Target weights must sum to 1.0 (got {total:.6f})."
        )
    return weights


# ---------------------------------------------------------------------------
# Deviation rebalancer
# ---------------------------------------------------------------------------

def calculate_rebalancing(
    positions: Sequence[Position],
    target_weights: Mapping[str, float],
    threshold: float = REBALANCE_THRESHOLD,
    total_value: Optional[float] = None,
) -> List[RebalanceAction]:
    """
    Compare current and target weights and emit one action per position.

    Rule
    ----
    ::

        deviation = |current − target|
        ratio     = deviation / target      (0 when target is 0)
        ratio > threshold → BUY if current < target else SELL,
                            magnitude = deviation
        otherwise         → HOLD, magnitude 0

    Dollar amount = magnitude × *total_value* (defaults to the book's
    market value). Shares = dollar amount / price, 0 when the position has
    no usable price.

    A symbol without a target is treated as target 0, which by the ratio
    rule above always yields HOLD.

    Raises
    ------
    InvalidWeightError
        If *target_weights* fails :func:`validate_target_weights`.
    ValueError
        If *threshold* is negative.
    """
    if threshold < 0:
        raise ValueError(f"Rebalance threshold cannot be negative (got {threshold}).")

    targets = validate_target_weights(target_weights)
    value = portfolio_value(positions) if total_value is None else float(total_value)

    actions: List[RebalanceAction] = []
    for position in positions:
        current = position.current_weight
        target = targets.get(position.symbol, 0.0)

        deviation = abs(current - target)
        ratio = deviation / target if target > 0 else 0.0

        if ratio > threshold:
            action = Action.BUY if current < target else Action.SELL
            magnitude = deviation
        else:
            action = Action.HOLD
            magnitude = 0.0

        price = position.price
        dollar_amount = magnitude * value
        shares = abs(dollar_amount / price) if price > 0 else 0.0

        actions.append(RebalanceAction(
            symbol=position.symbol,
            current_weight=current,
            target_weight=target,
            action=action,
            magnitude=magnitude,
            dollar_amount=dollar_amount,
            shares=shares,
            price=price,
        ))

    logger.debug(
        "Rebalance over %d positions: %d BUY, %d SELL",
        len(actions),
        sum(1 for a in actions if a.action is Action.BUY),
        sum(1 for a in actions if a.action is Action.SELL),
    )
    return actions


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def apply_rebalance(
    positions: Sequence[Position],
    actions: Sequence[RebalanceAction],
) -> List[Position]:
    """
    Book the trades in *actions* against *positions*.

    BUY adds ``shares`` to the holding, SELL removes them (never below 0,
    so rounding dust cannot leave a negative quantity), and the traded
    position's ``current_weight`` becomes its target. HOLD lines and
    actions for symbols missing from the book are ignored. Returns a new
    list in the book's order; untraded positions pass through unchanged.
    """
    trades = {a.symbol: a for a in actions if a.action is not Action.HOLD}

    book: List[Position] = []
    for position in positions:
        trade = trades.get(position.symbol)
        if trade is None:
            book.append(position)
            continue

        if trade.action is Action.BUY:
            quantity = position.quantity + trade.shares
        else:
            quantity = max(position.quantity - trade.shares, 0.0)
        book.append(replace(position, quantity=quantity, current_weight=trade.target_weight))

    unmatched = set(trades) - {p.symbol for p in positions}
    if unmatched:
        logger.warning("Skipping actions for symbols not in the book: %s", sorted(unmatched))
    logger.debug("Applied %d trades to %d positions", len(trades) - len(unmatched), len(book))
    return book
