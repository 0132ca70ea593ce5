"""
quantcore/heuristics.py
-----------------------
Single-position rebalancing heuristics.

Both functions are stateless: they map (holding, price) to one
:class:`RebalanceDecision` and know nothing about the rest of the book.

* :func:`value_averaging`       — steer the position value along a
  compounding growth path.
* :func:`threshold_rebalancing` — take profits / average down in fixed
  tiers of price movement from the average buy price.
"""

from __future__ import annotations

from quantcore.config import (
    CURRENCY_SYMBOL,
    TARGET_MONTHLY_GROWTH,
    THRESHOLD_BUY_LARGE,
    THRESHOLD_BUY_SMALL,
    THRESHOLD_SELL_LARGE_FRACTION,
    THRESHOLD_SELL_LARGE_PCT,
    THRESHOLD_SELL_SMALL_FRACTION,
    THRESHOLD_SELL_SMALL_PCT,
    VALUE_AVERAGING_TOLERANCE,
)
from quantcore.enums import Action
from quantcore.models import RebalanceDecision


def _money(value: float) -> str:
    return f"{CURRENCY_SYMBOL}{value:.2f}"


def _validate(quantity: float, avg_buy_price: float, current_price: float) -> None:
    if quantity < 0:
        raise ValueError(f"Quantity cannot be negative (got {quantity}).")
    if avg_buy_price <= 0:
        raise ValueError(f"Average buy price must be positive (got {avg_buy_price}).")
    if current_price <= 0:
        raise ValueError(f"Current price must be positive (got {current_price}).")


def value_averaging(
    quantity: float,
    avg_buy_price: float,
    current_price: float,
    months_since_start: float = 1,
    target_monthly_growth: float = TARGET_MONTHLY_GROWTH,
) -> RebalanceDecision:
    """
    Value averaging against a compounding target.

    Formula::

        initial  = quantity · avg_buy_price
        target   = initial · (1 + target_monthly_growth) ** months_since_start
        current  = quantity · current_price
        gap      = current − target

    ``|gap| < 2% of initial`` → HOLD with 0 shares. Otherwise SELL (above
    target) or BUY (below target) ``|gap| / current_price`` shares, rounded
    to 2 dp.
    """
    _validate(quantity, avg_buy_price, current_price)

    initial_value = quantity * avg_buy_price
    target_value = initial_value * (1 + target_monthly_growth) ** months_since_start
    current_value = quantity * current_price
    difference = current_value - target_value

    if abs(difference) < initial_value * VALUE_AVERAGING_TOLERANCE:
        return RebalanceDecision(
            action=Action.HOLD,
            shares=0.0,
            amount=0.0,
            label=_money(0.0),
            reason=f"Portfolio on track ({_money(abs(difference))} from target)",
        )

    shares = round(abs(difference) / current_price, 2)
    amount = round(abs(difference), 2)

    if difference > 0:
        return RebalanceDecision(
            action=Action.SELL,
            shares=shares,
            amount=amount,
            label=_money(amount),
            reason=f"Portfolio {_money(difference)} above target of {_money(target_value)}",
        )

    return RebalanceDecision(
        action=Action.BUY,
        shares=shares,
        amount=amount,
        label=_money(amount),
        reason=f"Portfolio {_money(abs(difference))} below target of {_money(target_value)}",
    )


def threshold_rebalancing(
    quantity: float,
    avg_buy_price: float,
    current_price: float,
) -> RebalanceDecision:
    """
    Tiered rebalancing on the percentage move from the average buy price.

    Tiers (first match wins)::

        change >= +20%  → SELL 40% of holdings
        change >= +10%  → SELL 20% of holdings
        change <= −20%  → BUY a fixed 200 notional
        change <= −10%  → BUY a fixed 100 notional
        otherwise       → HOLD
    """
    _validate(quantity, avg_buy_price, current_price)

    # Tier edges compare at 9 dp, so 3.00 → 3.30 counts as exactly +10%
    change_pct = round(((current_price - avg_buy_price) / avg_buy_price) * 100, 9)

    if change_pct >= THRESHOLD_SELL_LARGE_PCT:
        return _sell_fraction(
            quantity, current_price, THRESHOLD_SELL_LARGE_FRACTION,
            f"Price up {change_pct:.1f}% from avg - take profits",
        )
    if change_pct >= THRESHOLD_SELL_SMALL_PCT:
        return _sell_fraction(
            quantity, current_price, THRESHOLD_SELL_SMALL_FRACTION,
            f"Price up {change_pct:.1f}% from avg - lock gains",
        )
    if change_pct <= -THRESHOLD_SELL_LARGE_PCT:
        return _buy_notional(
            current_price, THRESHOLD_BUY_LARGE,
            f"Price down {abs(change_pct):.1f}% - strong buy opportunity",
        )
    if change_pct <= -THRESHOLD_SELL_SMALL_PCT:
        return _buy_notional(
            current_price, THRESHOLD_BUY_SMALL,
            f"Price down {abs(change_pct):.1f}% - average down",
        )

    sign = "+" if change_pct > 0 else ""
    return RebalanceDecision(
        action=Action.HOLD,
        shares=0.0,
        amount=0.0,
        label="0%",
        reason=f"Price within normal range ({sign}{change_pct:.1f}%)",
    )


def _sell_fraction(quantity: float, price: float, fraction: float, reason: str) -> RebalanceDecision:
    shares = quantity * fraction
    return RebalanceDecision(
        action=Action.SELL,
        shares=round(shares, 2),
        amount=round(shares * price, 2),
        label=f"{fraction * 100:.0f}%",
        reason=reason,
    )


def _buy_notional(price: float, notional: float, reason: str) -> RebalanceDecision:
    return RebalanceDecision(
        action=Action.BUY,
        shares=round(notional / price, 2),
        amount=notional,
        label=f"{CURRENCY_SYMBOL}{notional:.0f}",
        reason=reason,
    )
