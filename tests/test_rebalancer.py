"""
tests/test_rebalancer.py
------------------------
Unit tests for the portfolio-wide deviation rebalancer.

Test coverage:
    Valuation helpers (portfolio_value, with_current_weights, merge_lot)
    Target validation (range, sum)
    BUY / SELL / HOLD classification against the relative threshold
    Dollar and share sizing, missing prices
    Zero and missing targets
    Idempotence / no mutation
    apply_rebalance() booking BUY / SELL lines, skipping HOLD and unknown symbols
"""

import unittest

from quantcore.enums import Action
from quantcore.exceptions import InvalidWeightError
from quantcore.models import Position, RebalanceAction
from quantcore.rebalancer import (
    apply_rebalance,
    calculate_rebalancing,
    merge_lot,
    portfolio_value,
    validate_target_weights,
    with_current_weights,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _book():
    """Two holdings worth 500 each → weights 0.5 / 0.5."""
    return with_current_weights([
        Position("AAA", quantity=10, avg_buy_price=40.0, current_price=50.0),
        Position("BBB", quantity=5, avg_buy_price=120.0, current_price=100.0),
    ])


def _by_symbol(actions):
    return {a.symbol: a for a in actions}


# ===========================================================================
# 1. Valuation helpers
# ===========================================================================

class TestValuation(unittest.TestCase):

    def test_portfolio_value_uses_live_price(self):
        self.assertEqual(portfolio_value(_book()), 1000.0)

    def test_missing_live_price_falls_back_to_cost(self):
        position = Position("AAA", quantity=4, avg_buy_price=25.0)
        self.assertEqual(position.price, 25.0)
        self.assertEqual(portfolio_value([position]), 100.0)

    def test_current_weights(self):
        weights = [p.current_weight for p in _book()]
        self.assertEqual(weights, [0.5, 0.5])

    def test_zero_value_book_has_zero_weights(self):
        book = with_current_weights([Position("AAA", quantity=0, avg_buy_price=10.0)])
        self.assertEqual(book[0].current_weight, 0.0)

    def test_with_current_weights_returns_copies(self):
        original = [Position("AAA", quantity=1, avg_buy_price=10.0)]
        updated = with_current_weights(original)
        self.assertEqual(original[0].current_weight, 0.0)
        self.assertEqual(updated[0].current_weight, 1.0)

    def test_merge_lot_weighted_average_cost(self):
        merged = merge_lot(Position("AAA", quantity=10, avg_buy_price=100.0), 10, 110.0)
        self.assertEqual(merged.quantity, 20)
        self.assertAlmostEqual(merged.avg_buy_price, 105.0)

    def test_merge_lot_rejects_bad_lot(self):
        position = Position("AAA", quantity=10, avg_buy_price=100.0)
        with self.assertRaises(ValueError):
            merge_lot(position, 0, 100.0)
        with self.assertRaises(ValueError):
            merge_lot(position, 5, -1.0)


# ===========================================================================
# 2. Target validation
# ===========================================================================

class TestTargetValidation(unittest.TestCase):

    def test_valid_targets_pass(self):
        self.assertEqual(validate_target_weights({"A": 0.6, "B": 0.4}), {"A": 0.6, "B": 0.4})

    def test_sum_within_tolerance_passes(self):
        validate_target_weights({"A": 0.6, "B": 0.4005})

    def test_weight_above_one_raises(self):
        with self.assertRaises(InvalidWeightError):
            validate_target_weights({"A": 1.2, "B": -0.2})

    def test_negative_weight_raises(self):
        with self.assertRaises(InvalidWeightError):
            validate_target_weights({"A": -0.1, "B": 1.1})

    def test_sum_not_one_raises(self):
        with self.assertRaises(InvalidWeightError):
            validate_target_weights({"A": 0.3, "B": 0.2})

    def test_rebalance_rejects_invalid_targets(self):
        with self.assertRaises(InvalidWeightError):
            calculate_rebalancing(_book(), {"AAA": 0.3, "BBB": 0.3})


# ===========================================================================
# 3. Classification and sizing
# ===========================================================================

class TestRebalancing(unittest.TestCase):

    def test_buy_and_sell_beyond_threshold(self):
        actions = _by_symbol(calculate_rebalancing(_book(), {"AAA": 0.6, "BBB": 0.4}))

        buy = actions["AAA"]
        self.assertEqual(buy.action, Action.BUY)
        self.assertAlmostEqual(buy.magnitude, 0.1)
        self.assertAlmostEqual(buy.dollar_amount, 100.0)
        self.assertAlmostEqual(buy.shares, 2.0)
        self.assertEqual(buy.price, 50.0)

        sell = actions["BBB"]
        self.assertEqual(sell.action, Action.SELL)
        self.assertAlmostEqual(sell.dollar_amount, 100.0)
        self.assertAlmostEqual(sell.shares, 1.0)

    def test_small_deviation_holds(self):
        actions = calculate_rebalancing(_book(), {"AAA": 0.52, "BBB": 0.48})
        for action in actions:
            self.assertEqual(action.action, Action.HOLD)
            self.assertEqual(action.magnitude, 0.0)
            self.assertEqual(action.dollar_amount, 0.0)
            self.assertEqual(action.shares, 0.0)

    def test_on_target_holds(self):
        actions = calculate_rebalancing(_book(), {"AAA": 0.5, "BBB": 0.5})
        self.assertTrue(all(a.action is Action.HOLD for a in actions))

    def test_threshold_is_relative_to_target(self):
        # 0.02 off a 0.1 target is a 20% relative miss
        book = with_current_weights([
            Position("AAA", quantity=12, avg_buy_price=10.0),
            Position("BBB", quantity=88, avg_buy_price=10.0),
        ])
        actions = _by_symbol(calculate_rebalancing(book, {"AAA": 0.1, "BBB": 0.9}))
        self.assertEqual(actions["AAA"].action, Action.SELL)
        self.assertEqual(actions["BBB"].action, Action.HOLD)

    def test_custom_threshold(self):
        actions = calculate_rebalancing(_book(), {"AAA": 0.52, "BBB": 0.48}, threshold=0.01)
        self.assertEqual(_by_symbol(actions)["AAA"].action, Action.BUY)

    def test_negative_threshold_raises(self):
        with self.assertRaises(ValueError):
            calculate_rebalancing(_book(), {"AAA": 0.5, "BBB": 0.5}, threshold=-0.1)

    def test_missing_target_treated_as_zero_and_held(self):
        actions = _by_symbol(calculate_rebalancing(_book(), {"AAA": 1.0}))
        self.assertEqual(actions["BBB"].target_weight, 0.0)
        self.assertEqual(actions["BBB"].action, Action.HOLD)
        self.assertEqual(actions["AAA"].action, Action.BUY)
        self.assertAlmostEqual(actions["AAA"].magnitude, 0.5)

    def test_total_value_override(self):
        actions = _by_symbol(
            calculate_rebalancing(_book(), {"AAA": 0.6, "BBB": 0.4}, total_value=2000.0)
        )
        self.assertAlmostEqual(actions["AAA"].dollar_amount, 200.0)
        self.assertAlmostEqual(actions["AAA"].shares, 4.0)

    def test_unpriced_position_gets_zero_shares(self):
        book = [
            Position("AAA", quantity=10, avg_buy_price=0.0, current_weight=0.0),
            Position("BBB", quantity=10, avg_buy_price=10.0, current_weight=1.0),
        ]
        actions = _by_symbol(
            calculate_rebalancing(book, {"AAA": 0.5, "BBB": 0.5}, total_value=100.0)
        )
        self.assertEqual(actions["AAA"].action, Action.BUY)
        self.assertEqual(actions["AAA"].price, 0.0)
        self.assertEqual(actions["AAA"].shares, 0.0)

    def test_one_action_per_position_in_order(self):
        actions = calculate_rebalancing(_book(), {"AAA": 0.6, "BBB": 0.4})
        self.assertEqual([a.symbol for a in actions], ["AAA", "BBB"])

    def test_idempotent(self):
        book = _book()
        targets = {"AAA": 0.6, "BBB": 0.4}
        self.assertEqual(
            calculate_rebalancing(book, targets), calculate_rebalancing(book, targets)
        )
        self.assertEqual(book, _book())


# ===========================================================================
# 4. Applying actions to the book
# ===========================================================================

def _trade(symbol, action, shares, target):
    return RebalanceAction(
        symbol=symbol,
        current_weight=0.5,
        target_weight=target,
        action=action,
        magnitude=abs(target - 0.5),
        shares=shares,
    )


class TestApplyRebalance(unittest.TestCase):

    def test_buy_adds_and_sell_removes_shares(self):
        book = apply_rebalance(_book(), [
            _trade("AAA", Action.BUY, 2.0, 0.6),
            _trade("BBB", Action.SELL, 1.0, 0.4),
        ])
        self.assertEqual([p.quantity for p in book], [12.0, 4.0])
        self.assertEqual([p.current_weight for p in book], [0.6, 0.4])

    def test_hold_leaves_position_untouched(self):
        original = _book()
        book = apply_rebalance(original, [_trade("AAA", Action.HOLD, 0.0, 0.5)])
        self.assertEqual(book, original)

    def test_position_without_action_passes_through(self):
        book = apply_rebalance(_book(), [_trade("AAA", Action.BUY, 2.0, 0.6)])
        self.assertEqual(book[1], _book()[1])

    def test_unknown_symbol_is_skipped(self):
        book = apply_rebalance(_book(), [_trade("ZZZ", Action.BUY, 3.0, 0.2)])
        self.assertEqual(book, _book())

    def test_sell_never_goes_negative(self):
        book = apply_rebalance(_book(), [_trade("BBB", Action.SELL, 5.0000001, 0.0)])
        self.assertEqual(book[1].quantity, 0.0)
        self.assertEqual(book[1].current_weight, 0.0)

    def test_other_fields_preserved(self):
        aaa = apply_rebalance(_book(), [_trade("AAA", Action.BUY, 2.0, 0.6)])[0]
        self.assertEqual(aaa.symbol, "AAA")
        self.assertEqual(aaa.avg_buy_price, 40.0)
        self.assertEqual(aaa.current_price, 50.0)

    def test_inputs_not_mutated(self):
        original = _book()
        actions = calculate_rebalancing(original, {"AAA": 0.6, "BBB": 0.4})
        apply_rebalance(original, actions)
        self.assertEqual(original, _book())

    def test_applied_book_is_on_target(self):
        actions = calculate_rebalancing(_book(), {"AAA": 0.6, "BBB": 0.4})
        book = apply_rebalance(_book(), actions)
        self.assertAlmostEqual(book[0].quantity, 12.0)
        self.assertAlmostEqual(book[1].quantity, 4.0)

        again = calculate_rebalancing(with_current_weights(book), {"AAA": 0.6, "BBB": 0.4})
        self.assertTrue(all(a.action is Action.HOLD for a in again))


if __name__ == "__main__":
    unittest.main()
