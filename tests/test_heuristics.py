"""
tests/test_heuristics.py
------------------------
Unit tests for the single-position rebalancing heuristics.

Test coverage:
    value_averaging()        — on-track HOLD, SELL above path, BUY below path,
                               growth compounding, input validation
    threshold_rebalancing()  — every tier boundary, HOLD band, validation
"""

import unittest

from quantcore.enums import Action
from quantcore.heuristics import threshold_rebalancing, value_averaging


# ===========================================================================
# 1. Value averaging
# ===========================================================================

class TestValueAveraging(unittest.TestCase):

    def test_exactly_on_target_holds(self):
        # 10 @ 100 grown 1% for one month → target 1010 = 10 @ 101
        decision = value_averaging(10, 100.0, 101.0)
        self.assertEqual(decision.action, Action.HOLD)
        self.assertEqual(decision.shares, 0.0)
        self.assertEqual(decision.label, "$0.00")

    def test_within_two_percent_of_initial_holds(self):
        # gap 10 < 2% of 1000
        decision = value_averaging(10, 100.0, 102.0)
        self.assertEqual(decision.action, Action.HOLD)
        self.assertIn("on track", decision.reason)

    def test_above_target_sells(self):
        # current 1050, target 1010 → sell 40 / 105
        decision = value_averaging(10, 100.0, 105.0)
        self.assertEqual(decision.action, Action.SELL)
        self.assertEqual(decision.shares, 0.38)
        self.assertEqual(decision.amount, 40.0)
        self.assertEqual(decision.label, "$40.00")
        self.assertIn("above target of $1010.00", decision.reason)

    def test_below_target_buys(self):
        # current 950, target 1010 → buy 60 / 95
        decision = value_averaging(10, 100.0, 95.0)
        self.assertEqual(decision.action, Action.BUY)
        self.assertEqual(decision.shares, 0.63)
        self.assertEqual(decision.amount, 60.0)
        self.assertIn("below target", decision.reason)

    def test_month_zero_targets_initial_value(self):
        decision = value_averaging(10, 100.0, 100.0, months_since_start=0)
        self.assertEqual(decision.action, Action.HOLD)

    def test_target_compounds_with_months(self):
        # After 12 months the target is ~1126.8, so a price of 105 is now below path
        decision = value_averaging(10, 100.0, 105.0, months_since_start=12)
        self.assertEqual(decision.action, Action.BUY)

    def test_custom_growth_rate(self):
        decision = value_averaging(10, 100.0, 105.0, target_monthly_growth=0.05)
        self.assertEqual(decision.action, Action.HOLD)

    def test_invalid_inputs_raise(self):
        with self.assertRaises(ValueError):
            value_averaging(-1, 100.0, 100.0)
        with self.assertRaises(ValueError):
            value_averaging(10, 0.0, 100.0)
        with self.assertRaises(ValueError):
            value_averaging(10, 100.0, -5.0)


# ===========================================================================
# 2. Threshold rebalancing
# ===========================================================================

class TestThresholdRebalancing(unittest.TestCase):

    def test_up_twenty_percent_sells_forty(self):
        decision = threshold_rebalancing(10, 100.0, 120.0)
        self.assertEqual(decision.action, Action.SELL)
        self.assertEqual(decision.shares, 4.0)
        self.assertEqual(decision.amount, 480.0)
        self.assertEqual(decision.label, "40%")
        self.assertIn("take profits", decision.reason)

    def test_up_twenty_five_percent_uses_top_tier(self):
        decision = threshold_rebalancing(10, 100.0, 125.0)
        self.assertEqual(decision.label, "40%")

    def test_up_ten_percent_sells_twenty(self):
        decision = threshold_rebalancing(10, 100.0, 110.0)
        self.assertEqual(decision.action, Action.SELL)
        self.assertEqual(decision.shares, 2.0)
        self.assertEqual(decision.label, "20%")

    def test_down_ten_percent_buys_small_notional(self):
        decision = threshold_rebalancing(10, 100.0, 90.0)
        self.assertEqual(decision.action, Action.BUY)
        self.assertEqual(decision.shares, 1.11)
        self.assertEqual(decision.amount, 100.0)
        self.assertEqual(decision.label, "$100")

    def test_down_twenty_percent_buys_large_notional(self):
        decision = threshold_rebalancing(10, 100.0, 80.0)
        self.assertEqual(decision.action, Action.BUY)
        self.assertEqual(decision.shares, 2.5)
        self.assertEqual(decision.label, "$200")
        self.assertIn("strong buy opportunity", decision.reason)

    def test_unchanged_price_holds(self):
        decision = threshold_rebalancing(10, 100.0, 100.0)
        self.assertEqual(decision.action, Action.HOLD)
        self.assertEqual(decision.shares, 0.0)
        self.assertEqual(decision.label, "0%")

    def test_small_gain_holds_with_signed_reason(self):
        decision = threshold_rebalancing(10, 100.0, 105.0)
        self.assertEqual(decision.action, Action.HOLD)
        self.assertIn("+5.0%", decision.reason)

    def test_small_loss_holds(self):
        decision = threshold_rebalancing(10, 100.0, 95.0)
        self.assertEqual(decision.action, Action.HOLD)
        self.assertIn("-5.0%", decision.reason)

    def test_exact_tiers_with_decimal_prices(self):
        # (3.30 - 3.00) / 3.00 * 100 is 9.999999999999998 in binary floats
        up_ten = threshold_rebalancing(10, 3.00, 3.30)
        self.assertEqual(up_ten.action, Action.SELL)
        self.assertEqual(up_ten.label, "20%")
        self.assertEqual(up_ten.shares, 2.0)
        self.assertEqual(up_ten.amount, 6.6)

        up_twenty = threshold_rebalancing(10, 3.00, 3.60)
        self.assertEqual(up_twenty.action, Action.SELL)
        self.assertEqual(up_twenty.label, "40%")
        self.assertEqual(up_twenty.shares, 4.0)

        down_ten = threshold_rebalancing(10, 3.00, 2.70)
        self.assertEqual(down_ten.action, Action.BUY)
        self.assertEqual(down_ten.label, "$100")
        self.assertEqual(down_ten.shares, 37.04)

        down_twenty = threshold_rebalancing(10, 3.00, 2.40)
        self.assertEqual(down_twenty.action, Action.BUY)
        self.assertEqual(down_twenty.label, "$200")

    def test_just_inside_band_still_holds(self):
        decision = threshold_rebalancing(10, 3.00, 3.29)
        self.assertEqual(decision.action, Action.HOLD)

    def test_invalid_inputs_raise(self):
        with self.assertRaises(ValueError):
            threshold_rebalancing(10, 0.0, 100.0)
        with self.assertRaises(ValueError):
            threshold_rebalancing(10, 100.0, 0.0)


if __name__ == "__main__":
    unittest.main()
