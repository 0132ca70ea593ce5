"""
quantcore/portfolio_engine.py
-----------------------------
Facade wiring the numeric engines together for a book of positions.

Design contract:
  - No storage, no market-data fetching: prices and positions come in as
    arguments, results go out as value objects
  - Never mutates the caller's positions
  - Holds only its immutable :class:`OptimizerConfig`
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from quantcore.config import REBALANCE_THRESHOLD, RISK_FREE_RATE, OptimizerConfig
from quantcore.exceptions import EmptyInputError, InsufficientDataError
from quantcore.heuristics import threshold_rebalancing, value_averaging
from quantcore.models import (
    AssetSeries,
    OptimizationOutcome,
    Position,
    RebalanceAction,
    RebalanceDecision,
    Signal,
)
from quantcore.optimizer import MeanVarianceOptimizer
from quantcore.rebalancer import (
    apply_rebalance,
    calculate_rebalancing,
    merge_lot,
    portfolio_value,
    with_current_weights,
)
from quantcore.signal_engine import analyze
from quantcore.statistics import returns_frame, simple_returns

logger = logging.getLogger(__name__)

PriceInput = Union[pd.DataFrame, Mapping[str, Sequence[float]]]


class PortfolioEngine:
    """
    Optimise, rebalance and analyse a position book.

    Typical flow::

        engine = PortfolioEngine()
        total, book = engine.update_weights(positions)
        outcome = engine.optimize_prices(price_frame, book)
        actions = engine.rebalance(book, outcome)
        book = engine.apply_rebalance(book, actions)
    """

    def __init__(self, config: Optional[OptimizerConfig] = None):
        self.optimizer = MeanVarianceOptimizer(config)

    @property
    def config(self) -> OptimizerConfig:
        return self.optimizer.config

    # ------------------------------------------------------------------ #
    #  Book maintenance
    # ------------------------------------------------------------------ #

    @staticmethod
    def update_weights(positions: Sequence[Position]) -> Tuple[float, List[Position]]:
        """Return the book's total value and copies carrying fresh weights."""
        return portfolio_value(positions), with_current_weights(positions)

    @staticmethod
    def add_lot(
        positions: Sequence[Position],
        symbol: str,
        quantity: float,
        price: float,
        current_price: Optional[float] = None,
    ) -> List[Position]:
        """
        Add a purchase to the book.

        An existing holding absorbs the lot at its weighted-average cost;
        a new symbol becomes a new position. ``current_price`` (a live
        quote) overrides the stored one when given. Weights are recomputed
        for the whole book.
        """
        book: List[Position] = []
        merged = False
        for position in positions:
            if position.symbol == symbol:
                position = merge_lot(position, quantity, price)
                if current_price is not None:
                    position = replace(position, current_price=current_price)
                merged = True
            book.append(position)

        if not merged:
            if quantity <= 0 or price <= 0:
                raise ValueError("New positions need a positive quantity and price.")
            book.append(Position(
                symbol=symbol,
                quantity=quantity,
                avg_buy_price=price,
                current_price=current_price if current_price is not None else price,
            ))

        return with_current_weights(book)

    # ------------------------------------------------------------------ #
    #  Optimisation
    # ------------------------------------------------------------------ #

    def optimize_prices(
        self,
        prices: PriceInput,
        positions: Optional[Sequence[Position]] = None,
        risk_free_rate: float = RISK_FREE_RATE,
    ) -> OptimizationOutcome:
        """
        Optimise from price history instead of pre-computed returns.

        Parameters
        ----------
        prices:
            Either a DataFrame (index = timestamps, one column per symbol)
            or a ``{symbol: prices}`` mapping of equal-length series.
        positions:
            When given, their ``current_weight`` is carried onto the
            optimizer input.
        """
        returns = self._returns_by_symbol(prices)
        weights = {p.symbol: p.current_weight for p in positions or ()}

        assets = [
            AssetSeries(symbol=symbol, returns=series, current_weight=weights.get(symbol, 0.0))
            for symbol, series in returns.items()
        ]
        logger.debug("Optimising %d assets over %d return periods", len(assets), len(assets[0].returns))
        return self.optimizer.optimize(assets, risk_free_rate)

    @staticmethod
    def _returns_by_symbol(prices: PriceInput) -> Dict[str, List[float]]:
        if isinstance(prices, pd.DataFrame):
            frame = returns_frame(prices)
            return {str(column): frame[column].tolist() for column in frame.columns}

        if not prices:
            raise EmptyInputError("No price history supplied.")

        returns = {symbol: simple_returns(series) for symbol, series in prices.items()}
        lengths = {len(r) for r in returns.values()}
        if len(lengths) > 1:
            raise InsufficientDataError(
                f"Price histories must have equal lengths (got return lengths {sorted(lengths)})."
            )
        return returns

    # ------------------------------------------------------------------ #
    #  Rebalancing
    # ------------------------------------------------------------------ #

    @staticmethod
    def rebalance(
        positions: Sequence[Position],
        targets: Union[OptimizationOutcome, Mapping[str, float]],
        threshold: float = REBALANCE_THRESHOLD,
    ) -> List[RebalanceAction]:
        """
        Rebalance the book toward *targets* (an optimisation outcome or a
        plain weight mapping). Current weights are recomputed from market
        value first so stale weights never drive a trade.
        """
        if not positions:
            raise EmptyInputError("No positions to rebalance.")

        target_weights = targets.weights if isinstance(targets, OptimizationOutcome) else targets
        total, book = PortfolioEngine.update_weights(positions)
        return calculate_rebalancing(book, target_weights, threshold, total_value=total)

    @staticmethod
    def apply_rebalance(
        positions: Sequence[Position],
        actions: Sequence[RebalanceAction],
    ) -> List[Position]:
        """Book the BUY/SELL lines of :meth:`rebalance` against the positions."""
        return apply_rebalance(positions, actions)

    @staticmethod
    def position_recommendations(
        position: Position,
        months_since_start: float = 1,
    ) -> Dict[str, RebalanceDecision]:
        """Both single-position heuristics side by side."""
        price = position.price
        return {
            "value_averaging": value_averaging(
                position.quantity, position.avg_buy_price, price, months_since_start
            ),
            "threshold": threshold_rebalancing(
                position.quantity, position.avg_buy_price, price
            ),
        }

    # ------------------------------------------------------------------ #
    #  Technical analysis
    # ------------------------------------------------------------------ #

    @staticmethod
    def analyze(prices) -> Signal:
        """Weighted recommendation plus oscillator summary for one series."""
        return analyze(prices)
