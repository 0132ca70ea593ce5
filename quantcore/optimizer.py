"""
quantcore/optimizer.py
----------------------
Constrained Markowitz mean-variance optimizer.

Turns historical return series into long-only target weights by running
projected gradient ascent on the portfolio Sharpe Ratio.

Design contract:
  - No data loading, no persistence
  - Deterministic: same inputs and config → same weights
  - Every returned weight vector is non-negative, sums to 1 and respects
    the per-asset cap whenever the cap is feasible (n · cap >= 1)
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from quantcore.config import DEFAULT_OPTIMIZER_CONFIG, RISK_FREE_RATE, OptimizerConfig
from quantcore.exceptions import DegenerateOptimizationError, EmptyInputError
from quantcore.models import AssetSeries, OptimizationOutcome
from quantcore.statistics import covariance_matrix, mean

logger = logging.getLogger(__name__)

# Comparisons against the cap tolerate float noise from redistribution
_EPS = 1e-12


def portfolio_return(weights: Sequence[float], expected_returns: Sequence[float]) -> float:
    """Weighted expected return ``Σ wᵢ · E[rᵢ]``."""
    return float(np.dot(weights, expected_returns))


def portfolio_variance(weights: Sequence[float], cov: np.ndarray) -> float:
    """
    ``σp² = wᵀ Σ w``.

    Floating-point error can produce tiny negatives for near-singular
    matrices; those are clamped to zero.
    """
    w = np.asarray(weights, dtype=float)
    variance = float(w @ np.asarray(cov, dtype=float) @ w)
    return max(variance, 0.0)


def portfolio_risk(weights: Sequence[float], cov: np.ndarray) -> float:
    """Portfolio standard deviation ``√(wᵀ Σ w)``."""
    return math.sqrt(portfolio_variance(weights, cov))


def sharpe_ratio(expected_return: float, risk: float, risk_free_rate: float = RISK_FREE_RATE) -> float:
    """
    ``(Rp − Rf) / σp``.

    Raises
    ------
    DegenerateOptimizationError
        If *risk* is not strictly positive.
    """
    if risk <= 0.0:
        raise DegenerateOptimizationError(
            f"Sharpe Ratio is undefined for portfolio risk {risk!r}."
        )
    return (expected_return - risk_free_rate) / risk


class MeanVarianceOptimizer:
    """
    Maximise the Sharpe Ratio subject to ``0 <= wᵢ <= max_weight`` and
    ``Σ wᵢ = 1``.

    Algorithm
    ---------
    1. Expected return per asset = mean of its return series.
    2. Sample covariance matrix of all return series.
    3. Start from uniform weights, projected onto the feasible set.
    4. Up to ``max_iterations`` steps of gradient ascent on Sharpe using the
       analytic quotient-rule gradient::

           ∂S/∂wᵢ = (E[rᵢ]·σ − (Rp − Rf)·∂σ/∂wᵢ) / σ²
           ∂σ/∂wᵢ = (Σⱼ covᵢⱼ wⱼ) / σ

       The step descends the gradient of −S with a fixed learning rate.
    5. Project after each step (see :meth:`project`).
    6. Stop once the L1 change between iterations drops below ``tolerance``.
    """

    def __init__(self, config: Optional[OptimizerConfig] = None):
        self.config = config or DEFAULT_OPTIMIZER_CONFIG

    # ------------------------------------------------------------------ #
    #  Public entry point
    # ------------------------------------------------------------------ #

    def optimize(
        self,
        assets: Sequence[AssetSeries],
        risk_free_rate: float = RISK_FREE_RATE,
    ) -> OptimizationOutcome:
        """
        Compute target weights for *assets*.

        Parameters
        ----------
        assets:
            Return series per asset. All series must share the same length
            (≥ 2) so the covariance matrix is well defined.
        risk_free_rate:
            Per-period rate in the same unit as the returns.

        Returns
        -------
        OptimizationOutcome
            ``sharpe_ratio`` is ``None`` when the final risk is zero.

        Raises
        ------
        EmptyInputError
            If *assets* is empty or any series is empty.
        InsufficientDataError
            If series lengths differ or are shorter than 2.
        ValueError
            If a symbol appears twice.
        """
        if not assets:
            raise EmptyInputError("No assets supplied to the optimizer.")

        symbols = [a.symbol for a in assets]
        if len(set(symbols)) != len(symbols):
            raise ValueError(f"Duplicate symbols in optimizer input: {symbols}")

        cap = self.effective_cap(len(assets))
        if cap > self.config.max_weight:
            logger.warning(
                "max_weight %.4f is infeasible for %d assets; using %.4f instead.",
                self.config.max_weight, len(assets), cap,
            )

        expected_returns = np.array([mean(a.returns) for a in assets])
        cov = covariance_matrix([a.returns for a in assets])

        weights, iterations, converged = self._find_optimal_weights(
            expected_returns, cov, risk_free_rate
        )

        port_return = portfolio_return(weights, expected_returns)
        risk = portfolio_risk(weights, cov)
        try:
            sharpe: Optional[float] = sharpe_ratio(port_return, risk, risk_free_rate)
        except DegenerateOptimizationError:
            logger.warning("Optimised portfolio has zero risk; Sharpe Ratio left undefined.")
            sharpe = None

        logger.debug(
            "Optimised %d assets in %d iterations (converged=%s): return=%.6f risk=%.6f",
            len(assets), iterations, converged, port_return, risk,
        )

        return OptimizationOutcome(
            weights={s: float(w) for s, w in zip(symbols, weights)},
            expected_return=port_return,
            risk=risk,
            sharpe_ratio=sharpe,
            iterations=iterations,
            converged=converged,
        )

    # ------------------------------------------------------------------ #
    #  Gradient ascent
    # ------------------------------------------------------------------ #

    def _find_optimal_weights(
        self,
        expected_returns: np.ndarray,
        cov: np.ndarray,
        risk_free_rate: float,
    ):
        n = len(expected_returns)
        weights = self.apply_max_weight_constraint([1.0 / n] * n)

        iterations = 0
        converged = False
        for iterations in range(1, self.config.max_iterations + 1):
            previous = list(weights)

            try:
                gradient = self.sharpe_gradient(weights, expected_returns, cov, risk_free_rate)
            except DegenerateOptimizationError:
                # Zero variance: no direction to move in
                logger.debug("Zero portfolio variance at iteration %d; stopping.", iterations)
                break

            stepped = [w - self.config.learning_rate * g for w, g in zip(weights, gradient)]
            weights = self.project(stepped)

            change = sum(abs(w - p) for w, p in zip(weights, previous))
            if change < self.config.tolerance:
                converged = True
                break

        return weights, iterations, converged

    @staticmethod
    def sharpe_gradient(
        weights: Sequence[float],
        expected_returns: Sequence[float],
        cov: np.ndarray,
        risk_free_rate: float,
    ) -> List[float]:
        """
        Gradient of the **negative** Sharpe Ratio with respect to each weight.

        Raises
        ------
        DegenerateOptimizationError
            If the portfolio standard deviation is zero.
        """
        w = np.asarray(weights, dtype=float)
        mu = np.asarray(expected_returns, dtype=float)
        cov = np.asarray(cov, dtype=float)

        std = portfolio_risk(w, cov)
        if std == 0.0:
            raise DegenerateOptimizationError("Portfolio variance is zero; gradient undefined.")

        excess = float(mu @ w) - risk_free_rate
        d_std = (cov @ w) / std
        gradient = -(mu * std - excess * d_std) / (std * std)
        return gradient.tolist()

    # ------------------------------------------------------------------ #
    #  Constraint projection
    # ------------------------------------------------------------------ #

    def effective_cap(self, n: int) -> float:
        """
        The cap actually enforced for *n* assets.

        When ``n · max_weight < 1`` no long-only vector can respect the cap
        and still sum to 1, so the best feasible cap is ``1 / n``.
        """
        if n == 0:
            return self.config.max_weight
        return max(self.config.max_weight, 1.0 / n)

    def project(self, weights: Sequence[float]) -> List[float]:
        """
        Map an arbitrary vector onto the feasible set:

        1. clip negatives to 0,
        2. normalise to sum 1 (a zero sum resets to uniform weights),
        3. cap and redistribute the excess,
        4. renormalise away rounding drift.

        The cap is applied to an already-normalised vector, so the final
        renormalisation only removes drift and every output weight stays
        at or below the cap, whatever the input's scale.
        """
        n = len(weights)
        if n == 0:
            return []

        w = [max(0.0, float(v)) for v in weights]

        total = sum(w)
        if total <= 0.0:
            w = [1.0 / n] * n
        else:
            w = [v / total for v in w]

        w = self.apply_max_weight_constraint(w)

        total = sum(w)
        if total <= 0.0:
            return self.apply_max_weight_constraint([1.0 / n] * n)
        return [v / total for v in w]

    def apply_max_weight_constraint(self, weights: Sequence[float]) -> List[float]:
        """
        Cap every weight and hand the excess, in equal shares, to the assets
        still below the cap.

        Redistribution can push a receiving asset over the cap, so the pass
        repeats until no weight exceeds it. Every pass pins at least one more
        asset to the cap, and ``max_redistribution_passes`` bounds the loop
        for pathological input.
        """
        w = [float(v) for v in weights]
        cap = self.effective_cap(len(w))

        for _ in range(self.config.max_redistribution_passes):
            excess = 0.0
            violated = False
            for i, v in enumerate(w):
                if v > cap + _EPS:
                    excess += v - cap
                    w[i] = cap
                    violated = True

            if not violated:
                return w

            free = [i for i, v in enumerate(w) if v < cap - _EPS]
            if not free:
                # Everything sits at the cap; the excess has nowhere to go
                return w

            share = excess / len(free)
            for i in free:
                w[i] += share
        else:
            logger.warning(
                "Weight redistribution hit the %d-pass guard; clamping remaining excess.",
                self.config.max_redistribution_passes,
            )

        return [min(v, cap) for v in w]


def optimize(
    assets: Sequence[AssetSeries],
    risk_free_rate: float = RISK_FREE_RATE,
    config: Optional[OptimizerConfig] = None,
) -> OptimizationOutcome:
    """Module-level convenience wrapper around :class:`MeanVarianceOptimizer`."""
    return MeanVarianceOptimizer(config).optimize(assets, risk_free_rate)
