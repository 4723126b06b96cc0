"""
Simple Threshold Strategy - Baseline strategy.

Buys cheap tokens and sells expensive ones, but only when the observed
price is far enough from the reference fair price to be worth trading.
The min_edge gate keeps the strategy from churning on noise.

Signal Logic:
    - BUY:  price <= buy_threshold  AND fair - price >= min_edge
    - SELL: price >= sell_threshold AND price - fair >= min_edge,
            only for a held token, capped at the holding
    - nothing otherwise
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Sequence

from ..config import StrategyConfig, StrategyConfigError, StrategyType
from ..filters import apply_snapshot_filters
from ..protocol import MarketSnapshot
from ..signals import Side, TradeSignal


class SimpleThresholdStrategy:
    """
    Threshold trader with an edge requirement.

    Configuration:
        buy_threshold: Buy at or below this price (default 0.30)
        sell_threshold: Sell at or above this price (default 0.70)
        min_edge: Minimum |fair - price| to act (default 0.10)
        order_size: Shares per signal (default 10)

    The fair price is the snapshot's reference price, falling back to its
    implied probability when no reference was supplied.
    """

    def __init__(
        self,
        buy_threshold: Decimal = Decimal("0.30"),
        sell_threshold: Decimal = Decimal("0.70"),
        min_edge: Decimal = Decimal("0.10"),
        order_size: Decimal = Decimal("10"),
    ) -> None:
        if buy_threshold >= sell_threshold:
            raise StrategyConfigError(
                "SIMPLE_BUY_THRESHOLD",
                buy_threshold,
                f"must be below sell threshold {sell_threshold}",
            )
        if min_edge < 0:
            raise StrategyConfigError("SIMPLE_MIN_EDGE", min_edge, "must not be negative")
        if order_size <= 0:
            raise StrategyConfigError("SIMPLE_ORDER_SIZE", order_size, "must be positive")

        self._buy_threshold = buy_threshold
        self._sell_threshold = sell_threshold
        self._min_edge = min_edge
        self._order_size = order_size

    @classmethod
    def from_config(cls, config: StrategyConfig) -> "SimpleThresholdStrategy":
        return cls(
            buy_threshold=config.get_decimal("SIMPLE_BUY_THRESHOLD", Decimal("0.30")),
            sell_threshold=config.get_decimal("SIMPLE_SELL_THRESHOLD", Decimal("0.70")),
            min_edge=config.get_decimal("SIMPLE_MIN_EDGE", Decimal("0.10")),
            order_size=config.get_decimal("SIMPLE_ORDER_SIZE", Decimal("10")),
        )

    @property
    def name(self) -> str:
        """Strategy identifier."""
        return StrategyType.SIMPLE_THRESHOLD.strategy_name

    def evaluate(self, snapshots: Sequence[MarketSnapshot]) -> list[TradeSignal]:
        signals = []
        for snapshot in snapshots:
            should_skip, _ = apply_snapshot_filters(snapshot)
            if should_skip:
                continue

            signal = self._evaluate_one(snapshot)
            if signal is not None:
                signals.append(signal)
        return signals

    def _evaluate_one(self, snapshot: MarketSnapshot) -> Optional[TradeSignal]:
        fair = snapshot.fair_price
        price = snapshot.price

        if price <= self._buy_threshold:
            edge = fair - price
            if edge >= self._min_edge:
                return TradeSignal(
                    strategy_name=self.name,
                    token_id=snapshot.token_id,
                    side=Side.BUY,
                    size=self._order_size,
                    limit_price=price,
                    confidence=self._confidence(edge),
                    rationale=f"Price {price} <= {self._buy_threshold}, edge {edge} vs fair {fair}",
                )

        elif price >= self._sell_threshold and snapshot.held_size > 0:
            edge = price - fair
            if edge >= self._min_edge:
                return TradeSignal(
                    strategy_name=self.name,
                    token_id=snapshot.token_id,
                    side=Side.SELL,
                    size=min(self._order_size, snapshot.held_size),
                    limit_price=price,
                    confidence=self._confidence(edge),
                    rationale=f"Price {price} >= {self._sell_threshold}, edge {edge} vs fair {fair}",
                )

        return None

    def _confidence(self, edge: Decimal) -> float:
        # 0.5 at exactly min_edge, saturating at twice min_edge
        if self._min_edge == 0:
            return 1.0
        return min(1.0, float(edge / self._min_edge) / 2)

    def __repr__(self) -> str:
        return (
            f"SimpleThresholdStrategy("
            f"buy={self._buy_threshold}, "
            f"sell={self._sell_threshold}, "
            f"min_edge={self._min_edge})"
        )
