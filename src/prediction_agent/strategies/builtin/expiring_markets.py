"""
Expiring Markets Strategy - Near-certain outcomes close to resolution.

Targets markets that resolve soon and whose outcome is all but decided.
Each outcome token has its own snapshot, so favoring the high-probability
side simply means buying the token whose implied probability clears the
threshold.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from ..config import StrategyConfig, StrategyConfigError, StrategyType
from ..filters import apply_snapshot_filters, check_resolution_window
from ..protocol import MarketSnapshot
from ..signals import Side, TradeSignal


class ExpiringMarketsStrategy:
    """
    Buys near-certain outcomes inside a resolution window.

    Configuration:
        min_probability: Implied probability required (default 0.95)
        min_hours: Earliest resolution considered, in hours (default 1)
        max_hours: Latest resolution considered, in hours (default 48)
        max_price: Never pay more than this (default 0.99)
        order_size: Shares per signal (default 10)

    Signal Logic:
        - BUY: min_hours <= hours_to_resolution <= max_hours
               AND implied_probability >= min_probability
               AND price <= max_price
    """

    def __init__(
        self,
        min_probability: float = 0.95,
        min_hours: float = 1.0,
        max_hours: float = 48.0,
        max_price: Decimal = Decimal("0.99"),
        order_size: Decimal = Decimal("10"),
    ) -> None:
        if not (0.5 < min_probability <= 1.0):
            raise StrategyConfigError(
                "EXPIRING_MIN_PROBABILITY", min_probability, "must be in (0.5, 1]"
            )
        if min_hours < 0 or min_hours > max_hours:
            raise StrategyConfigError(
                "EXPIRING_MIN_HOURS",
                min_hours,
                f"must be between 0 and max hours {max_hours}",
            )
        if order_size <= 0:
            raise StrategyConfigError("EXPIRING_ORDER_SIZE", order_size, "must be positive")

        self._min_probability = min_probability
        self._min_hours = min_hours
        self._max_hours = max_hours
        self._max_price = max_price
        self._order_size = order_size

    @classmethod
    def from_config(cls, config: StrategyConfig) -> "ExpiringMarketsStrategy":
        return cls(
            min_probability=config.get_float("EXPIRING_MIN_PROBABILITY", 0.95),
            min_hours=config.get_float("EXPIRING_MIN_HOURS", 1.0),
            max_hours=config.get_float("EXPIRING_MAX_HOURS", 48.0),
            max_price=config.get_decimal("EXPIRING_MAX_PRICE", Decimal("0.99")),
            order_size=config.get_decimal("EXPIRING_ORDER_SIZE", Decimal("10")),
        )

    @property
    def name(self) -> str:
        """Strategy identifier."""
        return StrategyType.EXPIRING_MARKETS.strategy_name

    def evaluate(self, snapshots: Sequence[MarketSnapshot]) -> list[TradeSignal]:
        signals = []
        for snapshot in snapshots:
            should_skip, _ = apply_snapshot_filters(snapshot)
            if should_skip:
                continue

            in_window, _ = check_resolution_window(
                snapshot.hours_to_resolution, self._min_hours, self._max_hours
            )
            if not in_window:
                continue

            if snapshot.implied_probability < self._min_probability:
                continue

            # Nothing left to earn above max_price
            if snapshot.price > self._max_price:
                continue

            signals.append(
                TradeSignal(
                    strategy_name=self.name,
                    token_id=snapshot.token_id,
                    side=Side.BUY,
                    size=self._order_size,
                    limit_price=snapshot.price,
                    confidence=snapshot.implied_probability,
                    rationale=(
                        f"{snapshot.outcome} at {snapshot.implied_probability:.2%} "
                        f"resolving in {snapshot.hours_to_resolution:.1f}h"
                    ),
                )
            )

        return signals

    def __repr__(self) -> str:
        return (
            f"ExpiringMarketsStrategy("
            f"min_probability={self._min_probability}, "
            f"window=[{self._min_hours}h, {self._max_hours}h])"
        )
