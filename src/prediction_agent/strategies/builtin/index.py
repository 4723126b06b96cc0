"""
Index Strategy - Basket rebalancer.

Tracks a named basket of outcome tokens with target weights and emits
rebalancing signals that move the agent's exposure toward those weights.

The index identifier is required. Without it the strategy is inert: it is
still constructed and registered, but evaluate() returns no signals.
"""
from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from ..config import StrategyConfig, StrategyConfigError, StrategyType
from ..protocol import MarketSnapshot
from ..signals import Side, TradeSignal

SIZE_QUANTUM = Decimal("0.01")


def parse_basket(raw: Optional[str]) -> dict[str, Decimal]:
    """
    Parse a basket definition of the form "token_a:0.6,token_b:0.4".

    Weights are normalized to sum to 1.

    Raises:
        StrategyConfigError: On malformed entries or non-positive weights
    """
    if raw is None or not raw.strip():
        return {}

    weights: dict[str, Decimal] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        token_id, sep, weight_raw = entry.rpartition(":")
        if not sep or not token_id:
            raise StrategyConfigError("INDEX_BASKET", raw, f"malformed entry {entry!r}")
        try:
            weight = Decimal(weight_raw)
        except InvalidOperation:
            raise StrategyConfigError("INDEX_BASKET", raw, f"bad weight in {entry!r}") from None
        if weight <= 0:
            raise StrategyConfigError("INDEX_BASKET", raw, f"weight must be positive in {entry!r}")
        weights[token_id.strip()] = weights.get(token_id.strip(), Decimal("0")) + weight

    total = sum(weights.values())
    return {token_id: weight / total for token_id, weight in weights.items()}


class IndexStrategy:
    """
    Rebalances toward target basket weights.

    Configuration:
        index_id: External index identifier (required to trade)
        basket: token_id -> target weight
        capital: Notional allocated to the basket (default 100)
        rebalance_threshold: Minimum drift, as a fraction of capital,
            before a token is rebalanced (default 0.05)

    For each basket token present in the snapshot:
        target  = capital x weight
        current = held_size x price
        drift   = target - current
    A BUY (drift > 0) or SELL (drift < 0) for |drift| / price shares is
    emitted when |drift| / capital >= rebalance_threshold.
    """

    def __init__(
        self,
        index_id: Optional[str] = None,
        basket: Optional[Mapping[str, Decimal]] = None,
        capital: Decimal = Decimal("100"),
        rebalance_threshold: Decimal = Decimal("0.05"),
    ) -> None:
        if capital <= 0:
            raise StrategyConfigError("INDEX_CAPITAL", capital, "must be positive")
        if rebalance_threshold < 0:
            raise StrategyConfigError(
                "INDEX_REBALANCE_THRESHOLD", rebalance_threshold, "must not be negative"
            )

        self._index_id = index_id
        self._basket = MappingProxyType(dict(basket or {}))
        self._capital = capital
        self._rebalance_threshold = rebalance_threshold

    @classmethod
    def from_config(cls, config: StrategyConfig) -> "IndexStrategy":
        return cls(
            index_id=config.get_str("SPMC_INDEX_ID"),
            basket=parse_basket(config.get_str("INDEX_BASKET")),
            capital=config.get_decimal("INDEX_CAPITAL", Decimal("100")),
            rebalance_threshold=config.get_decimal("INDEX_REBALANCE_THRESHOLD", Decimal("0.05")),
        )

    @property
    def name(self) -> str:
        """Strategy identifier."""
        return StrategyType.INDEX.strategy_name

    @property
    def index_id(self) -> Optional[str]:
        return self._index_id

    @property
    def basket(self) -> Mapping[str, Decimal]:
        return self._basket

    @property
    def is_active(self) -> bool:
        """False when the strategy will never emit (no index id or empty basket)."""
        return bool(self._index_id) and bool(self._basket)

    def evaluate(self, snapshots: Sequence[MarketSnapshot]) -> list[TradeSignal]:
        if not self.is_active:
            return []

        signals = []
        for snapshot in snapshots:
            weight = self._basket.get(snapshot.token_id)
            if weight is None or snapshot.price <= 0:
                continue

            target = self._capital * weight
            current = snapshot.held_size * snapshot.price
            drift = target - current

            if abs(drift) / self._capital < self._rebalance_threshold:
                continue

            size = (abs(drift) / snapshot.price).quantize(SIZE_QUANTUM, rounding=ROUND_DOWN)
            if drift < 0:
                side = Side.SELL
                size = min(size, snapshot.held_size)
            else:
                side = Side.BUY
            if size <= 0:
                continue

            signals.append(
                TradeSignal(
                    strategy_name=self.name,
                    token_id=snapshot.token_id,
                    side=side,
                    size=size,
                    limit_price=snapshot.price,
                    confidence=min(1.0, float(abs(drift) / self._capital)),
                    rationale=(
                        f"Index {self._index_id}: target {target:.2f}, "
                        f"current {current:.2f}, drift {drift:.2f}"
                    ),
                )
            )

        return signals

    def __repr__(self) -> str:
        return (
            f"IndexStrategy("
            f"index_id={self._index_id!r}, "
            f"tokens={len(self._basket)}, "
            f"capital={self._capital})"
        )
