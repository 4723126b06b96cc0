"""
Trade signals emitted by strategies.

A signal is a proposed, not-yet-validated trade. Strategies produce them,
the orchestrator collects them, and only the RiskGate may turn one into
an order.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class Side(str, Enum):
    """Order side."""

    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class TradeSignal:
    """
    A proposed trade from exactly one strategy.

    Attributes:
        strategy_name: Name of the emitting strategy
        token_id: Outcome token to trade
        side: BUY or SELL
        size: Number of shares
        limit_price: Worst acceptable price per share (0..1)
        confidence: Strategy confidence in [0, 1]
        rationale: Human-readable explanation
    """

    strategy_name: str
    token_id: str
    side: Side
    size: Decimal
    limit_price: Decimal
    confidence: float
    rationale: str = ""

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError(f"Signal size must be positive, got {self.size}")
        if not (Decimal("0") <= self.limit_price <= Decimal("1")):
            raise ValueError(f"Limit price must be between 0 and 1, got {self.limit_price}")
        if not (0.0 <= self.confidence <= 1.0):
            raise ValueError(f"Confidence must be between 0 and 1, got {self.confidence}")

    @property
    def notional(self) -> Decimal:
        """Monetary exposure of the signal (size x limit price)."""
        return self.size * self.limit_price
