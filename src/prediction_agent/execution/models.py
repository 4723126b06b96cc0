"""
Execution layer data types.

OrderOutcome is the closed set of terminal answers the RiskGate gives
for a signal. Rejections are ordinary return values, never exceptions.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from prediction_agent.storage.models import Fill
from prediction_agent.strategies import Side, TradeSignal


class OrderOutcome(Enum):
    """Result of pushing one signal through the gate."""

    FILLED = "filled"
    EXCHANGE_REJECTED = "exchange_rejected"
    INDETERMINATE = "indeterminate"
    MARKET_INVALID = "market_invalid"
    DUPLICATE_IN_FLIGHT = "duplicate_in_flight"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    POSITION_LIMIT_EXCEEDED = "position_limit_exceeded"

    @property
    def submitted(self) -> bool:
        """True if an order reached the exchange."""
        return self in (
            OrderOutcome.FILLED,
            OrderOutcome.EXCHANGE_REJECTED,
            OrderOutcome.INDETERMINATE,
        )


class ExchangeOrderStatus(Enum):
    """Order state as reported by the exchange."""

    FILLED = "filled"
    LIVE = "live"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    UNKNOWN = "unknown"

    @property
    def is_final(self) -> bool:
        return self in (
            ExchangeOrderStatus.FILLED,
            ExchangeOrderStatus.CANCELLED,
            ExchangeOrderStatus.REJECTED,
        )


@dataclass(frozen=True)
class OrderIntent:
    """
    A signal approved by the RiskGate.

    Created only by the gate. Once submitted it is terminal and is never
    resubmitted automatically.
    """

    strategy_name: str
    token_id: str
    side: Side
    size: Decimal
    limit_price: Decimal
    intent_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    approved_by: str = "RiskGate"
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_signal(cls, signal: TradeSignal) -> "OrderIntent":
        return cls(
            strategy_name=signal.strategy_name,
            token_id=signal.token_id,
            side=signal.side,
            size=signal.size,
            limit_price=signal.limit_price,
        )

    @property
    def notional(self) -> Decimal:
        return self.size * self.limit_price


@dataclass(frozen=True)
class ExchangeReport:
    """What the exchange told us about an order."""

    status: ExchangeOrderStatus
    order_id: Optional[str] = None
    filled_size: Decimal = Decimal("0")
    avg_price: Optional[Decimal] = None
    reason: str = ""


@dataclass(frozen=True)
class OrderResult:
    """
    Terminal result for one signal.

    Attributes:
        outcome: Which gate step decided the signal
        signal: The signal that was evaluated
        intent: Approved intent, if the signal got that far
        order_id: Exchange order id, if one was assigned
        reason: Human-readable explanation (provider reason on rejection)
        fill: The fill applied to the store, for FILLED results
    """

    outcome: OrderOutcome
    signal: TradeSignal
    intent: Optional[OrderIntent] = None
    order_id: Optional[str] = None
    reason: str = ""
    fill: Optional[Fill] = None

    @property
    def accepted(self) -> bool:
        return self.outcome is OrderOutcome.FILLED
