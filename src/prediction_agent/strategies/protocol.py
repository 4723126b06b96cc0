"""
Strategy protocol and snapshot definitions.

Strategies are pure logic - they receive an immutable tuple of
MarketSnapshots and return zero or more TradeSignals.
No database access, no API calls. This makes them trivial to test.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Optional, Protocol, Sequence, runtime_checkable

from .signals import TradeSignal


@dataclass(frozen=True)
class MarketSnapshot:
    """
    State of one outcome token at the start of an evaluation cycle.

    Built fresh every cycle by the MarketDataSource and never mutated.
    The optional fields carry signals extracted upstream (sentiment,
    a reference fair price) and the agent's current holding in the token.
    """

    # Market identification
    market_id: str
    token_id: str
    outcome: str

    # Pricing
    price: Decimal
    implied_probability: float
    liquidity: Decimal
    seconds_to_resolution: float

    # Pre-extracted signals
    question: str = ""
    reference_price: Optional[Decimal] = None
    sentiment: Optional[float] = None  # -1 (bearish) .. 1 (bullish)
    volume_24h: Optional[Decimal] = None

    # Agent holding in this token (filled in by the engine)
    held_size: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if not (Decimal("0") <= self.price <= Decimal("1")):
            raise ValueError(f"Price must be between 0 and 1, got {self.price}")
        if not (0.0 <= self.implied_probability <= 1.0):
            raise ValueError(
                f"Implied probability must be between 0 and 1, got {self.implied_probability}"
            )
        if self.sentiment is not None and not (-1.0 <= self.sentiment <= 1.0):
            raise ValueError(f"Sentiment must be between -1 and 1, got {self.sentiment}")

    @property
    def hours_to_resolution(self) -> float:
        """Hours until the market resolves."""
        return self.seconds_to_resolution / 3600.0

    @property
    def fair_price(self) -> Decimal:
        """Reference price if one was supplied, else the implied probability."""
        if self.reference_price is not None:
            return self.reference_price
        return Decimal(str(self.implied_probability))

    def with_holding(self, held_size: Decimal) -> "MarketSnapshot":
        """Return a copy carrying the agent's current holding."""
        return replace(self, held_size=held_size)


@runtime_checkable
class Strategy(Protocol):
    """
    Protocol that all strategies must implement.

    Strategies are designed to be:
    - Pure: No side effects, no I/O
    - Testable: No mocks needed since there's no I/O
    - Pluggable: New variants are added to the StrategyType dispatch
      table, never by subclassing

    Example implementation:
        class MyStrategy:
            @property
            def name(self) -> str:
                return "MyStrategy"

            def evaluate(self, snapshots):
                return [
                    TradeSignal(...)
                    for s in snapshots
                    if s.price < Decimal("0.1")
                ]
    """

    @property
    def name(self) -> str:
        """
        Unique strategy identifier.

        Used for logging, signal attribution and lookups.
        """
        ...

    def evaluate(self, snapshots: Sequence[MarketSnapshot]) -> list[TradeSignal]:
        """
        Evaluate the snapshots and return trade signals.

        Args:
            snapshots: Immutable market state for this cycle

        Returns:
            Zero or more signals, in emission order
        """
        ...
