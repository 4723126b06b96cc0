"""
Data models for the ingestion layer.

Market and TokenInfo mirror what the Gamma API returns. They are turned
into per-token MarketSnapshots once per cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from prediction_agent.strategies import MarketSnapshot


@dataclass(frozen=True)
class TokenInfo:
    """One outcome token of a market."""
    token_id: str
    outcome: str
    price: Optional[Decimal] = None


@dataclass(frozen=True)
class Market:
    """
    Market metadata from the Gamma API.

    Attributes:
        condition_id: The market's condition ID
        question: Market question text
        slug: URL slug
        end_date: Scheduled resolution time (None if unknown)
        tokens: Outcome tokens with their last prices
        active: Whether the market is open for trading
        liquidity: Book liquidity in USDC
        volume_24h: Trading volume over the last 24 hours
    """
    condition_id: str
    question: str
    slug: str
    end_date: Optional[datetime]
    tokens: list[TokenInfo] = field(default_factory=list)
    active: bool = True
    category: Optional[str] = None
    liquidity: Decimal = Decimal("0")
    volume_24h: Optional[Decimal] = None

    def seconds_to_resolution(self, now: Optional[datetime] = None) -> Optional[float]:
        if self.end_date is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (self.end_date - now).total_seconds()

    def to_snapshots(self, now: Optional[datetime] = None) -> list[MarketSnapshot]:
        """
        One snapshot per priced token.

        Tokens without a price, or markets without an end date, are
        skipped; implied probability is taken from the token price.
        """
        remaining = self.seconds_to_resolution(now)
        if remaining is None:
            return []

        snapshots = []
        for token in self.tokens:
            if token.price is None or not (Decimal("0") <= token.price <= Decimal("1")):
                continue
            snapshots.append(
                MarketSnapshot(
                    market_id=self.condition_id,
                    token_id=token.token_id,
                    outcome=token.outcome,
                    price=token.price,
                    implied_probability=float(token.price),
                    liquidity=self.liquidity,
                    seconds_to_resolution=remaining,
                    question=self.question,
                    volume_24h=self.volume_24h,
                )
            )
        return snapshots
