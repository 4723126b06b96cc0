"""
Pydantic models for the agent state store.

IMPORTANT: All monetary fields (balances, prices, sizes) use Decimal for
precision. Models are frozen; the store returns fresh copies and is the
only place state changes.
"""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PositionHolding(BaseModel):
    """Agent holding in one outcome token."""

    model_config = ConfigDict(frozen=True)

    token_id: str
    size: Decimal = Decimal("0")
    avg_entry_price: Decimal = Decimal("0")

    @property
    def cost_basis(self) -> Decimal:
        return self.size * self.avg_entry_price


class AgentWallet(BaseModel):
    """
    Projection of an agent's collateral and positions.

    Read before every order attempt. Only a confirmed fill changes it.
    """

    model_config = ConfigDict(frozen=True)

    agent_id: str
    collateral_balance: Decimal = Decimal("0")
    positions: Dict[str, PositionHolding] = Field(default_factory=dict)

    def held_size(self, token_id: str) -> Decimal:
        """Shares held in a token (0 if none)."""
        holding = self.positions.get(token_id)
        return holding.size if holding is not None else Decimal("0")


class Fill(BaseModel):
    """
    A confirmed execution, applied to the store exactly once per order id.

    BUY fills debit collateral by size x price and grow the position.
    SELL fills credit collateral and shrink it.
    """

    model_config = ConfigDict(frozen=True)

    order_id: str
    agent_id: str
    token_id: str
    side: str
    size: Decimal
    price: Decimal

    @field_validator("side", mode="before")
    @classmethod
    def _normalize_side(cls, value) -> str:
        if isinstance(value, Enum):
            value = value.value
        value = str(value).upper()
        if value not in ("BUY", "SELL"):
            raise ValueError(f"side must be BUY or SELL, got {value!r}")
        return value

    @field_validator("size", "price")
    @classmethod
    def _non_negative(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError(f"must not be negative, got {value}")
        return value

    @property
    def notional(self) -> Decimal:
        return self.size * self.price
