"""
Agent state store.

Holds each agent's collateral and positions. The RiskGate reads the
wallet before every order attempt; only a confirmed fill changes it.
apply_fill is idempotent per order id, so a fill reported twice (once by
the gate, once by reconciliation) is applied exactly once.
"""
from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Dict, Optional, Protocol, runtime_checkable

from .database import Database
from .models import AgentWallet, Fill, PositionHolding

logger = logging.getLogger(__name__)


@runtime_checkable
class AgentStateStore(Protocol):
    """Storage contract used by the gate and the engine."""

    async def get_wallet(self, agent_id: str) -> AgentWallet:
        """Current wallet projection (zero balance if the agent is unknown)."""
        ...

    async def apply_fill(self, fill: Fill) -> bool:
        """Apply a confirmed fill. Returns False if this order id was already applied."""
        ...

    async def set_collateral(self, agent_id: str, balance: Decimal) -> None:
        """Overwrite collateral, e.g. after syncing with the exchange."""
        ...

    async def ensure_wallet(self, agent_id: str, starting_balance: Decimal) -> AgentWallet:
        """Create the wallet with starting_balance if it does not exist."""
        ...


def apply_fill_to_wallet(wallet: AgentWallet, fill: Fill) -> AgentWallet:
    """
    Pure fill arithmetic.

    BUY:  collateral -= size x price, position grows, average entry is
          the size-weighted mean of old and new.
    SELL: collateral += size x price, position shrinks (never below 0),
          average entry is unchanged.
    """
    positions = dict(wallet.positions)
    holding = positions.get(fill.token_id) or PositionHolding(token_id=fill.token_id)

    if fill.side == "BUY":
        collateral = wallet.collateral_balance - fill.notional
        new_size = holding.size + fill.size
        avg = (
            (holding.cost_basis + fill.notional) / new_size
            if new_size > 0
            else Decimal("0")
        )
        positions[fill.token_id] = PositionHolding(
            token_id=fill.token_id, size=new_size, avg_entry_price=avg
        )
    else:
        collateral = wallet.collateral_balance + fill.notional
        new_size = max(holding.size - fill.size, Decimal("0"))
        if new_size > 0:
            positions[fill.token_id] = PositionHolding(
                token_id=fill.token_id,
                size=new_size,
                avg_entry_price=holding.avg_entry_price,
            )
        else:
            positions.pop(fill.token_id, None)

    return AgentWallet(
        agent_id=wallet.agent_id,
        collateral_balance=collateral,
        positions=positions,
    )


class InMemoryAgentStateStore:
    """
    Process-local store with the same contract as the Postgres store.

    Used for paper trading without a database, and in tests.
    """

    def __init__(self) -> None:
        self._wallets: Dict[str, AgentWallet] = {}
        self._applied: Dict[str, Fill] = {}
        self._lock = asyncio.Lock()

    async def get_wallet(self, agent_id: str) -> AgentWallet:
        return self._wallets.get(agent_id) or AgentWallet(agent_id=agent_id)

    async def apply_fill(self, fill: Fill) -> bool:
        async with self._lock:
            if fill.order_id in self._applied:
                logger.debug(f"Fill for order {fill.order_id} already applied")
                return False
            wallet = await self.get_wallet(fill.agent_id)
            self._wallets[fill.agent_id] = apply_fill_to_wallet(wallet, fill)
            self._applied[fill.order_id] = fill
        logger.info(
            f"Applied {fill.side} fill {fill.order_id}: {fill.size} {fill.token_id} @ {fill.price}"
        )
        return True

    async def set_collateral(self, agent_id: str, balance: Decimal) -> None:
        async with self._lock:
            wallet = await self.get_wallet(agent_id)
            self._wallets[agent_id] = wallet.model_copy(update={"collateral_balance": balance})

    async def ensure_wallet(self, agent_id: str, starting_balance: Decimal) -> AgentWallet:
        async with self._lock:
            if agent_id not in self._wallets:
                self._wallets[agent_id] = AgentWallet(
                    agent_id=agent_id, collateral_balance=starting_balance
                )
            return self._wallets[agent_id]

    def get_fill(self, order_id: str) -> Optional[Fill]:
        return self._applied.get(order_id)


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS agent_wallets (
        agent_id TEXT PRIMARY KEY,
        collateral_balance NUMERIC NOT NULL DEFAULT 0,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS agent_positions (
        agent_id TEXT NOT NULL,
        token_id TEXT NOT NULL,
        size NUMERIC NOT NULL DEFAULT 0,
        avg_entry_price NUMERIC NOT NULL DEFAULT 0,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        PRIMARY KEY (agent_id, token_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS agent_fills (
        order_id TEXT PRIMARY KEY,
        agent_id TEXT NOT NULL,
        token_id TEXT NOT NULL,
        side TEXT NOT NULL,
        size NUMERIC NOT NULL,
        price NUMERIC NOT NULL,
        applied_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
)


class PostgresAgentStateStore:
    """
    AgentStateStore backed by PostgreSQL.

    Fill idempotence is enforced by the agent_fills primary key: the
    insert runs first inside the transaction, and a conflict means the
    fill was already applied.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def ensure_schema(self) -> None:
        for statement in SCHEMA_STATEMENTS:
            await self._db.execute(statement)

    async def get_wallet(self, agent_id: str) -> AgentWallet:
        balance = await self._db.fetchval(
            "SELECT collateral_balance FROM agent_wallets WHERE agent_id = $1",
            agent_id,
        )
        rows = await self._db.fetch(
            """
            SELECT token_id, size, avg_entry_price
            FROM agent_positions
            WHERE agent_id = $1 AND size > 0
            """,
            agent_id,
        )
        positions = {
            row["token_id"]: PositionHolding(
                token_id=row["token_id"],
                size=Decimal(str(row["size"])),
                avg_entry_price=Decimal(str(row["avg_entry_price"])),
            )
            for row in rows
        }
        return AgentWallet(
            agent_id=agent_id,
            collateral_balance=Decimal(str(balance)) if balance is not None else Decimal("0"),
            positions=positions,
        )

    async def apply_fill(self, fill: Fill) -> bool:
        async with self._db.transaction() as conn:
            inserted = await conn.fetchval(
                """
                INSERT INTO agent_fills (order_id, agent_id, token_id, side, size, price)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (order_id) DO NOTHING
                RETURNING order_id
                """,
                fill.order_id,
                fill.agent_id,
                fill.token_id,
                fill.side,
                fill.size,
                fill.price,
            )
            if inserted is None:
                logger.debug(f"Fill for order {fill.order_id} already applied")
                return False

            await conn.execute(
                """
                INSERT INTO agent_wallets (agent_id) VALUES ($1)
                ON CONFLICT (agent_id) DO NOTHING
                """,
                fill.agent_id,
            )

            if fill.side == "BUY":
                await conn.execute(
                    """
                    UPDATE agent_wallets
                    SET collateral_balance = collateral_balance - $2, updated_at = now()
                    WHERE agent_id = $1
                    """,
                    fill.agent_id,
                    fill.notional,
                )
                await conn.execute(
                    """
                    INSERT INTO agent_positions (agent_id, token_id, size, avg_entry_price)
                    VALUES ($1, $2, $3, $4)
                    ON CONFLICT (agent_id, token_id) DO UPDATE
                    SET avg_entry_price = CASE
                            WHEN agent_positions.size + EXCLUDED.size > 0 THEN
                                (agent_positions.size * agent_positions.avg_entry_price
                                 + EXCLUDED.size * EXCLUDED.avg_entry_price)
                                / (agent_positions.size + EXCLUDED.size)
                            ELSE 0
                        END,
                        size = agent_positions.size + EXCLUDED.size,
                        updated_at = now()
                    """,
                    fill.agent_id,
                    fill.token_id,
                    fill.size,
                    fill.price,
                )
            else:
                await conn.execute(
                    """
                    UPDATE agent_wallets
                    SET collateral_balance = collateral_balance + $2, updated_at = now()
                    WHERE agent_id = $1
                    """,
                    fill.agent_id,
                    fill.notional,
                )
                await conn.execute(
                    """
                    UPDATE agent_positions
                    SET size = GREATEST(size - $3, 0), updated_at = now()
                    WHERE agent_id = $1 AND token_id = $2
                    """,
                    fill.agent_id,
                    fill.token_id,
                    fill.size,
                )
                await conn.execute(
                    "DELETE FROM agent_positions WHERE agent_id = $1 AND token_id = $2 AND size <= 0",
                    fill.agent_id,
                    fill.token_id,
                )

        logger.info(
            f"Applied {fill.side} fill {fill.order_id}: {fill.size} {fill.token_id} @ {fill.price}"
        )
        return True

    async def set_collateral(self, agent_id: str, balance: Decimal) -> None:
        await self._db.execute(
            """
            INSERT INTO agent_wallets (agent_id, collateral_balance) VALUES ($1, $2)
            ON CONFLICT (agent_id) DO UPDATE
            SET collateral_balance = EXCLUDED.collateral_balance, updated_at = now()
            """,
            agent_id,
            balance,
        )

    async def ensure_wallet(self, agent_id: str, starting_balance: Decimal) -> AgentWallet:
        await self._db.execute(
            """
            INSERT INTO agent_wallets (agent_id, collateral_balance) VALUES ($1, $2)
            ON CONFLICT (agent_id) DO NOTHING
            """,
            agent_id,
            starting_balance,
        )
        return await self.get_wallet(agent_id)
