"""
Storage Layer - Agent wallet and position persistence.

    - Database / DatabaseConfig: asyncpg pool with reconnect and retry
    - AgentWallet, PositionHolding, Fill: Pydantic models (Decimal money)
    - AgentStateStore: Protocol used by the gate and engine
    - PostgresAgentStateStore: Production store
    - InMemoryAgentStateStore: Paper trading and tests
"""
from .database import Database, DatabaseConfig
from .models import AgentWallet, Fill, PositionHolding
from .state_store import (
    AgentStateStore,
    InMemoryAgentStateStore,
    PostgresAgentStateStore,
    apply_fill_to_wallet,
)

__all__ = [
    "Database",
    "DatabaseConfig",
    "AgentWallet",
    "PositionHolding",
    "Fill",
    "AgentStateStore",
    "InMemoryAgentStateStore",
    "PostgresAgentStateStore",
    "apply_fill_to_wallet",
]
