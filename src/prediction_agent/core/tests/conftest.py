"""
Core layer test fixtures.

Core tests verify orchestration logic, so the data source is mocked and
the gate runs against the paper exchange and the in-memory store.
"""
from decimal import Decimal
from typing import Optional, Sequence
from unittest.mock import AsyncMock

import pytest

from prediction_agent.core import EngineConfig, StrategyOrchestrator, TradingEngine
from prediction_agent.execution import GateConfig, PaperExchangeClient, RiskGate
from prediction_agent.ingestion import MarketDataSource
from prediction_agent.storage import InMemoryAgentStateStore
from prediction_agent.strategies import MarketSnapshot, Side, TradeSignal

AGENT_ID = "agent_core"


class StaticStrategy:
    """Strategy returning a fixed list of signals, or raising."""

    def __init__(
        self,
        name: str,
        signals: Sequence[TradeSignal] = (),
        error: Optional[Exception] = None,
    ) -> None:
        self._name = name
        self._signals = list(signals)
        self._error = error
        self.seen: list = []

    @property
    def name(self) -> str:
        return self._name

    def evaluate(self, snapshots):
        self.seen.append(snapshots)
        if self._error is not None:
            raise self._error
        return list(self._signals)


def make_signal(
    strategy_name: str = "StaticStrategy",
    token_id: str = "tok_a",
    side: Side = Side.BUY,
    size: str = "10",
    limit_price: str = "0.50",
) -> TradeSignal:
    return TradeSignal(
        strategy_name=strategy_name,
        token_id=token_id,
        side=side,
        size=Decimal(size),
        limit_price=Decimal(limit_price),
        confidence=0.9,
    )


def make_snapshot(token_id: str = "tok_a", price: str = "0.50") -> MarketSnapshot:
    return MarketSnapshot(
        market_id="mkt_1",
        token_id=token_id,
        outcome="Yes",
        price=Decimal(price),
        implied_probability=float(price),
        liquidity=Decimal("5000"),
        seconds_to_resolution=86400.0,
    )


@pytest.fixture
def static_strategy():
    return StaticStrategy


@pytest.fixture
def signal_factory():
    return make_signal


@pytest.fixture
def snapshot_factory():
    return make_snapshot


@pytest.fixture
def mock_source():
    """Data source returning two snapshots."""
    source = AsyncMock(spec=MarketDataSource)
    source.fetch_snapshots = AsyncMock(
        return_value=[make_snapshot("tok_a"), make_snapshot("tok_b", "0.20")]
    )
    return source


@pytest.fixture
async def store():
    store = InMemoryAgentStateStore()
    await store.ensure_wallet(AGENT_ID, Decimal("1000"))
    return store


@pytest.fixture
def gate(store):
    return RiskGate(
        exchange=PaperExchangeClient(),
        store=store,
        agent_id=AGENT_ID,
        config=GateConfig(max_position_notional=Decimal("100"), order_timeout_seconds=0.5),
    )


@pytest.fixture
def engine_factory(mock_source, gate, store):
    """Build an engine around the given strategies."""

    def _build(*strategies, source=None) -> TradingEngine:
        return TradingEngine(
            config=EngineConfig(agent_id=AGENT_ID),
            source=source or mock_source,
            orchestrator=StrategyOrchestrator(strategies),
            gate=gate,
            store=store,
        )

    return _build
