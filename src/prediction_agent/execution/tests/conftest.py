"""
Execution layer test fixtures.

The exchange is mocked; the state store is the real in-memory store so
fills and balances can be asserted directly.
"""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from prediction_agent.execution import (
    ExchangeClient,
    ExchangeOrderStatus,
    ExchangeReport,
    GateConfig,
    RiskGate,
)
from prediction_agent.storage import InMemoryAgentStateStore
from prediction_agent.strategies import Side, TradeSignal

AGENT_ID = "agent_test"


def filled_report(intent, order_id=None):
    return ExchangeReport(
        status=ExchangeOrderStatus.FILLED,
        order_id=order_id or f"order_{intent.intent_id[:12]}",
        filled_size=intent.size,
        avg_price=intent.limit_price,
    )


@pytest.fixture
def make_signal():
    """Factory for trade signals."""

    def _make(token_id="tok_a", side=Side.BUY, size="10", price="0.50", strategy="SimpleThresholdStrategy"):
        return TradeSignal(
            strategy_name=strategy,
            token_id=token_id,
            side=side,
            size=Decimal(size),
            limit_price=Decimal(price),
            confidence=0.8,
        )

    return _make


@pytest.fixture
def mock_exchange():
    """Mock exchange that validates every market and fills immediately."""
    exchange = AsyncMock(spec=ExchangeClient)
    exchange.validate_market.return_value = True
    exchange.get_balance.return_value = Decimal("1000")

    async def _fill(intent):
        return filled_report(intent)

    exchange.submit_order.side_effect = _fill
    return exchange


@pytest.fixture
async def store():
    store = InMemoryAgentStateStore()
    await store.ensure_wallet(AGENT_ID, Decimal("1000"))
    return store


@pytest.fixture
def gate_config():
    return GateConfig(max_position_notional=Decimal("100"), order_timeout_seconds=0.5)


@pytest.fixture
def gate(mock_exchange, store, gate_config):
    return RiskGate(mock_exchange, store, agent_id=AGENT_ID, config=gate_config)


@pytest.fixture
def mock_clob_client():
    """Mock py-clob-client with only the methods the exchange client calls."""

    class CLOBClientSpec:
        def create_and_post_order(self, order_args):
            pass

        def get_balance_allowance(self, params):
            pass

        def get_order(self, order_id):
            pass

        def get_order_book(self, token_id):
            pass

        def get_orders(self, params):
            pass

        def get_trades(self, params):
            pass

    client = MagicMock(spec=CLOBClientSpec)
    client.create_and_post_order.return_value = {
        "success": True,
        "errorMsg": "",
        "orderID": "order_123",
        "status": "live",
    }
    # 1000 USDC in micro-units
    client.get_balance_allowance.return_value = {"balance": "1000000000"}
    client.get_order.return_value = {
        "id": "order_123",
        "status": "MATCHED",
        "original_size": "10",
        "size_matched": "10",
        "price": "0.5",
    }
    client.get_order_book.return_value = {"bids": [], "asks": []}
    client.get_orders.return_value = []
    client.get_trades.return_value = []
    return client
