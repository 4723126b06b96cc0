"""
Shared test fixtures for cross-layer tests.

Component fixtures live in src/prediction_agent/{component}/tests/conftest.py.
Nothing here touches the network or a database.
"""
import json
from decimal import Decimal

import pytest

from prediction_agent.storage import InMemoryAgentStateStore


@pytest.fixture
def agent_id():
    """Id of the built-in pamela profile."""
    return "df35947c-da83-0a0a-aa27-c4cc3ec722cd"


@pytest.fixture
async def funded_store(agent_id):
    """In-memory store with 1000 collateral for the test agent."""
    store = InMemoryAgentStateStore()
    await store.ensure_wallet(agent_id, Decimal("1000"))
    return store


@pytest.fixture
def snapshot_file(tmp_path):
    """Write snapshot dicts to a JSON file and return its path."""

    def _write(entries):
        path = tmp_path / "snapshots.json"
        path.write_text(json.dumps(entries))
        return path

    return _write


@pytest.fixture
def cheap_and_rich():
    """One underpriced token (BUY) and one overpriced token (SELL once held)."""
    return [
        {
            "market_id": "mkt_1",
            "token_id": "tok_cheap",
            "price": "0.10",
            "reference_price": "0.40",
            "liquidity": "5000",
            "seconds_to_resolution": 86400,
        },
        {
            "market_id": "mkt_2",
            "token_id": "tok_rich",
            "price": "0.90",
            "reference_price": "0.60",
            "liquidity": "5000",
            "seconds_to_resolution": 86400,
        },
    ]
