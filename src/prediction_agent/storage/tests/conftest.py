"""
Storage layer test fixtures.

No database is needed: the Postgres store runs against a mocked
Database whose transaction() yields a mocked connection.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from prediction_agent.storage import InMemoryAgentStateStore


@pytest.fixture
def memory_store():
    return InMemoryAgentStateStore()


@pytest.fixture
def mock_db():
    """Mock Database for unit tests."""
    db = AsyncMock()
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=None)

    mock_conn = AsyncMock()
    mock_conn.execute = AsyncMock(return_value="UPDATE 1")
    mock_conn.fetchval = AsyncMock(return_value="order_1")

    class MockTransaction:
        async def __aenter__(self):
            return mock_conn

        async def __aexit__(self, *args):
            return False

    db.transaction = MagicMock(side_effect=lambda: MockTransaction())
    db._mock_conn = mock_conn
    return db
