"""
Test fixtures for the ingestion layer.

IMPORTANT: All external API calls must be mocked.
Never hit real Polymarket APIs in tests.
"""
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from prediction_agent.ingestion import PolymarketRestClient


@pytest.fixture
def now():
    """Current time in UTC."""
    return datetime.now(timezone.utc)


@pytest.fixture
def gamma_market(now):
    """A raw Gamma market as returned by /markets."""
    return {
        "conditionId": "0xabc123",
        "question": "Will it rain tomorrow?",
        "slug": "will-it-rain-tomorrow",
        "endDate": (now + timedelta(days=2)).isoformat().replace("+00:00", "Z"),
        "clobTokenIds": json.dumps(["tok_yes", "tok_no"]),
        "outcomes": json.dumps(["Yes", "No"]),
        "outcomePrices": json.dumps(["0.62", "0.38"]),
        "liquidityNum": 12500.5,
        "volume24hr": 830.25,
        "active": True,
    }


@pytest.fixture
def client():
    """REST client with no retry delay."""
    return PolymarketRestClient(session=MagicMock(), retry_delay=0.0, rate_limit=1000)


def make_response(status: int, payload=None, text: str = "") -> MagicMock:
    """aiohttp-style response usable as an async context manager."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)
    response.text = AsyncMock(return_value=text)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


@pytest.fixture
def response_factory():
    return make_response
