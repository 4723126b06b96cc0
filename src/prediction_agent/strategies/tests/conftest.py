"""
Strategy layer test fixtures.

Strategies are pure, so nothing here is mocked: fixtures build
snapshots and settings directly.
"""
from decimal import Decimal

import pytest

from prediction_agent.strategies import MarketSnapshot, StrategySettings


def make_snapshot(**overrides) -> MarketSnapshot:
    """Snapshot with sensible defaults; override any field by keyword."""
    fields = dict(
        market_id="mkt_1",
        token_id="tok_yes",
        outcome="Yes",
        price=Decimal("0.50"),
        implied_probability=0.50,
        liquidity=Decimal("5000"),
        seconds_to_resolution=7 * 24 * 3600.0,
        question="Will it happen?",
    )
    fields.update(overrides)
    return MarketSnapshot(**fields)


@pytest.fixture
def snapshot_factory():
    """Factory fixture around make_snapshot."""
    return make_snapshot


@pytest.fixture
def settings_from():
    """Build StrategySettings from a plain dict of environment values."""

    def _build(**env) -> StrategySettings:
        return StrategySettings.from_env({k: str(v) for k, v in env.items()})

    return _build
