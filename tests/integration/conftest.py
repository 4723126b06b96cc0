"""
Integration test fixtures.

These tests wire real components together (file data source, strategies,
gate, paper exchange, in-memory store) to verify cross-layer behaviour.
"""
import pytest

# Mark all tests in this directory as integration tests
pytestmark = pytest.mark.integration


@pytest.fixture
def base_env(snapshot_file, cheap_and_rich, tmp_path):
    """Environment for a dry-run agent trading SimpleThreshold off a snapshot file."""
    return {
        "AGENT_CHARACTER": "pamela",
        "DRY_RUN": "true",
        "SIMPLE_STRATEGY_ENABLED": "true",
        "MARKET_SNAPSHOT_FILE": str(snapshot_file(cheap_and_rich)),
        "POLYMARKET_CREDS_PATH": str(tmp_path / "absent_creds.json"),
        "CONFIG_PATH": str(tmp_path / "absent_config.json"),
    }
