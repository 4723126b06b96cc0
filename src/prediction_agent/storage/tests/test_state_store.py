"""
Tests for the agent state store.

Collateral changes only through fills, and each order id is applied
at most once.
"""
from decimal import Decimal

import pytest

from prediction_agent.storage import (
    AgentWallet,
    DatabaseConfig,
    Fill,
    PositionHolding,
    PostgresAgentStateStore,
    apply_fill_to_wallet,
)


def buy(order_id="order_1", size="10", price="0.40", token_id="tok_a"):
    return Fill(
        order_id=order_id,
        agent_id="agent_1",
        token_id=token_id,
        side="BUY",
        size=Decimal(size),
        price=Decimal(price),
    )


def sell(order_id="order_2", size="4", price="0.60", token_id="tok_a"):
    return Fill(
        order_id=order_id,
        agent_id="agent_1",
        token_id=token_id,
        side="SELL",
        size=Decimal(size),
        price=Decimal(price),
    )


class TestFillArithmetic:
    """Tests for the pure fill application."""

    def test_buy_debits_collateral(self):
        wallet = AgentWallet(agent_id="agent_1", collateral_balance=Decimal("100"))

        updated = apply_fill_to_wallet(wallet, buy())

        assert updated.collateral_balance == Decimal("96.00")
        assert updated.held_size("tok_a") == Decimal("10")
        assert updated.positions["tok_a"].avg_entry_price == Decimal("0.40")

    def test_buy_averages_entry_price(self):
        wallet = AgentWallet(
            agent_id="agent_1",
            collateral_balance=Decimal("100"),
            positions={
                "tok_a": PositionHolding(
                    token_id="tok_a", size=Decimal("10"), avg_entry_price=Decimal("0.20")
                )
            },
        )

        updated = apply_fill_to_wallet(wallet, buy(size="10", price="0.40"))

        assert updated.positions["tok_a"].avg_entry_price == Decimal("0.30")

    def test_sell_credits_collateral_and_shrinks_position(self):
        wallet = apply_fill_to_wallet(
            AgentWallet(agent_id="agent_1", collateral_balance=Decimal("100")), buy()
        )

        updated = apply_fill_to_wallet(wallet, sell())

        assert updated.collateral_balance == Decimal("98.40")
        assert updated.held_size("tok_a") == Decimal("6")

    def test_selling_everything_removes_position(self):
        wallet = apply_fill_to_wallet(
            AgentWallet(agent_id="agent_1", collateral_balance=Decimal("100")), buy()
        )

        updated = apply_fill_to_wallet(wallet, sell(size="10"))

        assert "tok_a" not in updated.positions

    def test_original_wallet_untouched(self):
        wallet = AgentWallet(agent_id="agent_1", collateral_balance=Decimal("100"))

        apply_fill_to_wallet(wallet, buy())

        assert wallet.collateral_balance == Decimal("100")
        assert wallet.positions == {}

    def test_fill_rejects_bad_side(self):
        with pytest.raises(ValueError):
            Fill(
                order_id="o", agent_id="a", token_id="t", side="HOLD",
                size=Decimal("1"), price=Decimal("0.5"),
            )


@pytest.mark.asyncio
class TestInMemoryStore:
    """Tests for the in-memory store."""

    async def test_unknown_agent_has_empty_wallet(self, memory_store):
        wallet = await memory_store.get_wallet("nobody")

        assert wallet.collateral_balance == Decimal("0")
        assert wallet.positions == {}

    async def test_apply_fill_is_idempotent(self, memory_store):
        """The same order id applied twice changes the wallet once."""
        await memory_store.ensure_wallet("agent_1", Decimal("100"))

        first = await memory_store.apply_fill(buy())
        second = await memory_store.apply_fill(buy())

        wallet = await memory_store.get_wallet("agent_1")
        assert first is True
        assert second is False
        assert wallet.collateral_balance == Decimal("96.00")
        assert wallet.held_size("tok_a") == Decimal("10")

    async def test_ensure_wallet_does_not_reset(self, memory_store):
        await memory_store.ensure_wallet("agent_1", Decimal("100"))
        await memory_store.apply_fill(buy())

        wallet = await memory_store.ensure_wallet("agent_1", Decimal("100"))

        assert wallet.collateral_balance == Decimal("96.00")

    async def test_set_collateral_keeps_positions(self, memory_store):
        await memory_store.ensure_wallet("agent_1", Decimal("100"))
        await memory_store.apply_fill(buy())

        await memory_store.set_collateral("agent_1", Decimal("500"))

        wallet = await memory_store.get_wallet("agent_1")
        assert wallet.collateral_balance == Decimal("500")
        assert wallet.held_size("tok_a") == Decimal("10")


@pytest.mark.asyncio
class TestPostgresStore:
    """Tests for the Postgres store against a mocked database."""

    async def test_get_wallet_maps_rows(self, mock_db):
        mock_db.fetchval.return_value = Decimal("42.5")
        mock_db.fetch.return_value = [
            {"token_id": "tok_a", "size": Decimal("3"), "avg_entry_price": Decimal("0.25")}
        ]
        store = PostgresAgentStateStore(mock_db)

        wallet = await store.get_wallet("agent_1")

        assert wallet.collateral_balance == Decimal("42.5")
        assert wallet.held_size("tok_a") == Decimal("3")

    async def test_get_wallet_defaults_to_zero(self, mock_db):
        store = PostgresAgentStateStore(mock_db)

        wallet = await store.get_wallet("agent_1")

        assert wallet.collateral_balance == Decimal("0")

    async def test_apply_fill_updates_wallet_and_position(self, mock_db):
        store = PostgresAgentStateStore(mock_db)

        applied = await store.apply_fill(buy())

        conn = mock_db._mock_conn
        assert applied is True
        statements = [call.args[0] for call in conn.execute.call_args_list]
        assert any("collateral_balance - $2" in sql for sql in statements)
        assert any("INSERT INTO agent_positions" in sql for sql in statements)

    async def test_duplicate_fill_is_skipped(self, mock_db):
        """A conflicting agent_fills insert means the fill was already applied."""
        mock_db._mock_conn.fetchval.return_value = None
        store = PostgresAgentStateStore(mock_db)

        applied = await store.apply_fill(buy())

        assert applied is False
        mock_db._mock_conn.execute.assert_not_called()

    async def test_sell_credits_collateral(self, mock_db):
        store = PostgresAgentStateStore(mock_db)

        await store.apply_fill(sell())

        statements = [call.args[0] for call in mock_db._mock_conn.execute.call_args_list]
        assert any("collateral_balance + $2" in sql for sql in statements)
        assert any("DELETE FROM agent_positions" in sql for sql in statements)

    async def test_ensure_schema_creates_tables(self, mock_db):
        store = PostgresAgentStateStore(mock_db)

        await store.ensure_schema()

        statements = " ".join(call.args[0] for call in mock_db.execute.call_args_list)
        for table in ("agent_wallets", "agent_positions", "agent_fills"):
            assert f"CREATE TABLE IF NOT EXISTS {table}" in statements


class TestDatabaseConfig:
    def test_from_env_requires_url(self):
        assert DatabaseConfig.from_env({}) is None
        assert DatabaseConfig.from_env({"DATABASE_URL": "  "}) is None

    def test_from_env(self):
        config = DatabaseConfig.from_env({"DATABASE_URL": "postgresql://a:b@localhost/c"})

        assert config.url == "postgresql://a:b@localhost/c"
        assert config.max_connections == 5
