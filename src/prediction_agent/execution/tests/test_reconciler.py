"""
Tests for reconciliation of indeterminate orders.

A lease held by an INDETERMINATE order is released only once the
exchange reports a final status.
"""
import asyncio
from decimal import Decimal

import pytest

from prediction_agent.execution import (
    ExchangeError,
    ExchangeOrderStatus,
    ExchangeReport,
    GateConfig,
    OrderOutcome,
    Reconciler,
    RiskGate,
)

AGENT_ID = "agent_test"


@pytest.fixture
async def timed_out_gate(mock_exchange, store):
    """Gate with one order for tok_a stuck in flight after a timeout."""

    async def hang(intent):
        await asyncio.sleep(10)

    mock_exchange.submit_order.side_effect = hang
    gate = RiskGate(
        mock_exchange, store, agent_id=AGENT_ID,
        config=GateConfig(order_timeout_seconds=0.01),
    )
    return gate


async def submit_stuck(gate, make_signal):
    result = await gate.submit(make_signal(size="10", price="0.50"))
    assert result.outcome is OrderOutcome.INDETERMINATE
    return result


@pytest.mark.asyncio
class TestReconcile:
    async def test_fill_found_later_is_applied(self, timed_out_gate, mock_exchange, store, make_signal):
        await submit_stuck(timed_out_gate, make_signal)
        mock_exchange.get_order_status.return_value = ExchangeReport(
            status=ExchangeOrderStatus.FILLED,
            order_id="order_late",
            filled_size=Decimal("10"),
            avg_price=Decimal("0.50"),
        )

        report = await Reconciler(timed_out_gate, mock_exchange).reconcile()

        wallet = await store.get_wallet(AGENT_ID)
        assert report.checked == 1
        assert [r.outcome for r in report.resolved] == [OrderOutcome.FILLED]
        assert wallet.collateral_balance == Decimal("995.00")
        assert "tok_a" not in timed_out_gate.in_flight

    async def test_order_without_id_is_looked_up_by_intent(self, timed_out_gate, mock_exchange, make_signal):
        result = await submit_stuck(timed_out_gate, make_signal)
        mock_exchange.get_order_status.return_value = ExchangeReport(
            status=ExchangeOrderStatus.REJECTED, reason="no open order or trade found"
        )

        await Reconciler(timed_out_gate, mock_exchange).reconcile()

        mock_exchange.get_order_status.assert_awaited_once_with(result.intent, None)
        assert "tok_a" not in timed_out_gate.in_flight

    async def test_live_order_keeps_lease(self, timed_out_gate, mock_exchange, store, make_signal):
        await submit_stuck(timed_out_gate, make_signal)
        mock_exchange.get_order_status.return_value = ExchangeReport(
            status=ExchangeOrderStatus.LIVE, order_id="order_live"
        )

        report = await Reconciler(timed_out_gate, mock_exchange).reconcile()

        assert report.still_pending == 1
        assert timed_out_gate.in_flight.get("tok_a").order_id == "order_live"
        assert (await store.get_wallet(AGENT_ID)).collateral_balance == Decimal("1000")

    async def test_exchange_error_keeps_lease(self, timed_out_gate, mock_exchange, make_signal):
        await submit_stuck(timed_out_gate, make_signal)
        mock_exchange.get_order_status.side_effect = ExchangeError("503")

        report = await Reconciler(timed_out_gate, mock_exchange).reconcile()

        assert report.errors == 1
        assert "tok_a" in timed_out_gate.in_flight

    async def test_cancel_after_partial_fill_applies_partial(
        self, timed_out_gate, mock_exchange, store, make_signal
    ):
        await submit_stuck(timed_out_gate, make_signal)
        mock_exchange.get_order_status.return_value = ExchangeReport(
            status=ExchangeOrderStatus.CANCELLED,
            order_id="order_partial",
            filled_size=Decimal("4"),
            avg_price=Decimal("0.50"),
        )

        report = await Reconciler(timed_out_gate, mock_exchange).reconcile()

        wallet = await store.get_wallet(AGENT_ID)
        assert report.resolved[0].outcome is OrderOutcome.EXCHANGE_REJECTED
        assert wallet.held_size("tok_a") == Decimal("4")
        assert wallet.collateral_balance == Decimal("998.00")

    async def test_nothing_pending(self, gate, mock_exchange):
        report = await Reconciler(gate, mock_exchange).reconcile()

        assert report.checked == 0
        mock_exchange.get_order_status.assert_not_called()


@pytest.mark.asyncio
class TestConfirm:
    async def test_confirmation_releases_lease(self, gate, mock_exchange, store, make_signal):
        mock_exchange.submit_order.side_effect = None
        mock_exchange.submit_order.return_value = ExchangeReport(
            status=ExchangeOrderStatus.LIVE, order_id="order_live"
        )
        await gate.submit(make_signal(size="10", price="0.50"))

        result = await Reconciler(gate, mock_exchange).confirm(
            ExchangeReport(
                status=ExchangeOrderStatus.FILLED,
                order_id="order_live",
                filled_size=Decimal("10"),
                avg_price=Decimal("0.48"),
            )
        )

        wallet = await store.get_wallet(AGENT_ID)
        assert result.outcome is OrderOutcome.FILLED
        assert wallet.collateral_balance == Decimal("995.20")
        assert len(gate.in_flight) == 0

    async def test_duplicate_confirmation_is_ignored(self, gate, mock_exchange, store, make_signal):
        mock_exchange.submit_order.side_effect = None
        mock_exchange.submit_order.return_value = ExchangeReport(
            status=ExchangeOrderStatus.LIVE, order_id="order_live"
        )
        await gate.submit(make_signal(size="10", price="0.50"))
        reconciler = Reconciler(gate, mock_exchange)
        fill = ExchangeReport(
            status=ExchangeOrderStatus.FILLED,
            order_id="order_live",
            filled_size=Decimal("10"),
            avg_price=Decimal("0.50"),
        )

        await reconciler.confirm(fill)
        second = await reconciler.confirm(fill)

        assert second is None
        assert (await store.get_wallet(AGENT_ID)).collateral_balance == Decimal("995.00")

    async def test_untracked_order(self, gate, mock_exchange):
        result = await Reconciler(gate, mock_exchange).confirm(
            ExchangeReport(status=ExchangeOrderStatus.FILLED, order_id="someone_else")
        )

        assert result is None


@pytest.mark.asyncio
class TestReconcileDuringSubmission:
    async def test_slow_submission_is_not_reconciled(self, gate, mock_exchange, store, make_signal):
        """A reconcile pass landing mid-submit must not free the token."""
        release = asyncio.Event()

        async def slow_fill(intent):
            await release.wait()
            return ExchangeReport(
                status=ExchangeOrderStatus.FILLED,
                order_id="order_slow",
                filled_size=intent.size,
                avg_price=intent.limit_price,
            )

        mock_exchange.submit_order.side_effect = slow_fill
        mock_exchange.get_order_status.return_value = ExchangeReport(
            status=ExchangeOrderStatus.REJECTED, reason="no open order or trade found"
        )
        reconciler = Reconciler(gate, mock_exchange)

        first = asyncio.create_task(gate.submit(make_signal(size="10", price="0.50")))
        await asyncio.sleep(0.05)

        report = await reconciler.reconcile()
        duplicate = await gate.submit(make_signal(size="10", price="0.50"))

        assert report.checked == 0
        assert report.resolved == []
        mock_exchange.get_order_status.assert_not_called()
        assert duplicate.outcome is OrderOutcome.DUPLICATE_IN_FLIGHT

        release.set()
        result = await first

        assert result.outcome is OrderOutcome.FILLED
        assert "tok_a" not in gate.in_flight
        assert (await store.get_wallet(AGENT_ID)).held_size("tok_a") == Decimal("10")

    async def test_timed_out_submission_becomes_reconcilable(
        self, timed_out_gate, mock_exchange, make_signal
    ):
        await submit_stuck(timed_out_gate, make_signal)

        lease = timed_out_gate.in_flight.get("tok_a")

        assert lease.submitting is False
        assert timed_out_gate.in_flight.pending() == [lease]
