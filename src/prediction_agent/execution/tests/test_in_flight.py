"""Tests for the in-flight lease registry."""
from decimal import Decimal
from unittest.mock import MagicMock

from prediction_agent.execution import InFlightRegistry
from prediction_agent.strategies import Side


class TestInFlightRegistry:
    def test_one_lease_per_token(self):
        registry = InFlightRegistry()

        first = registry.try_acquire("tok_a", Side.BUY, Decimal("5"))
        second = registry.try_acquire("tok_a", Side.SELL, Decimal("1"))

        assert first is not None
        assert second is None
        assert "tok_a" in registry

    def test_release_frees_token(self):
        registry = InFlightRegistry()
        lease = registry.try_acquire("tok_a", Side.BUY, Decimal("5"))

        assert registry.release(lease) is True
        assert registry.try_acquire("tok_a", Side.BUY, Decimal("5")) is not None

    def test_stale_release_is_ignored(self):
        """Releasing an old lease never frees a newer one."""
        registry = InFlightRegistry()
        old = registry.try_acquire("tok_a", Side.BUY, Decimal("5"))
        registry.release(old)
        new = registry.try_acquire("tok_a", Side.BUY, Decimal("5"))

        assert registry.release(old) is False
        assert registry.get("tok_a") is new

    def test_reserved_notional_counts_buys_only(self):
        registry = InFlightRegistry()
        mine = registry.try_acquire("tok_a", Side.BUY, Decimal("5"))
        registry.try_acquire("tok_b", Side.BUY, Decimal("7"))
        registry.try_acquire("tok_c", Side.SELL, Decimal("100"))

        assert registry.reserved_notional() == Decimal("12")
        assert registry.reserved_notional(exclude=mine) == Decimal("7")

    def test_pending_only_lists_submitted(self):
        registry = InFlightRegistry()
        registry.try_acquire("tok_a", Side.BUY, Decimal("5"))

        assert registry.pending() == []

    def test_find_by_order_id(self):
        registry = InFlightRegistry()
        lease = registry.try_acquire("tok_a", Side.BUY, Decimal("5"))
        lease.order_id = "order_1"

        assert registry.find_by_order_id("order_1") is lease
        assert registry.find_by_order_id("order_2") is None

    def test_lease_inside_submit_call_is_not_pending(self):
        registry = InFlightRegistry()
        lease = registry.try_acquire("tok_a", Side.BUY, Decimal("5"))
        lease.intent = MagicMock()
        lease.order_id = "order_1"
        lease.submitting = True

        assert registry.pending() == []
        assert registry.find_by_order_id("order_1") is None

        lease.submitting = False
        assert registry.pending() == [lease]
        assert registry.find_by_order_id("order_1") is lease
