"""
In-flight lease registry.

At most one order per token may be in flight for an agent. The gate
takes a lease keyed by token id before it checks balances and holds it
until the submission resolves; indeterminate submissions keep the lease
until the Reconciler sees a final exchange status.

All mutation happens without awaiting, so within one event loop
try_acquire is an atomic check-and-set.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from prediction_agent.strategies import Side

from .models import OrderIntent

logger = logging.getLogger(__name__)


@dataclass
class Lease:
    """Claim on a token while an order for it is unresolved."""

    token_id: str
    side: Side
    notional: Decimal
    strategy_name: str = ""
    acquired_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    intent: Optional[OrderIntent] = None
    order_id: Optional[str] = None
    # True while the submit call is still awaiting the exchange
    submitting: bool = False


class InFlightRegistry:
    """
    Keyed lease registry.

    Usage:
        lease = registry.try_acquire("tok_abc", Side.BUY, Decimal("5"))
        if lease is None:
            ...  # another order for tok_abc is unresolved
        registry.release(lease)
    """

    def __init__(self) -> None:
        self._leases: Dict[str, Lease] = {}

    def try_acquire(
        self,
        token_id: str,
        side: Side,
        notional: Decimal,
        strategy_name: str = "",
    ) -> Optional[Lease]:
        """
        Take the lease for a token.

        Returns:
            The new lease, or None if the token already has one
        """
        if token_id in self._leases:
            return None
        lease = Lease(
            token_id=token_id,
            side=side,
            notional=notional,
            strategy_name=strategy_name,
        )
        self._leases[token_id] = lease
        return lease

    def release(self, lease: Lease) -> bool:
        """
        Drop a lease.

        Only the exact lease object is released, so a stale holder can
        never free a lease someone else has since acquired.
        """
        current = self._leases.get(lease.token_id)
        if current is not lease:
            return False
        del self._leases[lease.token_id]
        logger.debug(f"Released in-flight lease for {lease.token_id}")
        return True

    def get(self, token_id: str) -> Optional[Lease]:
        return self._leases.get(token_id)

    def find_by_order_id(self, order_id: str) -> Optional[Lease]:
        for lease in self._leases.values():
            if lease.order_id == order_id and not lease.submitting:
                return lease
        return None

    def pending(self) -> List[Lease]:
        """
        Leases whose order reached the exchange but is unresolved.

        A lease still inside its submit call is excluded: the exchange may
        not know about the order yet, so a lookup would wrongly report it
        missing.
        """
        return [
            lease
            for lease in self._leases.values()
            if lease.intent is not None and not lease.submitting
        ]

    def reserved_notional(self, exclude: Optional[Lease] = None) -> Decimal:
        """Collateral committed by in-flight BUY leases."""
        return sum(
            (
                lease.notional
                for lease in self._leases.values()
                if lease.side == Side.BUY and lease is not exclude
            ),
            Decimal("0"),
        )

    def __len__(self) -> int:
        return len(self._leases)

    def __contains__(self, token_id: str) -> bool:
        return token_id in self._leases
