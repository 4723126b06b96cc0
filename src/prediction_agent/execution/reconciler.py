"""
Reconciler - resolves INDETERMINATE orders.

An order whose submission timed out, or that is resting on the book,
keeps its token's in-flight lease. The reconciler asks the exchange what
became of it and hands the answer to the gate, which applies any fill
and releases the lease once the status is final.

Two entry points:
    reconcile()      - poll every pending lease (background loop)
    confirm(report)  - push-style confirmation for a known order id
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .exchange import ExchangeClient, ExchangeError
from .gate import RiskGate
from .models import ExchangeReport, OrderResult

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """Summary of one reconciliation pass."""

    checked: int = 0
    resolved: List[OrderResult] = field(default_factory=list)
    still_pending: int = 0
    errors: int = 0


class Reconciler:
    """
    Polls the exchange for in-flight orders.

    Usage:
        reconciler = Reconciler(gate, exchange)
        report = await reconciler.reconcile()
    """

    def __init__(self, gate: RiskGate, exchange: ExchangeClient) -> None:
        self._gate = gate
        self._exchange = exchange

    async def reconcile(self) -> ReconcileReport:
        report = ReconcileReport()

        for lease in self._gate.in_flight.pending():
            report.checked += 1
            try:
                status = await self._exchange.get_order_status(lease.intent, lease.order_id)
            except ExchangeError as e:
                report.errors += 1
                logger.warning(f"Could not reconcile order for {lease.token_id}: {e}")
                continue

            result = await self._gate.resolve(lease, status)
            if status.status.is_final:
                report.resolved.append(result)
                logger.info(
                    f"Reconciled {lease.token_id}: {result.outcome.value} "
                    f"(order {result.order_id or 'unknown'})"
                )
            else:
                report.still_pending += 1

        if report.checked:
            logger.debug(
                f"Reconcile pass: checked={report.checked} "
                f"resolved={len(report.resolved)} pending={report.still_pending}"
            )
        return report

    async def confirm(self, report: ExchangeReport) -> Optional[OrderResult]:
        """
        Apply a confirmation for a known order id.

        Returns:
            The resulting OrderResult, or None if no lease holds that order
        """
        if not report.order_id:
            return None
        lease = self._gate.in_flight.find_by_order_id(report.order_id)
        if lease is None or lease.intent is None:
            logger.debug(f"Confirmation for untracked order {report.order_id}")
            return None
        return await self._gate.resolve(lease, report)
