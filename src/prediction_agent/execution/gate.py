"""
RiskGate - the only path from a TradeSignal to a submitted order.

Gate steps, short-circuiting in order:
    1. Market validation         -> MARKET_INVALID
    2. In-flight lease per token -> DUPLICATE_IN_FLIGHT
    3. Balance                   -> INSUFFICIENT_BALANCE
    4. Position limit            -> POSITION_LIMIT_EXCEEDED
    5. Re-read wallet, re-run 3-4, then submit:
         confirmed fill          -> FILLED (applied to the store)
         exchange refusal        -> EXCHANGE_REJECTED
         timeout / unknown       -> INDETERMINATE (lease kept)

Every outcome is terminal for the signal. The gate never retries.
"""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional

from prediction_agent.storage import AgentStateStore, AgentWallet, Fill
from prediction_agent.strategies import Side, TradeSignal

from .exchange import ExchangeClient, ExchangeError, OrderRejectedError
from .in_flight import InFlightRegistry, Lease
from .models import (
    ExchangeOrderStatus,
    ExchangeReport,
    OrderIntent,
    OrderOutcome,
    OrderResult,
)

logger = logging.getLogger(__name__)


@dataclass
class GateConfig:
    """Risk limits for order submission."""

    max_position_notional: Decimal = Decimal("100")
    order_timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "GateConfig":
        source = os.environ if env is None else env
        return cls(
            max_position_notional=Decimal(source.get("MAX_POSITION_NOTIONAL") or "100"),
            order_timeout_seconds=float(source.get("ORDER_TIMEOUT_SECONDS") or "10"),
        )


class RiskGate:
    """
    Validates signals against the agent's wallet and submits approved orders.

    Distinct tokens proceed concurrently; the same token is serialized by
    the in-flight registry.

    Usage:
        gate = RiskGate(exchange, store, agent_id="pamela-...", config=GateConfig())
        result = await gate.submit(signal, wallet)
        if result.outcome is OrderOutcome.FILLED:
            ...
    """

    def __init__(
        self,
        exchange: ExchangeClient,
        store: AgentStateStore,
        agent_id: str,
        config: Optional[GateConfig] = None,
        in_flight: Optional[InFlightRegistry] = None,
    ) -> None:
        self._exchange = exchange
        self._store = store
        self._agent_id = agent_id
        self._config = config or GateConfig()
        self._in_flight = in_flight or InFlightRegistry()

    @property
    def agent_id(self) -> str:
        return self._agent_id

    @property
    def config(self) -> GateConfig:
        return self._config

    @property
    def in_flight(self) -> InFlightRegistry:
        return self._in_flight

    async def submit(self, signal: TradeSignal, wallet: Optional[AgentWallet] = None) -> OrderResult:
        """
        Push one signal through the gate.

        Args:
            signal: Signal to evaluate
            wallet: Wallet read at the start of the cycle (advisory; the
                gate re-reads the store before submitting)

        Returns:
            Terminal OrderResult. Rejections are returned, never raised.
        """
        try:
            valid = await self._exchange.validate_market(signal.token_id)
        except ExchangeError as e:
            logger.warning(f"Market validation failed for {signal.token_id}: {e}")
            valid = False
        if not valid:
            return self._reject(signal, OrderOutcome.MARKET_INVALID, "market not tradable")

        lease = self._in_flight.try_acquire(
            signal.token_id,
            signal.side,
            signal.notional,
            strategy_name=signal.strategy_name,
        )
        if lease is None:
            return self._reject(
                signal,
                OrderOutcome.DUPLICATE_IN_FLIGHT,
                f"order for {signal.token_id} already in flight",
            )

        try:
            if wallet is None:
                wallet = await self._store.get_wallet(self._agent_id)
            rejection = self._check_limits(signal, wallet, lease)
            if rejection is not None:
                self._in_flight.release(lease)
                return rejection

            # Compare-and-check against the latest wallet
            wallet = await self._store.get_wallet(self._agent_id)
            rejection = self._check_limits(signal, wallet, lease)
            if rejection is not None:
                self._in_flight.release(lease)
                return rejection
        except BaseException:
            self._in_flight.release(lease)
            raise

        intent = OrderIntent.from_signal(signal)
        lease.intent = intent
        lease.submitting = True
        return await self._submit(signal, intent, lease)

    def _check_limits(
        self, signal: TradeSignal, wallet: AgentWallet, lease: Lease
    ) -> Optional[OrderResult]:
        held = wallet.held_size(signal.token_id)

        if signal.side == Side.BUY:
            reserved = self._in_flight.reserved_notional(exclude=lease)
            available = wallet.collateral_balance - reserved
            if signal.notional > available:
                return self._reject(
                    signal,
                    OrderOutcome.INSUFFICIENT_BALANCE,
                    f"need {signal.notional}, available {available} "
                    f"(balance {wallet.collateral_balance}, reserved {reserved})",
                )

            resulting = (held + signal.size) * signal.limit_price
            if resulting > self._config.max_position_notional:
                return self._reject(
                    signal,
                    OrderOutcome.POSITION_LIMIT_EXCEEDED,
                    f"position notional {resulting} > {self._config.max_position_notional}",
                )
        elif signal.size > held:
            return self._reject(
                signal,
                OrderOutcome.INSUFFICIENT_BALANCE,
                f"sell {signal.size} exceeds holding {held}",
            )

        return None

    async def _submit(self, signal: TradeSignal, intent: OrderIntent, lease: Lease) -> OrderResult:
        try:
            try:
                report = await asyncio.wait_for(
                    self._exchange.submit_order(intent),
                    timeout=self._config.order_timeout_seconds,
                )
            finally:
                lease.submitting = False
        except asyncio.TimeoutError:
            logger.warning(
                f"Order for {intent.token_id} timed out after "
                f"{self._config.order_timeout_seconds}s; holding lease until reconciled"
            )
            return OrderResult(
                outcome=OrderOutcome.INDETERMINATE,
                signal=signal,
                intent=intent,
                reason="submission timed out",
            )
        except OrderRejectedError as e:
            self._in_flight.release(lease)
            logger.info(f"Exchange rejected {intent.side.value} {intent.token_id}: {e.reason}")
            return OrderResult(
                outcome=OrderOutcome.EXCHANGE_REJECTED,
                signal=signal,
                intent=intent,
                reason=e.reason,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Order for {intent.token_id} has unknown outcome: {e}")
            return OrderResult(
                outcome=OrderOutcome.INDETERMINATE,
                signal=signal,
                intent=intent,
                reason=f"unknown outcome: {e}",
            )

        return await self.resolve(lease, report, signal)

    async def resolve(
        self,
        lease: Lease,
        report: ExchangeReport,
        signal: Optional[TradeSignal] = None,
    ) -> OrderResult:
        """
        Apply an exchange report to an in-flight lease.

        Used for the immediate submission response and, via the
        Reconciler, for later status lookups. Final statuses release the
        lease; anything else keeps it.
        """
        intent = lease.intent
        signal = signal or _signal_for(intent)
        if report.order_id:
            lease.order_id = report.order_id

        if report.status.is_final and report.filled_size > 0:
            fill = Fill(
                order_id=report.order_id or intent.intent_id,
                agent_id=self._agent_id,
                token_id=intent.token_id,
                side=intent.side.value,
                size=report.filled_size,
                price=report.avg_price if report.avg_price is not None else intent.limit_price,
            )
            await self._store.apply_fill(fill)
            self._in_flight.release(lease)
            if report.status is ExchangeOrderStatus.FILLED:
                logger.info(
                    f"Filled {intent.side.value} {fill.size} {intent.token_id} @ {fill.price} "
                    f"({intent.strategy_name}, order {fill.order_id})"
                )
                return OrderResult(
                    outcome=OrderOutcome.FILLED,
                    signal=signal,
                    intent=intent,
                    order_id=fill.order_id,
                    fill=fill,
                )
            return OrderResult(
                outcome=OrderOutcome.EXCHANGE_REJECTED,
                signal=signal,
                intent=intent,
                order_id=report.order_id,
                reason=f"{report.reason or report.status.value} after partial fill of {fill.size}",
                fill=fill,
            )

        if report.status.is_final:
            self._in_flight.release(lease)
            logger.info(
                f"Order for {intent.token_id} ended {report.status.value}: {report.reason}"
            )
            return OrderResult(
                outcome=OrderOutcome.EXCHANGE_REJECTED,
                signal=signal,
                intent=intent,
                order_id=report.order_id,
                reason=report.reason or report.status.value,
            )

        logger.warning(
            f"Order {report.order_id} for {intent.token_id} is {report.status.value}; "
            f"holding lease until reconciled"
        )
        return OrderResult(
            outcome=OrderOutcome.INDETERMINATE,
            signal=signal,
            intent=intent,
            order_id=report.order_id,
            reason=f"order {report.status.value}",
        )

    def _reject(self, signal: TradeSignal, outcome: OrderOutcome, reason: str) -> OrderResult:
        logger.info(
            f"Rejected {signal.side.value} {signal.size} {signal.token_id} "
            f"from {signal.strategy_name}: {outcome.value} ({reason})"
        )
        return OrderResult(outcome=outcome, signal=signal, reason=reason)


def _signal_for(intent: OrderIntent) -> TradeSignal:
    # Reconciliation only has the intent; rebuild the signal it came from
    return TradeSignal(
        strategy_name=intent.strategy_name,
        token_id=intent.token_id,
        side=intent.side,
        size=intent.size,
        limit_price=intent.limit_price,
        confidence=0.0,
    )
