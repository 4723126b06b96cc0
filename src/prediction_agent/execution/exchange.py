"""
Exchange clients.

The RiskGate and Reconciler talk to the exchange only through the
ExchangeClient protocol. Two implementations:

    ClobExchangeClient   - Polymarket CLOB via py-clob-client (live)
    PaperExchangeClient  - Immediate fills at the limit price (dry run)

py-clob-client is synchronous, so every call runs in a worker thread.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from prediction_agent.strategies import Side

from .models import ExchangeOrderStatus, ExchangeReport, OrderIntent

logger = logging.getLogger(__name__)

# CLOB balances are reported in micro-units (6 decimals)
USDC_DECIMALS = Decimal("1000000")


class ExchangeError(Exception):
    """Raised when the exchange cannot be reached or answers unexpectedly."""


class OrderRejectedError(ExchangeError):
    """Raised when the exchange definitively refuses an order."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Order rejected: {reason}")


@runtime_checkable
class ExchangeClient(Protocol):
    """What the execution layer needs from an exchange."""

    async def validate_market(self, token_id: str) -> bool:
        """True if the token trades on an open market."""
        ...

    async def get_balance(self) -> Decimal:
        """Available collateral on the exchange."""
        ...

    async def submit_order(self, intent: OrderIntent) -> ExchangeReport:
        """
        Submit a limit order.

        Raises:
            OrderRejectedError: The exchange refused the order
            ExchangeError: The outcome is unknown
        """
        ...

    async def get_order_status(
        self, intent: OrderIntent, order_id: Optional[str] = None
    ) -> ExchangeReport:
        """Look up an order; by token and issue time when order_id is unknown."""
        ...


def _to_decimal(value: Any, default: str = "0") -> Decimal:
    if value is None or value == "":
        return Decimal(default)
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal(default)


class ClobExchangeClient:
    """
    ExchangeClient over a py-clob-client ClobClient.

    Usage:
        client = ClobClient(host, key=..., chain_id=137, creds=..., ...)
        exchange = ClobExchangeClient(client)
        report = await exchange.submit_order(intent)
    """

    def __init__(self, clob_client: Any) -> None:
        self._clob_client = clob_client

    async def _call(self, method: str, *args: Any) -> Any:
        return await asyncio.to_thread(getattr(self._clob_client, method), *args)

    async def validate_market(self, token_id: str) -> bool:
        from py_clob_client.exceptions import PolyApiException

        if not token_id:
            return False
        try:
            book = await self._call("get_order_book", token_id)
        except PolyApiException as e:
            # The CLOB answers 404 for tokens without an order book
            if getattr(e, "status_code", None) in (400, 404):
                logger.info(f"No order book for {token_id}: {e}")
                return False
            raise ExchangeError(f"Order book lookup failed for {token_id}: {e}") from e
        return book is not None

    async def get_balance(self) -> Decimal:
        from py_clob_client.clob_types import AssetType, BalanceAllowanceParams

        params = BalanceAllowanceParams(asset_type=AssetType.COLLATERAL)
        try:
            result = await self._call("get_balance_allowance", params)
        except Exception as e:
            raise ExchangeError(f"Balance lookup failed: {e}") from e
        return _to_decimal(result.get("balance")) / USDC_DECIMALS

    async def submit_order(self, intent: OrderIntent) -> ExchangeReport:
        from py_clob_client.clob_types import OrderArgs
        from py_clob_client.exceptions import PolyApiException

        order_args = OrderArgs(
            token_id=intent.token_id,
            price=float(intent.limit_price),
            size=float(intent.size),
            side=intent.side.value,
        )

        try:
            result = await self._call("create_and_post_order", order_args)
        except PolyApiException as e:
            status_code = getattr(e, "status_code", None)
            if status_code is not None and 400 <= status_code < 500:
                raise OrderRejectedError(str(getattr(e, "error_msg", e))) from e
            raise ExchangeError(f"Order submission failed: {e}") from e

        if not isinstance(result, dict):
            raise ExchangeError(f"Unexpected order response: {result!r}")

        error_msg = result.get("errorMsg") or ""
        if result.get("success") is False or error_msg:
            raise OrderRejectedError(error_msg or "order not accepted")

        order_id = str(result.get("orderID") or result.get("order_id") or "").strip()
        if not order_id:
            # Posted with no id: we cannot tell whether it rests on the book
            raise ExchangeError("CLOB returned empty order ID")

        status = str(result.get("status", "")).lower()
        if status == "matched":
            filled_size, avg_price = self._matched_amounts(intent, result)
            return ExchangeReport(
                status=ExchangeOrderStatus.FILLED,
                order_id=order_id,
                filled_size=filled_size,
                avg_price=avg_price,
            )
        if status in ("live", "delayed", "unmatched"):
            return ExchangeReport(status=ExchangeOrderStatus.LIVE, order_id=order_id)

        logger.warning(f"Order {order_id} returned unrecognized status {status!r}")
        return ExchangeReport(status=ExchangeOrderStatus.UNKNOWN, order_id=order_id)

    @staticmethod
    def _matched_amounts(intent: OrderIntent, result: Dict[str, Any]) -> tuple[Decimal, Decimal]:
        """Shares and average price of an immediately matched order."""
        making = _to_decimal(result.get("makingAmount"))
        taking = _to_decimal(result.get("takingAmount"))

        # BUY pays collateral (making) for shares (taking); SELL is the reverse
        shares, collateral = (taking, making) if intent.side == Side.BUY else (making, taking)
        if shares <= 0:
            return intent.size, intent.limit_price
        return shares, collateral / shares

    async def get_order_status(
        self, intent: OrderIntent, order_id: Optional[str] = None
    ) -> ExchangeReport:
        if order_id:
            try:
                result = await self._call("get_order", order_id)
            except Exception as e:
                raise ExchangeError(f"Order lookup failed for {order_id}: {e}") from e
            if not result:
                return ExchangeReport(
                    status=ExchangeOrderStatus.REJECTED,
                    order_id=order_id,
                    reason="order not found on exchange",
                )
            return self._parse_order(order_id, result)

        return await self._find_order(intent)

    def _parse_order(self, order_id: str, result: Dict[str, Any]) -> ExchangeReport:
        clob_status = str(result.get("status", "")).upper()
        size = _to_decimal(result.get("original_size", result.get("size")))
        filled = _to_decimal(result.get("size_matched", result.get("filledSize")))
        price = result.get("avgPrice", result.get("price"))
        avg_price = _to_decimal(price) if price not in (None, "") else None

        if clob_status == "MATCHED" or (size > 0 and filled >= size):
            status = ExchangeOrderStatus.FILLED
        elif clob_status == "LIVE":
            status = ExchangeOrderStatus.LIVE
        elif clob_status in ("CANCELLED", "CANCELED", "EXPIRED"):
            status = ExchangeOrderStatus.CANCELLED
        elif clob_status in ("FAILED", "REJECTED"):
            status = ExchangeOrderStatus.REJECTED
        else:
            status = ExchangeOrderStatus.UNKNOWN

        if status == ExchangeOrderStatus.FILLED and filled <= 0:
            filled = size

        return ExchangeReport(
            status=status,
            order_id=order_id,
            filled_size=filled,
            avg_price=avg_price,
            reason=clob_status.lower(),
        )

    async def _find_order(self, intent: OrderIntent) -> ExchangeReport:
        """Locate an order whose id we never learned (e.g. a timed-out post)."""
        from py_clob_client.clob_types import OpenOrderParams, TradeParams

        try:
            open_orders = await self._call("get_orders", OpenOrderParams(asset_id=intent.token_id))
        except Exception as e:
            raise ExchangeError(f"Open order lookup failed for {intent.token_id}: {e}") from e

        for order in open_orders or []:
            if str(order.get("side", "")).upper() == intent.side.value:
                return self._parse_order(str(order.get("id", "")), order)

        try:
            trades = await self._call(
                "get_trades",
                TradeParams(
                    asset_id=intent.token_id,
                    after=int(intent.issued_at.timestamp()),
                ),
            )
        except Exception as e:
            raise ExchangeError(f"Trade lookup failed for {intent.token_id}: {e}") from e

        if trades:
            size = sum((_to_decimal(t.get("size")) for t in trades), Decimal("0"))
            notional = sum(
                (_to_decimal(t.get("size")) * _to_decimal(t.get("price")) for t in trades),
                Decimal("0"),
            )
            return ExchangeReport(
                status=ExchangeOrderStatus.FILLED,
                order_id=str(trades[0].get("taker_order_id") or trades[0].get("id") or ""),
                filled_size=size,
                avg_price=notional / size if size > 0 else None,
            )

        return ExchangeReport(
            status=ExchangeOrderStatus.REJECTED,
            reason="no open order or trade found on exchange",
        )


class PaperExchangeClient:
    """
    Simulated exchange for dry runs.

    Every valid order fills immediately at its limit price. Tokens listed
    in invalid_tokens fail market validation.
    """

    def __init__(
        self,
        starting_balance: Decimal = Decimal("1000"),
        invalid_tokens: Optional[set[str]] = None,
    ) -> None:
        self._balance = starting_balance
        self._invalid_tokens = set(invalid_tokens or ())
        self._orders: Dict[str, ExchangeReport] = {}

    async def validate_market(self, token_id: str) -> bool:
        return bool(token_id) and token_id not in self._invalid_tokens

    async def get_balance(self) -> Decimal:
        return self._balance

    async def submit_order(self, intent: OrderIntent) -> ExchangeReport:
        order_id = f"paper_{uuid.uuid4().hex[:16]}"
        if intent.side == Side.BUY:
            self._balance -= intent.notional
        else:
            self._balance += intent.notional

        report = ExchangeReport(
            status=ExchangeOrderStatus.FILLED,
            order_id=order_id,
            filled_size=intent.size,
            avg_price=intent.limit_price,
        )
        self._orders[order_id] = report
        logger.info(
            f"[PAPER] {intent.side.value} {intent.size} {intent.token_id} "
            f"@ {intent.limit_price} -> {order_id} "
            f"({datetime.now(timezone.utc):%H:%M:%S})"
        )
        return report

    async def get_order_status(
        self, intent: OrderIntent, order_id: Optional[str] = None
    ) -> ExchangeReport:
        report = self._orders.get(order_id or "")
        if report is None:
            return ExchangeReport(
                status=ExchangeOrderStatus.REJECTED,
                order_id=order_id,
                reason="unknown paper order",
            )
        return report
