"""
Market data sources.

A MarketDataSource produces a fresh list of MarketSnapshots for each
cycle. Raising DataUnavailable makes the engine skip the cycle; an empty
list is a normal answer.
"""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from prediction_agent.strategies import MarketSnapshot

from .client import PolymarketAPIError, PolymarketRestClient, _parse_end_date

logger = logging.getLogger(__name__)


class DataUnavailable(Exception):
    """Raised when no market data can be produced for this cycle."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")


@runtime_checkable
class MarketDataSource(Protocol):
    async def fetch_snapshots(self) -> list[MarketSnapshot]:
        """
        Snapshots for this cycle.

        Raises:
            DataUnavailable: If the upstream data cannot be read
        """
        ...


class GammaMarketDataSource:
    """
    Snapshots built from active Gamma markets.

    Usage:
        async with PolymarketRestClient() as client:
            source = GammaMarketDataSource(client, max_markets=200)
            snapshots = await source.fetch_snapshots()
    """

    def __init__(self, client: PolymarketRestClient, max_markets: int = 200) -> None:
        self._client = client
        self._max_markets = max_markets

    async def fetch_snapshots(self) -> list[MarketSnapshot]:
        try:
            markets = await self._client.get_all_markets(max_markets=self._max_markets)
        except PolymarketAPIError as e:
            raise DataUnavailable("gamma", str(e)) from e

        now = datetime.now(timezone.utc)
        snapshots = []
        for market in markets:
            if not market.active:
                continue
            snapshots.extend(market.to_snapshots(now))

        logger.debug(f"Built {len(snapshots)} snapshots from {len(markets)} markets")
        return snapshots


def _decimal_field(entry: dict, key: str, default: Optional[Decimal] = None) -> Optional[Decimal]:
    raw = entry.get(key)
    if raw is None or raw == "":
        return default
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        raise ValueError(f"{key} is not a number: {raw!r}") from None


def parse_snapshot(entry: dict[str, Any], now: Optional[datetime] = None) -> MarketSnapshot:
    """
    Build a snapshot from a JSON object.

    Resolution time may be given as seconds_to_resolution or as an
    ISO end_date. implied_probability defaults to the price.

    Raises:
        ValueError: On missing or malformed fields
    """
    price = _decimal_field(entry, "price")
    if price is None:
        raise ValueError("price is required")

    if entry.get("seconds_to_resolution") is not None:
        seconds = float(entry["seconds_to_resolution"])
    else:
        end_date = _parse_end_date(entry.get("end_date"))
        if end_date is None:
            raise ValueError("seconds_to_resolution or end_date is required")
        seconds = (end_date - (now or datetime.now(timezone.utc))).total_seconds()

    sentiment = entry.get("sentiment")
    implied = entry.get("implied_probability")

    return MarketSnapshot(
        market_id=str(entry.get("market_id") or entry["token_id"]),
        token_id=str(entry["token_id"]),
        outcome=str(entry.get("outcome", "Yes")),
        price=price,
        implied_probability=float(implied) if implied is not None else float(price),
        liquidity=_decimal_field(entry, "liquidity", Decimal("0")),
        seconds_to_resolution=seconds,
        question=str(entry.get("question", "")),
        reference_price=_decimal_field(entry, "reference_price"),
        sentiment=float(sentiment) if sentiment is not None else None,
        volume_24h=_decimal_field(entry, "volume_24h"),
    )


class FileMarketDataSource:
    """
    Snapshots with pre-extracted signals, read from a JSON file.

    The file holds a list of snapshot objects, or {"snapshots": [...]}.
    It is re-read every cycle so an upstream process can rewrite it.
    Malformed entries are skipped with a warning.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def fetch_snapshots(self) -> list[MarketSnapshot]:
        try:
            text = await asyncio.to_thread(self._path.read_text)
        except OSError as e:
            raise DataUnavailable(str(self._path), f"cannot read file: {e}") from e

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise DataUnavailable(str(self._path), f"invalid JSON: {e}") from e

        entries = payload.get("snapshots", []) if isinstance(payload, dict) else payload
        if not isinstance(entries, list):
            raise DataUnavailable(str(self._path), "expected a list of snapshots")

        now = datetime.now(timezone.utc)
        snapshots = []
        for i, entry in enumerate(entries):
            try:
                snapshots.append(parse_snapshot(entry, now))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping snapshot #{i} in {self._path}: {e}")
        return snapshots
