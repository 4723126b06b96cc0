"""
REST API client for Polymarket's Gamma (metadata) API.

Gamma encodes several list fields (clobTokenIds, outcomes, outcomePrices)
as JSON strings rather than arrays; the parser accepts either.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import aiohttp

from .models import Market, TokenInfo

logger = logging.getLogger(__name__)


class PolymarketAPIError(Exception):
    """Base exception for Polymarket API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(PolymarketAPIError):
    """Rate limit exceeded."""
    pass


def _json_list(raw: Any) -> list:
    """Decode a field that may be a JSON-encoded list, a list, or null."""
    if raw is None:
        return []
    if isinstance(raw, list):
        return raw
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            return []
        return decoded if isinstance(decoded, list) else []
    return []


def _decimal(raw: Any) -> Optional[Decimal]:
    if raw is None or raw == "":
        return None
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        return None


def _parse_end_date(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        if "T" in raw:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        else:
            parsed = datetime.fromisoformat(raw + "T00:00:00+00:00")
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class PolymarketRestClient:
    """
    Async REST client for the Gamma API.

    Requests share a sliding one-second rate window. 429, 5xx, timeouts
    and connection errors are retried with exponential backoff (doubled
    again for 429); any other 4xx fails at once.

    Usage:
        async with PolymarketRestClient() as client:
            markets = await client.get_markets(limit=200)
    """

    GAMMA_API = "https://gamma-api.polymarket.com"

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        rate_limit: float = 10.0,  # requests per second
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        base_url: Optional[str] = None,
    ):
        self._session = session
        self._owns_session = session is None
        self._client_timeout = aiohttp.ClientTimeout(total=timeout)
        self._base_url = (base_url or self.GAMMA_API).rstrip("/")

        self._max_per_second = rate_limit
        self._attempts = max_retries
        self._base_delay = retry_delay

        self._sent_at: list[float] = []
        self._window_lock = asyncio.Lock()

    async def __aenter__(self) -> "PolymarketRestClient":
        self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._client_timeout)
            self._owns_session = True
        return self._session

    async def _throttle(self) -> None:
        async with self._window_lock:
            now = time.monotonic()
            self._sent_at = [t for t in self._sent_at if now - t < 1.0]
            if len(self._sent_at) >= self._max_per_second:
                await asyncio.sleep(max(0.0, 1.0 - (now - self._sent_at[0])))
            self._sent_at.append(time.monotonic())

    async def _send(self, method: str, url: str, **kwargs) -> Any:
        async with self._get_session().request(method, url, **kwargs) as response:
            if response.status == 429:
                raise RateLimitError("Rate limit exceeded", status_code=429)
            if response.status >= 400:
                body = await response.text()
                raise PolymarketAPIError(
                    f"{method} {url} failed: {response.status} {body[:200]}",
                    status_code=response.status,
                )
            return await response.json()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Send a request, retrying transient failures.

        Raises:
            PolymarketAPIError: On 4xx, or once retries are exhausted
        """
        url = f"{self._base_url}{path}"
        last_error: Optional[PolymarketAPIError] = None

        for attempt in range(1, self._attempts + 1):
            backoff = self._base_delay * (2 ** (attempt - 1))
            await self._throttle()
            try:
                return await self._send(method, url, **kwargs)
            except RateLimitError as e:
                backoff *= 2
                last_error = e
            except PolymarketAPIError as e:
                if e.status_code is None or e.status_code < 500:
                    raise
                last_error = e
            except asyncio.TimeoutError:
                last_error = PolymarketAPIError(f"{method} {url} timed out")
            except aiohttp.ClientError as e:
                last_error = PolymarketAPIError(str(e))

            if attempt < self._attempts:
                logger.warning(
                    f"{last_error} (attempt {attempt}/{self._attempts}), retrying in {backoff}s"
                )
                await asyncio.sleep(backoff)

        raise last_error or PolymarketAPIError(f"{method} {url} failed")

    async def get_markets(
        self,
        active_only: bool = True,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Market]:
        """
        Fetch one page of markets.

        Args:
            active_only: Only open, unclosed markets
            limit: Page size
            offset: Pagination offset
        """
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if active_only:
            params["active"] = "true"
            params["closed"] = "false"

        data = await self._request("GET", "/markets", params=params)

        markets = []
        for item in data or []:
            market = self._parse_market(item)
            if market is not None:
                markets.append(market)
        return markets

    async def get_all_markets(self, max_markets: int = 500, page_size: int = 100) -> list[Market]:
        """Page through active markets until exhausted or max_markets reached."""
        markets: list[Market] = []
        offset = 0
        while len(markets) < max_markets:
            page = await self.get_markets(limit=page_size, offset=offset)
            markets.extend(page)
            if len(page) < page_size:
                break
            offset += page_size
        return markets[:max_markets]

    def _parse_market(self, data: dict) -> Optional[Market]:
        """Parse one Gamma market; None if it is unusable."""
        if not isinstance(data, dict):
            return None

        token_ids = _json_list(data.get("clobTokenIds"))
        outcomes = _json_list(data.get("outcomes"))
        prices = _json_list(data.get("outcomePrices"))

        tokens = []
        for i, token_id in enumerate(token_ids):
            outcome = str(outcomes[i]) if i < len(outcomes) else f"Outcome {i}"
            price = _decimal(prices[i]) if i < len(prices) else None
            tokens.append(TokenInfo(token_id=str(token_id), outcome=outcome, price=price))

        condition_id = data.get("conditionId") or data.get("condition_id") or ""
        if not condition_id:
            logger.warning(f"Skipping market without condition id: {data.get('question')!r}")
            return None

        liquidity = _decimal(data.get("liquidityNum", data.get("liquidity"))) or Decimal("0")

        return Market(
            condition_id=condition_id,
            question=data.get("question", ""),
            slug=data.get("slug", data.get("market_slug", "")),
            end_date=_parse_end_date(
                data.get("endDate") or data.get("endDateIso") or data.get("end_date_iso")
            ),
            tokens=tokens,
            active=bool(data.get("active", True)),
            category=data.get("category"),
            liquidity=liquidity,
            volume_24h=_decimal(data.get("volume24hr")),
        )
