"""
Ingestion Layer - Market data for each cycle.

    - PolymarketRestClient: aiohttp Gamma client with rate limiting and retries
    - Market / TokenInfo: Parsed Gamma market metadata
    - MarketDataSource: Protocol the engine consumes
    - GammaMarketDataSource: Snapshots from live Gamma markets
    - FileMarketDataSource: Snapshots with pre-extracted signals from JSON
    - DataUnavailable: Raised when a cycle has no usable data
"""
from .client import PolymarketAPIError, PolymarketRestClient, RateLimitError
from .models import Market, TokenInfo
from .source import (
    DataUnavailable,
    FileMarketDataSource,
    GammaMarketDataSource,
    MarketDataSource,
    parse_snapshot,
)

__all__ = [
    "PolymarketRestClient",
    "PolymarketAPIError",
    "RateLimitError",
    "Market",
    "TokenInfo",
    "MarketDataSource",
    "GammaMarketDataSource",
    "FileMarketDataSource",
    "DataUnavailable",
    "parse_snapshot",
]
