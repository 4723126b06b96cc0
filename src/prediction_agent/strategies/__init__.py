"""
Strategies Layer - Pluggable decision units.

This module provides:
    - Strategy: Protocol defining the strategy interface
    - MarketSnapshot: Immutable per-token market state for one cycle
    - TradeSignal / Side: What strategies emit
    - StrategyType / StrategySettings / StrategyConfig: Declarative configuration
      and activation precedence
    - StrategyRegistry + STRATEGY_FACTORIES: Variant dispatch and lookup
    - Snapshot filters: resolved markets, untradable prices, thin books
    - Built-in strategies: Interactive, ExpiringMarkets, Index, SimpleThreshold

Design Principle:
    Strategies are PURE LOGIC - no database access, no API calls.
    They receive a tuple of MarketSnapshots and return TradeSignals.
    This makes them trivial to test without mocks.
"""

# Signals
from .signals import Side, TradeSignal

# Protocol and snapshot
from .protocol import MarketSnapshot, Strategy

# Configuration
from .config import (
    BASELINE_STRATEGY,
    DEFAULT_STRATEGY_BY_AGENT,
    ENABLE_FLAGS,
    StrategyConfig,
    StrategyConfigError,
    StrategySettings,
    StrategyType,
    default_strategy_for,
    parse_flag,
    resolve_active_types,
)

# Registry
from .registry import (
    STRATEGY_FACTORIES,
    DuplicateStrategyError,
    StrategyRegistry,
    build_strategy,
)

# Filters
from .filters import (
    apply_snapshot_filters,
    check_liquidity,
    check_resolution_window,
    check_tradable_price,
)

# Built-in strategies
from .builtin import (
    ExpiringMarketsStrategy,
    IndexStrategy,
    InteractiveStrategy,
    SimpleThresholdStrategy,
)

__all__ = [
    # Signals
    "Side",
    "TradeSignal",
    # Protocol
    "Strategy",
    "MarketSnapshot",
    # Configuration
    "StrategyType",
    "StrategyConfig",
    "StrategySettings",
    "StrategyConfigError",
    "DEFAULT_STRATEGY_BY_AGENT",
    "BASELINE_STRATEGY",
    "ENABLE_FLAGS",
    "default_strategy_for",
    "parse_flag",
    "resolve_active_types",
    # Registry
    "StrategyRegistry",
    "DuplicateStrategyError",
    "STRATEGY_FACTORIES",
    "build_strategy",
    # Filters
    "apply_snapshot_filters",
    "check_liquidity",
    "check_resolution_window",
    "check_tradable_price",
    # Built-in strategies
    "InteractiveStrategy",
    "ExpiringMarketsStrategy",
    "IndexStrategy",
    "SimpleThresholdStrategy",
]
