"""
Strategy registry and variant dispatch.

STRATEGY_FACTORIES is the single dispatch table for the closed set of
strategy variants: StrategyType -> factory(StrategyConfig) -> Strategy.
Adding a variant means adding a StrategyType member and a factory here.

StrategyRegistry holds the instantiated strategies for one agent, in
registration order, and answers lookups by name.
"""
from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional

from .builtin import (
    ExpiringMarketsStrategy,
    IndexStrategy,
    InteractiveStrategy,
    SimpleThresholdStrategy,
)
from .config import StrategyConfig, StrategyType
from .protocol import Strategy

StrategyFactory = Callable[[StrategyConfig], Strategy]

STRATEGY_FACTORIES: Mapping[StrategyType, StrategyFactory] = {
    StrategyType.INTERACTIVE: InteractiveStrategy.from_config,
    StrategyType.EXPIRING_MARKETS: ExpiringMarketsStrategy.from_config,
    StrategyType.INDEX: IndexStrategy.from_config,
    StrategyType.SIMPLE_THRESHOLD: SimpleThresholdStrategy.from_config,
}


class DuplicateStrategyError(Exception):
    """Raised when attempting to register a strategy with a name that already exists."""

    pass


def build_strategy(strategy_type: StrategyType, config: StrategyConfig) -> Strategy:
    """
    Instantiate one strategy variant from its configuration.

    Raises:
        StrategyConfigError: If the configuration is invalid
    """
    return STRATEGY_FACTORIES[strategy_type](config)


class StrategyRegistry:
    """
    Registry for strategy lookup and management.

    Preserves registration order, which is also the order in which the
    orchestrator fans in signals. The registry prevents duplicate names.

    Usage:
        registry = StrategyRegistry()
        registry.register(SimpleThresholdStrategy())

        strategy = registry.get("SimpleThresholdStrategy")
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._strategies: Dict[str, Strategy] = {}

    def register(self, strategy: Strategy) -> None:
        """
        Register a strategy instance.

        Args:
            strategy: Strategy instance to register

        Raises:
            DuplicateStrategyError: If a strategy with this name already exists
        """
        name = strategy.name
        if name in self._strategies:
            raise DuplicateStrategyError(
                f"Strategy '{name}' is already registered"
            )
        self._strategies[name] = strategy

    def get(self, name: str) -> Optional[Strategy]:
        """Get a strategy by name, or None if it is not registered."""
        return self._strategies.get(name)

    def all(self) -> List[Strategy]:
        """All strategies in registration order."""
        return list(self._strategies.values())
