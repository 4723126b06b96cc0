"""
Strategy configuration and activation resolution.

Configuration is a flat mapping of named options (normally the process
environment). It is resolved once into an immutable StrategySettings and
never touched again; reloading simply builds a new StrategySettings.

Activation precedence, evaluated per strategy type:
    1. An explicit per-strategy flag wins outright (true/false).
    2. Else, when no explicit flag is true and trading is enabled, the
       agent identity's default strategy becomes active.
    3. Unknown identities fall back to SimpleThreshold.
    4. Trading disabled and no explicit true flag -> nothing is active.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class StrategyConfigError(ValueError):
    """Raised when a strategy option cannot be parsed or is out of range."""

    def __init__(self, key: str, value: object, reason: str):
        self.key = key
        self.value = value
        super().__init__(f"Invalid strategy option {key}={value!r}: {reason}")


class StrategyType(Enum):
    """Closed set of strategy variants, in registration order."""

    INTERACTIVE = "InteractiveStrategy"
    EXPIRING_MARKETS = "ExpiringMarketsStrategy"
    INDEX = "IndexStrategy"
    SIMPLE_THRESHOLD = "SimpleThresholdStrategy"

    @property
    def strategy_name(self) -> str:
        """Name reported by strategies of this type."""
        return self.value


# Explicit enable flag per strategy type
ENABLE_FLAGS: Mapping[StrategyType, str] = MappingProxyType(
    {
        StrategyType.INTERACTIVE: "INTERACTIVE_STRATEGY_ENABLED",
        StrategyType.EXPIRING_MARKETS: "EXPIRING_MARKETS_ENABLED",
        StrategyType.INDEX: "INDEX_TRADING_ENABLED",
        StrategyType.SIMPLE_THRESHOLD: "SIMPLE_STRATEGY_ENABLED",
    }
)

# Options each strategy type reads from the flat configuration
PARAMETER_KEYS: Mapping[StrategyType, tuple[str, ...]] = MappingProxyType(
    {
        StrategyType.INTERACTIVE: (
            "MIN_CONFIDENCE_THRESHOLD",
            "SENTIMENT_WEIGHT",
            "PRICE_WEIGHT",
            "VOLUME_WEIGHT",
            "INTERACTIVE_VOLUME_NORMALIZER",
            "INTERACTIVE_ORDER_SIZE",
        ),
        StrategyType.EXPIRING_MARKETS: (
            "EXPIRING_MIN_PROBABILITY",
            "EXPIRING_MIN_HOURS",
            "EXPIRING_MAX_HOURS",
            "EXPIRING_MAX_PRICE",
            "EXPIRING_ORDER_SIZE",
        ),
        StrategyType.INDEX: (
            "SPMC_INDEX_ID",
            "INDEX_BASKET",
            "INDEX_CAPITAL",
            "INDEX_REBALANCE_THRESHOLD",
        ),
        StrategyType.SIMPLE_THRESHOLD: (
            "SIMPLE_BUY_THRESHOLD",
            "SIMPLE_SELL_THRESHOLD",
            "SIMPLE_MIN_EDGE",
            "SIMPLE_ORDER_SIZE",
        ),
    }
)

# Agent identity -> default strategy type
DEFAULT_STRATEGY_BY_AGENT: Mapping[str, StrategyType] = MappingProxyType(
    {
        "pamela": StrategyType.INTERACTIVE,
        "chalk-eater": StrategyType.EXPIRING_MARKETS,
        "lib-out": StrategyType.INDEX,
        "nothing-ever-happens": StrategyType.SIMPLE_THRESHOLD,
        "trumped-up": StrategyType.SIMPLE_THRESHOLD,
    }
)

BASELINE_STRATEGY = StrategyType.SIMPLE_THRESHOLD

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})


def parse_flag(value: Optional[str]) -> Optional[bool]:
    """
    Parse a tri-state flag.

    Returns None when the flag is unset or blank, so "not configured"
    stays distinguishable from "explicitly false".
    """
    if value is None or not value.strip():
        return None
    return value.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class StrategyConfig:
    """Resolved configuration for one strategy type."""

    enabled: Optional[bool] = None
    parameters: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        # Freeze whatever mapping was handed in
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.parameters.get(key)
        if value is None or not value.strip():
            return default
        return value.strip()

    def get_decimal(self, key: str, default: Decimal) -> Decimal:
        raw = self.get_str(key)
        if raw is None:
            return default
        try:
            return Decimal(raw)
        except InvalidOperation:
            raise StrategyConfigError(key, raw, "not a number") from None

    def get_float(self, key: str, default: float) -> float:
        raw = self.get_str(key)
        if raw is None:
            return default
        try:
            return float(raw)
        except ValueError:
            raise StrategyConfigError(key, raw, "not a number") from None


@dataclass(frozen=True)
class StrategySettings:
    """Everything needed to decide which strategies run, and how."""

    agent_character: str = "pamela"
    trading_enabled: bool = False
    strategies: Mapping[StrategyType, StrategyConfig] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "agent_character", self.agent_character.strip().lower())
        object.__setattr__(self, "strategies", MappingProxyType(dict(self.strategies)))

    def config_for(self, strategy_type: StrategyType) -> StrategyConfig:
        return self.strategies.get(strategy_type, StrategyConfig())

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "StrategySettings":
        """Resolve settings from a flat mapping (defaults to os.environ)."""
        source = os.environ if env is None else env

        configs = {}
        for strategy_type in StrategyType:
            parameters = {
                key: source[key]
                for key in PARAMETER_KEYS[strategy_type]
                if key in source
            }
            configs[strategy_type] = StrategyConfig(
                enabled=parse_flag(source.get(ENABLE_FLAGS[strategy_type])),
                parameters=parameters,
            )

        return cls(
            agent_character=source.get("AGENT_CHARACTER", "pamela") or "pamela",
            trading_enabled=parse_flag(source.get("TRADING_ENABLED")) is True,
            strategies=configs,
        )


def default_strategy_for(agent_character: str) -> StrategyType:
    """Default strategy type for an identity (baseline when unknown)."""
    return DEFAULT_STRATEGY_BY_AGENT.get(agent_character.strip().lower(), BASELINE_STRATEGY)


def resolve_active_types(settings: StrategySettings) -> list[StrategyType]:
    """
    Decide which strategy types are active.

    Pure function of the settings. The result is ordered by StrategyType
    declaration order and contains no duplicates.
    """
    explicitly_on = [
        strategy_type
        for strategy_type in StrategyType
        if settings.config_for(strategy_type).enabled is True
    ]
    if explicitly_on:
        return explicitly_on

    if not settings.trading_enabled:
        return []

    default = default_strategy_for(settings.agent_character)
    if settings.config_for(default).enabled is False:
        return []
    return [default]
