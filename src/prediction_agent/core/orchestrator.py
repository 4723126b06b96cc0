"""
StrategyOrchestrator - Runs the active strategies and merges their signals.

Every active strategy sees the same immutable snapshot tuple and runs in
its own worker thread. Fan-in is deterministic: signals are ordered by
strategy registration order, then by each strategy's emission order.

A strategy that raises, or returns something other than TradeSignals,
contributes nothing for that cycle. The failure is logged and kept on
the cycle report; sibling strategies are unaffected.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from prediction_agent.strategies import (
    IndexStrategy,
    MarketSnapshot,
    Strategy,
    StrategyRegistry,
    StrategySettings,
    TradeSignal,
    build_strategy,
    resolve_active_types,
)

logger = logging.getLogger(__name__)


class StrategyEvaluationError(Exception):
    """A single strategy failed during one evaluation cycle."""

    def __init__(self, strategy_name: str, cause: BaseException):
        self.strategy_name = strategy_name
        self.cause = cause
        super().__init__(f"Strategy {strategy_name} failed: {cause!r}")


@dataclass
class CycleReport:
    """What happened in the last orchestrator cycle."""

    snapshot_count: int = 0
    signals: List[TradeSignal] = field(default_factory=list)
    signal_counts: Dict[str, int] = field(default_factory=dict)
    errors: List[StrategyEvaluationError] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def failed_strategies(self) -> List[str]:
        return [e.strategy_name for e in self.errors]


def resolve_active_strategies(settings: StrategySettings) -> List[Strategy]:
    """
    Build the active strategy instances for the given settings.

    Ordered by registration order (Interactive, ExpiringMarkets, Index,
    SimpleThreshold).

    Raises:
        StrategyConfigError: If an active strategy's options are invalid
    """
    return [
        build_strategy(strategy_type, settings.config_for(strategy_type))
        for strategy_type in resolve_active_types(settings)
    ]


def _evaluate(
    strategy: Strategy, snapshots: tuple[MarketSnapshot, ...]
) -> Union[List[TradeSignal], StrategyEvaluationError]:
    """Run one strategy in a worker thread, capturing its failure."""
    try:
        signals = list(strategy.evaluate(snapshots))
    except Exception as e:
        return StrategyEvaluationError(strategy.name, e)

    for signal in signals:
        if not isinstance(signal, TradeSignal):
            return StrategyEvaluationError(
                strategy.name, TypeError(f"expected TradeSignal, got {type(signal).__name__}")
            )
    return signals


class StrategyOrchestrator:
    """
    Owns the active strategies for one agent and runs evaluation cycles.

    Usage:
        orchestrator = StrategyOrchestrator.from_settings(StrategySettings.from_env())
        signals = await orchestrator.run_cycle(snapshots)
    """

    def __init__(self, strategies: Sequence[Strategy] = ()) -> None:
        self._registry = StrategyRegistry()
        for strategy in strategies:
            self._registry.register(strategy)
            if isinstance(strategy, IndexStrategy) and not strategy.is_active:
                logger.warning(
                    f"{strategy.name} is active but has no index id or basket; "
                    f"it will not emit signals"
                )
        self._last_report: Optional[CycleReport] = None

    @classmethod
    def from_settings(cls, settings: StrategySettings) -> "StrategyOrchestrator":
        strategies = resolve_active_strategies(settings)
        names = ", ".join(s.name for s in strategies) or "(none)"
        logger.info(
            f"Active strategies for {settings.agent_character} "
            f"(trading {'enabled' if settings.trading_enabled else 'disabled'}): {names}"
        )
        return cls(strategies)

    @property
    def last_report(self) -> Optional[CycleReport]:
        return self._last_report

    def get_strategy(self, name: str) -> Optional[Strategy]:
        return self._registry.get(name)

    def get_all_strategies(self) -> List[Strategy]:
        """Active strategies in registration order."""
        return self._registry.all()

    async def run_cycle(self, snapshots: Sequence[MarketSnapshot]) -> List[TradeSignal]:
        """
        Evaluate all active strategies concurrently and merge their signals.

        Args:
            snapshots: Market state for this cycle

        Returns:
            Signals ordered by strategy registration order, then emission order
        """
        frozen = tuple(snapshots)
        strategies = self._registry.all()
        started = time.monotonic()

        outcomes = await asyncio.gather(
            *(asyncio.to_thread(_evaluate, strategy, frozen) for strategy in strategies)
        )

        report = CycleReport(snapshot_count=len(frozen))
        for strategy, outcome in zip(strategies, outcomes):
            if isinstance(outcome, StrategyEvaluationError):
                logger.error(str(outcome))
                report.errors.append(outcome)
                report.signal_counts[strategy.name] = 0
                continue
            report.signals.extend(outcome)
            report.signal_counts[strategy.name] = len(outcome)

        report.duration_seconds = time.monotonic() - started
        self._last_report = report

        logger.debug(
            f"Cycle evaluated {len(strategies)} strategies over {len(frozen)} snapshots: "
            f"{len(report.signals)} signals, {len(report.errors)} failures"
        )
        return list(report.signals)
