"""
Trading Engine - Drives one evaluation cycle end to end.

Cycle:
1. Fetch snapshots from the MarketDataSource (DataUnavailable -> skip)
2. Read the agent's wallet and attach holdings to each snapshot
3. Run the StrategyOrchestrator over the enriched snapshots
4. Drop the signals if a newer cycle has started meanwhile
5. Push every signal through the RiskGate, concurrently

Only the gate has side effects. A rejection is a normal OrderResult and
never stops the cycle.
"""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from prediction_agent.execution import OrderOutcome, OrderResult, RiskGate
from prediction_agent.ingestion import DataUnavailable, MarketDataSource
from prediction_agent.storage import AgentStateStore
from prediction_agent.strategies import parse_flag

from .orchestrator import StrategyOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Configuration for the trading engine."""

    agent_id: str
    dry_run: bool = True  # Paper exchange instead of the CLOB

    @classmethod
    def from_env(cls, agent_id: str, env: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        source = os.environ if env is None else env
        return cls(
            agent_id=agent_id,
            dry_run=parse_flag(source.get("DRY_RUN")) is not False,
        )


@dataclass
class EngineStats:
    """Runtime statistics for the engine."""

    cycles_started: int = 0
    cycles_completed: int = 0
    cycles_skipped: int = 0
    cycles_superseded: int = 0
    signals_generated: int = 0
    strategy_errors: int = 0
    outcomes: Dict[str, int] = field(default_factory=dict)
    errors: int = 0

    def record(self, outcome: OrderOutcome) -> None:
        self.outcomes[outcome.value] = self.outcomes.get(outcome.value, 0) + 1

    @property
    def orders_filled(self) -> int:
        return self.outcomes.get(OrderOutcome.FILLED.value, 0)


@dataclass
class CycleResult:
    """Outcome of one engine cycle."""

    generation: int
    snapshot_count: int = 0
    results: List[OrderResult] = field(default_factory=list)
    skipped_reason: Optional[str] = None
    superseded: bool = False

    @property
    def submitted(self) -> int:
        return sum(1 for r in self.results if r.outcome.submitted)


class TradingEngine:
    """
    Coordinates data source -> orchestrator -> gate.

    Usage:
        engine = TradingEngine(
            config=EngineConfig(agent_id="..."),
            source=GammaMarketDataSource(client),
            orchestrator=StrategyOrchestrator.from_settings(settings),
            gate=gate,
            store=store,
        )
        result = await engine.run_cycle()
    """

    def __init__(
        self,
        config: EngineConfig,
        source: MarketDataSource,
        orchestrator: StrategyOrchestrator,
        gate: RiskGate,
        store: AgentStateStore,
    ) -> None:
        self.config = config
        self._source = source
        self._orchestrator = orchestrator
        self._gate = gate
        self._store = store

        self._generation = 0
        self._stats = EngineStats()
        self._last_cycle: Optional[CycleResult] = None

    @property
    def stats(self) -> EngineStats:
        """Current engine statistics."""
        return self._stats

    @property
    def orchestrator(self) -> StrategyOrchestrator:
        return self._orchestrator

    @property
    def gate(self) -> RiskGate:
        return self._gate

    @property
    def last_cycle(self) -> Optional[CycleResult]:
        return self._last_cycle

    async def run_cycle(self) -> CycleResult:
        """
        Run one evaluation cycle.

        Starting a cycle supersedes any cycle still evaluating; the older
        one discards its signals instead of submitting them.
        """
        self._generation += 1
        generation = self._generation
        self._stats.cycles_started += 1
        cycle = CycleResult(generation=generation)

        try:
            snapshots = await self._source.fetch_snapshots()
        except DataUnavailable as e:
            self._stats.cycles_skipped += 1
            cycle.skipped_reason = str(e)
            logger.warning(f"Cycle {generation} skipped, no market data: {e}")
            return self._finish(cycle)

        wallet = await self._store.get_wallet(self.config.agent_id)
        enriched = [s.with_holding(wallet.held_size(s.token_id)) for s in snapshots]
        cycle.snapshot_count = len(enriched)

        signals = await self._orchestrator.run_cycle(enriched)
        report = self._orchestrator.last_report
        if report is not None:
            self._stats.strategy_errors += len(report.errors)

        if generation != self._generation:
            self._stats.cycles_superseded += 1
            cycle.superseded = True
            logger.info(
                f"Cycle {generation} superseded by cycle {self._generation}; "
                f"discarding {len(signals)} signals"
            )
            return cycle

        self._stats.signals_generated += len(signals)
        if not signals:
            logger.debug(f"Cycle {generation}: no signals from {len(enriched)} snapshots")
            return self._finish(cycle)

        outcomes = await asyncio.gather(
            *(self._gate.submit(signal, wallet) for signal in signals),
            return_exceptions=True,
        )
        for signal, outcome in zip(signals, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                self._stats.errors += 1
                logger.error(
                    f"Gate error for {signal.strategy_name} {signal.side.value} "
                    f"{signal.token_id}: {outcome}"
                )
                continue
            self._stats.record(outcome.outcome)
            cycle.results.append(outcome)

        mode = "DRY RUN" if self.config.dry_run else "LIVE"
        logger.info(
            f"Cycle {generation} [{mode}]: {len(signals)} signals, "
            f"{cycle.submitted} submitted, "
            f"{sum(1 for r in cycle.results if r.accepted)} filled"
        )
        return self._finish(cycle)

    def _finish(self, cycle: CycleResult) -> CycleResult:
        self._stats.cycles_completed += 1
        self._last_cycle = cycle
        return cycle
