"""
Tests for StrategyOrchestrator.

These tests verify:
- Active strategy resolution from settings
- Deterministic fan-in order
- Isolation of failing strategies
"""
import logging
import threading

import pytest

from prediction_agent.core import (
    StrategyEvaluationError,
    StrategyOrchestrator,
    resolve_active_strategies,
)
from prediction_agent.strategies import (
    IndexStrategy,
    InteractiveStrategy,
    SimpleThresholdStrategy,
    StrategyConfigError,
    StrategySettings,
)


class TestResolveActiveStrategies:
    def test_identity_default_when_trading_enabled(self):
        settings = StrategySettings.from_env(
            {"AGENT_CHARACTER": "pamela", "TRADING_ENABLED": "true"}
        )

        strategies = resolve_active_strategies(settings)

        assert [s.name for s in strategies] == ["InteractiveStrategy"]
        assert isinstance(strategies[0], InteractiveStrategy)

    def test_explicit_flags_are_additive(self):
        settings = StrategySettings.from_env(
            {
                "AGENT_CHARACTER": "pamela",
                "TRADING_ENABLED": "true",
                "INTERACTIVE_STRATEGY_ENABLED": "true",
                "SIMPLE_STRATEGY_ENABLED": "true",
            }
        )

        names = [s.name for s in resolve_active_strategies(settings)]

        assert names == ["InteractiveStrategy", "SimpleThresholdStrategy"]

    def test_trading_disabled_means_nothing(self):
        settings = StrategySettings.from_env({"AGENT_CHARACTER": "chalk-eater"})

        assert resolve_active_strategies(settings) == []

    def test_invalid_options_raise(self):
        settings = StrategySettings.from_env(
            {"SIMPLE_STRATEGY_ENABLED": "true", "SIMPLE_BUY_THRESHOLD": "cheap"}
        )

        with pytest.raises(StrategyConfigError):
            resolve_active_strategies(settings)

    def test_from_settings_registers_in_order(self):
        settings = StrategySettings.from_env(
            {"SIMPLE_STRATEGY_ENABLED": "true", "EXPIRING_MARKETS_ENABLED": "true"}
        )

        orchestrator = StrategyOrchestrator.from_settings(settings)

        assert [s.name for s in orchestrator.get_all_strategies()] == [
            "ExpiringMarketsStrategy",
            "SimpleThresholdStrategy",
        ]
        assert isinstance(
            orchestrator.get_strategy("SimpleThresholdStrategy"), SimpleThresholdStrategy
        )
        assert orchestrator.get_strategy("InteractiveStrategy") is None

    def test_inert_index_strategy_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            orchestrator = StrategyOrchestrator([IndexStrategy()])

        assert orchestrator.get_strategy("IndexStrategy") is not None
        assert "will not emit signals" in caplog.text


class TestRunCycle:
    @pytest.mark.asyncio
    async def test_fan_in_follows_registration_then_emission_order(
        self, static_strategy, signal_factory, snapshot_factory
    ):
        first = static_strategy(
            "First",
            [signal_factory("First", "tok_b"), signal_factory("First", "tok_a")],
        )
        second = static_strategy("Second", [signal_factory("Second", "tok_c")])
        orchestrator = StrategyOrchestrator([first, second])

        signals = await orchestrator.run_cycle([snapshot_factory()])

        assert [(s.strategy_name, s.token_id) for s in signals] == [
            ("First", "tok_b"),
            ("First", "tok_a"),
            ("Second", "tok_c"),
        ]

    @pytest.mark.asyncio
    async def test_every_strategy_sees_the_same_tuple(
        self, static_strategy, snapshot_factory
    ):
        first = static_strategy("First")
        second = static_strategy("Second")
        orchestrator = StrategyOrchestrator([first, second])

        await orchestrator.run_cycle([snapshot_factory("tok_a"), snapshot_factory("tok_b")])

        assert isinstance(first.seen[0], tuple)
        assert first.seen[0] is second.seen[0]

    @pytest.mark.asyncio
    async def test_failing_strategy_is_isolated(
        self, static_strategy, signal_factory, snapshot_factory
    ):
        broken = static_strategy("Broken", error=RuntimeError("boom"))
        healthy = static_strategy("Healthy", [signal_factory("Healthy")])
        orchestrator = StrategyOrchestrator([broken, healthy])

        signals = await orchestrator.run_cycle([snapshot_factory()])

        assert [s.strategy_name for s in signals] == ["Healthy"]
        report = orchestrator.last_report
        assert report.failed_strategies == ["Broken"]
        assert isinstance(report.errors[0], StrategyEvaluationError)
        assert isinstance(report.errors[0].cause, RuntimeError)
        assert report.signal_counts == {"Broken": 0, "Healthy": 1}

    @pytest.mark.asyncio
    async def test_non_signal_output_is_a_failure(self, static_strategy, snapshot_factory):
        weird = static_strategy("Weird", ["not a signal"])
        orchestrator = StrategyOrchestrator([weird])

        signals = await orchestrator.run_cycle([snapshot_factory()])

        assert signals == []
        assert orchestrator.last_report.failed_strategies == ["Weird"]

    @pytest.mark.asyncio
    async def test_no_strategies_no_signals(self, snapshot_factory):
        orchestrator = StrategyOrchestrator()

        assert await orchestrator.run_cycle([snapshot_factory()]) == []
        assert orchestrator.last_report.snapshot_count == 1

    @pytest.mark.asyncio
    async def test_strategies_run_off_the_event_loop(self, snapshot_factory):
        """Each strategy is evaluated in a worker thread."""
        threads = []

        class ThreadRecorder:
            name = "ThreadRecorder"

            def evaluate(self, snapshots):
                threads.append(threading.current_thread())
                return []

        await StrategyOrchestrator([ThreadRecorder()]).run_cycle([snapshot_factory()])

        assert threads and threads[0] is not threading.main_thread()
