"""
Core Layer - Strategy orchestration and the cycle engine.

This module provides:
    - StrategyOrchestrator: Resolves active strategies and fans in their signals
    - resolve_active_strategies: Settings -> ordered strategy instances
    - StrategyEvaluationError / CycleReport: Per-cycle strategy failures and counts
    - TradingEngine: fetch -> enrich -> orchestrate -> gate, with supersession
    - EngineConfig / EngineStats / CycleResult
    - BackgroundTasksManager: Cycle and reconciliation loops
    - BackgroundTaskConfig: Loop intervals

Data Flow:
    1. MarketDataSource produces snapshots
    2. Engine attaches the agent's holdings
    3. Orchestrator runs every active strategy in parallel
    4. RiskGate turns approved signals into orders
"""

# Orchestration
from .orchestrator import (
    CycleReport,
    StrategyEvaluationError,
    StrategyOrchestrator,
    resolve_active_strategies,
)

# Engine
from .engine import CycleResult, EngineConfig, EngineStats, TradingEngine

# Background tasks
from .background_tasks import BackgroundTaskConfig, BackgroundTasksManager

__all__ = [
    # Orchestration
    "StrategyOrchestrator",
    "StrategyEvaluationError",
    "CycleReport",
    "resolve_active_strategies",
    # Engine
    "TradingEngine",
    "EngineConfig",
    "EngineStats",
    "CycleResult",
    # Background tasks
    "BackgroundTasksManager",
    "BackgroundTaskConfig",
]
