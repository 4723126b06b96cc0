"""
BackgroundTasksManager - Manages async background tasks.

Handles periodic tasks:
- Evaluation cycles (TradingEngine.run_cycle)
- Reconciliation of in-flight orders (Reconciler.reconcile)
"""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Mapping, Optional

if TYPE_CHECKING:
    from prediction_agent.core.engine import TradingEngine
    from prediction_agent.execution import Reconciler

logger = logging.getLogger(__name__)


@dataclass
class BackgroundTaskConfig:
    """Configuration for background tasks."""

    # Evaluation cycles
    cycle_interval_seconds: float = 60
    cycle_enabled: bool = True

    # Reconciliation of indeterminate orders
    reconcile_interval_seconds: float = 30
    reconcile_enabled: bool = True

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "BackgroundTaskConfig":
        source = os.environ if env is None else env
        return cls(
            cycle_interval_seconds=float(source.get("CYCLE_INTERVAL_SECONDS") or 60),
            reconcile_interval_seconds=float(source.get("RECONCILE_INTERVAL_SECONDS") or 30),
        )


class BackgroundTasksManager:
    """
    Manages background async tasks for the agent.

    Loop errors are logged and the loop carries on after a short pause.
    The manager handles graceful shutdown.

    Usage:
        manager = BackgroundTasksManager(
            engine=trading_engine,
            reconciler=reconciler,
            config=BackgroundTaskConfig(),
        )
        await manager.start()
        # ... agent runs ...
        await manager.stop()
    """

    def __init__(
        self,
        engine: Optional["TradingEngine"] = None,
        reconciler: Optional["Reconciler"] = None,
        config: Optional[BackgroundTaskConfig] = None,
        error_pause_seconds: float = 5.0,
    ) -> None:
        self._engine = engine
        self._reconciler = reconciler
        self._config = config or BackgroundTaskConfig()
        self._error_pause = error_pause_seconds

        self._running = False
        self._tasks: List[asyncio.Task] = []
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        """Whether the manager is running."""
        return self._running

    async def start(self) -> None:
        """Start all background tasks."""
        if self._running:
            logger.warning("BackgroundTasksManager already running")
            return

        logger.info("Starting background tasks...")
        self._running = True
        self._stop_event.clear()

        if self._config.cycle_enabled and self._engine:
            self._tasks.append(asyncio.create_task(self._cycle_loop(), name="evaluation_cycle"))
            logger.info(
                f"Started evaluation cycle task "
                f"(interval={self._config.cycle_interval_seconds}s)"
            )

        if self._config.reconcile_enabled and self._reconciler:
            self._tasks.append(asyncio.create_task(self._reconcile_loop(), name="reconcile"))
            logger.info(
                f"Started reconcile task "
                f"(interval={self._config.reconcile_interval_seconds}s)"
            )

        logger.info(f"Background tasks started: {len(self._tasks)} tasks")

    async def stop(self) -> None:
        """Stop all background tasks gracefully."""
        if not self._running:
            return

        logger.info("Stopping background tasks...")
        self._running = False
        self._stop_event.set()

        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        logger.info("Background tasks stopped")

    async def wait_stopped(self) -> None:
        """Block until stop() is called."""
        await self._stop_event.wait()

    async def _wait_interval(self, interval: float) -> bool:
        """Sleep for interval; True if a stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            return True
        except asyncio.TimeoutError:
            return not self._running

    async def _cycle_loop(self) -> None:
        """Run an evaluation cycle immediately, then every interval."""
        interval = self._config.cycle_interval_seconds

        while self._running:
            try:
                await self._engine.run_cycle()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in evaluation cycle: {e}")
                await asyncio.sleep(self._error_pause)

            if await self._wait_interval(interval):
                break

    async def _reconcile_loop(self) -> None:
        """Periodically resolve orders still holding an in-flight lease."""
        interval = self._config.reconcile_interval_seconds

        while self._running:
            if await self._wait_interval(interval):
                break

            try:
                report = await self._reconciler.reconcile()
                if report.resolved:
                    logger.info(f"Reconcile: {len(report.resolved)} orders resolved")
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in reconcile: {e}")
                await asyncio.sleep(self._error_pause)
