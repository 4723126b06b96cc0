"""
Prediction Market Agent - Main Entry Point

Runs one autonomous trading agent: resolves its profile, builds the
active strategies from configuration, and drives evaluation cycles whose
signals go through the RiskGate before any order is placed.

Usage:
    python -m prediction_agent.main [--dry-run] [--once] [--config CONFIG_PATH]

Configuration:
    The agent reads configuration from:
    1. Environment variables (listed below), with a .env file in the
       working directory loaded first without overriding set values
    2. polymarket_api_creds.json for CLOB API credentials
    3. Command line arguments

Environment Variables:
    AGENT_CHARACTER           Identity (pamela, chalk-eater, lib-out, ...)
    AGENT_ID                  Expected profile id (mismatch is logged)
    CONFIG_PATH               Injected profile config (default: /app/config.json)
    TRADING_ENABLED           Global trading flag (default: false)
    DRY_RUN                   Paper exchange instead of the CLOB (default: true)
    DATABASE_URL              PostgreSQL store; empty uses an in-memory store
    MARKET_SNAPSHOT_FILE      Read snapshots from JSON instead of the Gamma API
    GAMMA_MAX_MARKETS         Markets fetched per cycle (default: 200)
    MAX_POSITION_NOTIONAL     Per-token position limit (default: 100)
    ORDER_TIMEOUT_SECONDS     Exchange submission timeout (default: 10)
    PAPER_STARTING_BALANCE    Collateral for a new paper wallet (default: 1000)
    CYCLE_INTERVAL_SECONDS    Evaluation cycle interval (default: 60)
    RECONCILE_INTERVAL_SECONDS  In-flight order reconciliation interval (default: 30)
    POLYMARKET_CREDS_PATH     Path to polymarket_api_creds.json
    LOG_LEVEL                 Logging level (DEBUG/INFO/WARNING/ERROR)

    Per-strategy flags and parameters (INTERACTIVE_STRATEGY_ENABLED,
    SIMPLE_BUY_THRESHOLD, ...) are read by StrategySettings.from_env.

Live Mode Requirements:
    When DRY_RUN=false, the agent requires:
    - Valid polymarket_api_creds.json with all required fields
    - CLOB client must successfully initialize
    The agent will fail fast if any of these are missing.
"""

from __future__ import annotations

import argparse
import asyncio
import atexit
import fcntl
import json
import logging
import os
import signal
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Generator, Mapping, Optional

# Configure logging before imports
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

from prediction_agent.core import (  # noqa: E402
    BackgroundTaskConfig,
    BackgroundTasksManager,
    EngineConfig,
    StrategyOrchestrator,
    TradingEngine,
)
from prediction_agent.execution import (  # noqa: E402
    ClobExchangeClient,
    ExchangeClient,
    GateConfig,
    PaperExchangeClient,
    Reconciler,
    RiskGate,
)
from prediction_agent.ingestion import (  # noqa: E402
    FileMarketDataSource,
    GammaMarketDataSource,
    MarketDataSource,
    PolymarketRestClient,
)
from prediction_agent.persona import (  # noqa: E402
    AgentProfile,
    ProfileValidationError,
    load_profile,
    validate_profile,
)
from prediction_agent.storage import (  # noqa: E402
    AgentStateStore,
    Database,
    DatabaseConfig,
    InMemoryAgentStateStore,
    PostgresAgentStateStore,
)
from prediction_agent.strategies import (  # noqa: E402
    StrategyConfigError,
    StrategySettings,
    parse_flag,
)

# Default PID file location
DEFAULT_PID_FILE = "/tmp/prediction-agent.pid"

REQUIRED_CREDENTIAL_FIELDS = ("api_key", "api_secret", "api_passphrase", "private_key")


class SingletonAgentError(Exception):
    """Raised when another agent instance is already running."""
    pass


@contextmanager
def singleton_lock(pid_file: str = DEFAULT_PID_FILE) -> Generator[None, None, None]:
    """
    Ensure only one agent instance runs at a time.

    Holds an exclusive non-blocking flock on the PID file for the
    lifetime of the context.

    Raises:
        SingletonAgentError: If another instance holds the lock
    """
    pid_path = Path(pid_file)

    existing_pid = None
    try:
        existing_pid = pid_path.read_text().strip()
    except FileNotFoundError:
        pass

    # "a+" so the file is not truncated before we hold the lock
    fp = open(pid_path, "a+")

    try:
        fcntl.flock(fp.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        fp.close()
        if existing_pid:
            raise SingletonAgentError(
                f"Another agent instance is already running (PID: {existing_pid})"
            )
        raise SingletonAgentError("Another agent instance is already running")

    fp.seek(0)
    fp.truncate()
    fp.write(str(os.getpid()))
    fp.flush()

    def cleanup() -> None:
        if fp.closed:
            return
        fcntl.flock(fp.fileno(), fcntl.LOCK_UN)
        fp.close()
        pid_path.unlink(missing_ok=True)

    atexit.register(cleanup)

    try:
        logger.info(f"Acquired singleton lock (PID: {os.getpid()}, file: {pid_file})")
        yield
    finally:
        cleanup()
        atexit.unregister(cleanup)


@dataclass
class AgentConfig:
    """Process-level configuration (strategy options live in StrategySettings)."""

    dry_run: bool = True
    database_url: str = ""
    snapshot_file: Optional[str] = None
    gamma_max_markets: int = 200
    paper_starting_balance: Decimal = Decimal("1000")

    gate: GateConfig = field(default_factory=GateConfig)
    tasks: BackgroundTaskConfig = field(default_factory=BackgroundTaskConfig)

    # Polymarket credentials
    clob_credentials: dict = field(default_factory=dict)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AgentConfig":
        """Load configuration from environment variables."""
        source = os.environ if env is None else env

        config = cls(
            dry_run=parse_flag(source.get("DRY_RUN")) is not False,
            database_url=(source.get("DATABASE_URL") or "").strip(),
            snapshot_file=source.get("MARKET_SNAPSHOT_FILE") or None,
            gamma_max_markets=int(source.get("GAMMA_MAX_MARKETS") or 200),
            paper_starting_balance=Decimal(source.get("PAPER_STARTING_BALANCE") or "1000"),
            gate=GateConfig.from_env(source),
            tasks=BackgroundTaskConfig.from_env(source),
        )

        creds_path = Path(source.get("POLYMARKET_CREDS_PATH") or "polymarket_api_creds.json")
        if creds_path.exists():
            try:
                config.clob_credentials = json.loads(creds_path.read_text())
                logger.info(f"Loaded Polymarket credentials from {creds_path}")
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Failed to load credentials: {e}")

        return config

    def missing_credentials(self) -> list[str]:
        return [f for f in REQUIRED_CREDENTIAL_FIELDS if f not in self.clob_credentials]


def strategy_settings_for(profile: AgentProfile, env: Optional[Mapping[str, str]] = None) -> StrategySettings:
    """
    Strategy settings for this agent.

    The profile's identity applies unless AGENT_CHARACTER is set explicitly.
    """
    source = dict(os.environ if env is None else env)
    if not (source.get("AGENT_CHARACTER") or "").strip():
        source["AGENT_CHARACTER"] = profile.character
    return StrategySettings.from_env(source)


class TradingAgent:
    """
    Wires and runs one agent.

    Manages the lifecycle of:
    - State store (Postgres or in-memory)
    - Exchange client (CLOB or paper)
    - Market data source (Gamma or snapshot file)
    - Engine, gate, reconciler and background loops
    """

    def __init__(self, config: AgentConfig, profile: AgentProfile, settings: StrategySettings):
        self.config = config
        self.profile = profile
        self.settings = settings

        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized on start)
        self._db: Optional[Database] = None
        self._store: Optional[AgentStateStore] = None
        self._exchange: Optional[ExchangeClient] = None
        self._rest_client: Optional[PolymarketRestClient] = None
        self._engine: Optional[TradingEngine] = None
        self._reconciler: Optional[Reconciler] = None
        self._background_tasks: Optional[BackgroundTasksManager] = None

    @property
    def agent_id(self) -> str:
        return self.profile.id

    @property
    def engine(self) -> Optional[TradingEngine]:
        return self._engine

    async def start(self, once: bool = False) -> None:
        """
        Start the agent.

        Args:
            once: Run a single cycle and reconciliation pass, then stop
        """
        logger.info("=" * 60)
        logger.info(f"PREDICTION AGENT: {self.profile.name} ({self.agent_id})")
        logger.info(f"Trading: {'DRY RUN' if self.config.dry_run else 'LIVE'}")
        logger.info("=" * 60)

        self._running = True
        self._shutdown_event.clear()
        self._setup_signal_handlers()

        try:
            await self._init_store()
            self._init_exchange()
            await self._init_wallet()
            self._init_engine()

            if once:
                await self._engine.run_cycle()
                await self._reconciler.reconcile()
                self._log_stats()
                return

            self._background_tasks = BackgroundTasksManager(
                engine=self._engine,
                reconciler=self._reconciler,
                config=self.config.tasks,
            )
            await self._background_tasks.start()

            logger.info("Agent started successfully. Press Ctrl+C to stop")
            await self._shutdown_event.wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the agent gracefully."""
        if not self._running:
            return

        logger.info("Shutting down...")
        self._running = False
        self._shutdown_event.set()

        if self._background_tasks:
            try:
                await self._background_tasks.stop()
            except Exception as e:
                logger.warning(f"Error stopping background tasks: {e}")

        if self._engine:
            self._log_stats()
            pending = len(self._engine.gate.in_flight)
            if pending:
                logger.warning(f"{pending} orders still in flight at shutdown")

        if self._rest_client:
            try:
                await self._rest_client.close()
            except Exception as e:
                logger.warning(f"Error closing REST client: {e}")

        if self._db:
            try:
                await self._db.close()
            except Exception as e:
                logger.warning(f"Error closing database: {e}")

        logger.info("Shutdown complete")

    async def _init_store(self) -> None:
        db_config = DatabaseConfig.from_env({"DATABASE_URL": self.config.database_url})
        if db_config is None:
            logger.info("State store: in-memory (DATABASE_URL not set)")
            self._store = InMemoryAgentStateStore()
            return

        self._db = Database(db_config)
        await self._db.initialize()
        store = PostgresAgentStateStore(self._db)
        await store.ensure_schema()
        self._store = store
        logger.info("State store: PostgreSQL")

    def _init_exchange(self) -> None:
        if self.config.dry_run:
            self._exchange = PaperExchangeClient(
                starting_balance=self.config.paper_starting_balance
            )
            logger.info("Exchange: paper")
        else:
            self._exchange = ClobExchangeClient(self._create_clob_client())
            logger.info("Exchange: Polymarket CLOB")

    async def _init_wallet(self) -> None:
        if self.config.dry_run:
            wallet = await self._store.ensure_wallet(
                self.agent_id, self.config.paper_starting_balance
            )
        else:
            balance = await self._exchange.get_balance()
            await self._store.set_collateral(self.agent_id, balance)
            wallet = await self._store.get_wallet(self.agent_id)
        logger.info(
            f"Wallet: collateral={wallet.collateral_balance}, "
            f"positions={len(wallet.positions)}"
        )

    def _create_source(self) -> MarketDataSource:
        if self.config.snapshot_file:
            logger.info(f"Market data: snapshot file {self.config.snapshot_file}")
            return FileMarketDataSource(self.config.snapshot_file)
        self._rest_client = PolymarketRestClient()
        logger.info("Market data: Gamma API")
        return GammaMarketDataSource(self._rest_client, max_markets=self.config.gamma_max_markets)

    def _init_engine(self) -> None:
        gate = RiskGate(
            exchange=self._exchange,
            store=self._store,
            agent_id=self.agent_id,
            config=self.config.gate,
        )
        self._reconciler = Reconciler(gate, self._exchange)
        self._engine = TradingEngine(
            config=EngineConfig(agent_id=self.agent_id, dry_run=self.config.dry_run),
            source=self._create_source(),
            orchestrator=StrategyOrchestrator.from_settings(self.settings),
            gate=gate,
            store=self._store,
        )

    def _create_clob_client(self) -> Any:
        """
        Create the Polymarket CLOB client for live trading.

        Raises:
            RuntimeError: If the client cannot be created
        """
        from py_clob_client.client import ClobClient
        from py_clob_client.clob_types import ApiCreds

        creds = self.config.clob_credentials
        try:
            client = ClobClient(
                host=creds.get("host", "https://clob.polymarket.com"),
                chain_id=creds.get("chain_id", 137),
                key=creds.get("private_key"),
                creds=ApiCreds(
                    api_key=creds["api_key"],
                    api_secret=creds["api_secret"],
                    api_passphrase=creds["api_passphrase"],
                ),
                signature_type=creds.get("signature_type", 2),
                funder=creds.get("funder"),
            )
        except Exception as e:
            raise RuntimeError(f"Failed to create CLOB client for live trading: {e}") from e

        logger.info("CLOB Client: Connected")
        return client

    def _log_stats(self) -> None:
        stats = self._engine.stats
        logger.info(
            f"Stats: cycles={stats.cycles_completed}, skipped={stats.cycles_skipped}, "
            f"superseded={stats.cycles_superseded}, signals={stats.signals_generated}, "
            f"outcomes={stats.outcomes}"
        )

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            logger.info(f"Received signal {sig}")
            self._shutdown_event.set()

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(path)
    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    value = value.strip().strip('"').strip("'")
                    os.environ.setdefault(key.strip(), value)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Prediction Market Agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run in paper trading mode (no real orders)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single evaluation cycle and exit",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to the injected profile config (overrides CONFIG_PATH)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    if args.config:
        os.environ["CONFIG_PATH"] = args.config

    config = AgentConfig.from_env()
    if args.dry_run:
        config.dry_run = True

    if not config.dry_run:
        if not config.clob_credentials:
            logger.error("Live trading requires Polymarket API credentials")
            return 1
        missing = config.missing_credentials()
        if missing:
            logger.error(f"Missing required credential fields: {missing}")
            return 1

    try:
        profile = load_profile()
        validate_profile(profile)
        settings = strategy_settings_for(profile)
        agent = TradingAgent(config, profile, settings)
        await agent.start(once=args.once)
        return 0
    except (ProfileValidationError, StrategyConfigError) as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def main() -> int:
    """Main entry point."""
    load_env_file()

    args = parse_args()

    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        with singleton_lock():
            try:
                return asyncio.run(main_async(args))
            except KeyboardInterrupt:
                return 0
    except SingletonAgentError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
