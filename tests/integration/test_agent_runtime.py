"""Integration tests for agent wiring in main.py."""
import os
from decimal import Decimal

import pytest

from prediction_agent.execution import OrderOutcome
from prediction_agent.main import (
    AgentConfig,
    SingletonAgentError,
    TradingAgent,
    load_env_file,
    parse_args,
    singleton_lock,
    strategy_settings_for,
)
from prediction_agent.persona import load_profile
from prediction_agent.strategies import StrategyType

pytestmark = pytest.mark.integration


class TestAgentConfig:
    def test_defaults(self, tmp_path):
        config = AgentConfig.from_env({"POLYMARKET_CREDS_PATH": str(tmp_path / "none.json")})

        assert config.dry_run is True
        assert config.database_url == ""
        assert config.snapshot_file is None
        assert config.gate.max_position_notional == Decimal("100")
        assert config.tasks.cycle_interval_seconds == 60

    def test_reads_credentials_file(self, tmp_path):
        creds = tmp_path / "creds.json"
        creds.write_text('{"api_key": "k", "api_secret": "s"}')

        config = AgentConfig.from_env({"DRY_RUN": "false", "POLYMARKET_CREDS_PATH": str(creds)})

        assert config.dry_run is False
        assert config.missing_credentials() == ["api_passphrase", "private_key"]


class TestStrategySettingsForProfile:
    def test_profile_identity_used_when_env_silent(self):
        profile = load_profile({"AGENT_CHARACTER": "chalk-eater"}, lambda path: None)

        settings = strategy_settings_for(profile, {"TRADING_ENABLED": "true"})

        assert settings.agent_character == "chalk-eater"

    def test_env_identity_wins(self):
        profile = load_profile({"AGENT_CHARACTER": "chalk-eater"}, lambda path: None)

        settings = strategy_settings_for(profile, {"AGENT_CHARACTER": "lib-out"})

        assert settings.agent_character == "lib-out"


class TestParseArgs:
    def test_flags(self):
        args = parse_args(["--dry-run", "--once", "--log-level", "DEBUG"])

        assert args.dry_run and args.once
        assert args.log_level == "DEBUG"

    def test_defaults(self):
        args = parse_args([])

        assert not args.dry_run and not args.once
        assert args.config is None


class TestLoadEnvFile:
    def test_fills_unset_variables_only(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# agent settings\n"
            "AGENT_CHARACTER=\"chalk-eater\"\n"
            "DRY_RUN=false\n"
        )
        monkeypatch.setenv("AGENT_CHARACTER", "")
        monkeypatch.delenv("AGENT_CHARACTER")
        monkeypatch.setenv("DRY_RUN", "true")

        load_env_file(str(env_file))

        assert os.environ["AGENT_CHARACTER"] == "chalk-eater"
        assert os.environ["DRY_RUN"] == "true"

    def test_missing_file_is_ignored(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        load_env_file()


class TestSingletonLock:
    def test_second_holder_is_refused(self, tmp_path):
        pid_file = str(tmp_path / "agent.pid")

        with singleton_lock(pid_file):
            with pytest.raises(SingletonAgentError):
                with singleton_lock(pid_file):
                    pass

        assert not (tmp_path / "agent.pid").exists()


class TestTradingAgent:
    @pytest.mark.asyncio
    async def test_single_dry_run_cycle(self, base_env):
        env = dict(base_env, AGENT_CHARACTER="")
        profile = load_profile(env, lambda path: None)
        settings = strategy_settings_for(profile, env)
        agent = TradingAgent(AgentConfig.from_env(env), profile, settings)

        await agent.start(once=True)

        assert [type(s).__name__ for s in agent.engine.orchestrator.get_all_strategies()] == [
            "SimpleThresholdStrategy"
        ]
        assert settings.config_for(StrategyType.SIMPLE_THRESHOLD).enabled is True
        outcomes = {r.signal.token_id: r.outcome for r in agent.engine.last_cycle.results}
        assert outcomes["tok_cheap"] is OrderOutcome.FILLED

        wallet = await agent._store.get_wallet(profile.id)
        assert wallet.collateral_balance == Decimal("999.00")
