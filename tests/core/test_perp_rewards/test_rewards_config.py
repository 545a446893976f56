"""Tests for src/core/perp_rewards/config.py."""

import pytest

from src.core.perp_rewards import ManualClock, RewardConfig, config_from_env, deploy_market
from src.core.perp_rewards.math import REWARD_RATE, SCALE, SEASON_PERIOD_SECONDS

_VARS = (
    "START_TIME",
    "PERIOD_SECONDS",
    "REWARD_RATE",
    "REWARD_RATE_DIVISOR",
    "SCALE",
    "CHECK_INVARIANTS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(f"PERP_REWARDS_{name}", raising=False)


class TestRewardConfig:
    def test_defaults(self):
        c = RewardConfig()
        assert c.period_seconds == SEASON_PERIOD_SECONDS
        assert c.reward_rate == REWARD_RATE
        assert c.reward_rate_divisor == 1000
        assert c.scale == SCALE
        assert c.check_invariants is False

    @pytest.mark.parametrize(
        "field",
        ["start_time", "period_seconds", "reward_rate", "reward_rate_divisor", "scale"],
    )
    def test_rejects_negative(self, field):
        with pytest.raises(ValueError):
            RewardConfig(**{field: -1})

    def test_zero_rate_allowed(self):
        assert RewardConfig(reward_rate=0).reward_rate == 0


class TestConfigFromEnv:
    def test_no_env_gives_defaults(self):
        assert config_from_env() == RewardConfig()

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("PERP_REWARDS_START_TIME", "1700000000")
        monkeypatch.setenv("PERP_REWARDS_PERIOD_SECONDS", "3600")
        monkeypatch.setenv("PERP_REWARDS_CHECK_INVARIANTS", "yes")
        c = config_from_env()
        assert c.start_time == 1_700_000_000
        assert c.period_seconds == 3600
        assert c.check_invariants is True

    def test_malformed_falls_back(self, monkeypatch):
        monkeypatch.setenv("PERP_REWARDS_PERIOD_SECONDS", "thirty days")
        assert config_from_env().period_seconds == SEASON_PERIOD_SECONDS

    def test_clamped(self, monkeypatch):
        monkeypatch.setenv("PERP_REWARDS_PERIOD_SECONDS", "0")
        monkeypatch.setenv("PERP_REWARDS_START_TIME", "-5")
        c = config_from_env()
        assert c.period_seconds == 1
        assert c.start_time == 0

    def test_explicit_start_time_wins(self, monkeypatch):
        monkeypatch.setenv("PERP_REWARDS_START_TIME", "5")
        assert config_from_env(start_time=42).start_time == 42

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("MKT_REWARD_RATE", "100")
        assert config_from_env("MKT_").reward_rate == 100

    def test_default_start_time_used_when_unset(self):
        assert config_from_env(default_start_time=77).start_time == 77

    def test_env_start_time_beats_default(self, monkeypatch):
        monkeypatch.setenv("PERP_REWARDS_START_TIME", "5")
        assert config_from_env(default_start_time=77).start_time == 5


class TestDeployReadsEnv:
    def test_period_from_env(self, monkeypatch):
        monkeypatch.setenv("PERP_REWARDS_PERIOD_SECONDS", "3600")
        market = deploy_market(time_source=ManualClock(1_000))
        assert market.engine.config.period_seconds == 3600
        assert market.engine.start_time == 1_000

    def test_start_time_from_env(self, monkeypatch):
        monkeypatch.setenv("PERP_REWARDS_START_TIME", "500")
        market = deploy_market(time_source=ManualClock(1_000))
        assert market.engine.start_time == 500

    def test_explicit_config_ignores_env(self, monkeypatch):
        monkeypatch.setenv("PERP_REWARDS_PERIOD_SECONDS", "3600")
        market = deploy_market(config=RewardConfig(start_time=0), time_source=ManualClock(0))
        assert market.engine.config.period_seconds == SEASON_PERIOD_SECONDS
