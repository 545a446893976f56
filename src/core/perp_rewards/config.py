"""Configuration for a reward market.

Defaults are the genesis constants from `math.py`. `config_from_env()` reads
overrides from the environment with clamped integer parsing; malformed values
fall back to the default instead of failing startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .math import REWARD_RATE, REWARD_RATE_DIVISOR, SCALE, SEASON_PERIOD_SECONDS, UINT256_MAX

ENV_PREFIX = "PERP_REWARDS_"


def _env_int(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        v = int(raw.strip())
    except ValueError:
        return int(default)
    if v < lo:
        return int(lo)
    if v > hi:
        return int(hi)
    return int(v)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class RewardConfig:
    start_time: int = 0
    period_seconds: int = SEASON_PERIOD_SECONDS
    reward_rate: int = REWARD_RATE
    reward_rate_divisor: int = REWARD_RATE_DIVISOR
    scale: int = SCALE
    # Run the invariant registry after every committed action (O(state); tests/debug).
    check_invariants: bool = False

    def __post_init__(self) -> None:
        if self.start_time < 0:
            raise ValueError("start_time must be non-negative")
        if self.period_seconds <= 0:
            raise ValueError("period_seconds must be positive")
        if self.reward_rate < 0:
            raise ValueError("reward_rate must be non-negative")
        if self.reward_rate_divisor <= 0:
            raise ValueError("reward_rate_divisor must be positive")
        if self.scale <= 0:
            raise ValueError("scale must be positive")


def config_from_env(
    prefix: str = ENV_PREFIX,
    *,
    start_time: int | None = None,
    default_start_time: int = 0,
) -> RewardConfig:
    """Build a `RewardConfig` from `<prefix>*` variables.

    Genesis is `start_time` when given, else `<prefix>START_TIME`, else
    `default_start_time` (`deploy_market` passes the deploy-time clock).
    """
    defaults = RewardConfig()
    genesis = start_time if start_time is not None else _env_int(
        f"{prefix}START_TIME", default_start_time, lo=0, hi=2**63 - 1,
    )
    return RewardConfig(
        start_time=genesis,
        period_seconds=_env_int(f"{prefix}PERIOD_SECONDS", defaults.period_seconds, lo=1, hi=2**63 - 1),
        reward_rate=_env_int(f"{prefix}REWARD_RATE", defaults.reward_rate, lo=0, hi=UINT256_MAX),
        reward_rate_divisor=_env_int(
            f"{prefix}REWARD_RATE_DIVISOR", defaults.reward_rate_divisor, lo=1, hi=UINT256_MAX,
        ),
        scale=_env_int(f"{prefix}SCALE", defaults.scale, lo=1, hi=UINT256_MAX),
        check_invariants=_env_bool(f"{prefix}CHECK_INVARIANTS", defaults.check_invariants),
    )
