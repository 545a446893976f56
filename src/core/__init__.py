"""
Core ledger and reward-accrual algorithms
"""

from .perp_rewards import (
    PerpLedger,
    RewardConfig,
    RewardEngine,
    deploy_market,
    season_reward,
)

__all__ = [
    "PerpLedger",
    "RewardConfig",
    "RewardEngine",
    "deploy_market",
    "season_reward",
]
