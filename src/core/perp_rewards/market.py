"""Wiring: one store, two tokens, the reward engine and the ledger.

`deploy_market()` performs the deployment sequence: create the collateral and
reward tokens, create the engine (administrator = deployer) and the ledger,
then make the one-time `set_ledger_address` call. Without an explicit
config the `PERP_REWARDS_*` environment is read, with genesis defaulting to
the deploy-time clock. Funding the reward pool and granting traders
collateral are separate steps (`fund_rewards`, `grant`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ...state.store import StateStore
from ...state.tokens import Token, TokenCustody

from .accrual import RewardEngine
from .config import RewardConfig, config_from_env
from .ledger import PerpLedger
from .season import TimeSource, system_time

_log = logging.getLogger(__name__)

DEFAULT_LEDGER_ADDRESS = "perp-ledger"
DEFAULT_ENGINE_ADDRESS = "reward-engine"


@dataclass
class Market:
    store: StateStore
    collateral_token: Token
    reward_token: Token
    engine: RewardEngine
    ledger: PerpLedger
    deployer: str

    def fund_rewards(self, amount: int) -> None:
        """Mint `amount` of reward token into the engine's payout custody."""
        with self.store.transaction():
            self.reward_token.mint(self.engine.address, amount)

    def grant(self, trader: str, amount: int, *, approve: bool = True) -> None:
        """Mint collateral to `trader` and (optionally) approve the ledger to pull it."""
        with self.store.transaction():
            self.collateral_token.mint(trader, amount)
            if approve:
                allowed = self.collateral_token.allowance(trader, self.ledger.address)
                self.collateral_token.approve(trader, self.ledger.address, allowed + amount)


def deploy_market(
    *,
    deployer: str = "deployer",
    config: RewardConfig | None = None,
    time_source: TimeSource = system_time,
    store: StateStore | None = None,
    collateral_symbol: str = "COLL",
    reward_symbol: str = "RWD",
    ledger_address: str = DEFAULT_LEDGER_ADDRESS,
    engine_address: str = DEFAULT_ENGINE_ADDRESS,
) -> Market:
    store = store if store is not None else StateStore()
    config = config or config_from_env(default_start_time=time_source())

    collateral_token = Token(store, collateral_symbol)
    reward_token = Token(store, reward_symbol)

    engine = RewardEngine(
        store,
        address=engine_address,
        admin=deployer,
        payout=TokenCustody(reward_token, engine_address),
        config=config,
        time_source=time_source,
        reward_asset=reward_symbol,
    )
    ledger = PerpLedger(
        store,
        address=ledger_address,
        owner=deployer,
        custody=TokenCustody(collateral_token, ledger_address),
        rewards=engine,
        collateral_asset=collateral_symbol,
        reward_engine_address=engine_address,
        check_invariants=config.check_invariants,
    )
    engine.set_ledger_address(deployer, ledger_address)
    _log.info(
        "deployed market: ledger=%s engine=%s genesis=%d period=%d",
        ledger_address, engine_address, engine.start_time, config.period_seconds,
    )
    return Market(
        store=store,
        collateral_token=collateral_token,
        reward_token=reward_token,
        engine=engine,
        ledger=ledger,
        deployer=deployer,
    )
