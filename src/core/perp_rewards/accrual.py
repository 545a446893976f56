"""Reward accrual engine and claim settlement.

Rewards accrue lazily, per trader, in O(1) per action regardless of how many
traders exist or how many seasons have passed:

- every volume report (and every claim) runs `touch(trader)`,
- while the trader's last active season is still current, `touch` overwrites
  that season's snapshot with a fresh estimate (case A),
- once the season has rolled over, the next `touch` recomputes the now-frozen
  season one last time and folds it into `claimable`, at most once per season
  (guarded by `last_finalized_season`), then continues as case A (case B).

The current season's snapshot is only ever an estimate and is never part of
`claimable`. A trader who stops trading is finalized by their next claim.

Every public operation plans its writes first (`plan_touch` reads but never
writes) and commits them inside one store transaction.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Tuple

from ...state.store import StateStore
from ...state.tokens import ValueTransfer

from .config import RewardConfig
from .effects import effect_ledger_address_set, effect_reward_claimed, effect_reward_set
from .errors import ExternalTransferFailedError, InvariantViolationError, NoRewardToClaimError
from .guards import guard_report_volume, guard_set_ledger_address
from .invariants import check_all
from .math import checked_add, season_reward
from .reentrancy import ReentrancyGuard
from .season import SeasonClock, TimeSource, system_time
from .tables import ACCRUAL_TABLE, ENGINE_CONFIG_TABLE, SNAPSHOT_TABLE
from .types import AccrualPlan, AccrualState
from .volumes import VolumeLedger

_log = logging.getLogger(__name__)

_LEDGER_ADDRESS_KEY = "ledger_address"
_SEASON_HIGH_WATER_KEY = "season_high_water"


class RewardEngine:
    """Season-based reward accrual over a shared `StateStore`.

    `payout` is the value-transfer capability holding the reward pool;
    `admin` is the only caller allowed to wire the ledger address, once.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        address: str,
        admin: str,
        payout: ValueTransfer,
        config: RewardConfig | None = None,
        time_source: TimeSource = system_time,
        reward_asset: str = "",
    ):
        self.store = store
        self.address = address
        self.admin = admin
        self.reward_asset = reward_asset
        self.config = config or RewardConfig()
        self.clock = SeasonClock(self.config.start_time, self.config.period_seconds)
        self.volumes = VolumeLedger(store)
        self._payout = payout
        self._now = time_source
        self._guard = ReentrancyGuard(address)

    # -- reads -----------------------------------------------------------------

    @property
    def start_time(self) -> int:
        return self.clock.start_time

    @property
    def ledger_address(self) -> Optional[str]:
        return self.store.get(ENGINE_CONFIG_TABLE, _LEDGER_ADDRESS_KEY)

    @property
    def season_high_water(self) -> int:
        """Highest season any committed action has run in."""
        return self.store.get(ENGINE_CONFIG_TABLE, _SEASON_HIGH_WATER_KEY, 1)

    def current_season(self) -> int:
        """Observed season, never below the highest season already acted in.

        A host clock that steps back across a boundary must not reopen a
        closed season or let a still-open one be finalized.
        """
        observed = self.clock.season(self._now())
        high_water = self.season_high_water
        if observed < high_water:
            _log.warning("clock reads season %d behind high-water season %d", observed, high_water)
            return high_water
        return observed

    def trader_season_volume(self, season: int, trader: str) -> int:
        return self.volumes.trader_volume(season, trader)

    def market_season_volume(self, season: int) -> int:
        return self.volumes.market_volume(season)

    def reward_snapshot(self, trader: str, season: int) -> int:
        return self.store.get(SNAPSHOT_TABLE, (trader, season), 0)

    def accrual_state(self, trader: str) -> AccrualState:
        return self.store.get(ACCRUAL_TABLE, trader, AccrualState())

    def claimable(self, trader: str) -> int:
        """Stored claimable total; excludes seasons not yet finalized by a touch."""
        return self.accrual_state(trader).claimable

    def pending_reward(self, trader: str) -> int:
        """What `claim` would pay right now. Writes nothing."""
        return self.plan_touch(trader, self.current_season()).after.claimable

    # -- accrual ---------------------------------------------------------------

    def _reward(self, trader_volume: int, market_volume: int) -> Optional[int]:
        return season_reward(
            trader_volume,
            market_volume,
            reward_rate=self.config.reward_rate,
            reward_rate_divisor=self.config.reward_rate_divisor,
            scale=self.config.scale,
        )

    def plan_touch(
        self,
        trader: str,
        season: int,
        current_volumes: Optional[Tuple[int, int]] = None,
    ) -> AccrualPlan:
        """Compute the writes `touch(trader)` would make in `season`.

        `current_volumes` overrides the stored `(trader, market)` volumes for
        `season`, so a volume report can be validated before it is recorded.
        Raises `ArithmeticOverflowError` without writing anything.
        """
        before = self.accrual_state(trader)
        claimable = before.claimable
        last_finalized = before.last_finalized_season
        snapshots: list[tuple[int, int]] = []
        finalized: Optional[int] = None
        finalized_amount = 0

        previous = before.last_active_season
        if previous is not None and previous != season:
            # Case B: `previous` is closed; its volumes can no longer change.
            frozen = self._reward(
                self.volumes.trader_volume(previous, trader),
                self.volumes.market_volume(previous),
            )
            if frozen is None:
                frozen = self.reward_snapshot(trader, previous)
            else:
                snapshots.append((previous, frozen))
            if last_finalized != previous:
                claimable = checked_add(claimable, frozen)
                last_finalized = previous
                finalized = previous
                finalized_amount = frozen

        # Case A: estimate for the current season.
        if current_volumes is None:
            current_volumes = (
                self.volumes.trader_volume(season, trader),
                self.volumes.market_volume(season),
            )
        estimate = self._reward(*current_volumes)
        if estimate is not None:
            snapshots.append((season, estimate))

        return AccrualPlan(
            trader=trader,
            season=season,
            after=AccrualState(
                last_active_season=season,
                claimable=claimable,
                last_finalized_season=last_finalized,
            ),
            snapshots=tuple(snapshots),
            finalized=finalized,
            finalized_amount=finalized_amount,
        )

    def _apply(self, plan: AccrualPlan) -> None:
        if plan.season > self.season_high_water:
            self.store.set(ENGINE_CONFIG_TABLE, _SEASON_HIGH_WATER_KEY, plan.season)
        for season, reward in plan.snapshots:
            self.store.set(SNAPSHOT_TABLE, (plan.trader, season), reward)
            effect_reward_set(self.store, plan.trader, season, reward)
            _log.debug("snapshot %s season %d -> %d", plan.trader, season, reward)
        self.store.set(ACCRUAL_TABLE, plan.trader, plan.after)
        if plan.finalized is not None:
            _log.info(
                "finalized season %d for %s: +%d (claimable %d)",
                plan.finalized, plan.trader, plan.finalized_amount, plan.after.claimable,
            )

    def _check_invariants(self) -> None:
        if not self.config.check_invariants:
            return
        violations = check_all(self.store)
        if violations:
            raise InvariantViolationError(violations)

    def touch(self, trader: str) -> AccrualPlan:
        """Re-snapshot `trader` in the current season, finalizing a closed one."""
        with self.store.transaction():
            plan = self.plan_touch(trader, self.current_season())
            self._apply(plan)
            self._check_invariants()
        return plan

    # -- gated entry points ----------------------------------------------------

    def set_ledger_address(self, caller: str, address: str) -> None:
        guard_set_ledger_address(caller, self.admin, self.ledger_address, address)
        with self.store.transaction():
            self.store.set(ENGINE_CONFIG_TABLE, _LEDGER_ADDRESS_KEY, address)
            effect_ledger_address_set(self.store, address)
        _log.info("ledger address set to %s", address)

    def report_volume(self, caller: str, amount: int, trader: str) -> AccrualPlan:
        """Record `amount` of leveraged volume for `trader` and re-snapshot them.

        Only the configured ledger may call this.
        """
        guard_report_volume(caller, self.ledger_address)
        season = self.current_season()
        with self.store.transaction():
            volumes_after = self.volumes.preview(season, trader, amount)
            plan = self.plan_touch(trader, season, current_volumes=volumes_after)
            self.volumes.record(season, trader, amount)
            self._apply(plan)
            self._check_invariants()
        return plan

    def claim(self, caller: str) -> int:
        """Finalize pending seasons for `caller` and pay out everything claimable.

        Returns the amount paid. Fails with `NoRewardToClaimError` (no state
        change) when nothing is claimable, and with
        `ExternalTransferFailedError` (full rollback) when the payout fails.
        """
        with self._guard.hold("claim"):
            with self.store.transaction():
                plan = self.plan_touch(caller, self.current_season())
                amount = plan.after.claimable
                if amount == 0:
                    raise NoRewardToClaimError("No reward to claim")
                self._apply(plan)
                if not self._payout.push(caller, amount):
                    _log.warning("reward payout of %d to %s failed", amount, caller)
                    raise ExternalTransferFailedError(f"reward transfer of {amount} failed")
                self.store.set(ACCRUAL_TABLE, caller, replace(self.accrual_state(caller), claimable=0))
                effect_reward_claimed(self.store, caller, amount)
                self._check_invariants()
        _log.info("%s claimed %d", caller, amount)
        return amount

    def __repr__(self) -> str:
        return f"RewardEngine({self.address!r}, season={self.current_season()})"
