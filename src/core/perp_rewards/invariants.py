"""Invariant checkers over the shared store.

Each function returns True when the invariant holds, and `check_all()` returns
the list of violated invariant IDs (empty = all pass).

These are whole-state checks (O(rows)); they run after every action only when
`RewardConfig.check_invariants` is set, and in tests.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Callable

from ...state.store import StateStore

from .tables import (
    ACCRUAL_TABLE,
    COLLATERAL_TABLE,
    MARKET_VOLUME_TABLE,
    POSITION_TABLE,
    SNAPSHOT_TABLE,
    TRADER_VOLUME_TABLE,
)
from .types import AccrualState, Position, Side


def inv_volumes_nonneg(s: StateStore) -> bool:
    return all(v >= 0 for v in s.items(TRADER_VOLUME_TABLE).values()) and all(
        v >= 0 for v in s.items(MARKET_VOLUME_TABLE).values()
    )


def inv_market_volume_is_sum(s: StateStore) -> bool:
    per_season: dict[int, int] = defaultdict(int)
    for (season, _trader), volume in s.items(TRADER_VOLUME_TABLE).items():
        per_season[season] += volume
    market = s.items(MARKET_VOLUME_TABLE)
    if set(per_season) != set(market):
        return False
    return all(market[season] == total for season, total in per_season.items())


def inv_snapshot_requires_volume(s: StateStore) -> bool:
    volumes = s.items(TRADER_VOLUME_TABLE)
    return all(
        volumes.get((season, trader), 0) > 0
        for (trader, season) in s.items(SNAPSHOT_TABLE)
    )


def inv_claimable_nonneg(s: StateStore) -> bool:
    return all(a.claimable >= 0 for a in s.items(ACCRUAL_TABLE).values())


def inv_finalized_before_active(s: StateStore) -> bool:
    for a in s.items(ACCRUAL_TABLE).values():
        if not isinstance(a, AccrualState):
            return False
        if a.last_finalized_season is None:
            continue
        if a.last_active_season is None or a.last_finalized_season >= a.last_active_season:
            return False
    return True


def inv_positions_well_formed(s: StateStore) -> bool:
    for p in s.items(POSITION_TABLE).values():
        if not isinstance(p, Position):
            return False
        if p.amount <= 0 or p.leverage <= 0 or not isinstance(p.side, Side):
            return False
    return True


def inv_collateral_nonneg(s: StateStore) -> bool:
    return all(v >= 0 for v in s.items(COLLATERAL_TABLE).values())


# ---------------------------------------------------------------------------
# Registry + check_all
# ---------------------------------------------------------------------------

INVARIANT_REGISTRY: dict[str, Callable[[StateStore], bool]] = {
    "inv_volumes_nonneg": inv_volumes_nonneg,
    "inv_market_volume_is_sum": inv_market_volume_is_sum,
    "inv_snapshot_requires_volume": inv_snapshot_requires_volume,
    "inv_claimable_nonneg": inv_claimable_nonneg,
    "inv_finalized_before_active": inv_finalized_before_active,
    "inv_positions_well_formed": inv_positions_well_formed,
    "inv_collateral_nonneg": inv_collateral_nonneg,
}


def check_all(store: StateStore) -> list[str]:
    """Return list of violated invariant IDs (empty = all pass)."""
    return [
        inv_id
        for inv_id, check_fn in INVARIANT_REGISTRY.items()
        if not check_fn(store)
    ]
