"""Export / import of the persisted entity set.

`export_state()` renders every reward-engine and ledger table as a plain,
JSON-safe dict (int keys become strings, enums become names, keys sorted).
`import_state()` writes such a dict back into a store.

Round-trip property (tested): `export_state(import_state(StateStore(), export_state(s)))
== export_state(s)` for all valid stores.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from ...state.store import StateStore

from .tables import (
    ACCRUAL_TABLE,
    COLLATERAL_TABLE,
    ENGINE_CONFIG_TABLE,
    MARKET_VOLUME_TABLE,
    POSITION_TABLE,
    SNAPSHOT_TABLE,
    TRADER_VOLUME_TABLE,
)
from .types import AccrualState, Position, Side

STATE_FORMAT_VERSION = 1


def _nested(rows: Mapping[tuple, int], *, outer: int, inner: int) -> Dict[str, Dict[str, int]]:
    out: Dict[str, Dict[str, int]] = {}
    for key in sorted(rows, key=lambda k: (str(k[outer]), str(k[inner]))):
        out.setdefault(str(key[outer]), {})[str(key[inner])] = rows[key]
    return out


def _opt_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected int or None, got {type(value).__name__}")
    return int(value)


def export_state(store: StateStore) -> Dict[str, Any]:
    accrual = store.items(ACCRUAL_TABLE)
    positions = store.items(POSITION_TABLE)
    collateral = store.items(COLLATERAL_TABLE)
    market = store.items(MARKET_VOLUME_TABLE)
    return {
        "version": STATE_FORMAT_VERSION,
        "ledger_address": store.get(ENGINE_CONFIG_TABLE, "ledger_address"),
        "season_high_water": store.get(ENGINE_CONFIG_TABLE, "season_high_water"),
        "market_volume": {str(s): market[s] for s in sorted(market)},
        "trader_volume": _nested(store.items(TRADER_VOLUME_TABLE), outer=0, inner=1),
        "snapshots": _nested(store.items(SNAPSHOT_TABLE), outer=0, inner=1),
        "accrual": {
            trader: {
                "last_active_season": a.last_active_season,
                "claimable": a.claimable,
                "last_finalized_season": a.last_finalized_season,
            }
            for trader, a in sorted(accrual.items())
        },
        "collateral": {trader: collateral[trader] for trader in sorted(collateral)},
        "positions": {
            trader: {"amount": p.amount, "side": p.side.name, "leverage": p.leverage}
            for trader, p in sorted(positions.items())
        },
    }


def import_state(store: StateStore, data: Mapping[str, Any]) -> StateStore:
    """Load an exported dict into `store`. Raises KeyError/TypeError on malformed input."""
    version = data.get("version", STATE_FORMAT_VERSION)
    if version != STATE_FORMAT_VERSION:
        raise ValueError(f"unsupported state format version {version!r}")
    with store.transaction():
        ledger_address = data.get("ledger_address")
        if ledger_address is not None:
            store.set(ENGINE_CONFIG_TABLE, "ledger_address", str(ledger_address))
        high_water = _opt_int(data.get("season_high_water"))
        if high_water is not None:
            store.set(ENGINE_CONFIG_TABLE, "season_high_water", high_water)
        for season, volume in data["market_volume"].items():
            store.set(MARKET_VOLUME_TABLE, int(season), int(volume))
        for season, per_trader in data["trader_volume"].items():
            for trader, volume in per_trader.items():
                store.set(TRADER_VOLUME_TABLE, (int(season), trader), int(volume))
        for trader, per_season in data["snapshots"].items():
            for season, reward in per_season.items():
                store.set(SNAPSHOT_TABLE, (trader, int(season)), int(reward))
        for trader, a in data["accrual"].items():
            store.set(
                ACCRUAL_TABLE,
                trader,
                AccrualState(
                    last_active_season=_opt_int(a["last_active_season"]),
                    claimable=int(a["claimable"]),
                    last_finalized_season=_opt_int(a["last_finalized_season"]),
                ),
            )
        for trader, amount in data["collateral"].items():
            if int(amount) > 0:
                store.set(COLLATERAL_TABLE, trader, int(amount))
        for trader, p in data["positions"].items():
            store.set(
                POSITION_TABLE,
                trader,
                Position(amount=int(p["amount"]), side=Side[p["side"]], leverage=int(p["leverage"])),
            )
    return store
