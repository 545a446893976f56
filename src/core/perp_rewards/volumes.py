"""Volume ledger: append-only leveraged-volume accumulators.

Two store tables:

- `trader_volume[(season, trader)]`: volume one trader produced in a season,
- `market_volume[season]`: sum of every trader's increments in that season.

There is no removal operation. Opening, increasing and closing all add.
"""

from __future__ import annotations

import logging
from typing import Dict, Tuple

from ...state.store import StateStore

from .math import checked_add
from .tables import MARKET_VOLUME_TABLE, TRADER_VOLUME_TABLE

_log = logging.getLogger(__name__)


class VolumeLedger:
    def __init__(self, store: StateStore):
        self._store = store

    def trader_volume(self, season: int, trader: str) -> int:
        return self._store.get(TRADER_VOLUME_TABLE, (season, trader), 0)

    def market_volume(self, season: int) -> int:
        return self._store.get(MARKET_VOLUME_TABLE, season, 0)

    def preview(self, season: int, trader: str, leveraged_amount: int) -> Tuple[int, int]:
        """Post-record `(trader_volume, market_volume)`; raises on overflow, writes nothing."""
        if leveraged_amount < 0:
            raise ValueError("leveraged_amount must be non-negative")
        return (
            checked_add(self.trader_volume(season, trader), leveraged_amount),
            checked_add(self.market_volume(season), leveraged_amount),
        )

    def record(self, season: int, trader: str, leveraged_amount: int) -> Tuple[int, int]:
        trader_after, market_after = self.preview(season, trader, leveraged_amount)
        self._store.set(TRADER_VOLUME_TABLE, (season, trader), trader_after)
        self._store.set(MARKET_VOLUME_TABLE, season, market_after)
        _log.debug(
            "season %d: %s +%d (trader=%d market=%d)",
            season, trader, leveraged_amount, trader_after, market_after,
        )
        return trader_after, market_after

    def seasons(self) -> list[int]:
        return sorted(self._store.items(MARKET_VOLUME_TABLE))

    def traders_in(self, season: int) -> Dict[str, int]:
        """Per-trader volumes for one season. O(entries); for export and audits only."""
        return {
            trader: volume
            for (s, trader), volume in self._store.items(TRADER_VOLUME_TABLE).items()
            if s == season
        }
