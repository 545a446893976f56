"""Position & balance ledger.

Tracks each trader's free collateral and at most one open leveraged position.
Every position action is also a volume event: opening, increasing and closing
each report `amount * leverage` to the reward engine, through the engine's
ledger-only `report_volume` entry point.

Each operation validates its preconditions, then runs its writes (including
the nested volume report and any external transfer) in one store transaction.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from ...state.balances import BalanceTable
from ...state.store import StateStore
from ...state.tokens import ValueTransfer

from .effects import (
    effect_deposit,
    effect_position_closed,
    effect_position_increased,
    effect_position_opened,
    effect_withdraw,
)
from .errors import ExternalTransferFailedError, InvariantViolationError
from .guards import guard_close, guard_deposit, guard_increase, guard_open, guard_withdraw
from .invariants import check_all
from .math import checked_add
from .reentrancy import ReentrancyGuard
from .tables import COLLATERAL_TABLE, POSITION_TABLE
from .types import Position

_log = logging.getLogger(__name__)


class VolumeSink(Protocol):
    def report_volume(self, caller: str, amount: int, trader: str) -> Any: ...


class PerpLedger:
    def __init__(
        self,
        store: StateStore,
        *,
        address: str,
        owner: str,
        custody: ValueTransfer,
        rewards: VolumeSink,
        collateral_asset: str = "",
        reward_engine_address: str = "",
        check_invariants: bool = False,
    ):
        self.store = store
        self.address = address
        self.owner = owner
        self.collateral_asset = collateral_asset
        self.reward_engine_address = reward_engine_address
        self.check_invariants = check_invariants
        self._custody = custody
        self._rewards = rewards
        self._balances = BalanceTable(store, COLLATERAL_TABLE)
        self._guard = ReentrancyGuard(address)

    # -- reads -----------------------------------------------------------------

    def get_balance(self, trader: str) -> int:
        return self._balances.get(trader)

    def get_position(self, trader: str) -> Optional[Position]:
        return self.store.get(POSITION_TABLE, trader)

    def locked_collateral(self, trader: str) -> int:
        position = self.get_position(trader)
        return 0 if position is None else position.amount

    def total_collateral(self) -> int:
        """Free plus locked collateral across all traders."""
        locked = sum(p.amount for p in self.store.items(POSITION_TABLE).values())
        return self._balances.total() + locked

    # -- helpers ---------------------------------------------------------------

    def _report(self, trader: str, leveraged_amount: int) -> None:
        self._rewards.report_volume(self.address, leveraged_amount, trader)

    def _check_invariants(self) -> None:
        if not self.check_invariants:
            return
        violations = check_all(self.store)
        if violations:
            raise InvariantViolationError(violations)

    # -- collateral ------------------------------------------------------------

    def deposit(self, trader: str, amount: int) -> None:
        guard_deposit(self.get_balance(trader), amount)
        with self.store.transaction():
            if not self._custody.pull(trader, amount):
                raise ExternalTransferFailedError(f"collateral pull of {amount} failed")
            self._balances.set(trader, checked_add(self.get_balance(trader), amount))
            effect_deposit(self.store, trader, amount)
            self._check_invariants()
        _log.debug("%s deposited %d", trader, amount)

    def withdraw(self, trader: str, amount: int) -> None:
        with self._guard.hold("withdraw"):
            guard_withdraw(self.get_balance(trader), amount)
            with self.store.transaction():
                # Balance leaves before the external call.
                self._balances.subtract(trader, amount)
                if not self._custody.push(trader, amount):
                    raise ExternalTransferFailedError(f"collateral push of {amount} failed")
                effect_withdraw(self.store, trader, amount)
                self._check_invariants()
        _log.debug("%s withdrew %d", trader, amount)

    # -- positions -------------------------------------------------------------

    def open_position(self, trader: str, amount: int, side: Any, leverage: int) -> Position:
        side, volume = guard_open(
            self.get_balance(trader), self.get_position(trader), amount, side, leverage,
        )
        position = Position(amount=amount, side=side, leverage=leverage)
        with self.store.transaction():
            self._balances.subtract(trader, amount)
            self.store.set(POSITION_TABLE, trader, position)
            self._report(trader, volume)
            effect_position_opened(self.store, trader, amount, side, leverage)
            self._check_invariants()
        _log.debug("%s opened %s %d x%d", trader, side.name, amount, leverage)
        return position

    def increase_position(self, trader: str, amount: int) -> Position:
        current = self.get_position(trader)
        volume = guard_increase(self.get_balance(trader), current, amount)
        position = Position(amount=current.amount + amount, side=current.side, leverage=current.leverage)
        with self.store.transaction():
            self._balances.subtract(trader, amount)
            self.store.set(POSITION_TABLE, trader, position)
            self._report(trader, volume)
            effect_position_increased(self.store, trader, amount)
            self._check_invariants()
        _log.debug("%s increased by %d to %d", trader, amount, position.amount)
        return position

    def close_position(self, trader: str, amount: int) -> Optional[Position]:
        """Close `amount` of the open position; returns what remains (None when flat)."""
        current = self.get_position(trader)
        volume = guard_close(current, amount)
        remaining = current.amount - amount
        with self.store.transaction():
            # Volume is recorded before the position changes.
            self._report(trader, volume)
            if remaining == 0:
                self.store.delete(POSITION_TABLE, trader)
                position = None
            else:
                position = Position(amount=remaining, side=current.side, leverage=current.leverage)
                self.store.set(POSITION_TABLE, trader, position)
            self._balances.add(trader, amount)
            effect_position_closed(self.store, trader, amount)
            self._check_invariants()
        _log.debug("%s closed %d (remaining %d)", trader, amount, remaining)
        return position

    def __repr__(self) -> str:
        return f"PerpLedger({self.address!r})"
