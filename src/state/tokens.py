"""
In-memory fungible tokens and the value-transfer capability.

The core never moves tokens itself. It is handed a `ValueTransfer` bound to
its own custody address and only observes success or failure:

- `pull(trader, amount)`: move `amount` from `trader` into custody,
- `push(trader, amount)`: move `amount` from custody to `trader`.

`Token` keeps balances and allowances in the shared `StateStore`, so token
movements roll back together with the action that triggered them.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .balances import Address, Amount, BalanceTable
from .store import StateStore

_log = logging.getLogger(__name__)


class ValueTransfer(Protocol):
    def pull(self, trader: Address, amount: Amount) -> bool: ...

    def push(self, trader: Address, amount: Amount) -> bool: ...


class Token:
    """Minimal fungible token: balances, allowances, transfer/transfer_from."""

    def __init__(self, store: StateStore, symbol: str):
        if not symbol:
            raise ValueError("symbol must be non-empty")
        self.symbol = symbol
        self._store = store
        self._balances = BalanceTable(store, f"token:{symbol}:balance")
        self._allowance_table = f"token:{symbol}:allowance"

    def balance_of(self, holder: Address) -> Amount:
        return self._balances.get(holder)

    def allowance(self, owner: Address, spender: Address) -> Amount:
        return self._store.get(self._allowance_table, (owner, spender), 0)

    def mint(self, holder: Address, amount: Amount) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self._balances.add(holder, amount)

    def approve(self, owner: Address, spender: Address, amount: Amount) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        if amount == 0:
            self._store.delete(self._allowance_table, (owner, spender))
        else:
            self._store.set(self._allowance_table, (owner, spender), amount)

    def transfer(self, sender: Address, recipient: Address, amount: Amount) -> bool:
        """Move `amount` from sender to recipient. Returns False on insufficient funds."""
        if amount < 0 or self._balances.get(sender) < amount:
            return False
        self._balances.subtract(sender, amount)
        self._balances.add(recipient, amount)
        return True

    def transfer_from(self, spender: Address, owner: Address, recipient: Address, amount: Amount) -> bool:
        """Spend `owner`'s allowance for `spender`. Returns False on failure."""
        allowed = self.allowance(owner, spender)
        if amount < 0 or allowed < amount or self._balances.get(owner) < amount:
            return False
        self.approve(owner, spender, allowed - amount)
        self._balances.subtract(owner, amount)
        self._balances.add(recipient, amount)
        return True

    def __repr__(self) -> str:
        return f"Token({self.symbol!r})"


class TokenCustody:
    """`ValueTransfer` over a `Token`, with `custodian` as the holding address."""

    def __init__(self, token: Token, custodian: Address):
        self.token = token
        self.custodian = custodian

    def pull(self, trader: Address, amount: Amount) -> bool:
        ok = self.token.transfer_from(self.custodian, trader, self.custodian, amount)
        if not ok:
            _log.warning("pull of %d %s from %s failed", amount, self.token.symbol, trader)
        return ok

    def push(self, trader: Address, amount: Amount) -> bool:
        ok = self.token.transfer(self.custodian, trader, amount)
        if not ok:
            _log.warning("push of %d %s to %s failed", amount, self.token.symbol, trader)
        return ok
