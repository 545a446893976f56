"""Guard functions for the ledger and the reward engine.

One pure function per action. Each inspects the PRE-state values it is given
and raises the matching `PerpRewardsError` when the action is not allowed;
returning normally means every precondition holds. Guards run before the
first write of an action.
"""

from __future__ import annotations

from typing import Any, Optional

from .errors import (
    InsufficientBalanceError,
    InvalidSideError,
    NoPositionOpenError,
    PositionAlreadyOpenError,
    UnauthorizedError,
    ZeroAmountError,
)
from .math import check_uint, checked_add, leveraged_volume
from .types import Position, Side


def _require_positive(value: int, what: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{what} must be an int")
    if value <= 0:
        raise ZeroAmountError(f"{what} must be greater than 0")
    check_uint(value, what=what)


def coerce_side(side: Any) -> Side:
    if isinstance(side, Side):
        return side
    if isinstance(side, str):
        try:
            return Side[side.strip().upper()]
        except KeyError:
            raise InvalidSideError(f"unknown side {side!r}") from None
    if isinstance(side, int) and not isinstance(side, bool):
        try:
            return Side(side)
        except ValueError:
            raise InvalidSideError(f"unknown side {side!r}") from None
    raise InvalidSideError(f"unknown side {side!r}")


# -- Ledger ------------------------------------------------------------------

def guard_deposit(balance: int, amount: int) -> int:
    """Returns the post-deposit balance."""
    _require_positive(amount, "amount")
    return checked_add(balance, amount)


def guard_withdraw(balance: int, amount: int) -> None:
    _require_positive(amount, "amount")
    if balance < amount:
        raise InsufficientBalanceError("Insufficient balance")


def guard_open(
    balance: int, position: Optional[Position], amount: int, side: Any, leverage: int,
) -> tuple[Side, int]:
    """Returns the normalized side and the leveraged volume to record."""
    _require_positive(amount, "amount")
    _require_positive(leverage, "leverage")
    normalized = coerce_side(side)
    if balance < amount:
        raise InsufficientBalanceError("Insufficient balance")
    if position is not None:
        raise PositionAlreadyOpenError("Position already open")
    return normalized, leveraged_volume(amount, leverage)


def guard_increase(balance: int, position: Optional[Position], amount: int) -> int:
    """Returns the leveraged volume to record."""
    if position is None:
        raise NoPositionOpenError("No position open")
    _require_positive(amount, "amount")
    if balance < amount:
        raise InsufficientBalanceError("Insufficient balance")
    checked_add(position.amount, amount)
    return leveraged_volume(amount, position.leverage)


def guard_close(position: Optional[Position], amount: int) -> int:
    """Returns the leveraged volume to record."""
    _require_positive(amount, "amount")
    if position is None:
        raise NoPositionOpenError("No position open")
    if amount > position.amount:
        raise InsufficientBalanceError("Insufficient balance")
    return leveraged_volume(amount, position.leverage)


# -- Reward engine -----------------------------------------------------------

def guard_report_volume(caller: str, ledger_address: Optional[str]) -> None:
    if ledger_address is None or caller != ledger_address:
        raise UnauthorizedError("Only the ledger may report volume")


def guard_set_ledger_address(caller: str, admin: str, current: Optional[str], address: str) -> None:
    if caller != admin:
        raise UnauthorizedError("Only the administrator may set the ledger address")
    if current is not None:
        raise UnauthorizedError("Ledger address already set")
    if not address:
        raise ValueError("ledger address must be non-empty")
