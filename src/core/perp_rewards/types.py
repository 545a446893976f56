"""Data types for the position ledger and the reward accrual engine.

Records are frozen dataclasses (immutable) so the store journal can restore
them by reference.

Units/conventions:
- amounts are integer collateral units (18-decimal fixed point by convention),
- `leverage` is a positive integer multiplier,
- volumes are `amount * leverage` and only ever grow,
- seasons are 1-based indices; `None` means "no season yet".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum, unique
from typing import Optional


@unique
class Side(IntEnum):
    LONG = 0
    SHORT = 1


@unique
class Event(Enum):
    """One member per observable notification."""
    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"
    POSITION_OPENED = "PositionOpened"
    POSITION_INCREASED = "PositionIncreased"
    POSITION_CLOSED = "PositionClosed"
    REWARD_SET = "RewardSet"
    REWARD_CLAIMED = "RewardClaimed"
    LEDGER_ADDRESS_SET = "LedgerAddressSet"


@dataclass(frozen=True)
class Position:
    """A trader's single open position. Absent from the store when flat."""

    amount: int
    side: Side
    leverage: int


@dataclass(frozen=True)
class AccrualState:
    """Per-trader lazy accrual bookkeeping."""

    last_active_season: Optional[int] = None
    claimable: int = 0
    last_finalized_season: Optional[int] = None


@dataclass(frozen=True)
class AccrualPlan:
    """Writes a `touch` would make, computed without touching the store.

    `snapshots` holds `(season, reward)` overwrites in application order;
    `finalized` is the season folded into `claimable`, if any.
    """

    trader: str
    season: int
    after: AccrualState
    snapshots: tuple[tuple[int, int], ...] = ()
    finalized: Optional[int] = None
    finalized_amount: int = 0
