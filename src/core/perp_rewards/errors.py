"""Exception types for the ledger and the reward accrual engine.

Every failure aborts the whole action; the store transaction it ran in is
rolled back before the exception reaches the caller. ``code`` is a stable
machine-readable reason (used by the replay tool and in effect logs).
"""

from __future__ import annotations


class PerpRewardsError(Exception):
    """Base class for every rejected action."""

    code = "error"


class ZeroAmountError(PerpRewardsError):
    """Raised when an amount (or leverage) that must be positive is not."""

    code = "zero_amount"


class InsufficientBalanceError(PerpRewardsError):
    """Raised when collateral (or the open position) cannot cover the amount."""

    code = "insufficient_balance"


class PositionAlreadyOpenError(PerpRewardsError):
    code = "position_already_open"


class NoPositionOpenError(PerpRewardsError):
    code = "no_position_open"


class InvalidSideError(PerpRewardsError):
    """Raised when an open request names a side other than Long/Short."""

    code = "invalid_side"


class UnauthorizedError(PerpRewardsError):
    """Raised when the caller lacks the capability for a gated operation."""

    code = "unauthorized"


class ExternalTransferFailedError(PerpRewardsError):
    """Raised when the value-transfer capability reports failure."""

    code = "external_transfer_failed"


class NoRewardToClaimError(PerpRewardsError):
    code = "no_reward_to_claim"


class ArithmeticOverflowError(PerpRewardsError):
    """Raised when an addition or multiplication leaves the uint256 range."""

    code = "arithmetic_overflow"


class ReentrancyError(PerpRewardsError):
    """Raised when a guarded operation is entered while one is in progress."""

    code = "reentrant_call"


class InvariantViolationError(PerpRewardsError):
    """Raised when a post-state violates one or more invariants."""

    code = "invariant_violation"

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")
