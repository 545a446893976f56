"""Pure arithmetic for the reward engine and the position ledger.

Every function is stateless and operates on plain Python ints.

Python ints never wrap, so the unsigned 256-bit range is enforced explicitly:
each addition and multiplication on volumes and rewards goes through
`checked_add` / `checked_mul`, which raise instead of saturating.

Rounding is explicit: `//` truncates, and the reward formula divides twice in
a fixed order (rate divisor first, then market volume). The two divisions are
not combined.
"""

from __future__ import annotations

from .errors import ArithmeticOverflowError

# Genesis constants
SCALE: int = 10**18
REWARD_RATE: int = 387
REWARD_RATE_DIVISOR: int = 1000
SEASON_PERIOD_SECONDS: int = 2_592_000  # 30 days

UINT256_MAX: int = 2**256 - 1


# -- Checked arithmetic ------------------------------------------------------

def check_uint(x: int, *, what: str = "value") -> int:
    """Return *x* if it lies in ``[0, 2**256 - 1]``, else raise."""
    if x < 0 or x > UINT256_MAX:
        raise ArithmeticOverflowError(f"{what} out of uint256 range")
    return x


def checked_add(a: int, b: int) -> int:
    return check_uint(a + b, what="sum")


def checked_mul(a: int, b: int) -> int:
    return check_uint(a * b, what="product")


# -- Volume ------------------------------------------------------------------

def leveraged_volume(amount: int, leverage: int) -> int:
    """Notional volume of a position delta: ``amount * leverage``."""
    return checked_mul(amount, leverage)


# -- Reward formula ----------------------------------------------------------

def season_reward(
    trader_volume: int,
    market_volume: int,
    *,
    reward_rate: int = REWARD_RATE,
    reward_rate_divisor: int = REWARD_RATE_DIVISOR,
    scale: int = SCALE,
) -> int | None:
    """Trader's share of one season's pool.

    ``floor(floor(trader_volume * rate * scale / divisor) / market_volume)``

    Returns None when either volume is zero: the recompute is skipped and the
    caller keeps whatever snapshot it already has.
    """
    if trader_volume == 0 or market_volume == 0:
        return None
    scaled = checked_mul(checked_mul(trader_volume, reward_rate), scale)
    after_rate = scaled // reward_rate_divisor
    return after_rate // market_volume
