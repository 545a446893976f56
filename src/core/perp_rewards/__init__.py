"""`perp_rewards`: leveraged-position ledger with lazy, season-based reward accrual.

Traders deposit collateral, hold at most one leveraged position, and earn a
pro-rata share of a fixed per-season reward pool proportional to their
leveraged trading volume (`amount * leverage`, counted on open, increase and
close alike).

- integer-only, uint256-checked arithmetic with a fixed truncation order,
- O(1) bookkeeping per action regardless of trader count or elapsed seasons,
- all-or-nothing actions over one shared, journaled `StateStore`.

Public API:
- `deploy_market(...) -> Market` (store + tokens + engine + ledger, wired)
- `RewardEngine`: `report_volume`, `claim`, `set_ledger_address`, `current_season`, reads
- `PerpLedger`: `deposit`, `withdraw`, `open_position`, `increase_position`,
  `close_position`, `get_position`, `get_balance`
"""

from .accrual import RewardEngine
from .config import RewardConfig, config_from_env
from .errors import (
    ArithmeticOverflowError,
    ExternalTransferFailedError,
    InsufficientBalanceError,
    InvalidSideError,
    InvariantViolationError,
    NoPositionOpenError,
    NoRewardToClaimError,
    PerpRewardsError,
    PositionAlreadyOpenError,
    ReentrancyError,
    UnauthorizedError,
    ZeroAmountError,
)
from .ledger import PerpLedger
from .market import Market, deploy_market
from .math import season_reward
from .season import ManualClock, SeasonClock, season_at
from .state import export_state, import_state
from .types import AccrualPlan, AccrualState, Event, Position, Side

__all__ = [
    "RewardEngine",
    "PerpLedger",
    "Market",
    "deploy_market",
    "RewardConfig",
    "config_from_env",
    "season_reward",
    "season_at",
    "SeasonClock",
    "ManualClock",
    "export_state",
    "import_state",
    "AccrualPlan",
    "AccrualState",
    "Event",
    "Position",
    "Side",
    "PerpRewardsError",
    "ZeroAmountError",
    "InsufficientBalanceError",
    "PositionAlreadyOpenError",
    "NoPositionOpenError",
    "InvalidSideError",
    "UnauthorizedError",
    "ExternalTransferFailedError",
    "NoRewardToClaimError",
    "ArithmeticOverflowError",
    "ReentrancyError",
    "InvariantViolationError",
]
